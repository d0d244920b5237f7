"""Generation errors and their classification."""

from enum import Enum

# Rate limited, forbidden-due-to-quota, server unavailable / overloaded
TRANSIENT_STATUS_CODES = frozenset({429, 403, 503, 529})


class GenerationError(Exception):
    """A failure reported by the remote generation service."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ContentBlockedError(GenerationError):
    """The service refused to answer because of its safety filters."""


class ServiceConnectionError(GenerationError):
    """The service could not be reached."""


class FailureCategory(str, Enum):
    """User-facing failure categories, each with its own explanation."""

    SAFETY = "safety"
    AUTHENTICATION = "authentication"
    QUOTA = "quota"
    SERVER = "server"
    NETWORK = "network"
    UNEXPECTED = "unexpected"

    @property
    def explanation(self) -> str:
        return _EXPLANATIONS[self]


_EXPLANATIONS = {
    FailureCategory.SAFETY: "I cannot answer this query because it triggers my safety filters.",
    FailureCategory.AUTHENTICATION: "Authentication failed. Please verify your API key.",
    FailureCategory.QUOTA: "I'm receiving too many requests right now. Please wait.",
    FailureCategory.SERVER: "My servers are currently overloaded. Please try again later.",
    FailureCategory.NETWORK: "Network error. Please check your connection.",
    FailureCategory.UNEXPECTED: "I encountered an unexpected error.",
}


def is_transient(error: BaseException) -> bool:
    """Whether a failure is worth retrying after a delay."""
    return (
        isinstance(error, GenerationError)
        and not isinstance(error, ContentBlockedError)
        and error.status_code in TRANSIENT_STATUS_CODES
    )


def classify_failure(error: BaseException) -> FailureCategory:
    """Map a turn failure to a user-facing category.

    Typed errors are matched by type and status first; anything else falls
    back to matching well-known markers in the error text.
    """
    if isinstance(error, ContentBlockedError):
        return FailureCategory.SAFETY
    if isinstance(error, ServiceConnectionError):
        return FailureCategory.NETWORK

    status = getattr(error, "status_code", None)
    if status == 401:
        return FailureCategory.AUTHENTICATION
    if status in (429, 403):
        return FailureCategory.QUOTA
    if isinstance(status, int) and status >= 500:
        return FailureCategory.SERVER

    text = str(error)
    if "SAFETY" in text or "BLOCKED" in text:
        return FailureCategory.SAFETY
    if "401" in text or "API key" in text:
        return FailureCategory.AUTHENTICATION
    if "429" in text or "403" in text:
        return FailureCategory.QUOTA
    if "500" in text or "503" in text:
        return FailureCategory.SERVER
    if isinstance(error, (ConnectionError, TimeoutError)) or "fetch" in text:
        return FailureCategory.NETWORK
    return FailureCategory.UNEXPECTED

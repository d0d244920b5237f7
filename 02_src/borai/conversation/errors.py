"""Conversation errors."""


class TurnInProgressError(RuntimeError):
    """A session already has a turn drafting or streaming."""


class EmptySubmissionError(ValueError):
    """A submission carried neither text nor attachments."""


class SessionNotFoundError(KeyError):
    """No session with the given id belongs to the workspace."""

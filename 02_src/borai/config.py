"""Project-level configuration and path helpers."""

import os
from pathlib import Path
from typing import Union

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DATA_DIR = PROJECT_ROOT / "03_data"
LOGS_DIR = PROJECT_ROOT / "04_logs"
DEFAULT_DB_PATH = DATA_DIR / "borai.db"
DEFAULT_LOG_PATH = LOGS_DIR / "app.log"

DATA_DIR.mkdir(parents=True, exist_ok=True)
LOGS_DIR.mkdir(parents=True, exist_ok=True)

# Remote generation service
DEFAULT_MODEL = "claude-sonnet-4-5"
DEFAULT_MAX_TOKENS = 4096
RESEARCH_THINKING_BUDGET = 2048
WEB_SEARCH_MAX_USES = 5

# Retry policy for transient failures: 1s, 2s, 4s
MAX_RETRIES = 3
RETRY_BASE_DELAY = 1.0
RETRY_BACKOFF_FACTOR = 2.0

DEFAULT_LANGUAGE = "en"


PathLike = Union[str, Path]


def resolve_db_path(env_value: PathLike | None = None) -> PathLike:
    """Resolve DATABASE_URL to an absolute path."""
    if not env_value:
        return DEFAULT_DB_PATH

    if str(env_value) == ":memory:":
        return ":memory:"

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def resolve_model() -> str:
    """Model name from BORAI_MODEL, falling back to the default."""
    return os.getenv("BORAI_MODEL") or DEFAULT_MODEL


def resolve_max_tokens() -> int:
    """Response token limit from BORAI_MAX_TOKENS."""
    raw = os.getenv("BORAI_MAX_TOKENS")
    if not raw:
        return DEFAULT_MAX_TOKENS
    try:
        value = int(raw)
    except ValueError as e:
        raise ValueError(f"BORAI_MAX_TOKENS must be an integer, got {raw!r}") from e
    # Thinking budget must stay below max_tokens in research mode
    return max(value, RESEARCH_THINKING_BUDGET + 1)


def resolve_language() -> str:
    """Default answer language code from BORAI_LANGUAGE."""
    return os.getenv("BORAI_LANGUAGE") or DEFAULT_LANGUAGE

"""Session lifecycle module."""

from .manager import INTERRUPTED_EXPLANATION, ISessionManager, SessionManager
from .writer import SessionWriter

__all__ = ["ISessionManager", "SessionManager", "SessionWriter", "INTERRUPTED_EXPLANATION"]

"""Storage module."""

from .errors import StorageUnavailableError
from .storage import ISessionStore, SessionStore

__all__ = ["ISessionStore", "SessionStore", "StorageUnavailableError"]

"""Mapping of core errors to HTTP errors."""

from fastapi import HTTPException

from ..app import UserNotSignedInError
from ..conversation import EmptySubmissionError, SessionNotFoundError, TurnInProgressError
from ..storage import StorageUnavailableError


def to_http_exception(error: Exception) -> HTTPException:
    """Translate a core error raised by a route handler."""
    if isinstance(error, HTTPException):
        return error
    if isinstance(error, UserNotSignedInError):
        return HTTPException(status_code=404, detail="User is not signed in")
    if isinstance(error, SessionNotFoundError):
        return HTTPException(status_code=404, detail="Session not found")
    if isinstance(error, TurnInProgressError):
        return HTTPException(status_code=409, detail=str(error))
    if isinstance(error, (EmptySubmissionError, ValueError)):
        return HTTPException(status_code=422, detail=str(error))
    if isinstance(error, StorageUnavailableError):
        return HTTPException(status_code=503, detail=str(error))
    return HTTPException(status_code=500, detail=str(error))

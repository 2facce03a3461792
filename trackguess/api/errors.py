"""Map core errors to HTTP responses."""
from fastapi import HTTPException

from trackguess.core.errors import (
    CredentialMissing,
    DuplicateQuestion,
    FatalApiError,
    GameNotFound,
    NoQuestionAssigned,
    RateLimited,
    RefreshFailed,
    SessionClosed,
    SlotNotFound,
    SlotNotRemovable,
    StoreWriteFailed,
    TrackGuessError,
    TrackNotEligible,
    UnknownQuestion,
    Unavailable,
)

_STATUS = [
    (CredentialMissing, 401),
    (RefreshFailed, 401),
    (RateLimited, 429),
    (Unavailable, 503),
    (TrackNotEligible, 422),
    (DuplicateQuestion, 409),
    (NoQuestionAssigned, 400),
    (SlotNotRemovable, 400),
    (SlotNotFound, 404),
    (UnknownQuestion, 404),
    (GameNotFound, 404),
    (SessionClosed, 410),
    (StoreWriteFailed, 502),
]


def http_error(error: TrackGuessError) -> HTTPException:
    """HTTPException whose detail says which slot/question the error concerns."""
    if isinstance(error, FatalApiError):
        status = 404 if error.http_status in (400, 404) else 502
        return HTTPException(status_code=status, detail=error.to_dict())
    for error_type, status in _STATUS:
        if isinstance(error, error_type):
            return HTTPException(status_code=status, detail=error.to_dict())
    return HTTPException(status_code=500, detail=error.to_dict())

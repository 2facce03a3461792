"""Error taxonomy shared by the token manager, API client, and sync engine."""
from typing import Optional


class TrackGuessError(Exception):
    """Base error. `code` is stable for API clients; slot/question say what it concerns."""
    code = "error"

    def __init__(
        self,
        message: str = "",
        *,
        slot_index: Optional[int] = None,
        question_id: Optional[str] = None,
    ) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code
        self.slot_index = slot_index
        self.question_id = question_id

    def to_dict(self) -> dict:
        out = {"code": self.code, "message": self.message}
        if self.slot_index is not None:
            out["slot_index"] = self.slot_index
        if self.question_id is not None:
            out["question_id"] = self.question_id
        return out


# Credentials
class CredentialMissing(TrackGuessError):
    """No token stored; the player must authenticate again."""
    code = "credential_missing"


class RefreshFailed(TrackGuessError):
    """Refresh exchange failed; terminal until the player re-authenticates."""
    code = "refresh_failed"


# Third-party API
class RateLimited(TrackGuessError):
    """Still throttled after all retries."""
    code = "rate_limited"


class Unavailable(TrackGuessError):
    """Still failing with 5xx or network errors after all retries."""
    code = "unavailable"


class FatalApiError(TrackGuessError):
    """Non-retryable API failure (4xx other than 401/429, or malformed payload)."""
    code = "api_error"

    def __init__(self, message: str = "", *, http_status: Optional[int] = None, **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.http_status = http_status


# Sync engine
class TrackNotEligible(TrackGuessError):
    code = "track_not_eligible"


class DuplicateQuestion(TrackGuessError):
    code = "duplicate_question"


class NoQuestionAssigned(TrackGuessError):
    code = "no_question_assigned"


class StoreWriteFailed(TrackGuessError):
    """Wraps the answer store's error message."""
    code = "store_write_failed"


class SlotNotFound(TrackGuessError):
    code = "slot_not_found"


class SlotNotRemovable(TrackGuessError):
    """Permanent slots may be cleared but not removed."""
    code = "slot_not_removable"


class SessionClosed(TrackGuessError):
    code = "session_closed"


class UnknownQuestion(TrackGuessError):
    """Question id is not one of the active questions."""
    code = "unknown_question"


# Games
class GameNotFound(TrackGuessError):
    code = "game_not_found"

"""Data models for tracks, questions, answers, slots, and credentials."""
from trackguess.models.answer import Answer, Question, StoreResult
from trackguess.models.credential import Credential, TokenResponse
from trackguess.models.game import Game, GamePlayer
from trackguess.models.slot import Readiness, Slot, SlotState
from trackguess.models.track import Track

__all__ = [
    "Answer",
    "Credential",
    "Game",
    "GamePlayer",
    "Question",
    "Readiness",
    "Slot",
    "SlotState",
    "StoreResult",
    "TokenResponse",
    "Track",
]

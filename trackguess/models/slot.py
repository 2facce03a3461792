"""Slot state for an in-progress answer set."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from trackguess.models.track import Track


class SlotState(str, Enum):
    EMPTY = "empty"
    PENDING = "pending"  # optimistic value shown, remote write in flight
    FILLED = "filled"


@dataclass
class Slot:
    """One question/track pairing. A track is only ever set together with a question."""
    index: int
    question_id: Optional[str] = None
    track: Optional[Track] = None
    state: SlotState = SlotState.EMPTY
    permanent: bool = False
    error: Optional[str] = None
    key: int = field(default=0, repr=False)

    @property
    def is_filled(self) -> bool:
        return self.track is not None

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "question_id": self.question_id,
            "track": self.track.to_dict() if self.track else None,
            "state": self.state.value,
            "permanent": self.permanent,
            "error": self.error,
        }


@dataclass
class Readiness:
    """Completion gate: ready once filled_count reaches minimum."""
    filled_count: int
    minimum: int
    is_ready: bool

    @property
    def fraction(self) -> float:
        if self.minimum <= 0:
            return 1.0
        return min(1.0, self.filled_count / self.minimum)

    def to_dict(self) -> dict:
        return {
            "filled_count": self.filled_count,
            "minimum": self.minimum,
            "is_ready": self.is_ready,
            "fraction": self.fraction,
        }

"""Readiness gate over the current slots."""
from typing import Iterable

from trackguess.models.slot import Readiness, Slot


def readiness(slots: Iterable[Slot], minimum: int) -> Readiness:
    """Count filled slots and compare against the minimum. Pure; no I/O."""
    filled_count = sum(1 for s in slots if s.track is not None)
    return Readiness(filled_count=filled_count, minimum=minimum, is_ready=filled_count >= minimum)

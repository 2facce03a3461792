"""Time-bounded cache for the active question list."""
import threading
import time
from typing import Callable, List, Optional

from trackguess.config import QUESTIONS_CACHE_TTL_SEC
from trackguess.models.answer import Question


class QuestionCache:
    def __init__(
        self,
        loader: Callable[[], List[Question]],
        ttl_sec: float = QUESTIONS_CACHE_TTL_SEC,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._loader = loader
        self._ttl_sec = ttl_sec
        self._clock = clock
        self._questions: Optional[List[Question]] = None
        self._expires_at: float = 0.0
        self._lock = threading.Lock()

    def is_valid(self) -> bool:
        return self._questions is not None and self._clock() < self._expires_at

    def get(self) -> List[Question]:
        """Cached questions, reloading once the TTL has passed. Empty loads are not cached."""
        with self._lock:
            if self.is_valid():
                return list(self._questions)
            questions = self._loader()
            if questions:
                self._questions = list(questions)
                self._expires_at = self._clock() + self._ttl_sec
            return list(questions)

    def invalidate(self) -> None:
        with self._lock:
            self._questions = None
            self._expires_at = 0.0

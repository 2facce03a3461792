"""Answer synchronization: the player's slots and their persisted answers.

Each slot moves EMPTY -> PENDING -> FILLED when a track is chosen, and
FILLED -> PENDING -> FILLED | EMPTY when it is changed or cleared. A PENDING
slot already shows its new value; if the store write fails the slot goes back
to what the store still holds. No question is ever held by two slots.

Operations on the same slot run one at a time (per-slot lock, last writer
wins). Operations on different slots do not interact.
"""
import itertools
import logging
import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, Iterator, List, Optional

from trackguess.config import ELIGIBILITY_YEARS, MINIMUM_QUESTIONS
from trackguess.core.answer_store import AnswerStore
from trackguess.core.eligibility import is_track_eligible
from trackguess.core.errors import (
    DuplicateQuestion,
    NoQuestionAssigned,
    SessionClosed,
    SlotNotFound,
    SlotNotRemovable,
    StoreWriteFailed,
    TrackNotEligible,
    UnknownQuestion,
)
from trackguess.core.readiness import readiness
from trackguess.models.answer import Question, StoreResult
from trackguess.models.slot import Readiness, Slot, SlotState
from trackguess.models.track import Track

logger = logging.getLogger(__name__)


class AnswerSyncEngine:
    def __init__(
        self,
        store: AnswerStore,
        player_id: str,
        minimum: int = MINIMUM_QUESTIONS,
        eligibility_years: int = ELIGIBILITY_YEARS,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._store = store
        self.player_id = player_id
        self.minimum = minimum
        self.eligibility_years = eligibility_years
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._keys = itertools.count(1)
        self._lock = threading.RLock()  # slot list, question ownership, closed flag
        self._slot_locks: Dict[int, threading.Lock] = {}
        self._reserved: Dict[str, int] = {}  # question_id -> slot key of an in-flight change
        self._close_callbacks: List[Callable[[], None]] = []
        self._closed = False
        self._known_questions: Optional[set] = None  # set by load(); None accepts any id
        self._slots: List[Slot] = [self._new_slot(i, permanent=True) for i in range(minimum)]
        self.last_readiness: Readiness = readiness(self._slots, minimum)

    # Reading state

    @property
    def slots(self) -> List[Slot]:
        """Snapshot copies of the slots in order."""
        with self._lock:
            return [replace(s) for s in self._slots]

    def slot(self, index: int) -> Slot:
        with self._lock:
            return replace(self._locate(index))

    def readiness(self) -> Readiness:
        with self._lock:
            return readiness(self._slots, self.minimum)

    def available_questions(self, questions: Iterable[Question]) -> List[Question]:
        """Questions not yet assigned to any slot."""
        with self._lock:
            taken = {s.question_id for s in self._slots if s.question_id is not None}
        return [q for q in questions if q.id not in taken]

    @property
    def closed(self) -> bool:
        return self._closed

    # Lifecycle

    def load(self, questions: Optional[Iterable[Question]] = None) -> List[Slot]:
        """Rebuild slots from the store: one per stored answer, padded to the minimum.

        Answers are ordered by their question's display order when `questions`
        is given, and change_question then only accepts those question ids.
        The first `minimum` slots are permanent.
        """
        answers = self._store.get_player_answers(self.player_id)
        questions = None if questions is None else list(questions)
        order = {q.id: q.display_order for q in questions or ()}
        answers = sorted(answers, key=lambda a: (a.question_id not in order, order.get(a.question_id, 0)))
        with self._lock:
            self._check_open()
            slots = [
                self._new_slot(
                    i,
                    question_id=a.question_id,
                    track=Track.from_answer(a),
                    state=SlotState.FILLED,
                    permanent=i < self.minimum,
                )
                for i, a in enumerate(answers)
            ]
            while len(slots) < self.minimum:
                slots.append(self._new_slot(len(slots), permanent=True))
            self._slots = slots
            self._slot_locks.clear()
            self._known_questions = None if questions is None else set(order)
            self._recompute()
            logger.info("Loaded %d answers for player %s", len(answers), self.player_id)
            return [replace(s) for s in self._slots]

    def on_close(self, callback: Callable[[], None]) -> None:
        """Register a callback run by close(), e.g. cancelling API retries."""
        self._close_callbacks.append(callback)

    def close(self) -> None:
        """End the session. Later operations and late remote results leave slots untouched."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        for callback in self._close_callbacks:
            callback()
        logger.info("Closed answer session for player %s", self.player_id)

    # Operations

    def add_slot(self) -> Slot:
        """Append an empty, removable slot. Local only."""
        with self._lock:
            self._check_open()
            slot = self._new_slot(len(self._slots))
            self._slots.append(slot)
            self._recompute()
            return replace(slot)

    def select_track(self, slot_index: int, track: Track, eligibility_override: bool = False) -> Slot:
        """Set the slot's track and persist it.

        The track is shown at once (PENDING). If the store rejects the write
        the slot goes back to its previous track and StoreWriteFailed is raised.
        `eligibility_override` skips the recency check for manually entered tracks.
        """
        with self._locked_slot(slot_index) as slot:
            question_id = slot.question_id
            if question_id is None:
                raise NoQuestionAssigned(
                    "Choose a question for this slot before selecting a track",
                    slot_index=slot.index,
                )
            if not eligibility_override and not is_track_eligible(
                track, self.eligibility_years, now=self._clock()
            ):
                raise TrackNotEligible(
                    "This track is not from the past year. "
                    "Please select a track released in the last year.",
                    slot_index=slot.index,
                    question_id=question_id,
                )

            with self._lock:
                prior_track, prior_state = slot.track, slot.state
                slot.track = track
                slot.state = SlotState.PENDING
                slot.error = None

            result = self._write(self._store.save_answer, question_id, track)

            with self._lock:
                self._check_open()
                if not result.success:
                    slot.track, slot.state = prior_track, prior_state
                    message = result.error or "Failed to save answer"
                    slot.error = message
                    self._recompute()
                    logger.warning(
                        "Saving %s for question %s failed, rolled back: %s",
                        track.id, question_id, message,
                    )
                    raise StoreWriteFailed(message, slot_index=slot.index, question_id=question_id)
                slot.state = SlotState.FILLED
                self._recompute()
                logger.info("Saved track %s for question %s", track.id, question_id)
                return replace(slot)

    def change_question(self, slot_index: int, new_question_id: str) -> Slot:
        """Move the slot to another question.

        Empty slots change locally. Filled slots delete the old answer and save
        the track under the new question; if that save fails the track is saved
        back under the old question before the error is raised.
        """
        if not new_question_id:
            raise ValueError("new_question_id is required")
        known = self._known_questions
        if known is not None and new_question_id not in known:
            raise UnknownQuestion(
                "This question does not exist or is no longer active.",
                slot_index=slot_index,
                question_id=new_question_id,
            )
        with self._locked_slot(slot_index) as slot:
            old_question_id = slot.question_id
            if new_question_id == old_question_id:
                return replace(slot)

            with self._lock:
                self._ensure_unassigned(new_question_id, slot)
                if slot.track is None:
                    slot.question_id = new_question_id
                    slot.error = None
                    self._recompute()
                    return replace(slot)
                track = slot.track
                self._reserved[new_question_id] = slot.key
                slot.state = SlotState.PENDING
                slot.error = None

            try:
                return self._move_answer(slot, old_question_id, new_question_id, track)
            finally:
                with self._lock:
                    self._reserved.pop(new_question_id, None)

    def remove_slot(self, slot_index: int) -> Readiness:
        """Delete a non-permanent slot and its answer. On failure the slot stays."""
        with self._locked_slot(slot_index) as slot:
            if slot.permanent:
                raise SlotNotRemovable(
                    f"The first {self.minimum} slots cannot be removed",
                    slot_index=slot.index,
                    question_id=slot.question_id,
                )
            if slot.track is not None:
                self._delete_answer(slot, "Failed to delete answer")
            with self._lock:
                self._check_open()
                self._slots = [s for s in self._slots if s is not slot]
                self._slot_locks.pop(slot.key, None)
                for i, s in enumerate(self._slots):
                    s.index = i
                self._recompute()
                return self.last_readiness

    def clear_question(self, slot_index: int) -> Slot:
        """Empty a slot (question and track) without removing it."""
        with self._locked_slot(slot_index) as slot:
            if slot.track is not None:
                self._delete_answer(slot, "Failed to delete answer")
            with self._lock:
                self._check_open()
                slot.question_id = None
                slot.track = None
                slot.state = SlotState.EMPTY
                slot.error = None
                self._recompute()
                return replace(slot)

    # Internals

    def _move_answer(self, slot: Slot, old_question_id: str, new_question_id: str, track: Track) -> Slot:
        deleted = self._write(self._store.delete_answer, old_question_id)
        if not deleted.success:
            message = deleted.error or "Failed to delete answer"
            with self._lock:
                self._check_open()
                slot.state = SlotState.FILLED
                slot.error = message
            raise StoreWriteFailed(message, slot_index=slot.index, question_id=old_question_id)

        saved = self._write(self._store.save_answer, new_question_id, track)
        if saved.success:
            with self._lock:
                self._check_open()
                slot.question_id = new_question_id
                slot.state = SlotState.FILLED
                self._recompute()
                logger.info(
                    "Moved track %s from question %s to %s", track.id, old_question_id, new_question_id
                )
                return replace(slot)

        message = saved.error or "Failed to save answer"
        logger.warning(
            "Saving under question %s failed (%s), restoring answer for %s",
            new_question_id, message, old_question_id,
        )
        restored = self._write(self._store.save_answer, old_question_id, track)
        with self._lock:
            self._check_open()
            if restored.success:
                slot.state = SlotState.FILLED
            else:
                # Nothing is stored for this slot any more; do not show a track.
                logger.error(
                    "Restoring answer for question %s failed: %s", old_question_id, restored.error
                )
                slot.track = None
                slot.state = SlotState.EMPTY
                message = f"{message}. The previous answer could not be restored; please select the track again."
            slot.error = message
            self._recompute()
        raise StoreWriteFailed(message, slot_index=slot.index, question_id=new_question_id)

    def _delete_answer(self, slot: Slot, fallback: str) -> None:
        with self._lock:
            prior_state = slot.state
            slot.state = SlotState.PENDING
            slot.error = None
        result = self._write(self._store.delete_answer, slot.question_id)
        if not result.success:
            message = result.error or fallback
            with self._lock:
                self._check_open()
                slot.state = prior_state
                slot.error = message
            raise StoreWriteFailed(message, slot_index=slot.index, question_id=slot.question_id)

    def _write(self, operation: Callable[..., StoreResult], *args) -> StoreResult:
        """Run a store write; exceptions from the store become a failed StoreResult."""
        try:
            result = operation(self.player_id, *args)
        except Exception as e:
            logger.exception("Answer store %s raised", getattr(operation, "__name__", "write"))
            return StoreResult(success=False, error=str(e) or type(e).__name__)
        if result is None:
            return StoreResult(success=False, error="Answer store returned no result")
        return result

    @contextmanager
    def _locked_slot(self, index: int) -> Iterator[Slot]:
        with self._lock:
            self._check_open()
            slot = self._locate(index)
            lock = self._slot_locks.setdefault(slot.key, threading.Lock())
        with lock:
            with self._lock:
                self._check_open()
                if not any(s is slot for s in self._slots):
                    raise SlotNotFound(f"Slot {index} was removed", slot_index=index)
            yield slot

    def _locate(self, index: int) -> Slot:
        if index < 0 or index >= len(self._slots):
            raise SlotNotFound(f"No slot at index {index}", slot_index=index)
        return self._slots[index]

    def _ensure_unassigned(self, question_id: str, slot: Slot) -> None:
        for other in self._slots:
            if other is not slot and other.question_id == question_id:
                raise DuplicateQuestion(
                    "This question is already answered in another slot. Choose a different question.",
                    slot_index=slot.index,
                    question_id=question_id,
                )
        holder = self._reserved.get(question_id)
        if holder is not None and holder != slot.key:
            raise DuplicateQuestion(
                "This question is being assigned to another slot. Choose a different question.",
                slot_index=slot.index,
                question_id=question_id,
            )

    def _check_open(self) -> None:
        if self._closed:
            raise SessionClosed("This answer session has ended")

    def _new_slot(self, index: int, permanent: bool = False, **fields) -> Slot:
        return Slot(index=index, permanent=permanent, key=next(self._keys), **fields)

    def _recompute(self) -> None:
        self.last_readiness = readiness(self._slots, self.minimum)

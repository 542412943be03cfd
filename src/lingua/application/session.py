"""
Practice session state machine.

A session walks a queue of practice items built by the queue builder. Every
transition replaces the immutable SessionState snapshot and notifies
subscribers. Answers are persisted through a CardRepository before the
session moves on; a failed save leaves the session where it was so the same
answer can be submitted again.
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from lingua.domain.constants import PERSIST_TIMEOUT
from lingua.domain.exercise import ExerciseType
from lingua.domain.models import Card, PracticeItem, utcnow
from lingua.domain.ports import CardRepository
from lingua.domain.preferences import ExercisePreferences

from .distractors import generate_options
from .queue_builder import build_practice_queue

logger = logging.getLogger(__name__)

SessionListener = Callable[["SessionState"], None]
SessionCompleteCallback = Callable[[int], Awaitable[None]]


class SessionStatus(str, Enum):
    EMPTY = "empty"  # nothing to practice
    ACTIVE = "active"
    COMPLETE = "complete"  # queue exhausted
    ENDED = "ended"  # stopped by the caller


class AnswerState(str, Enum):
    PENDING = "pending"  # waiting for the learner's answer
    ANSWERED = "answered"  # answer checked, waiting for confirmation


@dataclass(frozen=True)
class SessionState:
    """Snapshot of a practice session."""

    queue: tuple[PracticeItem, ...] = ()
    current_index: int = 0
    status: SessionStatus = SessionStatus.EMPTY
    answer_state: AnswerState = AnswerState.PENDING
    current_answer_correct: bool | None = None
    options: tuple[str, ...] | None = None
    user_input: str | None = None
    correct_count: int = 0
    incorrect_count: int = 0
    started_at: datetime | None = None
    last_error: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status is SessionStatus.ACTIVE

    @property
    def is_complete(self) -> bool:
        return self.status is SessionStatus.COMPLETE

    @property
    def current_item(self) -> PracticeItem | None:
        if self.is_active and self.current_index < len(self.queue):
            return self.queue[self.current_index]
        return None

    @property
    def current_card(self) -> Card | None:
        item = self.current_item
        return item.card if item else None

    @property
    def current_exercise_type(self) -> ExerciseType | None:
        item = self.current_item
        return item.exercise_type if item else None

    @property
    def can_advance(self) -> bool:
        return self.answer_state is AnswerState.ANSWERED

    @property
    def total_count(self) -> int:
        return len(self.queue)

    @property
    def remaining_count(self) -> int:
        if not self.queue:
            return 0
        return max(len(self.queue) - self.current_index - 1, 0)

    @property
    def total_reviewed(self) -> int:
        return self.correct_count + self.incorrect_count

    @property
    def progress(self) -> float:
        if self.is_complete:
            return 1.0
        if not self.queue:
            return 0.0
        return (self.current_index + 1) / len(self.queue)

    @property
    def accuracy(self) -> float:
        if self.total_reviewed == 0:
            return 0.0
        return self.correct_count / self.total_reviewed

    def duration(self, now: datetime | None = None) -> timedelta:
        if self.started_at is None:
            return timedelta(0)
        return (now or utcnow()) - self.started_at

    def stats(self) -> dict[str, Any]:
        return {
            "total_items": self.total_count,
            "completed": self.total_reviewed,
            "correct_count": self.correct_count,
            "incorrect_count": self.incorrect_count,
            "accuracy": self.accuracy,
            "duration_seconds": self.duration().total_seconds(),
        }


class PracticeSession:
    """
    Drives one learner's practice session.

    Async transitions (confirm, skip, remove) hold a per-session lock so they
    never interleave. Synchronous transitions bump a generation counter, which
    lets an in-flight save notice that the queue it was advancing is gone.
    """

    def __init__(
        self,
        repository: CardRepository,
        on_session_complete: SessionCompleteCallback | None = None,
        persist_timeout: float = PERSIST_TIMEOUT,
        rng: random.Random | None = None,
    ):
        """
        Args:
            repository: Port used to persist every answered or skipped card.
            on_session_complete: Awaited once with the number of reviewed items.
            persist_timeout: Seconds to wait for a save before giving up.
            rng: Random source for queue shuffling and option order.
        """
        self._repo = repository
        self._on_session_complete = on_session_complete
        self._persist_timeout = persist_timeout
        self._rng = rng or random.Random()

        self._state = SessionState()
        self._preferences = ExercisePreferences.defaults()
        self._pool: list[Card] = []
        self._session_cards: list[Card] = []
        self._listeners: list[SessionListener] = []
        self._lock = asyncio.Lock()
        self._generation = 0

    # === Observation ===

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def preferences(self) -> ExercisePreferences:
        return self._preferences

    @property
    def pool(self) -> list[Card]:
        return list(self._pool)

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register a listener called with every new state. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, state: SessionState) -> None:
        self._state = state
        for listener in list(self._listeners):
            listener(state)

    # === Session management ===

    def start_session(
        self,
        cards: Iterable[Card],
        preferences: ExercisePreferences | None = None,
        pool: Iterable[Card] | None = None,
        resume: bool = False,
    ) -> SessionState:
        """
        Build a queue from ``cards`` and make its first item current.

        Args:
            cards: Cards to practice, already filtered for due/archived/language.
            preferences: Exercise preferences; the previous ones are kept if None.
            pool: Full card pool for distractors and multiple-choice eligibility.
                Defaults to ``cards``.
            resume: Keep the start time and run counters of the previous run
                (continuous practice) instead of resetting them.
        """
        if preferences is not None:
            self._preferences = preferences

        cards = list(cards)
        self._session_cards = cards
        self._pool = list(pool) if pool is not None else list(cards)
        self._generation += 1

        queue = build_practice_queue(cards, self._preferences, len(self._pool), rng=self._rng)
        previous = self._state

        if not queue:
            logger.info("No practice items due; session not started")
            self._set_state(SessionState(status=SessionStatus.EMPTY))
            return self._state

        keep_run = resume and previous.started_at is not None
        state = SessionState(
            queue=tuple(queue),
            status=SessionStatus.ACTIVE,
            started_at=previous.started_at if keep_run else utcnow(),
            correct_count=previous.correct_count if keep_run else 0,
            incorrect_count=previous.incorrect_count if keep_run else 0,
        )
        logger.info(f"Practice session started with {len(queue)} items from {len(cards)} cards")
        self._set_state(self._prepared(state))
        return self._state

    def restart_session(self) -> SessionState:
        """
        Start again with the distinct cards of the current queue.

        Once the queue has been cleared (completed or ended), the cards of the
        last run are used. Either way each card is taken in its latest known
        version, so scores saved during the previous run carry over.
        """
        ids = [item.card.id for item in self._state.queue]
        if not ids:
            ids = [c.id for c in self._session_cards]
        latest = {c.id: c for c in self._session_cards}
        cards = [latest[card_id] for card_id in dict.fromkeys(ids) if card_id in latest]
        return self.start_session(cards, pool=self._pool)

    def end_session(self) -> SessionState:
        """Clear the queue. Safe to call repeatedly."""
        state = self._state
        if state.status is SessionStatus.ACTIVE:
            status = SessionStatus.ENDED
        else:
            status = state.status

        ended = replace(
            state,
            queue=(),
            current_index=0,
            status=status,
            answer_state=AnswerState.PENDING,
            current_answer_correct=None,
            options=None,
            user_input=None,
        )
        self._generation += 1
        if ended != state:
            self._set_state(ended)
        return self._state

    def update_preferences(
        self, preferences: ExercisePreferences, rebuild_queue: bool = True
    ) -> SessionState:
        """Apply new preferences, rebuilding the part of the queue not yet played."""
        self._preferences = preferences
        state = self._state
        if not (rebuild_queue and state.is_active):
            return state

        remaining = list(dict.fromkeys(item.card for item in state.queue[state.current_index :]))
        tail = build_practice_queue(remaining, preferences, len(self._pool), rng=self._rng)
        if not tail:
            return state

        self._generation += 1
        rebuilt = replace(
            state,
            queue=state.queue[: state.current_index] + tuple(tail),
            answer_state=AnswerState.PENDING,
            current_answer_correct=None,
        )
        self._set_state(self._prepared(rebuilt))
        return self._state

    # === Answer handling ===

    def update_user_input(self, text: str) -> None:
        if self._state.is_active:
            self._set_state(replace(self._state, user_input=text))

    def check_answer(self, is_correct: bool) -> None:
        """Record a tentative answer; only valid while the answer is pending."""
        state = self._state
        if not state.is_active or state.answer_state is not AnswerState.PENDING:
            logger.debug("check_answer ignored: no pending answer")
            return
        self._set_state(
            replace(state, answer_state=AnswerState.ANSWERED, current_answer_correct=is_correct)
        )

    def override_answer(self, is_correct: bool) -> None:
        """Let the learner overrule the automatic check before confirming."""
        state = self._state
        if not state.is_active or state.answer_state is not AnswerState.ANSWERED:
            logger.debug("override_answer ignored: nothing answered yet")
            return
        self._set_state(replace(state, current_answer_correct=is_correct))

    async def confirm_answer_and_advance(self, marked_correct: bool) -> bool:
        """
        Persist the result for the current item and move to the next one.

        Returns:
            False when there is no current item or the save failed; the session
            is left untouched apart from ``last_error`` in that case.
        """
        async with self._lock:
            item = self._state.current_item
            if item is None:
                return False
            return await self._record(item, marked_correct)

    async def skip_exercise(self) -> bool:
        """
        Skip the current item, recording it as incorrect.

        Not allowed once an answer has been checked; it must be confirmed instead.
        """
        async with self._lock:
            state = self._state
            if not state.is_active or state.answer_state is AnswerState.ANSWERED:
                return False
            item = state.current_item
            if item is None:
                return False
            return await self._record(item, False)

    # === External card changes ===

    async def remove_card_from_queue(self, card_id: str) -> None:
        """Drop every queue entry for a deleted card, keeping the current item stable."""
        async with self._lock:
            self._pool = [c for c in self._pool if c.id != card_id]
            self._session_cards = [c for c in self._session_cards if c.id != card_id]
            state = self._state
            if not state.is_active:
                return

            queue = tuple(item for item in state.queue if item.card.id != card_id)
            if len(queue) == len(state.queue):
                return

            current = state.current_item
            was_current = current is not None and current.card.id == card_id
            removed_before = sum(
                1 for item in state.queue[: state.current_index] if item.card.id == card_id
            )
            index = max(state.current_index - removed_before, 0)

            if not was_current:
                self._set_state(replace(state, queue=queue, current_index=index))
                return

            # The removed current item counts as a miss so run totals stay consistent.
            state = replace(
                state,
                queue=queue,
                current_index=index,
                answer_state=AnswerState.PENDING,
                current_answer_correct=None,
                user_input=None,
                incorrect_count=state.incorrect_count + 1,
            )
            if index >= len(queue):
                await self._finalize(state)
                return
            self._set_state(self._prepared(state))

    def update_card_in_queue(self, card: Card) -> None:
        """
        Swap in an externally edited card wherever it appears.

        May run while an answer for the same card is being saved; the answer
        is then re-applied to this version once the save returns.
        """
        self._store(card)
        state = self._state
        if not state.is_active or not any(item.card.id == card.id for item in state.queue):
            return

        updated = replace(state, queue=self._with_card(state.queue, card))
        if state.current_card is not None and state.current_card.id == card.id:
            updated = self._prepared(updated)
        self._set_state(updated)

    # === Internals ===

    def _prepared(self, state: SessionState) -> SessionState:
        """Regenerate options for the current item and clear stale input."""
        item = state.current_item
        options: tuple[str, ...] | None = None
        if item is not None and item.exercise_type.is_multiple_choice:
            generated = generate_options(item.card, self._pool, rng=self._rng)
            if generated is None:
                logger.warning(f"Could not build options for card {item.card.id}")
            else:
                options = tuple(generated)
        return replace(state, options=options, user_input=None)

    @staticmethod
    def _with_card(queue: tuple[PracticeItem, ...], card: Card) -> tuple[PracticeItem, ...]:
        return tuple(
            PracticeItem(card=card, exercise_type=item.exercise_type)
            if item.card.id == card.id
            else item
            for item in queue
        )

    async def _persist(self, card: Card) -> bool:
        try:
            await asyncio.wait_for(self._repo.save_card(card), timeout=self._persist_timeout)
        except asyncio.TimeoutError:
            message = f"Saving card {card.id} timed out after {self._persist_timeout}s"
            logger.warning(message)
            self._set_state(replace(self._state, last_error=message))
            return False
        except Exception as e:
            logger.warning(f"Saving card {card.id} failed: {e}")
            self._set_state(replace(self._state, last_error=str(e)))
            return False
        return True

    def _store(self, card: Card) -> None:
        self._pool = [card if c.id == card.id else c for c in self._pool]
        self._session_cards = [card if c.id == card.id else c for c in self._session_cards]

    def _latest(self, card_id: str) -> Card | None:
        for card in self._pool:
            if card.id == card_id:
                return card
        return None

    async def _record(self, item: PracticeItem, correct: bool) -> bool:
        """Persist one result, then advance. Caller holds the lock."""
        now = utcnow()
        updated = item.card.copy_with_exercise_result(item.exercise_type, correct, now)
        generation = self._generation
        if not await self._persist(updated):
            return False

        error = None
        latest = self._latest(item.card.id)
        if generation == self._generation and latest is not None and latest != item.card:
            # Edited while saving: keep the edit and record the answer on it.
            logger.debug(f"Card {latest.id} changed during save; re-applying result")
            updated = latest.copy_with_exercise_result(item.exercise_type, correct, now)
            if not await self._persist(updated):
                error = self._state.last_error

        await self._advance(updated, correct, generation)
        if error is not None:
            self._set_state(replace(self._state, last_error=error))
        return True

    async def _advance(self, updated: Card, correct: bool, generation: int) -> None:
        self._store(updated)
        state = self._state
        if generation != self._generation or not state.is_active:
            return

        state = replace(
            state,
            queue=self._with_card(state.queue, updated),
            correct_count=state.correct_count + (1 if correct else 0),
            incorrect_count=state.incorrect_count + (0 if correct else 1),
            answer_state=AnswerState.PENDING,
            current_answer_correct=None,
            last_error=None,
        )

        next_index = state.current_index + 1
        if next_index < len(state.queue):
            self._set_state(self._prepared(replace(state, current_index=next_index)))
        else:
            await self._finalize(state)

    async def _finalize(self, state: SessionState) -> None:
        completed = replace(state, status=SessionStatus.COMPLETE, options=None)
        self._set_state(completed)
        total = completed.total_reviewed
        logger.info(
            f"Practice session complete: {completed.correct_count}/{total} correct"
        )
        try:
            if self._on_session_complete is not None:
                await self._on_session_complete(total)
        except Exception:
            logger.error("Session complete callback failed", exc_info=True)
        finally:
            self.end_session()

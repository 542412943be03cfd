import asyncio
import random
from unittest.mock import AsyncMock, patch

import pytest

from lingua.application.session import (
    AnswerState,
    PracticeSession,
    SessionState,
    SessionStatus,
)
from lingua.domain.errors import PersistenceError
from lingua.domain.exercise import ExerciseType
from lingua.domain.models import ExerciseScore
from lingua.domain.preferences import ExercisePreferences
from lingua.infrastructure.adapters.memory_store import InMemoryCardRepository

READING = ExerciseType.READING_RECOGNITION
READING_ONLY = ExercisePreferences(enabled_types={READING})


@pytest.fixture
def cards(make_card):
    return [make_card(f"wort{i}", f"word{i}") for i in range(3)]


@pytest.fixture
def repo(cards):
    return InMemoryCardRepository(cards)


@pytest.fixture
def on_complete():
    return AsyncMock()


@pytest.fixture
def session(repo, on_complete):
    return PracticeSession(repo, on_session_complete=on_complete, rng=random.Random(0))


async def answer(session, correct=True):
    session.check_answer(correct)
    return await session.confirm_answer_and_advance(correct)


class TestStart:
    def test_start_makes_first_item_current(self, session, cards):
        state = session.start_session(cards, READING_ONLY)

        assert state.status is SessionStatus.ACTIVE
        assert state.current_index == 0
        assert state.current_card == cards[0]
        assert state.current_exercise_type is READING
        assert state.answer_state is AnswerState.PENDING
        assert state.total_count == 3
        assert state.remaining_count == 2
        assert state.started_at is not None

    def test_nothing_due_gives_empty_status(self, session):
        state = session.start_session([], READING_ONLY)
        assert state.status is SessionStatus.EMPTY
        assert state.current_item is None

    def test_small_pool_cannot_do_multiple_choice(self, session, cards):
        prefs = ExercisePreferences(enabled_types={ExerciseType.MULTIPLE_CHOICE_TEXT})
        state = session.start_session(cards[:2], prefs)
        assert state.status is SessionStatus.EMPTY

    def test_multiple_choice_options_prepared(self, session, make_card):
        pool = [make_card(back=b) for b in ("dog", "cat", "house", "tree")]
        prefs = ExercisePreferences(enabled_types={ExerciseType.MULTIPLE_CHOICE_TEXT})
        state = session.start_session(pool[:1], prefs, pool=pool)

        assert state.options is not None
        assert len(state.options) == 4
        assert "dog" in state.options

    def test_preferences_are_kept_between_runs(self, session, cards):
        session.start_session(cards, READING_ONLY)
        state = session.start_session(cards)
        assert session.preferences == READING_ONLY
        assert all(item.exercise_type is READING for item in state.queue)


class TestAnswering:
    def test_check_then_override(self, session, cards):
        session.start_session(cards, READING_ONLY)
        session.check_answer(False)
        assert session.state.can_advance
        assert session.state.current_answer_correct is False

        session.override_answer(True)
        assert session.state.current_answer_correct is True

    def test_second_check_is_ignored(self, session, cards):
        session.start_session(cards, READING_ONLY)
        session.check_answer(True)
        session.check_answer(False)
        assert session.state.current_answer_correct is True

    def test_override_before_check_is_ignored(self, session, cards):
        session.start_session(cards, READING_ONLY)
        session.override_answer(True)
        assert session.state.answer_state is AnswerState.PENDING

    def test_update_user_input(self, session, cards):
        session.start_session(cards, READING_ONLY)
        session.update_user_input("word0")
        assert session.state.user_input == "word0"

    @pytest.mark.asyncio
    async def test_confirm_persists_and_advances(self, session, repo, cards):
        session.start_session(cards, READING_ONLY)
        session.update_user_input("word0")

        assert await answer(session, True)

        state = session.state
        assert state.current_index == 1
        assert state.correct_count == 1
        assert state.user_input is None
        assert state.answer_state is AnswerState.PENDING
        stored = await repo.get_card(cards[0].id)
        assert stored.get_exercise_score(READING).current_chain == 1
        assert stored.review_count == 1

    @pytest.mark.asyncio
    async def test_pool_sees_updated_card(self, session, cards):
        session.start_session(cards, READING_ONLY)
        await answer(session, False)
        updated = next(c for c in session.pool if c.id == cards[0].id)
        assert updated.get_exercise_score(READING).incorrect_count == 1

    @pytest.mark.asyncio
    async def test_confirm_without_session_returns_false(self, session):
        assert await session.confirm_answer_and_advance(True) is False


class TestCompletion:
    @pytest.mark.asyncio
    async def test_finishing_the_queue(self, session, cards, on_complete):
        session.start_session(cards, READING_ONLY)
        for correct in (True, False, True):
            assert await answer(session, correct)

        state = session.state
        assert state.status is SessionStatus.COMPLETE
        assert state.queue == ()
        assert state.correct_count == 2
        assert state.incorrect_count == 1
        assert state.progress == 1.0
        on_complete.assert_awaited_once_with(3)

    @pytest.mark.asyncio
    async def test_failing_callback_still_ends_session(self, repo, cards):
        callback = AsyncMock(side_effect=RuntimeError("boom"))
        session = PracticeSession(repo, on_session_complete=callback)
        session.start_session(cards[:1], READING_ONLY)

        assert await answer(session, True)
        assert session.state.status is SessionStatus.COMPLETE
        assert session.state.queue == ()
        callback.assert_awaited_once_with(1)

    def test_end_session_is_idempotent(self, session, cards):
        states = []
        session.subscribe(states.append)
        session.start_session(cards, READING_ONLY)

        session.end_session()
        session.end_session()

        assert session.state.status is SessionStatus.ENDED
        assert session.state.queue == ()
        assert [s.status for s in states] == [SessionStatus.ACTIVE, SessionStatus.ENDED]

    @pytest.mark.asyncio
    async def test_end_keeps_run_counters(self, session, cards):
        session.start_session(cards, READING_ONLY)
        await answer(session, True)
        session.end_session()
        assert session.state.correct_count == 1
        assert session.state.stats()["completed"] == 1


class TestPersistenceFailures:
    @pytest.mark.asyncio
    async def test_save_error_does_not_advance(self, session, repo, cards):
        session.start_session(cards, READING_ONLY)
        session.check_answer(True)

        with patch.object(repo, "save_card", AsyncMock(side_effect=PersistenceError("disk full"))):
            assert await session.confirm_answer_and_advance(True) is False

        state = session.state
        assert state.current_index == 0
        assert state.correct_count == 0
        assert state.answer_state is AnswerState.ANSWERED
        assert state.last_error == "disk full"
        stored = await repo.get_card(cards[0].id)
        assert stored.get_exercise_score(READING).total_attempts == 0

        # Retrying after the store recovers succeeds and clears the error
        assert await session.confirm_answer_and_advance(True)
        assert session.state.current_index == 1
        assert session.state.last_error is None

    @pytest.mark.asyncio
    async def test_save_timeout(self, repo, cards):
        async def slow_save(card):
            await asyncio.sleep(1)

        session = PracticeSession(repo, persist_timeout=0.01)
        session.start_session(cards, READING_ONLY)
        session.check_answer(True)

        with patch.object(repo, "save_card", slow_save):
            assert await session.confirm_answer_and_advance(True) is False

        assert "timed out" in session.state.last_error
        assert session.state.current_index == 0

    @pytest.mark.asyncio
    async def test_session_ended_during_save_is_not_resurrected(self, session, repo, cards):
        release = asyncio.Event()
        original_save = repo.save_card

        async def gated_save(card):
            await release.wait()
            await original_save(card)

        session.start_session(cards, READING_ONLY)
        session.check_answer(True)

        with patch.object(repo, "save_card", gated_save):
            task = asyncio.create_task(session.confirm_answer_and_advance(True))
            await asyncio.sleep(0)
            session.end_session()
            release.set()
            await task

        assert session.state.status is SessionStatus.ENDED
        assert session.state.correct_count == 0
        assert session.state.queue == ()


class TestSkip:
    @pytest.mark.asyncio
    async def test_skip_counts_as_incorrect(self, session, repo, cards):
        session.start_session(cards, READING_ONLY)
        assert await session.skip_exercise()

        assert session.state.current_index == 1
        assert session.state.incorrect_count == 1
        stored = await repo.get_card(cards[0].id)
        assert stored.get_exercise_score(READING).incorrect_count == 1

    @pytest.mark.asyncio
    async def test_skip_not_allowed_after_check(self, session, cards):
        session.start_session(cards, READING_ONLY)
        session.check_answer(True)
        assert await session.skip_exercise() is False
        assert session.state.current_index == 0


class TestExternalChanges:
    @pytest.mark.asyncio
    async def test_removing_only_card_finishes_session(self, make_card, on_complete):
        card = make_card()
        session = PracticeSession(InMemoryCardRepository([card]), on_session_complete=on_complete)
        session.start_session([card], READING_ONLY)

        await session.remove_card_from_queue(card.id)

        assert session.state.status is SessionStatus.COMPLETE
        assert session.state.incorrect_count == 1
        on_complete.assert_awaited_once_with(1)

    @pytest.mark.asyncio
    async def test_removing_current_card_moves_to_next(self, session, cards):
        session.start_session(cards, READING_ONLY)
        await session.remove_card_from_queue(cards[0].id)

        state = session.state
        assert state.current_index == 0
        assert state.current_card == cards[1]
        assert state.total_count == 2
        assert state.incorrect_count == 1
        assert all(c.id != cards[0].id for c in session.pool)

    @pytest.mark.asyncio
    async def test_removing_answered_card_shifts_index(self, session, cards):
        session.start_session(cards, READING_ONLY)
        await answer(session, True)
        assert session.state.current_card == cards[1]

        await session.remove_card_from_queue(cards[0].id)

        state = session.state
        assert state.current_index == 0
        assert state.current_card == cards[1]
        assert state.incorrect_count == 0

    @pytest.mark.asyncio
    async def test_removing_unknown_card_changes_nothing(self, session, cards):
        session.start_session(cards, READING_ONLY)
        before = session.state
        await session.remove_card_from_queue("card_missing")
        assert session.state is before

    def test_update_card_in_queue(self, session, cards):
        session.start_session(cards, READING_ONLY)
        edited = cards[1].with_changes(back_text="edited")

        session.update_card_in_queue(edited)

        assert session.state.queue[1].card.back_text == "edited"
        assert next(c for c in session.pool if c.id == edited.id).back_text == "edited"

    @pytest.mark.asyncio
    async def test_edit_during_save_keeps_edit_and_answer(self, session, repo, cards):
        release = asyncio.Event()
        original_save = repo.save_card

        async def gated_save(card):
            await release.wait()
            await original_save(card)

        session.start_session(cards, READING_ONLY)
        session.check_answer(True)
        edited = cards[0].with_changes(back_text="EDITED")

        with patch.object(repo, "save_card", gated_save):
            task = asyncio.create_task(session.confirm_answer_and_advance(True))
            await asyncio.sleep(0)
            session.update_card_in_queue(edited)
            release.set()
            assert await task

        pooled = next(c for c in session.pool if c.id == edited.id)
        assert pooled.back_text == "EDITED"
        assert pooled.get_exercise_score(READING).current_chain == 1
        assert session.state.queue[0].card == pooled
        stored = await repo.get_card(edited.id)
        assert stored.back_text == "EDITED"
        assert stored.get_exercise_score(READING).current_chain == 1
        assert session.state.last_error is None


class TestRestartAndResume:
    @pytest.mark.asyncio
    async def test_restart_uses_queue_cards(self, session, cards):
        session.start_session(cards, READING_ONLY)
        await answer(session, True)

        state = session.restart_session()

        assert state.current_index == 0
        assert state.correct_count == 0
        assert {i.card.id for i in state.queue} == {c.id for c in cards}

    @pytest.mark.asyncio
    async def test_restart_after_completion_keeps_saved_scores(self, session, repo, cards):
        session.start_session(cards[:1], READING_ONLY)
        await answer(session, True)
        assert session.state.queue == ()

        state = session.restart_session()

        assert state.status is SessionStatus.ACTIVE
        assert state.current_card.get_exercise_score(READING).correct_count == 1
        await answer(session, True)
        stored = await repo.get_card(cards[0].id)
        assert stored.get_exercise_score(READING).correct_count == 2
        assert stored.review_count == 2

    @pytest.mark.asyncio
    async def test_restart_after_end_uses_latest_cards(self, session, cards):
        session.start_session(cards, READING_ONLY)
        await answer(session, False)
        session.end_session()

        state = session.restart_session()

        assert state.total_count == 3
        restarted = next(i.card for i in state.queue if i.card.id == cards[0].id)
        assert restarted.get_exercise_score(READING).incorrect_count == 1

    @pytest.mark.asyncio
    async def test_deleted_card_stays_out_after_restart(self, session, repo, cards):
        session.start_session(cards[:2], READING_ONLY)
        await repo.delete_card(cards[1].id)
        await session.remove_card_from_queue(cards[1].id)
        session.end_session()

        state = session.restart_session()

        assert [i.card.id for i in state.queue] == [cards[0].id]
        await answer(session, True)
        assert [c.id for c in await repo.list_cards()] == [cards[0].id, cards[2].id]

    @pytest.mark.asyncio
    async def test_resume_keeps_counters(self, session, cards):
        session.start_session(cards[:1], READING_ONLY)
        await answer(session, True)
        started_at = session.state.started_at

        state = session.start_session(cards[1:], resume=True)

        assert state.correct_count == 1
        assert state.started_at == started_at
        assert state.total_reviewed == 1

    def test_update_preferences_rebuilds_tail(self, session, cards):
        session.start_session(cards, READING_ONLY)
        writing_only = ExercisePreferences(enabled_types={ExerciseType.WRITING_TRANSLATION})

        state = session.update_preferences(writing_only)

        assert state.total_count == 3
        assert all(i.exercise_type is ExerciseType.WRITING_TRANSLATION for i in state.queue)

    def test_update_preferences_without_rebuild(self, session, cards):
        session.start_session(cards, READING_ONLY)
        before = session.state
        session.update_preferences(ExercisePreferences.defaults(), rebuild_queue=False)
        assert session.state is before
        assert session.preferences == ExercisePreferences.defaults()


def test_subscribe_and_unsubscribe(session, cards):
    seen = []
    unsubscribe = session.subscribe(seen.append)
    session.start_session(cards, READING_ONLY)
    unsubscribe()
    session.check_answer(True)
    assert len(seen) == 1


def test_state_metrics():
    state = SessionState(correct_count=3, incorrect_count=1)
    assert state.accuracy == 0.75
    assert state.total_reviewed == 4
    assert state.progress == 0.0
    assert SessionState().accuracy == 0.0


def test_mastered_score_stays_in_queue_when_due(session, make_card):
    card = make_card(
        scores={READING: ExerciseScore(exercise_type=READING, correct_count=6, current_chain=6)}
    )
    state = session.start_session([card], READING_ONLY)
    assert state.current_card == card

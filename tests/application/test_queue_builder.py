import random
from datetime import timedelta

import pytest

from lingua.application.queue_builder import (
    build_practice_queue,
    candidate_exercise_types,
    filter_for_practice,
    has_enough_for_multiple_choice,
    weakness_rank,
)
from lingua.domain.exercise import ExerciseType
from lingua.domain.models import ExerciseScore
from lingua.domain.preferences import ExercisePreferences

READING = ExerciseType.READING_RECOGNITION
WRITING = ExerciseType.WRITING_TRANSLATION


def only(*types, prioritize=True):
    return ExercisePreferences(enabled_types=set(types), prioritize_weaknesses=prioritize)


def practiced(exercise_type, correct, incorrect, next_review=None):
    return ExerciseScore(
        exercise_type=exercise_type,
        correct_count=correct,
        incorrect_count=incorrect,
        next_review=next_review,
    )


class TestBuildPracticeQueue:
    def test_one_item_per_fresh_card(self, make_card, now):
        cards = [make_card() for _ in range(4)]
        queue = build_practice_queue(cards, only(READING), pool_size=4, now=now)

        assert len(queue) == 4
        assert all(item.exercise_type is READING for item in queue)
        assert [item.card for item in queue] == cards

    def test_card_without_examples_gets_no_sentence_building(self, make_card, now):
        card = make_card()
        queue = build_practice_queue(
            [card], only(ExerciseType.SENTENCE_BUILDING), pool_size=1, now=now
        )
        assert queue == []

    def test_multiple_choice_needs_four_cards(self, make_card, now):
        cards = [make_card(), make_card()]
        queue = build_practice_queue(
            cards, only(ExerciseType.MULTIPLE_CHOICE_TEXT), pool_size=2, now=now
        )
        assert queue == []

    def test_multiple_choice_with_enough_cards(self, make_card, now):
        cards = [make_card(), make_card()]
        queue = build_practice_queue(
            cards, only(ExerciseType.MULTIPLE_CHOICE_TEXT), pool_size=4, now=now
        )
        assert len(queue) == 2

    def test_weakest_type_first(self, make_card, now):
        weak = make_card(
            scores={
                READING: practiced(READING, 4, 1),
                WRITING: practiced(WRITING, 1, 3),
            }
        )
        strong = make_card(
            scores={
                READING: practiced(READING, 9, 1),
                WRITING: practiced(WRITING, 8, 2),
            }
        )
        queue = build_practice_queue([strong, weak], only(READING, WRITING), 2, now=now)

        assert [(i.card, i.exercise_type) for i in queue] == [(weak, WRITING), (strong, WRITING)]

    def test_untried_types_come_first(self, make_card, now):
        tried = make_card(scores={READING: practiced(READING, 0, 5)})
        fresh = make_card(scores={READING: ExerciseScore(exercise_type=READING)})
        queue = build_practice_queue([tried, fresh], only(READING), 2, now=now)
        assert [i.card for i in queue] == [fresh, tried]

    def test_ordering_uses_each_items_own_card(self, make_card, now):
        cards = [
            make_card(scores={READING: practiced(READING, c, 10 - c)}) for c in (9, 2, 6, 4)
        ]
        queue = build_practice_queue(cards, only(READING), 4, now=now)
        rates = [i.card.get_exercise_score(READING).success_rate for i in queue]
        assert rates == sorted(rates)

    def test_shuffle_mode_emits_every_due_type(self, make_card, now):
        card = make_card()
        prefs = ExercisePreferences.defaults().with_changes(prioritize_weaknesses=False)
        queue = build_practice_queue([card], prefs, pool_size=4, rng=random.Random(7), now=now)
        assert {i.exercise_type for i in queue} == set(ExerciseType.core())

    def test_shuffle_mode_is_seeded(self, make_card, now):
        cards = [make_card() for _ in range(5)]
        prefs = only(READING, WRITING, prioritize=False)
        first = build_practice_queue(cards, prefs, 5, rng=random.Random(3), now=now)
        second = build_practice_queue(cards, prefs, 5, rng=random.Random(3), now=now)
        assert [i.key for i in first] == [i.key for i in second]

    def test_falls_back_to_eligible_when_nothing_due(self, make_card, now):
        later = now + timedelta(days=3)
        card = make_card(
            examples=["Ich lerne Deutsch."],
            scores={READING: practiced(READING, 2, 0, next_review=later)},
        )
        prefs = only(READING, ExerciseType.SENTENCE_BUILDING)
        assert candidate_exercise_types(card, prefs, False, now) == [
            READING,
            ExerciseType.SENTENCE_BUILDING,
        ]

    @pytest.mark.parametrize("prioritize", [True, False])
    def test_items_are_enabled_and_usable(self, make_card, now, prioritize):
        cards = [make_card(), make_card(examples=["Das ist gut."]), make_card("die Katze")]
        prefs = ExercisePreferences.defaults().enable_all()
        prefs = prefs.with_changes(prioritize_weaknesses=prioritize)
        queue = build_practice_queue(cards, prefs, pool_size=3, now=now)

        assert queue
        for item in queue:
            assert prefs.is_enabled(item.exercise_type)
            assert item.card.can_use(item.exercise_type, has_enough_cards=False)


def test_weakness_rank(make_card):
    card = make_card(scores={READING: practiced(READING, 3, 1)})
    assert weakness_rank(card, READING) == 75.0
    assert weakness_rank(card, WRITING) == -1.0


def test_has_enough_for_multiple_choice(make_card):
    assert not has_enough_for_multiple_choice([make_card() for _ in range(3)])
    assert has_enough_for_multiple_choice([make_card() for _ in range(4)])


def test_filter_for_practice(make_card, now):
    later = now + timedelta(days=5)
    due = make_card()
    other_language = make_card(language="fr")
    archived = make_card().with_changes(is_archived=True)
    not_due = make_card(scores={READING: practiced(READING, 1, 0, next_review=later)})

    result = filter_for_practice(
        [due, other_language, archived, not_due], only(READING), language="de", now=now
    )
    assert result == [due]

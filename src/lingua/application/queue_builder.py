"""
Queue builder for practice sessions.

Builds ordered practice queues by:
1. Collecting, per card, the exercise types that are implemented, enabled and usable
2. Narrowing to the types that are due (falling back to all usable ones)
3. Ordering weakest-first, or shuffling when weaknesses are not prioritized
"""

import logging
import random
from collections.abc import Iterable, Sequence
from datetime import datetime

from lingua.domain.constants import MIN_CARDS_FOR_MULTIPLE_CHOICE, UNTRIED_RANK
from lingua.domain.exercise import ExerciseType
from lingua.domain.models import Card, PracticeItem, utcnow
from lingua.domain.preferences import ExercisePreferences

logger = logging.getLogger(__name__)


def has_enough_for_multiple_choice(cards: Sequence[Card]) -> bool:
    """At least one correct answer plus three distractors."""
    return len(cards) >= MIN_CARDS_FOR_MULTIPLE_CHOICE


def filter_for_practice(
    cards: Iterable[Card],
    preferences: ExercisePreferences,
    language: str | None = None,
    now: datetime | None = None,
) -> list[Card]:
    """
    Select the cards a practice session should draw from.

    Drops archived cards, cards in another language (when ``language`` is
    set) and cards with no enabled exercise due.
    """
    now = now or utcnow()
    return [
        c
        for c in cards
        if not c.is_archived
        and (not language or c.language == language)
        and c.is_due_for_any_exercise(preferences, now)
    ]


def weakness_rank(card: Card, exercise_type: ExerciseType) -> float:
    """
    Rank used to order exercise types, lower is weaker.

    Untried types (no score, or a score without attempts) rank below every
    practiced type; practiced types rank by success rate.
    """
    score = card.get_exercise_score(exercise_type)
    if score is None or score.total_attempts == 0:
        return UNTRIED_RANK
    return score.success_rate


def eligible_exercise_types(
    card: Card,
    preferences: ExercisePreferences,
    has_enough_cards: bool,
) -> list[ExerciseType]:
    return [
        t
        for t in ExerciseType
        if t.is_implemented
        and preferences.is_enabled(t)
        and card.can_use(t, has_enough_cards=has_enough_cards)
    ]


def candidate_exercise_types(
    card: Card,
    preferences: ExercisePreferences,
    has_enough_cards: bool,
    now: datetime | None = None,
) -> list[ExerciseType]:
    """
    Exercise types a card should be drilled on in this session.

    Due types win; a card with nothing due (for instance a card whose
    enabled types have never been scored) still gets every usable type.
    """
    eligible = eligible_exercise_types(card, preferences, has_enough_cards)
    due = set(card.due_exercise_types(now))
    due_eligible = [t for t in eligible if t in due]
    return due_eligible or eligible


def build_practice_queue(
    cards: Iterable[Card],
    preferences: ExercisePreferences,
    pool_size: int,
    rng: random.Random | None = None,
    now: datetime | None = None,
) -> list[PracticeItem]:
    """
    Build a practice queue of (card, exercise type) items.

    Args:
        cards: Candidate cards, already filtered for archive/language/due status.
        preferences: Active exercise preferences.
        pool_size: Size of the full card pool, used for multiple-choice eligibility.
        rng: Random source for shuffling (defaults to the module RNG).
        now: Reference time for due checks.

    Returns:
        Ordered list of PracticeItem. Cards with no usable type contribute nothing.
    """
    rng = rng or random.Random()
    now = now or utcnow()
    has_enough_cards = pool_size >= MIN_CARDS_FOR_MULTIPLE_CHOICE

    queue: list[PracticeItem] = []
    skipped = 0

    for card in cards:
        candidates = candidate_exercise_types(card, preferences, has_enough_cards, now)
        if not candidates:
            skipped += 1
            continue

        if preferences.prioritize_weaknesses:
            # min() keeps the first of equally weak types
            weakest = min(candidates, key=lambda t, c=card: weakness_rank(c, t))
            queue.append(PracticeItem(card=card, exercise_type=weakest))
        else:
            queue.extend(PracticeItem(card=card, exercise_type=t) for t in candidates)

    if preferences.prioritize_weaknesses:
        queue.sort(key=lambda item: weakness_rank(item.card, item.exercise_type))
    else:
        rng.shuffle(queue)

    logger.debug(f"Built practice queue: {len(queue)} items ({skipped} cards without usable types)")
    return queue

"""
Mastery statistics across a deck.

This is a pure computation module with no I/O.
"""

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from lingua.domain.constants import LEGACY_MIN_REVIEWS, MASTERY_CHAIN
from lingua.domain.exercise import ExerciseType
from lingua.domain.models import Card, utcnow

MASTERY_LEVELS = ("New", "Difficult", "Learning", "Good", "Mastered")

# Minimum attempts across all exercise types before a card gets a rate-based level
OVERALL_MIN_ATTEMPTS = 5


def _level_from_rate(rate: float) -> str:
    if rate >= 90:
        return "Mastered"
    if rate >= 70:
        return "Good"
    if rate >= 50:
        return "Learning"
    return "Difficult"


@dataclass
class ExerciseTypeStats:
    """Aggregate performance of one exercise type over many cards."""

    exercise_type: ExerciseType
    cards: int = 0  # cards with a score for this type
    attempts: int = 0
    correct: int = 0
    mastered: int = 0  # scores with a chain of MASTERY_CHAIN or more
    due: int = 0

    @property
    def success_rate(self) -> float | None:
        if self.attempts == 0:
            return None
        return self.correct / self.attempts * 100


@dataclass
class MasterySummary:
    total_cards: int
    archived_cards: int
    due_cards: int
    exercise_levels: dict[str, int] = field(default_factory=dict)  # per (card, type) score
    card_levels: dict[str, int] = field(default_factory=dict)  # per card, overall
    by_type: list[ExerciseTypeStats] = field(default_factory=list)


class MasteryCalculator:
    """
    Derives mastery labels and deck-wide aggregates from cards.

    Stateless and side-effect free.
    """

    def legacy_mastery_level(self, card: Card) -> str:
        """Card-level label from the legacy review counters."""
        if card.review_count < LEGACY_MIN_REVIEWS:
            return "New"
        return _level_from_rate(card.success_rate)

    def overall_mastery_level(self, card: Card) -> str:
        """Card-level label pooled over every exercise score."""
        scores = list(card.exercise_scores.values())
        if not scores:
            return self.legacy_mastery_level(card)

        attempts = sum(s.total_attempts for s in scores)
        if attempts < OVERALL_MIN_ATTEMPTS:
            return "New"
        correct = sum(s.correct_count for s in scores)
        return _level_from_rate(correct / attempts * 100)

    def exercise_type_breakdown(
        self, cards: Iterable[Card], now: datetime | None = None
    ) -> list[ExerciseTypeStats]:
        """Per-type aggregates, in exercise type declaration order, for types seen on any card."""
        now = now or utcnow()
        by_type: dict[ExerciseType, ExerciseTypeStats] = {}

        for card in cards:
            for exercise_type, score in card.exercise_scores.items():
                stats = by_type.setdefault(exercise_type, ExerciseTypeStats(exercise_type))
                stats.cards += 1
                stats.attempts += score.total_attempts
                stats.correct += score.correct_count
                if score.current_chain >= MASTERY_CHAIN:
                    stats.mastered += 1
                if score.is_due_for_review(now):
                    stats.due += 1

        return [by_type[t] for t in ExerciseType if t in by_type]

    def summarize(self, cards: Iterable[Card], now: datetime | None = None) -> MasterySummary:
        now = now or utcnow()
        cards = list(cards)
        active = [c for c in cards if not c.is_archived]

        exercise_levels: Counter[str] = Counter()
        for card in active:
            exercise_levels.update(s.mastery_level for s in card.exercise_scores.values())
        card_levels = Counter(self.overall_mastery_level(c) for c in active)

        return MasterySummary(
            total_cards=len(cards),
            archived_cards=len(cards) - len(active),
            due_cards=sum(
                1
                for c in active
                if any(s.is_due_for_review(now) for s in c.exercise_scores.values())
            ),
            exercise_levels={level: exercise_levels.get(level, 0) for level in MASTERY_LEVELS},
            card_levels={level: card_levels.get(level, 0) for level in MASTERY_LEVELS},
            by_type=self.exercise_type_breakdown(active, now),
        )

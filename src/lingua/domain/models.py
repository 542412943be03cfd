"""
Domain models for cards and per-exercise mastery.

These are pure data structures with no I/O. Every update returns a new value;
nothing is mutated in place.
"""

import re
import unicodedata
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any

from ulid import ULID

from .constants import (
    BASE_INTERVAL_DAYS,
    CHAIN_INTERVAL_FACTOR,
    GERMAN_ARTICLES,
    GOOD_CHAIN,
    INCORRECT_INTERVAL_DAYS,
    LEARNING_CHAIN,
    MASTERY_CHAIN,
    MAX_DIFFICULTY,
    MIN_DIFFICULTY,
)
from .errors import ValidationError
from .exercise import ExerciseType
from .word_data import WordData, has_conjugation_data, word_data_from_dict, word_data_to_dict


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_card_id() -> str:
    """Generate a stable card ID using ULID."""
    return f"card_{ULID()}"


def normalize_tag(tag: str) -> str:
    tag = unicodedata.normalize("NFKC", tag).strip().lower()
    return re.sub(r"\s+", "-", tag)


def normalize_tags(tags: Iterable[str]) -> frozenset[str]:
    return frozenset(t for t in (normalize_tag(raw) for raw in tags) if t)


def _parse_dt(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    parsed = value if isinstance(value, datetime) else datetime.fromisoformat(str(value))
    # Naive timestamps are stored as UTC
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _format_dt(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class IconRef:
    """Reference to an icon from an external icon set (e.g. ``mdi:apple``)."""

    id: str
    name: str
    set_name: str = ""
    svg_url: str | None = None


@dataclass(frozen=True)
class ExerciseScore:
    """
    Performance statistics for one exercise type on one card.

    Attributes:
        exercise_type: The exercise type this score tracks.
        correct_count: Number of correct answers.
        incorrect_count: Number of incorrect answers.
        current_chain: Consecutive correct answers, never below 0.
        best_chain: Longest chain ever reached, no upper limit.
        last_practiced: When this exercise was last answered.
        next_review: When this exercise is next due (None = due now).
    """

    exercise_type: ExerciseType
    correct_count: int = 0
    incorrect_count: int = 0
    current_chain: int = 0
    best_chain: int = 0
    last_practiced: datetime | None = None
    next_review: datetime | None = None

    def __post_init__(self):
        if self.current_chain < 0:
            object.__setattr__(self, "current_chain", 0)
        if self.best_chain < self.current_chain:
            object.__setattr__(self, "best_chain", self.current_chain)

    @classmethod
    def initial(cls, exercise_type: ExerciseType) -> "ExerciseScore":
        return cls(exercise_type=exercise_type)

    @property
    def total_attempts(self) -> int:
        return self.correct_count + self.incorrect_count

    @property
    def success_rate(self) -> float:
        """Success rate as a percentage (0-100)."""
        if self.total_attempts == 0:
            return 0.0
        return self.correct_count / self.total_attempts * 100

    def is_due_for_review(self, now: datetime | None = None) -> bool:
        if self.next_review is None:
            return True
        return (now or utcnow()) > self.next_review

    @property
    def mastery_level(self) -> str:
        # Chain-based: 5+ correct in a row is mastered, even after earlier misses.
        if self.current_chain >= MASTERY_CHAIN:
            return "Mastered"
        if self.total_attempts == 0:
            return "New"
        if self.current_chain >= GOOD_CHAIN:
            return "Good"
        if self.current_chain >= LEARNING_CHAIN:
            return "Learning"
        return "Difficult"

    @property
    def mastery_progress(self) -> float:
        return min(max(self.current_chain / MASTERY_CHAIN, 0.0), 1.0)

    @property
    def answers_to_mastery(self) -> int:
        return min(max(MASTERY_CHAIN - self.current_chain, 0), MASTERY_CHAIN)

    @property
    def net_score(self) -> int:
        return self.correct_count - self.incorrect_count

    def record_correct(self, now: datetime | None = None) -> "ExerciseScore":
        """Record a correct answer; the review interval grows with the chain."""
        now = now or utcnow()
        chain = self.current_chain + 1
        interval_days = round(BASE_INTERVAL_DAYS * (1 + chain * CHAIN_INTERVAL_FACTOR))
        return replace(
            self,
            correct_count=self.correct_count + 1,
            current_chain=chain,
            best_chain=max(self.best_chain, chain),
            last_practiced=now,
            next_review=now + timedelta(days=interval_days),
        )

    def record_incorrect(self, now: datetime | None = None) -> "ExerciseScore":
        """Record an incorrect answer; the chain drops by one and review is due tomorrow."""
        now = now or utcnow()
        return replace(
            self,
            incorrect_count=self.incorrect_count + 1,
            current_chain=max(self.current_chain - 1, 0),
            last_practiced=now,
            next_review=now + timedelta(days=INCORRECT_INTERVAL_DAYS),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "exercise_type": self.exercise_type.value,
            "correct_count": self.correct_count,
            "incorrect_count": self.incorrect_count,
            "current_chain": self.current_chain,
            "best_chain": self.best_chain,
            "last_practiced": _format_dt(self.last_practiced),
            "next_review": _format_dt(self.next_review),
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "ExerciseScore":
        return cls(
            exercise_type=ExerciseType(raw["exercise_type"]),
            correct_count=int(raw.get("correct_count", 0)),
            incorrect_count=int(raw.get("incorrect_count", 0)),
            current_chain=int(raw.get("current_chain", 0)),
            best_chain=int(raw.get("best_chain", 0)),
            last_practiced=_parse_dt(raw.get("last_practiced")),
            next_review=_parse_dt(raw.get("next_review")),
        )


@dataclass(frozen=True, eq=False)
class Card:
    """
    A language learning flashcard.

    Two cards are equal when their ids match, regardless of content.
    """

    id: str
    front_text: str
    back_text: str
    language: str
    created_at: datetime
    updated_at: datetime
    category: str = ""
    icon: IconRef | None = None
    tags: frozenset[str] = frozenset()
    difficulty: int = 1
    notes: str | None = None
    examples: tuple[str, ...] = ()
    word_data: WordData | None = None
    german_article: str | None = None
    is_favorite: bool = False
    is_archived: bool = False
    exercise_scores: dict[ExerciseType, ExerciseScore] = field(default_factory=dict)

    # Legacy aggregate counters, kept for older clients
    review_count: int = 0
    correct_count: int = 0
    last_reviewed: datetime | None = None
    next_review: datetime | None = None

    def __post_init__(self):
        object.__setattr__(self, "tags", normalize_tags(self.tags))
        object.__setattr__(
            self, "examples", tuple(e.strip() for e in self.examples if e and e.strip())
        )

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Card) and other.id == self.id

    def __hash__(self) -> int:
        return hash(self.id)

    @classmethod
    def create(
        cls,
        front_text: str,
        back_text: str,
        language: str,
        category: str = "",
        icon: IconRef | None = None,
        tags: Iterable[str] = (),
        difficulty: int = 1,
        notes: str | None = None,
        examples: Iterable[str] = (),
        word_data: WordData | None = None,
        german_article: str | None = None,
        now: datetime | None = None,
    ) -> "Card":
        """
        Create a new card with a generated id and a zero score for every core exercise type.

        Raises:
            ValidationError: if front/back text is blank or difficulty is out of range.
        """
        if not front_text.strip() or not back_text.strip():
            raise ValidationError("Front and back text must not be empty")
        if not MIN_DIFFICULTY <= difficulty <= MAX_DIFFICULTY:
            raise ValidationError(
                f"Difficulty must be between {MIN_DIFFICULTY} and {MAX_DIFFICULTY}"
            )

        now = now or utcnow()
        return cls(
            id=generate_card_id(),
            front_text=front_text.strip(),
            back_text=back_text.strip(),
            language=language,
            category=category,
            icon=icon,
            tags=frozenset(tags),
            difficulty=difficulty,
            notes=notes,
            examples=tuple(examples),
            word_data=word_data,
            german_article=german_article,
            created_at=now,
            updated_at=now,
            exercise_scores={t: ExerciseScore.initial(t) for t in ExerciseType.core()},
        )

    # ----- legacy card-level metrics -----

    @property
    def success_rate(self) -> float:
        if self.review_count == 0:
            return 0.0
        return self.correct_count / self.review_count * 100

    def is_due_for_review(self, now: datetime | None = None) -> bool:
        if self.next_review is None:
            return True
        return (now or utcnow()) > self.next_review

    # ----- per-exercise scores -----

    def get_exercise_score(self, exercise_type: ExerciseType) -> ExerciseScore | None:
        return self.exercise_scores.get(exercise_type)

    def is_exercise_due(self, exercise_type: ExerciseType, now: datetime | None = None) -> bool:
        """Whether a type is due; a type never attempted is always due."""
        score = self.exercise_scores.get(exercise_type)
        return score is None or score.is_due_for_review(now)

    def due_exercise_types(self, now: datetime | None = None) -> list[ExerciseType]:
        """Exercise types present in the score map that are due for review."""
        now = now or utcnow()
        return [t for t, s in self.exercise_scores.items() if s.is_due_for_review(now)]

    def is_due_for_any_exercise(self, preferences, now: datetime | None = None) -> bool:
        now = now or utcnow()
        return any(
            self.is_exercise_due(t, now)
            for t in ExerciseType
            if t.is_implemented and preferences.is_enabled(t)
        )

    @property
    def article(self) -> str | None:
        """The stored article, else one read off the front text ("der Hund")."""
        if self.german_article and self.german_article.strip():
            return self.german_article.strip().lower()
        front = self.front_text.lower()
        for article in GERMAN_ARTICLES:
            if front.startswith(f"{article} "):
                return article
        return None

    def has_article(self) -> bool:
        return self.article is not None

    def can_use(self, exercise_type: ExerciseType, has_enough_cards: bool = False) -> bool:
        """
        Whether an exercise type is applicable to this card.

        Args:
            exercise_type: The type to check.
            has_enough_cards: Whether the pool holds enough cards for distractors.
        """
        if not exercise_type.is_implemented:
            return False

        match exercise_type:
            case ExerciseType.MULTIPLE_CHOICE_ICON:
                return self.icon is not None and has_enough_cards
            case ExerciseType.MULTIPLE_CHOICE_TEXT:
                return has_enough_cards
            case ExerciseType.SENTENCE_BUILDING:
                return len(self.examples) > 0
            case ExerciseType.CONJUGATION_PRACTICE:
                return has_conjugation_data(self.word_data)
            case ExerciseType.ARTICLE_SELECTION:
                return self.has_article()
            case _:
                return True

    # ----- updates -----

    def with_changes(self, now: datetime | None = None, **changes: Any) -> "Card":
        """Return a copy with updated content fields and a refreshed updated_at."""
        if "id" in changes or "created_at" in changes:
            raise ValidationError("id and created_at are immutable")
        return replace(self, updated_at=now or utcnow(), **changes)

    def copy_with_exercise_result(
        self,
        exercise_type: ExerciseType,
        was_correct: bool,
        now: datetime | None = None,
    ) -> "Card":
        """Return a copy with the answer recorded for one exercise type."""
        now = now or utcnow()
        current = self.exercise_scores.get(exercise_type) or ExerciseScore.initial(exercise_type)
        updated = current.record_correct(now) if was_correct else current.record_incorrect(now)

        scores = dict(self.exercise_scores)
        scores[exercise_type] = updated

        return replace(
            self,
            exercise_scores=scores,
            review_count=self.review_count + 1,
            correct_count=self.correct_count + (1 if was_correct else 0),
            last_reviewed=now,
            updated_at=now,
        )

    # ----- serialization -----

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "front_text": self.front_text,
            "back_text": self.back_text,
            "language": self.language,
            "category": self.category,
            "icon": (
                {
                    "id": self.icon.id,
                    "name": self.icon.name,
                    "set_name": self.icon.set_name,
                    "svg_url": self.icon.svg_url,
                }
                if self.icon
                else None
            ),
            "tags": sorted(self.tags),
            "difficulty": self.difficulty,
            "notes": self.notes,
            "examples": list(self.examples),
            "word_data": word_data_to_dict(self.word_data) if self.word_data else None,
            "german_article": self.german_article,
            "is_favorite": self.is_favorite,
            "is_archived": self.is_archived,
            "exercise_scores": {t.value: s.to_dict() for t, s in self.exercise_scores.items()},
            "review_count": self.review_count,
            "correct_count": self.correct_count,
            "last_reviewed": _format_dt(self.last_reviewed),
            "next_review": _format_dt(self.next_review),
            "created_at": _format_dt(self.created_at),
            "updated_at": _format_dt(self.updated_at),
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Card":
        icon_raw = raw.get("icon")
        word_raw = raw.get("word_data")

        scores: dict[ExerciseType, ExerciseScore] = {}
        for key, value in (raw.get("exercise_scores") or {}).items():
            try:
                exercise_type = ExerciseType(key)
            except ValueError:
                continue  # score for a type this version no longer knows
            scores[exercise_type] = ExerciseScore.from_dict(
                {**value, "exercise_type": exercise_type.value}
            )

        return cls(
            id=raw["id"],
            front_text=raw["front_text"],
            back_text=raw["back_text"],
            language=raw.get("language", ""),
            category=raw.get("category") or "",
            icon=IconRef(**icon_raw) if icon_raw else None,
            tags=frozenset(raw.get("tags") or ()),
            difficulty=int(raw.get("difficulty", 1)),
            notes=raw.get("notes"),
            examples=tuple(raw.get("examples") or ()),
            word_data=word_data_from_dict(word_raw) if word_raw else None,
            german_article=raw.get("german_article"),
            is_favorite=bool(raw.get("is_favorite", False)),
            is_archived=bool(raw.get("is_archived", False)),
            exercise_scores=scores,
            review_count=int(raw.get("review_count", 0)),
            correct_count=int(raw.get("correct_count", 0)),
            last_reviewed=_parse_dt(raw.get("last_reviewed")),
            next_review=_parse_dt(raw.get("next_review")),
            created_at=_parse_dt(raw["created_at"]),  # type: ignore[arg-type]
            updated_at=_parse_dt(raw["updated_at"]),  # type: ignore[arg-type]
        )


@dataclass(frozen=True, eq=False)
class PracticeItem:
    """One (card, exercise type) unit of work, identified by (card.id, exercise_type)."""

    card: Card
    exercise_type: ExerciseType

    @property
    def key(self) -> tuple[str, ExerciseType]:
        return (self.card.id, self.exercise_type)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, PracticeItem) and other.key == self.key

    def __hash__(self) -> int:
        return hash(self.key)

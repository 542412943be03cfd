"""User preferences for exercise type selection."""

from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from typing import Any

from .constants import DEFAULT_WEAKNESS_THRESHOLD
from .exercise import ExerciseCategory, ExerciseType


@dataclass(frozen=True)
class ExercisePreferences:
    """
    Which exercise types a learner wants to practice.

    Attributes:
        enabled_types: Exercise types the learner has switched on.
        prioritize_weaknesses: Order the queue weakest-first instead of shuffling.
        weakness_threshold: Success rate below which a type counts as weak.
            Persisted for the UI; the queue comparator does not read it.
    """

    enabled_types: frozenset[ExerciseType] = field(
        default_factory=lambda: frozenset(ExerciseType.core())
    )
    prioritize_weaknesses: bool = True
    weakness_threshold: float = DEFAULT_WEAKNESS_THRESHOLD

    def __post_init__(self):
        object.__setattr__(self, "enabled_types", frozenset(self.enabled_types))

    @classmethod
    def defaults(cls) -> "ExercisePreferences":
        return cls()

    def is_enabled(self, exercise_type: ExerciseType) -> bool:
        return exercise_type in self.enabled_types

    @property
    def has_any_enabled(self) -> bool:
        return bool(self.enabled_types)

    @property
    def enabled_count(self) -> int:
        return len(self.enabled_types)

    def is_category_fully_enabled(self, category: ExerciseCategory) -> bool:
        return all(t in self.enabled_types for t in category.exercise_types)

    def is_category_partially_enabled(self, category: ExerciseCategory) -> bool:
        types = category.exercise_types
        enabled = [t for t in types if t in self.enabled_types]
        return 0 < len(enabled) < len(types)

    def toggle_type(self, exercise_type: ExerciseType) -> "ExercisePreferences":
        return replace(self, enabled_types=self.enabled_types ^ {exercise_type})

    def toggle_category(self, category: ExerciseCategory, enabled: bool) -> "ExercisePreferences":
        types = set(category.exercise_types)
        if enabled:
            return replace(self, enabled_types=self.enabled_types | types)
        return replace(self, enabled_types=self.enabled_types - types)

    def enable_all(self) -> "ExercisePreferences":
        return replace(self, enabled_types=frozenset(ExerciseType.implemented()))

    def disable_all(self) -> "ExercisePreferences":
        return replace(self, enabled_types=frozenset())

    def with_changes(
        self,
        enabled_types: Iterable[ExerciseType] | None = None,
        prioritize_weaknesses: bool | None = None,
        weakness_threshold: float | None = None,
    ) -> "ExercisePreferences":
        return ExercisePreferences(
            enabled_types=(
                frozenset(enabled_types) if enabled_types is not None else self.enabled_types
            ),
            prioritize_weaknesses=(
                prioritize_weaknesses
                if prioritize_weaknesses is not None
                else self.prioritize_weaknesses
            ),
            weakness_threshold=(
                weakness_threshold if weakness_threshold is not None else self.weakness_threshold
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled_types": sorted(t.value for t in self.enabled_types),
            "prioritize_weaknesses": self.prioritize_weaknesses,
            "weakness_threshold": self.weakness_threshold,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "ExercisePreferences":
        """Build preferences from stored data, ignoring unknown or unimplemented types."""
        enabled: set[ExerciseType] = set()
        for name in raw.get("enabled_types") or []:
            try:
                exercise_type = ExerciseType(name)
            except ValueError:
                continue
            if exercise_type.is_implemented:
                enabled.add(exercise_type)

        if "enabled_types" not in raw:
            enabled = set(ExerciseType.core())

        threshold = raw.get("weakness_threshold")
        return cls(
            enabled_types=frozenset(enabled),
            prioritize_weaknesses=bool(raw.get("prioritize_weaknesses", True)),
            weakness_threshold=(
                float(threshold) if threshold is not None else DEFAULT_WEAKNESS_THRESHOLD
            ),
        )

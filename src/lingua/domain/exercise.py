"""
Exercise types and categories.

Each exercise type is a distinct drill mode applicable to a card. Values are
the snake_case names used in persisted score maps and preference files.
"""

from enum import Enum


class ExerciseCategory(str, Enum):
    """Grouping used for bulk enable/disable of exercise types."""

    RECOGNITION = "recognition"  # passive recall
    PRODUCTION = "production"  # active recall/output

    @property
    def display_name(self) -> str:
        return self.value.capitalize()

    @property
    def description(self) -> str:
        if self is ExerciseCategory.RECOGNITION:
            return "See or hear, then identify the meaning"
        return "Actively produce the translation"

    @property
    def exercise_types(self) -> list["ExerciseType"]:
        """Implemented exercise types in this category, in declaration order."""
        return [t for t in ExerciseType if t.category is self and t.is_implemented]


class ExerciseType(str, Enum):
    READING_RECOGNITION = "reading_recognition"
    WRITING_TRANSLATION = "writing_translation"
    MULTIPLE_CHOICE_TEXT = "multiple_choice_text"
    MULTIPLE_CHOICE_ICON = "multiple_choice_icon"
    REVERSE_TRANSLATION = "reverse_translation"
    LISTENING_RECOGNITION = "listening_recognition"
    SPEAKING_PRONUNCIATION = "speaking_pronunciation"
    SENTENCE_FILL = "sentence_fill"
    SENTENCE_BUILDING = "sentence_building"
    CONJUGATION_PRACTICE = "conjugation_practice"
    ARTICLE_SELECTION = "article_selection"

    @classmethod
    def implemented(cls) -> list["ExerciseType"]:
        return [t for t in cls if t.is_implemented]

    @classmethod
    def core(cls) -> list["ExerciseType"]:
        """Types that need no extra card data and work on any card."""
        return [t for t in cls if t.is_core]

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]

    @property
    def is_implemented(self) -> bool:
        return self not in _NOT_IMPLEMENTED

    @property
    def is_core(self) -> bool:
        return self in _CORE

    @property
    def is_multiple_choice(self) -> bool:
        return self in (ExerciseType.MULTIPLE_CHOICE_TEXT, ExerciseType.MULTIPLE_CHOICE_ICON)

    @property
    def requires_icon(self) -> bool:
        return self is ExerciseType.MULTIPLE_CHOICE_ICON

    @property
    def category(self) -> ExerciseCategory:
        if self in _RECOGNITION:
            return ExerciseCategory.RECOGNITION
        return ExerciseCategory.PRODUCTION

    @property
    def is_recognition(self) -> bool:
        return self.category is ExerciseCategory.RECOGNITION

    @property
    def is_production(self) -> bool:
        return self.category is ExerciseCategory.PRODUCTION


_NOT_IMPLEMENTED = frozenset(
    {
        ExerciseType.LISTENING_RECOGNITION,
        ExerciseType.SPEAKING_PRONUNCIATION,
        ExerciseType.SENTENCE_FILL,
    }
)

_CORE = frozenset(
    {
        ExerciseType.READING_RECOGNITION,
        ExerciseType.WRITING_TRANSLATION,
        ExerciseType.MULTIPLE_CHOICE_TEXT,
        ExerciseType.REVERSE_TRANSLATION,
    }
)

_RECOGNITION = frozenset(
    {
        ExerciseType.READING_RECOGNITION,
        ExerciseType.MULTIPLE_CHOICE_TEXT,
        ExerciseType.MULTIPLE_CHOICE_ICON,
        ExerciseType.LISTENING_RECOGNITION,
        ExerciseType.ARTICLE_SELECTION,
    }
)

_DISPLAY_NAMES = {
    ExerciseType.READING_RECOGNITION: "Reading Recognition",
    ExerciseType.WRITING_TRANSLATION: "Writing Translation",
    ExerciseType.MULTIPLE_CHOICE_TEXT: "Multiple Choice (Text)",
    ExerciseType.MULTIPLE_CHOICE_ICON: "Multiple Choice (Icon)",
    ExerciseType.REVERSE_TRANSLATION: "Reverse Translation",
    ExerciseType.LISTENING_RECOGNITION: "Listening Recognition",
    ExerciseType.SPEAKING_PRONUNCIATION: "Speaking Pronunciation",
    ExerciseType.SENTENCE_FILL: "Sentence Fill",
    ExerciseType.SENTENCE_BUILDING: "Sentence Building",
    ExerciseType.CONJUGATION_PRACTICE: "Conjugation Practice",
    ExerciseType.ARTICLE_SELECTION: "Article Selection",
}

_DESCRIPTIONS = {
    ExerciseType.READING_RECOGNITION: "See the word and recall its meaning",
    ExerciseType.WRITING_TRANSLATION: "Type the correct translation",
    ExerciseType.MULTIPLE_CHOICE_TEXT: "Choose the correct meaning from options",
    ExerciseType.MULTIPLE_CHOICE_ICON: "Choose the matching icon",
    ExerciseType.REVERSE_TRANSLATION: "Translate from your native language",
    ExerciseType.LISTENING_RECOGNITION: "Listen and identify the word",
    ExerciseType.SPEAKING_PRONUNCIATION: "Speak the word correctly",
    ExerciseType.SENTENCE_FILL: "Complete the sentence with the word",
    ExerciseType.SENTENCE_BUILDING: "Arrange words in correct order",
    ExerciseType.CONJUGATION_PRACTICE: "Provide the correct form",
    ExerciseType.ARTICLE_SELECTION: "Choose the correct article",
}

"""Turn a practice item into something a front end can ask, and check typed answers."""

import random
import re
import unicodedata
from dataclasses import dataclass

from lingua.domain.constants import GERMAN_ARTICLES
from lingua.domain.exercise import ExerciseType
from lingua.domain.models import PracticeItem
from lingua.domain.word_data import conjugation_forms


@dataclass(frozen=True)
class ExercisePrompt:
    exercise_type: ExerciseType
    question: str
    expected: str
    options: tuple[str, ...] | None = None
    hint: str | None = None
    self_graded: bool = False  # the learner judges their own recall


def normalize_answer(text: str) -> str:
    text = unicodedata.normalize("NFKC", text).casefold().strip()
    text = re.sub(r"\s+", " ", text)
    return text.strip(" .!?,;:")


def answers_match(given: str, expected: str) -> bool:
    return normalize_answer(given) == normalize_answer(expected)


def _strip_article(front: str) -> str:
    head, _, rest = front.partition(" ")
    if head.lower() in GERMAN_ARTICLES and rest:
        return rest
    return front


def build_prompt(
    item: PracticeItem,
    options: tuple[str, ...] | None = None,
    rng: random.Random | None = None,
) -> ExercisePrompt:
    """
    Describe the exercise for ``item``.

    Args:
        item: The current practice item.
        options: Multiple-choice options prepared by the session.
        rng: Random source for scrambling sentences and picking forms.
    """
    rng = rng or random.Random()
    card = item.card
    exercise_type = item.exercise_type

    match exercise_type:
        case ExerciseType.READING_RECOGNITION:
            return ExercisePrompt(
                exercise_type,
                card.front_text,
                card.back_text,
                hint=card.icon.name if card.icon else None,
                self_graded=True,
            )
        case ExerciseType.REVERSE_TRANSLATION:
            return ExercisePrompt(exercise_type, card.back_text, card.front_text)
        case ExerciseType.MULTIPLE_CHOICE_TEXT | ExerciseType.MULTIPLE_CHOICE_ICON:
            return ExercisePrompt(
                exercise_type,
                card.front_text,
                card.back_text,
                options=options,
                hint=card.icon.id if card.icon else None,
            )
        case ExerciseType.SENTENCE_BUILDING:
            sentence = rng.choice(card.examples)
            words = sentence.split()
            rng.shuffle(words)
            return ExercisePrompt(
                exercise_type, " / ".join(words), sentence, hint=card.front_text
            )
        case ExerciseType.CONJUGATION_PRACTICE:
            label, answer = rng.choice(conjugation_forms(card.word_data))
            return ExercisePrompt(exercise_type, f"{card.front_text} ({label})", answer)
        case ExerciseType.ARTICLE_SELECTION:
            return ExercisePrompt(
                exercise_type,
                _strip_article(card.front_text),
                card.article or "",
                options=GERMAN_ARTICLES,
            )
        case _:
            # Writing translation and anything typed front-to-back
            return ExercisePrompt(exercise_type, card.front_text, card.back_text)

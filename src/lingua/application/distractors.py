"""Multiple-choice option generation."""

import logging
import random
from collections.abc import Iterable

from lingua.domain.constants import DISTRACTOR_COUNT
from lingua.domain.models import Card

logger = logging.getLogger(__name__)


def wrong_answer_candidates(card: Card, pool: Iterable[Card]) -> list[str]:
    """
    Distinct back texts usable as wrong answers for ``card``.

    Excludes the card itself, blank back texts and anything matching the
    correct answer.
    """
    seen: set[str] = set()
    candidates: list[str] = []
    for other in pool:
        text = other.back_text
        if other.id == card.id or not text.strip() or text == card.back_text:
            continue
        if text in seen:
            continue
        seen.add(text)
        candidates.append(text)
    return candidates


def generate_options(
    card: Card,
    pool: Iterable[Card],
    rng: random.Random | None = None,
) -> list[str] | None:
    """
    Build the displayed options for a multiple-choice exercise.

    Returns:
        The correct back text plus three wrong answers in shuffled order,
        or None when the pool cannot supply three distinct wrong answers.
    """
    rng = rng or random.Random()
    candidates = wrong_answer_candidates(card, pool)
    if len(candidates) < DISTRACTOR_COUNT:
        logger.debug(
            f"Not enough distractors for {card.id}: {len(candidates)}/{DISTRACTOR_COUNT}"
        )
        return None

    rng.shuffle(candidates)
    options = [card.back_text, *candidates[:DISTRACTOR_COUNT]]
    rng.shuffle(options)
    return options

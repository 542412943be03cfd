"""Lingua: flashcard practice engine with per-exercise spaced repetition."""

from lingua.consts import VERSION

__version__ = VERSION

"""Centralized constants for Lingua.

All magic numbers and configuration defaults live here so every layer
imports from a single source of truth.
"""

# ---------- Mastery ----------
MASTERY_CHAIN = 5  # consecutive correct answers for "Mastered"
GOOD_CHAIN = 3
LEARNING_CHAIN = 1

# ---------- Spaced repetition ----------
BASE_INTERVAL_DAYS = 1
CHAIN_INTERVAL_FACTOR = 2
INCORRECT_INTERVAL_DAYS = 1

# ---------- Multiple choice ----------
MIN_CARDS_FOR_MULTIPLE_CHOICE = 4  # 1 correct + 3 distractors
DISTRACTOR_COUNT = 3

# ---------- Preferences ----------
DEFAULT_WEAKNESS_THRESHOLD = 70.0

# ---------- Weakness ordering ----------
UNTRIED_RANK = -1.0  # untried exercise types sort before any practiced one

# ---------- Legacy card mastery ----------
LEGACY_MIN_REVIEWS = 3

# ---------- Persistence ----------
PERSIST_TIMEOUT = 10.0  # seconds

# ---------- Card content ----------
MIN_DIFFICULTY = 1
MAX_DIFFICULTY = 5
GERMAN_ARTICLES = ("der", "die", "das")

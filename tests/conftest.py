from datetime import datetime, timedelta, timezone

import pytest

from lingua.domain.exercise import ExerciseType
from lingua.domain.models import Card, ExerciseScore
from lingua.infrastructure.adapters.memory_store import InMemoryCardRepository

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_card():
    """Factory for cards with deterministic timestamps."""
    counter = {"n": 0}

    def _make(front=None, back=None, language="de", scores=None, **kwargs):
        counter["n"] += 1
        n = counter["n"]
        card = Card.create(
            front_text=front or f"wort{n}",
            back_text=back or f"word{n}",
            language=language,
            now=NOW - timedelta(days=10),
            **kwargs,
        )
        if scores is not None:
            card = card.with_changes(exercise_scores=scores, now=card.updated_at)
        return card

    return _make


@pytest.fixture
def score():
    """Factory for exercise scores."""

    def _score(exercise_type=ExerciseType.READING_RECOGNITION, **kwargs):
        return ExerciseScore(exercise_type=exercise_type, **kwargs)

    return _score


@pytest.fixture
def memory_repo():
    return InMemoryCardRepository()


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Mocking HOME to a temp directory to isolate config and data
    monkeypatch.setenv("HOME", str(home))
    for var in ("LINGUA_DATA_DIR", "LINGUA_BACKEND", "LINGUA_LANGUAGE", "LINGUA_SEED"):
        monkeypatch.delenv(var, raising=False)
    return home

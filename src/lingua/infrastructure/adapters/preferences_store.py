"""JSON file storage for exercise preferences."""

import json
import logging
from pathlib import Path

from lingua.domain.errors import PersistenceError
from lingua.domain.ports import PreferencesRepository
from lingua.domain.preferences import ExercisePreferences

logger = logging.getLogger(__name__)


class JsonPreferencesRepository(PreferencesRepository):
    """Persists preferences as a small JSON document."""

    def __init__(self, path: Path):
        self.path = Path(path)

    async def load(self) -> ExercisePreferences:
        if not self.path.exists():
            return ExercisePreferences.defaults()

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable preferences {self.path}: {e}")
            return ExercisePreferences.defaults()

        if not isinstance(raw, dict):
            logger.warning(f"Ignoring malformed preferences {self.path}")
            return ExercisePreferences.defaults()
        return ExercisePreferences.from_dict(raw)

    async def save(self, preferences: ExercisePreferences) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(preferences.to_dict(), indent=2), encoding="utf-8")
        except OSError as e:
            raise PersistenceError(f"Could not write preferences {self.path}: {e}") from e

    async def reset_to_defaults(self) -> ExercisePreferences:
        """Drop the stored file; loading then falls back to defaults."""
        await self.clear()
        return ExercisePreferences.defaults()

    async def clear(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(f"Could not remove preferences {self.path}: {e}") from e

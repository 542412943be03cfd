"""Exercise preference mutations, each persisted immediately."""

import logging

from lingua.domain.exercise import ExerciseCategory, ExerciseType
from lingua.domain.ports import PreferencesRepository
from lingua.domain.preferences import ExercisePreferences

logger = logging.getLogger(__name__)


class ExercisePreferencesService:
    """
    Holds the current preferences and writes every change through the repository.

    Call ``load()`` once before reading ``preferences``; until then defaults apply.
    """

    def __init__(self, repository: PreferencesRepository):
        self._repo = repository
        self._preferences = ExercisePreferences.defaults()
        self._loaded = False

    @property
    def preferences(self) -> ExercisePreferences:
        return self._preferences

    async def load(self) -> ExercisePreferences:
        if not self._loaded:
            self._preferences = await self._repo.load()
            self._loaded = True
        return self._preferences

    async def _apply(self, preferences: ExercisePreferences) -> ExercisePreferences:
        self._preferences = preferences
        await self._repo.save(preferences)
        logger.debug(f"Saved exercise preferences: {preferences.to_dict()}")
        return preferences

    async def toggle_type(self, exercise_type: ExerciseType) -> ExercisePreferences:
        return await self._apply(self._preferences.toggle_type(exercise_type))

    async def toggle_category(
        self, category: ExerciseCategory, enabled: bool
    ) -> ExercisePreferences:
        return await self._apply(self._preferences.toggle_category(category, enabled))

    async def set_prioritize_weaknesses(self, value: bool) -> ExercisePreferences:
        return await self._apply(self._preferences.with_changes(prioritize_weaknesses=value))

    async def set_weakness_threshold(self, value: float) -> ExercisePreferences:
        return await self._apply(self._preferences.with_changes(weakness_threshold=value))

    async def enable_all(self) -> ExercisePreferences:
        return await self._apply(self._preferences.enable_all())

    async def disable_all(self) -> ExercisePreferences:
        return await self._apply(self._preferences.disable_all())

    async def update(self, preferences: ExercisePreferences) -> ExercisePreferences:
        return await self._apply(preferences)

    async def reset_to_defaults(self) -> ExercisePreferences:
        self._preferences = await self._repo.reset_to_defaults()
        return self._preferences

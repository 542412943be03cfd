"""
Repository Factory
Centralizes the logic for selecting the storage adapters.
"""

from lingua.application.config import AppConfig
from lingua.domain.ports import CardRepository, PreferencesRepository
from lingua.infrastructure.adapters.memory_store import InMemoryCardRepository
from lingua.infrastructure.adapters.preferences_store import JsonPreferencesRepository
from lingua.infrastructure.adapters.yaml_store import YamlCardRepository


def get_card_repository(config: AppConfig) -> CardRepository:
    """
    Returns the CardRepository implementation selected by config.
    """
    if config.backend == "memory":
        return InMemoryCardRepository()

    return YamlCardRepository(config.deck_path or config.data_dir / "deck.yaml")


def get_preferences_repository(config: AppConfig) -> PreferencesRepository:
    return JsonPreferencesRepository(
        config.preferences_path or config.data_dir / "preferences.json"
    )

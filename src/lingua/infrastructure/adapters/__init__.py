# Infrastructure adapters
from .memory_store import InMemoryCardRepository
from .preferences_store import JsonPreferencesRepository
from .yaml_store import YamlCardRepository

__all__ = ["InMemoryCardRepository", "JsonPreferencesRepository", "YamlCardRepository"]

"""
Ports (interfaces) for card and preference storage.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod

from .models import Card
from .preferences import ExercisePreferences


class CardRepository(ABC):
    """
    Port for loading and persisting cards.

    Implementations:
        - YamlCardRepository: Whole deck in a single YAML file.
        - InMemoryCardRepository: Process-local dict, used by tests and the daemon.
    """

    @abstractmethod
    async def list_cards(self) -> list[Card]:
        """Return every stored card, archived ones included."""
        pass

    @abstractmethod
    async def get_card(self, card_id: str) -> Card | None:
        pass

    @abstractmethod
    async def save_card(self, card: Card) -> None:
        """
        Insert or replace a card by id.

        Raises:
            PersistenceError: if the backing store cannot be written.
        """
        pass

    @abstractmethod
    async def delete_card(self, card_id: str) -> bool:
        """Delete a card. Returns False if it did not exist."""
        pass


class PreferencesRepository(ABC):
    """Port for loading and saving exercise preferences."""

    @abstractmethod
    async def load(self) -> ExercisePreferences:
        """Return stored preferences, or defaults when nothing usable is stored."""
        pass

    @abstractmethod
    async def save(self, preferences: ExercisePreferences) -> None:
        pass

    async def reset_to_defaults(self) -> ExercisePreferences:
        defaults = ExercisePreferences.defaults()
        await self.save(defaults)
        return defaults

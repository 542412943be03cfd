"""
YAML Card Repository: infrastructure adapter for a local deck file.

The whole deck lives in one YAML document:

    version: 1
    cards:
      - id: card_01H...
        front_text: der Hund
        ...
"""

import asyncio
import logging
import os
import threading
from pathlib import Path
from typing import Any

import yaml

from lingua.domain.errors import PersistenceError, ValidationError
from lingua.domain.models import Card
from lingua.domain.ports import CardRepository

logger = logging.getLogger(__name__)

DECK_FORMAT_VERSION = 1


class YamlCardRepository(CardRepository):
    """
    Stores cards in a single YAML file.

    The file is re-read on every call so edits made by other tools are picked
    up; writes go to a temporary file that replaces the deck atomically.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._write_lock = threading.Lock()

    def _load(self) -> dict[str, Card]:
        if not self.path.exists():
            return {}

        try:
            raw = yaml.safe_load(self.path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as e:
            raise PersistenceError(f"Could not read deck {self.path}: {e}") from e

        if not isinstance(raw, dict):
            raise PersistenceError(f"Deck {self.path} is not a mapping")

        cards: dict[str, Card] = {}
        for index, entry in enumerate(raw.get("cards") or []):
            if not isinstance(entry, dict):
                logger.warning(f"Skipping card #{index} in {self.path}: not a mapping")
                continue
            try:
                card = Card.from_dict(entry)
            except (KeyError, TypeError, ValueError, ValidationError) as e:
                logger.warning(f"Skipping card #{index} in {self.path}: {e}")
                continue
            cards[card.id] = card
        return cards

    def _dump(self, cards: dict[str, Card]) -> None:
        data: dict[str, Any] = {
            "version": DECK_FORMAT_VERSION,
            "cards": [c.to_dict() for c in cards.values()],
        }
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(
                yaml.safe_dump(data, sort_keys=False, allow_unicode=True),
                encoding="utf-8",
            )
            os.replace(tmp, self.path)
        except OSError as e:
            raise PersistenceError(f"Could not write deck {self.path}: {e}") from e

    def _save(self, card: Card) -> None:
        with self._write_lock:
            cards = self._load()
            cards[card.id] = card
            self._dump(cards)

    def _delete(self, card_id: str) -> bool:
        with self._write_lock:
            cards = self._load()
            if cards.pop(card_id, None) is None:
                return False
            self._dump(cards)
            return True

    # Blocking file access runs in a worker thread.

    async def list_cards(self) -> list[Card]:
        return list((await asyncio.to_thread(self._load)).values())

    async def get_card(self, card_id: str) -> Card | None:
        return (await asyncio.to_thread(self._load)).get(card_id)

    async def save_card(self, card: Card) -> None:
        await asyncio.to_thread(self._save, card)
        logger.debug(f"Saved card {card.id} to {self.path}")

    async def delete_card(self, card_id: str) -> bool:
        return await asyncio.to_thread(self._delete, card_id)

"""
Card Service: application layer orchestrator for card CRUD.

Depends on the CardRepository port, never on a concrete adapter.
"""

import logging
from collections.abc import Iterable
from typing import Any

from lingua.domain.constants import MAX_DIFFICULTY, MIN_DIFFICULTY
from lingua.domain.errors import CardNotFoundError, ValidationError
from lingua.domain.models import Card, IconRef, normalize_tag
from lingua.domain.ports import CardRepository
from lingua.domain.preferences import ExercisePreferences
from lingua.domain.word_data import WordData

from .queue_builder import filter_for_practice

logger = logging.getLogger(__name__)

# Fields callers may change through update_card
EDITABLE_FIELDS = frozenset(
    {
        "front_text",
        "back_text",
        "language",
        "category",
        "icon",
        "tags",
        "difficulty",
        "notes",
        "examples",
        "word_data",
        "german_article",
    }
)


class CardService:
    """Create, query and edit cards through a CardRepository."""

    def __init__(self, repository: CardRepository):
        self._repo = repository

    async def create_card(
        self,
        front_text: str,
        back_text: str,
        language: str,
        category: str = "",
        icon: IconRef | None = None,
        tags: Iterable[str] = (),
        difficulty: int = 1,
        notes: str | None = None,
        examples: Iterable[str] = (),
        word_data: WordData | None = None,
        german_article: str | None = None,
    ) -> Card:
        card = Card.create(
            front_text=front_text,
            back_text=back_text,
            language=language.strip().lower(),
            category=category,
            icon=icon,
            tags=tags,
            difficulty=difficulty,
            notes=notes,
            examples=examples,
            word_data=word_data,
            german_article=german_article,
        )
        await self._repo.save_card(card)
        logger.info(f"Created card {card.id} ({card.front_text!r})")
        return card

    async def get_card(self, card_id: str) -> Card:
        card = await self._repo.get_card(card_id)
        if card is None:
            raise CardNotFoundError(card_id)
        return card

    async def list_cards(
        self,
        include_archived: bool = False,
        language: str | None = None,
        tag: str | None = None,
        favorites_only: bool = False,
        query: str | None = None,
    ) -> list[Card]:
        """
        List cards with optional filters.

        Args:
            include_archived: Include archived cards.
            language: Only cards in this language.
            tag: Only cards carrying this tag (normalized before matching).
            favorites_only: Only favorite cards.
            query: Case-insensitive search over front, back and notes.
        """
        cards = await self._repo.list_cards()
        wanted_tag = normalize_tag(tag) if tag else None
        needle = query.strip().lower() if query else None

        result = []
        for card in cards:
            if card.is_archived and not include_archived:
                continue
            if language and card.language != language:
                continue
            if wanted_tag and wanted_tag not in card.tags:
                continue
            if favorites_only and not card.is_favorite:
                continue
            if needle and not any(
                needle in (text or "").lower()
                for text in (card.front_text, card.back_text, card.notes)
            ):
                continue
            result.append(card)
        return result

    async def due_cards(
        self, preferences: ExercisePreferences, language: str | None = None
    ) -> list[Card]:
        """Cards with at least one enabled exercise due, excluding archived ones."""
        return filter_for_practice(await self._repo.list_cards(), preferences, language)

    async def update_card(self, card_id: str, **changes: Any) -> Card:
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        if "difficulty" in changes and not (
            MIN_DIFFICULTY <= changes["difficulty"] <= MAX_DIFFICULTY
        ):
            raise ValidationError(
                f"Difficulty must be between {MIN_DIFFICULTY} and {MAX_DIFFICULTY}"
            )
        for key in ("front_text", "back_text"):
            if key in changes and not str(changes[key]).strip():
                raise ValidationError(f"{key} must not be empty")

        card = await self.get_card(card_id)
        updated = card.with_changes(**changes)
        await self._repo.save_card(updated)
        return updated

    async def toggle_favorite(self, card_id: str) -> Card:
        card = await self.get_card(card_id)
        updated = card.with_changes(is_favorite=not card.is_favorite)
        await self._repo.save_card(updated)
        return updated

    async def set_archived(self, card_id: str, archived: bool = True) -> Card:
        card = await self.get_card(card_id)
        updated = card.with_changes(is_archived=archived)
        await self._repo.save_card(updated)
        return updated

    async def delete_card(self, card_id: str) -> None:
        if not await self._repo.delete_card(card_id):
            raise CardNotFoundError(card_id)
        logger.info(f"Deleted card {card_id}")

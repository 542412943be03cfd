"""In-process card repository."""

from collections.abc import Iterable

from lingua.domain.models import Card
from lingua.domain.ports import CardRepository


class InMemoryCardRepository(CardRepository):
    """Keeps cards in a dict keyed by id, in insertion order."""

    def __init__(self, cards: Iterable[Card] | None = None):
        self._cards: dict[str, Card] = {c.id: c for c in cards or ()}

    async def list_cards(self) -> list[Card]:
        return list(self._cards.values())

    async def get_card(self, card_id: str) -> Card | None:
        return self._cards.get(card_id)

    async def save_card(self, card: Card) -> None:
        self._cards[card.id] = card

    async def delete_card(self, card_id: str) -> bool:
        return self._cards.pop(card_id, None) is not None

"""Exception hierarchy for Lingua."""


class LinguaError(Exception):
    """Base class for all Lingua errors."""


class ValidationError(LinguaError):
    """Raised when card or grammar data is malformed."""


class CardNotFoundError(LinguaError):
    """Raised when a card id does not exist in the repository."""

    def __init__(self, card_id: str):
        super().__init__(f"Card not found: {card_id}")
        self.card_id = card_id


class PersistenceError(LinguaError):
    """Raised when a repository cannot read or write its backing store."""

"""Error kinds raised by the engine.

Failures only come from lookups and input validation; the scheduling
computations themselves are pure and cannot fail.
"""


class RecallError(Exception):
    """Base class for all engine errors."""


class NotFoundError(RecallError):
    """An operation referenced a card or pack id that does not exist."""

    def __init__(self, kind: str, key: str):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} not found: {key}")


class ValidationError(RecallError):
    """Input was rejected before any state mutation."""


class DuplicateCardError(ValidationError):
    """A card already exists for the given source."""


class DuplicatePackError(ValidationError):
    """A pack with the same name already exists."""


class UndoExpired(RecallError):
    """The undo window has closed or nothing is left to undo.

    Never escapes ``CardStore.undo_last_review``; undo declines silently.
    """

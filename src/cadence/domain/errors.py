"""Error taxonomy for the scheduling engine.

Every error raised by the core derives from CadenceError so callers can
catch the whole family at the interface boundary.
"""


class CadenceError(Exception):
    """Base class for all engine errors."""


class NotFound(CadenceError, KeyError):
    """Unknown card id (or review record id)."""

    def __init__(self, card_id: str, what: str = "card"):
        self.card_id = card_id
        super().__init__(f"{what} not found: {card_id}")

    def __str__(self) -> str:
        # KeyError.__str__ would repr() the message
        return self.args[0]


class InvalidGrade(CadenceError, ValueError):
    """Quality grade outside the accepted range."""

    def __init__(self, quality: object):
        self.quality = quality
        super().__init__(f"quality must be an integer in [0, 5], got {quality!r}")


class Conflict(CadenceError):
    """Stored version no longer matches the version the caller read."""

    def __init__(self, card_id: str, expected: str | None, actual: str | None):
        self.card_id = card_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"card {card_id} was modified concurrently "
            f"(expected version {expected}, found {actual})"
        )


class NothingToUndo(CadenceError):
    """Undo requested with no pending grade to revert."""

    def __init__(self):
        super().__init__("nothing to undo")


class StorageFailure(CadenceError):
    """Underlying persistence I/O error. The original exception is the __cause__."""

"""cadence: spaced-repetition scheduling engine for terminal flashcards."""

from cadence.consts import VERSION

__version__ = VERSION

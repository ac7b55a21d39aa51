"""Stable identifiers for cards, review records, sessions and state versions."""

from ulid import ULID

from cadence.domain.constants import CARD_ID_PREFIX, RECORD_ID_PREFIX


def generate_card_id() -> str:
    """Generate a stable card ID using ULID."""
    return f"{CARD_ID_PREFIX}{ULID()}"


def generate_record_id() -> str:
    return f"{RECORD_ID_PREFIX}{ULID()}"


def generate_session_id() -> str:
    return str(ULID())


def generate_version() -> str:
    return str(ULID())

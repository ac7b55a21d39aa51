"""
Due-set query: which cards are up for review, and in what order.

Pure and deterministic. The ordering is total: due time first (most
overdue first), then stage priority (relearning, learning, review, new),
then card id.
"""

from collections.abc import Iterable
from datetime import datetime

from cadence.domain.models import STAGE_PRIORITY, CardSnapshot


def is_due(snapshot: CardSnapshot, now: datetime) -> bool:
    return snapshot.state.due_at <= now


def due_sort_key(snapshot: CardSnapshot) -> tuple:
    return (
        snapshot.state.due_at,
        STAGE_PRIORITY[snapshot.state.stage],
        snapshot.card.id,
    )


def due_cards(
    snapshots: Iterable[CardSnapshot],
    now: datetime,
    deck: str | None = None,
) -> list[CardSnapshot]:
    """
    Select and order the due cards.

    Args:
        snapshots: The card population with current states.
        now: Reference time; a card is due when due_at <= now.
        deck: Optional deck filter.

    Returns:
        A new list, most overdue first.
    """
    selected = [
        s
        for s in snapshots
        if is_due(s, now) and (deck is None or s.card.deck == deck)
    ]
    selected.sort(key=due_sort_key)
    return selected

"""
Metrics calculator for card filters, deck summaries and review history.

This is a pure computation module with no I/O.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from cadence.domain.constants import (
    EASE_BANDS,
    MASTERED_MIN_EASE,
    MASTERED_MIN_REPETITIONS,
    PASSING_GRADE,
)
from cadence.domain.models import CardSnapshot, HistorySummary, ReviewRecord


class CardFilter(str, Enum):
    ALL = "all"
    NEW = "new"  # never reviewed
    DUE = "due"
    HARD = "hard"
    MEDIUM = "medium"
    EASY = "easy"
    PERFECT = "perfect"
    MASTERED = "mastered"  # high repetitions and ease


@dataclass
class DeckSummary:
    """Card counts per filter for one deck (or all decks)."""

    deck: str | None
    total: int
    counts: dict[CardFilter, int] = field(default_factory=dict)

    @property
    def due(self) -> int:
        return self.counts.get(CardFilter.DUE, 0)

    def headline(self) -> str:
        return f"Due: {self.due} / Total: {self.total}"


class MetricsCalculator:
    """
    Classifies cards and derives history metrics.

    Stateless and side-effect free. ``now`` is always supplied by the caller.
    """

    def __init__(self, passing_grade: int = PASSING_GRADE):
        self.passing_grade = passing_grade

    def matches(self, snapshot: CardSnapshot, card_filter: CardFilter, now: datetime) -> bool:
        state = snapshot.state
        if card_filter is CardFilter.ALL:
            return True
        if card_filter is CardFilter.NEW:
            return state.last_reviewed_at is None
        if card_filter is CardFilter.DUE:
            return state.due_at <= now
        if card_filter is CardFilter.MASTERED:
            return (
                state.repetitions >= MASTERED_MIN_REPETITIONS
                and state.ease_factor >= MASTERED_MIN_EASE
            )
        low, high = EASE_BANDS[card_filter.value]
        return low <= state.ease_factor < high

    def filter_cards(
        self,
        snapshots: Iterable[CardSnapshot],
        card_filter: CardFilter,
        now: datetime,
    ) -> list[CardSnapshot]:
        return [s for s in snapshots if self.matches(s, card_filter, now)]

    def deck_summary(
        self,
        snapshots: Iterable[CardSnapshot],
        now: datetime,
        deck: str | None = None,
    ) -> DeckSummary:
        population = [s for s in snapshots if deck is None or s.card.deck == deck]
        counts = {
            f: sum(1 for s in population if self.matches(s, f, now)) for f in CardFilter
        }
        return DeckSummary(deck=deck, total=len(population), counts=counts)

    def summarize_history(self, card_id: str, records: list[ReviewRecord]) -> HistorySummary:
        """
        Derive counts and rates from a card's review log.

        Rates are None for a card that was never reviewed.
        """
        count = len(records)
        lapses = sum(1 for r in records if r.quality < self.passing_grade)
        return HistorySummary(
            card_id=card_id,
            review_count=count,
            lapse_count=lapses,
            last_reviewed_at=records[-1].reviewed_at if records else None,
            retention_rate=(count - lapses) / count if count else None,
            average_quality=sum(r.quality for r in records) / count if count else None,
            records=list(records),
        )

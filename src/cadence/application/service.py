"""
Flashcard Service — Application layer facade for the review UI.

Coordinates the card store, the scheduler and the stats calculator behind
the four calls the UI needs: due cards, grade, undo, history.
"""

import logging
from collections.abc import Iterable
from datetime import datetime

from cadence.domain.errors import NothingToUndo
from cadence.domain.models import (
    Card,
    CardSnapshot,
    CardType,
    GradeResult,
    HistorySummary,
    SchedulingState,
)
from cadence.domain.ports import CardStore

from .due_query import due_cards
from .id_service import generate_card_id
from .review_session import ReviewSession, commit_grade, revert_grade
from .scheduler import DEFAULT_PARAMS, SchedulerParams
from .stats.metrics_calculator import MetricsCalculator

logger = logging.getLogger(__name__)


class FlashcardService:
    """
    Application service used by the review UI.

    Follows Dependency Inversion: depends on the CardStore abstraction,
    not on a concrete adapter. Keeps one level of undo for grade().
    """

    def __init__(
        self,
        store: CardStore,
        params: SchedulerParams | None = None,
        calculator: MetricsCalculator | None = None,
    ):
        """
        Args:
            store: The repository (port) holding cards and history.
            params: Scheduling constants; defaults when not provided.
            calculator: Optional custom calculator; uses default if not provided.
        """
        self._store = store
        self._params = params or DEFAULT_PARAMS
        self._calc = calculator or MetricsCalculator(passing_grade=self._params.passing_grade)
        self._last_grade: GradeResult | None = None

    @property
    def store(self) -> CardStore:
        return self._store

    def add_card(
        self,
        front: str,
        back: str,
        now: datetime,
        deck: str = "Default",
        card_type: CardType | str = CardType.BASIC,
        tags: Iterable[str] = (),
    ) -> CardSnapshot:
        """
        Create a new card, due immediately.

        Raises:
            ValueError: If front or back is blank, or card_type is unknown.
        """
        if not front.strip() or not back.strip():
            raise ValueError("card front and back must not be empty")
        card = Card(
            id=generate_card_id(),
            front=front,
            back=back,
            created_at=now,
            deck=deck,
            card_type=CardType.parse(card_type),
            tags=tuple(tags),
        )
        state = self._store.add_card(
            card, SchedulingState.initial(now, ease_factor=self._params.initial_ease)
        )
        logger.info(f"Added {card.id} to deck '{deck}'")
        return CardSnapshot(card=card, state=state)

    def due(self, now: datetime, deck: str | None = None) -> list[CardSnapshot]:
        """Due cards at ``now``, most overdue first."""
        return due_cards(self._store.list_snapshots(deck), now, deck)

    def grade(self, card_id: str, quality: int, now: datetime) -> GradeResult:
        """
        Grade a card by id at ``now``.

        The card is read fresh from the store, so only a write that lands
        between this read and the commit can raise Conflict.
        """
        snapshot = self._store.get_card(card_id)
        result = commit_grade(self._store, snapshot, quality, now, self._params)
        self._last_grade = result
        return result

    def undo_last(self) -> GradeResult:
        """
        Revert the most recent grade() call.

        Raises:
            NothingToUndo: If there is no grade to revert.
        """
        if self._last_grade is None:
            raise NothingToUndo()
        result = self._last_grade
        revert_grade(self._store, result)
        self._last_grade = None
        return result

    def history(self, card_id: str) -> HistorySummary:
        return self._calc.summarize_history(card_id, self._store.history(card_id))

    def session(self) -> ReviewSession:
        """A new, unstarted review session over this service's store."""
        return ReviewSession(self._store, self._params)

"""
Review session — Application layer orchestrator.

Builds a due queue at a fixed snapshot time, grades cards through the
scheduler, persists each review via the CardStore port and keeps enough
information to undo the most recent grade.
"""

import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime

from cadence.domain.errors import NothingToUndo
from cadence.domain.models import CardSnapshot, GradeResult, ReviewRecord
from cadence.domain.ports import CardStore

from .due_query import due_cards
from .id_service import generate_record_id, generate_session_id
from .scheduler import DEFAULT_PARAMS, SchedulerParams, schedule, validate_quality

logger = logging.getLogger(__name__)


def commit_grade(
    store: CardStore,
    snapshot: CardSnapshot,
    quality: int,
    reviewed_at: datetime,
    params: SchedulerParams = DEFAULT_PARAMS,
    session_id: str | None = None,
) -> GradeResult:
    """
    Schedule one review and persist it.

    The version of ``snapshot.state`` is the optimistic-concurrency token:
    if the stored card changed since the snapshot was read, the store
    raises Conflict and nothing is written.
    """
    validate_quality(quality)
    previous = snapshot.state
    new_state = schedule(previous, quality, reviewed_at, params)
    record = ReviewRecord(
        id=generate_record_id(),
        card_id=snapshot.card.id,
        reviewed_at=new_state.last_reviewed_at,
        quality=quality,
        stage_before=previous.stage,
        interval_after=new_state.interval_days,
        session_id=session_id,
    )
    stored = store.apply_review(snapshot.card.id, new_state, record, previous.version)
    logger.info(
        f"Graded {snapshot.card.id} q={quality}: {previous.stage.value} -> "
        f"{stored.stage.value}, interval {stored.interval_days}d"
    )
    return GradeResult(
        card_id=snapshot.card.id, record=record, previous_state=previous, state=stored
    )


def revert_grade(store: CardStore, result: GradeResult) -> None:
    """Roll back a committed grade: restore the prior state, drop its record."""
    store.revert_review(
        result.card_id, result.record.id, result.previous_state, result.state.version
    )
    logger.info(f"Reverted review {result.record.id} of {result.card_id}")


@dataclass
class _PendingUndo:
    snapshot: CardSnapshot
    result: GradeResult


class ReviewSession:
    """
    One sitting of reviews over a fixed due queue.

    The queue is computed once in start() and never re-queried, so the due
    set stays stable even if the session spans real time. Every grade is
    scheduled at the session's ``now``.

    Failures from the store (Conflict, StorageFailure, NotFound) propagate
    and leave the queue position unchanged.
    """

    def __init__(self, store: CardStore, params: SchedulerParams | None = None):
        self._store = store
        self._params = params or DEFAULT_PARAMS
        self._queue: deque[CardSnapshot] = deque()
        self._pending: _PendingUndo | None = None
        self.now: datetime | None = None
        self.deck: str | None = None
        self.session_id: str | None = None
        self.reviewed = 0

    def start(self, now: datetime, deck: str | None = None) -> int:
        """
        Build the due queue at snapshot time ``now``.

        Returns:
            Number of cards queued.
        """
        self.now = now
        self.deck = deck
        self.session_id = generate_session_id()
        self._queue = deque(due_cards(self._store.list_snapshots(deck), now, deck))
        self._pending = None
        self.reviewed = 0
        logger.info(
            f"Session {self.session_id} started: {len(self._queue)} due"
            + (f" in deck '{deck}'" if deck else "")
        )
        return len(self._queue)

    @property
    def started(self) -> bool:
        return self.now is not None

    @property
    def remaining(self) -> int:
        return len(self._queue)

    @property
    def can_undo(self) -> bool:
        return self._pending is not None

    def current(self) -> CardSnapshot | None:
        """The next card to review, or None once the queue is exhausted."""
        return self._queue[0] if self._queue else None

    def grade(self, quality: int) -> GradeResult:
        """
        Grade the current card.

        Raises:
            RuntimeError: If the session was not started or the queue is empty.
            InvalidGrade: If quality is outside [0, 5]; nothing is written.
        """
        if not self.started:
            raise RuntimeError("session not started")
        snapshot = self.current()
        if snapshot is None:
            raise RuntimeError("no card to grade: queue is exhausted")

        result = commit_grade(
            self._store,
            snapshot,
            quality,
            self.now,
            self._params,
            session_id=self.session_id,
        )
        self._queue.popleft()
        self._pending = _PendingUndo(snapshot=snapshot, result=result)
        self.reviewed += 1
        return result

    def undo_last(self) -> CardSnapshot:
        """
        Revert the most recent grade and put its card back at the front.

        Returns:
            The restored card snapshot.

        Raises:
            NothingToUndo: If no grade has been issued since start or the last undo.
        """
        if self._pending is None:
            raise NothingToUndo()

        pending = self._pending
        revert_grade(self._store, pending.result)
        self._pending = None
        self._queue.appendleft(pending.snapshot)
        self.reviewed -= 1
        return pending.snapshot

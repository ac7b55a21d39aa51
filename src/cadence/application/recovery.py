"""
Replay-based recovery of scheduling state.

The review log is the source of truth: any card's state can be rebuilt by
folding its history through the scheduler. audit_store reports cards whose
cached state has drifted from the replay; repair_store writes the replayed
state back.
"""

import logging
from dataclasses import dataclass

from cadence.domain.models import SchedulingState
from cadence.domain.ports import CardStore

from .scheduler import DEFAULT_PARAMS, SchedulerParams, replay, states_equivalent

logger = logging.getLogger(__name__)


@dataclass
class StateDrift:
    """A card whose stored state disagrees with its replayed history."""

    card_id: str
    stored: SchedulingState
    replayed: SchedulingState
    review_count: int


def rebuild_state(
    store: CardStore, card_id: str, params: SchedulerParams = DEFAULT_PARAMS
) -> SchedulingState:
    """Replay one card's history and return the derived state (unversioned)."""
    snapshot = store.get_card(card_id)
    return replay(snapshot.card, store.history(card_id), params)


def audit_store(
    store: CardStore,
    deck: str | None = None,
    params: SchedulerParams = DEFAULT_PARAMS,
) -> list[StateDrift]:
    """
    Compare every stored state against the replay of its history.

    Cards that were never reviewed are only checked for stage and counters;
    their due time may legitimately differ from the creation time.
    """
    drifts: list[StateDrift] = []
    for snapshot in store.list_snapshots(deck):
        records = store.history(snapshot.card.id)
        replayed = replay(snapshot.card, records, params)
        if not records:
            ok = (
                snapshot.state.stage is replayed.stage
                and snapshot.state.repetitions == 0
                and snapshot.state.last_reviewed_at is None
            )
        else:
            ok = states_equivalent(snapshot.state, replayed)
        if not ok:
            logger.warning(f"State drift on {snapshot.card.id} ({len(records)} reviews)")
            drifts.append(
                StateDrift(
                    card_id=snapshot.card.id,
                    stored=snapshot.state,
                    replayed=replayed,
                    review_count=len(records),
                )
            )
    return drifts


def repair_store(store: CardStore, drifts: list[StateDrift]) -> int:
    """
    Overwrite drifted states with their replayed values.

    Each write is guarded by the version read during the audit, so a card
    reviewed in the meantime raises Conflict instead of being clobbered.

    Returns:
        Number of cards repaired.
    """
    repaired = 0
    for drift in drifts:
        store.replace_state(drift.card_id, drift.replayed, drift.stored.version)
        logger.info(f"Repaired {drift.card_id} from {drift.review_count} reviews")
        repaired += 1
    return repaired

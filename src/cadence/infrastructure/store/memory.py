"""
In-memory Card Store — Infrastructure adapter backed by dictionaries.

Implements CardStore for tests and throwaway sessions. Models are frozen,
so handing them out directly cannot leak mutations back into the store.
"""

import logging
from dataclasses import replace

from cadence.application.id_service import generate_version
from cadence.domain.errors import Conflict, NotFound
from cadence.domain.models import Card, CardSnapshot, ReviewRecord, SchedulingState
from cadence.domain.ports import CardStore

logger = logging.getLogger(__name__)


class InMemoryCardStore(CardStore):
    def __init__(self):
        # dicts keep insertion order
        self._cards: dict[str, Card] = {}
        self._states: dict[str, SchedulingState] = {}
        self._history: dict[str, list[ReviewRecord]] = {}

    def _require(self, card_id: str) -> SchedulingState:
        try:
            return self._states[card_id]
        except KeyError:
            raise NotFound(card_id) from None

    def _check_version(self, card_id: str, expected_version: str | None) -> None:
        current = self._require(card_id)
        if current.version != expected_version:
            raise Conflict(card_id, expected_version, current.version)

    def get_card(self, card_id: str) -> CardSnapshot:
        state = self._require(card_id)
        return CardSnapshot(card=self._cards[card_id], state=state)

    def list_cards(self, deck: str | None = None) -> list[Card]:
        return [c for c in self._cards.values() if deck is None or c.deck == deck]

    def list_snapshots(self, deck: str | None = None) -> list[CardSnapshot]:
        return [CardSnapshot(card=c, state=self._states[c.id]) for c in self.list_cards(deck)]

    def apply_review(
        self,
        card_id: str,
        new_state: SchedulingState,
        record: ReviewRecord,
        expected_version: str | None,
    ) -> SchedulingState:
        if record.card_id != card_id:
            raise ValueError(f"record {record.id} belongs to {record.card_id}, not {card_id}")
        self._check_version(card_id, expected_version)
        stored = replace(new_state, version=generate_version())
        self._states[card_id] = stored
        self._history[card_id].append(record)
        logger.debug(f"apply_review {card_id} record={record.id}")
        return stored

    def revert_review(
        self,
        card_id: str,
        record_id: str,
        previous_state: SchedulingState,
        expected_version: str | None,
    ) -> None:
        self._check_version(card_id, expected_version)
        records = self._history[card_id]
        if not any(r.id == record_id for r in records):
            raise NotFound(record_id, what="review record")
        if records[-1].id != record_id:
            raise Conflict(card_id, record_id, records[-1].id)
        records.pop()
        self._states[card_id] = previous_state
        logger.debug(f"revert_review {card_id} record={record_id}")

    def history(self, card_id: str) -> list[ReviewRecord]:
        self._require(card_id)
        return list(self._history[card_id])

    def add_card(self, card: Card, state: SchedulingState) -> SchedulingState:
        if card.id in self._cards:
            raise Conflict(card.id, None, self._states[card.id].version)
        stored = replace(state, version=generate_version())
        self._cards[card.id] = card
        self._states[card.id] = stored
        self._history[card.id] = []
        return stored

    def delete_card(self, card_id: str) -> None:
        self._require(card_id)
        del self._cards[card_id]
        del self._states[card_id]
        del self._history[card_id]

    def replace_state(
        self, card_id: str, state: SchedulingState, expected_version: str | None
    ) -> SchedulingState:
        self._check_version(card_id, expected_version)
        stored = replace(state, version=generate_version())
        self._states[card_id] = stored
        return stored

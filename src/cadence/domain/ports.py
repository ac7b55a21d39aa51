"""
Ports (interfaces) for card persistence.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod

from .models import Card, CardSnapshot, ReviewRecord, SchedulingState


class CardStore(ABC):
    """
    Port for durable storage of cards, their scheduling state and review history.

    Implementations:
        - InMemoryCardStore: Process-local dictionaries, for tests and scratch use.
        - SqliteCardStore: A local SQLite database file.

    Only the write operations (apply_review, revert_review, replace_state,
    add_card, delete_card) change stored data. Every write is all-or-nothing.
    """

    @abstractmethod
    def get_card(self, card_id: str) -> CardSnapshot:
        """
        Fetch a card and its current scheduling state.

        Raises:
            NotFound: If the id is unknown.
        """

    @abstractmethod
    def list_cards(self, deck: str | None = None) -> list[Card]:
        """
        List cards in insertion order, optionally restricted to one deck.
        """

    @abstractmethod
    def list_snapshots(self, deck: str | None = None) -> list[CardSnapshot]:
        """
        Same as list_cards, paired with each card's scheduling state.
        """

    @abstractmethod
    def apply_review(
        self,
        card_id: str,
        new_state: SchedulingState,
        record: ReviewRecord,
        expected_version: str | None,
    ) -> SchedulingState:
        """
        Replace the card's state and append the review record in one unit.

        Args:
            card_id: Card being reviewed.
            new_state: Replacement state (its version is ignored).
            record: History entry to append.
            expected_version: Version of the state the caller read.

        Returns:
            The stored state, carrying its freshly assigned version.

        Raises:
            NotFound: If the id is unknown.
            ValueError: If record.card_id is not card_id; nothing is written.
            Conflict: If the stored version differs from expected_version.
        """

    @abstractmethod
    def revert_review(
        self,
        card_id: str,
        record_id: str,
        previous_state: SchedulingState,
        expected_version: str | None,
    ) -> None:
        """
        Undo the most recent apply_review for a card.

        Restores previous_state verbatim (version included) and removes
        record_id, which must be the newest record of the card.

        Raises:
            NotFound: If the card or record is unknown.
            Conflict: If the stored version differs from expected_version or
                record_id is not the newest record.
        """

    @abstractmethod
    def history(self, card_id: str) -> list[ReviewRecord]:
        """
        Full review history of a card, oldest first.

        Raises:
            NotFound: If the id is unknown.
        """

    @abstractmethod
    def add_card(self, card: Card, state: SchedulingState) -> SchedulingState:
        """
        Insert a new card with its initial state.

        Returns:
            The stored state with its assigned version.
        """

    @abstractmethod
    def delete_card(self, card_id: str) -> None:
        """
        Remove a card together with its state and history.

        Raises:
            NotFound: If the id is unknown.
        """

    @abstractmethod
    def replace_state(
        self, card_id: str, state: SchedulingState, expected_version: str | None
    ) -> SchedulingState:
        """
        Overwrite a card's state without touching history (replay repair).

        Raises:
            NotFound: If the id is unknown.
            Conflict: If the stored version differs from expected_version.
        """

    def decks(self) -> list[str]:
        """Distinct deck names in first-seen order."""
        return list(dict.fromkeys(card.deck for card in self.list_cards()))

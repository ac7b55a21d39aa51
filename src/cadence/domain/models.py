"""
Domain models for cards and their scheduling state.

These are pure data structures with no I/O or external dependencies.
All of them are frozen: a new SchedulingState replaces the old one whole.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from .constants import INITIAL_EASE


class Stage(str, Enum):
    """Position of a card in the learning state machine."""

    NEW = "new"
    LEARNING = "learning"
    REVIEW = "review"
    RELEARNING = "relearning"


# Lower sorts first: struggling cards surface before fresh ones.
STAGE_PRIORITY = {
    Stage.RELEARNING: 0,
    Stage.LEARNING: 1,
    Stage.REVIEW: 2,
    Stage.NEW: 3,
}


class CardType(str, Enum):
    BASIC = "basic"
    CLOZE = "cloze"
    MULTIPLE_CHOICE = "multiple_choice"

    @classmethod
    def parse(cls, raw: "str | CardType") -> "CardType":
        """
        Parse a card type name, accepting the common aliases.

        Raises:
            ValueError: If the name is not a known card type.
        """
        if isinstance(raw, CardType):
            return raw
        norm = raw.strip().lower()
        if norm in ("basic", "frontback", "front_back"):
            return cls.BASIC
        if norm == "cloze":
            return cls.CLOZE
        if norm in ("mc", "multiplechoice", "multiple choice", "multiple_choice"):
            return cls.MULTIPLE_CHOICE
        raise ValueError(
            f"unknown card_type '{raw}'; use basic, cloze, or mc/multiplechoice"
        )


@dataclass(frozen=True)
class Card:
    """
    A flashcard.

    Attributes:
        id: Stable unique id (``card_<ULID>``).
        front: Prompt side.
        back: Answer side.
        created_at: Creation time (tz-aware).
        deck: Owning deck / category tag.
        card_type: Rendering hint for the review UI.
        tags: Free-form labels.
    """

    id: str
    front: str
    back: str
    created_at: datetime
    deck: str = "Default"
    card_type: CardType = CardType.BASIC
    tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class SchedulingState:
    """
    Current scheduling state of one card.

    Attributes:
        stage: Learning state machine position.
        repetitions: Consecutive passing reviews since the last lapse.
        ease_factor: Interval growth multiplier (never below the ease floor).
        interval_days: Spacing until the next review; 0 only for new cards.
        due_at: Next scheduled review.
        last_reviewed_at: Time of the most recent graded review, if any.
        version: Opaque token assigned by the store on every write.
    """

    stage: Stage
    repetitions: int
    ease_factor: float
    interval_days: int
    due_at: datetime
    last_reviewed_at: datetime | None = None
    version: str | None = None

    @classmethod
    def initial(cls, now: datetime, ease_factor: float = INITIAL_EASE) -> "SchedulingState":
        """State of a freshly created card: new and due immediately."""
        return cls(
            stage=Stage.NEW,
            repetitions=0,
            ease_factor=ease_factor,
            interval_days=0,
            due_at=now,
        )


@dataclass(frozen=True)
class ReviewRecord:
    """
    A single graded review. Append-only.

    Attributes:
        id: Record id (``rev_<ULID>``).
        card_id: The card that was reviewed.
        reviewed_at: Time of the review.
        quality: Grade 0-5.
        stage_before: Stage the card was in when graded.
        interval_after: Interval assigned by this review (days).
        session_id: Review session that produced the record, if any.
    """

    id: str
    card_id: str
    reviewed_at: datetime
    quality: int
    stage_before: Stage
    interval_after: int
    session_id: str | None = None


@dataclass(frozen=True)
class CardSnapshot:
    """A card together with the scheduling state read alongside it."""

    card: Card
    state: SchedulingState

    @property
    def id(self) -> str:
        return self.card.id


@dataclass(frozen=True)
class GradeResult:
    """Outcome of one committed review, for display."""

    card_id: str
    record: ReviewRecord
    previous_state: SchedulingState
    state: SchedulingState

    @property
    def interval_days(self) -> int:
        return self.state.interval_days

    @property
    def due_at(self) -> datetime:
        return self.state.due_at


@dataclass
class HistorySummary:
    """
    Read-only review history of a card with derived figures.

    This is the object the UI uses for lines like
    "reviewed 12 times, last on 2026-10-01".
    """

    card_id: str
    review_count: int
    lapse_count: int
    last_reviewed_at: datetime | None
    retention_rate: float | None  # passes / reviews
    average_quality: float | None
    records: list[ReviewRecord] = field(default_factory=list)

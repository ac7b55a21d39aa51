"""
SM-2 scheduler with a short learning ladder.

This is a pure computation module with no I/O and no clock access: the
review time is always passed in by the caller.

Transition rules, for a grade q in [0, 5]:

- q < passing grade (lapse): repetitions -> 0, stage -> relearning,
  interval -> lapse interval, ease -> ease - penalty (floored).
- pass while new/learning/relearning: walk the learning ladder
  (1 day, then 6 days by default); once the ladder is exhausted the card
  is promoted to review with a multiplied interval.
- pass while in review: interval -> round(interval * ease), at least one
  day longer than before; then ease += 0.1 - (5-q)(0.08 + (5-q)0.02).
"""

import math
from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import datetime, timedelta

from cadence.domain.constants import (
    INITIAL_EASE,
    LAPSE_INTERVAL_DAYS,
    LAPSE_PENALTY,
    LEARNING_STEPS_DAYS,
    MAX_QUALITY,
    MIN_EASE,
    MIN_QUALITY,
    PASSING_GRADE,
)
from cadence.domain.errors import InvalidGrade
from cadence.domain.models import Card, ReviewRecord, SchedulingState, Stage


@dataclass(frozen=True)
class SchedulerParams:
    """Tunable constants of the scheduling algorithm."""

    initial_ease: float = INITIAL_EASE
    min_ease: float = MIN_EASE
    lapse_penalty: float = LAPSE_PENALTY
    lapse_interval: int = LAPSE_INTERVAL_DAYS
    learning_steps: tuple[int, ...] = LEARNING_STEPS_DAYS
    passing_grade: int = PASSING_GRADE


DEFAULT_PARAMS = SchedulerParams()


def validate_quality(quality: object) -> int:
    """
    Check a grade without clamping it.

    Raises:
        InvalidGrade: If quality is not an int in [0, 5].
    """
    # bool is an int subclass; True is not a grade
    if isinstance(quality, bool) or not isinstance(quality, int):
        raise InvalidGrade(quality)
    if quality < MIN_QUALITY or quality > MAX_QUALITY:
        raise InvalidGrade(quality)
    return quality


def is_lapse(quality: int, params: SchedulerParams = DEFAULT_PARAMS) -> bool:
    return quality < params.passing_grade


def ease_delta(quality: int) -> float:
    """SM-2 ease adjustment: +0.10 at q=5, 0 at q=4, -0.14 at q=3."""
    miss = MAX_QUALITY - quality
    return 0.1 - miss * (0.08 + miss * 0.02)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _grown_interval(interval_days: int, ease_factor: float) -> int:
    return max(_round_half_up(interval_days * ease_factor), interval_days + 1)


def schedule(
    state: SchedulingState,
    quality: int,
    reviewed_at: datetime,
    params: SchedulerParams = DEFAULT_PARAMS,
) -> SchedulingState:
    """
    Compute the state that follows a graded review.

    Args:
        state: Current scheduling state.
        quality: Grade 0-5.
        reviewed_at: Time of the review.
        params: Algorithm constants.

    Returns:
        The replacement state. Its version is copied from ``state``; the
        store assigns a new one when the state is persisted.

    Raises:
        InvalidGrade: If quality is outside [0, 5].
    """
    validate_quality(quality)

    # A review never moves the clock backwards for the card.
    if state.last_reviewed_at is not None and reviewed_at < state.last_reviewed_at:
        reviewed_at = state.last_reviewed_at

    if is_lapse(quality, params):
        stage = Stage.RELEARNING
        repetitions = 0
        interval = params.lapse_interval
        ease = max(state.ease_factor - params.lapse_penalty, params.min_ease)

    elif state.stage is Stage.REVIEW:
        stage = Stage.REVIEW
        repetitions = state.repetitions + 1
        interval = _grown_interval(state.interval_days, state.ease_factor)
        ease = max(state.ease_factor + ease_delta(quality), params.min_ease)

    else:
        repetitions = state.repetitions + 1
        ease = state.ease_factor
        if state.repetitions < len(params.learning_steps):
            interval = params.learning_steps[state.repetitions]
            stage = Stage.RELEARNING if state.stage is Stage.RELEARNING else Stage.LEARNING
        else:
            interval = _grown_interval(state.interval_days, state.ease_factor)
            stage = Stage.REVIEW

    return replace(
        state,
        stage=stage,
        repetitions=repetitions,
        ease_factor=ease,
        interval_days=interval,
        due_at=reviewed_at + timedelta(days=interval),
        last_reviewed_at=reviewed_at,
    )


def replay(
    card: Card,
    records: Iterable[ReviewRecord],
    params: SchedulerParams = DEFAULT_PARAMS,
) -> SchedulingState:
    """
    Rebuild a card's state from scratch by folding its history through schedule().

    The result has no version; compare it with a stored state using
    ``states_equivalent``.
    """
    state = SchedulingState.initial(card.created_at, ease_factor=params.initial_ease)
    for record in records:
        state = schedule(state, record.quality, record.reviewed_at, params)
    return state


def states_equivalent(a: SchedulingState, b: SchedulingState, tolerance: float = 1e-9) -> bool:
    """Compare two states field by field, ignoring versions."""
    return (
        a.stage is b.stage
        and a.repetitions == b.repetitions
        and abs(a.ease_factor - b.ease_factor) <= tolerance
        and a.interval_days == b.interval_days
        and a.due_at == b.due_at
        and a.last_reviewed_at == b.last_reviewed_at
    )

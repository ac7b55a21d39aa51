import random
from dataclasses import replace
from datetime import timedelta

import pytest

from cadence.application.scheduler import (
    SchedulerParams,
    ease_delta,
    replay,
    schedule,
    states_equivalent,
)
from cadence.domain.errors import InvalidGrade
from cadence.domain.models import Card, ReviewRecord, SchedulingState, Stage

DAY = timedelta(days=1)


def review_state(t0, ease=2.5, interval=10, reps=4):
    return SchedulingState(
        stage=Stage.REVIEW,
        repetitions=reps,
        ease_factor=ease,
        interval_days=interval,
        due_at=t0,
        last_reviewed_at=t0 - interval * DAY,
        version="v1",
    )


def test_learning_ladder_then_promotion(t0):
    state = SchedulingState.initial(t0)

    state = schedule(state, 4, t0)
    assert state.stage is Stage.LEARNING
    assert state.interval_days == 1
    assert state.repetitions == 1
    assert state.due_at == t0 + DAY
    assert state.last_reviewed_at == t0

    state = schedule(state, 4, t0 + DAY)
    assert state.stage is Stage.LEARNING
    assert state.interval_days == 6
    assert state.repetitions == 2
    assert state.due_at == t0 + 7 * DAY

    state = schedule(state, 5, t0 + 7 * DAY)
    assert state.stage is Stage.REVIEW
    assert state.interval_days == 15  # round(6 * 2.5)
    assert state.repetitions == 3
    assert state.due_at == t0 + 22 * DAY


def test_lapse_from_review(t0):
    state = schedule(review_state(t0), 2, t0)
    assert state.stage is Stage.RELEARNING
    assert state.repetitions == 0
    assert state.interval_days == 1
    assert state.ease_factor == pytest.approx(2.3)
    assert state.due_at == t0 + DAY


@pytest.mark.parametrize("stage", list(Stage))
@pytest.mark.parametrize("quality", [0, 1, 2])
def test_lapse_resets_regardless_of_stage(t0, stage, quality):
    state = replace(review_state(t0), stage=stage)
    after = schedule(state, quality, t0)
    assert after.stage is Stage.RELEARNING
    assert after.repetitions == 0
    assert after.interval_days == 1


@pytest.mark.parametrize(
    "quality,ease_after,interval_after",
    [(5, 2.6, 38), (4, 2.5, 38), (3, 2.36, 38)],
)
def test_review_pass_grows_interval_with_prior_ease(t0, quality, ease_after, interval_after):
    after = schedule(review_state(t0, interval=15), quality, t0)
    assert after.stage is Stage.REVIEW
    assert after.repetitions == 5
    assert after.interval_days == interval_after
    assert after.ease_factor == pytest.approx(ease_after)


def test_review_pass_grows_by_at_least_one_day(t0):
    after = schedule(review_state(t0, ease=1.3, interval=1), 4, t0)
    assert after.interval_days == 2


def test_ease_never_drops_below_floor(t0):
    lapsed = schedule(review_state(t0, ease=1.35), 0, t0)
    assert lapsed.ease_factor == pytest.approx(1.3)

    hard = schedule(review_state(t0, ease=1.3), 3, t0)
    assert hard.ease_factor == pytest.approx(1.3)


def test_ease_delta_centred_on_four():
    assert ease_delta(5) == pytest.approx(0.1)
    assert ease_delta(4) == pytest.approx(0.0)
    assert ease_delta(3) == pytest.approx(-0.14)


def test_relearning_walks_ladder_before_review(t0):
    state = schedule(review_state(t0), 1, t0)
    assert state.stage is Stage.RELEARNING

    state = schedule(state, 4, t0 + DAY)
    assert (state.stage, state.interval_days, state.repetitions) == (Stage.RELEARNING, 1, 1)
    state = schedule(state, 4, t0 + 2 * DAY)
    assert (state.stage, state.interval_days, state.repetitions) == (Stage.RELEARNING, 6, 2)
    state = schedule(state, 4, t0 + 8 * DAY)
    assert state.stage is Stage.REVIEW
    assert state.interval_days == round(6 * 2.3)


def test_learning_does_not_touch_ease(t0):
    state = SchedulingState.initial(t0)
    state = schedule(state, 3, t0)
    state = schedule(state, 5, t0 + DAY)
    assert state.ease_factor == 2.5


@pytest.mark.parametrize("quality", [-1, 6, 10, 2.5, "4", None, True])
def test_invalid_grade_rejected(t0, quality):
    with pytest.raises(InvalidGrade):
        schedule(SchedulingState.initial(t0), quality, t0)


def test_schedule_is_pure(t0):
    state = review_state(t0)
    assert schedule(state, 4, t0) == schedule(state, 4, t0)
    assert state == review_state(t0)


def test_version_is_carried_through(t0):
    assert schedule(review_state(t0), 4, t0).version == "v1"


def test_review_time_never_moves_backwards(t0):
    state = review_state(t0)  # last reviewed t0 - 10 days
    earlier = t0 - 20 * DAY
    after = schedule(state, 4, earlier)
    assert after.last_reviewed_at == state.last_reviewed_at
    assert after.due_at >= after.last_reviewed_at


def test_custom_params(t0):
    params = SchedulerParams(learning_steps=(1, 3, 7), lapse_penalty=0.3, lapse_interval=2)
    state = SchedulingState.initial(t0)
    intervals = []
    for i in range(4):
        state = schedule(state, 4, t0 + i * DAY, params)
        intervals.append(state.interval_days)
    assert intervals == [1, 3, 7, round(7 * 2.5)]

    lapsed = schedule(state, 0, t0 + 30 * DAY, params)
    assert lapsed.interval_days == 2
    assert lapsed.ease_factor == pytest.approx(2.2)


@pytest.mark.parametrize("seed", range(25))
def test_invariants_hold_for_random_grade_sequences(t0, seed):
    rng = random.Random(seed)
    state = SchedulingState.initial(t0)
    now = t0
    for _ in range(40):
        quality = rng.randint(0, 5)
        previous = state
        state = schedule(state, quality, now)

        assert state.interval_days >= 1
        assert state.ease_factor >= 1.3
        assert state.repetitions >= 0
        assert state.due_at > state.last_reviewed_at
        if quality < 3:
            assert state.repetitions == 0
            assert state.stage is Stage.RELEARNING
        else:
            assert state.repetitions == previous.repetitions + 1

        now = now + timedelta(days=rng.randint(0, state.interval_days + 3))


def test_replay_rebuilds_state(t0):
    card = Card(id="card_1", front="F", back="B", created_at=t0)
    grades = [(4, t0), (4, t0 + DAY), (2, t0 + 7 * DAY), (5, t0 + 8 * DAY), (5, t0 + 9 * DAY)]

    state = SchedulingState.initial(t0)
    records = []
    for i, (q, at) in enumerate(grades):
        records.append(
            ReviewRecord(
                id=f"rev_{i}",
                card_id=card.id,
                reviewed_at=at,
                quality=q,
                stage_before=state.stage,
                interval_after=0,
            )
        )
        state = schedule(state, q, at)

    rebuilt = replay(card, records)
    assert states_equivalent(rebuilt, state)
    assert rebuilt.version is None


def test_replay_of_empty_history_is_initial_state(t0):
    card = Card(id="card_1", front="F", back="B", created_at=t0)
    assert replay(card, []) == SchedulingState.initial(t0)

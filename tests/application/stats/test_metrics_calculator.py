from datetime import timedelta

import pytest

from cadence.application.stats.metrics_calculator import CardFilter, MetricsCalculator
from cadence.domain.models import Card, CardSnapshot, ReviewRecord, SchedulingState, Stage

DAY = timedelta(days=1)


@pytest.fixture
def calculator():
    return MetricsCalculator()


def snap(t0, card_id="c", ease=2.5, reps=0, reviewed=True, due_in=1, deck="D"):
    card = Card(id=card_id, front="F", back="B", created_at=t0, deck=deck)
    state = SchedulingState(
        stage=Stage.REVIEW if reviewed else Stage.NEW,
        repetitions=reps,
        ease_factor=ease,
        interval_days=1 if reviewed else 0,
        due_at=t0 + due_in * DAY,
        last_reviewed_at=t0 - DAY if reviewed else None,
    )
    return CardSnapshot(card=card, state=state)


def test_new_and_due_filters(calculator, t0):
    fresh = snap(t0, reviewed=False, due_in=0)
    later = snap(t0, due_in=3)
    assert calculator.matches(fresh, CardFilter.NEW, t0)
    assert calculator.matches(fresh, CardFilter.DUE, t0)
    assert not calculator.matches(later, CardFilter.NEW, t0)
    assert not calculator.matches(later, CardFilter.DUE, t0)
    assert calculator.matches(later, CardFilter.ALL, t0)


@pytest.mark.parametrize(
    "ease,expected",
    [
        (1.3, CardFilter.HARD),
        (1.79, CardFilter.HARD),
        (1.8, CardFilter.MEDIUM),
        (2.3, CardFilter.EASY),
        (2.5, CardFilter.EASY),
        (2.8, CardFilter.PERFECT),
        (3.4, CardFilter.PERFECT),
    ],
)
def test_ease_bands_are_exclusive(calculator, t0, ease, expected):
    s = snap(t0, ease=ease)
    bands = [CardFilter.HARD, CardFilter.MEDIUM, CardFilter.EASY, CardFilter.PERFECT]
    assert [b for b in bands if calculator.matches(s, b, t0)] == [expected]


def test_mastered(calculator, t0):
    assert calculator.matches(snap(t0, ease=2.5, reps=5), CardFilter.MASTERED, t0)
    assert not calculator.matches(snap(t0, ease=2.4, reps=9), CardFilter.MASTERED, t0)
    assert not calculator.matches(snap(t0, ease=2.9, reps=4), CardFilter.MASTERED, t0)


def test_deck_summary(calculator, t0):
    population = [
        snap(t0, "a", reviewed=False, due_in=0, deck="Spanish"),
        snap(t0, "b", ease=1.5, due_in=-1, deck="Spanish"),
        snap(t0, "c", ease=2.9, reps=6, due_in=4, deck="Physics"),
    ]
    summary = calculator.deck_summary(population, t0)
    assert summary.total == 3
    assert summary.due == 2
    assert summary.counts[CardFilter.NEW] == 1
    assert summary.counts[CardFilter.HARD] == 1
    assert summary.counts[CardFilter.MASTERED] == 1
    assert summary.headline() == "Due: 2 / Total: 3"

    spanish = calculator.deck_summary(population, t0, deck="Spanish")
    assert spanish.total == 2
    assert spanish.counts[CardFilter.PERFECT] == 0


def test_filter_cards(calculator, t0):
    population = [snap(t0, "a", ease=1.4), snap(t0, "b", ease=2.6)]
    assert [s.card.id for s in calculator.filter_cards(population, CardFilter.HARD, t0)] == ["a"]


def test_summarize_history(calculator, t0):
    records = [
        ReviewRecord(f"rev_{i}", "c", t0 + i * DAY, q, Stage.REVIEW, 1)
        for i, q in enumerate([5, 2, 3, 0])
    ]
    summary = calculator.summarize_history("c", records)
    assert summary.review_count == 4
    assert summary.lapse_count == 2
    assert summary.retention_rate == 0.5
    assert summary.average_quality == 2.5
    assert summary.last_reviewed_at == t0 + 3 * DAY


def test_passing_grade_is_configurable(t0):
    records = [ReviewRecord("rev_1", "c", t0, 3, Stage.REVIEW, 1)]
    assert MetricsCalculator(passing_grade=4).summarize_history("c", records).lapse_count == 1

import sqlite3
from unittest.mock import patch

import pytest

from cadence.application.scheduler import schedule
from cadence.domain.errors import StorageFailure
from cadence.domain.models import Card, ReviewRecord, SchedulingState
from cadence.infrastructure.store.sqlite import SqliteCardStore


@pytest.fixture
def card(t0):
    return Card(id="card_1", front="F", back="B", created_at=t0, deck="D")


def test_creates_parent_directories(tmp_path):
    store = SqliteCardStore(tmp_path / "nested" / "dir" / "cards.db")
    assert store.db_path.exists()


def test_data_survives_reopen(tmp_path, card, t0):
    path = tmp_path / "cards.db"
    first = SqliteCardStore(path)
    state = first.add_card(card, SchedulingState.initial(t0))
    record = ReviewRecord("rev_1", card.id, t0, 4, state.stage, 1, session_id="s1")
    stored = first.apply_review(card.id, schedule(state, 4, t0), record, state.version)

    second = SqliteCardStore(path)
    assert second.get_card(card.id).state == stored
    assert second.history(card.id) == [record]


def test_apply_review_is_atomic(sqlite_store, card, t0):
    state = sqlite_store.add_card(card, SchedulingState.initial(t0))
    record = ReviewRecord("rev_1", card.id, t0, 4, state.stage, 1)
    after = sqlite_store.apply_review(card.id, schedule(state, 4, t0), record, state.version)

    # Reusing the record id violates the UNIQUE constraint after the state update ran.
    with pytest.raises(StorageFailure) as exc:
        sqlite_store.apply_review(card.id, schedule(after, 5, t0), record, after.version)

    assert isinstance(exc.value.__cause__, sqlite3.IntegrityError)
    assert sqlite_store.get_card(card.id).state == after
    assert len(sqlite_store.history(card.id)) == 1


def test_open_failure_is_wrapped(sqlite_store):
    with patch(
        "cadence.infrastructure.store.sqlite.sqlite3.connect",
        side_effect=sqlite3.OperationalError("unable to open database file"),
    ):
        with pytest.raises(StorageFailure) as exc:
            sqlite_store.list_cards()
    assert isinstance(exc.value.__cause__, sqlite3.OperationalError)


def test_quality_check_constraint(sqlite_store, card, t0):
    state = sqlite_store.add_card(card, SchedulingState.initial(t0))
    bogus = ReviewRecord("rev_1", card.id, t0, 9, state.stage, 1)
    with pytest.raises(StorageFailure):
        sqlite_store.apply_review(card.id, schedule(state, 4, t0), bogus, state.version)
    assert sqlite_store.history(card.id) == []

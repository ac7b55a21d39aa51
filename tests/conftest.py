from datetime import datetime, timedelta, timezone

import pytest

from cadence.application.service import FlashcardService
from cadence.infrastructure.store.memory import InMemoryCardStore
from cadence.infrastructure.store.sqlite import SqliteCardStore

T0 = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)
DAY = timedelta(days=1)


@pytest.fixture
def t0():
    return T0


@pytest.fixture
def memory_store():
    return InMemoryCardStore()


@pytest.fixture
def sqlite_store(tmp_path):
    return SqliteCardStore(tmp_path / "cards.db")


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    """Runs a test once per CardStore adapter."""
    if request.param == "memory":
        return InMemoryCardStore()
    return SqliteCardStore(tmp_path / "cards.db")


@pytest.fixture
def service(store):
    return FlashcardService(store)


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Mocking HOME to a temp directory to isolate config files
    monkeypatch.setenv("HOME", str(home))
    for var in ("CADENCE_BACKEND", "CADENCE_DB_PATH", "CADENCE_LEARNING_STEPS"):
        monkeypatch.delenv(var, raising=False)
    return home

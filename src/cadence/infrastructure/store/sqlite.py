"""
SQLite Card Store — Infrastructure adapter for a local database file.

Implements CardStore on top of the standard sqlite3 module. Each operation
opens its own connection and closes it before returning, so no handle is
held while the UI waits for the user. Writes run inside a single
``BEGIN IMMEDIATE`` transaction: they either fully apply or roll back.
"""

import json
import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from pathlib import Path

from cadence.application.id_service import generate_version
from cadence.domain.errors import Conflict, NotFound, StorageFailure
from cadence.domain.models import (
    Card,
    CardSnapshot,
    CardType,
    ReviewRecord,
    SchedulingState,
    Stage,
)
from cadence.domain.ports import CardStore

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS cards (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL UNIQUE,
    front TEXT NOT NULL,
    back TEXT NOT NULL,
    created_at TEXT NOT NULL,
    deck TEXT NOT NULL,
    card_type TEXT NOT NULL DEFAULT 'basic',
    tags JSON NOT NULL DEFAULT '[]'
);

CREATE TABLE IF NOT EXISTS scheduling_state (
    card_id TEXT PRIMARY KEY REFERENCES cards(id) ON DELETE CASCADE,
    stage TEXT NOT NULL CHECK(stage IN ('new','learning','review','relearning')),
    repetitions INTEGER NOT NULL CHECK(repetitions >= 0),
    ease_factor REAL NOT NULL,
    interval_days INTEGER NOT NULL CHECK(interval_days >= 0),
    due_at TEXT NOT NULL,
    last_reviewed_at TEXT,
    version TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS review_log (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL UNIQUE,
    card_id TEXT NOT NULL REFERENCES cards(id) ON DELETE CASCADE,
    reviewed_at TEXT NOT NULL,
    quality INTEGER NOT NULL CHECK(quality BETWEEN 0 AND 5),
    stage_before TEXT NOT NULL,
    interval_after INTEGER NOT NULL,
    session_id TEXT
);

CREATE INDEX IF NOT EXISTS idx_review_log_card ON review_log(card_id, seq);
"""

_CARD_COLUMNS = "c.id, c.front, c.back, c.created_at, c.deck, c.card_type, c.tags"
_STATE_COLUMNS = (
    "s.stage, s.repetitions, s.ease_factor, s.interval_days, "
    "s.due_at, s.last_reviewed_at, s.version"
)


def _dt_to_db(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _dt_from_db(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value is not None else None


def _row_to_card(row: sqlite3.Row) -> Card:
    return Card(
        id=row["id"],
        front=row["front"],
        back=row["back"],
        created_at=_dt_from_db(row["created_at"]),
        deck=row["deck"],
        card_type=CardType(row["card_type"]),
        tags=tuple(json.loads(row["tags"])),
    )


def _row_to_state(row: sqlite3.Row) -> SchedulingState:
    return SchedulingState(
        stage=Stage(row["stage"]),
        repetitions=row["repetitions"],
        ease_factor=row["ease_factor"],
        interval_days=row["interval_days"],
        due_at=_dt_from_db(row["due_at"]),
        last_reviewed_at=_dt_from_db(row["last_reviewed_at"]),
        version=row["version"],
    )


def _row_to_record(row: sqlite3.Row) -> ReviewRecord:
    return ReviewRecord(
        id=row["id"],
        card_id=row["card_id"],
        reviewed_at=_dt_from_db(row["reviewed_at"]),
        quality=row["quality"],
        stage_before=Stage(row["stage_before"]),
        interval_after=row["interval_after"],
        session_id=row["session_id"],
    )


def _state_params(state: SchedulingState) -> tuple:
    return (
        state.stage.value,
        state.repetitions,
        state.ease_factor,
        state.interval_days,
        _dt_to_db(state.due_at),
        _dt_to_db(state.last_reviewed_at),
        state.version,
    )


class SqliteCardStore(CardStore):
    """
    Stores cards, states and the review log in one SQLite file.

    Any sqlite3 error is surfaced as StorageFailure with the original
    exception chained as its cause.
    """

    def __init__(self, db_path: Path | str, timeout: float = 5.0):
        self.db_path = Path(db_path)
        self.timeout = timeout
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.executescript(SCHEMA)

    # ------------------------------------------------------------------
    # Connection handling
    # ------------------------------------------------------------------

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(
                str(self.db_path), timeout=self.timeout, isolation_level=None
            )
        except sqlite3.Error as e:
            raise StorageFailure(f"cannot open {self.db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA foreign_keys=ON")
            yield conn
        except sqlite3.Error as e:
            raise StorageFailure(f"database error on {self.db_path}: {e}") from e
        finally:
            conn.close()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    @staticmethod
    def _current_version(conn: sqlite3.Connection, card_id: str) -> str:
        row = conn.execute(
            "SELECT version FROM scheduling_state WHERE card_id = ?", (card_id,)
        ).fetchone()
        if row is None:
            raise NotFound(card_id)
        return row["version"]

    def _check_version(
        self, conn: sqlite3.Connection, card_id: str, expected_version: str | None
    ) -> None:
        current = self._current_version(conn, card_id)
        if current != expected_version:
            raise Conflict(card_id, expected_version, current)

    @staticmethod
    def _write_state(conn: sqlite3.Connection, card_id: str, state: SchedulingState) -> None:
        conn.execute(
            """
            UPDATE scheduling_state
            SET stage = ?, repetitions = ?, ease_factor = ?, interval_days = ?,
                due_at = ?, last_reviewed_at = ?, version = ?
            WHERE card_id = ?
            """,
            (*_state_params(state), card_id),
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_card(self, card_id: str) -> CardSnapshot:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {_CARD_COLUMNS}, {_STATE_COLUMNS} FROM cards c "
                "JOIN scheduling_state s ON s.card_id = c.id WHERE c.id = ?",
                (card_id,),
            ).fetchone()
        if row is None:
            raise NotFound(card_id)
        return CardSnapshot(card=_row_to_card(row), state=_row_to_state(row))

    def list_cards(self, deck: str | None = None) -> list[Card]:
        query = f"SELECT {_CARD_COLUMNS} FROM cards c"
        params: tuple = ()
        if deck is not None:
            query += " WHERE c.deck = ?"
            params = (deck,)
        with self._connect() as conn:
            rows = conn.execute(query + " ORDER BY c.seq", params).fetchall()
        return [_row_to_card(r) for r in rows]

    def list_snapshots(self, deck: str | None = None) -> list[CardSnapshot]:
        query = (
            f"SELECT {_CARD_COLUMNS}, {_STATE_COLUMNS} FROM cards c "
            "JOIN scheduling_state s ON s.card_id = c.id"
        )
        params: tuple = ()
        if deck is not None:
            query += " WHERE c.deck = ?"
            params = (deck,)
        with self._connect() as conn:
            rows = conn.execute(query + " ORDER BY c.seq", params).fetchall()
        return [CardSnapshot(card=_row_to_card(r), state=_row_to_state(r)) for r in rows]

    def history(self, card_id: str) -> list[ReviewRecord]:
        with self._connect() as conn:
            self._current_version(conn, card_id)
            rows = conn.execute(
                "SELECT * FROM review_log WHERE card_id = ? ORDER BY seq ASC", (card_id,)
            ).fetchall()
        return [_row_to_record(r) for r in rows]

    def decks(self) -> list[str]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT deck FROM cards GROUP BY deck ORDER BY MIN(seq)"
            ).fetchall()
        return [r["deck"] for r in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def apply_review(
        self,
        card_id: str,
        new_state: SchedulingState,
        record: ReviewRecord,
        expected_version: str | None,
    ) -> SchedulingState:
        if record.card_id != card_id:
            raise ValueError(f"record {record.id} belongs to {record.card_id}, not {card_id}")
        stored = replace(new_state, version=generate_version())
        with self._transaction() as conn:
            self._check_version(conn, card_id, expected_version)
            self._write_state(conn, card_id, stored)
            conn.execute(
                """
                INSERT INTO review_log
                    (id, card_id, reviewed_at, quality, stage_before, interval_after, session_id)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    card_id,
                    _dt_to_db(record.reviewed_at),
                    record.quality,
                    record.stage_before.value,
                    record.interval_after,
                    record.session_id,
                ),
            )
        logger.debug(f"apply_review {card_id} record={record.id}")
        return stored

    def revert_review(
        self,
        card_id: str,
        record_id: str,
        previous_state: SchedulingState,
        expected_version: str | None,
    ) -> None:
        with self._transaction() as conn:
            self._check_version(conn, card_id, expected_version)
            latest = conn.execute(
                "SELECT id FROM review_log WHERE card_id = ? ORDER BY seq DESC LIMIT 1",
                (card_id,),
            ).fetchone()
            if latest is None or latest["id"] != record_id:
                exists = conn.execute(
                    "SELECT 1 FROM review_log WHERE id = ? AND card_id = ?",
                    (record_id, card_id),
                ).fetchone()
                if exists is None:
                    raise NotFound(record_id, what="review record")
                raise Conflict(card_id, record_id, latest["id"])
            conn.execute("DELETE FROM review_log WHERE id = ?", (record_id,))
            self._write_state(conn, card_id, previous_state)
        logger.debug(f"revert_review {card_id} record={record_id}")

    def add_card(self, card: Card, state: SchedulingState) -> SchedulingState:
        stored = replace(state, version=generate_version())
        with self._transaction() as conn:
            existing = conn.execute("SELECT 1 FROM cards WHERE id = ?", (card.id,)).fetchone()
            if existing is not None:
                raise Conflict(card.id, None, self._current_version(conn, card.id))
            conn.execute(
                """
                INSERT INTO cards (id, front, back, created_at, deck, card_type, tags)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    card.id,
                    card.front,
                    card.back,
                    _dt_to_db(card.created_at),
                    card.deck,
                    card.card_type.value,
                    json.dumps(list(card.tags)),
                ),
            )
            conn.execute(
                """
                INSERT INTO scheduling_state
                    (stage, repetitions, ease_factor, interval_days,
                     due_at, last_reviewed_at, version, card_id)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (*_state_params(stored), card.id),
            )
        return stored

    def delete_card(self, card_id: str) -> None:
        with self._transaction() as conn:
            self._current_version(conn, card_id)
            # children first
            conn.execute("DELETE FROM review_log WHERE card_id = ?", (card_id,))
            conn.execute("DELETE FROM scheduling_state WHERE card_id = ?", (card_id,))
            conn.execute("DELETE FROM cards WHERE id = ?", (card_id,))
        logger.info(f"Deleted card {card_id} and its history")

    def replace_state(
        self, card_id: str, state: SchedulingState, expected_version: str | None
    ) -> SchedulingState:
        stored = replace(state, version=generate_version())
        with self._transaction() as conn:
            self._check_version(conn, card_id, expected_version)
            self._write_state(conn, card_id, stored)
        return stored

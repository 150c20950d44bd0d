"""
store/sqlite_store.py — SQLite Record Store

Async SQLite-backed store for booked talks and per-community channel
overrides.

Tables:
  - talks             : one row per booked speaker slot (scheduled_date UNIQUE)
  - channel_overrides : weekly summary destination per community

Dates are stored as ISO "YYYY-MM-DD" strings and timestamps as ISO-8601 UTC
strings, so equality and range filters on scheduled_date are plain string
comparisons.

Usage:
    store = SqliteStore("./data/sqlite/speakerbot.db")
    await store.init()
    talk = await store.add_talk(Talk(speaker_id="42", speaker_name="ada",
                                     topic="Parsers", scheduled_date=date(2026, 10, 20)))
    due = await store.find_talks(TalkFilter(scheduled_on=date(2026, 10, 20),
                                            reminder_unsent=ReminderKind.DAY_OF))
"""

from __future__ import annotations

import sqlite3
import uuid
from datetime import date, datetime
from pathlib import Path
from typing import Any, Optional

import aiosqlite

from speakerbot.exceptions import DuplicateTalkDateError, StoreError, StoreNotInitializedError
from speakerbot.observability.logger import get_logger
from speakerbot.store.base import RecordStore
from speakerbot.store.models import (
    ChannelOverride,
    ReminderKind,
    ReminderState,
    Talk,
    TalkFilter,
)

log = get_logger(__name__)

# ── Schema DDL ────────────────────────────────────────────────────────────────

_SCHEMA = """
CREATE TABLE IF NOT EXISTS talks (
    id               TEXT PRIMARY KEY,
    speaker_id       TEXT NOT NULL,
    speaker_name     TEXT NOT NULL,
    topic            TEXT NOT NULL,
    scheduled_date   TEXT NOT NULL UNIQUE,   -- YYYY-MM-DD (UTC calendar date)
    booked_at        TEXT NOT NULL,
    completed        INTEGER NOT NULL DEFAULT 0,
    thread_id        TEXT,
    booked_by_id     TEXT,
    booked_by_name   TEXT,
    sent_tminus1_at  TEXT,
    sent_day_of_at   TEXT
);

CREATE TABLE IF NOT EXISTS channel_overrides (
    community_id  TEXT PRIMARY KEY,
    channel_id    TEXT,
    updated_by    TEXT,
    updated_at    TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_talks_completed ON talks(completed);
"""

_MARKER_COLUMNS = {
    ReminderKind.TMINUS1: "sent_tminus1_at",
    ReminderKind.DAY_OF: "sent_day_of_at",
}


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None


def _parse_dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _row_to_talk(row: aiosqlite.Row) -> Talk:
    return Talk(
        id=row["id"],
        speaker_id=row["speaker_id"],
        speaker_name=row["speaker_name"],
        topic=row["topic"],
        scheduled_date=date.fromisoformat(row["scheduled_date"]),
        booked_at=datetime.fromisoformat(row["booked_at"]),
        completed=bool(row["completed"]),
        thread_id=row["thread_id"],
        booked_by_id=row["booked_by_id"],
        booked_by_name=row["booked_by_name"],
        reminders=ReminderState(
            sent_tminus1_at=_parse_dt(row["sent_tminus1_at"]),
            sent_day_of_at=_parse_dt(row["sent_day_of_at"]),
        ),
    )


def _build_where(talk_filter: TalkFilter) -> tuple[str, list[Any]]:
    clauses: list[str] = []
    params: list[Any] = []
    if talk_filter.scheduled_on is not None:
        clauses.append("scheduled_date = ?")
        params.append(talk_filter.scheduled_on.isoformat())
    if talk_filter.scheduled_from is not None:
        clauses.append("scheduled_date >= ?")
        params.append(talk_filter.scheduled_from.isoformat())
    if talk_filter.scheduled_before is not None:
        clauses.append("scheduled_date < ?")
        params.append(talk_filter.scheduled_before.isoformat())
    if talk_filter.reminder_unsent is not None:
        clauses.append(f"{_MARKER_COLUMNS[talk_filter.reminder_unsent]} IS NULL")
    if talk_filter.exclude_completed:
        clauses.append("completed = 0")
    where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
    return where, params


# ── Main class ────────────────────────────────────────────────────────────────

class SqliteStore(RecordStore):
    """
    aiosqlite implementation of RecordStore.

    Pass ":memory:" as db_path for a throwaway in-process database.
    """

    def __init__(self, db_path: str = "./data/sqlite/speakerbot.db"):
        self.db_path = db_path
        self._db: Optional[aiosqlite.Connection] = None

    async def init(self) -> None:
        """Create the database file and tables if they don't exist."""
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(self.db_path)
        self._db.row_factory = aiosqlite.Row
        await self._db.executescript(_SCHEMA)
        await self._db.commit()
        log.info("store.initialized", db_path=self.db_path)

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    def _require_db(self) -> aiosqlite.Connection:
        if self._db is None:
            raise StoreNotInitializedError(
                "SqliteStore is not initialised (or has been closed). "
                "Call `await store.init()` before use."
            )
        return self._db

    # ── Talks ─────────────────────────────────────────────────────────────────

    async def find_talks(
        self,
        talk_filter: TalkFilter,
        order_by_date: bool = True,
        limit: Optional[int] = None,
    ) -> list[Talk]:
        db = self._require_db()
        where, params = _build_where(talk_filter)
        sql = f"SELECT * FROM talks{where}"
        if order_by_date:
            sql += " ORDER BY scheduled_date ASC"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        try:
            async with db.execute(sql, params) as cursor:
                rows = await cursor.fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"find_talks failed: {e}") from e
        return [_row_to_talk(r) for r in rows]

    async def add_talk(self, talk: Talk) -> Talk:
        db = self._require_db()
        talk.id = talk.id or uuid.uuid4().hex
        try:
            await db.execute(
                """INSERT INTO talks
                   (id, speaker_id, speaker_name, topic, scheduled_date, booked_at,
                    completed, thread_id, booked_by_id, booked_by_name,
                    sent_tminus1_at, sent_day_of_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    talk.id,
                    talk.speaker_id,
                    talk.speaker_name,
                    talk.topic,
                    talk.scheduled_date.isoformat(),
                    talk.booked_at.isoformat(),
                    int(talk.completed),
                    talk.thread_id,
                    talk.booked_by_id,
                    talk.booked_by_name,
                    _iso(talk.reminders.sent_tminus1_at),
                    _iso(talk.reminders.sent_day_of_at),
                ),
            )
            await db.commit()
        except sqlite3.IntegrityError as e:
            if "scheduled_date" in str(e):
                raise DuplicateTalkDateError(talk.scheduled_date) from e
            raise StoreError(f"add_talk failed: {e}") from e
        log.debug("store.talk_added", talk_id=talk.id, date=talk.scheduled_date.isoformat())
        return talk

    async def save_talk(self, talk: Talk) -> None:
        db = self._require_db()
        if talk.id is None:
            raise StoreError("save_talk requires a talk that has been added (id is None).")
        try:
            # COALESCE keeps a marker that is already set: markers only move from NULL to a value.
            cursor = await db.execute(
                """UPDATE talks SET
                   speaker_id=?, speaker_name=?, topic=?, completed=?, thread_id=?,
                   sent_tminus1_at=COALESCE(sent_tminus1_at, ?),
                   sent_day_of_at=COALESCE(sent_day_of_at, ?)
                   WHERE id=?""",
                (
                    talk.speaker_id,
                    talk.speaker_name,
                    talk.topic,
                    int(talk.completed),
                    talk.thread_id,
                    _iso(talk.reminders.sent_tminus1_at),
                    _iso(talk.reminders.sent_day_of_at),
                    talk.id,
                ),
            )
            await db.commit()
        except sqlite3.Error as e:
            raise StoreError(f"save_talk failed: {e}") from e
        if cursor.rowcount == 0:
            raise StoreError(f"Talk '{talk.id}' does not exist.")

    # ── Channel overrides ─────────────────────────────────────────────────────

    async def find_channel_override(self, community_id: str) -> Optional[ChannelOverride]:
        db = self._require_db()
        try:
            async with db.execute(
                "SELECT * FROM channel_overrides WHERE community_id = ?", (community_id,)
            ) as cursor:
                row = await cursor.fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"find_channel_override failed: {e}") from e
        if row is None:
            return None
        return ChannelOverride(
            community_id=row["community_id"],
            channel_id=row["channel_id"],
            updated_by=row["updated_by"],
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    async def save_channel_override(self, override: ChannelOverride) -> None:
        db = self._require_db()
        try:
            await db.execute(
                """INSERT INTO channel_overrides (community_id, channel_id, updated_by, updated_at)
                   VALUES (?, ?, ?, ?)
                   ON CONFLICT(community_id) DO UPDATE SET
                     channel_id=excluded.channel_id,
                     updated_by=excluded.updated_by,
                     updated_at=excluded.updated_at""",
                (
                    override.community_id,
                    override.channel_id,
                    override.updated_by,
                    override.updated_at.isoformat(),
                ),
            )
            await db.commit()
        except sqlite3.Error as e:
            raise StoreError(f"save_channel_override failed: {e}") from e
        log.info(
            "store.channel_override_saved",
            community_id=override.community_id,
            channel_id=override.channel_id,
            updated_by=override.updated_by,
        )

"""SQLite event store for discovered events, scoped per household."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite
from pydantic import ValidationError

from discovery.models import DiscoveredEvent

log = logging.getLogger(__name__)

_COLUMNS = (
    "id",
    "family_id",
    "name",
    "description",
    "category",
    "cost_display",
    "event_date",
    "end_date",
    "location",
    "latitude",
    "longitude",
    "drive_minutes",
    "why_it_fits",
    "ticket_url",
    "source",
    "external_id",
    "group_id",
    "group_name",
    "cached_at",
)


def to_timestamp(value: datetime) -> str:
    """Canonical UTC text form; lexical order matches chronological order."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="seconds")


async def connect(path: Path | str) -> aiosqlite.Connection:
    """Get a database connection with row factory enabled."""
    db = await aiosqlite.connect(path)
    db.row_factory = aiosqlite.Row
    await db.execute("PRAGMA journal_mode=WAL")
    await db.execute("PRAGMA foreign_keys=ON")
    return db


async def init_db(path: Path | str) -> None:
    """Initialize the discovered_events schema."""
    async with aiosqlite.connect(path) as db:
        await db.executescript("""
            CREATE TABLE IF NOT EXISTS discovered_events (
                id TEXT PRIMARY KEY,
                family_id TEXT NOT NULL,
                name TEXT NOT NULL,
                description TEXT,
                category TEXT NOT NULL,
                cost_display TEXT NOT NULL,
                event_date TEXT NOT NULL,
                end_date TEXT,
                location TEXT NOT NULL,
                latitude REAL,
                longitude REAL,
                drive_minutes INTEGER,
                why_it_fits TEXT,
                ticket_url TEXT,
                source TEXT NOT NULL,
                external_id TEXT,
                group_id TEXT,
                group_name TEXT,
                cached_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_discovered_family_date
                ON discovered_events(family_id, event_date);
            CREATE INDEX IF NOT EXISTS idx_discovered_source
                ON discovered_events(family_id, source);
        """)
        await db.commit()


class EventStore:
    """Household-scoped reads and writes over ``discovered_events``."""

    def __init__(self, path: Path | str) -> None:
        self.path = path

    async def init(self) -> None:
        await init_db(self.path)

    async def insert_events(
        self, events: list[DiscoveredEvent], cached_at: datetime
    ) -> int:
        """Insert *events*; a row that fails to write is logged and skipped.

        Returns the number of rows written.
        """
        written = 0
        stamp = to_timestamp(cached_at)
        db = await connect(self.path)
        try:
            for event in events:
                try:
                    await db.execute(
                        f"INSERT INTO discovered_events ({', '.join(_COLUMNS)}) "
                        f"VALUES ({', '.join('?' for _ in _COLUMNS)})",
                        (
                            uuid.uuid4().hex,
                            event.family_id,
                            event.name,
                            event.description,
                            event.category,
                            event.cost_display,
                            to_timestamp(event.event_date),
                            to_timestamp(event.end_date) if event.end_date else None,
                            event.location,
                            event.latitude,
                            event.longitude,
                            event.drive_minutes,
                            event.why_it_fits,
                            event.ticket_url,
                            event.source.value,
                            event.external_id,
                            event.group_id,
                            event.group_name,
                            stamp,
                        ),
                    )
                    written += 1
                except aiosqlite.Error:
                    log.exception("Error saving event %r", event.name)
            await db.commit()
        finally:
            await db.close()
        return written

    async def list_events(
        self,
        family_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[DiscoveredEvent]:
        """Events for one household, optionally bounded by event date."""
        conditions = ["family_id = ?"]
        params: list[object] = [family_id]
        if start is not None:
            conditions.append("event_date >= ?")
            params.append(to_timestamp(start))
        if end is not None:
            conditions.append("event_date <= ?")
            params.append(to_timestamp(end))

        db = await connect(self.path)
        try:
            cursor = await db.execute(
                "SELECT * FROM discovered_events WHERE "
                + " AND ".join(conditions)
                + " ORDER BY event_date ASC",
                params,
            )
            rows = await cursor.fetchall()
        finally:
            await db.close()

        events: list[DiscoveredEvent] = []
        for row in rows:
            try:
                events.append(DiscoveredEvent.model_validate(dict(row)))
            except ValidationError:
                log.exception("Skipping unreadable cached row %s", row["id"])
        return events

    async def oldest_cached_at(
        self, family_id: str, start: datetime, end: datetime
    ) -> datetime | None:
        """Oldest ``cached_at`` among the household's rows in the window."""
        db = await connect(self.path)
        try:
            cursor = await db.execute(
                "SELECT MIN(cached_at) FROM discovered_events "
                "WHERE family_id = ? AND event_date >= ? AND event_date <= ?",
                (family_id, to_timestamp(start), to_timestamp(end)),
            )
            row = await cursor.fetchone()
        finally:
            await db.close()
        if row is None or row[0] is None:
            return None
        return datetime.fromisoformat(row[0])

    async def _delete(self, where: str, params: tuple) -> int:
        db = await connect(self.path)
        try:
            cursor = await db.execute(f"DELETE FROM discovered_events WHERE {where}", params)
            await db.commit()
            return cursor.rowcount
        finally:
            await db.close()

    async def delete_window(self, family_id: str, start: datetime, end: datetime) -> int:
        return await self._delete(
            "family_id = ? AND event_date >= ? AND event_date <= ?",
            (family_id, to_timestamp(start), to_timestamp(end)),
        )

    async def delete_events_by_family(self, family_id: str) -> int:
        return await self._delete("family_id = ?", (family_id,))

    async def delete_events_by_source(self, family_id: str, source: str) -> int:
        return await self._delete("family_id = ? AND source = ?", (family_id, source))

    async def delete_past_events(self, before: datetime) -> int:
        """Remove every household's events that started before *before*."""
        return await self._delete("event_date < ?", (to_timestamp(before),))

    async def count_by_source(self, family_id: str) -> list[dict]:
        db = await connect(self.path)
        try:
            cursor = await db.execute(
                "SELECT source, COUNT(*) AS count FROM discovered_events "
                "WHERE family_id = ? GROUP BY source ORDER BY count DESC",
                (family_id,),
            )
            rows = await cursor.fetchall()
        finally:
            await db.close()
        return [{"source": row[0], "count": row[1]} for row in rows]

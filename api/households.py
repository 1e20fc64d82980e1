"""Read-only access to household records owned by other services.

Families, curricula and group subscriptions live in tables this package never
writes. The cache controller only depends on :class:`HouseholdDirectory`;
:class:`SqliteHouseholdDirectory` is the implementation the API uses.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Protocol

import aiosqlite
from pydantic import BaseModel

from discovery.models import GroupSubscription
from discovery.sources.community import extract_group_id

from .database import connect

log = logging.getLogger(__name__)


class Household(BaseModel):
    id: str
    latitude: float
    longitude: float
    travel_radius_minutes: int = 30


class HouseholdDirectory(Protocol):
    async def get_household(self, family_id: str) -> Household | None: ...

    async def get_week_theme(self, family_id: str, week_number: int) -> str | None:
        """Theme for *week_number* of the active curriculum.

        Returns an empty string when the curriculum has no theme for that
        week and None when there is no active curriculum at all.
        """
        ...

    async def get_groups(self, family_id: str) -> list[GroupSubscription]: ...


class SqliteHouseholdDirectory:
    """Reads ``families``, ``curricula`` and ``homeschool_groups``.

    ``curricula.curriculum_data`` holds the generated curriculum JSON, whose
    ``weeks`` list carries a ``familyTheme`` per week.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = path

    async def _fetch(self, sql: str, params: tuple) -> list[aiosqlite.Row]:
        db = await connect(self.path)
        try:
            cursor = await db.execute(sql, params)
            return list(await cursor.fetchall())
        except aiosqlite.OperationalError:
            # Tables are created by the services that own them.
            return []
        finally:
            await db.close()

    async def get_household(self, family_id: str) -> Household | None:
        rows = await self._fetch(
            "SELECT id, latitude, longitude, travel_radius_minutes "
            "FROM families WHERE id = ?",
            (family_id,),
        )
        if not rows or rows[0]["latitude"] is None or rows[0]["longitude"] is None:
            return None
        return Household.model_validate(dict(rows[0]))

    async def get_week_theme(self, family_id: str, week_number: int) -> str | None:
        rows = await self._fetch(
            "SELECT curriculum_data FROM curricula "
            "WHERE family_id = ? AND is_active = 1 "
            "ORDER BY created_at DESC LIMIT 1",
            (family_id,),
        )
        if not rows:
            return None
        data = json.loads(rows[0]["curriculum_data"] or "{}")
        weeks = data.get("weeks") or []
        if 0 < week_number <= len(weeks):
            return weeks[week_number - 1].get("familyTheme") or ""
        return ""

    async def get_groups(self, family_id: str) -> list[GroupSubscription]:
        rows = await self._fetch(
            "SELECT group_id, group_name, group_url FROM homeschool_groups "
            "WHERE family_id = ? ORDER BY created_at",
            (family_id,),
        )
        groups: list[GroupSubscription] = []
        for row in rows:
            group_id = row["group_id"] or extract_group_id(row["group_url"] or "")
            if not group_id:
                log.warning("Skipping group %r with no usable id", row["group_name"])
                continue
            groups.append(
                GroupSubscription(
                    group_id=group_id,
                    group_name=row["group_name"],
                    group_url=row["group_url"],
                )
            )
        return groups

"""Request-facing cache in front of the discovery pipeline.

Each request for a household's event window either serves stored rows or
triggers a refresh:

* fresh  - rows exist and the oldest is younger than the TTL: serve them.
* stale  - rows exist but the oldest is older than the TTL: clear the window,
  then refresh as if empty.
* empty  - no rows: run discovery, persist, then re-read from the store.

There is no background refresher; the first request after the TTL pays for
the refresh. Two concurrent refreshes for one household are not serialized.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Awaitable, Callable, Sequence

from discovery.aggregator import discover_weekly_events
from discovery.config import DiscoverySettings
from discovery.geo import radius_km_from_minutes
from discovery.models import DiscoveredEvent, GroupSubscription

from .database import EventStore
from .households import HouseholdDirectory

log = logging.getLogger(__name__)

MIN_WEEK = 1
MAX_WEEK = 12
DEFAULT_THEME = "education"

Discover = Callable[..., Awaitable[list[DiscoveredEvent]]]


class WindowState(str, Enum):
    FRESH = "fresh"
    STALE = "stale"
    EMPTY = "empty"


class HouseholdNotFound(LookupError):
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def week_window(
    week_number: int, now: datetime, window_days: int = 14
) -> tuple[datetime, datetime]:
    """Date range covered by curriculum week *week_number* (1-based)."""
    if not MIN_WEEK <= week_number <= MAX_WEEK:
        raise ValueError(f"Invalid week number: {week_number}")
    start = now + timedelta(days=(week_number - 1) * 7)
    return start, start + timedelta(days=window_days)


def classify(
    oldest_cached_at: datetime | None, now: datetime, ttl: timedelta
) -> WindowState:
    if oldest_cached_at is None:
        return WindowState.EMPTY
    if now - oldest_cached_at > ttl:
        return WindowState.STALE
    return WindowState.FRESH


class CacheController:
    def __init__(
        self,
        store: EventStore,
        households: HouseholdDirectory,
        settings: DiscoverySettings,
        discover: Discover = discover_weekly_events,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.households = households
        self.settings = settings
        self.discover = discover
        self.clock = clock

    @property
    def ttl(self) -> timedelta:
        return timedelta(hours=self.settings.cache_ttl_hours)

    async def window_state(
        self, family_id: str, start: datetime, end: datetime
    ) -> WindowState:
        oldest = await self.store.oldest_cached_at(family_id, start, end)
        return classify(oldest, self.clock(), self.ttl)

    async def get_week_events(
        self, family_id: str, week_number: int
    ) -> list[DiscoveredEvent]:
        """Events for curriculum week *week_number*, refreshing if needed.

        Raises :class:`ValueError` for a week outside 1-12 and
        :class:`HouseholdNotFound` for an unknown household.
        """
        start, end = week_window(week_number, self.clock(), self.settings.window_days)
        household = await self.households.get_household(family_id)
        if household is None:
            raise HouseholdNotFound(family_id)

        async def theme() -> str | None:
            found = await self.households.get_week_theme(family_id, week_number)
            if found is None:
                return None
            return found or DEFAULT_THEME

        return await self.get_events(
            family_id,
            household.latitude,
            household.longitude,
            radius_km_from_minutes(household.travel_radius_minutes),
            start,
            end,
            theme,
        )

    async def get_events(
        self,
        family_id: str,
        lat: float,
        lng: float,
        radius_km: float,
        start: datetime,
        end: datetime,
        theme: Callable[[], Awaitable[str | None]],
    ) -> list[DiscoveredEvent]:
        """Serve or refresh one household window.

        *theme* is only awaited when a refresh is needed; returning None
        means there is nothing to discover for (no active curriculum).
        """
        state = await self.window_state(family_id, start, end)

        if state is WindowState.FRESH:
            events = await self._upcoming(family_id, start, end)
            log.info("Returning %d cached event(s) for family %s", len(events), family_id)
            return events

        if state is WindowState.STALE:
            removed = await self.store.delete_window(family_id, start, end)
            log.info("Cleared %d stale event(s) for family %s", removed, family_id)

        weekly_theme = await theme()
        if weekly_theme is None:
            log.warning("No active curriculum for family %s", family_id)
            return []

        groups = await self.households.get_groups(family_id)
        await self._refresh(
            family_id, lat, lng, radius_km, weekly_theme, start, end, groups
        )
        return await self._upcoming(family_id, start, end)

    async def _upcoming(
        self, family_id: str, start: datetime, end: datetime
    ) -> list[DiscoveredEvent]:
        now = self.clock()
        events = await self.store.list_events(family_id, start, end)
        return [e for e in events if e.event_date >= now]

    async def _refresh(
        self,
        family_id: str,
        lat: float,
        lng: float,
        radius_km: float,
        theme: str,
        start: datetime,
        end: datetime,
        groups: Sequence[GroupSubscription],
    ) -> None:
        log.info("Discovering events for family %s, theme %r", family_id, theme)
        found = await self.discover(
            family_id, lat, lng, radius_km, theme, start, groups, settings=self.settings
        )
        # Rows outside the window would never count toward its freshness.
        events = [e for e in found if start <= e.event_date <= end]
        if len(events) < len(found):
            log.info(
                "Dropped %d event(s) outside %s..%s for family %s",
                len(found) - len(events),
                start.date(),
                end.date(),
                family_id,
            )
        written = await self.store.insert_events(events, cached_at=self.clock())
        log.info("Cached %d of %d event(s) for family %s", written, len(events), family_id)

    async def prune_past_events(self) -> int:
        """Delete every stored event whose start has already passed."""
        removed = await self.store.delete_past_events(self.clock())
        log.info("Pruned %d past event(s)", removed)
        return removed

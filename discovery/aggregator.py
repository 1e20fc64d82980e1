"""Concurrent fan-out over all source adapters, then merge and annotate."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Iterable, Sequence

import httpx

import discovery.sources  # noqa: F401  (registers adapters)
from discovery.base import BaseSource, DiscoveryContext, get_source
from discovery.config import DiscoverySettings
from discovery.geo import estimate_drive_minutes
from discovery.models import (
    DiscoveredEvent,
    EventSource,
    GroupSubscription,
    PartialEvent,
)
from discovery.relevance import why_it_fits

log = logging.getLogger(__name__)

#: When two sources report the same event, the earlier source's copy is kept.
SOURCE_PRECEDENCE: tuple[EventSource, ...] = (
    EventSource.TICKETED,
    EventSource.PLACES,
    EventSource.COMMUNITY_GROUP,
)


def build_sources(
    settings: DiscoverySettings, client: httpx.AsyncClient | None = None
) -> list[BaseSource]:
    """Instantiate one adapter per source, in precedence order."""
    return [get_source(source)(settings, client=client) for source in SOURCE_PRECEDENCE]


def dedupe_events(events: Iterable[PartialEvent]) -> list[PartialEvent]:
    """Drop repeats of the same (name, location); first occurrence wins."""
    seen: set[tuple[str, str]] = set()
    unique: list[PartialEvent] = []
    for event in events:
        key = event.dedup_key()
        if key in seen:
            continue
        seen.add(key)
        unique.append(event)
    return unique


def annotate_event(
    event: PartialEvent, family_id: str, lat: float, lng: float, theme: str
) -> DiscoveredEvent:
    discovered = (
        event
        if isinstance(event, DiscoveredEvent)
        else DiscoveredEvent(**event.model_dump(), family_id=family_id)
    )
    updates: dict[str, object] = {}
    if discovered.has_coordinates():
        updates["drive_minutes"] = estimate_drive_minutes(
            lat, lng, discovered.latitude, discovered.longitude
        )
    if discovered.why_it_fits is None:
        updates["why_it_fits"] = why_it_fits(theme, discovered.name)
    return discovered.model_copy(update=updates)


async def gather_events(
    sources: Sequence[BaseSource], context: DiscoveryContext
) -> list[PartialEvent]:
    """Run every adapter concurrently and flatten results in adapter order."""
    results = await asyncio.gather(
        *(source.fetch(context) for source in sources), return_exceptions=True
    )
    events: list[PartialEvent] = []
    for source, result in zip(sources, results):
        if isinstance(result, BaseException):
            log.error("[%s] adapter raised unexpectedly: %r", source.name, result)
            continue
        events.extend(result)
    return events


async def discover_weekly_events(
    family_id: str,
    lat: float,
    lng: float,
    radius_km: float,
    theme: str,
    window_start: datetime,
    groups: Sequence[GroupSubscription] = (),
    *,
    settings: DiscoverySettings | None = None,
    sources: Sequence[BaseSource] | None = None,
) -> list[DiscoveredEvent]:
    """Discover, dedupe and annotate events near a household for one window.

    Never raises on provider trouble: failing adapters contribute nothing and
    an empty list is a valid outcome.
    """
    settings = settings or DiscoverySettings.from_env()
    if sources is None:
        sources = build_sources(settings)

    context = DiscoveryContext(
        family_id=family_id,
        latitude=lat,
        longitude=lng,
        radius_km=radius_km,
        theme=theme,
        window_start=window_start,
        window_end=window_start + timedelta(days=settings.window_days),
        groups=list(groups),
    )

    events = await gather_events(sources, context)
    unique = dedupe_events(events)
    annotated = [
        annotate_event(event, family_id, lat, lng, theme)
        for event in unique[: settings.max_results]
    ]
    log.info(
        "Discovered %d event(s) for family %s (%d before dedupe)",
        len(annotated),
        family_id,
        len(events),
    )
    return annotated

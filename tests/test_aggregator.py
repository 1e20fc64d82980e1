import asyncio
import time
from datetime import datetime, timedelta, timezone

import pytest

from discovery.aggregator import (
    SOURCE_PRECEDENCE,
    annotate_event,
    build_sources,
    dedupe_events,
    discover_weekly_events,
)
from discovery.base import BaseSource
from discovery.models import DiscoveredEvent, EventSource, PartialEvent

HOME = (45.52, -122.68)
THEME = "Discovering Our Local Ecosystem"
START = datetime(2026, 10, 19, tzinfo=timezone.utc)


def make_event(name, source=EventSource.TICKETED, location="Forest Park", **kwargs):
    return PartialEvent(
        name=name,
        event_date=START + timedelta(days=2),
        location=location,
        source=source,
        **kwargs,
    )


class FakeSource(BaseSource):
    def __init__(self, settings, source, events=(), delay=0.0, error=None):
        self.source = source
        super().__init__(settings)
        self.events = list(events)
        self.delay = delay
        self.error = error
        self.contexts = []

    async def scrape(self, context):
        self.contexts.append(context)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.events


async def discover(settings, sources):
    return await discover_weekly_events(
        "fam-1", *HOME, 40.0, THEME, START, settings=settings, sources=sources
    )


def test_dedupe_is_case_insensitive_and_first_wins():
    ticketed = make_event("Local Ecosystem Walk", external_id="eb-1")
    community = make_event(
        "LOCAL ECOSYSTEM WALK",
        source=EventSource.COMMUNITY_GROUP,
        location="forest park",
        external_id="fb-9",
    )
    other = make_event("Local Ecosystem Walk", location="Tryon Creek")

    result = dedupe_events([ticketed, community, other])
    assert result == [ticketed, other]


def test_dedupe_is_idempotent():
    events = [
        make_event("A"),
        make_event("a", source=EventSource.PLACES),
        make_event("B"),
        make_event("A", location="Elsewhere"),
    ]
    once = dedupe_events(events)
    assert dedupe_events(once) == once
    assert dedupe_events(events + events) == once


def test_same_id_in_different_sources_is_not_a_duplicate():
    a = make_event("Owl Prowl", external_id="42")
    b = make_event("Bat Walk", source=EventSource.PLACES, external_id="42")
    assert dedupe_events([a, b]) == [a, b]


def test_annotate_adds_drive_time_only_with_coordinates():
    near = make_event("Local Pond Study", latitude=45.60, longitude=-122.68)
    unknown = make_event("Local Pond Study", location="Somewhere")

    annotated = annotate_event(near, "fam-1", *HOME, THEME)
    assert isinstance(annotated, DiscoveredEvent)
    assert annotated.family_id == "fam-1"
    assert annotated.drive_minutes == 11
    assert "local" in annotated.why_it_fits

    bare = annotate_event(unknown, "fam-1", *HOME, THEME)
    assert bare.drive_minutes is None


def test_annotate_keeps_supplied_why_it_fits():
    event = DiscoveredEvent(
        **make_event("Chess").model_dump(), family_id="fam-1", why_it_fits="Hand-picked"
    )
    assert annotate_event(event, "fam-1", *HOME, THEME).why_it_fits == "Hand-picked"


@pytest.mark.asyncio
async def test_all_sources_empty_returns_empty(settings):
    sources = [FakeSource(settings, s) for s in SOURCE_PRECEDENCE]
    assert await discover(settings, sources) == []


@pytest.mark.asyncio
async def test_failing_source_does_not_cancel_siblings(settings):
    sources = [
        FakeSource(settings, EventSource.TICKETED, error=ValueError("bad json")),
        FakeSource(settings, EventSource.PLACES, [make_event("Visit: Zoo", EventSource.PLACES)]),
        FakeSource(settings, EventSource.COMMUNITY_GROUP, delay=5),
    ]
    settings = settings.model_copy(update={"source_timeout": 0.1})
    for source in sources:
        source.settings = settings

    events = await discover(settings, sources)
    assert [e.name for e in events] == ["Visit: Zoo"]


@pytest.mark.asyncio
async def test_precedence_decides_which_duplicate_survives(settings):
    sources = [
        FakeSource(settings, EventSource.TICKETED, [make_event("Owl Prowl", external_id="eb")]),
        FakeSource(
            settings,
            EventSource.PLACES,
            [make_event("owl prowl", EventSource.PLACES, location="FOREST PARK")],
        ),
        FakeSource(
            settings,
            EventSource.COMMUNITY_GROUP,
            [make_event("Owl Prowl", EventSource.COMMUNITY_GROUP, external_id="fb")],
        ),
    ]
    events = await discover(settings, sources)
    assert len(events) == 1
    assert events[0].source is EventSource.TICKETED
    assert events[0].external_id == "eb"


@pytest.mark.asyncio
async def test_truncates_to_max_results(settings):
    many = [make_event(f"Event {i}") for i in range(20)]
    sources = [
        FakeSource(settings, EventSource.TICKETED, many),
        FakeSource(settings, EventSource.PLACES, [make_event("Late", EventSource.PLACES)]),
    ]
    events = await discover(settings, sources)
    assert len(events) == 12
    assert [e.name for e in events] == [f"Event {i}" for i in range(12)]


@pytest.mark.asyncio
async def test_sources_run_concurrently(settings):
    sources = [
        FakeSource(settings, s, [make_event(f"{s.value} event", s)], delay=0.3)
        for s in SOURCE_PRECEDENCE
    ]
    started = time.perf_counter()
    events = await discover(settings, sources)
    assert time.perf_counter() - started < 0.8
    assert [e.source for e in events] == list(SOURCE_PRECEDENCE)


@pytest.mark.asyncio
async def test_context_carries_window_and_keywords(settings):
    source = FakeSource(settings, EventSource.TICKETED)
    await discover(settings, [source])
    (context,) = source.contexts
    assert context.window_end - context.window_start == timedelta(days=14)
    assert context.keywords == ["discovering", "local", "ecosystem"]
    assert context.radius_meters == 40000


def test_build_sources_follow_precedence(settings):
    assert [s.source for s in build_sources(settings)] == list(SOURCE_PRECEDENCE)

import asyncio
from datetime import datetime, timezone

import httpx
import pytest

from discovery.models import EventSource
from discovery.sources.ticketed import TicketedEventsSource, category_for

SEARCH_RESPONSE = {
    "events": [
        {
            "id": "1001",
            "name": {"text": "Local Ecosystem Walk"},
            "start": {"utc": "2026-10-24T17:00:00Z", "local": "2026-10-24T10:00:00"},
            "end": {"utc": "2026-10-24T19:00:00Z", "local": "2026-10-24T12:00:00"},
            "venue": {
                "address": {"localized_address_display": "Forest Park, Portland, OR"},
                "latitude": "45.5600",
                "longitude": "-122.7500",
            },
            "is_free": True,
            "url": "https://www.eventbrite.com/e/1001",
            "description": {"text": "x" * 800},
            "category_id": "110",
        },
        {
            "id": "1002",
            "name": {"text": "Watercolor Birds"},
            "start": {"local": "2026-10-25T13:00:00"},
            "is_free": False,
            "ticket_availability": {"minimum_ticket_price": {"display": "$12.00"}},
            "category_id": "113",
        },
        {
            "id": "1003",
            "name": {"text": "Mystery Lecture"},
            "start": {"local": "2026-10-26T18:00:00"},
            "is_free": False,
            "category_id": "999",
        },
        {
            "id": "1004",
            "name": {"text": ""},
            "start": {"local": "2026-10-26T18:00:00"},
        },
    ]
}


@pytest.mark.asyncio
async def test_maps_provider_events(settings, context, make_client):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["params"] = request.url.params
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(200, json=SEARCH_RESPONSE)

    source = TicketedEventsSource(settings, client=make_client(handler))
    events = await source.fetch(context)

    assert seen["auth"] == "Bearer eb-test"
    assert seen["params"]["q"] == "discovering OR local OR ecosystem"
    assert seen["params"]["categories"] == "103,110,113,105"
    assert seen["params"]["location.within"] == "40km"
    assert seen["params"]["start_date.range_start"] == "2026-10-19T09:00:00Z"

    assert [e.external_id for e in events] == ["1001", "1002", "1003"]
    walk, birds, lecture = events
    assert walk.source is EventSource.TICKETED
    assert walk.cost_display == "FREE"
    assert walk.category == "science"
    assert walk.location == "Forest Park, Portland, OR"
    assert walk.latitude == pytest.approx(45.56)
    assert len(walk.description) == 500
    assert walk.event_date == datetime(2026, 10, 24, 17, 0, tzinfo=timezone.utc)
    assert walk.end_date == datetime(2026, 10, 24, 19, 0, tzinfo=timezone.utc)

    assert birds.cost_display == "$12.00"
    assert birds.location == "Online"
    assert birds.latitude is None

    assert lecture.cost_display == "Paid"
    assert lecture.category == "education"


@pytest.mark.asyncio
async def test_missing_credential_skips_without_calling(settings, context, make_client):
    def handler(request):
        raise AssertionError("no request expected")

    settings = settings.model_copy(update={"eventbrite_api_key": None})
    source = TicketedEventsSource(settings, client=make_client(handler))
    assert await source.fetch(context) == []


@pytest.mark.asyncio
async def test_provider_error_degrades_to_empty(settings, context, make_client):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500, json={"error": "boom"})

    source = TicketedEventsSource(settings, client=make_client(handler))
    source.retry_backoff = 0
    assert await source.fetch(context) == []
    assert len(calls) == source.max_retries


@pytest.mark.asyncio
async def test_timeout_degrades_to_empty(settings, context, make_client):
    async def handler(request):
        await asyncio.sleep(5)
        return httpx.Response(200, json=SEARCH_RESPONSE)

    settings = settings.model_copy(update={"source_timeout": 0.05})
    source = TicketedEventsSource(settings, client=make_client(handler))
    assert await source.fetch(context) == []


@pytest.mark.asyncio
async def test_unexpected_payload_degrades_to_empty(settings, context, make_client):
    def handler(request):
        return httpx.Response(200, json={"events": [{"id": "1"}]})

    source = TicketedEventsSource(settings, client=make_client(handler))
    assert await source.fetch(context) == []


def test_category_mapping():
    assert category_for("103") == "education"
    assert category_for("108") == "history"
    assert category_for(None) == "education"


@pytest.mark.asyncio
async def test_prefers_utc_start_over_wall_clock(settings, context, make_client):
    payload = {
        "events": [
            {
                "id": "2001",
                "name": {"text": "Evening Star Party"},
                "start": {"utc": "2026-10-25T02:30:00Z", "local": "2026-10-24T19:30:00"},
            },
            {
                "id": "2002",
                "name": {"text": "Wall Clock Only"},
                "start": {"local": "2026-10-24T19:30:00"},
            },
            {"id": "2003", "name": {"text": "No Start"}, "start": {}},
        ]
    }

    def handler(request):
        return httpx.Response(200, json=payload)

    source = TicketedEventsSource(settings, client=make_client(handler))
    events = await source.fetch(context)

    assert [e.external_id for e in events] == ["2001", "2002"]
    assert events[0].event_date == datetime(2026, 10, 25, 2, 30, tzinfo=timezone.utc)
    assert events[1].event_date == datetime(2026, 10, 24, 19, 30, tzinfo=timezone.utc)

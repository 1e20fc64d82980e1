"""Ticketed events via the Eventbrite event search API."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from pydantic import BaseModel, Field

from discovery.base import BaseSource, DiscoveryContext, register
from discovery.models import EventSource, PartialEvent

log = logging.getLogger(__name__)

_ENDPOINT = "https://www.eventbriteapi.com/v3/events/search/"

# Education, Science, Art, Family
_CATEGORY_IDS = ("103", "110", "113", "105")

_CATEGORY_MAP = {
    "103": "education",
    "110": "science",
    "113": "art",
    "105": "family",
    "108": "history",
    "109": "education",
}

_MAX_QUERY_KEYWORDS = 3


# ------------------------------------------------------------------
# Provider response shapes
# ------------------------------------------------------------------


class _Text(BaseModel):
    text: str | None = None


class _When(BaseModel):
    utc: datetime | None = None
    local: datetime | None = None

    @property
    def instant(self) -> datetime | None:
        """The UTC timestamp when present; `local` has no offset and is read as UTC."""
        return self.utc or self.local


class _Address(BaseModel):
    localized_address_display: str | None = None


class _Venue(BaseModel):
    address: _Address | None = None
    latitude: float | None = None
    longitude: float | None = None


class _Price(BaseModel):
    display: str | None = None


class _TicketAvailability(BaseModel):
    minimum_ticket_price: _Price | None = None


class EventbriteEvent(BaseModel):
    id: str
    name: _Text
    start: _When
    end: _When | None = None
    venue: _Venue | None = None
    is_free: bool = False
    ticket_availability: _TicketAvailability | None = None
    url: str | None = None
    description: _Text | None = None
    category_id: str | None = None


class EventbriteSearchResponse(BaseModel):
    events: list[EventbriteEvent] = Field(default_factory=list)


def category_for(category_id: str | None) -> str:
    return _CATEGORY_MAP.get(category_id or "", "education")


def cost_for(event: EventbriteEvent) -> str:
    if event.is_free:
        return "FREE"
    availability = event.ticket_availability
    if availability and availability.minimum_ticket_price:
        display = availability.minimum_ticket_price.display
        if display:
            return display
    return "Paid"


def _iso(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@register
class TicketedEventsSource(BaseSource):
    source = EventSource.TICKETED

    async def scrape(self, context: DiscoveryContext) -> list[PartialEvent]:
        api_key = self.settings.eventbrite_api_key
        if not api_key:
            log.warning("EVENTBRITE_API_KEY not configured, skipping ticketed events")
            return []

        params = {
            "location.latitude": str(context.latitude),
            "location.longitude": str(context.longitude),
            "location.within": f"{context.radius_km:g}km",
            "start_date.range_start": _iso(context.window_start),
            "start_date.range_end": _iso(context.window_end),
            "expand": "venue,ticket_availability",
            "categories": ",".join(_CATEGORY_IDS),
        }
        query = " OR ".join(context.keywords[:_MAX_QUERY_KEYWORDS])
        if query:
            params["q"] = query

        resp = await self.request(
            _ENDPOINT,
            params=params,
            headers={"Authorization": f"Bearer {api_key}"},
        )
        payload = EventbriteSearchResponse.model_validate(resp.json())

        events: list[PartialEvent] = []
        for item in payload.events:
            title = (item.name.text or "").strip()
            starts = item.start.instant
            if not title or starts is None:
                continue

            venue = item.venue
            location = None
            if venue and venue.address:
                location = venue.address.localized_address_display

            events.append(
                PartialEvent(
                    name=title,
                    description=item.description.text if item.description else None,
                    category=category_for(item.category_id),
                    cost_display=cost_for(item),
                    event_date=starts,
                    end_date=item.end.instant if item.end else None,
                    location=location or "Online",
                    latitude=venue.latitude if venue else None,
                    longitude=venue.longitude if venue else None,
                    ticket_url=item.url,
                    source=self.source,
                    external_id=item.id,
                )
            )
        return events

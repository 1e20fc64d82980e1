"""Venue suggestions via the Google Places nearby-search API.

Venues have no event date of their own, so each match becomes a generic
"Visit: <place>" event dated one week into the search window.
"""

from __future__ import annotations

import asyncio
import logging

from pydantic import BaseModel, Field

from discovery.base import BaseSource, DiscoveryContext, SourceError, register
from discovery.models import EventSource, PartialEvent

log = logging.getLogger(__name__)

_ENDPOINT = "https://maps.googleapis.com/maps/api/place/nearbysearch/json"

_QUALIFIER = "homeschool education family"

# Venue type -> topical category, in query order.
VENUE_CATEGORIES = {
    "museum": "history",
    "library": "literature",
    "park": "nature",
    "aquarium": "science",
    "zoo": "science",
    "tourist_attraction": "education",
}

_RESULTS_PER_TYPE = 3


# ------------------------------------------------------------------
# Provider response shapes
# ------------------------------------------------------------------


class _LatLng(BaseModel):
    lat: float | None = None
    lng: float | None = None


class _Geometry(BaseModel):
    location: _LatLng | None = None


class PlaceResult(BaseModel):
    place_id: str | None = None
    name: str = ""
    vicinity: str | None = None
    geometry: _Geometry | None = None


class NearbySearchResponse(BaseModel):
    status: str = "UNKNOWN_ERROR"
    results: list[PlaceResult] = Field(default_factory=list)
    error_message: str | None = None


@register
class PlacesSource(BaseSource):
    source = EventSource.PLACES
    # Six venue-type queries go out per refresh.
    rate_limit = 0.1

    async def scrape(self, context: DiscoveryContext) -> list[PartialEvent]:
        api_key = self.settings.google_maps_api_key
        if not api_key:
            log.warning("GOOGLE_MAPS_API_KEY not configured, skipping places")
            return []

        keywords = context.keywords
        keyword = f"{keywords[0]} {_QUALIFIER}" if keywords else _QUALIFIER

        batches = await asyncio.gather(
            *(
                self._search_type(context, venue_type, keyword, api_key)
                for venue_type in VENUE_CATEGORIES
            )
        )
        return [event for batch in batches for event in batch]

    async def _search_type(
        self,
        context: DiscoveryContext,
        venue_type: str,
        keyword: str,
        api_key: str,
    ) -> list[PartialEvent]:
        params = {
            "location": f"{context.latitude},{context.longitude}",
            "radius": str(context.radius_meters),
            "type": venue_type,
            "keyword": keyword,
            "key": api_key,
        }
        try:
            resp = await self.request(_ENDPOINT, params=params)
        except SourceError as exc:
            log.warning("Places search for %s failed: %s", venue_type, exc)
            return []
        try:
            payload = NearbySearchResponse.model_validate(resp.json())
        except ValueError:
            log.exception("Places search for %s returned an unreadable body", venue_type)
            return []

        if payload.status != "OK":
            if payload.status != "ZERO_RESULTS":
                log.warning(
                    "Places search for %s returned %s: %s",
                    venue_type,
                    payload.status,
                    payload.error_message or "",
                )
            return []

        visit_date = context.one_week_in()
        events: list[PartialEvent] = []
        for place in payload.results[:_RESULTS_PER_TYPE]:
            if not place.name:
                continue
            coords = place.geometry.location if place.geometry else None
            events.append(
                PartialEvent(
                    name=f"Visit: {place.name}",
                    description=f"Self-guided visit to {place.name}",
                    category=VENUE_CATEGORIES[venue_type],
                    cost_display="Varies",
                    event_date=visit_date,
                    location=place.vicinity or place.name,
                    latitude=coords.lat if coords else None,
                    longitude=coords.lng if coords else None,
                    source=self.source,
                    external_id=place.place_id,
                )
            )
        return events

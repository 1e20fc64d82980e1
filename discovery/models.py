"""Shared Pydantic models for the event discovery pipeline."""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, field_validator

DESCRIPTION_LIMIT = 500


class EventSource(str, Enum):
    TICKETED = "ticketed"
    PLACES = "places"
    COMMUNITY_GROUP = "community_group"


class GroupSubscription(BaseModel):
    """A community group a household has opted into scraping."""

    group_id: str
    group_name: str
    group_url: str | None = None


class PartialEvent(BaseModel):
    """Normalized adapter output, before the pipeline annotates it."""

    name: str
    description: str | None = None
    category: str = "education"
    cost_display: str = "Varies"
    event_date: datetime
    end_date: datetime | None = None
    location: str
    latitude: float | None = None
    longitude: float | None = None
    ticket_url: str | None = None
    source: EventSource
    external_id: str | None = None
    group_id: str | None = None
    group_name: str | None = None

    @field_validator("event_date", "end_date")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @field_validator("description")
    @classmethod
    def _truncate_description(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value[:DESCRIPTION_LIMIT] or None

    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def dedup_key(self) -> tuple[str, str]:
        return (self.name.strip().lower(), self.location.strip().lower())


class DiscoveredEvent(PartialEvent):
    """An event scoped to one household, as produced and cached by the pipeline."""

    family_id: str
    drive_minutes: int | None = None
    why_it_fits: str | None = None
    id: str | None = None
    cached_at: datetime | None = None

    @field_validator("cached_at")
    @classmethod
    def _cached_at_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

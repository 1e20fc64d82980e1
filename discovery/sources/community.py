"""Community-group scraper – public Facebook group event listings.

Uses the basic mobile rendering of a group's events view, which is plain
HTML. Groups that render as private or membership-gated are skipped. Event
dates are inferred from text near each event link on a best-effort basis and
fall back to one week into the search window.
"""

from __future__ import annotations

import asyncio
import logging
import re
from datetime import datetime, timedelta

from bs4 import BeautifulSoup, Tag

from discovery.base import BaseSource, DiscoveryContext, SourceError, register
from discovery.models import EventSource, GroupSubscription, PartialEvent

log = logging.getLogger(__name__)

GROUP_EVENTS_URL = "https://m.basic.facebook.com/groups/{group_id}/?view=events"
EVENT_URL = "https://www.facebook.com/events/{event_id}"

PRIVATE_MARKERS = ("This group is private", "Join Group", "Request to Join")

MAX_EVENTS_PER_GROUP = 10

_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}

_EVENT_ID_RE = re.compile(r"/events/(\d+)")
_DAY_RE = re.compile(r"\b[A-Za-z]{3,9}\.? \d{1,2}\b")
_TIME_RE = re.compile(r"\b\d{1,2}:\d{2} ?[AaPp][Mm]\b")
_GROUP_URL_PATTERNS = (
    re.compile(r"facebook\.com/groups/(\d+)", re.I),
    re.compile(r"facebook\.com/groups/([^/?#]+)", re.I),
    re.compile(r"groups/(\d+)", re.I),
    re.compile(r"groups/([^/?#]+)", re.I),
)


def extract_group_id(url: str) -> str | None:
    """Pull a numeric group id or slug out of a group URL."""
    clean = re.sub(r"^(https?://)?(www\.|m\.)?", "", url.strip())
    for pattern in _GROUP_URL_PATTERNS:
        match = pattern.search(clean)
        if match:
            return match.group(1)
    return None


def is_private_page(html: str) -> bool:
    return any(marker in html for marker in PRIVATE_MARKERS)


def _parse_day(text: str, now: datetime) -> datetime | None:
    text = text.replace(".", "")
    for fmt in ("%B %d", "%b %d"):
        try:
            parsed = datetime.strptime(f"{text} {now.year}", f"{fmt} %Y")
        except ValueError:
            continue
        candidate = now.replace(
            month=parsed.month, day=parsed.day, hour=0, minute=0, second=0, microsecond=0
        )
        if candidate.date() < now.date():
            try:
                candidate = candidate.replace(year=now.year + 1)
            except ValueError:  # Feb 29
                return None
        return candidate
    return None


def _parse_time(text: str) -> tuple[int, int] | None:
    try:
        parsed = datetime.strptime(text.upper().replace(" ", ""), "%I:%M%p")
    except ValueError:
        return None
    return parsed.hour, parsed.minute


def infer_event_date(text: str, now: datetime) -> datetime | None:
    """Best-effort date from free text: a month-day, a time of day, or both."""
    day = next(
        (d for d in (_parse_day(m.group(0), now) for m in _DAY_RE.finditer(text)) if d),
        None,
    )
    clock = next(
        (t for t in (_parse_time(m.group(0)) for m in _TIME_RE.finditer(text)) if t),
        None,
    )
    if day is not None:
        if clock is not None:
            day = day.replace(hour=clock[0], minute=clock[1])
        return day
    if clock is None:
        return None
    candidate = now.replace(hour=clock[0], minute=clock[1], second=0, microsecond=0)
    if candidate < now:
        candidate += timedelta(days=1)
    return candidate


def _context_text(link: Tag) -> str:
    parent = link.parent
    if isinstance(parent, Tag):
        text = parent.get_text(" ", strip=True)
        if text:
            return text
    sibling = link.find_next_sibling()
    return sibling.get_text(" ", strip=True) if sibling else ""


def parse_group_events(
    html: str,
    group: GroupSubscription,
    now: datetime,
    default_date: datetime | None = None,
) -> list[PartialEvent]:
    """Extract event links from a group events page.

    Posts with no readable date get *default_date*, or a week from *now*.
    """
    soup = BeautifulSoup(html, "html.parser")
    if default_date is None:
        default_date = now + timedelta(days=7)
    events: list[PartialEvent] = []

    for link in soup.select("a[href*='/events/']"):
        href = link.get("href", "")
        title = link.get_text(strip=True)
        if not href or not title:
            continue
        match = _EVENT_ID_RE.search(href)
        if not match:
            continue
        event_id = match.group(1)

        event_date = infer_event_date(_context_text(link), now) or default_date

        events.append(
            PartialEvent(
                name=title,
                description=f"Event from {group.group_name} Facebook group",
                category="homeschool",
                cost_display="Varies",
                event_date=event_date,
                location="See Facebook for details",
                ticket_url=EVENT_URL.format(event_id=event_id),
                source=EventSource.COMMUNITY_GROUP,
                external_id=event_id,
                group_id=group.group_id,
                group_name=group.group_name,
            )
        )
        if len(events) == MAX_EVENTS_PER_GROUP:
            break
    return events


@register
class CommunityGroupSource(BaseSource):
    source = EventSource.COMMUNITY_GROUP
    max_retries = 1

    async def scrape(self, context: DiscoveryContext) -> list[PartialEvent]:
        if not context.groups:
            return []

        log.info("Fetching events from %d community group(s)", len(context.groups))
        batches = await asyncio.gather(
            *(self._scrape_group(context, group) for group in context.groups)
        )

        seen: set[str] = set()
        events: list[PartialEvent] = []
        for event in (e for batch in batches for e in batch):
            if event.external_id:
                if event.external_id in seen:
                    continue
                seen.add(event.external_id)
            events.append(event)
        return events

    async def _scrape_group(
        self, context: DiscoveryContext, group: GroupSubscription
    ) -> list[PartialEvent]:
        url = GROUP_EVENTS_URL.format(group_id=group.group_id)
        try:
            resp = await self.request(url, headers=_HEADERS)
        except SourceError as exc:
            log.warning(
                "Group %s (%s) could not be fetched: %s",
                group.group_id,
                group.group_name,
                exc,
            )
            return []

        html = resp.text
        if is_private_page(html):
            log.warning(
                "Group %s (%s) appears to be private or requires membership",
                group.group_id,
                group.group_name,
            )
            return []

        now = datetime.now(context.window_start.tzinfo)
        events = parse_group_events(html, group, now, context.one_week_in())
        log.info("Scraped %d event(s) from %s", len(events), group.group_name)
        return events

"""Abstract source adapter with httpx, rate limiting, retries, and UA rotation."""

from __future__ import annotations

import abc
import asyncio
import logging
import random
from datetime import datetime, timedelta

import httpx
from pydantic import BaseModel, Field, ValidationError

from discovery.config import DiscoverySettings
from discovery.keywords import extract_keywords
from discovery.models import EventSource, GroupSubscription, PartialEvent

log = logging.getLogger(__name__)

_USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_5) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/18.0 Safari/605.1.15",
    "Mozilla/5.0 (X11; Linux x86_64; rv:132.0) Gecko/20100101 Firefox/132.0",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:132.0) Gecko/20100101 Firefox/132.0",
]


class SourceError(RuntimeError):
    """Raised by the HTTP helper when a provider request cannot be completed."""


class DiscoveryContext(BaseModel):
    """Everything an adapter needs to search on behalf of one household."""

    family_id: str
    latitude: float
    longitude: float
    radius_km: float
    theme: str
    window_start: datetime
    window_end: datetime
    groups: list[GroupSubscription] = Field(default_factory=list)

    @property
    def keywords(self) -> list[str]:
        return extract_keywords(self.theme)

    @property
    def radius_meters(self) -> int:
        return int(self.radius_km * 1000)

    def one_week_in(self) -> datetime:
        """Placeholder date for sources that carry no event date of their own."""
        return self.window_start + timedelta(days=7)


class BaseSource(abc.ABC):
    """Abstract base adapter that all event sources must subclass."""

    #: Source this adapter produces events for.
    source: EventSource

    #: Minimum seconds between requests.
    rate_limit: float = 0.0

    #: Maximum attempts per request.
    max_retries: int = 2

    #: Backoff factor for retries (seconds multiplied by attempt number).
    retry_backoff: float = 0.5

    def __init__(
        self,
        settings: DiscoverySettings,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not getattr(self, "source", None):
            raise ValueError("Source adapter subclass must set 'source'")
        self.settings = settings
        self._client = client
        self._owns_client = client is None
        self._last_request: float = 0.0
        self._throttle = asyncio.Lock()

    @property
    def name(self) -> str:
        return self.source.value

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                headers={"User-Agent": random.choice(_USER_AGENTS)},
                follow_redirects=True,
                timeout=self.settings.request_timeout,
            )
            self._owns_client = True
        return self._client

    async def _rate_limit_wait(self) -> None:
        if self.rate_limit <= 0:
            return
        async with self._throttle:
            now = asyncio.get_running_loop().time()
            elapsed = now - self._last_request
            if elapsed < self.rate_limit:
                await asyncio.sleep(self.rate_limit - elapsed)
            self._last_request = asyncio.get_running_loop().time()

    async def request(self, url: str, **kwargs: object) -> httpx.Response:
        """GET *url* with rate limiting, retries, and UA rotation.

        Retries and backoff share one ``request_timeout`` deadline, so a hung
        call surfaces as :class:`SourceError` well before the adapter timeout.
        """
        await self._rate_limit_wait()
        try:
            return await asyncio.wait_for(
                self._get_with_retries(url, **kwargs),
                timeout=self.settings.request_timeout,
            )
        except asyncio.TimeoutError:
            timeout = self.settings.request_timeout
            raise SourceError(
                f"[{self.name}] {url} timed out after {timeout:.1f}s"
            ) from None

    async def _get_with_retries(self, url: str, **kwargs: object) -> httpx.Response:
        client = await self._ensure_client()
        last_exc: Exception | None = None
        for attempt in range(1, self.max_retries + 1):
            try:
                resp = await client.get(url, **kwargs)  # type: ignore[arg-type]
                resp.raise_for_status()
                return resp
            except (httpx.HTTPStatusError, httpx.TransportError) as exc:
                last_exc = exc
                if attempt < self.max_retries:
                    await asyncio.sleep(self.retry_backoff * attempt)
                    client.headers["User-Agent"] = random.choice(_USER_AGENTS)
        raise SourceError(
            f"[{self.name}] {url} failed after {self.max_retries} attempts"
        ) from last_exc

    # ------------------------------------------------------------------
    # Fetch contract
    # ------------------------------------------------------------------

    @abc.abstractmethod
    async def scrape(self, context: DiscoveryContext) -> list[PartialEvent]:
        """Query the provider and return normalized events."""

    async def fetch(self, context: DiscoveryContext) -> list[PartialEvent]:
        """Run :meth:`scrape` under the adapter timeout; never raises.

        Provider errors, timeouts and unparseable responses are logged and
        reported as an empty result.
        """
        try:
            events = await asyncio.wait_for(
                self.scrape(context), timeout=self.settings.source_timeout
            )
        except asyncio.TimeoutError:
            log.warning(
                "[%s] timed out after %.1fs", self.name, self.settings.source_timeout
            )
            return []
        except (SourceError, httpx.HTTPError) as exc:
            log.error("[%s] provider request failed: %s", self.name, exc)
            return []
        except (ValidationError, ValueError, KeyError, TypeError):
            log.exception("[%s] could not parse provider response", self.name)
            return []
        finally:
            await self.aclose()

        log.info("[%s] found %d event(s)", self.name, len(events))
        return events

    async def aclose(self) -> None:
        if self._owns_client and self._client and not self._client.is_closed:
            await self._client.aclose()


# ------------------------------------------------------------------
# Registry
# ------------------------------------------------------------------

_registry: dict[EventSource, type[BaseSource]] = {}


def register(cls: type[BaseSource]) -> type[BaseSource]:
    """Class decorator that registers an adapter by its *source*."""
    _registry[cls.source] = cls
    return cls


def get_source(source: EventSource | str) -> type[BaseSource]:
    """Look up a registered adapter by source."""
    try:
        return _registry[EventSource(source)]
    except (KeyError, ValueError):
        raise KeyError(
            f"Unknown source: {source!r}. Available: {[s.value for s in _registry]}"
        )

"""Shared fixtures for the discovery and API tests."""

from datetime import datetime, timezone

import httpx
import pytest

from discovery.base import DiscoveryContext
from discovery.config import DiscoverySettings
from discovery.models import GroupSubscription


@pytest.fixture
def settings(tmp_path):
    return DiscoverySettings(
        eventbrite_api_key="eb-test",
        google_maps_api_key="gm-test",
        request_timeout=2.0,
        source_timeout=2.0,
        database_path=tmp_path / "events.db",
    )


@pytest.fixture
def context():
    start = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)
    return DiscoveryContext(
        family_id="fam-1",
        latitude=45.52,
        longitude=-122.68,
        radius_km=40.0,
        theme="Discovering Our Local Ecosystem",
        window_start=start,
        window_end=datetime(2026, 11, 2, 9, 0, tzinfo=timezone.utc),
        groups=[GroupSubscription(group_id="123", group_name="PDX Homeschoolers")],
    )


@pytest.fixture
def make_client():
    """Factory for AsyncClients whose requests are answered by a handler."""

    def factory(handler) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return factory

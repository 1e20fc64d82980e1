"""Runtime settings for the discovery pipeline.

Environment variables are read once (after loading an optional ``.env``) and
the resulting settings object is handed to every component that needs it.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel

DEFAULT_DATABASE_PATH = Path(__file__).parent.parent / "events.db"


class DiscoverySettings(BaseModel):
    # Provider credentials; a missing key makes that adapter skip itself.
    eventbrite_api_key: str | None = None
    google_maps_api_key: str | None = None

    # Per HTTP call, and per adapter as a whole.
    request_timeout: float = 8.0
    source_timeout: float = 10.0

    max_results: int = 12
    window_days: int = 14
    cache_ttl_hours: float = 6.0

    database_path: Path = DEFAULT_DATABASE_PATH

    @classmethod
    def from_env(cls) -> DiscoverySettings:
        """Build settings from the process environment (and ``.env``)."""
        load_dotenv()
        values: dict[str, object] = {
            "eventbrite_api_key": os.getenv("EVENTBRITE_API_KEY") or None,
            "google_maps_api_key": os.getenv("GOOGLE_MAPS_API_KEY") or None,
        }
        optional = {
            "request_timeout": "DISCOVERY_REQUEST_TIMEOUT",
            "source_timeout": "DISCOVERY_SOURCE_TIMEOUT",
            "max_results": "DISCOVERY_MAX_RESULTS",
            "window_days": "DISCOVERY_WINDOW_DAYS",
            "cache_ttl_hours": "DISCOVERY_CACHE_TTL_HOURS",
            "database_path": "DISCOVERY_DATABASE_PATH",
        }
        for field, env_name in optional.items():
            raw = os.getenv(env_name)
            if raw:
                values[field] = raw
        return cls(**values)

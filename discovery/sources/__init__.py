"""Auto-import all source adapters to trigger @register decorators."""

from discovery.sources import (  # noqa: F401
    community,
    places,
    ticketed,
)

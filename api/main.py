"""Homeschool Event Radar API."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

from discovery.config import DiscoverySettings
from discovery.logging_config import configure_logging
from discovery.models import DiscoveredEvent, EventSource

from .cache import CacheController, HouseholdNotFound
from .database import EventStore
from .households import SqliteHouseholdDirectory


def build_controller(settings: DiscoverySettings) -> CacheController:
    return CacheController(
        store=EventStore(settings.database_path),
        households=SqliteHouseholdDirectory(settings.database_path),
        settings=settings,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    if not hasattr(app.state, "controller"):
        app.state.controller = build_controller(DiscoverySettings.from_env())
    await app.state.controller.store.init()
    yield


app = FastAPI(title="Homeschool Event Radar", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _controller(request: Request) -> CacheController:
    return request.app.state.controller


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/api/families/{family_id}/events/week/{week_number}")
async def week_events(
    family_id: str, week_number: int, request: Request
) -> list[DiscoveredEvent]:
    """Events for one curriculum week, served from cache or refreshed."""
    controller = _controller(request)
    try:
        return await controller.get_week_events(family_id, week_number)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid week number")
    except HouseholdNotFound:
        raise HTTPException(status_code=404, detail="Family not found")


@app.get("/api/families/{family_id}/events")
async def stored_events(family_id: str, request: Request) -> list[DiscoveredEvent]:
    """Every stored event for a household, as exporters read them."""
    return await _controller(request).store.list_events(family_id)


@app.delete("/api/families/{family_id}/events")
async def clear_events(
    family_id: str, request: Request, source: EventSource | None = None
):
    """Drop a household's stored events, optionally for one source only."""
    store = _controller(request).store
    if source is None:
        removed = await store.delete_events_by_family(family_id)
    else:
        removed = await store.delete_events_by_source(family_id, source.value)
    return {"removed": removed}


@app.get("/api/families/{family_id}/sources")
async def list_sources(family_id: str, request: Request):
    """Stored event counts per source for a household."""
    return await _controller(request).store.count_by_source(family_id)


@app.post("/api/events/prune")
async def prune_events(request: Request):
    """Delete stored events that have already started."""
    removed = await _controller(request).prune_past_events()
    return {"removed": removed}

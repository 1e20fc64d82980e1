"""CLI entry-point: python -m discovery [run|list|keywords]."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone

import typer

from discovery.aggregator import SOURCE_PRECEDENCE, discover_weekly_events
from discovery.config import DiscoverySettings
from discovery.keywords import extract_keywords
from discovery.logging_config import configure_logging
from discovery.models import GroupSubscription

app = typer.Typer(help="Homeschool Event Radar – discovery CLI")


@app.command()
def run(
    lat: float = typer.Option(..., help="Household latitude."),
    lng: float = typer.Option(..., help="Household longitude."),
    theme: str = typer.Option("education", "--theme", "-t", help="Weekly theme."),
    radius_km: float = typer.Option(25.0, "--radius-km", "-r"),
    group: list[str] | None = typer.Option(
        None, "--group", "-g", help="Community group id (repeatable)."
    ),
    family_id: str = typer.Option("cli", help="Household id to stamp on results."),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Discover events once and print them as JSON."""
    configure_logging("DEBUG" if verbose else "INFO")
    settings = DiscoverySettings.from_env()
    groups = [GroupSubscription(group_id=g, group_name=g) for g in group or []]
    events = asyncio.run(
        discover_weekly_events(
            family_id,
            lat,
            lng,
            radius_km,
            theme,
            datetime.now(timezone.utc),
            groups,
            settings=settings,
        )
    )
    typer.echo(json.dumps([e.model_dump(mode="json") for e in events], indent=2))
    typer.echo(f"Discovered {len(events)} event(s).", err=True)


@app.command(name="list")
def list_sources() -> None:
    """List sources in dedupe precedence order."""
    for position, source in enumerate(SOURCE_PRECEDENCE, start=1):
        typer.echo(f"  {position}. {source.value}")


@app.command()
def keywords(theme: str = typer.Argument(help="Weekly theme text")) -> None:
    """Show the search keywords extracted from a theme."""
    for word in extract_keywords(theme):
        typer.echo(word)


if __name__ == "__main__":
    app()

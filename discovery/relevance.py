"""One-line "why this fits" annotations from theme keyword overlap."""

from __future__ import annotations

from discovery.keywords import extract_keywords


def why_it_fits(theme: str, event_name: str) -> str:
    matches = [word for word in extract_keywords(theme) if word in event_name.lower()]
    if matches:
        return f"Connects to your '{theme}' theme through {', '.join(matches)}"
    return f"Enriches your learning about {theme}."

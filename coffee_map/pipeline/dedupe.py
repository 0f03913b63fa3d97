"""Place identity deduplication."""

from __future__ import annotations

from typing import Iterable

from coffee_map.common.models import ResolutionOutcome


def deduplicate(outcomes: Iterable[ResolutionOutcome]) -> list[ResolutionOutcome]:
    # First occurrence in crawl order wins.
    unique: dict[str, ResolutionOutcome] = {}
    for outcome in outcomes:
        unique.setdefault(outcome.record.id, outcome)
    return list(unique.values())

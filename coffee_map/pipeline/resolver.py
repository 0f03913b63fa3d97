"""Cache-or-lookup resolution of crawl records."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Protocol

from coffee_map.common.errors import RecordError
from coffee_map.common.logging import log_event
from coffee_map.common.models import CrawlRecord, Origin, PlaceRecord, ResolutionOutcome
from coffee_map.pipeline.cache import lookup
from coffee_map.pipeline.counters import Counters
from coffee_map.pipeline.progress import NullProgressSink, ProgressSink
from coffee_map.pipeline.search_key import derive_key

_LOGGER = logging.getLogger(__name__)


class PlaceLookup(Protocol):
    def query(self, search_key: str) -> PlaceRecord: ...


@dataclass(frozen=True)
class ResolveResult:
    outcomes: list[ResolutionOutcome] = field(default_factory=list)
    counters: Counters = field(default_factory=Counters)


def resolve(
    record: CrawlRecord,
    cache: Mapping[str, PlaceRecord],
    client: PlaceLookup,
) -> ResolutionOutcome:
    key = derive_key(record)
    cached = lookup(cache, key.as_string)
    if cached is not None:
        return ResolutionOutcome(key=key, record=cached, origin=Origin.CACHED)
    place = client.query(key.as_string)
    return ResolutionOutcome(key=key, record=place, origin=Origin.QUERIED)


def _resolve_item(
    item: CrawlRecord | RecordError,
    cache: Mapping[str, PlaceRecord],
    client: PlaceLookup,
) -> ResolutionOutcome | RecordError:
    if isinstance(item, RecordError):
        return item
    try:
        return resolve(item, cache, client)
    except RecordError as exc:
        exc.endpoint = item.endpoint
        return exc


def resolve_all(
    items: Iterable[CrawlRecord | RecordError],
    cache: Mapping[str, PlaceRecord],
    client: PlaceLookup,
    *,
    sink: ProgressSink | None = None,
    logger: logging.Logger | None = None,
    run_id: str | None = None,
) -> ResolveResult:
    logger = logger or _LOGGER
    sink = sink or NullProgressSink()
    counters = Counters()
    outcomes: list[ResolutionOutcome] = []

    for item in items:
        result = _resolve_item(item, cache, client)
        counters = counters.update(result)
        if isinstance(result, ResolutionOutcome):
            outcomes.append(result)
        else:
            log_event(
                logger,
                f"dropped crawl record: {result}",
                level=logging.WARNING,
                run_id=run_id,
                stage="resolve",
                event="RECORD_DROPPED",
                status="error",
                endpoint=getattr(result, "endpoint", None),
                search_key=getattr(result, "search_key", None),
                error_code=result.error_code,
            )
        sink.push(counters)

    return ResolveResult(outcomes=outcomes, counters=counters)

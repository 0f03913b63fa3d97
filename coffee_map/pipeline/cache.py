"""Search key -> place record cache persisted as a KML document."""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Iterable, Mapping

from coffee_map.common.constants import CACHE_FILENAME
from coffee_map.common.errors import CacheError
from coffee_map.common.logging import log_event
from coffee_map.common.models import PlaceRecord, ResolutionOutcome
from coffee_map.pipeline.kml import SEARCH_TERM_ATTR, placemark_to_record, read_kml_placemarks, write_kml_document

_LOGGER = logging.getLogger(__name__)


def load_cache(cache_dir: Path, logger: logging.Logger | None = None) -> dict[str, PlaceRecord]:
    """Index every placemark found in ``cache_dir/*.kml`` by its search term.

    Placemarks without a search term, or whose place data cannot be decoded,
    are skipped. A later file overrides an earlier one for the same key.
    """
    logger = logger or _LOGGER
    cache: dict[str, PlaceRecord] = {}
    if not cache_dir.is_dir():
        return cache

    skipped_without_key = 0
    for path in sorted(cache_dir.glob("*.kml")):
        try:
            placemarks = read_kml_placemarks(path)
        except (ET.ParseError, OSError) as exc:
            log_event(
                logger,
                f"skipping unreadable cache file {path.name}: {exc}",
                level=logging.WARNING,
                stage="cache",
                event="CACHE_FILE_UNREADABLE",
                status="warning",
                error_code=CacheError.error_code,
            )
            continue

        for element in placemarks:
            search_term = element.get(SEARCH_TERM_ATTR)
            if not search_term:
                skipped_without_key += 1
                continue
            try:
                cache[search_term] = placemark_to_record(element)
            except CacheError as exc:
                log_event(
                    logger,
                    f"skipping cached placemark: {exc}",
                    level=logging.WARNING,
                    stage="cache",
                    event="CACHE_RECORD_SKIPPED",
                    status="warning",
                    search_key=search_term,
                    error_code=exc.error_code,
                )

    if skipped_without_key:
        log_event(
            logger,
            f"skipped {skipped_without_key} cached placemarks without a search term",
            stage="cache",
            event="CACHE_RECORD_WITHOUT_KEY",
            status="ok",
        )
    log_event(
        logger,
        f"existing cache contains {len(cache)} entries",
        stage="cache",
        event="CACHE_LOADED",
        status="ok",
        rows_out=len(cache),
    )
    return cache


def lookup(cache: Mapping[str, PlaceRecord], key: str) -> PlaceRecord | None:
    return cache.get(key)


def records_by_key(outcomes: Iterable[ResolutionOutcome]) -> dict[str, PlaceRecord]:
    return {outcome.key.as_string: outcome.record for outcome in outcomes}


def merge(
    old_cache: Mapping[str, PlaceRecord],
    new_records: Mapping[str, PlaceRecord],
) -> dict[str, PlaceRecord]:
    merged = dict(old_cache)
    merged.update(new_records)
    return merged


def persist(cache: Mapping[str, PlaceRecord], cache_dir: Path, title: str) -> Path:
    return write_kml_document(cache_dir / CACHE_FILENAME, title, cache.items())

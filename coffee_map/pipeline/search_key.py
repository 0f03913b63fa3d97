"""Canonical search key derivation for crawl records."""

from __future__ import annotations

from urllib.parse import urlparse

from coffee_map.common.errors import DerivationError
from coffee_map.common.models import CrawlRecord, KeyKind, SearchKey

URL_FRAGMENT_SEGMENT = 1


def _path_segments(endpoint: str) -> list[str]:
    path = urlparse(endpoint).path
    if not path.startswith("/"):
        return []
    return path[1:].split("/")


def derive_key(record: CrawlRecord) -> SearchKey:
    if record.details is not None:
        text = f"{record.details.name} {record.details.address}"
        kind = KeyKind.FROM_DETAILS
    else:
        segments = _path_segments(record.endpoint)
        if len(segments) <= URL_FRAGMENT_SEGMENT:
            raise DerivationError(f"Endpoint has too few path segments: {record.endpoint}")
        text = segments[URL_FRAGMENT_SEGMENT].replace("-", " ")
        kind = KeyKind.FROM_URL_FRAGMENT

    if not text.strip():
        raise DerivationError(f"Derived an empty search key from {record.endpoint}")
    return SearchKey(kind=kind, text=text)

"""Data models used across the pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class CafeDetails:
    name: str
    address: str


@dataclass(frozen=True)
class CrawlRecord:
    endpoint: str
    details: CafeDetails | None = None


class KeyKind(str, Enum):
    FROM_DETAILS = "from_details"
    FROM_URL_FRAGMENT = "from_url_fragment"


@dataclass(frozen=True)
class SearchKey:
    kind: KeyKind
    text: str

    @property
    def as_string(self) -> str:
        return self.text


@dataclass(frozen=True)
class Location:
    lat: float
    lon: float


@dataclass(frozen=True)
class PlaceRecord:
    id: str
    display_name: str
    formatted_address: str
    map_uri: str
    location: Location
    categories: frozenset[str] = frozenset()


class Origin(str, Enum):
    CACHED = "cached"
    QUERIED = "queried"


@dataclass(frozen=True)
class ResolutionOutcome:
    key: SearchKey
    record: PlaceRecord
    origin: Origin

"""Immutable run tallies, folded once per processed crawl record."""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields, replace

from coffee_map.common.errors import (
    DerivationError,
    EndpointParseError,
    LookupTransportError,
    MalformedLineError,
    MalformedResponseError,
    PlaceNotFoundError,
    RecordError,
    SourceIOError,
)
from coffee_map.common.models import KeyKind, Origin, ResolutionOutcome

_OUTCOME_FIELDS = {
    (Origin.CACHED, KeyKind.FROM_URL_FRAGMENT): "cached_with_url",
    (Origin.CACHED, KeyKind.FROM_DETAILS): "cached_with_cafe_details",
    (Origin.QUERIED, KeyKind.FROM_URL_FRAGMENT): "queried_with_url",
    (Origin.QUERIED, KeyKind.FROM_DETAILS): "queried_with_cafe_details",
}

_ERROR_FIELDS: tuple[tuple[type[RecordError], str], ...] = (
    (MalformedLineError, "malformed_line_errors"),
    (EndpointParseError, "endpoint_parse_errors"),
    (SourceIOError, "source_io_errors"),
    (DerivationError, "derivation_errors"),
    (LookupTransportError, "lookup_transport_errors"),
    (PlaceNotFoundError, "place_not_found_errors"),
    (MalformedResponseError, "malformed_response_errors"),
)


@dataclass(frozen=True)
class Counters:
    cached_with_url: int = 0
    cached_with_cafe_details: int = 0
    queried_with_url: int = 0
    queried_with_cafe_details: int = 0
    malformed_line_errors: int = 0
    endpoint_parse_errors: int = 0
    source_io_errors: int = 0
    derivation_errors: int = 0
    lookup_transport_errors: int = 0
    place_not_found_errors: int = 0
    malformed_response_errors: int = 0

    def update(self, item: ResolutionOutcome | RecordError) -> "Counters":
        field_name = _field_for(item)
        if field_name is None:
            return self
        return replace(self, **{field_name: getattr(self, field_name) + 1})

    @property
    def resolved(self) -> int:
        return sum(getattr(self, name) for name in _OUTCOME_FIELDS.values())

    @property
    def failed(self) -> int:
        return self.processed - self.resolved

    @property
    def processed(self) -> int:
        return sum(getattr(self, f.name) for f in fields(self))

    def as_dict(self) -> dict[str, int]:
        return asdict(self)

    def postfix(self) -> dict[str, int]:
        return {name: value for name, value in self.as_dict().items() if value}


def _field_for(item: ResolutionOutcome | RecordError) -> str | None:
    if isinstance(item, ResolutionOutcome):
        return _OUTCOME_FIELDS[(item.origin, item.key.kind)]
    for error_type, field_name in _ERROR_FIELDS:
        if isinstance(item, error_type):
            return field_name
    return None

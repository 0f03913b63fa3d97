"""Google Places text search with cafe-first candidate selection."""

from __future__ import annotations

from typing import Any, Sequence

from coffee_map.common.constants import CAFE_CATEGORIES, PLACES_FIELD_MASK
from coffee_map.common.errors import (
    LookupTransportError,
    MalformedResponseError,
    PlaceNotFoundError,
)
from coffee_map.common.http import HttpClient, HttpRequestError, RetryConfig, TimeoutConfig
from coffee_map.common.models import Location, PlaceRecord

DEFAULT_ENDPOINT = "https://places.googleapis.com/v1/places:searchText"


def _require_str(mapping: dict, key: str) -> str:
    value = mapping.get(key)
    if not isinstance(value, str):
        raise MalformedResponseError(f"Place field {key!r} missing or not a string")
    return value


def _require_float(mapping: dict, key: str) -> float:
    value = mapping.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedResponseError(f"Place field {key!r} missing or not a number")
    return float(value)


def parse_place(item: Any) -> PlaceRecord:
    if not isinstance(item, dict):
        raise MalformedResponseError("Place candidate is not an object")

    display_name = item.get("displayName")
    location = item.get("location")
    types = item.get("types")
    if not isinstance(display_name, dict):
        raise MalformedResponseError("Place field 'displayName' missing or not an object")
    if not isinstance(location, dict):
        raise MalformedResponseError("Place field 'location' missing or not an object")
    if not isinstance(types, list) or not all(isinstance(t, str) for t in types):
        raise MalformedResponseError("Place field 'types' missing or not a list of strings")

    return PlaceRecord(
        id=_require_str(item, "id"),
        display_name=_require_str(display_name, "text"),
        formatted_address=_require_str(item, "formattedAddress"),
        map_uri=_require_str(item, "googleMapsUri"),
        location=Location(
            lat=_require_float(location, "latitude"),
            lon=_require_float(location, "longitude"),
        ),
        categories=frozenset(types),
    )


def select_best_match(candidates: Sequence[PlaceRecord], search_key: str = "") -> PlaceRecord:
    """Pick the first cafe or coffee shop in server order, else the first candidate."""
    if not candidates:
        raise PlaceNotFoundError(f"No places returned for {search_key!r}")
    for candidate in candidates:
        if candidate.categories & CAFE_CATEGORIES:
            return candidate
    return candidates[0]


class GooglePlacesClient:
    def __init__(
        self,
        api_key: str,
        *,
        http_client: HttpClient | None = None,
        endpoint: str = DEFAULT_ENDPOINT,
        timeout: TimeoutConfig | None = None,
    ) -> None:
        self.api_key = api_key
        self.endpoint = endpoint
        self.timeout = timeout
        self.owns_client = http_client is None
        self.http_client = http_client or HttpClient()

    @classmethod
    def from_settings(cls, api_key: str, places_settings: dict) -> "GooglePlacesClient":
        timeout = TimeoutConfig(
            connect=float(places_settings["timeout"]["connect"]),
            read=float(places_settings["timeout"]["read"]),
        )
        http_client = HttpClient(
            timeout=timeout,
            retry=RetryConfig(max_attempts=int(places_settings["max_attempts"])),
            places_rate_per_sec=float(places_settings["requests_per_second"]),
        )
        client = cls(
            api_key,
            http_client=http_client,
            endpoint=places_settings.get("endpoint") or DEFAULT_ENDPOINT,
            timeout=timeout,
        )
        client.owns_client = True
        return client

    def close(self) -> None:
        if self.owns_client:
            self.http_client.close()

    def _headers(self) -> dict[str, str]:
        return {
            "X-Goog-Api-Key": self.api_key,
            "X-Goog-FieldMask": PLACES_FIELD_MASK,
        }

    def query(self, search_key: str) -> PlaceRecord:
        try:
            payload = self.http_client.post_json(
                self.endpoint,
                source_type="places",
                json_body={"textQuery": search_key},
                headers=self._headers(),
                timeout=self.timeout,
            )
        except HttpRequestError as exc:
            raise LookupTransportError(
                f"search_key: {search_key}, status: {exc.status_code}, error: {exc}",
                search_key=search_key,
                status_code=exc.status_code,
            ) from exc

        if not isinstance(payload, dict) or "places" not in payload:
            raise PlaceNotFoundError(f"No places field in response for {search_key!r}")
        places = payload["places"]
        if not isinstance(places, list):
            raise MalformedResponseError(f"places is not a list for {search_key!r}")

        candidates = [parse_place(item) for item in places]
        return select_best_match(candidates, search_key)

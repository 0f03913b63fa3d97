"""Geometry helpers for KML point coordinates."""

from __future__ import annotations

from coffee_map.common.models import Location


def format_point_coordinates(location: Location, altitude: float = 0.0) -> str:
    return f"{location.lon!r},{location.lat!r},{altitude!r}"


def parse_point_coordinates(text: str | None) -> Location | None:
    if not text:
        return None
    parts = [part.strip() for part in text.strip().split(",")]
    if len(parts) < 2:
        return None
    try:
        lon = float(parts[0])
        lat = float(parts[1])
    except ValueError:
        return None
    return Location(lat=lat, lon=lon)

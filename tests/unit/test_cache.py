from __future__ import annotations

from dataclasses import replace
from pathlib import Path

from coffee_map.common.models import Location, PlaceRecord
from coffee_map.pipeline.cache import load_cache, lookup, merge, persist
from coffee_map.pipeline.kml import write_kml_document


def _record(place_id: str, name: str | None = None) -> PlaceRecord:
    return PlaceRecord(
        id=place_id,
        display_name=name or f"Cafe {place_id}",
        formatted_address=f"{place_id} Road, Oslo",
        map_uri=f"https://maps.google.com/?cid={place_id}",
        location=Location(lat=59.9, lon=10.7),
        categories=frozenset({"coffee_shop"}),
    )


def test_load_cache_missing_directory_is_empty(tmp_path: Path):
    assert load_cache(tmp_path / "does-not-exist") == {}


def test_merge_overwrites_same_key_and_preserves_others():
    old = {"a": _record("1"), "b": _record("2")}
    new = {"b": _record("9"), "c": _record("3")}

    merged = merge(old, new)

    assert merged == {"a": _record("1"), "b": _record("9"), "c": _record("3")}
    assert old == {"a": _record("1"), "b": _record("2")}


def test_lookup_is_a_plain_read():
    cache = {"a": _record("1")}
    assert lookup(cache, "a") == _record("1")
    assert lookup(cache, "missing") is None
    assert cache == {"a": _record("1")}


def test_cache_round_trip_through_persist_and_load(tmp_path: Path):
    cache_dir = tmp_path / "cache"
    persist({"a": _record("1"), "b": _record("2")}, cache_dir, "cache")
    loaded = load_cache(cache_dir)

    new_records = {"b": _record("2", name="Renamed"), "c": _record("3")}
    persist(merge(loaded, new_records), cache_dir, "cache")
    reloaded = load_cache(cache_dir)

    assert reloaded["a"] == _record("1")
    assert reloaded["b"] == _record("2", name="Renamed")
    assert reloaded["c"] == _record("3")
    assert len(reloaded) == 3


def test_load_cache_reads_every_kml_document_in_directory(tmp_path: Path):
    write_kml_document(tmp_path / "ect_chunk_0.kml", "chunk", [("x", _record("1"))])
    write_kml_document(tmp_path / "ect_chunk_1.kml", "chunk", [("y", _record("2"))])
    (tmp_path / "notes.txt").write_text("ignored", encoding="utf-8")

    assert set(load_cache(tmp_path)) == {"x", "y"}


def test_load_cache_skips_placemarks_without_search_term_and_broken_files(tmp_path: Path):
    path = write_kml_document(tmp_path / "a.kml", "t", [("keep", _record("1")), ("drop", _record("2"))])
    text = path.read_text(encoding="utf-8").replace('search_term="drop" ', "")
    path.write_text(text, encoding="utf-8")
    (tmp_path / "b.kml").write_text("<kml><Document>", encoding="utf-8")

    assert set(load_cache(tmp_path)) == {"keep"}


def test_control_characters_do_not_poison_the_cache_file(tmp_path: Path):
    cache_dir = tmp_path / "cache"
    bad = replace(_record("2"), display_name="Bad\x0bName", formatted_address="2\x00 Road")

    persist({"a": _record("1"), "b\x1f key": bad}, cache_dir, "cache")
    loaded = load_cache(cache_dir)

    assert loaded["a"] == _record("1")
    assert loaded["b key"] == replace(bad, display_name="BadName", formatted_address="2 Road")


def test_cache_round_trip_keeps_empty_and_padded_fields(tmp_path: Path):
    cache_dir = tmp_path / "cache"
    record = replace(
        _record("1"),
        display_name="",
        formatted_address="  1 Road, Oslo ",
        map_uri=" https://maps.google.com/?cid=1",
    )

    persist({"a": record}, cache_dir, "cache")

    assert load_cache(cache_dir) == {"a": record}

"""Minimal strict schemas for YAML config validation."""

from __future__ import annotations

from coffee_map.common.errors import ConfigError


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
    if not isinstance(obj, dict):
        raise ConfigError(f"{ctx} must be a mapping")
    missing = required - set(obj)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise ConfigError(f"Missing keys in {ctx}: {missing_str}")


def _assert_no_unknown_keys(obj: dict, known: set[str], ctx: str, allow_unknown: bool) -> None:
    if allow_unknown:
        return
    unknown = set(obj) - known
    if unknown:
        unknown_str = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown keys in {ctx}: {unknown_str}")


def _assert_positive_number(value: object, ctx: str) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigError(f"{ctx} must be a positive number, got {value!r}")


def _assert_positive_int(value: object, ctx: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigError(f"{ctx} must be a positive integer, got {value!r}")


def validate_settings_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    top_required = {"crawl", "places", "output", "progress"}
    _assert_required_keys(cfg, top_required, "settings")
    _assert_no_unknown_keys(cfg, top_required, "settings", allow_unknown)

    crawl_required = {
        "command",
        "seed_url",
        "match_regex",
        "search_depth",
        "requests_per_second",
        "name_selector",
        "address_selector",
    }
    _assert_required_keys(cfg["crawl"], crawl_required, "crawl")
    _assert_no_unknown_keys(cfg["crawl"], crawl_required, "crawl", allow_unknown)
    _assert_positive_int(cfg["crawl"]["search_depth"], "crawl.search_depth")
    _assert_positive_int(cfg["crawl"]["requests_per_second"], "crawl.requests_per_second")

    places_required = {"endpoint", "requests_per_second", "timeout", "max_attempts"}
    _assert_required_keys(cfg["places"], places_required, "places")
    _assert_no_unknown_keys(cfg["places"], places_required, "places", allow_unknown)
    _assert_required_keys(cfg["places"]["timeout"], {"connect", "read"}, "places.timeout")
    _assert_positive_number(cfg["places"]["timeout"]["connect"], "places.timeout.connect")
    _assert_positive_number(cfg["places"]["timeout"]["read"], "places.timeout.read")
    _assert_positive_number(cfg["places"]["requests_per_second"], "places.requests_per_second")
    _assert_positive_int(cfg["places"]["max_attempts"], "places.max_attempts")

    output_required = {"batch_size", "prefix", "title", "cache_dir", "output_dir"}
    _assert_required_keys(cfg["output"], output_required, "output")
    _assert_no_unknown_keys(cfg["output"], output_required, "output", allow_unknown)
    _assert_positive_int(cfg["output"]["batch_size"], "output.batch_size")

    _assert_required_keys(cfg["progress"], {"enabled", "log_every"}, "progress")
    _assert_positive_int(cfg["progress"]["log_every"], "progress.log_every")

    return cfg

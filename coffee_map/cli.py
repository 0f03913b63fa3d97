"""CLI entrypoint for the coffee map places pipeline."""

from __future__ import annotations

import argparse
import logging
import os
import sys
import time
from pathlib import Path

from coffee_map.common.config_loader import apply_overrides, load_all_configs, resolve_dir
from coffee_map.common.constants import API_KEY_ENV, COMMANDS, EXIT_HARD_FAIL, EXIT_PARTIAL, EXIT_SUCCESS
from coffee_map.common.errors import ConfigError, OutputError, PipelineError
from coffee_map.common.ids import generate_run_id
from coffee_map.common.logging import build_logger, log_event
from coffee_map.common.time_utils import elapsed_ms
from coffee_map.crawl.cafe_details import CafeDetailsExtractor
from coffee_map.crawl.katana_stream import EXIT_STATUS_CRASHED, KatanaStream, iter_crawl_records, replay_file
from coffee_map.pipeline.cache import load_cache, merge, persist, records_by_key
from coffee_map.pipeline.counters import Counters
from coffee_map.pipeline.dedupe import deduplicate
from coffee_map.pipeline.emit import emit_chunks
from coffee_map.pipeline.progress import FanOutProgressSink, LogProgressSink, TqdmProgressSink
from coffee_map.pipeline.reports import write_run_summary
from coffee_map.pipeline.resolver import ResolveResult, resolve_all
from coffee_map.places.google_places import GooglePlacesClient


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("command", choices=COMMANDS)
    parser.add_argument("--input", default=None, help="saved crawler JSONL output (replay only)")
    parser.add_argument("--api-key", default=None, help=f"Places API key (default: ${API_KEY_ENV})")
    parser.add_argument("--run-id", default=None)
    parser.add_argument("--config-dir", default="./config")
    parser.add_argument("--overlay-config-dir", default=None)
    parser.add_argument("--data-dir", default="./data")
    parser.add_argument("--cache-dir", default=None)
    parser.add_argument("--output-dir", default=None)
    parser.add_argument("--batch-size", type=int, default=None)
    parser.add_argument("--search-depth", type=int, default=None)
    parser.add_argument("--requests-per-second", type=int, default=None)
    parser.add_argument("--no-progress", action="store_true")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARN", "ERROR"])
    parser.add_argument("--strict", action="store_true")
    return parser.parse_args(argv)


def _settings_for(args: argparse.Namespace) -> dict:
    overlay_config_dir = Path(args.overlay_config_dir) if args.overlay_config_dir else None
    bundle = load_all_configs(Path(args.config_dir), overlay_config_dir=overlay_config_dir)
    return apply_overrides(
        bundle.settings,
        {
            "crawl": {
                "search_depth": args.search_depth,
                "requests_per_second": args.requests_per_second,
            },
            "output": {
                "batch_size": args.batch_size,
                "cache_dir": args.cache_dir,
                "output_dir": args.output_dir,
            },
        },
    )


def _build_sink(settings: dict, args: argparse.Namespace, logger: logging.Logger, run_id: str) -> FanOutProgressSink:
    sinks = [LogProgressSink(logger, run_id=run_id, log_every=int(settings["progress"]["log_every"]))]
    if settings["progress"]["enabled"] and not args.no_progress:
        sinks.append(TqdmProgressSink())
    return FanOutProgressSink(sinks, logger)


def _resolve_records(
    args: argparse.Namespace,
    settings: dict,
    cache: dict,
    logger: logging.Logger,
    run_id: str,
) -> tuple[ResolveResult, str | None]:
    if args.command == "replay" and not args.input:
        raise ConfigError("replay requires --input")
    api_key = args.api_key or os.environ.get(API_KEY_ENV)
    if not api_key:
        raise ConfigError(f"A Places API key is required (--api-key or ${API_KEY_ENV})")

    stream = None
    if args.command == "crawl":
        stream = KatanaStream(settings["crawl"], logger)
        lines = stream
    else:
        lines = replay_file(Path(args.input))

    client = GooglePlacesClient.from_settings(api_key, settings["places"])
    sink = _build_sink(settings, args, logger, run_id)
    try:
        items = iter_crawl_records(lines, CafeDetailsExtractor.from_settings(settings["crawl"]))
        result = resolve_all(items, cache, client, sink=sink, logger=logger, run_id=run_id)
    finally:
        sink.close()
        client.close()
        if stream is not None:
            stream.terminate()

    return result, (stream.exit_status if stream is not None else None)


def run_command(args: argparse.Namespace) -> int:
    run_id = args.run_id or generate_run_id()
    data_dir = Path(args.data_dir)
    logger = build_logger(run_id, data_dir=data_dir, level=args.log_level)

    counters = Counters()
    unique_count = 0
    chunk_paths: list[Path] = []
    cache_entries = 0
    crawl_exit_status = None
    fatal_error: str | None = None
    stage = "config"
    try:
        settings = _settings_for(args)
        output_cfg = settings["output"]
        cache_dir = resolve_dir(output_cfg["cache_dir"], data_dir)
        output_dir = resolve_dir(output_cfg["output_dir"], data_dir)

        stage = "cache"
        cache = load_cache(cache_dir, logger)

        stage = "resolve"
        started_at = time.monotonic()
        log_event(logger, "stage start", run_id=run_id, stage=stage, event="STAGE_START", status="ok")
        result, crawl_exit_status = _resolve_records(args, settings, cache, logger, run_id)
        counters = result.counters
        log_event(
            logger,
            "stage end",
            run_id=run_id,
            stage=stage,
            event="STAGE_END",
            status="ok",
            rows_in=counters.processed,
            rows_out=counters.resolved,
            duration_ms=elapsed_ms(started_at),
        )

        stage = "dedupe"
        unique = deduplicate(result.outcomes)
        unique_count = len(unique)

        stage = "cache"
        merged = merge(cache, records_by_key(result.outcomes))
        cache_entries = len(merged)
        cache_error: OutputError | None = None
        try:
            persist(merged, cache_dir, f"{output_cfg['title']} cache")
        except OutputError as exc:
            # Chunks are still written below before the run fails.
            cache_error = exc

        stage = "emit"
        chunk_paths = emit_chunks(
            unique,
            int(output_cfg["batch_size"]),
            output_dir,
            prefix=output_cfg["prefix"],
            title=output_cfg["title"],
        )
        log_event(
            logger,
            f"wrote {len(chunk_paths)} chunk documents",
            run_id=run_id,
            stage=stage,
            event="STAGE_END",
            status="ok",
            rows_in=unique_count,
            rows_out=len(chunk_paths),
        )

        if cache_error is not None:
            stage = "cache"
            raise cache_error
    except PipelineError as exc:
        fatal_error = exc.error_code
        log_event(
            logger,
            f"{stage} failed: {exc}",
            level=logging.ERROR,
            run_id=run_id,
            stage=stage,
            event="STAGE_FAIL",
            status="error",
            error_code=fatal_error,
        )
    except Exception as exc:
        fatal_error = "UNEXPECTED_ERROR"
        log_event(
            logger,
            f"unexpected failure in {stage}: {exc!r}",
            level=logging.ERROR,
            run_id=run_id,
            stage=stage,
            event="STAGE_FAIL",
            status="error",
            error_code=fatal_error,
        )

    write_run_summary(
        data_dir,
        run_id=run_id,
        command=args.command,
        counters=counters,
        unique_places=unique_count,
        chunk_paths=chunk_paths,
        cache_entries=cache_entries,
        crawl_exit_status=crawl_exit_status,
        fatal_error=fatal_error,
    )
    if fatal_error is not None:
        return EXIT_HARD_FAIL
    if crawl_exit_status == EXIT_STATUS_CRASHED:
        return EXIT_PARTIAL
    if args.strict and counters.failed:
        return EXIT_PARTIAL
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv or sys.argv[1:])
    try:
        return run_command(args)
    except PipelineError:
        return EXIT_HARD_FAIL
    except Exception:
        return EXIT_HARD_FAIL


if __name__ == "__main__":
    raise SystemExit(main())

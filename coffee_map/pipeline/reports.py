"""Run report aggregation."""

from __future__ import annotations

from pathlib import Path

from coffee_map.common.fs import write_json
from coffee_map.pipeline.counters import Counters


def run_status(counters: Counters, crawl_exit_status: str | None, fatal_error: str | None) -> str:
    if fatal_error:
        return "error"
    if counters.failed or crawl_exit_status == "crashed":
        return "partial"
    return "success"


def write_run_summary(
    data_dir: Path,
    *,
    run_id: str,
    command: str,
    counters: Counters,
    unique_places: int,
    chunk_paths: list[Path],
    cache_entries: int,
    crawl_exit_status: str | None = None,
    fatal_error: str | None = None,
) -> Path:
    summary_path = data_dir / "out" / "reports" / "run_summary.json"
    payload = {
        "run_id": run_id,
        "command": command,
        "status": run_status(counters, crawl_exit_status, fatal_error),
        "totals": {
            "processed": counters.processed,
            "resolved": counters.resolved,
            "failed": counters.failed,
            "unique_places": unique_places,
            "chunks": len(chunk_paths),
            "cache_entries": cache_entries,
        },
        "counters": counters.as_dict(),
        "chunk_files": [str(path) for path in chunk_paths],
        "crawl_exit_status": crawl_exit_status,
        "fatal_error": fatal_error,
    }
    write_json(summary_path, payload)
    return summary_path

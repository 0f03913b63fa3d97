"""Crawl record source backed by the katana crawler's JSONL output."""

from __future__ import annotations

import json
import logging
import shutil
import subprocess
from pathlib import Path
from typing import Iterable, Iterator
from urllib.parse import urlparse

from coffee_map.common.errors import (
    CrawlSourceStartError,
    EndpointParseError,
    MalformedLineError,
    SourceError,
    SourceIOError,
)
from coffee_map.common.fs import iter_text_lines
from coffee_map.common.logging import log_event
from coffee_map.common.models import CrawlRecord
from coffee_map.crawl.cafe_details import CafeDetailsExtractor

EXIT_STATUS_RUNNING = "running"
EXIT_STATUS_COMPLETED = "completed"
EXIT_STATUS_CRASHED = "crashed"
EXIT_STATUS_TERMINATED = "terminated"


def _parse_endpoint(payload: dict) -> str:
    request = payload.get("request")
    endpoint = request.get("endpoint") if isinstance(request, dict) else None
    if not isinstance(endpoint, str) or not endpoint.strip():
        raise EndpointParseError("Crawl line has no request.endpoint string")
    endpoint = endpoint.strip()
    parsed = urlparse(endpoint)
    if not parsed.scheme or not parsed.netloc:
        raise EndpointParseError(f"Crawl endpoint is not an absolute URI: {endpoint}")
    return endpoint


def _response_body(payload: dict) -> str | None:
    response = payload.get("response")
    if not isinstance(response, dict):
        return None
    body = response.get("body")
    return body if isinstance(body, str) else None


def parse_crawl_line(line: str, extractor: CafeDetailsExtractor) -> CrawlRecord:
    try:
        payload = json.loads(line)
    except ValueError as exc:
        raise MalformedLineError(f"Crawl line is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise MalformedLineError("Crawl line is not a JSON object")

    endpoint = _parse_endpoint(payload)
    body = _response_body(payload)
    details = extractor.extract(body) if body else None
    return CrawlRecord(endpoint=endpoint, details=details)


def iter_crawl_records(
    lines: Iterable[str],
    extractor: CafeDetailsExtractor | None = None,
) -> Iterator[CrawlRecord | SourceError]:
    """Yield one crawl record, or the error explaining its absence, per input line."""
    extractor = extractor or CafeDetailsExtractor()
    line_iter = iter(lines)
    while True:
        try:
            line = next(line_iter)
        except StopIteration:
            return
        except UnicodeDecodeError as exc:
            yield MalformedLineError(f"Crawl line is not valid UTF-8: {exc}")
            continue
        except OSError as exc:
            yield SourceIOError(f"Reading crawl output failed: {exc}")
            return

        if not line.strip():
            continue
        try:
            yield parse_crawl_line(line, extractor)
        except SourceError as exc:
            yield exc


def replay_file(path: Path) -> Iterator[str]:
    if not path.exists():
        raise CrawlSourceStartError(f"Crawl replay file not found: {path}")
    # Undecodable bytes surface as malformed lines instead of aborting the read.
    return iter_text_lines(path, errors="replace")


def build_katana_args(crawl_settings: dict) -> list[str]:
    return [
        "-u",
        crawl_settings["seed_url"],
        "-mr",
        crawl_settings["match_regex"],
        "-d",
        str(crawl_settings["search_depth"]),
        "-rl",
        str(crawl_settings["requests_per_second"]),
        "-silent",
        "-jsonl",
    ]


class KatanaStream:
    """Iterates the stdout lines of a running katana process.

    The process is spawned on construction. Lines are read one at a time, so a
    slow consumer stalls katana on its full stdout pipe. Once stdout closes the
    process is reaped and ``exit_status`` tells a finished crawl apart from a
    crashed one, or from one stopped early by ``terminate``.
    """

    def __init__(self, crawl_settings: dict, logger: logging.Logger | None = None) -> None:
        self.logger = logger or logging.getLogger(__name__)
        command = crawl_settings.get("command") or "katana"
        executable = shutil.which(command)
        if executable is None:
            raise CrawlSourceStartError(f"Crawler executable not found on PATH: {command}")

        self.args = [executable, *build_katana_args(crawl_settings)]
        try:
            self.process = subprocess.Popen(
                self.args,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as exc:
            raise CrawlSourceStartError(f"Failed to start crawler {command}: {exc}") from exc
        self.returncode: int | None = None
        self.exit_status = EXIT_STATUS_RUNNING

    def __iter__(self) -> Iterator[str]:
        if self.process.stdout is None:
            raise CrawlSourceStartError(f"Crawler {self.args[0]} has no stdout pipe")
        try:
            for line in self.process.stdout:
                yield line.rstrip("\n")
        finally:
            self._reap()

    def _reap(self) -> None:
        if self.exit_status != EXIT_STATUS_RUNNING:
            return
        if self.process.stdout is not None:
            self.process.stdout.close()
        self.returncode = self.process.wait()
        if self.returncode == 0:
            self.exit_status = EXIT_STATUS_COMPLETED
            return
        self.exit_status = EXIT_STATUS_CRASHED
        log_event(
            self.logger,
            f"crawler exited with status {self.returncode}",
            level=logging.ERROR,
            stage="crawl",
            source="katana",
            event="CRAWL_SOURCE_CRASHED",
            status="error",
            error_code="CRAWL_SOURCE_CRASHED",
        )

    def terminate(self) -> None:
        """Stop a crawler that is still running and reap it."""
        if self.exit_status != EXIT_STATUS_RUNNING:
            return
        if self.process.poll() is None:
            self.process.terminate()
        if self.process.stdout is not None:
            self.process.stdout.close()
        self.returncode = self.process.wait()
        self.exit_status = EXIT_STATUS_TERMINATED

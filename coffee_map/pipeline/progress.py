"""Push-based progress sinks fed with immutable counter snapshots.

A sink only observes the run. Any failure inside a sink is logged once and the
sink is switched off; it never changes what the pipeline resolves or writes.
"""

from __future__ import annotations

import logging
from typing import Protocol

from tqdm import tqdm

from coffee_map.common.logging import log_event
from coffee_map.pipeline.counters import Counters


class ProgressSink(Protocol):
    def push(self, snapshot: Counters) -> None: ...

    def close(self) -> None: ...


class NullProgressSink:
    def push(self, snapshot: Counters) -> None:
        return None

    def close(self) -> None:
        return None


class TqdmProgressSink:
    def __init__(self, *, desc: str = "Resolving cafes", disable: bool | None = None) -> None:
        # disable=None lets tqdm switch itself off on a non-interactive stream.
        self.bar = tqdm(desc=desc, unit="page", disable=disable)
        self.seen = 0

    def push(self, snapshot: Counters) -> None:
        self.bar.update(snapshot.processed - self.seen)
        self.seen = snapshot.processed
        self.bar.set_postfix(snapshot.postfix(), refresh=False)

    def close(self) -> None:
        self.bar.close()


class LogProgressSink:
    def __init__(self, logger: logging.Logger, *, run_id: str, log_every: int) -> None:
        self.logger = logger
        self.run_id = run_id
        self.log_every = log_every

    def push(self, snapshot: Counters) -> None:
        if snapshot.processed % self.log_every:
            return
        log_event(
            self.logger,
            f"processed {snapshot.processed} crawl records",
            run_id=self.run_id,
            stage="resolve",
            event="PROGRESS",
            status="ok",
            rows_in=snapshot.processed,
            rows_out=snapshot.resolved,
        )

    def close(self) -> None:
        return None


class FanOutProgressSink:
    """Forwards snapshots to several sinks, isolating each one's failures."""

    def __init__(self, sinks: list[ProgressSink], logger: logging.Logger | None = None) -> None:
        self.sinks = list(sinks)
        self.logger = logger or logging.getLogger(__name__)

    def _disable(self, sink: ProgressSink, exc: Exception) -> None:
        self.sinks.remove(sink)
        log_event(
            self.logger,
            f"progress sink {type(sink).__name__} disabled: {exc}",
            level=logging.WARNING,
            stage="resolve",
            event="PROGRESS_SINK_FAILED",
            status="warning",
        )

    def push(self, snapshot: Counters) -> None:
        for sink in list(self.sinks):
            try:
                sink.push(snapshot)
            except Exception as exc:
                self._disable(sink, exc)

    def close(self) -> None:
        for sink in list(self.sinks):
            try:
                sink.close()
            except Exception as exc:
                self._disable(sink, exc)

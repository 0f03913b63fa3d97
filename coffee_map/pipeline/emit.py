"""Chunked KML output of deduplicated outcomes."""

from __future__ import annotations

from pathlib import Path
from typing import Iterator, Sequence, TypeVar

from coffee_map.common.models import ResolutionOutcome
from coffee_map.pipeline.kml import write_kml_document

T = TypeVar("T")


def _chunked(values: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    for i in range(0, len(values), size):
        yield values[i : i + size]


def chunk_path(output_dir: Path, prefix: str, chunk_index: int) -> Path:
    return output_dir / f"{prefix}_chunk_{chunk_index}.kml"


def emit_chunks(
    outcomes: Sequence[ResolutionOutcome],
    batch_size: int,
    output_dir: Path,
    *,
    prefix: str,
    title: str,
) -> list[Path]:
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")

    written: list[Path] = []
    for chunk_index, chunk in enumerate(_chunked(outcomes, batch_size)):
        features = [(outcome.key.as_string, outcome.record) for outcome in chunk]
        path = write_kml_document(
            chunk_path(output_dir, prefix, chunk_index),
            f"{title} {chunk_index}",
            features,
        )
        written.append(path)
    return written

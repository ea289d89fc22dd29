"""Structured progress logging utilities."""
from __future__ import annotations

import json
import time
from dataclasses import asdict
from pathlib import Path
from typing import Optional, TextIO

from .models import FileProgress


class ProgressLogger:
    """Appends per-chunk progress events to a JSONL file.

    The handle stays open for the lifetime of a run because a large input
    produces one event per chunk.
    """

    def __init__(self, path: Optional[Path]) -> None:
        self.path = path
        self._handle: Optional[TextIO] = None
        if path:
            path.parent.mkdir(parents=True, exist_ok=True)

    def emit(self, progress: FileProgress) -> None:
        if not self.path:
            return
        if self._handle is None:
            self._handle = self.path.open("a", encoding="utf-8")
        payload = asdict(progress)
        payload["file_path"] = str(progress.file_path)
        payload["percent"] = (
            round(progress.processed_bytes / progress.total_bytes * 100, 2)
            if progress.total_bytes
            else None
        )
        payload["timestamp"] = time.time()
        self._handle.write(json.dumps(payload))
        self._handle.write("\n")

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def __enter__(self) -> "ProgressLogger":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class BenchmarkRecorder:
    """Stores parse throughput measurements for later analysis."""

    def __init__(self, path: Path) -> None:
        self.path = path
        path.parent.mkdir(parents=True, exist_ok=True)

    def record(self, dataset: str, *, seconds: float, bytes_read: int, rows: int, chunk_size: int) -> dict:
        payload = {
            "dataset": dataset,
            "seconds": seconds,
            "bytes": bytes_read,
            "rows": rows,
            "chunk_size": chunk_size,
            "rows_per_second": rows / seconds if seconds else 0.0,
            "mib_per_second": bytes_read / (1024 * 1024) / seconds if seconds else 0.0,
            "timestamp": time.time(),
        }
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(payload))
            handle.write("\n")
        return payload

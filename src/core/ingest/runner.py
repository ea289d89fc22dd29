"""Ingest job runner: byte source -> assembler -> row consumer -> writer."""
from __future__ import annotations

import json
import logging
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

from common.models import EnrichmentUsage, FileProgress, LineIssue, Record, RuntimeConfig
from common.progress import ProgressLogger
from core.enrichment import PassthroughConsumer, RowConsumer, apply_outcomes
from core.output import WRITER_FORMATS, BaseRecordWriter, build_record_writer
from .assembler import RowAssembler
from .source import FileChunkSource

logger = logging.getLogger(__name__)

ProgressCallback = Optional[Callable[[FileProgress], None]]


@dataclass(slots=True)
class RunSummary:
    source_path: Path
    output_path: Path
    header: List[str]
    chunks: int
    bytes_read: int
    lines: int
    records_parsed: int
    rows_written: int
    skipped_lines: int
    failed_enrichments: int
    dropped_rows: int
    duration_seconds: float
    rows_per_second: float
    output_files: List[str] = field(default_factory=list)
    issues: List[LineIssue] = field(default_factory=list)
    usage: Optional[EnrichmentUsage] = None


class IngestJobRunner:
    """Parses one CSV file and writes its (optionally enriched) records."""

    SUPPORTED_FORMATS = set(WRITER_FORMATS)

    def __init__(
        self,
        config: RuntimeConfig,
        *,
        writer_format: str = "json",
        consumer: Optional[RowConsumer] = None,
        telemetry_log: Optional[Path] = None,
        progress_log: Optional[Path] = None,
    ) -> None:
        self.config = config
        self.writer_format = writer_format.lower() if writer_format else "json"
        if self.writer_format not in self.SUPPORTED_FORMATS:
            raise ValueError(f"Unsupported writer format '{writer_format}'.")
        self.consumer = consumer or PassthroughConsumer()
        self.batch_rows = max(1, config.profile.batch_rows)
        self.failure_policy = config.global_settings.failure_policy
        self.telemetry_log = telemetry_log
        self.progress_log = progress_log

    def run(
        self,
        source_path: Path | str,
        dest_path: Path | str,
        *,
        progress_callback: ProgressCallback = None,
    ) -> RunSummary:
        source_path = Path(source_path)
        dest_path = Path(dest_path)
        assembler = RowAssembler(
            error_policy=self.config.global_settings.error_policy,
            max_remainder_bytes=self.config.profile.max_remainder_bytes,
        )
        writer = build_record_writer(self.writer_format, dest_path)
        counters = {"failed": 0, "dropped": 0}
        start_time = time.perf_counter()
        batch: List[Record] = []

        with writer, ProgressLogger(self.progress_log) as progress_logger:
            with FileChunkSource(source_path, chunk_size=self.config.profile.chunk_size) as source:
                total_bytes = source.size()
                for chunk in source.chunks():
                    records = assembler.feed(chunk)
                    self._begin_writer(writer, assembler)
                    for record in records:
                        batch.append(record)
                        if len(batch) >= self.batch_rows:
                            self._flush(batch, writer, counters)
                            batch = []
                    progress = self._progress(
                        source_path,
                        assembler,
                        total_bytes,
                        start_time,
                    )
                    if progress_callback:
                        progress_callback(progress)
                    progress_logger.emit(progress)

            batch.extend(assembler.finish())
            self._begin_writer(writer, assembler)
            self._flush(batch, writer, counters)

        duration = time.perf_counter() - start_time
        stats = assembler.summary
        rows = writer.rows_written
        summary = RunSummary(
            source_path=source_path,
            output_path=dest_path,
            header=assembler.header or [],
            chunks=stats.chunks,
            bytes_read=stats.bytes_read,
            lines=stats.lines,
            records_parsed=stats.records,
            rows_written=rows,
            skipped_lines=stats.skipped_lines,
            failed_enrichments=counters["failed"],
            dropped_rows=counters["dropped"],
            duration_seconds=duration,
            rows_per_second=rows / duration if duration else float(rows),
            output_files=list(writer.output_files),
            issues=list(stats.issues),
            usage=self.consumer.usage,
        )
        logger.info(
            "Parsed %s: %d line(s), %d row(s) written, %d issue(s) in %.2fs",
            source_path.name,
            summary.lines,
            summary.rows_written,
            len(summary.issues),
            duration,
        )
        self._emit_telemetry(summary)
        return summary

    def _begin_writer(self, writer: BaseRecordWriter, assembler: RowAssembler) -> None:
        header = assembler.header
        if header is None:
            return
        columns = self.consumer.output_columns(header)
        if self.failure_policy == "keep":
            # Kept failures carry the original values, so every header column needs a slot.
            columns.extend(name for name in header if name not in columns)
        writer.begin(columns)

    def _flush(self, batch: List[Record], writer: BaseRecordWriter, counters: dict) -> None:
        if not batch:
            return
        outcomes = self.consumer.process(batch)
        rows = apply_outcomes(batch, outcomes, failure_policy=self.failure_policy)
        failed = sum(1 for outcome in outcomes if not outcome.ok)
        counters["failed"] += failed
        counters["dropped"] += len(batch) - len(rows)
        writer.write(rows)

    @staticmethod
    def _progress(
        source_path: Path,
        assembler: RowAssembler,
        total_bytes: int,
        start_time: float,
    ) -> FileProgress:
        stats = assembler.summary
        eta = None
        rows_per_second = None
        elapsed = time.perf_counter() - start_time
        if elapsed > 0 and stats.bytes_read:
            rows_per_second = stats.records / elapsed
            if total_bytes:
                bytes_per_second = stats.bytes_read / elapsed
                eta = max(total_bytes - stats.bytes_read, 0) / bytes_per_second
        return FileProgress(
            file_path=source_path,
            processed_bytes=stats.bytes_read,
            total_bytes=total_bytes,
            processed_rows=stats.records,
            current_phase="parse",
            chunk_index=stats.chunks - 1,
            eta_seconds=eta,
            rows_per_second=rows_per_second,
        )

    def _emit_telemetry(self, summary: RunSummary) -> None:
        if not self.telemetry_log:
            return
        payload = {
            "source_path": str(summary.source_path),
            "output_path": str(summary.output_path),
            "chunk_size": self.config.profile.chunk_size,
            "chunks": summary.chunks,
            "bytes": summary.bytes_read,
            "lines": summary.lines,
            "rows_written": summary.rows_written,
            "skipped_lines": summary.skipped_lines,
            "failed_enrichments": summary.failed_enrichments,
            "duration_seconds": summary.duration_seconds,
            "rows_per_second": summary.rows_per_second,
            "issues": [asdict(issue) for issue in summary.issues],
            "timestamp": time.time(),
        }
        if summary.usage is not None:
            payload["usage"] = {
                **asdict(summary.usage),
                "tokens_per_minute": summary.usage.tokens_per_minute,
                "requests_per_minute": summary.usage.requests_per_minute,
            }
        self.telemetry_log.parent.mkdir(parents=True, exist_ok=True)
        with self.telemetry_log.open("a", encoding="utf-8") as handle:
            json.dump(payload, handle, ensure_ascii=False)
            handle.write("\n")

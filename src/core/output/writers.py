"""Record writers for JSON, NDJSON, CSV and Parquet outputs."""
from __future__ import annotations

import csv
import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, TextIO

import pyarrow as pa
import pyarrow.parquet as pq

from common.errors import BackendError, ErrorCode
from common.models import Record

WRITER_FORMATS = ("json", "ndjson", "csv", "parquet")


def build_record_writer(format_name: str, path: Path) -> "BaseRecordWriter":
    writers: Dict[str, type] = {
        "json": JSONArrayRecordWriter,
        "ndjson": NDJSONRecordWriter,
        "csv": CSVRecordWriter,
        "parquet": ParquetRecordWriter,
    }
    try:
        writer_cls = writers[format_name.lower()]
    except KeyError as exc:
        raise ValueError(f"Unsupported writer format '{format_name}'.") from exc
    return writer_cls(path)


class BaseRecordWriter(ABC):
    """Streams record batches to a single output file.

    ``begin`` fixes the column order once the header is known. The JSON,
    NDJSON and CSV writers still leave a valid, empty output when they never
    see ``begin`` (empty input); the Parquet writer needs a schema and writes
    no file. Leaving the ``with`` block on an exception discards the output
    instead of finishing it.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.columns: List[str] = []
        self.rows_written = 0
        self.output_files: List[str] = []
        self._handle: Optional[TextIO] = None
        self._begun = False
        self._closed = False

    def begin(self, columns: Sequence[str]) -> None:
        if self._begun:
            return
        self.columns = list(columns)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._open_stream()
        except OSError as exc:
            raise BackendError(
                ErrorCode.IO_ERROR,
                f"Cannot write {self.path}: {exc}",
                context={"path": self.path.as_posix()},
            ) from exc
        self._begun = True
        if self.path.as_posix() not in self.output_files:
            self.output_files.append(self.path.as_posix())

    def write(self, records: Sequence[Record]) -> None:
        if not records:
            return
        if not self._begun:
            self.begin(list(records[0].keys()))
        for record in records:
            self._write_record(record)
            self.rows_written += 1

    def close(self) -> None:
        if self._closed:
            return
        if not self._begun:
            self._write_empty()
        self._before_close()
        if self._handle:
            self._handle.close()
            self._handle = None
        self._closed = True

    def discard(self) -> None:
        """Drop a partially written output so a failed run leaves nothing behind."""

        if self._closed:
            return
        self._discard_stream()
        if self._handle:
            self._handle.close()
            self._handle = None
        self._closed = True
        for name in self.output_files:
            Path(name).unlink(missing_ok=True)
        self.output_files = []

    def __enter__(self) -> "BaseRecordWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            self.discard()
        else:
            self.close()

    def _open_stream(self) -> None:
        self._handle = self.path.open("w", newline="", encoding="utf-8")
        self._after_open()

    def _write_empty(self) -> None:  # pragma: no cover - optional override
        pass

    @abstractmethod
    def _after_open(self) -> None:
        ...

    @abstractmethod
    def _write_record(self, record: Record) -> None:
        ...

    def _before_close(self) -> None:  # pragma: no cover - optional override
        pass

    def _discard_stream(self) -> None:  # pragma: no cover - optional override
        pass


class JSONArrayRecordWriter(BaseRecordWriter):
    """One JSON array, written element by element."""

    def _after_open(self) -> None:
        assert self._handle is not None
        self._handle.write("[")

    def _write_record(self, record: Record) -> None:
        assert self._handle is not None
        separator = "\n  " if self.rows_written == 0 else ",\n  "
        self._handle.write(separator)
        self._handle.write(json.dumps(record, ensure_ascii=False))

    def _write_empty(self) -> None:
        self.begin([])

    def _before_close(self) -> None:
        if self._handle is None:
            return
        self._handle.write("\n]\n" if self.rows_written else "]\n")


class NDJSONRecordWriter(BaseRecordWriter):
    def _after_open(self) -> None:
        pass

    def _write_record(self, record: Record) -> None:
        assert self._handle is not None
        self._handle.write(json.dumps(record, ensure_ascii=False))
        self._handle.write("\n")

    def _write_empty(self) -> None:
        self.begin([])


class CSVRecordWriter(BaseRecordWriter):
    def __init__(self, path: Path) -> None:
        self._csv_writer: Optional[Any] = None
        super().__init__(path)

    def _after_open(self) -> None:
        assert self._handle is not None
        self._csv_writer = csv.writer(self._handle)
        if self.columns:
            self._csv_writer.writerow(self.columns)

    def _write_record(self, record: Record) -> None:
        assert self._csv_writer is not None
        self._csv_writer.writerow(
            ["" if record.get(name) is None else record.get(name) for name in self.columns]
        )

    def _write_empty(self) -> None:
        self.begin([])


class ParquetRecordWriter(BaseRecordWriter):
    FLUSH_ROWS = 2048

    def __init__(self, path: Path) -> None:
        self._buffer: List[List[Optional[str]]] = []
        self._arrow_schema: Optional[pa.Schema] = None
        self._parquet_writer: Optional[pq.ParquetWriter] = None
        super().__init__(path)

    def _open_stream(self) -> None:  # type: ignore[override]
        self._handle = None
        self._after_open()

    def _after_open(self) -> None:
        self._arrow_schema = pa.schema([(name, pa.string()) for name in self.columns])
        self._parquet_writer = pq.ParquetWriter(self.path, self._arrow_schema)

    def _write_record(self, record: Record) -> None:
        self._buffer.append([record.get(name) for name in self.columns])
        if len(self._buffer) >= self.FLUSH_ROWS:
            self._flush_buffer()

    def _before_close(self) -> None:
        self._flush_buffer()
        if self._parquet_writer is not None:
            self._parquet_writer.close()
            self._parquet_writer = None

    def _discard_stream(self) -> None:
        self._buffer.clear()
        if self._parquet_writer is not None:
            self._parquet_writer.close()
            self._parquet_writer = None

    def _flush_buffer(self) -> None:
        if not self._buffer or not self._parquet_writer:
            return
        columns = {
            name: [row[idx] for row in self._buffer]
            for idx, name in enumerate(self.columns)
        }
        table = pa.table(columns, schema=self._arrow_schema)
        self._parquet_writer.write_table(table)
        self._buffer.clear()

"""Record writers used by the ingest runner."""

from .writers import (
    WRITER_FORMATS,
    BaseRecordWriter,
    CSVRecordWriter,
    JSONArrayRecordWriter,
    NDJSONRecordWriter,
    ParquetRecordWriter,
    build_record_writer,
)

__all__ = [
    "WRITER_FORMATS",
    "BaseRecordWriter",
    "CSVRecordWriter",
    "JSONArrayRecordWriter",
    "NDJSONRecordWriter",
    "ParquetRecordWriter",
    "build_record_writer",
]

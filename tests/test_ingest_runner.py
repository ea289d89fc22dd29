from __future__ import annotations

import csv
import json
from types import SimpleNamespace
from typing import List, Sequence

import pytest

from common.errors import RemainderOverflowError, SourceReadError
from common.models import (
    EnrichmentOutcome,
    FileProgress,
    GlobalSettings,
    ProfileSettings,
    Record,
    RuntimeConfig,
)
from core.enrichment import OpenAIFieldCleaner, RowConsumer
from core.ingest import IngestJobRunner

CSV_TEXT = 'name,age\n"Doe, John",42\nAmy,7\n"multi\nline",3\nlast,1'


def _config(**profile) -> RuntimeConfig:
    settings = {"description": "test", "chunk_size": 7, "max_remainder_bytes": 1024, "batch_rows": 2}
    settings.update(profile)
    return RuntimeConfig(global_settings=GlobalSettings(), profile=ProfileSettings(**settings))


class UpperNameConsumer(RowConsumer):
    def __init__(self, fail_names: Sequence[str] = ()) -> None:
        super().__init__()
        self.fail_names = set(fail_names)
        self.batches: List[int] = []

    def output_columns(self, header):
        return [*header, "upper"]

    def process(self, records):
        self.batches.append(len(records))
        outcomes = []
        for record in records:
            if record["name"] in self.fail_names:
                outcomes.append(EnrichmentOutcome(ok=False, error="nope"))
                continue
            enriched: Record = {**record, "upper": (record["name"] or "").upper()}
            outcomes.append(EnrichmentOutcome(record=enriched))
        return outcomes


def test_runner_writes_json_array(tmp_path):
    source = tmp_path / "in.csv"
    source.write_text(CSV_TEXT, encoding="utf-8")
    dest = tmp_path / "out" / "records.json"
    progress: List[FileProgress] = []

    summary = IngestJobRunner(_config()).run(source, dest, progress_callback=progress.append)

    assert json.loads(dest.read_text(encoding="utf-8")) == [
        {"name": "Doe, John", "age": "42"},
        {"name": "Amy", "age": "7"},
        {"name": "multi\nline", "age": "3"},
        {"name": "last", "age": "1"},
    ]
    assert summary.header == ["name", "age"]
    assert summary.rows_written == 4
    assert summary.records_parsed == 4
    assert summary.bytes_read == len(CSV_TEXT.encode("utf-8"))
    assert summary.output_files == [dest.as_posix()]
    assert len(progress) == summary.chunks
    assert progress[-1].processed_bytes == summary.bytes_read
    assert progress[-1].total_bytes == summary.bytes_read


def test_runner_batches_through_consumer_and_drops_failures(tmp_path):
    source = tmp_path / "in.csv"
    source.write_text(CSV_TEXT, encoding="utf-8")
    dest = tmp_path / "out.csv"
    consumer = UpperNameConsumer(fail_names=["Amy"])
    config = _config()
    config.global_settings.failure_policy = "drop"

    summary = IngestJobRunner(config, writer_format="csv", consumer=consumer).run(source, dest)

    lines = dest.read_text(encoding="utf-8").splitlines()
    assert lines[0] == "name,age,upper"
    assert lines[1] == "\"Doe, John\",42,\"DOE, JOHN\""
    assert "Amy" not in dest.read_text(encoding="utf-8")
    assert summary.failed_enrichments == 1
    assert summary.dropped_rows == 1
    assert summary.rows_written == 3
    assert all(size <= 2 for size in consumer.batches)
    assert sum(consumer.batches) == 4


def test_runner_keeps_failed_records_by_default(tmp_path):
    source = tmp_path / "in.csv"
    source.write_text(CSV_TEXT, encoding="utf-8")
    dest = tmp_path / "out.ndjson"
    consumer = UpperNameConsumer(fail_names=["Amy"])

    summary = IngestJobRunner(_config(), writer_format="ndjson", consumer=consumer).run(source, dest)

    rows = [json.loads(line) for line in dest.read_text(encoding="utf-8").splitlines()]
    assert rows[1] == {"name": "Amy", "age": "7"}
    assert summary.rows_written == 4
    assert summary.dropped_rows == 0


def test_runner_writes_progress_and_telemetry_logs(tmp_path):
    source = tmp_path / "in.csv"
    source.write_bytes(b"h\nok\nbad\xff\n")
    progress_log = tmp_path / "logs" / "progress.jsonl"
    telemetry_log = tmp_path / "logs" / "telemetry.jsonl"
    runner = IngestJobRunner(
        _config(chunk_size=4),
        progress_log=progress_log,
        telemetry_log=telemetry_log,
    )

    summary = runner.run(source, tmp_path / "out.json")

    events = [json.loads(line) for line in progress_log.read_text(encoding="utf-8").splitlines()]
    assert len(events) == summary.chunks
    assert events[-1]["percent"] == 100.0
    [telemetry] = [json.loads(line) for line in telemetry_log.read_text(encoding="utf-8").splitlines()]
    assert telemetry["rows_written"] == 1
    assert telemetry["skipped_lines"] == 1
    assert telemetry["issues"][0]["kind"] == "decode-error"


def test_runner_empty_file_writes_empty_output(tmp_path):
    source = tmp_path / "empty.csv"
    source.write_bytes(b"")
    dest = tmp_path / "out.json"
    summary = IngestJobRunner(_config()).run(source, dest)
    assert json.loads(dest.read_text(encoding="utf-8")) == []
    assert summary.header == []
    assert summary.rows_written == 0


def test_runner_missing_source_is_fatal(tmp_path):
    with pytest.raises(SourceReadError):
        IngestJobRunner(_config()).run(tmp_path / "missing.csv", tmp_path / "out.json")


def test_runner_remainder_overflow_is_fatal(tmp_path):
    source = tmp_path / "in.csv"
    source.write_text('h\n"' + "x" * 64, encoding="utf-8")
    with pytest.raises(RemainderOverflowError):
        IngestJobRunner(_config(chunk_size=8, max_remainder_bytes=16)).run(source, tmp_path / "out.json")


def test_runner_rejects_unknown_format():
    with pytest.raises(ValueError):
        IngestJobRunner(_config(), writer_format="xml")


def test_runner_keeps_original_columns_for_failed_enrichment(tmp_path):
    source = tmp_path / "in.csv"
    source.write_text('name,address,phone\nBob,"1 Main St, NY",555\n', encoding="utf-8")
    dest = tmp_path / "out.csv"

    def refuse(**kwargs):
        raise ValueError("rate limited")

    client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=refuse)))
    cleaner = OpenAIFieldCleaner(client, max_workers=1)

    summary = IngestJobRunner(_config(), writer_format="csv", consumer=cleaner).run(source, dest)

    with dest.open("r", encoding="utf-8", newline="") as handle:
        rows = list(csv.DictReader(handle))
    assert rows == [
        {
            "name": "Bob",
            "phone": "555",
            "streetAddress": "",
            "city": "",
            "state": "",
            "zipCode": "",
            "address": "1 Main St, NY",
        }
    ]
    assert summary.failed_enrichments == 1


def test_runner_drop_policy_uses_consumer_columns_only(tmp_path):
    source = tmp_path / "in.csv"
    source.write_text(CSV_TEXT, encoding="utf-8")
    dest = tmp_path / "out.csv"
    config = _config()
    config.global_settings.failure_policy = "drop"

    IngestJobRunner(config, writer_format="csv", consumer=UpperNameConsumer()).run(source, dest)

    assert dest.read_text(encoding="utf-8").splitlines()[0] == "name,age,upper"


def test_runner_failure_leaves_no_partial_output(tmp_path):
    source = tmp_path / "in.csv"
    source.write_text("h\n1\n2\n" + '"' + "x" * 64, encoding="utf-8")
    dest = tmp_path / "out.json"
    with pytest.raises(RemainderOverflowError):
        IngestJobRunner(_config(chunk_size=8, max_remainder_bytes=16)).run(source, dest)
    assert not dest.exists()

    with pytest.raises(SourceReadError):
        IngestJobRunner(_config()).run(tmp_path / "missing.csv", dest)
    assert not dest.exists()

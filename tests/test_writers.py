from __future__ import annotations

import csv
import json

import pytest

from common.errors import BackendError, ErrorCode
from core.output import build_record_writer

RECORDS = [
    {"name": "Doe, John", "note": 'say "hi"'},
    {"name": "solo", "note": None},
]


def test_json_array_writer(tmp_path):
    path = tmp_path / "out.json"
    with build_record_writer("json", path) as writer:
        writer.begin(["name", "note"])
        writer.write(RECORDS[:1])
        writer.write(RECORDS[1:])
    assert json.loads(path.read_text(encoding="utf-8")) == RECORDS
    assert writer.rows_written == 2
    assert writer.output_files == [path.as_posix()]


def test_json_writer_without_rows_writes_empty_array(tmp_path):
    path = tmp_path / "empty.json"
    with build_record_writer("json", path):
        pass
    assert json.loads(path.read_text(encoding="utf-8")) == []


def test_ndjson_writer(tmp_path):
    path = tmp_path / "out.ndjson"
    with build_record_writer("ndjson", path) as writer:
        writer.write(RECORDS)
    lines = path.read_text(encoding="utf-8").splitlines()
    assert [json.loads(line) for line in lines] == RECORDS


def test_csv_writer_quotes_and_blanks(tmp_path):
    path = tmp_path / "out.csv"
    with build_record_writer("csv", path) as writer:
        writer.begin(["name", "note", "extra"])
        writer.write(RECORDS)
    with path.open("r", encoding="utf-8", newline="") as handle:
        rows = list(csv.reader(handle))
    assert rows == [
        ["name", "note", "extra"],
        ["Doe, John", 'say "hi"', ""],
        ["solo", "", ""],
    ]


def test_parquet_writer(tmp_path):
    pq = pytest.importorskip("pyarrow.parquet")
    path = tmp_path / "out.parquet"
    with build_record_writer("parquet", path) as writer:
        writer.begin(["name", "note"])
        writer.write(RECORDS)
    table = pq.read_table(path)
    assert table.column_names == ["name", "note"]
    assert table.to_pylist() == RECORDS


def test_unknown_format_rejected(tmp_path):
    with pytest.raises(ValueError):
        build_record_writer("xml", tmp_path / "out.xml")


def test_parquet_writer_without_rows_writes_no_file(tmp_path):
    pytest.importorskip("pyarrow.parquet")
    path = tmp_path / "empty.parquet"
    with build_record_writer("parquet", path) as writer:
        pass
    assert not path.exists()
    assert writer.output_files == []


@pytest.mark.parametrize("format_name", ["json", "ndjson", "csv", "parquet"])
def test_writer_discards_output_when_block_fails(tmp_path, format_name):
    if format_name == "parquet":
        pytest.importorskip("pyarrow.parquet")
    path = tmp_path / f"out.{format_name}"
    with pytest.raises(RuntimeError):
        with build_record_writer(format_name, path) as writer:
            writer.begin(["name", "note"])
            writer.write(RECORDS)
            raise RuntimeError("source failed")
    assert not path.exists()
    assert writer.output_files == []


def test_unwritable_destination_raises_io_error(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    writer = build_record_writer("json", blocker / "out.json")
    with pytest.raises(BackendError) as exc:
        writer.begin(["a"])
    assert exc.value.code == ErrorCode.IO_ERROR

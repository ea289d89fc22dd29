from __future__ import annotations

import pytest

from common.errors import ErrorCode, SourceReadError
from core.ingest import FileChunkSource, iter_byte_chunks


def test_file_chunks_cover_file_in_order(tmp_path):
    path = tmp_path / "data.csv"
    payload = b"0123456789" * 7
    path.write_bytes(payload)
    with FileChunkSource(path, chunk_size=16) as source:
        assert source.size() == len(payload)
        chunks = list(source.chunks())
    assert b"".join(chunks) == payload
    assert [len(chunk) for chunk in chunks] == [16, 16, 16, 16, 6]


def test_missing_file_raises_source_read_error(tmp_path):
    source = FileChunkSource(tmp_path / "missing.csv", chunk_size=4)
    with pytest.raises(SourceReadError) as exc:
        source.open()
    assert exc.value.code == ErrorCode.SOURCE_READ_ERROR
    assert exc.value.chunk_index == 0


def test_read_failure_carries_position(tmp_path):
    path = tmp_path / "data.csv"
    path.write_bytes(b"abcdefgh")

    class FlakyHandle:
        def __init__(self) -> None:
            self.calls = 0

        def read(self, size: int) -> bytes:
            self.calls += 1
            if self.calls > 1:
                raise OSError("device went away")
            return b"abcd"

        def close(self) -> None:
            pass

    source = FileChunkSource(path, chunk_size=4)
    source._handle = FlakyHandle()  # type: ignore[assignment]
    chunks = source.chunks()
    assert next(chunks) == b"abcd"
    with pytest.raises(SourceReadError) as exc:
        next(chunks)
    assert exc.value.chunk_index == 1
    assert exc.value.byte_offset == 4


def test_chunks_require_open(tmp_path):
    source = FileChunkSource(tmp_path / "x.csv", chunk_size=4)
    with pytest.raises(RuntimeError):
        list(source.chunks())


def test_invalid_chunk_size_rejected(tmp_path):
    with pytest.raises(ValueError):
        FileChunkSource(tmp_path / "x.csv", chunk_size=0)
    with pytest.raises(ValueError):
        list(iter_byte_chunks(b"abc", 0))


def test_iter_byte_chunks():
    assert list(iter_byte_chunks(b"abcde", 2)) == [b"ab", b"cd", b"e"]
    assert list(iter_byte_chunks(b"", 2)) == []

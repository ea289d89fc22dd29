"""Byte sources delivering ordered, non-overlapping chunks."""
from __future__ import annotations

from pathlib import Path
from typing import BinaryIO, Iterator, Optional

from common.errors import SourceReadError

DEFAULT_CHUNK_SIZE = 4 * 1024 * 1024


class FileChunkSource:
    """Reads a file as fixed-size byte chunks with bounded memory usage.

    Usage::

        with FileChunkSource(path, chunk_size=1 << 20) as source:
            for chunk in source.chunks():
                ...
    """

    def __init__(self, path: Path | str, *, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be at least 1 byte")
        self.path = Path(path)
        self.chunk_size = chunk_size
        self._handle: Optional[BinaryIO] = None

    def open(self) -> None:
        try:
            self._handle = self.path.open("rb")
        except OSError as exc:
            raise SourceReadError(
                f"Cannot open {self.path}: {exc}",
                chunk_index=0,
                byte_offset=0,
            ) from exc

    def size(self) -> int:
        try:
            return self.path.stat().st_size
        except OSError:
            return 0

    def chunks(self) -> Iterator[bytes]:
        if self._handle is None:
            raise RuntimeError("FileChunkSource.open() must be called before chunks().")
        chunk_index = 0
        byte_offset = 0
        while True:
            try:
                chunk = self._handle.read(self.chunk_size)
            except OSError as exc:
                raise SourceReadError(
                    f"Read failed for {self.path} at chunk {chunk_index}: {exc}",
                    chunk_index=chunk_index,
                    byte_offset=byte_offset,
                ) from exc
            if not chunk:
                return
            yield chunk
            chunk_index += 1
            byte_offset += len(chunk)

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def __enter__(self) -> "FileChunkSource":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def iter_byte_chunks(data: bytes, chunk_size: int) -> Iterator[bytes]:
    """Split in-memory ``data`` into ``chunk_size`` pieces."""

    if chunk_size < 1:
        raise ValueError("chunk_size must be at least 1 byte")
    for start in range(0, len(data), chunk_size):
        yield data[start : start + chunk_size]

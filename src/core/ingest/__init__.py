"""Chunked ingest: byte sources, row assembly and the job runner."""

from .assembler import AssemblerState, RowAssembler, iter_records
from .runner import IngestJobRunner, RunSummary
from .source import DEFAULT_CHUNK_SIZE, FileChunkSource, iter_byte_chunks

__all__ = [
    "AssemblerState",
    "DEFAULT_CHUNK_SIZE",
    "FileChunkSource",
    "IngestJobRunner",
    "RowAssembler",
    "RunSummary",
    "iter_byte_chunks",
    "iter_records",
]

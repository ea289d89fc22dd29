"""Shared error codes and exceptions for the ingest pipeline."""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    CONFIG_ERROR = "CONFIG_ERROR"
    IO_ERROR = "IO_ERROR"
    STATE_ERROR = "STATE_ERROR"
    SOURCE_READ_ERROR = "SOURCE_READ_ERROR"
    MALFORMED_LINE = "MALFORMED_LINE"
    REMAINDER_OVERFLOW = "REMAINDER_OVERFLOW"
    ENRICHMENT_ERROR = "ENRICHMENT_ERROR"


class BackendError(RuntimeError):
    """Exception carrying a structured error code for CLI/agents."""

    def __init__(self, code: ErrorCode, message: str, *, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.code = code
        self.context = context or {}

    def __str__(self) -> str:  # pragma: no cover - formatting sugar
        base = super().__str__()
        return f"[{self.code.value}] {base}" if base else self.code.value


class SourceReadError(BackendError):
    """The byte source failed; the whole run is aborted."""

    def __init__(self, message: str, *, chunk_index: int, byte_offset: int) -> None:
        super().__init__(
            ErrorCode.SOURCE_READ_ERROR,
            message,
            context={"chunk_index": chunk_index, "byte_offset": byte_offset},
        )
        self.chunk_index = chunk_index
        self.byte_offset = byte_offset


class MalformedLineError(BackendError):
    """A logical line could not be turned into fields (usually a decode failure)."""

    def __init__(
        self,
        message: str,
        *,
        line_index: Optional[int] = None,
        byte_offset: Optional[int] = None,
        code: ErrorCode = ErrorCode.MALFORMED_LINE,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        merged = {"line_index": line_index, "byte_offset": byte_offset, **(context or {})}
        super().__init__(code, message, context=merged)
        self.line_index = line_index
        self.byte_offset = byte_offset


class RemainderOverflowError(MalformedLineError):
    """Unterminated line grew past the configured remainder budget. Always fatal."""

    def __init__(
        self,
        message: str,
        *,
        chunk_index: int,
        byte_offset: int,
        remainder_bytes: int,
        limit: int,
    ) -> None:
        super().__init__(
            message,
            byte_offset=byte_offset,
            code=ErrorCode.REMAINDER_OVERFLOW,
            context={
                "chunk_index": chunk_index,
                "remainder_bytes": remainder_bytes,
                "limit": limit,
            },
        )
        self.chunk_index = chunk_index
        self.remainder_bytes = remainder_bytes
        self.limit = limit

"""Row assembly: turns a chunk stream into a header and header-keyed records."""
from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional

from common.config import ALLOWED_ERROR_POLICIES, decode_errors_from_policy
from common.errors import BackendError, ErrorCode, MalformedLineError, RemainderOverflowError
from common.models import AssemblySummary, LineIssue, Record
from core.tokenizer import INITIAL_STATE, ScanState, decode_line, split_lines, tokenize_line

logger = logging.getLogger(__name__)


class AssemblerState(str, Enum):
    """Lifecycle of one stream inside the assembler."""

    AWAITING_HEADER = "AWAITING_HEADER"
    STREAMING = "STREAMING"
    DRAINED = "DRAINED"


_STATE_ORDER: Dict[AssemblerState, int] = {
    AssemblerState.AWAITING_HEADER: 0,
    AssemblerState.STREAMING: 1,
    AssemblerState.DRAINED: 2,
}


class RowAssembler:
    """Owns the remainder, scan state and header for a single CSV stream.

    Feed chunks in arrival order with ``feed`` and call ``finish`` once the
    byte source is exhausted. The first logical line becomes the header; every
    later line becomes a record. Stopping between two ``feed`` calls never
    leaves a partial record behind.
    """

    def __init__(
        self,
        *,
        error_policy: str = "skip",
        max_remainder_bytes: Optional[int] = None,
    ) -> None:
        if error_policy not in ALLOWED_ERROR_POLICIES:
            raise ValueError(f"Unsupported error policy '{error_policy}'.")
        self.error_policy = error_policy
        self.errors = decode_errors_from_policy(error_policy)
        self.max_remainder_bytes = max_remainder_bytes
        self.summary = AssemblySummary()
        self._state = AssemblerState.AWAITING_HEADER
        self._header: Optional[List[str]] = None
        self._remainder = b""
        self._scan_state: ScanState = INITIAL_STATE
        # Stream offset of the first remainder byte.
        self._consumed = 0
        self._next_line_index = 0

    @property
    def state(self) -> AssemblerState:
        return self._state

    @property
    def header(self) -> Optional[List[str]]:
        return list(self._header) if self._header is not None else None

    @property
    def pending_bytes(self) -> int:
        return len(self._remainder)

    def feed(self, chunk: bytes) -> List[Record]:
        self._require_open("feed")
        chunk_index = self.summary.chunks
        self.summary.chunks += 1
        self.summary.bytes_read += len(chunk)
        if not chunk:
            return []

        buffer = self._remainder + chunk if self._remainder else chunk
        buffer_offset = self._consumed
        result = split_lines(buffer, self._scan_state)
        if self.max_remainder_bytes is not None and len(result.remainder) > self.max_remainder_bytes:
            line_offset = buffer_offset + len(buffer) - len(result.remainder)
            raise RemainderOverflowError(
                f"Unterminated line at byte {line_offset} exceeds {self.max_remainder_bytes} bytes "
                f"after chunk {chunk_index}",
                chunk_index=chunk_index,
                byte_offset=line_offset,
                remainder_bytes=len(result.remainder),
                limit=self.max_remainder_bytes,
            )
        self._remainder = result.remainder
        self._scan_state = result.state
        self._consumed = buffer_offset + len(buffer) - len(result.remainder)
        return self._assemble(result.lines, result.offsets, buffer_offset)

    def finish(self) -> List[Record]:
        """Process the final remainder as the last line and drain the stream."""

        self._require_open("finish")
        buffer_offset = self._consumed
        result = split_lines(self._remainder, self._scan_state, final=True)
        self._consumed += len(self._remainder)
        self._remainder = b""
        self._scan_state = INITIAL_STATE
        records = self._assemble(result.lines, result.offsets, buffer_offset)
        if result.unterminated:
            self._report(
                LineIssue(
                    line_index=self._next_line_index - 1,
                    byte_offset=buffer_offset + result.offsets[-1],
                    kind="unterminated-quote",
                    detail="stream ended inside a quoted field; final line emitted as-is",
                )
            )
        self._transition(AssemblerState.DRAINED)
        logger.info(
            "Stream drained: %d chunk(s), %d byte(s), %d line(s), %d record(s)",
            self.summary.chunks,
            self.summary.bytes_read,
            self.summary.lines,
            self.summary.records,
        )
        return records

    # Internal helpers -------------------------------------------------

    def _assemble(self, lines: List[bytes], offsets: List[int], buffer_offset: int) -> List[Record]:
        records: List[Record] = []
        for raw, start in zip(lines, offsets):
            line_index = self._next_line_index
            self._next_line_index += 1
            self.summary.lines += 1
            text = self._decode(raw, line_index, buffer_offset + start)
            if text is None:
                continue
            fields = tokenize_line(text)
            if self._header is None:
                self._header = fields
                self._transition(AssemblerState.STREAMING)
                continue
            records.append(dict(zip(self._header, fields)))
            self.summary.records += 1
        return records

    def _decode(self, raw: bytes, line_index: int, byte_offset: int) -> Optional[str]:
        try:
            return decode_line(raw)
        except UnicodeDecodeError as exc:
            error = MalformedLineError(
                f"Line {line_index} is not valid UTF-8 at byte {byte_offset + exc.start}: {exc.reason}",
                line_index=line_index,
                byte_offset=byte_offset,
            )
        is_header = self._header is None
        skip = self.errors == "strict" and not is_header
        self._report(
            LineIssue(
                line_index=line_index,
                byte_offset=byte_offset,
                kind="decode-error",
                detail=f"{error} ({'skipped' if skip else 'replaced'})",
            )
        )
        if skip:
            self.summary.skipped_lines += 1
            return None
        return decode_line(raw, "replace")

    def _report(self, issue: LineIssue) -> None:
        self.summary.issues.append(issue)
        logger.warning(
            "Line %d (byte %d): %s %s",
            issue.line_index,
            issue.byte_offset,
            issue.kind,
            issue.detail,
        )

    def _require_open(self, action: str) -> None:
        if self._state == AssemblerState.DRAINED:
            raise BackendError(
                ErrorCode.STATE_ERROR,
                f"Cannot {action} after the stream was drained",
            )

    def _transition(self, target: AssemblerState) -> None:
        if _STATE_ORDER[target] < _STATE_ORDER[self._state]:
            raise BackendError(
                ErrorCode.STATE_ERROR,
                f"Invalid transition {self._state.value} -> {target.value}",
            )
        self._state = target


def iter_records(
    chunks: Iterable[bytes],
    *,
    assembler: Optional[RowAssembler] = None,
) -> Iterator[Record]:
    """Yield records from ``chunks`` in source order.

    Pass an ``assembler`` to inspect its header and summary afterwards.
    """

    assembler = assembler or RowAssembler()
    for chunk in chunks:
        yield from assembler.feed(chunk)
    yield from assembler.finish()

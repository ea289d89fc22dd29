"""Quote-aware splitting of byte buffers into logical lines.

``split_lines`` is called once per arriving chunk with ``remainder + chunk``.
The caller carries the returned remainder and ``ScanState`` into the next
call, which resumes scanning where the previous one stopped instead of
rescanning the remainder.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Union

from .quoting import CR, LF_BYTE, QUOTE_BYTE, step_quote

Buffer = Union[bytes, bytearray]


@dataclass(frozen=True, slots=True)
class ScanState:
    """Quote state of the scan ``offset`` bytes into the remainder."""

    in_quotes: bool = False
    offset: int = 0


INITIAL_STATE = ScanState()


@dataclass(slots=True)
class SplitResult:
    lines: List[bytes] = field(default_factory=list)
    offsets: List[int] = field(default_factory=list)
    remainder: bytes = b""
    state: ScanState = INITIAL_STATE
    unterminated: bool = False


def split_lines(buffer: Buffer, state: ScanState = INITIAL_STATE, *, final: bool = False) -> SplitResult:
    """Split ``buffer`` into complete logical lines.

    ``buffer`` must start at a logical-line boundary. Line terminators (``\\n``
    or ``\\r\\n``) inside quoted fields are part of the line. Without
    ``final`` the unterminated tail is returned as the remainder; with
    ``final`` (end of stream) a non-empty tail is emitted as the last line and
    ``unterminated`` tells whether it still had an open quote.
    """

    lines: List[bytes] = []
    offsets: List[int] = []
    end = len(buffer)
    in_quotes = state.in_quotes
    line_start = 0
    pos = min(state.offset, end)
    next_newline: Optional[int] = None

    while pos < end:
        if in_quotes:
            quote_at = buffer.find(QUOTE_BYTE, pos)
            if quote_at == -1:
                pos = end
                break
            step = step_quote(True, _peek_quote(buffer, quote_at + 1, final))
            if not step.consumed:
                # Escaped pair or closing quote: decided by the next chunk.
                pos = quote_at
                break
            in_quotes = step.in_quotes
            pos = quote_at + step.consumed
            continue

        if next_newline is None or -1 < next_newline < pos:
            next_newline = buffer.find(LF_BYTE, pos)
        limit = end if next_newline == -1 else next_newline
        quote_at = buffer.find(QUOTE_BYTE, pos, limit)
        if quote_at != -1:
            step = step_quote(False, None)
            in_quotes = step.in_quotes
            pos = quote_at + step.consumed
            continue
        if next_newline == -1:
            pos = end
            break

        stop = next_newline
        if stop > line_start and buffer[stop - 1] == CR:
            stop -= 1
        lines.append(bytes(buffer[line_start:stop]))
        offsets.append(line_start)
        line_start = pos = next_newline + 1

    if final:
        if line_start < end:
            lines.append(bytes(buffer[line_start:]))
            offsets.append(line_start)
        return SplitResult(lines, offsets, b"", INITIAL_STATE, unterminated=in_quotes)

    return SplitResult(
        lines,
        offsets,
        bytes(buffer[line_start:]),
        ScanState(in_quotes=in_quotes, offset=pos - line_start),
    )


def _peek_quote(buffer: Buffer, index: int, final: bool) -> Optional[bool]:
    if index < len(buffer):
        return buffer[index : index + 1] == QUOTE_BYTE
    return False if final else None

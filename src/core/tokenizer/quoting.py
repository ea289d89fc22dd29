"""Quote rule shared by the line splitter and the field tokenizer.

A quote character outside a quoted field opens one. Inside a quoted field a
quote immediately followed by another quote is one literal quote and the field
stays open; any other quote closes the field. Both scanners go through
``step_quote`` so they always agree on quote parity.
"""
from __future__ import annotations

from typing import NamedTuple, Optional

DELIMITER = ","
QUOTE = '"'
ENCODING = "utf-8"

QUOTE_BYTE = QUOTE.encode("ascii")
LF_BYTE = b"\n"
CR = ord("\r")


class QuoteStep(NamedTuple):
    in_quotes: bool
    consumed: int
    literal: bool


_OPEN = QuoteStep(True, 1, False)
_ESCAPED = QuoteStep(True, 2, True)
_CLOSE = QuoteStep(False, 1, False)
_PENDING = QuoteStep(True, 0, False)


def step_quote(in_quotes: bool, next_is_quote: Optional[bool]) -> QuoteStep:
    """Apply the quote rule to the quote character at the scan position.

    ``next_is_quote`` is ``None`` when the following character has not been
    seen yet. Inside a quoted field that makes the outcome undecidable, so the
    step consumes nothing and the caller must wait for more input.
    """

    if not in_quotes:
        return _OPEN
    if next_is_quote is None:
        return _PENDING
    return _ESCAPED if next_is_quote else _CLOSE

"""Splitting one logical line into field values."""
from __future__ import annotations

from typing import List

from .quoting import DELIMITER, ENCODING, QUOTE, step_quote


def tokenize_line(line: str) -> List[str]:
    """Return the ordered field values of ``line``.

    Quotes that delimit a field are dropped, a doubled quote inside a quoted
    field becomes one literal quote, and commas inside quotes are kept. An
    empty line yields a single empty field.
    """

    fields: List[str] = []
    current: List[str] = []
    in_quotes = False
    index = 0
    length = len(line)
    while index < length:
        char = line[index]
        if char == QUOTE:
            next_is_quote = index + 1 < length and line[index + 1] == QUOTE
            step = step_quote(in_quotes, next_is_quote)
            if step.literal:
                current.append(QUOTE)
            in_quotes = step.in_quotes
            index += step.consumed
            continue
        if char == DELIMITER and not in_quotes:
            fields.append("".join(current))
            current = []
        else:
            current.append(char)
        index += 1
    fields.append("".join(current))
    return fields


def decode_line(raw: bytes, errors: str = "strict") -> str:
    """Decode a logical line; raises ``UnicodeDecodeError`` under ``strict``."""

    return raw.decode(ENCODING, errors=errors)

"""Chunk-boundary-safe, quote-aware CSV tokenizing."""

from .field_tokenizer import decode_line, tokenize_line
from .line_splitter import INITIAL_STATE, ScanState, SplitResult, split_lines
from .quoting import QuoteStep, step_quote

__all__ = [
    "INITIAL_STATE",
    "QuoteStep",
    "ScanState",
    "SplitResult",
    "decode_line",
    "split_lines",
    "step_quote",
    "tokenize_line",
]

"""Synthetic CSV generation."""

from .generator import SAMPLE_HEADER, iter_sample_rows, write_sample_csv

__all__ = ["SAMPLE_HEADER", "iter_sample_rows", "write_sample_csv"]

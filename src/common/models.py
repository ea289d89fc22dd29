"""Data models shared across the CLI, core engine, and writers."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

Record = Dict[str, Optional[str]]


@dataclass(slots=True)
class LineIssue:
    """Recoverable problem attached to a single logical line."""

    line_index: int
    byte_offset: int
    kind: str  # decode-error | unterminated-quote
    detail: str = ""


@dataclass(slots=True)
class AssemblySummary:
    """Counters kept by the row assembler for one stream."""

    chunks: int = 0
    bytes_read: int = 0
    lines: int = 0
    records: int = 0
    skipped_lines: int = 0
    issues: List[LineIssue] = field(default_factory=list)


@dataclass(slots=True)
class EnrichmentOutcome:
    """Result of handing one record to a row consumer.

    ``record`` is the replacement record when ``ok`` is true. On failure the
    consumer leaves ``record`` as ``None`` and explains itself in ``error``.
    """

    record: Optional[Record] = None
    ok: bool = True
    error: Optional[str] = None
    prompt_tokens: int = 0
    completion_tokens: int = 0


@dataclass(slots=True)
class EnrichmentUsage:
    """Token and request accounting for AI-backed consumers."""

    requests: int = 0
    failed_records: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0
    elapsed_seconds: float = 0.0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    @property
    def tokens_per_minute(self) -> float:
        if self.elapsed_seconds <= 0:
            return 0.0
        return self.total_tokens / self.elapsed_seconds * 60

    @property
    def requests_per_minute(self) -> float:
        if self.elapsed_seconds <= 0:
            return 0.0
        return self.requests / self.elapsed_seconds * 60


@dataclass(slots=True)
class FileProgress:
    """Progress payload reported back to the CLI during long runs."""

    file_path: Path
    processed_bytes: int
    total_bytes: int
    processed_rows: int
    current_phase: str
    chunk_index: int = 0
    eta_seconds: Optional[float] = None
    rows_per_second: Optional[float] = None


@dataclass(slots=True)
class GlobalSettings:
    """Global knobs that apply across profiles."""

    error_policy: str = "skip"  # skip | replace
    failure_policy: str = "keep"  # keep | drop


@dataclass(slots=True)
class ProfileSettings:
    """Profile-specific chunking and batching limits."""

    description: str
    chunk_size: int = 4 * 1024 * 1024
    max_remainder_bytes: Optional[int] = 64 * 1024 * 1024
    batch_rows: int = 500
    max_parallel_requests: int = 8


@dataclass(slots=True)
class EnrichmentSettings:
    """Model and field names used by the AI field cleaner."""

    model: str = "gpt-4.1-nano"
    temperature: float = 0.0
    phone_field: str = "phone"
    address_field: str = "address"


@dataclass(slots=True)
class RuntimeConfig:
    """Resolved configuration for a single run."""

    global_settings: GlobalSettings
    profile: ProfileSettings
    enrichment: EnrichmentSettings = field(default_factory=EnrichmentSettings)

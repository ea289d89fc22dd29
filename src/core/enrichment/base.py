"""Row consumer interface and batch result handling."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Sequence

from common.config import ALLOWED_FAILURE_POLICIES
from common.errors import BackendError, ErrorCode
from common.models import EnrichmentOutcome, EnrichmentUsage, Record


class RowConsumer(ABC):
    """Receives ordered batches of records and returns one outcome per record."""

    def __init__(self) -> None:
        self.usage = EnrichmentUsage()

    @abstractmethod
    def output_columns(self, header: Sequence[str]) -> List[str]:
        """Columns of the records this consumer produces for ``header``."""

    @abstractmethod
    def process(self, records: Sequence[Record]) -> List[EnrichmentOutcome]:
        """Return outcomes in the same order as ``records``."""


class PassthroughConsumer(RowConsumer):
    """Hands records through unchanged."""

    def output_columns(self, header: Sequence[str]) -> List[str]:
        return list(header)

    def process(self, records: Sequence[Record]) -> List[EnrichmentOutcome]:
        return [EnrichmentOutcome(record=record) for record in records]


def apply_outcomes(
    records: Sequence[Record],
    outcomes: Sequence[EnrichmentOutcome],
    *,
    failure_policy: str = "keep",
) -> List[Record]:
    """Merge consumer outcomes back into an output batch.

    ``keep`` writes the original values of records the consumer failed on,
    ``drop`` leaves them out. Failures are never retried here.
    """

    if failure_policy not in ALLOWED_FAILURE_POLICIES:
        raise ValueError(f"Unsupported failure policy '{failure_policy}'.")
    if len(outcomes) != len(records):
        raise BackendError(
            ErrorCode.ENRICHMENT_ERROR,
            f"Consumer returned {len(outcomes)} outcome(s) for {len(records)} record(s)",
        )
    merged: List[Record] = []
    for record, outcome in zip(records, outcomes):
        if outcome.ok and outcome.record is not None:
            merged.append(outcome.record)
        elif failure_policy == "keep":
            merged.append(record)
    return merged

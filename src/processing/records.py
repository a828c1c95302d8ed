"""
Record and per-row outcome types shared by the normalizer and quality filter.

**Conceptual**: Instead of silently skipping bad rows inside a try/except, each
row produces a tagged RowOutcome: either "kept" with its NormalizedRecord, or
"dropped" with one or more DropReasons. Stages return both lists so drop
counts and reasons can be logged and asserted on in tests.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Mapping, Optional, Tuple

import pandas as pd


class DropReason(str, Enum):
    """Why a row did not make it into the aggregation."""
    MISSING_TIMESTAMP = "missing_timestamp"
    MISSING_TAXON = "missing_taxon"
    INVALID_QUANTITY = "invalid_quantity"
    BELOW_MIN_CONFIDENCE = "below_min_confidence"
    BELOW_MIN_QUALITY = "below_min_quality"


@dataclass(frozen=True)
class NormalizedRecord:
    """
    One observation row after cleaning and field resolution.

    Attributes:
        fields: Whitespace-normalized source row (header -> value).
        event_timestamp: Observation instant, timezone-aware UTC.
        event_date: UTC calendar date of the observation, "YYYY-MM-DD".
        taxon: Resolved organism label (scientific name preferred).
        quantity: Non-negative individual count (Nmax) for this row.
        file_name: Clip identifier ("File Name" value, may be empty).
        source_index: 0-based index of the row in the parsed input.
    """
    fields: Mapping[str, str]
    event_timestamp: pd.Timestamp
    event_date: str
    taxon: str
    quantity: int
    file_name: str = ""
    source_index: int = 0


@dataclass(frozen=True)
class RowOutcome:
    """
    Tagged result of processing one row.

    Exactly one of `record` (kept) or a non-empty `reasons` (dropped) is set.
    """
    source_index: int
    record: Optional[NormalizedRecord] = None
    reasons: Tuple[DropReason, ...] = ()

    @property
    def kept(self) -> bool:
        return self.record is not None

    @classmethod
    def keep(cls, record: NormalizedRecord) -> "RowOutcome":
        return cls(source_index=record.source_index, record=record)

    @classmethod
    def drop(cls, source_index: int, *reasons: DropReason) -> "RowOutcome":
        if not reasons:
            raise ValueError("A dropped row needs at least one reason")
        return cls(source_index=source_index, reasons=tuple(reasons))


def count_drop_reasons(outcomes: List[RowOutcome]) -> Dict[str, int]:
    """Count dropped outcomes per reason (a row with two reasons counts twice)."""
    counts: Dict[str, int] = {}
    for outcome in outcomes:
        for reason in outcome.reasons:
            counts[reason.value] = counts.get(reason.value, 0) + 1
    return counts


@dataclass(frozen=True)
class StageResult:
    """
    Kept records plus dropped outcomes from a row-level stage.

    Attributes:
        records: Records that passed the stage, in input order.
        dropped: Outcomes for rows removed by the stage.
    """
    records: Tuple[NormalizedRecord, ...] = ()
    dropped: Tuple[RowOutcome, ...] = field(default_factory=tuple)

    def drop_counts(self) -> Dict[str, int]:
        return count_drop_reasons(list(self.dropped))

    @classmethod
    def from_outcomes(cls, outcomes: List[RowOutcome]) -> "StageResult":
        return cls(
            records=tuple(o.record for o in outcomes if o.kept),
            dropped=tuple(o for o in outcomes if not o.kept),
        )

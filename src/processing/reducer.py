"""
Per-clip and per-day reductions of normalized observation records.

**Conceptual**: One clip (video or audio segment, identified by "File Name")
can hold many annotation rows for the same animal: a dolphin logged at
second 3, again at second 9, again at second 20. Summing those rows would
count the same individuals repeatedly. The two reductions here pick the
statistic that matches each output format:

  - Nmax: within each (date, clip, taxon) group keep the *largest* quantity,
    i.e. the most individuals visible at once in that clip.
  - Obvs: within each (date, taxon) group count the *rows*, one observation
    event per row, regardless of how many individuals each row records.

Both reductions use pandas groupby and return small frozen dataclasses sorted
by their grouping key, so output is deterministic for a given input.
"""

from dataclasses import dataclass
from typing import List, Sequence

import pandas as pd

from src.processing.records import NormalizedRecord

_RECORD_COLUMNS = ["event_date", "file_name", "taxon", "quantity"]


@dataclass(frozen=True)
class PerClipRecord:
    """Maximum simultaneous count of one taxon in one clip on one date."""
    event_date: str
    file_name: str
    taxon: str
    clip_taxon_nmax: int


@dataclass(frozen=True)
class DailyEventCount:
    """Number of observation events for one taxon on one date."""
    event_date: str
    taxon: str
    event_count: int


def records_to_frame(records: Sequence[NormalizedRecord]) -> pd.DataFrame:
    """
    Project normalized records onto the columns the reductions need.

    Returns:
        DataFrame with columns event_date, file_name, taxon, quantity
        (empty, with those columns, when there are no records).
    """
    return pd.DataFrame(
        [(r.event_date, r.file_name, r.taxon, r.quantity) for r in records],
        columns=_RECORD_COLUMNS,
    )


def reduce_per_clip_nmax(records: Sequence[NormalizedRecord]) -> List[PerClipRecord]:
    """
    Collapse records to one PerClipRecord per (event_date, file_name, taxon).

    Args:
        records: Filtered normalized records.

    Returns:
        PerClipRecords sorted by (event_date, file_name, taxon), each holding
        the maximum quantity seen in its group.
    """
    if not records:
        return []

    frame = records_to_frame(records)
    grouped = (
        frame.groupby(["event_date", "file_name", "taxon"], sort=True)["quantity"]
        .max()
        .reset_index()
    )
    return [
        PerClipRecord(
            event_date=row.event_date,
            file_name=row.file_name,
            taxon=row.taxon,
            clip_taxon_nmax=int(row.quantity),
        )
        for row in grouped.itertuples(index=False)
    ]


def count_observation_events(records: Sequence[NormalizedRecord]) -> List[DailyEventCount]:
    """
    Count records per (event_date, taxon).

    Args:
        records: Filtered normalized records.

    Returns:
        DailyEventCounts sorted by (event_date, taxon).
    """
    if not records:
        return []

    frame = records_to_frame(records)
    grouped = frame.groupby(["event_date", "taxon"], sort=True).size().reset_index(name="event_count")
    return [
        DailyEventCount(
            event_date=row.event_date,
            taxon=row.taxon,
            event_count=int(row.event_count),
        )
        for row in grouped.itertuples(index=False)
    ]

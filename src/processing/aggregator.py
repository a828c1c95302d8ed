"""
Daily date x taxon matrices with gap filling.

**Conceptual**: Survey deployments have quiet days. A day with no detections
is still a survey day and must appear in the daily series with zero counts,
otherwise cumulative curves and per-day plots silently skip it. This module
builds a table with one row per calendar date and one integer column per taxon,
then inserts zero rows for every missing date between the first and last
observed dates.

**Functionally**:
  - `aggregate_daily_species`: sums per-clip Nmax values per (date, taxon).
    Independent clips may each contain the species, so cross-clip values add.
  - `build_daily_event_table`: lays out per-day event counts (already final).
  - `fill_missing_days`: sorts by date and reindexes onto a contiguous daily
    range, filling new rows with 0.
  - Output columns: "Date" ("YYYY-MM-DD" strings, ascending, unique) followed
    by taxon columns sorted alphabetically. All taxon values are int64 >= 0.
"""

import logging
from typing import Sequence

import pandas as pd

from src.data.schemas import DATE_COLUMN
from src.processing.reducer import DailyEventCount, PerClipRecord

logger = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%d"


def _empty_daily_table() -> pd.DataFrame:
    return pd.DataFrame({DATE_COLUMN: pd.Series([], dtype=object)})


def _pivot_daily(frame: pd.DataFrame, value_column: str) -> pd.DataFrame:
    """Pivot long (event_date, taxon, value) rows into a wide daily table."""
    table = frame.pivot_table(
        index="event_date",
        columns="taxon",
        values=value_column,
        aggfunc="sum",
        fill_value=0,
    )
    table = table.reindex(sorted(table.columns), axis=1).astype("int64")
    table.columns.name = None
    table = table.sort_index()
    table.index.name = DATE_COLUMN
    return table.reset_index()


def aggregate_daily_species(per_clip: Sequence[PerClipRecord], fill_gaps: bool = True) -> pd.DataFrame:
    """
    Sum per-clip Nmax values into a daily species table.

    Args:
        per_clip: Output of reduce_per_clip_nmax.
        fill_gaps: Insert zero rows for missing dates (default True).

    Returns:
        Daily table; an empty table with only a "Date" column when there is
        no input.
    """
    if not per_clip:
        return _empty_daily_table()

    frame = pd.DataFrame(
        [(r.event_date, r.taxon, r.clip_taxon_nmax) for r in per_clip],
        columns=["event_date", "taxon", "clip_taxon_nmax"],
    )
    table = _pivot_daily(frame, "clip_taxon_nmax")
    return fill_missing_days(table) if fill_gaps else table


def build_daily_event_table(event_counts: Sequence[DailyEventCount], fill_gaps: bool = True) -> pd.DataFrame:
    """
    Lay out per-day event counts as a daily species table.

    Args:
        event_counts: Output of count_observation_events.
        fill_gaps: Insert zero rows for missing dates (default True).
    """
    if not event_counts:
        return _empty_daily_table()

    frame = pd.DataFrame(
        [(r.event_date, r.taxon, r.event_count) for r in event_counts],
        columns=["event_date", "taxon", "event_count"],
    )
    table = _pivot_daily(frame, "event_count")
    return fill_missing_days(table) if fill_gaps else table


def fill_missing_days(table: pd.DataFrame) -> pd.DataFrame:
    """
    Insert all-zero rows for calendar dates missing from a daily table.

    **Functionally**:
    - Rows are sorted by "Date" ascending.
    - Every date between the first and last row that has no row gets one,
      with 0 in every taxon column.
    - Rows sharing a date are summed into one row.
    - The input table is not modified.

    Args:
        table: DataFrame with a "Date" column of "YYYY-MM-DD" strings and
               integer taxon columns.

    Returns:
        New DataFrame with a contiguous daily "Date" column.

    Example:
        Dates 2024-06-01 and 2024-06-05 become five rows, 06-01 through 06-05,
        with 06-02..06-04 all zero.
    """
    if table.empty:
        return table.copy()

    species_columns = [c for c in table.columns if c != DATE_COLUMN]
    dates = pd.to_datetime(table[DATE_COLUMN], format=DATE_FORMAT)
    indexed = (
        table[species_columns]
        .set_axis(pd.DatetimeIndex(dates), axis=0)
        .groupby(level=0)
        .sum()
        .sort_index()
    )

    full_range = pd.date_range(indexed.index.min(), indexed.index.max(), freq="D")
    filled = indexed.reindex(full_range, fill_value=0).astype("int64")

    inserted = len(full_range) - len(indexed)
    if inserted:
        logger.debug("Filled %d missing days between %s and %s", inserted,
                     full_range[0].strftime(DATE_FORMAT), full_range[-1].strftime(DATE_FORMAT))

    filled.insert(0, DATE_COLUMN, full_range.strftime(DATE_FORMAT))
    return filled.reset_index(drop=True)

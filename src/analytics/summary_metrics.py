"""
Running summary metrics for daily species tables (_nmax and _obvs layouts).

**Conceptual**: Field biologists read a converted file top to bottom as a
survey diary: how many organisms today, how many different kinds, how many
kinds never seen before, and how the running totals grow. This module turns a
gap-filled daily table into those rows.

**Mathematical**: For day t with species counts c_{t,s}:
    Total_t       = sum_s c_{t,s}
    UniqueToday_t = |{s : c_{t,s} > 0}|
    New_t         = |{s : c_{t,s} > 0} - Seen_{t-1}|
    Seen_t        = Seen_{t-1} | {s : c_{t,s} > 0}
    CumUnique_t   = |Seen_t|
Nmax only:
    CumObs_t      = sum_{k<=t} Total_k
    CumNew_t      = sum_{k<=t} New_k

**Functionally**:
- The seen set is an immutable SeenSpeciesState threaded through a left fold
  over the dates; there is no shared mutable set.
- "New" for a day is computed against the state *before* that day's species
  are added.
- Output rows put the fixed summary columns first, then taxon columns
  alphabetically. All non-Date values are Python ints.

**Teaching note**: CumUnique_t and CumNew_t are equal on every row by
construction; both columns are kept because downstream plotting tools read
them by name.
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from src.data.schemas import (
    ALL_UNIQUE_TODAY,
    CUMULATIVE_NEW_UNIQUE,
    CUMULATIVE_OBSERVATIONS,
    CUMULATIVE_UNIQUE_SPECIES,
    DATE_COLUMN,
    NEW_UNIQUE_TODAY,
    OutputFormat,
    TOTAL_OBSERVATIONS,
    UNIQUE_TODAY,
    species_columns_of,
    summary_columns_for,
)

SummaryRow = Dict[str, object]


@dataclass(frozen=True)
class SeenSpeciesState:
    """
    Accumulator for the set of taxa observed on or before the current date.

    Instances are immutable; `advance` returns a new state.
    """
    seen: FrozenSet[str] = frozenset()

    @property
    def size(self) -> int:
        return len(self.seen)

    def advance(self, present_today: Iterable[str]) -> Tuple["SeenSpeciesState", int]:
        """
        Fold one day into the state.

        Args:
            present_today: Taxa with a positive count today.

        Returns:
            (next_state, new_count) where new_count is the number of taxa in
            present_today that were not in this state.
        """
        newly_seen = frozenset(present_today) - self.seen
        return SeenSpeciesState(self.seen | newly_seen), len(newly_seen)


def fold_seen_species(
    present_per_day: Sequence[Iterable[str]],
    initial: Optional[SeenSpeciesState] = None,
) -> Tuple[List[int], List[int], SeenSpeciesState]:
    """
    Left fold of SeenSpeciesState over days in date order.

    Args:
        present_per_day: For each day, the taxa with a positive count.
        initial: Starting state (empty by default).

    Returns:
        (new_per_day, cumulative_unique_per_day, final_state)
    """
    state = initial or SeenSpeciesState()
    new_per_day: List[int] = []
    cumulative: List[int] = []
    for present in present_per_day:
        state, new_count = state.advance(present)
        new_per_day.append(new_count)
        cumulative.append(state.size)
    return new_per_day, cumulative, state


def calculate_summary_metrics(
    daily_table: pd.DataFrame,
    output_format: OutputFormat | str,
) -> List[SummaryRow]:
    """
    Build summary rows for a daily species table.

    Args:
        daily_table: Gap-filled table with a "Date" column and integer taxon
                     columns, ascending by date.
        output_format: OutputFormat.NMAX or OutputFormat.OBVS (or "_nmax"/"_obvs").

    Returns:
        List of ordered dicts, one per date. Empty list for an empty table.
    """
    fmt = OutputFormat.parse(output_format)
    if daily_table is None or daily_table.empty:
        return []

    table = daily_table.sort_values(DATE_COLUMN, kind="mergesort").reset_index(drop=True)
    species = sorted(species_columns_of(c for c in table.columns if c != DATE_COLUMN))
    counts = table[species].to_numpy(dtype=np.int64) if species else np.zeros((len(table), 0), dtype=np.int64)

    positive = counts > 0
    totals = counts.sum(axis=1)
    unique_today = positive.sum(axis=1)
    present_per_day = [[species[j] for j in np.flatnonzero(row)] for row in positive]
    new_today, cumulative_unique, _ = fold_seen_species(present_per_day)

    columns = summary_columns_for(fmt)
    rows: List[SummaryRow] = []

    if fmt is OutputFormat.NMAX:
        cumulative_obs = np.cumsum(totals)
        cumulative_new = np.cumsum(new_today)

    for i, date in enumerate(table[DATE_COLUMN].tolist()):
        metrics = {
            DATE_COLUMN: str(date),
            TOTAL_OBSERVATIONS: int(totals[i]),
            NEW_UNIQUE_TODAY: int(new_today[i]),
            CUMULATIVE_UNIQUE_SPECIES: int(cumulative_unique[i]),
        }
        if fmt is OutputFormat.NMAX:
            metrics[CUMULATIVE_OBSERVATIONS] = int(cumulative_obs[i])
            metrics[ALL_UNIQUE_TODAY] = int(unique_today[i])
            metrics[CUMULATIVE_NEW_UNIQUE] = int(cumulative_new[i])
        else:
            metrics[UNIQUE_TODAY] = int(unique_today[i])

        row: SummaryRow = {col: metrics[col] for col in columns}
        for j, name in enumerate(species):
            row[name] = int(counts[i, j])
        rows.append(row)

    return rows


def calculate_nmax_summary_metrics(daily_table: pd.DataFrame) -> List[SummaryRow]:
    """Summary rows in the _nmax layout."""
    return calculate_summary_metrics(daily_table, OutputFormat.NMAX)


def calculate_obvs_summary_metrics(daily_table: pd.DataFrame) -> List[SummaryRow]:
    """Summary rows in the _obvs layout."""
    return calculate_summary_metrics(daily_table, OutputFormat.OBVS)


@dataclass(frozen=True)
class DateRange:
    """First and last "Date" of a converted series plus its row count."""
    start: str
    end: str
    days: int

    def to_dict(self) -> Dict[str, object]:
        return {"start": self.start, "end": self.end, "days": self.days}


def get_date_range(rows: Sequence[SummaryRow]) -> Optional[DateRange]:
    """Date range of converted rows, or None when there are none."""
    dates = sorted(str(row[DATE_COLUMN]) for row in rows if row.get(DATE_COLUMN))
    if not dates:
        return None
    return DateRange(start=dates[0], end=dates[-1], days=len(dates))


def get_species_count(rows: Sequence[SummaryRow]) -> int:
    """Number of taxon columns in converted rows."""
    if not rows:
        return 0
    return len(species_columns_of(rows[0].keys()))

"""
Tests for src/analytics/summary_metrics.py

Covers per-day totals, the seen-species fold, running sums, column layout per
format, and the helper accessors.
"""

import pandas as pd

from src.analytics.summary_metrics import (
    DateRange,
    SeenSpeciesState,
    calculate_nmax_summary_metrics,
    calculate_obvs_summary_metrics,
    calculate_summary_metrics,
    fold_seen_species,
    get_date_range,
    get_species_count,
)
from src.data.schemas import NMAX_SUMMARY_COLUMNS, OBVS_SUMMARY_COLUMNS


def make_daily_table():
    """Three days: Orca on day 1, Dolphin and Orca on day 2, nothing on day 3."""
    return pd.DataFrame(
        {
            "Date": ["2024-06-01", "2024-06-02", "2024-06-03"],
            "Orca": [2, 1, 0],
            "Dolphin": [0, 4, 0],
        }
    )


def test_seen_species_state_is_immutable():
    start = SeenSpeciesState()
    after, new_count = start.advance(["Orca", "Dolphin"])

    assert new_count == 2
    assert start.size == 0
    assert after.size == 2

    again, new_count = after.advance(["Orca", "Seal"])
    assert new_count == 1
    assert again.seen == frozenset({"Orca", "Dolphin", "Seal"})


def test_fold_seen_species_counts_new_before_update():
    new, cumulative, final = fold_seen_species([["A"], ["A", "B"], [], ["C", "B"]])
    assert new == [1, 1, 0, 1]
    assert cumulative == [1, 2, 2, 3]
    assert final.size == 3


def test_nmax_summary_values():
    rows = calculate_nmax_summary_metrics(make_daily_table())

    assert [r["Total Observations"] for r in rows] == [2, 5, 0]
    assert [r["Cumulative Observations"] for r in rows] == [2, 7, 7]
    assert [r["All Unique Organisms Observed Today"] for r in rows] == [1, 2, 0]
    assert [r["New Unique Organisms Today"] for r in rows] == [1, 1, 0]
    assert [r["Cumulative New Unique Organisms"] for r in rows] == [1, 2, 2]
    assert [r["Cumulative Unique Species"] for r in rows] == [1, 2, 2]


def test_nmax_column_order_and_int_types():
    rows = calculate_nmax_summary_metrics(make_daily_table())

    assert list(rows[0].keys()) == list(NMAX_SUMMARY_COLUMNS) + ["Dolphin", "Orca"]
    for row in rows:
        for key, value in row.items():
            if key != "Date":
                assert type(value) is int


def test_obvs_layout_has_no_cumulative_observations():
    rows = calculate_obvs_summary_metrics(make_daily_table())

    assert list(rows[0].keys()) == list(OBVS_SUMMARY_COLUMNS) + ["Dolphin", "Orca"]
    assert "Cumulative Observations" not in rows[0]
    assert [r["Unique Organisms Observed Today"] for r in rows] == [1, 2, 0]


def test_cumulative_unique_species_reflects_each_day():
    rows = calculate_summary_metrics(make_daily_table(), "_obvs")
    # Grows with the seen set rather than repeating the final size
    assert [r["Cumulative Unique Species"] for r in rows] == [1, 2, 2]


def test_unsorted_table_is_processed_in_date_order():
    table = make_daily_table().iloc[::-1].reset_index(drop=True)
    rows = calculate_nmax_summary_metrics(table)
    assert [r["Date"] for r in rows] == ["2024-06-01", "2024-06-02", "2024-06-03"]


def test_empty_table_gives_no_rows():
    assert calculate_nmax_summary_metrics(pd.DataFrame({"Date": []})) == []


def test_date_range_and_species_count():
    rows = calculate_nmax_summary_metrics(make_daily_table())

    assert get_date_range(rows) == DateRange("2024-06-01", "2024-06-03", 3)
    assert get_date_range(rows).to_dict() == {"start": "2024-06-01", "end": "2024-06-03", "days": 3}
    assert get_species_count(rows) == 2
    assert get_date_range([]) is None
    assert get_species_count([]) == 0

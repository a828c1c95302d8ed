"""
Tests for src/processing/normalizer.py and src/processing/records.py

Covers whitespace cleanup, column-role resolution, timestamp and taxon
priority, quantity coercion, and tagged drop outcomes.
"""

import pandas as pd
import pytest

from src.processing.normalizer import (
    ColumnRoles,
    normalize_record,
    normalize_records,
    normalize_row,
    normalize_text,
    parse_timestamp,
    resolve_columns,
)
from src.processing.records import DropReason, RowOutcome

STANDARD_HEADERS = [
    "File Name",
    "Adjusted Date and Time",
    "Event Observation",
    "Quantity (Nmax)",
    "Common Name",
    "Lowest Order Scientific Name",
    "Confidence Level",
]


def make_row(ts="2024-06-01 08:15:23", common="Bottlenose dolphin", scientific="Tursiops truncatus",
             quantity="3", file_name="clip_001.mp4", confidence="4"):
    return dict(zip(STANDARD_HEADERS, [file_name, ts, "sighting", quantity, common, scientific, confidence]))


def test_normalize_text_cleans_whitespace():
    assert normalize_text("  Tursiops\xa0 truncatus  ") == "Tursiops truncatus"
    assert normalize_text("a\t\tb") == "a b"
    assert normalize_text(5) == 5


def test_normalize_row_cleans_keys_and_values():
    row = normalize_row({" Common\xa0Name ": "  Orca  "})
    assert row == {"Common Name": "Orca"}


def test_resolve_columns_priority_order():
    headers = ["Date/Time of Recording", "Adjusted Date and Time", "Common Name",
               "Lowest Order Scientific Name", "Confidence Level (1-5)"]
    roles = resolve_columns(headers)

    assert roles.timestamp_columns == ("Adjusted Date and Time", "Date/Time of Recording")
    assert roles.taxon_columns == ("Lowest Order Scientific Name", "Common Name")
    assert roles.confidence_column == "Confidence Level (1-5)"
    assert roles.quality_column is None


def test_missing_roles_lists_unresolved():
    roles = resolve_columns(["File Name", "Notes"])
    assert roles.missing_roles() == ["timestamp", "taxon", "quantity"]


def test_parse_timestamp_naive_is_utc():
    ts = parse_timestamp("2024-06-01 23:30:00")
    assert ts == pd.Timestamp("2024-06-01 23:30:00", tz="UTC")


def test_parse_timestamp_with_offset_converts_to_utc():
    ts = parse_timestamp("2024-06-01T23:30:00-02:00")
    assert ts.strftime("%Y-%m-%d %H:%M") == "2024-06-02 01:30"


def test_parse_timestamp_invalid_values():
    assert parse_timestamp("") is None
    assert parse_timestamp("   ") is None
    assert parse_timestamp("not a date") is None
    assert parse_timestamp(None) is None


def test_parse_timestamp_rejects_relative_words():
    assert parse_timestamp("today") is None
    assert parse_timestamp("now") is None
    assert parse_timestamp(" Today ") is None


def test_relative_timestamp_row_is_dropped():
    roles = resolve_columns(STANDARD_HEADERS)
    outcome = normalize_record(make_row(ts="now"), roles)

    assert not outcome.kept
    assert outcome.reasons == (DropReason.MISSING_TIMESTAMP,)


def test_normalize_record_prefers_scientific_name():
    roles = resolve_columns(STANDARD_HEADERS)
    outcome = normalize_record(make_row(), roles)

    assert outcome.kept
    assert outcome.record.taxon == "Tursiops truncatus"
    assert outcome.record.event_date == "2024-06-01"
    assert outcome.record.quantity == 3
    assert outcome.record.file_name == "clip_001.mp4"


def test_normalize_record_falls_back_to_common_name():
    roles = resolve_columns(STANDARD_HEADERS)
    outcome = normalize_record(make_row(scientific=""), roles)
    assert outcome.record.taxon == "Bottlenose dolphin"


def test_normalize_record_uses_next_timestamp_candidate():
    headers = ["Adjusted Date and Time", "Date/Time of Recording", "Common Name", "Quantity (Nmax)"]
    row = {"Adjusted Date and Time": "garbage", "Date/Time of Recording": "2024-06-03 10:00:00",
           "Common Name": "Orca", "Quantity (Nmax)": "1"}
    outcome = normalize_record(row, resolve_columns(headers))
    assert outcome.record.event_date == "2024-06-03"


@pytest.mark.parametrize("raw, expected", [("5", 5), ("5.9", 5), ("100+", 100), ("-2", 0), ("abc", 0), ("", 0)])
def test_quantity_coerced_to_non_negative_int(raw, expected):
    roles = resolve_columns(STANDARD_HEADERS)
    outcome = normalize_record(make_row(quantity=raw), roles)
    assert outcome.kept
    assert outcome.record.quantity == expected


def test_normalize_record_drops_with_all_reasons():
    roles = resolve_columns(STANDARD_HEADERS)
    outcome = normalize_record(make_row(ts="", common="", scientific=""), roles, source_index=7)

    assert not outcome.kept
    assert outcome.source_index == 7
    assert outcome.reasons == (DropReason.MISSING_TIMESTAMP, DropReason.MISSING_TAXON)


def test_normalize_records_counts_drops_and_keeps_cleaned_rows():
    rows = [make_row(), make_row(ts="n/a"), make_row(common=" ", scientific="\xa0"), make_row()]
    result = normalize_records(rows)

    assert len(result.records) == 2
    assert [r.source_index for r in result.records] == [0, 3]
    assert result.drop_counts() == {"missing_timestamp": 1, "missing_taxon": 1}
    assert len(result.cleaned_rows) == 4
    assert result.headers == tuple(STANDARD_HEADERS)


def test_normalize_records_does_not_mutate_input():
    row = make_row(common="  Orca ")
    snapshot = dict(row)
    normalize_records([row])
    assert row == snapshot


def test_row_outcome_drop_requires_reason():
    with pytest.raises(ValueError):
        RowOutcome.drop(0)


def test_column_roles_default_is_empty():
    assert ColumnRoles().missing_roles() == ["timestamp", "taxon", "file_name", "quantity"]

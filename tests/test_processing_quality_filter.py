"""
Tests for src/processing/quality_filter.py

The filter is permissive: only present, numeric, below-threshold scores drop
a record.
"""

from src.processing.normalizer import normalize_records, resolve_columns
from src.processing.quality_filter import (
    QualityFilterOptions,
    apply_quality_filters,
    is_below_threshold,
)
from src.processing.records import DropReason


def make_rows(confidences, qualities=None):
    qualities = qualities or [""] * len(confidences)
    return [
        {
            "File Name": f"clip_{i}.mp4",
            "Adjusted Date and Time": "2024-06-01 08:00:00",
            "Event Observation": "sighting",
            "Quantity (Nmax)": "1",
            "Common Name": "Orca",
            "Confidence Level": confidence,
            "Quality of Video": quality,
        }
        for i, (confidence, quality) in enumerate(zip(confidences, qualities))
    ]


def normalized(rows):
    result = normalize_records(rows)
    return result.records, resolve_columns(list(rows[0].keys()))


def test_is_below_threshold():
    assert is_below_threshold(2, 3)
    assert not is_below_threshold(3, 3)
    assert not is_below_threshold(None, 3)
    assert not is_below_threshold(1, None)
    assert not is_below_threshold(1, 0)


def test_min_confidence_drops_low_scores_and_keeps_blank():
    records, roles = normalized(make_rows(["2", "", "4"]))
    result = apply_quality_filters(records, QualityFilterOptions(min_confidence=3), roles)

    assert [r.source_index for r in result.records] == [1, 2]
    assert len(result.dropped) == 1
    assert result.dropped[0].reasons == (DropReason.BELOW_MIN_CONFIDENCE,)


def test_non_numeric_confidence_passes():
    records, roles = normalized(make_rows(["high", "unsure"]))
    result = apply_quality_filters(records, QualityFilterOptions(min_confidence=5), roles)
    assert len(result.records) == 2


def test_min_quality_filter_and_combined_reasons():
    records, roles = normalized(make_rows(["1", "5"], ["1", "5"]))
    result = apply_quality_filters(records, QualityFilterOptions(min_confidence=3, min_quality=3), roles)

    assert [r.source_index for r in result.records] == [1]
    assert result.drop_counts() == {"below_min_confidence": 1, "below_min_quality": 1}


def test_no_options_keeps_everything():
    records, roles = normalized(make_rows(["1", "1"]))
    result = apply_quality_filters(records)
    assert result.records == records
    assert result.dropped == ()


def test_without_roles_checks_known_spellings():
    rows = [
        {"Adjusted Date and Time": "2024-06-01", "Common Name": "Orca", "Quantity (Nmax)": "1",
         "Confidence Level (1-5)": "1"},
    ]
    records = normalize_records(rows).records
    result = apply_quality_filters(records, QualityFilterOptions(min_confidence=2))
    assert result.records == ()

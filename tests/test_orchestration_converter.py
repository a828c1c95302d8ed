"""
Tests for src/orchestration/converter.py and src/orchestration/logger.py

End-to-end conversions on small CSV texts, covering the observation scenarios,
the output invariants, progress reporting, and failure capture.
"""

import logging
from datetime import datetime, timedelta, timezone

import pytest

from src.data.raw2 import RAW2_COLUMNS
from src.data.schemas import SourceFormat
from src.orchestration.converter import (
    ConversionOptions,
    ConversionState,
    ObservationConverter,
    convert_raw_to_nmax,
    convert_raw_to_obvs,
)
from src.orchestration.logger import ConversionLogger, RecordingObserver
from src.utils.time import FrozenClock, RealClock

HEADER = ("File Name,Adjusted Date and Time,Event Observation,Quantity (Nmax),"
          "Common Name,Lowest Order Scientific Name,Confidence Level")


def make_csv(rows):
    """
    Build raw CSV text.

    Args:
        rows: Tuples of (file_name, timestamp, quantity, common, scientific, confidence).
    """
    lines = [HEADER]
    for file_name, ts, quantity, common, scientific, confidence in rows:
        lines.append(f"{file_name},{ts},sighting,{quantity},{common},{scientific},{confidence}")
    return "\n".join(lines)


def frozen_clock():
    return FrozenClock(datetime(2024, 7, 1, 9, 0, tzinfo=timezone.utc))


SURVEY = make_csv([
    ("clip_a.mp4", "2024-06-01 08:00:00", "3", "Bottlenose dolphin", "Tursiops truncatus", "4"),
    ("clip_a.mp4", "2024-06-01 08:00:05", "5", "Bottlenose dolphin", "Tursiops truncatus", "5"),
    ("clip_b.mp4", "2024-06-01 14:00:00", "2", "Bottlenose dolphin", "Tursiops truncatus", "4"),
    ("clip_c.mp4", "2024-06-03 10:00:00", "1", "Orca", "", "2"),
    ("clip_d.mp4", "2024-06-05 10:00:00", "4", "Harbour seal", "", ""),
])


def assert_output_invariants(rows, output_format):
    species = [k for k in rows[0] if k not in {
        "Date", "Total Observations", "Cumulative Observations", "All Unique Organisms Observed Today",
        "Unique Organisms Observed Today", "New Unique Organisms Today", "Cumulative New Unique Organisms",
        "Cumulative Unique Species",
    }]
    unique_column = ("All Unique Organisms Observed Today" if output_format == "_nmax"
                     else "Unique Organisms Observed Today")
    dates = [datetime.strptime(r["Date"], "%Y-%m-%d") for r in rows]

    for previous, current in zip(dates, dates[1:]):
        assert current - previous == timedelta(days=1)
    for row in rows:
        assert row["Total Observations"] == sum(row[s] for s in species)
        assert row[unique_column] == sum(1 for s in species if row[s] > 0)
    for previous, current in zip(rows, rows[1:]):
        assert current["Cumulative Unique Species"] >= previous["Cumulative Unique Species"]
        if output_format == "_nmax":
            assert current["Cumulative Observations"] >= previous["Cumulative Observations"]


# ============================================================================
# Scenarios
# ============================================================================

def test_same_clip_rows_take_the_maximum():
    result = convert_raw_to_nmax(make_csv([
        ("clip_a.mp4", "2024-06-01 08:00:00", "3", "", "Tursiops truncatus", ""),
        ("clip_a.mp4", "2024-06-01 08:00:10", "5", "", "Tursiops truncatus", ""),
    ]))

    assert result.success, result.error
    assert result.data[0]["Tursiops truncatus"] == 5
    assert result.data[0]["Total Observations"] == 5


def test_missing_days_are_filled():
    result = convert_raw_to_nmax(make_csv([
        ("a.mp4", "2024-06-01 08:00:00", "2", "Orca", "", ""),
        ("b.mp4", "2024-06-05 08:00:00", "1", "Orca", "", ""),
    ]))

    assert [r["Date"] for r in result.data] == [
        "2024-06-01", "2024-06-02", "2024-06-03", "2024-06-04", "2024-06-05",
    ]
    for row in result.data[1:4]:
        assert row["Orca"] == 0
        assert row["Total Observations"] == 0


def test_min_confidence_drops_low_rows_and_keeps_blank():
    text = make_csv([
        ("a.mp4", "2024-06-01 08:00:00", "2", "Orca", "", "2"),
        ("b.mp4", "2024-06-01 09:00:00", "1", "Seal", "", ""),
    ])
    result = convert_raw_to_nmax(text, ConversionOptions(min_confidence=3))

    assert result.success
    assert "Orca" not in result.data[0]
    assert result.data[0]["Seal"] == 1
    assert result.metadata.dropped_rows == {"below_min_confidence": 1}


def test_obvs_never_has_cumulative_observations():
    nmax = convert_raw_to_nmax(SURVEY)
    obvs = convert_raw_to_obvs(SURVEY)

    assert all("Cumulative Observations" in row for row in nmax.data)
    assert all("Cumulative Observations" not in row for row in obvs.data)


# ============================================================================
# Full survey
# ============================================================================

def test_nmax_survey_values():
    result = convert_raw_to_nmax(SURVEY)
    day1 = result.data[0]

    # clip_a max 5 plus clip_b 2
    assert day1["Tursiops truncatus"] == 7
    assert [r["Cumulative Observations"] for r in result.data] == [7, 7, 8, 8, 12]
    assert [r["New Unique Organisms Today"] for r in result.data] == [1, 0, 1, 0, 1]
    assert [r["Cumulative Unique Species"] for r in result.data] == [1, 1, 2, 2, 3]
    assert list(day1.keys())[-3:] == ["Harbour seal", "Orca", "Tursiops truncatus"]
    assert_output_invariants(result.data, "_nmax")


def test_obvs_survey_values():
    result = convert_raw_to_obvs(SURVEY)

    assert result.data[0]["Tursiops truncatus"] == 3
    assert [r["Total Observations"] for r in result.data] == [3, 0, 1, 0, 1]
    assert_output_invariants(result.data, "_obvs")


def test_metadata_and_validation():
    result = convert_raw_to_nmax(SURVEY)
    meta = result.metadata

    assert meta.input_rows == 5
    assert meta.output_rows == 5
    assert meta.species_count == 3
    assert meta.date_range.start == "2024-06-01"
    assert meta.date_range.end == "2024-06-05"
    assert meta.source_format is SourceFormat.RAW
    assert meta.conversion_steps == 6
    assert set(result.validation) == {"input", "output"}
    assert result.validation["output"].is_valid
    assert result.validation["input"].metrics["totalRows"] == 5


def test_parser_drops_are_counted_in_metadata():
    text = SURVEY + "\nbroken,line"
    result = convert_raw_to_nmax(text)
    assert result.success
    assert result.metadata.dropped_rows["column_count_mismatch"] == 1


def test_rows_without_timestamp_or_taxon_are_dropped():
    text = make_csv([
        ("a.mp4", "2024-06-01 08:00:00", "1", "Orca", "", ""),
        ("b.mp4", "not a time", "1", "Orca", "", ""),
        ("c.mp4", "2024-06-01 09:00:00", "1", "", "", ""),
    ])
    result = convert_raw_to_nmax(text)
    assert result.metadata.dropped_rows == {"missing_timestamp": 1, "missing_taxon": 1}
    assert result.data[0]["Orca"] == 1


def test_options_accept_camel_case_mapping():
    result = convert_raw_to_nmax(SURVEY, {"minConfidence": 4})
    assert result.success
    assert "Orca" not in result.data[0]


def test_to_csv_and_to_dict():
    result = convert_raw_to_obvs(SURVEY)
    text = result.to_csv()

    assert text.splitlines()[0].startswith("Date,Total Observations,Unique Organisms Observed Today")
    assert len(text.splitlines()) == 6
    as_dict = result.to_dict()
    assert as_dict["success"] is True
    assert as_dict["metadata"]["dateRange"] == {"start": "2024-06-01", "end": "2024-06-05", "days": 5}
    assert as_dict["validation"]["output"]["isValid"] is True


def test_conversion_is_deterministic():
    first = convert_raw_to_nmax(SURVEY, clock=frozen_clock())
    second = convert_raw_to_nmax(SURVEY, clock=frozen_clock())

    assert first.to_csv() == second.to_csv()
    assert first.data == second.data
    assert first.metadata == second.metadata


def test_raw2_input_is_detected_and_converted():
    header = ",".join(RAW2_COLUMNS)
    line1 = ("algapelago_1_2025-04-05_10-00-47.mp4,5,2,,00:00:10,4,Tursiops truncatus,Tursiops,"
             "Delphinidae,Cetacea,Mammalia,Chordata,Animalia,two adults, close to camera")
    line2 = ("algapelago_1_2025-04-07_09-30-00.mp4,1,1,,00:00:02,3,Tursiops truncatus,Tursiops,"
             "Delphinidae,Cetacea,Mammalia,Chordata,Animalia,")
    result = convert_raw_to_nmax("\n".join([header, line1, line2]))

    assert result.success, result.error
    assert result.metadata.source_format is SourceFormat.RAW2
    assert [r["Date"] for r in result.data] == ["2025-04-05", "2025-04-06", "2025-04-07"]
    assert [r["Tursiops truncatus"] for r in result.data] == [2, 0, 1]


# ============================================================================
# Progress and logging
# ============================================================================

def test_progress_events_cover_six_steps_in_order():
    observer = RecordingObserver()
    converter = ObservationConverter(observer=observer, clock=frozen_clock())
    result = converter.convert_raw_to_nmax(SURVEY)

    assert [e.step for e in observer.progress] == [1, 2, 3, 4, 5, 6]
    assert [e.step_name for e in observer.progress] == [
        "Parsing", "Normalizing", "Filtering", "Aggregating", "Summarizing", "Validating",
    ]
    assert all(e.total_steps == 6 for e in observer.progress)
    assert observer.progress[-1].progress_percent == 100
    assert converter.state is ConversionState.DONE
    assert observer.logs == result.logs
    assert result.logs[-1].level == "SUCCESS"


def test_log_entries_carry_step_and_elapsed_time():
    clock = frozen_clock()
    run_log = ConversionLogger(clock=clock)
    run_log.info("before")
    run_log.start_step(1)
    clock.advance(milliseconds=40)
    entry = run_log.warning("skipped rows", count=2)

    assert run_log.entries[0].step == 0
    assert entry.step == 1
    assert entry.step_name == "Parsing"
    assert entry.elapsed_ms == 40
    assert entry.metadata == {"count": 2}


def test_steps_must_be_sequential():
    run_log = ConversionLogger(clock=frozen_clock())
    with pytest.raises(ValueError):
        run_log.start_step(2)


def test_logs_are_mirrored_to_logging(caplog):
    with caplog.at_level(logging.INFO, logger="src.orchestration.logger"):
        convert_raw_to_nmax(SURVEY)
    assert any("Step 1/6: Parsing" in message for message in caplog.messages)


# ============================================================================
# Failures
# ============================================================================

def test_header_only_input_fails_without_raising():
    converter = ObservationConverter(clock=frozen_clock())
    result = converter.convert_raw_to_nmax(HEADER)

    assert not result.success
    assert "header row and at least one data row" in result.error
    assert result.data == []
    assert converter.state is ConversionState.FAILED
    assert result.logs[-1].level == "ERROR"


def test_no_usable_rows_fails():
    text = make_csv([("a.mp4", "", "1", "Orca", "", ""), ("b.mp4", "2024-06-01", "1", "", "", "")])
    result = convert_raw_to_obvs(text)
    assert not result.success
    assert "nothing to aggregate" in result.error


def test_everything_filtered_fails():
    text = make_csv([("a.mp4", "2024-06-01 08:00:00", "1", "Orca", "", "1")])
    result = convert_raw_to_nmax(text, ConversionOptions(min_confidence=5))
    assert not result.success


def test_unknown_format_fails():
    result = ObservationConverter().convert(SURVEY, "_weekly")
    assert not result.success
    assert result.output_format == "_weekly"
    assert "Unknown output format" in result.error


def test_observer_errors_are_captured():
    class BrokenObserver:
        def on_progress(self, event):
            raise RuntimeError("display went away")

        def on_log(self, entry):
            pass

    result = ObservationConverter(observer=BrokenObserver()).convert_raw_to_nmax(SURVEY)
    assert not result.success
    assert result.error == "display went away"


def test_failure_is_returned_when_observer_log_sink_raises(caplog):
    class BrokenLogSink:
        def on_progress(self, event):
            pass

        def on_log(self, entry):
            raise RuntimeError("log sink down")

    with caplog.at_level(logging.ERROR, logger="src.orchestration.logger"):
        result = convert_raw_to_nmax(SURVEY, observer=BrokenLogSink())

    assert not result.success
    assert result.error == "log sink down"
    assert result.logs[-1].level == "ERROR"
    assert result.logs[-1].message == "Conversion failed: log sink down"
    assert "Observer failed while recording a conversion failure" in caplog.text


def test_default_clock_is_the_real_clock():
    converter = ObservationConverter()
    assert isinstance(converter.clock, RealClock)
    assert isinstance(ConversionLogger().clock, RealClock)

def test_converter_can_be_reused_after_failure():
    converter = ObservationConverter()
    assert not converter.convert_raw_to_nmax("").success
    assert converter.convert_raw_to_nmax(SURVEY).success
    assert converter.state is ConversionState.DONE

"""
Validation of converted daily files (_nmax and _obvs).

**Conceptual**: A converted file is internally redundant: the summary columns
can be recomputed from the taxon columns. The validator recomputes them and
reports every row where the stored value disagrees, plus structural problems
(missing columns, duplicate dates, decreasing cumulative columns).

**Checks (errors)**:
  - Output is non-empty and has every fixed column of its format.
  - Every non-Date value is a non-negative integer.
  - Every "Cumulative ..." column is non-decreasing.
  - "Total Observations" equals the sum of the taxon columns.
  - The today-unique column equals the number of positive taxon columns.
  - No Date appears twice.

Date gaps are warnings, not errors: a file produced by this package never has
them, but hand-edited files often do.

**Metrics**: row count, date range with gaps, per-taxon activity, observation
totals, and integrity checks that recompute the running sum and seen set.
"""

import logging
from collections import Counter
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

import pandas as pd

from src.analytics.summary_metrics import fold_seen_species
from src.data.io import frame_to_rows
from src.data.schemas import (
    CUMULATIVE_OBSERVATIONS,
    CUMULATIVE_UNIQUE_SPECIES,
    DATE_COLUMN,
    FatalConversionError,
    OutputFormat,
    TOTAL_OBSERVATIONS,
    species_columns_of,
    summary_columns_for,
    unique_today_column_for,
)
from src.utils.math import is_non_negative_int, parse_leading_float, percentage
from src.validation.results import CappedIssues, ValidationResult

logger = logging.getLogger(__name__)

ERROR_LIMIT = 5


def _as_rows(data) -> List[Dict[str, Any]]:
    if data is None:
        return []
    if isinstance(data, pd.DataFrame):
        return frame_to_rows(data)
    return [dict(row) for row in data]


def _number(value) -> float:
    """Numeric view of a cell for arithmetic checks; unreadable cells count as 0."""
    parsed = parse_leading_float(value)
    return 0.0 if parsed is None else parsed


def find_date_gaps(dates: Sequence[str]) -> List[Dict[str, Any]]:
    """
    List the holes in a sorted sequence of "YYYY-MM-DD" dates.

    Returns:
        One dict per gap: {"after": date, "before": date, "days": missing_days}.
        Unparseable dates are skipped.
    """
    parsed = []
    for text in dates:
        try:
            parsed.append((text, datetime.strptime(str(text), "%Y-%m-%d").date()))
        except ValueError:
            continue

    gaps = []
    for (prev_text, prev), (cur_text, cur) in zip(parsed, parsed[1:]):
        missing = (cur - prev).days - 1
        if missing > 0:
            gaps.append({"after": prev_text, "before": cur_text, "days": missing})
    return gaps


def _check_values(rows, headers, result: ValidationResult) -> None:
    issues = CappedIssues("value errors", ERROR_LIMIT)
    for index, row in enumerate(rows, start=1):
        for column in headers:
            if column == DATE_COLUMN:
                continue
            value = row.get(column)
            if not is_non_negative_int(value):
                issues.add(f"Invalid value at row {index}, column {column}: {value!r}")
    issues.flush_errors(result)


def _check_monotonic(rows, headers, result: ValidationResult) -> None:
    for column in (h for h in headers if h.startswith("Cumulative")):
        issues = CappedIssues(f"{column} monotonicity errors", ERROR_LIMIT)
        for index in range(1, len(rows)):
            if _number(rows[index].get(column)) < _number(rows[index - 1].get(column)):
                issues.add(f"{column} is not monotonic at row {index + 1}")
        issues.flush_errors(result)


def _check_row_totals(rows, species, headers, result: ValidationResult) -> None:
    if TOTAL_OBSERVATIONS not in headers:
        return
    issues = CappedIssues("row total errors", ERROR_LIMIT)
    for index, row in enumerate(rows, start=1):
        expected = sum(_number(row.get(s)) for s in species)
        actual = row.get(TOTAL_OBSERVATIONS)
        if _number(actual) != expected:
            issues.add(f"Row total mismatch at row {index}: expected {expected:g}, got {actual}")
    issues.flush_errors(result)


def _check_unique_counts(rows, species, column: str, headers, result: ValidationResult) -> None:
    if column not in headers:
        return
    issues = CappedIssues("unique organism count errors", ERROR_LIMIT)
    for index, row in enumerate(rows, start=1):
        expected = sum(1 for s in species if _number(row.get(s)) > 0)
        actual = row.get(column)
        if _number(actual) != expected:
            issues.add(f"Unique organisms count mismatch at row {index}: expected {expected}, got {actual}")
    issues.flush_errors(result)


def _check_duplicate_dates(rows, result: ValidationResult) -> None:
    issues = CappedIssues("duplicate date errors", ERROR_LIMIT)
    for date, count in Counter(str(row.get(DATE_COLUMN)) for row in rows).items():
        if count > 1:
            issues.add(f"Duplicate date found in output: {date} ({count} rows)")
    issues.flush_errors(result)


def _date_range(rows, result: ValidationResult) -> Dict[str, Any]:
    dates = sorted(str(row[DATE_COLUMN]) for row in rows if row.get(DATE_COLUMN))
    gaps = find_date_gaps(dates)
    for gap in gaps:
        result.add_warning(
            f"Date gap of {gap['days']} day(s) between {gap['after']} and {gap['before']}"
        )
    return {
        "start": dates[0] if dates else None,
        "end": dates[-1] if dates else None,
        "totalDays": len(dates),
        "dateGaps": gaps,
    }


def _species_metrics(rows, species) -> Dict[str, Any]:
    activity = {}
    for name in species:
        active_days = sum(1 for row in rows if _number(row.get(name)) > 0)
        activity[name] = {
            "activeDays": active_days,
            "totalObservations": int(sum(_number(row.get(name)) for row in rows)),
            "activityRate": percentage(active_days, len(rows)),
        }
    return {"totalSpecies": len(species), "speciesNames": list(species), "speciesActivity": activity}


def _observation_metrics(rows, fmt: OutputFormat) -> Dict[str, Any]:
    totals = [_number(row.get(TOTAL_OBSERVATIONS)) for row in rows]
    return {
        "totalObservations": int(sum(totals)),
        "averageDailyObservations": sum(totals) / len(totals),
        "maxDailyObservations": int(max(totals)),
        "minDailyObservations": int(min(totals)),
        "observationType": "Individual counts" if fmt is OutputFormat.NMAX else "Event counts",
    }


def _integrity_checks(rows, species, headers, fmt: OutputFormat) -> Dict[str, Any]:
    checks: Dict[str, Any] = {}

    if fmt is OutputFormat.NMAX and CUMULATIVE_OBSERVATIONS in headers:
        mismatches = []
        running = 0.0
        for index, row in enumerate(rows):
            running += _number(row.get(TOTAL_OBSERVATIONS))
            if _number(row.get(CUMULATIVE_OBSERVATIONS)) != running:
                mismatches.append({"row": index, "expected": int(running), "actual": row.get(CUMULATIVE_OBSERVATIONS)})
        checks["cumulativeObservations"] = {"errors": mismatches, "isValid": not mismatches}

    if CUMULATIVE_UNIQUE_SPECIES in headers:
        present = [[s for s in species if _number(row.get(s)) > 0] for row in rows]
        _, expected_sizes, _ = fold_seen_species(present)
        mismatches = [
            {"row": index, "expected": expected, "actual": row.get(CUMULATIVE_UNIQUE_SPECIES)}
            for index, (row, expected) in enumerate(zip(rows, expected_sizes))
            if _number(row.get(CUMULATIVE_UNIQUE_SPECIES)) != expected
        ]
        checks["cumulativeSpecies"] = {"errors": mismatches, "isValid": not mismatches}

    total_values = sum(len(row) for row in rows)
    empty_values = sum(1 for row in rows for value in row.values() if value is None or value == "")
    checks["completeness"] = {
        "totalValues": total_values,
        "emptyValues": empty_values,
        "completenessRate": percentage(total_values - empty_values, total_values),
    }
    return checks


def validate_converted_data(rows, output_format: OutputFormat | str) -> ValidationResult:
    """
    Check a converted daily file for structural and arithmetic consistency.

    Args:
        rows: Converted rows (list of dicts) or a DataFrame with the same columns.
        output_format: "_nmax" or "_obvs" (or the OutputFormat member).

    Returns:
        ValidationResult with errors, warnings and metrics. Never raises for
        data problems; an unknown format is reported as an error.
    """
    result = ValidationResult()
    try:
        fmt = OutputFormat.parse(output_format)
    except FatalConversionError as exc:
        result.add_error(str(exc))
        return result

    records = _as_rows(rows)
    if not records:
        result.add_error("Output data is empty")
        result.metrics["totalRows"] = 0
        return result

    headers = list(records[0].keys())
    for column in summary_columns_for(fmt):
        if column not in headers:
            result.add_error(f"Missing required {fmt.value} column: {column}")

    species = species_columns_of(headers)
    _check_values(records, headers, result)
    _check_monotonic(records, headers, result)
    _check_row_totals(records, species, headers, result)
    _check_unique_counts(records, species, unique_today_column_for(fmt), headers, result)
    _check_duplicate_dates(records, result)

    result.metrics.update(
        {
            "totalRows": len(records),
            "dateRange": _date_range(records, result),
            "speciesMetrics": _species_metrics(records, species),
            "observationMetrics": _observation_metrics(records, fmt),
            "integrityChecks": _integrity_checks(records, species, headers, fmt),
        }
    )

    logger.debug(
        "%s validation: %d rows, %d errors, %d warnings",
        fmt.value, len(records), len(result.errors), len(result.warnings),
    )
    return result

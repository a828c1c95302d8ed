"""
Validation of raw SUBCAM observation logs before conversion.

**Conceptual**: A raw log can be structurally broken (missing columns), have
bad rows (empty file names, text in the quantity column), or be well formed
but thin (few species, mostly zero counts, low-confidence annotations). The
first two are errors and warnings; the last is expressed as recommendations
for the analyst. Nothing here changes the rows.

**Functionally**:
  1. Header checks: required columns, one timestamp candidate, one taxon
     candidate, unknown headers.
  2. Row checks: numeric quantity, non-empty file name and event observation,
     numeric confidence and quality scores.
  3. Coverage checks: rows with a parseable timestamp and with a taxon.
  4. Quantity profile: negative and zero counts.
  5. Metrics and recommendations.

Itemized row errors stop after five per category, followed by a single
"... and N more ..." line, so a badly broken 10,000-row file still gives a
readable report.
"""

import logging
from collections import Counter
from typing import Any, Dict, List, Mapping, Optional, Sequence

import pandas as pd

from src.data.io import frame_to_rows
from src.data.schemas import (
    CONFIDENCE_COLUMNS,
    CRITICAL_REFERENCE_COLUMNS,
    EVENT_OBSERVATION_COLUMN,
    FILE_NAME_COLUMN,
    KNOWN_RAW_COLUMNS,
    QUALITY_COLUMNS,
    QUANTITY_COLUMN,
    REFERENCE_RAW_SCHEMA,
    REQUIRED_RAW_COLUMNS,
    TAXON_COLUMNS,
    TIMESTAMP_COLUMNS,
)
from src.processing.normalizer import parse_timestamp
from src.utils.math import mean_or_none, parse_leading_float, parse_leading_int, percentage
from src.validation.results import CappedIssues, ValidationResult

logger = logging.getLogger(__name__)

ROW_ERROR_LIMIT = 5
COVERAGE_WARNING_LIMIT = 10

LOW_COMPLIANCE = 80
CRITICAL_COMPLIANCE = 50
MIN_TIMESTAMP_RATE = 95.0
MIN_UNIQUE_SPECIES = 5
MIN_AVERAGE_CONFIDENCE = 3


def _as_rows(data) -> List[Dict[str, Any]]:
    if data is None:
        return []
    if isinstance(data, pd.DataFrame):
        return frame_to_rows(data.fillna(""))
    return [dict(row) for row in data]


def _text(value) -> str:
    if value is None:
        return ""
    return value.strip() if isinstance(value, str) else str(value).strip()


def _first_column(candidates: Sequence[str], headers: Sequence[str]) -> Optional[str]:
    for name in candidates:
        if name in headers:
            return name
    return None


def format_compliance(headers: Sequence[str]) -> Dict[str, Any]:
    """
    Score headers against the full 18-column SUBCAM raw export layout.

    Matching is case-insensitive and ignores surrounding whitespace.

    Returns:
        Dict with `score` (integer percent), `matched` and `missing` column lists.
    """
    present = {h.strip().lower() for h in headers}
    matched = [col for col in REFERENCE_RAW_SCHEMA if col.lower() in present]
    missing = [col for col in REFERENCE_RAW_SCHEMA if col.lower() not in present]
    return {
        "score": int(round(percentage(len(matched), len(REFERENCE_RAW_SCHEMA)))),
        "matched": matched,
        "missing": missing,
    }


def _check_columns(headers: Sequence[str], result: ValidationResult) -> None:
    for column in REQUIRED_RAW_COLUMNS:
        if column not in headers:
            result.add_error(f"Missing required column: {column}")

    if not any(col in headers for col in TIMESTAMP_COLUMNS):
        result.add_error("Missing timestamp column. Need one of: " + ", ".join(TIMESTAMP_COLUMNS))
    if not any(col in headers for col in TAXON_COLUMNS):
        result.add_error("Missing species identifier column. Need one of: " + ", ".join(TAXON_COLUMNS))

    for column in headers:
        if column not in KNOWN_RAW_COLUMNS and not column.startswith("Unnamed:"):
            result.add_warning(f"Unknown column: {column}")


def _check_row_values(rows: Sequence[Mapping[str, Any]], headers: Sequence[str], result: ValidationResult) -> None:
    numeric = CappedIssues("numeric validation errors", ROW_ERROR_LIMIT)
    strings = CappedIssues("string validation errors", ROW_ERROR_LIMIT)
    score_columns = [c for c in (*CONFIDENCE_COLUMNS, *QUALITY_COLUMNS) if c in headers]

    for index, row in enumerate(rows, start=1):
        quantity = _text(row.get(QUANTITY_COLUMN))
        if quantity and parse_leading_float(quantity) is None:
            numeric.add(f"Row {index}: Invalid quantity value '{quantity}'")

        for column in score_columns:
            value = _text(row.get(column))
            if value and parse_leading_int(value) is None:
                result.add_warning(f"Row {index}: Non-numeric {column} value '{value}'")

        for column in (FILE_NAME_COLUMN, EVENT_OBSERVATION_COLUMN):
            if not _text(row.get(column)):
                strings.add(f"Row {index}: Empty or invalid {column}")

    numeric.flush_errors(result)
    strings.flush_errors(result)


def _check_timestamps(rows: Sequence[Mapping[str, Any]], result: ValidationResult) -> Dict[str, Any]:
    missing = CappedIssues("timestamp warnings", COVERAGE_WARNING_LIMIT)
    parsed_dates: List[pd.Timestamp] = []
    valid = 0

    for index, row in enumerate(rows, start=1):
        row_stamps = [parse_timestamp(row.get(col)) for col in TIMESTAMP_COLUMNS if _text(row.get(col))]
        row_stamps = [ts for ts in row_stamps if ts is not None]
        if row_stamps:
            valid += 1
            parsed_dates.extend(row_stamps)
        else:
            missing.add(f"Row {index}: No valid timestamp found")

    missing.flush_warnings(result)
    if valid == 0:
        result.add_error("No valid timestamps found in any row")

    date_range = None
    if parsed_dates:
        start, end = min(parsed_dates), max(parsed_dates)
        date_range = {
            "start": start.strftime("%Y-%m-%d"),
            "end": end.strftime("%Y-%m-%d"),
            "totalDays": (end.normalize() - start.normalize()).days + 1,
        }

    return {
        "timestampValidation": {
            "validTimestamps": valid,
            "invalidTimestamps": len(rows) - valid,
            "validationRate": percentage(valid, len(rows)),
        },
        "dateRange": date_range,
    }


def _check_species(rows: Sequence[Mapping[str, Any]], result: ValidationResult) -> Dict[str, Any]:
    missing = CappedIssues("species identifier warnings", COVERAGE_WARNING_LIMIT)
    names: List[str] = []

    for index, row in enumerate(rows, start=1):
        name = next((_text(row.get(col)) for col in TAXON_COLUMNS if _text(row.get(col))), "")
        if name:
            names.append(name)
        else:
            missing.add(f"Row {index}: No valid species identifier")

    missing.flush_warnings(result)
    if not names:
        result.add_error("No valid species identifiers found")

    distribution = dict(Counter(names))
    return {
        "speciesValidation": {
            "validSpecies": len(names),
            "invalidSpecies": len(rows) - len(names),
            "uniqueSpeciesCount": len(distribution),
            "validationRate": percentage(len(names), len(rows)),
        },
        "speciesDistribution": {
            "uniqueSpecies": len(distribution),
            "distribution": distribution,
        },
    }


def _check_quantities(rows: Sequence[Mapping[str, Any]], result: ValidationResult) -> Dict[str, Any]:
    negatives = CappedIssues("negative quantity warnings", ROW_ERROR_LIMIT)
    values: List[float] = []
    zero = 0

    for index, row in enumerate(rows, start=1):
        quantity = parse_leading_float(row.get(QUANTITY_COLUMN))
        if quantity is None:
            continue
        values.append(quantity)
        if quantity < 0:
            negatives.add(f"Row {index}: Negative quantity {quantity:g}")
        elif quantity == 0:
            zero += 1

    negatives.flush_warnings(result)
    average = mean_or_none(values)
    return {
        "validQuantities": len(values),
        "invalidQuantities": len(rows) - len(values),
        "negativeQuantities": negatives.total,
        "zeroQuantities": zero,
        "maxQuantity": max(values) if values else 0,
        "averageQuantity": average if average is not None else 0,
        "validationRate": percentage(len(values), len(rows)),
    }


def _score_summary(rows: Sequence[Mapping[str, Any]], column: Optional[str]) -> Dict[str, Any]:
    scores = []
    if column is not None:
        scores = [s for s in (parse_leading_int(row.get(column)) for row in rows) if s is not None]
    return {
        "column": column,
        "count": len(scores),
        "average": mean_or_none(scores),
        "distribution": dict(Counter(sorted(scores))),
    }


def _file_distribution(rows: Sequence[Mapping[str, Any]]) -> Dict[str, Any]:
    files = dict(Counter(_text(row.get(FILE_NAME_COLUMN)) for row in rows if _text(row.get(FILE_NAME_COLUMN))))
    return {"uniqueFiles": len(files), "distribution": files}


def _recommend(result: ValidationResult, total_rows: int) -> None:
    metrics = result.metrics
    compliance = metrics["formatCompliance"]

    if compliance["score"] < LOW_COMPLIANCE:
        result.add_recommendation(
            "File format compliance is below 80%. Please check column headers match the expected SUBCAM format."
        )
    if compliance["score"] < CRITICAL_COMPLIANCE:
        result.add_recommendation(
            "Format compliance is critically low. This may not be a valid SUBCAM raw file."
        )

    missing_critical = [c for c in CRITICAL_REFERENCE_COLUMNS if c in compliance["missing"]]
    if missing_critical:
        result.add_recommendation(
            f"Critical columns missing: {', '.join(missing_critical)}. These are required for conversion."
        )

    if metrics["timestampValidation"]["validationRate"] < MIN_TIMESTAMP_RATE:
        result.add_recommendation("Consider reviewing timestamp format consistency")

    if metrics["speciesValidation"]["uniqueSpeciesCount"] < MIN_UNIQUE_SPECIES:
        result.add_recommendation("Low species diversity detected - verify data completeness")

    quantities = metrics["quantityValidation"]
    if quantities["negativeQuantities"] > 0:
        result.add_recommendation("Consider filtering out or correcting negative quantities")
    if total_rows and quantities["zeroQuantities"] / total_rows > 0.5:
        result.add_recommendation("High proportion of zero quantities - verify data quality")

    confidence = metrics["qualityScores"]["confidence"]["average"]
    if confidence is not None and confidence < MIN_AVERAGE_CONFIDENCE:
        result.add_recommendation("Consider applying confidence level filtering (minimum 3)")


def validate_raw_data(rows, headers: Optional[Sequence[str]] = None) -> ValidationResult:
    """
    Check a raw observation log for structural and content problems.

    Args:
        rows: List of dicts keyed by header (or a DataFrame of the raw file).
        headers: Header names; defaults to the keys of the first row.

    Returns:
        ValidationResult. `is_valid` is False when any error was recorded.
        Never raises for data problems.

    Example:
        >>> result = validate_raw_data(parsed.rows, parsed.headers)
        >>> result.is_valid, len(result.errors)
        (True, 0)
    """
    result = ValidationResult()
    if isinstance(rows, pd.DataFrame) and headers is None:
        headers = [str(c) for c in rows.columns]
    records = _as_rows(rows)

    if not records:
        result.add_error("No data rows found")
        result.metrics["totalRows"] = 0
        return result

    headers = list(headers) if headers is not None else list(records[0].keys())

    _check_columns(headers, result)
    _check_row_values(records, headers, result)
    timestamp_metrics = _check_timestamps(records, result)
    species_metrics = _check_species(records, result)
    quantity_metrics = _check_quantities(records, result)

    result.metrics.update(
        {
            "totalRows": len(records),
            "formatCompliance": format_compliance(headers),
            **timestamp_metrics,
            **species_metrics,
            "quantityValidation": quantity_metrics,
            "qualityScores": {
                "confidence": _score_summary(records, _first_column(CONFIDENCE_COLUMNS, headers)),
                "quality": _score_summary(records, _first_column(QUALITY_COLUMNS, headers)),
            },
            "fileDistribution": _file_distribution(records),
        }
    )
    _recommend(result, len(records))

    logger.debug(
        "Raw validation: %d rows, %d errors, %d warnings",
        len(records), len(result.errors), len(result.warnings),
    )
    return result

"""
Row normalization: whitespace cleanup, column-role resolution, and field parsing.

**Conceptual**: Raw observation logs name the same concept in several ways
(three spellings of the timestamp column, scientific vs common name for the
taxon) and carry spreadsheet whitespace artefacts (non-breaking spaces, double
spaces). This stage turns every raw row into either a NormalizedRecord with a
UTC timestamp, a calendar date, a taxon label, and an integer quantity, or a
dropped outcome explaining what was missing.

**Functionally**:
  - `normalize_text` strips NBSP, trims, and collapses whitespace runs.
  - `resolve_columns` maps header names to roles once per conversion, before
    any row loop, so row processing is a plain dictionary lookup.
  - `normalize_records` applies the roles to each row and returns a
    NormalizationResult (kept records, dropped outcomes, cleaned rows).

**Quantity rule**: "Quantity (Nmax)" is read as a leading integer. Unparseable
or negative values become 0 and the row is kept. The `quantity >= 0` retention
check below is therefore always true; it stays in place so a stricter quantity
rule can be introduced in one spot.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from src.data.schemas import (
    CONFIDENCE_COLUMNS,
    FILE_NAME_COLUMN,
    QUALITY_COLUMNS,
    QUANTITY_COLUMN,
    TAXON_COLUMNS,
    TIMESTAMP_COLUMNS,
)
from src.processing.records import (
    DropReason,
    NormalizedRecord,
    RowOutcome,
    StageResult,
)
from src.utils.math import parse_quantity

logger = logging.getLogger(__name__)

_WHITESPACE_RUN = re.compile(r"\s+")
_RELATIVE_TIMESTAMP_WORDS = frozenset({"now", "today", "yesterday", "tomorrow"})


def normalize_text(value):
    """
    Replace non-breaking spaces, trim, and collapse internal whitespace.

    Non-string values are returned unchanged.

    Example:
        >>> normalize_text("  Tursiops\\xa0 truncatus ")
        'Tursiops truncatus'
    """
    if not isinstance(value, str):
        return value
    return _WHITESPACE_RUN.sub(" ", value.replace("\xa0", " ").strip())


def normalize_row(row: Mapping[str, str]) -> Dict[str, str]:
    """Return a new row with every key and value passed through normalize_text."""
    return {normalize_text(key): normalize_text(value) for key, value in row.items()}


@dataclass(frozen=True)
class ColumnRoles:
    """
    Header names resolved to their pipeline roles.

    Attributes:
        timestamp_columns: Timestamp candidates present in the header, in
                           priority order. Rows try them in this order.
        taxon_columns: Taxon candidates present, scientific name first.
        file_name_column: "File Name" if present, else None.
        quantity_column: "Quantity (Nmax)" if present, else None.
        confidence_column: First confidence spelling present, else None.
        quality_column: First video-quality spelling present, else None.
    """
    timestamp_columns: Tuple[str, ...] = ()
    taxon_columns: Tuple[str, ...] = ()
    file_name_column: Optional[str] = None
    quantity_column: Optional[str] = None
    confidence_column: Optional[str] = None
    quality_column: Optional[str] = None

    def missing_roles(self) -> List[str]:
        """Names of the roles required for conversion that could not be resolved."""
        missing = []
        if not self.timestamp_columns:
            missing.append("timestamp")
        if not self.taxon_columns:
            missing.append("taxon")
        if self.file_name_column is None:
            missing.append("file_name")
        if self.quantity_column is None:
            missing.append("quantity")
        return missing


def _first_present(candidates: Sequence[str], headers: Sequence[str]) -> Optional[str]:
    for name in candidates:
        if name in headers:
            return name
    return None


def resolve_columns(headers: Sequence[str]) -> ColumnRoles:
    """
    Resolve header names to column roles using the fixed priority lists.

    Matching is exact after whitespace normalization of the headers.

    Args:
        headers: Header names from the parsed CSV.

    Returns:
        ColumnRoles; absent roles are None or an empty tuple.
    """
    cleaned = [normalize_text(h) for h in headers]
    return ColumnRoles(
        timestamp_columns=tuple(c for c in TIMESTAMP_COLUMNS if c in cleaned),
        taxon_columns=tuple(c for c in TAXON_COLUMNS if c in cleaned),
        file_name_column=_first_present((FILE_NAME_COLUMN,), cleaned),
        quantity_column=_first_present((QUANTITY_COLUMN,), cleaned),
        confidence_column=_first_present(CONFIDENCE_COLUMNS, cleaned),
        quality_column=_first_present(QUALITY_COLUMNS, cleaned),
    )


def parse_timestamp(value) -> Optional[pd.Timestamp]:
    """
    Parse a timestamp cell into a timezone-aware UTC Timestamp.

    Naive values ("2024-06-01 08:15:23") are taken to be UTC; values with an
    offset are converted to UTC. Empty or unparseable values give None.
    Relative words that pandas resolves against the wall clock ("now",
    "today") also give None, so the same text always yields the same dates.
    """
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None
    if isinstance(value, str) and value.strip().lower() in _RELATIVE_TIMESTAMP_WORDS:
        return None
    try:
        parsed = pd.to_datetime(value, utc=True, errors="coerce")
    except (ValueError, TypeError, OverflowError):
        return None
    if parsed is None or pd.isna(parsed):
        return None
    return parsed


def resolve_timestamp(row: Mapping[str, str], roles: ColumnRoles) -> Optional[pd.Timestamp]:
    """Return the first timestamp candidate that parses, in priority order."""
    for column in roles.timestamp_columns:
        value = row.get(column)
        if value:
            parsed = parse_timestamp(value)
            if parsed is not None:
                return parsed
    return None


def resolve_taxon(row: Mapping[str, str], roles: ColumnRoles) -> Optional[str]:
    """Return the first non-blank taxon candidate, or None."""
    for column in roles.taxon_columns:
        value = row.get(column)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


@dataclass(frozen=True)
class NormalizationResult(StageResult):
    """
    StageResult plus the whitespace-normalized rows.

    Attributes:
        cleaned_rows: Every input row after normalize_row, kept or not. The
                      input validator runs on these.
        headers: Normalized header names.
    """
    cleaned_rows: Tuple[Dict[str, str], ...] = field(default_factory=tuple)
    headers: Tuple[str, ...] = ()


def normalize_record(
    row: Mapping[str, str],
    roles: ColumnRoles,
    source_index: int = 0,
) -> RowOutcome:
    """
    Normalize one already-cleaned row into a tagged outcome.

    Args:
        row: Row after normalize_row.
        roles: Column roles resolved for this file.
        source_index: Position of the row in the parsed input.
    """
    event_timestamp = resolve_timestamp(row, roles)
    taxon = resolve_taxon(row, roles)
    quantity = parse_quantity(row.get(roles.quantity_column)) if roles.quantity_column else 0

    reasons = []
    if event_timestamp is None:
        reasons.append(DropReason.MISSING_TIMESTAMP)
    if taxon is None:
        reasons.append(DropReason.MISSING_TAXON)
    if not quantity >= 0:
        reasons.append(DropReason.INVALID_QUANTITY)
    if reasons:
        return RowOutcome.drop(source_index, *reasons)

    file_name = row.get(roles.file_name_column, "") if roles.file_name_column else ""
    return RowOutcome.keep(
        NormalizedRecord(
            fields=dict(row),
            event_timestamp=event_timestamp,
            event_date=event_timestamp.strftime("%Y-%m-%d"),
            taxon=taxon,
            quantity=quantity,
            file_name=file_name or "",
            source_index=source_index,
        )
    )


def normalize_records(
    rows: Sequence[Mapping[str, str]],
    roles: Optional[ColumnRoles] = None,
) -> NormalizationResult:
    """
    Clean and normalize every row of a parsed file.

    Args:
        rows: Raw rows from the CSV parser.
        roles: Pre-resolved column roles. When None they are resolved from the
               first row's keys.

    Returns:
        NormalizationResult with kept records in input order, dropped
        outcomes, and the cleaned rows.
    """
    cleaned_rows = [normalize_row(row) for row in rows]
    headers = tuple(cleaned_rows[0].keys()) if cleaned_rows else ()
    if roles is None:
        roles = resolve_columns(headers)

    outcomes: List[RowOutcome] = [
        normalize_record(row, roles, source_index=index)
        for index, row in enumerate(cleaned_rows)
    ]
    base = StageResult.from_outcomes(outcomes)
    result = NormalizationResult(
        records=base.records,
        dropped=base.dropped,
        cleaned_rows=tuple(cleaned_rows),
        headers=headers,
    )

    logger.info(
        "Normalized %d rows: %d kept, drops by reason %s",
        len(rows),
        len(result.records),
        result.drop_counts(),
    )
    return result

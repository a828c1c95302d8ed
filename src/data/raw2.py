"""
Support for the alternate `_raw2` SUBCAM export layout.

**Conceptual**: Some deployments export annotations with snake_case headers
(`file_name`, `quantity`, `note`, `species`, ...) and no timestamp column; the
recording start time is embedded in the clip file name instead
(`algapelago_1_2025-04-05_10-00-47.mp4`). Free-text notes in the last column
frequently contain unquoted commas.

This module detects that layout and rewrites each row into the standard `_raw`
column names, so the rest of the pipeline handles both layouts identically.

**Column mapping**:
  - `file_name` -> "File Name"
  - time parsed from `file_name` -> "Adjusted Date and Time" (ISO 8601, UTC)
  - `quantity` -> "Quantity (Nmax)"
  - `note` -> "Event Observation"
  - `species` -> "Lowest Order Scientific Name"
  - first non-blank of `note`, `genus`, `family` -> "Common Name"
    (so the taxon priority is species, note, genus, family)
  - `confidence_1-5` -> "Confidence Level (1-5)"
  - `location_1-9_thirds` -> "Where on Screen (1-9, 3x3 grid top left to lower right)"
  - `time_stamp`, `order`, `genus`, `family`, `notes` keep their meaning under
    the standard names.
"""

import logging
import re
from typing import Dict, List, Mapping, Optional

from src.data.csv_parser import (
    COLUMN_COUNT_MISMATCH,
    ParsedCSV,
    RowDrop,
    parse_csv_line,
    split_lines,
)
from src.data.schemas import ParseError

logger = logging.getLogger(__name__)

RAW2_COLUMNS = (
    "file_name",
    "location_1-9_thirds",
    "quantity",
    "note",
    "time_stamp",
    "confidence_1-5",
    "species",
    "genus",
    "family",
    "order",
    "class",
    "phylum",
    "kingdom",
    "notes",
)

_FILENAME_TIMESTAMP = re.compile(r"(\d{4})-(\d{2})-(\d{2})_(\d{2})-(\d{2})-(\d{2})")


def is_raw2_header(header_line: str) -> bool:
    """True when the header line mentions every `_raw2` column (case-insensitive)."""
    lowered = header_line.lower()
    return all(column in lowered for column in RAW2_COLUMNS)


def is_raw2_text(csv_text: str) -> bool:
    """True when the first line of the text is a `_raw2` header."""
    if not csv_text:
        return False
    first_line = csv_text.lstrip().split("\n", 1)[0]
    return is_raw2_header(first_line)


def parse_raw2_csv(csv_text: str) -> ParsedCSV:
    """
    Parse `_raw2` text, folding comma overflow back into the notes column.

    A data line with more than 14 fields has everything from the 14th field
    onward joined with spaces, commas removed, and stored as `notes`.

    Raises:
        ParseError: If fewer than two non-blank lines are present.
    """
    lines = split_lines(csv_text or "")
    if len(lines) < 2:
        raise ParseError("CSV must contain header row and at least one data row")

    headers = [h.strip() for h in parse_csv_line(lines[0])]
    parsed = ParsedCSV(headers=headers, total_lines=len(lines) - 1)
    notes_index = len(RAW2_COLUMNS) - 1
    overflow = 0

    for line_number, line in enumerate(lines[1:], start=2):
        values = parse_csv_line(line)
        if len(values) > len(RAW2_COLUMNS):
            overflow += 1
            merged = " ".join(values[notes_index:]).replace(",", "")
            values = values[:notes_index] + [merged]

        if len(values) != len(headers):
            parsed.dropped_rows.append(
                RowDrop(
                    line_number=line_number,
                    reason=COLUMN_COUNT_MISMATCH,
                    expected_fields=len(headers),
                    actual_fields=len(values),
                )
            )
            continue
        parsed.rows.append(dict(zip(headers, values)))

    if overflow:
        logger.info("Merged comma overflow into the notes column for %d rows", overflow)
    return parsed


def timestamp_from_filename(file_name: Optional[str]) -> Optional[str]:
    """
    Extract "YYYY-MM-DD_HH-MM-SS" from a clip file name as an ISO 8601 UTC string.

    Example:
        >>> timestamp_from_filename("algapelago_1_2025-04-05_10-00-47.mp4")
        '2025-04-05T10:00:47Z'
    """
    if not file_name:
        return None
    match = _FILENAME_TIMESTAMP.search(file_name)
    if match is None:
        return None
    year, month, day, hour, minute, second = match.groups()
    return f"{year}-{month}-{day}T{hour}:{minute}:{second}Z"


def _first_non_blank(row: Mapping[str, str], *keys: str) -> str:
    for key in keys:
        value = (row.get(key) or "").strip()
        if value:
            return value
    return ""


def adapt_raw2_row(row: Mapping[str, str]) -> Dict[str, str]:
    """Rewrite one `_raw2` row into standard `_raw` column names."""
    lowered = {str(k).strip().lower(): (v or "") for k, v in row.items()}
    file_name = lowered.get("file_name", "").strip()
    return {
        "File Name": file_name,
        "Adjusted Date and Time": timestamp_from_filename(file_name) or "",
        "Timestamps (HH:MM:SS)": lowered.get("time_stamp", ""),
        "Event Observation": lowered.get("note", ""),
        "Quantity (Nmax)": lowered.get("quantity", ""),
        "Notes": lowered.get("notes", ""),
        "Common Name": _first_non_blank(lowered, "note", "genus", "family"),
        "Order": lowered.get("order", ""),
        "Family": lowered.get("family", ""),
        "Genus": lowered.get("genus", ""),
        "Species": lowered.get("species", ""),
        "Lowest Order Scientific Name": lowered.get("species", "").strip(),
        "Confidence Level (1-5)": lowered.get("confidence_1-5", ""),
        "Where on Screen (1-9, 3x3 grid top left to lower right)": lowered.get("location_1-9_thirds", ""),
    }


def adapt_raw2(parsed: ParsedCSV) -> ParsedCSV:
    """
    Convert a parsed `_raw2` file into the standard `_raw` layout.

    Dropped lines are carried over unchanged.
    """
    rows: List[Dict[str, str]] = [adapt_raw2_row(row) for row in parsed.rows]
    headers = list(rows[0].keys()) if rows else list(adapt_raw2_row({}).keys())
    missing_time = sum(1 for row in rows if not row["Adjusted Date and Time"])
    if missing_time:
        logger.warning("%d _raw2 rows have no timestamp in their file name", missing_time)
    return ParsedCSV(
        headers=headers,
        rows=rows,
        dropped_rows=list(parsed.dropped_rows),
        total_lines=parsed.total_lines,
    )

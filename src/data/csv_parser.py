"""
Quote-aware CSV splitting for SUBCAM observation logs.

**Conceptual**: Observation logs are exported from spreadsheet tools and are
mostly well-formed, but individual rows can be short or long (a stray comma in
a free-text note, a truncated line). The parser turns raw text into a header
list plus row mappings and records every row it had to skip, so that a single
bad row never aborts a whole survey file.

**Functionally**:
  - Lines are split on `\\n` or `\\r\\n`; blank lines are ignored.
  - A double quote toggles "in quotes"; commas inside quotes are literal.
  - Quote characters are dropped from the output. A doubled quote inside a
    quoted field is not unescaped to a single quote: both characters are
    simply dropped, matching the exporter in `src/data/io.py`.
  - Every field is trimmed.
  - Rows whose field count differs from the header count are skipped and
    recorded in `ParsedCSV.dropped_rows`.

**Limitations**: Quoted fields spanning several lines are not supported.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List

from src.data.schemas import ParseError

logger = logging.getLogger(__name__)

_LINE_SPLIT = re.compile(r"\r?\n")

COLUMN_COUNT_MISMATCH = "column_count_mismatch"


@dataclass(frozen=True)
class RowDrop:
    """
    A data line skipped by the parser.

    Attributes:
        line_number: 1-based line number in the trimmed input (header is line 1).
        reason: Machine-readable reason, currently always "column_count_mismatch".
        expected_fields: Number of header columns.
        actual_fields: Number of fields found on the line.
    """
    line_number: int
    reason: str
    expected_fields: int
    actual_fields: int


@dataclass
class ParsedCSV:
    """
    Result of splitting CSV text.

    Attributes:
        headers: Trimmed header names in file order.
        rows: One mapping per accepted data line (header -> raw string value).
        dropped_rows: Lines skipped because of a column count mismatch.
        total_lines: Number of non-blank data lines seen (accepted + dropped).
    """
    headers: List[str]
    rows: List[Dict[str, str]] = field(default_factory=list)
    dropped_rows: List[RowDrop] = field(default_factory=list)
    total_lines: int = 0


def split_lines(csv_text: str) -> List[str]:
    """Trim the text, split on LF or CRLF, and drop blank lines."""
    return [line for line in _LINE_SPLIT.split(csv_text.strip()) if line.strip()]


def parse_csv_line(line: str) -> List[str]:
    """
    Split one CSV line into trimmed fields, honouring double-quote quoting.

    Args:
        line: A single line without its terminator.

    Returns:
        List of field values with quote characters removed.

    Example:
        >>> parse_csv_line('a, "b, c" ,d')
        ['a', 'b, c', 'd']
    """
    values: List[str] = []
    current: List[str] = []
    in_quotes = False

    for char in line:
        if char == '"':
            in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            values.append("".join(current).strip())
            current = []
        else:
            current.append(char)

    values.append("".join(current).strip())
    return values


def parse_csv(csv_text: str) -> ParsedCSV:
    """
    Parse CSV text into headers and row mappings.

    Args:
        csv_text: Full file content (UTF-8 decoded).

    Returns:
        ParsedCSV with the accepted rows and the list of skipped lines.

    Raises:
        ParseError: If fewer than two non-blank lines remain (a header row and
                    at least one data row are required).
    """
    if csv_text is None:
        raise ParseError("CSV content is empty")

    lines = split_lines(csv_text)
    if len(lines) < 2:
        raise ParseError("CSV must contain header row and at least one data row")

    headers = [h.strip() for h in parse_csv_line(lines[0])]
    parsed = ParsedCSV(headers=headers, total_lines=len(lines) - 1)

    for offset, line in enumerate(lines[1:], start=2):
        values = parse_csv_line(line)
        if len(values) != len(headers):
            parsed.dropped_rows.append(
                RowDrop(
                    line_number=offset,
                    reason=COLUMN_COUNT_MISMATCH,
                    expected_fields=len(headers),
                    actual_fields=len(values),
                )
            )
            continue
        parsed.rows.append(dict(zip(headers, values)))

    if parsed.dropped_rows:
        logger.debug(
            "Skipped %d rows with a column count mismatch (expected %d fields)",
            len(parsed.dropped_rows),
            len(headers),
        )

    return parsed

"""
CSV readers and writers for raw and converted SUBCAM files.

**Conceptual**: This module is the I/O boundary of the converter. The pipeline
itself works on in-memory text and rows; reading a survey export from disk,
rendering converted rows back to CSV text, and naming/writing the output file
all happen here.

**Rule**: Pipeline stages never touch the filesystem. Actions and other callers
read text with `read_csv_text`, pass it to the orchestrator, and write the
result with `write_converted_csv`.

**Export quoting**: `data_to_csv` wraps a string value in double quotes only
when it contains a comma, and does not double embedded quote characters. The
parser drops quote characters on the way in, so a value containing a literal
quote does not survive a round trip. This mirrors the behaviour of the existing
SUBCAM tooling and is kept for output compatibility.
"""

import logging
import re
from datetime import date
from pathlib import Path
from typing import Mapping, Optional, Sequence

import pandas as pd

from src.data.schemas import OutputFormat

logger = logging.getLogger(__name__)

_SOURCE_EXTENSION = re.compile(r"\.(csv|txt)$", re.IGNORECASE)


def _format_cell(value) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and pd.isna(value):
        return ""
    if isinstance(value, str):
        return f'"{value}"' if "," in value else value
    return str(value)


def data_to_csv(rows: Sequence[Mapping[str, object]]) -> str:
    """
    Render rows as CSV text.

    **Functionally**:
    - Header is the first row's keys, in order.
    - Lines are joined with "\\n" and there is no trailing newline.
    - String values containing a comma are wrapped in double quotes.
    - Missing keys and None render as empty cells.

    Args:
        rows: Converted rows (list of dicts), or any sequence of mappings.

    Returns:
        CSV text, or "" when rows is empty.
    """
    if rows is None or len(rows) == 0:
        return ""

    headers = list(rows[0].keys())
    lines = [",".join(headers)]
    for row in rows:
        lines.append(",".join(_format_cell(row.get(header)) for header in headers))
    return "\n".join(lines)


def frame_to_rows(df: pd.DataFrame) -> list[dict]:
    """Convert a DataFrame to a list of dicts with native Python scalars."""
    return [
        {col: (value.item() if hasattr(value, "item") else value) for col, value in row.items()}
        for row in df.to_dict(orient="records")
    ]


def read_csv_text(path: Path | str) -> str:
    """
    Read a CSV file as UTF-8 text, stripping a leading byte-order mark.

    Raises:
        FileNotFoundError: If the path does not exist.
    """
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"CSV file not found: {file_path}")
    text = file_path.read_text(encoding="utf-8-sig")
    logger.debug("Read %d characters from %s", len(text), file_path)
    return text


def build_output_filename(
    source_name: str,
    output_format: OutputFormat | str,
    on_date: Optional[date] = None,
) -> str:
    """
    Name a converted file after its source.

    Example:
        >>> build_output_filename("site3_raw.csv", "_nmax", date(2024, 6, 1))
        'site3_raw_nmax_2024-06-01.csv'

    Args:
        source_name: Original file name (any directory part is ignored).
        output_format: Target format; its value is used as the suffix.
        on_date: Date stamp; defaults to today.
    """
    fmt = OutputFormat.parse(output_format)
    stamp = (on_date or date.today()).strftime("%Y-%m-%d")
    base = _SOURCE_EXTENSION.sub("", Path(source_name).name) or "subcam_data"
    return f"{base}{fmt.value}_{stamp}.csv"


def write_converted_csv(rows: Sequence[Mapping[str, object]], path: Path | str) -> Path:
    """
    Write converted rows to disk using data_to_csv.

    Parent directories are created as needed.

    Returns:
        The path written.
    """
    file_path = Path(path)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_path.write_text(data_to_csv(rows), encoding="utf-8")
    logger.info("Wrote %d rows to %s", len(rows), file_path)
    return file_path

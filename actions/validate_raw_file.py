#!/usr/bin/env python3
"""
Check SUBCAM raw observation logs without converting them.

**Usage**:
    python actions/validate_raw_file.py data/raw/site3_raw.csv
    python actions/validate_raw_file.py data/raw/site3_raw.csv --json

Prints errors, warnings, recommendations and headline metrics for each file.
`_raw2` exports are mapped to the standard columns before validation.

**Exit codes**:
  - 0: every file is valid
  - 1: at least one file has validation errors or could not be read
"""

import argparse
import json
import logging
import sys
from pathlib import Path

# Ensure project root is on path for imports
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from src.config.settings import get_settings
from src.data.csv_parser import parse_csv
from src.data.io import read_csv_text
from src.data.raw2 import adapt_raw2, is_raw2_text, parse_raw2_csv
from src.data.schemas import ParseError
from src.processing.normalizer import normalize_row
from src.validation.input_validator import validate_raw_data
from src.validation.results import ValidationResult

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Validate SUBCAM raw observation logs")
    parser.add_argument("inputs", nargs="+", help="One or more raw CSV files")
    parser.add_argument("--json", action="store_true", help="Print each result as JSON")
    return parser.parse_args(argv)


def validate_file(input_path: Path) -> ValidationResult:
    """
    Read, parse and validate one raw file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ParseError: If the file has no data rows.
    """
    text = read_csv_text(input_path)
    parsed = adapt_raw2(parse_raw2_csv(text)) if is_raw2_text(text) else parse_csv(text)
    rows = [normalize_row(row) for row in parsed.rows]
    headers = list(rows[0].keys()) if rows else list(parsed.headers)
    return validate_raw_data(rows, headers)


def print_summary(input_path: Path, result: ValidationResult) -> None:
    status = "✓ valid" if result.is_valid else "✗ invalid"
    metrics = result.metrics
    print(f"{input_path.name}: {status}")
    if "formatCompliance" in metrics:
        print(f"  Format compliance: {metrics['formatCompliance']['score']}%")
        print(f"  Rows: {metrics['totalRows']}, "
              f"species: {metrics['speciesValidation']['uniqueSpeciesCount']}, "
              f"timestamps valid: {metrics['timestampValidation']['validationRate']:.1f}%")
    for label, messages in (("Error", result.errors), ("Warning", result.warnings),
                            ("Recommendation", result.recommendations)):
        for message in messages:
            print(f"  {label}: {message}")


def main(argv=None) -> int:
    args = parse_args(argv)

    try:
        log_level = get_settings().conversion.log_level
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    logging.basicConfig(level=log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    exit_code = 0
    for raw in args.inputs:
        input_path = Path(raw)
        try:
            result = validate_file(input_path)
        except (FileNotFoundError, ParseError) as e:
            print(f"{input_path.name}: ✗ {e}")
            exit_code = 1
            continue

        if args.json:
            print(json.dumps({"file": str(input_path), **result.to_dict()}, indent=2, default=str))
        else:
            print_summary(input_path, result)
        if not result.is_valid:
            exit_code = 1

    return exit_code


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""
Convert SUBCAM raw observation logs into _nmax and/or _obvs daily files.

**Usage**:
    python actions/convert_raw_file.py data/raw/site3_raw.csv
    python actions/convert_raw_file.py data/raw/*_raw.csv --format obvs --min-confidence 3

**Outputs**:
  - CSV: `<output-dir>/<source><format>_<YYYY-MM-DD>.csv` per input and format.
  - Terminal: one summary line per conversion plus validation problems.

Thresholds and the output directory default to the SUBCAM_* environment
settings (see src/config/settings.py); command line flags override them.

**Exit codes**:
  - 0: every conversion succeeded
  - 1: configuration error (bad environment or arguments)
  - 2: at least one file failed to convert
"""

import argparse
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Optional, Tuple

# Ensure project root is on path for imports
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from src.config.settings import get_settings
from src.data.io import build_output_filename, read_csv_text, write_converted_csv
from src.data.schemas import OutputFormat
from src.orchestration.converter import ConversionOptions, ConversionResult, ObservationConverter

logger = logging.getLogger(__name__)

FORMAT_CHOICES = {
    "nmax": (OutputFormat.NMAX,),
    "obvs": (OutputFormat.OBVS,),
    "both": (OutputFormat.NMAX, OutputFormat.OBVS),
}


def parse_args(argv=None):
    """
    Parse command line arguments.

    Returns:
        Namespace with attributes: inputs (list), format, min_confidence,
        min_quality, output_dir.
    """
    parser = argparse.ArgumentParser(
        description="Convert SUBCAM _raw/_raw2 observation logs to daily _nmax/_obvs files",
        epilog="""
Examples:
  # Both formats for one file
  python actions/convert_raw_file.py data/raw/site3_raw.csv

  # Event counts only, ignoring annotations below confidence 3
  python actions/convert_raw_file.py data/raw/site3_raw.csv --format obvs --min-confidence 3
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("inputs", nargs="+", help="One or more raw CSV files")
    parser.add_argument(
        "--format",
        choices=sorted(FORMAT_CHOICES),
        default="both",
        help="Output format to produce (default: both)",
    )
    parser.add_argument("--min-confidence", type=int, default=None,
                        help="Drop annotations with a lower confidence score")
    parser.add_argument("--min-quality", type=int, default=None,
                        help="Drop annotations with a lower video-quality score")
    parser.add_argument("--output-dir", type=str, default=None,
                        help="Output directory (default: SUBCAM_OUTPUT_DIR or data/converted)")
    return parser.parse_args(argv)


def convert_file(
    input_path: Path,
    output_format: OutputFormat,
    options: ConversionOptions,
    output_dir: Path,
    converter: Optional[ObservationConverter] = None,
    on_date: Optional[date] = None,
) -> Tuple[ConversionResult, Optional[Path]]:
    """
    Convert one raw file and write the result when it succeeds.

    Args:
        input_path: Raw CSV file.
        output_format: Target format.
        options: Record thresholds.
        output_dir: Directory for the converted file.
        converter: Converter to use (a fresh one by default).
        on_date: Date stamp for the output file name (default today).

    Returns:
        (result, written_path); written_path is None when conversion failed.
    """
    converter = converter or ObservationConverter()
    result = converter.convert(read_csv_text(input_path), output_format, options)
    if not result.success:
        return result, None

    output_path = output_dir / build_output_filename(input_path.name, output_format, on_date)
    write_converted_csv(result.data, output_path)
    return result, output_path


def report(input_path: Path, result: ConversionResult, output_path: Optional[Path]) -> None:
    """Print a short summary of one conversion."""
    if not result.success:
        print(f"  ✗ {input_path.name} ({result.output_format}): {result.error}")
        return

    meta = result.metadata
    span = f"{meta.date_range.start} to {meta.date_range.end}" if meta.date_range else "no dates"
    print(f"  ✓ {input_path.name} -> {output_path} "
          f"({meta.output_rows} days, {meta.species_count} taxa, {span})")
    for name, validation in result.validation.items():
        for message in validation.errors:
            print(f"    {name} error: {message}")
        for message in validation.recommendations:
            print(f"    {name} recommendation: {message}")


def main(argv=None) -> int:
    args = parse_args(argv)

    try:
        settings = get_settings().conversion
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    options = ConversionOptions(
        min_confidence=args.min_confidence if args.min_confidence is not None else settings.min_confidence,
        min_quality=args.min_quality if args.min_quality is not None else settings.min_quality,
    )
    output_dir = Path(args.output_dir) if args.output_dir else settings.output_dir
    converter = ObservationConverter()

    failures = 0
    for raw in args.inputs:
        input_path = Path(raw)
        if not input_path.exists():
            print(f"  ✗ {input_path}: file not found")
            failures += 1
            continue
        for output_format in FORMAT_CHOICES[args.format]:
            result, output_path = convert_file(input_path, output_format, options, output_dir, converter)
            report(input_path, result, output_path)
            if not result.success:
                failures += 1

    if failures:
        logger.warning("%d conversion(s) failed", failures)
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""
End-to-end conversion of a raw SUBCAM observation log into a daily series.

**Conceptual**: The converter sequences the pipeline stages, reports progress
to an injected observer, and turns every outcome (success or failure) into a
ConversionResult. It never lets an exception escape to the caller: a caller
handling hundreds of survey files wants one structured result per file, not a
crash on the first malformed export.

**Steps** (progress is announced before each):
  1. Parsing      CSV text -> header + rows (`_raw2` layout detected here)
  2. Normalizing  rows -> NormalizedRecords (timestamp, date, taxon, quantity)
  3. Filtering    confidence / video-quality thresholds
  4. Aggregating  per-clip Nmax or event counts -> gap-filled daily table
  5. Summarizing  daily table -> summary rows with running metrics
  6. Validating   input and output validation (reported, never fatal)

**State machine**:
    IDLE -> PARSING -> NORMALIZING -> FILTERING -> AGGREGATING
         -> SUMMARIZING -> VALIDATING -> DONE
    any state -> FAILED

**Teaching note**: Validation problems do not fail the run. A converted file
with a suspicious input profile is still useful, and the validation results
travel with it so the caller decides what to do.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from src.analytics.summary_metrics import (
    DateRange,
    SummaryRow,
    calculate_summary_metrics,
    get_date_range,
    get_species_count,
)
from src.data.csv_parser import COLUMN_COUNT_MISMATCH, ParsedCSV, parse_csv
from src.data.io import data_to_csv
from src.data.raw2 import adapt_raw2, is_raw2_text, parse_raw2_csv
from src.data.schemas import FatalConversionError, OutputFormat, SourceFormat
from src.orchestration.logger import ConversionLogger, ConversionObserver, LogEntry, NullObserver
from src.processing.aggregator import aggregate_daily_species, build_daily_event_table
from src.processing.normalizer import NormalizationResult, normalize_records, resolve_columns
from src.processing.quality_filter import QualityFilterOptions, apply_quality_filters
from src.processing.reducer import count_observation_events, reduce_per_clip_nmax
from src.utils.time import Clock, get_real_clock
from src.validation.input_validator import validate_raw_data
from src.validation.output_validator import validate_converted_data
from src.validation.results import ValidationResult

logger = logging.getLogger(__name__)

__all__ = [
    "ConversionMetadata",
    "ConversionOptions",
    "ConversionResult",
    "ConversionState",
    "ObservationConverter",
    "convert_raw_to_nmax",
    "convert_raw_to_obvs",
    "data_to_csv",
    "validate_converted_data",
    "validate_raw_data",
]


class ConversionState(str, Enum):
    IDLE = "idle"
    PARSING = "parsing"
    NORMALIZING = "normalizing"
    FILTERING = "filtering"
    AGGREGATING = "aggregating"
    SUMMARIZING = "summarizing"
    VALIDATING = "validating"
    DONE = "done"
    FAILED = "failed"


_STEP_STATES = {
    1: ConversionState.PARSING,
    2: ConversionState.NORMALIZING,
    3: ConversionState.FILTERING,
    4: ConversionState.AGGREGATING,
    5: ConversionState.SUMMARIZING,
    6: ConversionState.VALIDATING,
}


@dataclass(frozen=True)
class ConversionOptions:
    """
    Optional record thresholds for a conversion.

    Attributes:
        min_confidence: Drop records whose confidence score is below this.
        min_quality: Drop records whose video-quality score is below this.
    """
    min_confidence: Optional[int] = None
    min_quality: Optional[int] = None

    @classmethod
    def coerce(cls, options: "ConversionOptions | Mapping[str, Any] | None") -> "ConversionOptions":
        """
        Accept None, a ConversionOptions, or a mapping.

        Mapping keys may be snake_case (`min_confidence`) or camelCase
        (`minConfidence`).
        """
        if options is None:
            return cls()
        if isinstance(options, cls):
            return options
        return cls(
            min_confidence=options.get("min_confidence", options.get("minConfidence")),
            min_quality=options.get("min_quality", options.get("minQuality")),
        )

    def to_filter_options(self) -> QualityFilterOptions:
        return QualityFilterOptions(min_confidence=self.min_confidence, min_quality=self.min_quality)


@dataclass(frozen=True)
class ConversionMetadata:
    """Counts and timings describing one successful conversion."""
    input_rows: int
    output_rows: int
    date_range: Optional[DateRange]
    species_count: int
    processing_time_ms: int
    source_format: SourceFormat = SourceFormat.RAW
    dropped_rows: Dict[str, int] = field(default_factory=dict)
    conversion_steps: int = 6

    def to_dict(self) -> Dict[str, Any]:
        return {
            "inputRows": self.input_rows,
            "outputRows": self.output_rows,
            "dateRange": self.date_range.to_dict() if self.date_range else None,
            "speciesCount": self.species_count,
            "processingTimeMs": self.processing_time_ms,
            "sourceFormat": self.source_format.value,
            "droppedRows": dict(self.dropped_rows),
            "conversionSteps": self.conversion_steps,
        }


@dataclass
class ConversionResult:
    """
    Outcome of one conversion call.

    On success `data` holds the summary rows and `validation` holds the
    "input" and "output" ValidationResults. On failure `error` holds the
    message and `data` is empty. `logs` is filled in both cases.
    """
    success: bool
    output_format: str
    data: List[SummaryRow] = field(default_factory=list)
    metadata: Optional[ConversionMetadata] = None
    logs: List[LogEntry] = field(default_factory=list)
    validation: Dict[str, ValidationResult] = field(default_factory=dict)
    error: Optional[str] = None

    def to_csv(self) -> str:
        return data_to_csv(self.data)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "outputFormat": self.output_format,
            "data": [dict(row) for row in self.data],
            "metadata": self.metadata.to_dict() if self.metadata else None,
            "logs": [entry.to_dict() for entry in self.logs],
            "validation": {name: result.to_dict() for name, result in self.validation.items()},
            "error": self.error,
        }


def _merge_counts(*counts: Mapping[str, int]) -> Dict[str, int]:
    merged: Dict[str, int] = {}
    for mapping in counts:
        for key, value in mapping.items():
            merged[key] = merged.get(key, 0) + value
    return merged


class ObservationConverter:
    """
    Runs raw-to-daily conversions and reports on them.

    The converter holds only its observer, clock and the state of the most
    recent run; all data lives inside each call.

    Args:
        observer: Progress and log sink (NullObserver by default).
        clock: Time source for log timestamps and elapsed times.

    Example:
        >>> converter = ObservationConverter()
        >>> result = converter.convert_raw_to_nmax(csv_text, ConversionOptions(min_confidence=3))
        >>> result.success, len(result.data)
        (True, 5)
    """

    def __init__(self, observer: Optional[ConversionObserver] = None, clock: Optional[Clock] = None):
        self.observer = observer or NullObserver()
        self.clock = clock or get_real_clock()
        self.state = ConversionState.IDLE

    def convert_raw_to_nmax(self, csv_text: str, options=None) -> ConversionResult:
        """Convert raw text to the _nmax daily series."""
        return self.convert(csv_text, OutputFormat.NMAX, options)

    def convert_raw_to_obvs(self, csv_text: str, options=None) -> ConversionResult:
        """Convert raw text to the _obvs daily series."""
        return self.convert(csv_text, OutputFormat.OBVS, options)

    def convert(self, csv_text: str, output_format: OutputFormat | str, options=None) -> ConversionResult:
        """
        Convert raw CSV text to the requested daily format.

        Args:
            csv_text: Contents of a `_raw` or `_raw2` file.
            output_format: "_nmax" or "_obvs".
            options: ConversionOptions, a mapping of thresholds, or None.

        Returns:
            ConversionResult. Never raises.
        """
        self.state = ConversionState.IDLE
        run_log = ConversionLogger(self.observer, self.clock)
        format_label = getattr(output_format, "value", str(output_format))

        try:
            fmt = OutputFormat.parse(output_format)
            format_label = fmt.value
            return self._run(csv_text, fmt, ConversionOptions.coerce(options), run_log)
        except Exception as exc:
            self.state = ConversionState.FAILED
            logger.debug("Conversion to %s failed", format_label, exc_info=True)
            run_log.failure(
                f"Conversion failed: {exc}",
                error_type=type(exc).__name__,
                state=self.state.value,
            )
            return ConversionResult(
                success=False,
                output_format=format_label,
                logs=list(run_log.entries),
                error=str(exc),
            )

    def _enter(self, step: int, run_log: ConversionLogger) -> None:
        self.state = _STEP_STATES[step]
        run_log.start_step(step)

    def _parse(self, csv_text: str, run_log: ConversionLogger) -> tuple[ParsedCSV, SourceFormat]:
        if is_raw2_text(csv_text):
            run_log.info("Detected _raw2 layout; mapping columns to the standard _raw names")
            parsed = adapt_raw2(parse_raw2_csv(csv_text))
            source_format = SourceFormat.RAW2
        else:
            parsed = parse_csv(csv_text)
            source_format = SourceFormat.RAW

        run_log.info(
            f"Parsed {len(parsed.rows)} rows with {len(parsed.headers)} columns",
            rows=len(parsed.rows),
            columns=list(parsed.headers),
        )
        if parsed.dropped_rows:
            run_log.warning(
                f"Skipped {len(parsed.dropped_rows)} rows with a mismatched column count",
                line_numbers=[drop.line_number for drop in parsed.dropped_rows[:10]],
            )
        return parsed, source_format

    def _run(
        self,
        csv_text: str,
        fmt: OutputFormat,
        options: ConversionOptions,
        run_log: ConversionLogger,
    ) -> ConversionResult:
        run_log.info(f"Starting {fmt.value} conversion", min_confidence=options.min_confidence,
                     min_quality=options.min_quality)

        self._enter(1, run_log)
        parsed, source_format = self._parse(csv_text, run_log)

        self._enter(2, run_log)
        roles = resolve_columns(parsed.headers)
        missing_roles = roles.missing_roles()
        if missing_roles:
            run_log.warning(f"Could not resolve column roles: {', '.join(missing_roles)}",
                            missing_roles=missing_roles)
        normalization: NormalizationResult = normalize_records(parsed.rows, roles)
        run_log.info(
            f"Normalized {len(normalization.records)} of {len(parsed.rows)} rows",
            dropped=normalization.drop_counts(),
        )

        self._enter(3, run_log)
        filtered = apply_quality_filters(normalization.records, options.to_filter_options(), roles)
        run_log.info(
            f"{len(filtered.records)} records passed quality filters",
            dropped=filtered.drop_counts(),
        )
        if not filtered.records:
            raise FatalConversionError(
                "No valid records remain after normalization and filtering; nothing to aggregate"
            )

        self._enter(4, run_log)
        if fmt is OutputFormat.NMAX:
            per_clip = reduce_per_clip_nmax(filtered.records)
            run_log.debug(f"Reduced to {len(per_clip)} clip/taxon maxima")
            daily = aggregate_daily_species(per_clip)
        else:
            event_counts = count_observation_events(filtered.records)
            run_log.debug(f"Counted events for {len(event_counts)} date/taxon pairs")
            daily = build_daily_event_table(event_counts)
        run_log.info(f"Aggregated {len(daily)} days", days=len(daily))

        self._enter(5, run_log)
        data = calculate_summary_metrics(daily, fmt)
        if not data:
            raise FatalConversionError("Conversion produced no output rows")
        run_log.info(f"Calculated summary metrics for {len(data)} days")

        self._enter(6, run_log)
        input_validation = validate_raw_data(list(normalization.cleaned_rows), list(normalization.headers))
        output_validation = validate_converted_data(data, fmt)
        for name, result in (("Input", input_validation), ("Output", output_validation)):
            if result.is_valid:
                run_log.info(f"{name} validation passed", warnings=len(result.warnings))
            else:
                run_log.warning(
                    f"{name} validation found {len(result.errors)} errors",
                    errors=list(result.errors),
                )

        date_range = get_date_range(data)
        metadata = ConversionMetadata(
            input_rows=len(parsed.rows),
            output_rows=len(data),
            date_range=date_range,
            species_count=get_species_count(data),
            processing_time_ms=run_log.elapsed_ms(),
            source_format=source_format,
            dropped_rows=_merge_counts(
                {COLUMN_COUNT_MISMATCH: len(parsed.dropped_rows)} if parsed.dropped_rows else {},
                normalization.drop_counts(),
                filtered.drop_counts(),
            ),
        )

        self.state = ConversionState.DONE
        run_log.success(
            f"Converted {metadata.input_rows} rows into {metadata.output_rows} {fmt.value} days "
            f"covering {metadata.species_count} taxa",
            **metadata.to_dict(),
        )
        return ConversionResult(
            success=True,
            output_format=fmt.value,
            data=data,
            metadata=metadata,
            logs=list(run_log.entries),
            validation={"input": input_validation, "output": output_validation},
        )


def convert_raw_to_nmax(
    csv_text: str,
    options=None,
    observer: Optional[ConversionObserver] = None,
    clock: Optional[Clock] = None,
) -> ConversionResult:
    """Convert raw text to _nmax with a fresh converter."""
    return ObservationConverter(observer=observer, clock=clock).convert_raw_to_nmax(csv_text, options)


def convert_raw_to_obvs(
    csv_text: str,
    options=None,
    observer: Optional[ConversionObserver] = None,
    clock: Optional[Clock] = None,
) -> ConversionResult:
    """Convert raw text to _obvs with a fresh converter."""
    return ObservationConverter(observer=observer, clock=clock).convert_raw_to_obvs(csv_text, options)

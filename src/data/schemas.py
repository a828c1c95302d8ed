"""
Column contracts and error types for SUBCAM raw and converted files.

**Conceptual**: This module is the single place that names every column the
converter reads or writes. Raw observation logs (`_raw` files) carry one row
per annotation event; converted files (`_nmax`, `_obvs`) carry one row per
calendar day. Both sides are described here as constants so that the parser,
normalizer, validator, and orchestrator agree on spelling and priority order.

**Schema summary**:
  - Raw files need `File Name`, `Event Observation`, `Quantity (Nmax)`, one
    timestamp column from TIMESTAMP_COLUMNS and one taxon column from
    TAXON_COLUMNS.
  - Converted files start with the fixed summary columns of their format,
    followed by one integer column per taxon in alphabetical order.
  - Dates in converted files are `YYYY-MM-DD` strings.

**Teaching note**: Column names in field-survey spreadsheets drift between
survey seasons ("Adjusted Date and Time" vs "Adjusted Date / Time"). Keeping
the accepted spellings in ordered tuples makes the priority explicit and
testable instead of scattering string literals through the pipeline.
"""

from enum import Enum


class ConversionError(Exception):
    """Base class for errors raised inside the conversion pipeline."""
    pass


class ParseError(ConversionError):
    """
    Raised when CSV text cannot be split into a header and data rows.

    **Usage**: Fatal for the run. The orchestrator converts it into a failed
    ConversionResult; callers of the parser directly should catch it.
    """
    pass


class FatalConversionError(ConversionError):
    """
    Raised when a pipeline stage cannot produce usable output.

    Examples: every row was dropped so there is nothing to aggregate, or an
    unknown output format was requested.
    """
    pass


class OutputFormat(str, Enum):
    """Converted file flavours. Values match the file-name suffixes."""
    NMAX = "_nmax"
    OBVS = "_obvs"

    @classmethod
    def parse(cls, value: "OutputFormat | str") -> "OutputFormat":
        """
        Coerce a string such as "_nmax", "nmax" or "OBVS" to an OutputFormat.

        Raises:
            FatalConversionError: If the value names no known format.
        """
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        if not text.startswith("_"):
            text = f"_{text}"
        for member in cls:
            if member.value == text:
                return member
        raise FatalConversionError(
            f"Unknown output format: {value!r}. "
            f"Expected one of: {[m.value for m in cls]}."
        )


class SourceFormat(str, Enum):
    """Raw file layouts understood by the parser."""
    RAW = "_raw"
    RAW2 = "_raw2"


# Raw input columns
FILE_NAME_COLUMN = "File Name"
EVENT_OBSERVATION_COLUMN = "Event Observation"
QUANTITY_COLUMN = "Quantity (Nmax)"

REQUIRED_RAW_COLUMNS = (
    FILE_NAME_COLUMN,
    EVENT_OBSERVATION_COLUMN,
    QUANTITY_COLUMN,
)

# Priority order matters: the first candidate with a parseable value wins
TIMESTAMP_COLUMNS = (
    "Adjusted Date and Time",
    "Adjusted Date / Time",
    "Date/Time of Recording",
)

# Scientific name preferred over common name
SCIENTIFIC_NAME_COLUMN = "Lowest Order Scientific Name"
COMMON_NAME_COLUMN = "Common Name"
TAXON_COLUMNS = (
    SCIENTIFIC_NAME_COLUMN,
    COMMON_NAME_COLUMN,
)

CONFIDENCE_COLUMNS = (
    "Confidence Level",
    "Confidence Level (1-5)",
)

QUALITY_COLUMNS = (
    "Quality of Video",
    "Quality of Video (1-5)",
)

# Headers that never produce an "unknown column" warning
KNOWN_RAW_COLUMNS = (
    *REQUIRED_RAW_COLUMNS,
    *TIMESTAMP_COLUMNS,
    *TAXON_COLUMNS,
    *CONFIDENCE_COLUMNS,
    *QUALITY_COLUMNS,
    "Where on Screen",
    "Where on Screen (1-9, 3x3 grid top left to lower right)",
    "Order",
    "Family",
    "Genus",
    "Species",
    "Timestamps (HH:MM:SS)",
    "Notes",
    "Analysis Date",
    "Analysis by Person",
)

# Full SUBCAM raw export layout, used for the format compliance score
REFERENCE_RAW_SCHEMA = (
    "File Name",
    "Adjusted Date and Time",
    "Timestamps (HH:MM:SS)",
    "Event Observation",
    "Quantity (Nmax)",
    "Notes",
    "Common Name",
    "Order",
    "Family",
    "Genus",
    "Species",
    "Lowest Order Scientific Name",
    "Confidence Level (1-5)",
    "Quality of Video (1-5)",
    "Where on Screen (1-9, 3x3 grid top left to lower right)",
    "Analysis Date",
    "Analysis by Person",
    "Adjusted Date / Time",
)

# Reference columns whose absence gets a dedicated recommendation
CRITICAL_REFERENCE_COLUMNS = (
    "File Name",
    "Adjusted Date and Time",
    "Common Name",
)

# Converted output columns
DATE_COLUMN = "Date"
TOTAL_OBSERVATIONS = "Total Observations"
CUMULATIVE_OBSERVATIONS = "Cumulative Observations"
ALL_UNIQUE_TODAY = "All Unique Organisms Observed Today"
UNIQUE_TODAY = "Unique Organisms Observed Today"
NEW_UNIQUE_TODAY = "New Unique Organisms Today"
CUMULATIVE_NEW_UNIQUE = "Cumulative New Unique Organisms"
CUMULATIVE_UNIQUE_SPECIES = "Cumulative Unique Species"

NMAX_SUMMARY_COLUMNS = (
    DATE_COLUMN,
    TOTAL_OBSERVATIONS,
    CUMULATIVE_OBSERVATIONS,
    ALL_UNIQUE_TODAY,
    NEW_UNIQUE_TODAY,
    CUMULATIVE_NEW_UNIQUE,
    CUMULATIVE_UNIQUE_SPECIES,
)

OBVS_SUMMARY_COLUMNS = (
    DATE_COLUMN,
    TOTAL_OBSERVATIONS,
    UNIQUE_TODAY,
    NEW_UNIQUE_TODAY,
    CUMULATIVE_UNIQUE_SPECIES,
)

# Union of both formats; anything else in a converted row is a taxon column
ALL_SUMMARY_COLUMNS = tuple(dict.fromkeys(NMAX_SUMMARY_COLUMNS + OBVS_SUMMARY_COLUMNS))


def summary_columns_for(output_format: OutputFormat | str) -> tuple[str, ...]:
    """Return the fixed leading columns for a converted file format."""
    fmt = OutputFormat.parse(output_format)
    return NMAX_SUMMARY_COLUMNS if fmt is OutputFormat.NMAX else OBVS_SUMMARY_COLUMNS


def unique_today_column_for(output_format: OutputFormat | str) -> str:
    """Return the name of the "unique organisms observed today" column."""
    fmt = OutputFormat.parse(output_format)
    return ALL_UNIQUE_TODAY if fmt is OutputFormat.NMAX else UNIQUE_TODAY


def species_columns_of(columns) -> list[str]:
    """
    Return the taxon columns of a converted row, preserving their order.

    Args:
        columns: Iterable of column names (row keys or DataFrame columns).
    """
    return [col for col in columns if col not in ALL_SUMMARY_COLUMNS]

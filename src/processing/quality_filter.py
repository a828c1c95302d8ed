"""
Confidence and video-quality thresholding for normalized records.

Policy is permissive by default: a record is removed only when its confidence
(or video quality) value is present, reads as an integer, and is strictly
below the requested minimum. Blank or non-numeric scores always pass.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from src.processing.normalizer import ColumnRoles
from src.processing.records import DropReason, NormalizedRecord, RowOutcome, StageResult
from src.data.schemas import CONFIDENCE_COLUMNS, QUALITY_COLUMNS
from src.utils.math import parse_leading_int

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QualityFilterOptions:
    """
    Thresholds for the quality filter.

    Attributes:
        min_confidence: Minimum "Confidence Level" (1-5 scale). None or 0
                        disables the confidence filter.
        min_quality: Minimum "Quality of Video" (1-5 scale). None or 0
                     disables the quality filter.
    """
    min_confidence: Optional[int] = None
    min_quality: Optional[int] = None

    @property
    def is_active(self) -> bool:
        return bool(self.min_confidence) or bool(self.min_quality)


def _score(record: NormalizedRecord, column: Optional[str], fallbacks: Sequence[str]) -> Optional[int]:
    names = (column,) if column else fallbacks
    for name in names:
        value = record.fields.get(name)
        if value is not None and value != "":
            return parse_leading_int(value)
    return None


def is_below_threshold(score: Optional[int], threshold: Optional[int]) -> bool:
    """True only when both values are set and score < threshold."""
    if not threshold or score is None:
        return False
    return score < threshold


def apply_quality_filters(
    records: Sequence[NormalizedRecord],
    options: Optional[QualityFilterOptions] = None,
    roles: Optional[ColumnRoles] = None,
) -> StageResult:
    """
    Drop records whose confidence or video quality is below the thresholds.

    Args:
        records: Normalized records, in input order.
        options: Thresholds; None keeps every record.
        roles: Column roles for this file. When None each record is checked
               against every known spelling of the score columns.

    Returns:
        StageResult with the passing records (input order kept) and a dropped
        outcome per removed record.
    """
    options = options or QualityFilterOptions()
    confidence_column = roles.confidence_column if roles else None
    quality_column = roles.quality_column if roles else None

    outcomes: List[RowOutcome] = []
    for record in records:
        reasons = []
        if is_below_threshold(
            _score(record, confidence_column, CONFIDENCE_COLUMNS),
            options.min_confidence,
        ):
            reasons.append(DropReason.BELOW_MIN_CONFIDENCE)
        if is_below_threshold(
            _score(record, quality_column, QUALITY_COLUMNS),
            options.min_quality,
        ):
            reasons.append(DropReason.BELOW_MIN_QUALITY)

        if reasons:
            outcomes.append(RowOutcome.drop(record.source_index, *reasons))
        else:
            outcomes.append(RowOutcome.keep(record))

    result = StageResult.from_outcomes(outcomes)
    if options.is_active:
        logger.info(
            "Quality filters (min confidence %s, min quality %s): %d -> %d records",
            options.min_confidence,
            options.min_quality,
            len(records),
            len(result.records),
        )
    return result

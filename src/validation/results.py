"""
Validation result container and capped issue reporting.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass
class ValidationResult:
    """
    Outcome of one validation call.

    Attributes:
        is_valid: False as soon as any error is recorded.
        errors: Problems that make the data unusable or inconsistent.
        warnings: Problems worth reviewing that do not invalidate the data.
        metrics: Free-form statistics computed during validation.
        recommendations: Human-readable suggestions for the data owner.
    """
    is_valid: bool = True
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    metrics: Dict[str, Any] = field(default_factory=dict)
    recommendations: List[str] = field(default_factory=list)

    def add_error(self, message: str) -> None:
        self.errors.append(message)
        self.is_valid = False

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)

    def add_recommendation(self, message: str) -> None:
        if message not in self.recommendations:
            self.recommendations.append(message)

    def to_dict(self) -> Dict[str, Any]:
        """Render in the camelCase shape used by the surrounding application."""
        return {
            "isValid": self.is_valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "metrics": dict(self.metrics),
            "recommendations": list(self.recommendations),
        }


class CappedIssues:
    """
    Collect itemized messages for one category, keeping only the first few.

    After `limit` messages, further issues are counted but not stored;
    `messages()` then ends with a "... and N more <category>" line.

    Example:
        >>> issues = CappedIssues("row total errors", limit=2)
        >>> for i in range(4):
        ...     issues.add(f"Row {i}")
        >>> issues.messages()
        ['Row 0', 'Row 1', '... and 2 more row total errors']
    """

    def __init__(self, category: str, limit: int = 5):
        self.category = category
        self.limit = limit
        self.total = 0
        self._items: List[str] = []

    def add(self, message: str) -> None:
        self.total += 1
        if self.total <= self.limit:
            self._items.append(message)

    def __bool__(self) -> bool:
        return self.total > 0

    def messages(self) -> List[str]:
        items = list(self._items)
        if self.total > self.limit:
            items.append(f"... and {self.total - self.limit} more {self.category}")
        return items

    def flush_errors(self, result: ValidationResult) -> None:
        """Record every message as an error on the result."""
        for message in self.messages():
            result.add_error(message)

    def flush_warnings(self, result: ValidationResult) -> None:
        """Record every message as a warning on the result."""
        for message in self.messages():
            result.add_warning(message)

"""Grading Module

Components:
- AnswerComparator: tolerance-based comparison (pure, never raises)
- penalty helpers: late submission adjustment
"""

from ..models.grading import ComparisonResult, FieldComparison, GradingSettings
from .comparator import AnswerComparator, compare, is_number
from .penalty import apply_late_penalty, calculate_late_penalty, days_late

__all__ = [
    "GradingSettings",
    "FieldComparison",
    "ComparisonResult",
    "AnswerComparator",
    "compare",
    "is_number",
    "days_late",
    "calculate_late_penalty",
    "apply_late_penalty",
]

"""Grading models"""

from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator

from .enums import ToleranceType


class GradingSettings(BaseModel):
    """Tolerance settings for automatic grading (Template / Assignment -> Comparator)

    Example:
        settings = GradingSettings(
            tolerance=0.01,
            tolerance_type=ToleranceType.ABSOLUTE,
            max_score=100
        )
    """

    tolerance: float = 0.001
    """Allowed deviation (unit depends on tolerance_type)"""

    tolerance_type: ToleranceType = ToleranceType.ABSOLUTE
    """absolute | relative | percentage"""

    max_score: float = Field(default=100, ge=0, le=100)
    """Maximum score of the task (0-100)"""

    @field_validator('tolerance_type', mode='before')
    @classmethod
    def _parse_tolerance_type(cls, v):
        return ToleranceType.parse(v)


class FieldComparison(BaseModel):
    """Audit entry for one compared field"""

    field: str
    """Solution key ("answer" for scalar answers)"""

    student_value: Any = None
    """What the learner submitted (None when missing)"""

    correct_value: Any = None
    """Reference value from the variant's solution"""

    is_correct: bool = False

    difference: Optional[float] = None
    """|student - correct|, None when the student value is not a number"""


class ComparisonResult(BaseModel):
    """Comparison result (AnswerComparator -> Submission)

    Computed fresh per submission; never written back to the variant.

    Example:
        result = ComparisonResult(
            score=50.0,
            correct_count=1,
            total_count=2,
            details=[
                FieldComparison(field="a", student_value=5, correct_value=5, is_correct=True, difference=0),
                FieldComparison(field="b", student_value=10, correct_value=11, is_correct=False, difference=1),
            ]
        )
    """

    score: float = 0.0
    """0-100"""

    correct_count: int = 0
    """Number of fields judged correct"""

    total_count: int = 0
    """Number of fields compared"""

    details: List[FieldComparison] = Field(default_factory=list)
    """One entry per compared field"""

    skipped_fields: List[str] = Field(default_factory=list)
    """Solution fields that are not numeric and were not graded"""

    @property
    def is_correct(self) -> bool:
        """All compared fields correct"""
        return self.total_count > 0 and self.correct_count == self.total_count

"""Submission model"""

import logging
import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..errors import VariantNotFoundError
from ..grading.comparator import AnswerComparator
from ..grading.penalty import apply_late_penalty
from .enums import SubmissionStatus
from .grading import ComparisonResult, GradingSettings
from .variant import Variant

logger = logging.getLogger(__name__)

_comparator = AnswerComparator()


class Submission(BaseModel):
    """A learner's answer to one variant of an assignment

    Example:
        submission = Submission(
            assignment_id="a-1",
            variant_index=2,
            answers={"x": 104.33, "y": 212.9},
        )
        submission.auto_grade(variant, assignment.grading_settings())
        print(submission.final_score)
    """

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)

    assignment_id: str

    student_id: Optional[str] = None

    variant_index: int = Field(ge=0)

    answers: Any
    """Number or object of named numbers"""

    submitted_at: datetime = Field(default_factory=datetime.now)

    attempt_number: int = Field(default=1, ge=1)

    status: SubmissionStatus = SubmissionStatus.SUBMITTED

    raw_comparison: Optional[ComparisonResult] = None
    """Comparator output of the last auto-grade"""

    computed_score: float = Field(default=0.0, ge=0, le=100)

    manual_score: Optional[float] = Field(default=None, ge=0, le=100)
    """Teacher override; wins over computed_score"""

    feedback: str = ""

    is_auto_graded: bool = False
    graded_at: Optional[datetime] = None

    is_late: bool = False
    late_penalty: float = Field(default=0.0, ge=0, le=1)

    def auto_grade(self, variant: Optional[Variant], grading_settings: GradingSettings) -> ComparisonResult:
        """Grade the answers against the variant's solution

        The variant is only read. On a missing / mismatched variant the
        submission is flagged for review and the error is raised.

        Raises:
            VariantNotFoundError: no variant, or a variant for another index
        """
        if variant is None or variant.variant_index != self.variant_index:
            self.status = SubmissionStatus.NEEDS_REVIEW
            raise VariantNotFoundError(f"Variant {self.variant_index} not found for submission {self.id}")

        comparison = _comparator.compare_with_settings(self.answers, variant.solution, grading_settings)

        self.raw_comparison = comparison
        self.computed_score = comparison.score
        self.is_auto_graded = True
        self.graded_at = datetime.now()
        self.status = SubmissionStatus.GRADED

        logger.info(
            f"📝 Graded submission {self.id}: {comparison.correct_count}/{comparison.total_count} "
            f"correct, score={comparison.score:.1f}"
        )
        return comparison

    def set_manual_score(self, score: float, feedback: Optional[str] = None) -> None:
        """Teacher override"""
        self.manual_score = score
        if feedback is not None:
            self.feedback = feedback
        self.graded_at = datetime.now()
        self.status = SubmissionStatus.GRADED

    @property
    def base_score(self) -> float:
        return self.manual_score if self.manual_score is not None else self.computed_score

    @property
    def final_score(self) -> float:
        """Base score after the late penalty"""
        return apply_late_penalty(self.base_score, self.late_penalty if self.is_late else 0.0)

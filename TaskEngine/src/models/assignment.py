"""Assignment model

An assignment references a template (never copies it) and owns one
materialized variant set, kept in a variant store.
"""

import logging
import threading
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..errors import SubmissionRejectedError, VariantGenerationError, VariantNotFoundError
from ..grading.penalty import calculate_late_penalty
from ..variants.generator import VariantGenerator
from ..variants.store import InMemoryVariantStore, get_variant_store
from .enums import ToleranceType
from .grading import GradingSettings
from .submission import Submission
from .template import TaskTemplate, get_default_executor
from .variant import Variant

logger = logging.getLogger(__name__)


class AssignmentOptions(BaseModel):
    """Per-assignment grading / submission policy"""

    allow_late_submissions: bool = True

    late_submission_penalty: float = Field(default=0.1, ge=0, le=1)
    """Penalty per started day late"""

    max_attempts: int = Field(default=1, ge=1)

    auto_grade: bool = True

    custom_tolerance: Optional[float] = Field(default=None, ge=0)
    """Overrides the template's tolerance when set"""

    custom_tolerance_type: Optional[ToleranceType] = None
    """Overrides the template's tolerance type when set"""

    @field_validator('custom_tolerance_type', mode='before')
    @classmethod
    def _parse_tolerance_type(cls, v):
        return ToleranceType.parse(v) if v is not None else None


class Assignment(BaseModel):
    """Assignment materialized from a TaskTemplate

    Example:
        assignment = Assignment(
            title="Forward intersection - practice",
            template=template,
            due_date=datetime(2026, 11, 1, 23, 59),
            variants_count=5,
        )
        assignment.generate_variants(seed=42)

        variant = assignment.get_variant(3)
        payload = variant.learner_payload()
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)

    title: str

    description: str = ""

    template: TaskTemplate

    due_date: datetime

    variants_count: int = Field(default=1, ge=1)

    options: AssignmentOptions = Field(default_factory=AssignmentOptions)

    variant_seed: Optional[int] = None
    """Seed of the current variant set (set by generate_variants)"""

    store: Optional[InMemoryVariantStore] = Field(default=None, exclude=True, repr=False)
    """Variant store (None = global store)"""

    @property
    def variant_store(self) -> InMemoryVariantStore:
        return self.store if self.store is not None else get_variant_store()

    # =========================================================================
    # Variants
    # =========================================================================

    def generate_variants(
        self,
        count: Optional[int] = None,
        seed: Optional[int] = None,
        generator: Optional[VariantGenerator] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Tuple[Variant, ...]:
        """Materialize the variant set and replace the stored one

        Nothing is written unless the whole batch succeeds; on failure the
        previous set (if any) stays in place.

        Raises:
            VariantGenerationError: failing index + reason
        """
        count = count if count is not None else self.variants_count
        generator = generator or VariantGenerator(get_default_executor())

        result = generator.materialize(self.template, count, seed=seed, cancel_event=cancel_event)
        if not result.success:
            raise VariantGenerationError(result.failed_index, result.error_type, result.error or "")

        stored = self.variant_store.replace(self.id, result.variants)
        self.variants_count = count
        self.variant_seed = result.seed
        self.template.record_usage()
        return stored

    @property
    def variants(self) -> Tuple[Variant, ...]:
        return self.variant_store.get_variants(self.id)

    def get_variant(self, variant_index: int) -> Variant:
        """
        Raises:
            VariantNotFoundError
        """
        return self.variant_store.get_variant(self.id, variant_index)

    def learner_variants(self) -> List[Dict[str, Any]]:
        """Variants without solution / hash"""
        return [v.learner_payload() for v in self.variants]

    # =========================================================================
    # Grading
    # =========================================================================

    def grading_settings(self) -> GradingSettings:
        """Template settings with the assignment overrides applied"""
        base = self.template.grading
        return GradingSettings(
            tolerance=self.options.custom_tolerance if self.options.custom_tolerance is not None else base.tolerance,
            tolerance_type=self.options.custom_tolerance_type or base.tolerance_type,
            max_score=base.max_score,
        )

    def is_late(self, submitted_at: datetime) -> bool:
        return submitted_at > self.due_date

    def calculate_late_penalty(self, submitted_at: datetime) -> float:
        """0 when on time or when late submissions are not allowed"""
        if not self.is_late(submitted_at) or not self.options.allow_late_submissions:
            return 0.0
        return calculate_late_penalty(submitted_at, self.due_date, self.options.late_submission_penalty)

    def submit(
        self,
        variant_index: int,
        answers: Any,
        submitted_at: Optional[datetime] = None,
        previous_attempts: int = 0,
        student_id: Optional[str] = None,
    ) -> Submission:
        """Create (and auto-grade, if enabled) a submission

        Raises:
            SubmissionRejectedError: attempt limit reached / late submissions closed
            VariantNotFoundError: no such variant
        """
        submitted_at = submitted_at or datetime.now()

        if previous_attempts >= self.options.max_attempts:
            raise SubmissionRejectedError(f"Maximum number of attempts ({self.options.max_attempts}) reached")

        is_late = self.is_late(submitted_at)
        if is_late and not self.options.allow_late_submissions:
            raise SubmissionRejectedError("Late submissions are not allowed for this assignment")

        variant = self.get_variant(variant_index)

        submission = Submission(
            assignment_id=self.id,
            student_id=student_id,
            variant_index=variant_index,
            answers=answers,
            submitted_at=submitted_at,
            attempt_number=previous_attempts + 1,
            is_late=is_late,
            late_penalty=self.calculate_late_penalty(submitted_at),
        )

        if self.options.auto_grade:
            try:
                submission.auto_grade(variant, self.grading_settings())
            except VariantNotFoundError:
                logger.exception(f"❌ Auto-grading failed for submission {submission.id}")

        return submission

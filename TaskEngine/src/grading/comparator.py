"""Answer comparator - grades a learner answer against a stored solution

Pure and synchronous: no I/O, never raises, never mutates its inputs.

Rules per numeric field (s = student, c = correct, t = tolerance):
    absolute:   |s - c| <= t
    relative:   |s - c| / |c| <= t
    percentage: |s - c| / |c| * 100 <= t

Scalar answers get partial credit max(0, 100 - |s - c| / |c| * 100) when
wrong; structured answers are all-or-nothing per field.
"""

import logging
import math
from typing import Any, Dict, Optional, Tuple, Union

from ..config import DEFAULT_CONFIG, GradingConfig
from ..models.enums import ToleranceType
from ..models.grading import ComparisonResult, FieldComparison, GradingSettings

logger = logging.getLogger(__name__)

SCALAR_FIELD = "answer"

BOUNDARY_REL_TOL = 1e-9
BOUNDARY_ABS_TOL = 1e-12


def is_number(value: Any) -> bool:
    """Finite int/float, booleans excluded (ints beyond float range are not numbers)"""
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


def within(error: float, tolerance: float) -> bool:
    """error <= tolerance, inclusive of float rounding at the boundary

    5.4 - 5.0 is 0.40000000000000036 in binary floating point; it still
    counts as a deviation of exactly 0.4.
    """
    return error <= tolerance or math.isclose(error, tolerance, rel_tol=BOUNDARY_REL_TOL, abs_tol=BOUNDARY_ABS_TOL)


class AnswerComparator:
    """Tolerance-based answer grading

    Degenerate cases resolve to documented fallbacks instead of NaN:
    - solution == 0 with relative/percentage: judged with absolute
      semantics and the same tolerance; partial credit is 0
    - negative or non-finite tolerance: treated as 0
    - unknown tolerance type: absolute
    - non-numeric solution fields: skipped (listed in skipped_fields)

    Example:
        comparator = AnswerComparator()
        result = comparator.compare(5.41, 5.0, 0.4, "absolute")
        # result.score ≈ 91.8, result.correct_count == 0
    """

    def __init__(self, config: Optional[GradingConfig] = None):
        self._config = config or DEFAULT_CONFIG.grading

    def compare(
        self,
        student_answer: Any,
        solution: Any,
        tolerance: Any = None,
        tolerance_type: Union[ToleranceType, str, None] = None,
    ) -> ComparisonResult:
        """Compare an answer with a solution

        Args:
            student_answer: number or object of named numbers
            solution: number or object of named numbers (variant.solution)
            tolerance: allowed deviation (default from GradingConfig)
            tolerance_type: absolute | relative | percentage

        Returns:
            ComparisonResult (score 0-100 plus per-field details)
        """
        try:
            tolerance = self._normalize_tolerance(tolerance)
            tolerance_type = self._normalize_tolerance_type(tolerance_type)

            if isinstance(solution, dict):
                return self._compare_structured(student_answer, solution, tolerance, tolerance_type)
            if is_number(solution):
                return self._compare_scalar(student_answer, solution, tolerance, tolerance_type)
        except Exception as e:  # noqa: BLE001 - grading must never fail
            logger.exception(f"Comparison failed, scoring 0: {e}")
            return ComparisonResult()

        logger.warning(f"⚠️ Solution of type {type(solution).__name__} cannot be graded, scoring 0")
        return ComparisonResult()

    def compare_with_settings(self, student_answer: Any, solution: Any, settings: GradingSettings) -> ComparisonResult:
        """compare() using a template's / assignment's GradingSettings"""
        return self.compare(student_answer, solution, settings.tolerance, settings.tolerance_type)

    # =========================================================================
    # Cases
    # =========================================================================

    def _compare_scalar(self, student: Any, correct: float, tolerance: float, tolerance_type: ToleranceType) -> ComparisonResult:
        is_correct, difference = self._judge(student, correct, tolerance, tolerance_type)

        if is_correct:
            score = 100.0
        elif difference is None or correct == 0:
            score = 0.0
        else:
            score = max(0.0, 100 - difference / abs(correct) * 100)

        return ComparisonResult(
            score=score,
            correct_count=1 if is_correct else 0,
            total_count=1,
            details=[FieldComparison(
                field=SCALAR_FIELD,
                student_value=student,
                correct_value=correct,
                is_correct=is_correct,
                difference=difference,
            )],
        )

    def _compare_structured(
        self,
        student: Any,
        solution: Dict[str, Any],
        tolerance: float,
        tolerance_type: ToleranceType,
    ) -> ComparisonResult:
        answers = student if isinstance(student, dict) else {}
        result = ComparisonResult()

        for key, correct in solution.items():
            if not is_number(correct):
                result.skipped_fields.append(key)
                continue

            student_value = answers.get(key)
            is_correct, difference = self._judge(student_value, correct, tolerance, tolerance_type)

            result.total_count += 1
            if is_correct:
                result.correct_count += 1
            result.details.append(FieldComparison(
                field=key,
                student_value=student_value,
                correct_value=correct,
                is_correct=is_correct,
                difference=difference,
            ))

        if result.skipped_fields:
            logger.warning(f"⚠️ Skipped non-numeric solution fields: {result.skipped_fields}")

        if result.total_count:
            result.score = result.correct_count / result.total_count * 100
        return result

    # =========================================================================
    # Helpers
    # =========================================================================

    def _judge(
        self,
        student: Any,
        correct: float,
        tolerance: float,
        tolerance_type: ToleranceType,
    ) -> Tuple[bool, Optional[float]]:
        """(is_correct, |student - correct|); missing / non-numeric student values are wrong"""
        if not is_number(student):
            return False, None

        difference = abs(student - correct)
        if not math.isfinite(difference):
            return False, None

        if tolerance_type == ToleranceType.ABSOLUTE or correct == 0:
            return within(difference, tolerance), difference
        if tolerance_type == ToleranceType.RELATIVE:
            return within(difference / abs(correct), tolerance), difference
        return within(difference / abs(correct) * 100, tolerance), difference

    def _normalize_tolerance(self, tolerance: Any) -> float:
        if tolerance is None:
            tolerance = self._config.default_tolerance
        if not is_number(tolerance) or tolerance < 0:
            logger.warning(f"⚠️ Invalid tolerance {tolerance!r}, using 0")
            return 0.0
        return float(tolerance)

    def _normalize_tolerance_type(self, tolerance_type: Any) -> ToleranceType:
        if tolerance_type is None:
            tolerance_type = self._config.default_tolerance_type
        try:
            return ToleranceType.parse(tolerance_type)
        except ValueError:
            logger.warning(f"⚠️ Unknown tolerance type {tolerance_type!r}, using absolute")
            return ToleranceType.ABSOLUTE


_default_comparator = AnswerComparator()


def compare(
    student_answer: Any,
    solution: Any,
    tolerance: Any = None,
    tolerance_type: Union[ToleranceType, str, None] = None,
) -> ComparisonResult:
    """Module-level shortcut for AnswerComparator().compare"""
    return _default_comparator.compare(student_answer, solution, tolerance, tolerance_type)

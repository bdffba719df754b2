"""
Enum definitions

Enumerations shared by the script, variant and grading layers.
Stored as plain strings, typed in Python.
"""

from enum import Enum
from typing import List


class ToleranceType(str, Enum):
    """
    How numeric closeness is judged correct.

    ABSOLUTE:   |student - solution| <= tolerance
    RELATIVE:   |student - solution| / |solution| <= tolerance
    PERCENTAGE: |student - solution| / |solution| * 100 <= tolerance
    """

    ABSOLUTE = 'absolute'
    RELATIVE = 'relative'
    PERCENTAGE = 'percentage'

    @classmethod
    def values(cls) -> List[str]:
        return [e.value for e in cls]

    @classmethod
    def parse(cls, value) -> "ToleranceType":
        """Case-insensitive lookup ("Absolute", "absolute", ToleranceType.ABSOLUTE)"""
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower())


class FailureReason(str, Enum):
    """
    Failure taxonomy for script validation and execution.
    """

    # Script cannot be parsed
    SYNTAX_ERROR = 'SyntaxError'

    # Denylisted construct or restricted-compiler rejection
    SECURITY_VIOLATION = 'SecurityViolation'

    # Wall-clock budget exhausted
    TIMEOUT = 'Timeout'

    # Memory ceiling (or another OS resource limit) hit
    RESOURCE_EXCEEDED = 'ResourceExceeded'

    # Exception raised by the script itself
    RUNTIME_ERROR = 'RuntimeError'

    # Result is not JSON, or has the wrong top-level shape
    INVALID_OUTPUT = 'InvalidOutput'

    # Caller aborted a materialization batch
    CANCELLED = 'Cancelled'


class ScriptKind(str, Enum):
    """Role of a script on a template"""

    GENERATOR = 'generator'
    SOLUTION = 'solution'


class TemplateType(str, Enum):
    """Task template categories"""

    COORDINATE_TRANSFORMATION = 'coordinate-transformation'
    FORWARD_INTERSECTION = 'forward-intersection'
    RESECTION = 'resection'
    DISTANCE_CALCULATION = 'distance-calculation'
    ANGLE_CALCULATION = 'angle-calculation'
    CUSTOM = 'custom'


class SubmissionStatus(str, Enum):
    """Submission lifecycle"""

    SUBMITTED = 'submitted'
    GRADED = 'graded'
    NEEDS_REVIEW = 'needs_review'
    RETURNED = 'returned'

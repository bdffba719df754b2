"""TaskEngine Models

Central location for the Pydantic data models.

The collaborator models with behaviour (TaskTemplate, Assignment,
Submission) live in their own modules and are exported from the
package root.
"""

# Enums
from .enums import (
    ToleranceType,
    FailureReason,
    ScriptKind,
    TemplateType,
    SubmissionStatus,
)

# Script validation / execution
from .script import (
    ValidationIssue,
    ValidationResult,
    ExecutionResult,
)

# Grading
from .grading import (
    GradingSettings,
    FieldComparison,
    ComparisonResult,
)

# Variants
from .variant import (
    Variant,
    MaterializationResult,
)

__all__ = [
    # Enums
    "ToleranceType",
    "FailureReason",
    "ScriptKind",
    "TemplateType",
    "SubmissionStatus",
    # Script
    "ValidationIssue",
    "ValidationResult",
    "ExecutionResult",
    # Grading
    "GradingSettings",
    "FieldComparison",
    "ComparisonResult",
    # Variants
    "Variant",
    "MaterializationResult",
]

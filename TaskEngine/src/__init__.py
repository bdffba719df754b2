"""TaskEngine - randomized task variants with sandboxed instructor scripts

Core of the task/assignment system:
- Script validation: denylist + restricted compile
- Sandbox: per-call worker process, timeout, memory ceiling, seeded rng
- Variants: deterministic, all-or-nothing materialization
- Grading: tolerance-based answer comparison + late penalty

Usage:
    from TaskEngine.src import get_builtin_template, Assignment

    template = get_builtin_template("forward-intersection")
    assignment = Assignment(title="Practice", template=template, due_date=due, variants_count=5)
    assignment.generate_variants(seed=42)

    submission = assignment.submit(variant_index=0, answers={"x": 1.0, "y": 2.0})
    print(submission.final_score)
"""

from .config import (
    TaskEngineConfig,
    SandboxConfig,
    ValidatorConfig,
    VariantConfig,
    GradingConfig,
    DEFAULT_CONFIG,
    get_config,
    create_config,
    load_config_from_env,
)

from .errors import (
    TaskEngineError,
    ScriptCompileError,
    ScriptValidationError,
    ScriptExecutionError,
    VariantGenerationError,
    VariantNotFoundError,
    SubmissionRejectedError,
)

from .models import (
    ToleranceType,
    FailureReason,
    ScriptKind,
    TemplateType,
    SubmissionStatus,
    ValidationIssue,
    ValidationResult,
    ExecutionResult,
    GradingSettings,
    FieldComparison,
    ComparisonResult,
    Variant,
    MaterializationResult,
)

# Scripts
from .script import (
    ScriptValidator,
    CompiledScript,
    compile_script,
    ScriptRandom,
    SandboxExecutor,
)

# Grading
from .grading import (
    AnswerComparator,
    compare,
    days_late,
    calculate_late_penalty,
    apply_late_penalty,
)

# Variants
from .variants import (
    VariantGenerator,
    InMemoryVariantStore,
    get_variant_store,
    solution_hash,
)

# Collaborator models
from .models.template import TaskTemplate, TemplateTestCase, CaseResult
from .models.submission import Submission
from .models.assignment import Assignment, AssignmentOptions

from .templates import get_builtin_template, list_builtin_templates

__all__ = [
    # Config
    "TaskEngineConfig",
    "SandboxConfig",
    "ValidatorConfig",
    "VariantConfig",
    "GradingConfig",
    "DEFAULT_CONFIG",
    "get_config",
    "create_config",
    "load_config_from_env",

    # Errors
    "TaskEngineError",
    "ScriptCompileError",
    "ScriptValidationError",
    "ScriptExecutionError",
    "VariantGenerationError",
    "VariantNotFoundError",
    "SubmissionRejectedError",

    # Models
    "ToleranceType",
    "FailureReason",
    "ScriptKind",
    "TemplateType",
    "SubmissionStatus",
    "ValidationIssue",
    "ValidationResult",
    "ExecutionResult",
    "GradingSettings",
    "FieldComparison",
    "ComparisonResult",
    "Variant",
    "MaterializationResult",

    # Scripts
    "ScriptValidator",
    "CompiledScript",
    "compile_script",
    "ScriptRandom",
    "SandboxExecutor",

    # Grading
    "AnswerComparator",
    "compare",
    "days_late",
    "calculate_late_penalty",
    "apply_late_penalty",

    # Variants
    "VariantGenerator",
    "InMemoryVariantStore",
    "get_variant_store",
    "solution_hash",

    # Collaborators
    "TaskTemplate",
    "TemplateTestCase",
    "CaseResult",
    "Submission",
    "Assignment",
    "AssignmentOptions",
    "get_builtin_template",
    "list_builtin_templates",
]

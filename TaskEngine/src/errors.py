"""TaskEngine exceptions

The script, variant and grading layers report failures as typed result
objects. These exceptions are raised only by the collaborator-facing
wrappers (TaskTemplate, Assignment, Submission).
"""

from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .models.script import ExecutionResult, ValidationResult
    from .models.enums import FailureReason


class TaskEngineError(Exception):
    """Base class for all TaskEngine errors"""


class ScriptCompileError(TaskEngineError):
    """Restricted compilation rejected a script"""

    def __init__(self, messages: List[str], syntax: bool = False):
        self.messages = list(messages)
        self.syntax = syntax
        super().__init__("; ".join(self.messages) or "Script could not be compiled")


class ScriptValidationError(TaskEngineError):
    """A script failed validation and must not be stored"""

    def __init__(self, result: "ValidationResult", script_name: str = "script"):
        self.result = result
        self.script_name = script_name
        super().__init__(f"{script_name} is invalid: {'; '.join(result.errors)}")


class ScriptExecutionError(TaskEngineError):
    """A sandboxed execution returned a failure"""

    def __init__(self, message: str, result: "ExecutionResult"):
        self.result = result
        super().__init__(message)

    @property
    def reason(self) -> Optional["FailureReason"]:
        return self.result.error_type


class VariantGenerationError(TaskEngineError):
    """Materialization aborted at a specific variant index"""

    def __init__(self, index: Optional[int], reason: "FailureReason", message: str):
        self.index = index
        self.reason = reason
        self.message = message
        where = f"variant {index}" if index is not None else "batch"
        super().__init__(f"Variant generation failed at {where} ({reason.value}): {message}")


class VariantNotFoundError(TaskEngineError, LookupError):
    """No variant with the requested index exists for the assignment"""


class SubmissionRejectedError(TaskEngineError):
    """Submission not accepted (attempt limit reached, late submissions closed)"""

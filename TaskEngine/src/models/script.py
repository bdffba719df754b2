"""Script validation and execution models"""

from typing import Any, List, Optional

from pydantic import BaseModel, Field

from .enums import FailureReason


class ValidationIssue(BaseModel):
    """A single blocking problem found by ScriptValidator"""

    kind: FailureReason
    """SyntaxError or SecurityViolation"""

    message: str
    """Human readable description (includes the violated pattern)"""

    line: Optional[int] = None
    """1-based line in the script's own numbering, when known"""

    def __str__(self) -> str:
        location = f"Line {self.line}: " if self.line else ""
        return f"{self.kind.value}: {location}{self.message}"


class ValidationResult(BaseModel):
    """Validation result (ScriptValidator -> TaskTemplate)

    Example:
        result = ValidationResult(
            is_valid=False,
            errors=["SecurityViolation: Forbidden pattern detected: module import"],
            warnings=["Potential infinite loop detected (line 3)"]
        )
    """

    is_valid: bool
    """Whether the script may be stored and executed"""

    errors: List[str] = Field(default_factory=list)
    """Blocking errors, one string per issue

    Any error makes the script unusable.
    """

    warnings: List[str] = Field(default_factory=list)
    """Non-blocking findings (suspected endless loops, long scripts)"""

    issues: List[ValidationIssue] = Field(default_factory=list)
    """Structured form of `errors`"""

    @property
    def has_security_violation(self) -> bool:
        return any(i.kind == FailureReason.SECURITY_VIOLATION for i in self.issues)

    @property
    def first_issue_kind(self) -> Optional[FailureReason]:
        return self.issues[0].kind if self.issues else None


class ExecutionResult(BaseModel):
    """Execution result (SandboxExecutor -> caller)

    Example (success):
        result = ExecutionResult(
            success=True,
            data={"x": 3, "y": 4},
            execution_time_ms=41.7
        )

    Example (failure):
        result = ExecutionResult(
            success=False,
            error="Execution timed out after 5.0 seconds",
            error_type=FailureReason.TIMEOUT,
            execution_time_ms=5003.2
        )
    """

    success: bool
    """Whether the script ran and returned valid JSON"""

    data: Optional[Any] = None
    """Decoded JSON value returned by the script (on success)"""

    error: Optional[str] = None
    """Error message (on failure)"""

    error_type: Optional[FailureReason] = None
    """Failure category (on failure)"""

    execution_time_ms: Optional[float] = None
    """Wall-clock time including worker start-up (ms)"""

    @classmethod
    def failure(
        cls,
        reason: FailureReason,
        message: str,
        execution_time_ms: Optional[float] = None,
    ) -> "ExecutionResult":
        return cls(
            success=False,
            error=message,
            error_type=reason,
            execution_time_ms=execution_time_ms,
        )

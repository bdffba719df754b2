"""Script validator - static checks before a script is stored or run

Responsibility: syntax check, denylist, restricted-compile pre-flight.
Never executes anything (SandboxExecutor does that).
"""

import ast
import re
from typing import List, Optional, Tuple, Union

from ..config import DEFAULT_CONFIG, ValidatorConfig
from ..errors import ScriptCompileError
from ..models.enums import FailureReason, ScriptKind
from ..models.script import ValidationIssue, ValidationResult
from .compiler import compile_script, parse_script, script_line

_LINE_PREFIX = re.compile(r"^Line (\d+):\s*")
_NESTED_SCOPES = (ast.For, ast.AsyncFor, ast.While, ast.FunctionDef, ast.AsyncFunctionDef, ast.Lambda, ast.ClassDef)


class ScriptValidator:
    """Security validation of generator / solution scripts

    Responsibilities:
    - syntax check (the body is wrapped and parsed with ast)
    - forbidden pattern check (regex denylist from ValidatorConfig)
    - RestrictedPython compile as a second opinion
    - warnings for suspicious but legal code

    Not responsible for:
    - running the script (SandboxExecutor)

    Example:
        validator = ScriptValidator()
        result = validator.validate("x = rng.randint(1, 10)\\nreturn {'x': x}")

        if result.is_valid:
            print("Script is safe to store")
        else:
            print(f"Errors: {result.errors}")
    """

    def __init__(self, config: Optional[ValidatorConfig] = None):
        """
        Args:
            config: validation settings (None = default settings)
        """
        self._config = config or DEFAULT_CONFIG.validator

        self.FORBIDDEN_PATTERNS = [
            (re.compile(pattern), pattern, description)
            for pattern, description in self._config.forbidden_patterns
        ]

    def validate(self, script: str, kind: Union[ScriptKind, str] = ScriptKind.GENERATOR) -> ValidationResult:
        """Validate a script body

        Args:
            script: function body source text
            kind: generator or solution (decides the wrapper parameters)

        Returns:
            ValidationResult with is_valid, errors, warnings, issues
        """
        issues: List[ValidationIssue] = []
        warnings: List[str] = []

        if not isinstance(script, str) or not script.strip():
            issues.append(ValidationIssue(kind=FailureReason.SYNTAX_ERROR, message="Empty script"))
            return self._result(issues, warnings)

        # 1. syntax
        try:
            tree = parse_script(script, kind)
        except ScriptCompileError as e:
            issues.extend(self._issues_from_messages(e.messages, FailureReason.SYNTAX_ERROR))
            return self._result(issues, warnings)

        # 2. denylist
        issues.extend(self._check_forbidden_patterns(script))

        # 3. restricted compile
        try:
            compiled = compile_script(script, kind)
            warnings.extend(compiled.warnings)
        except ScriptCompileError as e:
            reason = FailureReason.SYNTAX_ERROR if e.syntax else FailureReason.SECURITY_VIOLATION
            issues.extend(self._issues_from_messages(e.messages, reason))

        # 4. warnings
        warnings.extend(self._check_endless_loops(tree))
        if len(script) > self._config.max_script_length:
            warnings.append(
                f"Script is {len(script)} characters long (recommended maximum {self._config.max_script_length})"
            )

        return self._result(issues, warnings)

    def _result(self, issues: List[ValidationIssue], warnings: List[str]) -> ValidationResult:
        return ValidationResult(
            is_valid=len(issues) == 0,
            errors=[str(i) for i in issues],
            warnings=warnings,
            issues=issues,
        )

    def _check_forbidden_patterns(self, script: str) -> List[ValidationIssue]:
        """One issue per matching pattern (first occurrence)"""
        issues = []
        for regex, pattern, description in self.FORBIDDEN_PATTERNS:
            match = regex.search(script)
            if match:
                issues.append(ValidationIssue(
                    kind=FailureReason.SECURITY_VIOLATION,
                    message=f"Forbidden pattern detected: {description} ({pattern})",
                    line=script.count("\n", 0, match.start()) + 1,
                ))
        return issues

    def _issues_from_messages(self, messages: List[str], reason: FailureReason) -> List[ValidationIssue]:
        issues = []
        for message in messages:
            line, text = self._split_line(message)
            issues.append(ValidationIssue(kind=reason, message=text, line=line))
        return issues

    @staticmethod
    def _split_line(message: str) -> Tuple[Optional[int], str]:
        """'Line 3: foo' -> (3, 'foo')"""
        match = _LINE_PREFIX.match(message)
        if not match:
            return None, message
        return int(match.group(1)), message[match.end():]

    def _check_endless_loops(self, tree: ast.AST) -> List[str]:
        """`while True:` (or any truthy constant) without a break"""
        warnings = []
        for node in ast.walk(tree):
            if not isinstance(node, ast.While):
                continue
            if not (isinstance(node.test, ast.Constant) and node.test.value):
                continue
            if not self._has_break(node.body):
                warnings.append(f"Potential infinite loop detected (line {script_line(node.lineno)})")
        return warnings

    def _has_break(self, body: List[ast.stmt]) -> bool:
        """break belonging to this loop (nested loops / functions excluded)"""
        stack = list(body)
        while stack:
            node = stack.pop()
            if isinstance(node, ast.Break):
                return True
            if isinstance(node, _NESTED_SCOPES):
                continue
            stack.extend(ast.iter_child_nodes(node))
        return False

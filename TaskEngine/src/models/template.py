"""Task template model

A template owns a generator script, a solution script and grading
settings. Scripts are validated when the template is created and on every
edit; an invalid script raises ScriptValidationError and is never stored.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..errors import ScriptExecutionError, ScriptValidationError
from ..grading.comparator import AnswerComparator
from .enums import ScriptKind, TemplateType
from .grading import ComparisonResult, GradingSettings
from ..script.compiler import CompiledScript, compile_cached
from ..script.sandbox import SandboxExecutor
from ..script.validator import ScriptValidator

logger = logging.getLogger(__name__)

_validator: Optional[ScriptValidator] = None
_executor: Optional[SandboxExecutor] = None


def _get_validator() -> ScriptValidator:
    global _validator
    if _validator is None:
        _validator = ScriptValidator()
    return _validator


def get_default_executor() -> SandboxExecutor:
    """Shared executor for templates that are not given one"""
    global _executor
    if _executor is None:
        _executor = SandboxExecutor()
    return _executor


class TemplateTestCase(BaseModel):
    """Known input / expected output pair used to check a solution script

    Example:
        case = TemplateTestCase(
            input={"x1": 0, "y1": 0, "x2": 3, "y2": 4},
            expected_output={"distance": 5.0},
            description="3-4-5 triangle"
        )
    """

    input: Dict[str, Any]
    """input_data handed to the solution script"""

    expected_output: Any
    """Expected solution (object or number)"""

    description: str = ""


class CaseResult(BaseModel):
    """Outcome of one TemplateTestCase"""

    description: str = ""
    passed: bool = False
    actual_output: Any = None
    comparison: Optional[ComparisonResult] = None
    error: Optional[str] = None


class TaskTemplate(BaseModel):
    """Instructor-authored task template

    Example:
        template = TaskTemplate(
            name="Distance between two points",
            template_type=TemplateType.DISTANCE_CALCULATION,
            description="Compute the horizontal distance",
            generator_script="return {'x1': rng.uniform(0, 100), 'y1': rng.uniform(0, 100)}",
            solution_script="return {'distance': sqrt(input_data['x1'] ** 2 + input_data['y1'] ** 2)}",
        )

        data = template.generate_test_data(variant_index=0, seed=42)
        solution = template.generate_solution(data)
    """

    model_config = ConfigDict(validate_assignment=True)

    name: str = Field(min_length=1)

    template_type: TemplateType = TemplateType.CUSTOM

    description: str = ""

    difficulty: Literal["easy", "medium", "hard", "expert"] = "medium"

    level: int = Field(default=5, ge=1, le=10)

    generator_script: str
    """Function body; parameters variant_index, seed, rng; returns an object"""

    solution_script: str
    """Function body; parameters input_data, rng; returns an object or a number"""

    grading: GradingSettings = Field(default_factory=GradingSettings)

    test_cases: List[TemplateTestCase] = Field(default_factory=list)

    tags: List[str] = Field(default_factory=list)

    is_public: bool = False

    usage_count: int = 0
    last_used: Optional[datetime] = None

    @field_validator('generator_script')
    @classmethod
    def _validate_generator(cls, v: str) -> str:
        return _checked_script(v, ScriptKind.GENERATOR)

    @field_validator('solution_script')
    @classmethod
    def _validate_solution(cls, v: str) -> str:
        return _checked_script(v, ScriptKind.SOLUTION)

    @field_validator('tags')
    @classmethod
    def _strip_tags(cls, v: List[str]) -> List[str]:
        return [t.strip() for t in v if t and t.strip()]

    # =========================================================================
    # Scripts
    # =========================================================================

    def compiled_scripts(self) -> Tuple[CompiledScript, CompiledScript]:
        """(generator, solution) handles, compiled once per source text"""
        return (
            compile_cached(self.generator_script, ScriptKind.GENERATOR),
            compile_cached(self.solution_script, ScriptKind.SOLUTION),
        )

    def generate_test_data(
        self,
        variant_index: int = 0,
        seed: Optional[int] = None,
        executor: Optional[SandboxExecutor] = None,
    ) -> Dict[str, Any]:
        """Run the generator script

        Raises:
            ScriptExecutionError: the generator failed
        """
        executor = executor or get_default_executor()
        generator, _ = self.compiled_scripts()

        result = executor.execute_generator(generator, variant_index, seed)
        if not result.success:
            raise ScriptExecutionError(f"Generator execution failed: {result.error}", result)
        return result.data

    def generate_solution(self, input_data: Dict[str, Any], executor: Optional[SandboxExecutor] = None) -> Any:
        """Run the solution script

        Raises:
            ScriptExecutionError: the solution failed
        """
        executor = executor or get_default_executor()
        _, solution = self.compiled_scripts()

        result = executor.execute_solution(solution, input_data)
        if not result.success:
            raise ScriptExecutionError(f"Solution generation failed: {result.error}", result)
        return result.data

    def preview(
        self,
        variant_index: int = 0,
        seed: Optional[int] = None,
        executor: Optional[SandboxExecutor] = None,
    ) -> Dict[str, Any]:
        """One generated variant, for the instructor's template editor"""
        input_data = self.generate_test_data(variant_index, seed, executor)
        solution = self.generate_solution(input_data, executor)
        return {
            "variant_index": variant_index,
            "seed": seed,
            "input_data": input_data,
            "solution": solution,
        }

    def run_test_cases(self, executor: Optional[SandboxExecutor] = None) -> List[CaseResult]:
        """Run the solution on every test case and grade it with the template's settings"""
        comparator = AnswerComparator()
        results = []
        for case in self.test_cases:
            try:
                actual = self.generate_solution(case.input, executor)
            except ScriptExecutionError as e:
                results.append(CaseResult(description=case.description, error=str(e)))
                continue

            comparison = comparator.compare_with_settings(actual, case.expected_output, self.grading)
            results.append(CaseResult(
                description=case.description,
                passed=comparison.is_correct,
                actual_output=actual,
                comparison=comparison,
            ))

        passed = sum(r.passed for r in results)
        logger.info(f"🧪 Template '{self.name}': {passed}/{len(results)} test cases passed")
        return results

    def record_usage(self) -> None:
        self.usage_count += 1
        self.last_used = datetime.now()


def _checked_script(source: str, kind: ScriptKind) -> str:
    result = _get_validator().validate(source, kind=kind)
    if not result.is_valid:
        logger.warning(f"🚫 Rejected {kind.value} script: {result.errors}")
        raise ScriptValidationError(result, script_name=f"{kind.value}_script")
    for warning in result.warnings:
        logger.info(f"⚠️ {kind.value} script: {warning}")
    return source

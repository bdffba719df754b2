"""
ScriptValidator / compiler tests

Usage:
    python -m pytest TaskEngine/tests/test_validator.py -v
"""

import sys
import os
import logging

# project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

import pytest

logging.basicConfig(level=logging.INFO, format='%(asctime)s | %(name)s | %(levelname)s | %(message)s')


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def validator():
    from TaskEngine.src import ScriptValidator
    return ScriptValidator()


GOOD_GENERATOR = """
x = rng.randint(1, 10)
y = round(rng.uniform(0, 1), 3)
return {'x': x, 'y': y, 'index': variant_index}
"""


# =============================================================================
# Validation Tests
# =============================================================================

class TestScriptValidator:
    """ScriptValidator.validate"""

    def test_valid_script(self, validator):
        result = validator.validate(GOOD_GENERATOR)

        assert result.is_valid
        assert result.errors == []
        assert result.issues == []

    def test_valid_solution_script(self, validator):
        from TaskEngine.src import ScriptKind

        result = validator.validate("return input_data['x'] * 2", kind=ScriptKind.SOLUTION)
        assert result.is_valid

    def test_empty_script(self, validator):
        from TaskEngine.src import FailureReason

        result = validator.validate("   \n  ")

        assert not result.is_valid
        assert result.issues[0].kind == FailureReason.SYNTAX_ERROR

    def test_syntax_error_reports_script_line(self, validator):
        from TaskEngine.src import FailureReason

        result = validator.validate("x = 1\ny = (2\nreturn {'x': x}")

        assert not result.is_valid
        assert result.first_issue_kind == FailureReason.SYNTAX_ERROR
        assert result.issues[0].line is not None
        assert result.errors[0].startswith("SyntaxError")

    @pytest.mark.parametrize("script", [
        "import os\nreturn {}",
        "from os import path\nreturn {}",
        "m = __import__('os')\nreturn {}",
        "f = open('/etc/passwd')\nreturn {}",
        "return {'v': eval('1 + 1')}",
        "exec('x = 1')\nreturn {}",
        "return {'b': __builtins__}",
        "x = subprocess.run(['ls'])\nreturn {}",
        "t = threading.Thread()\nreturn {}",
        "time.sleep(10)\nreturn {}",
        "s = socket.socket()\nreturn {}",
        "r = requests.get('http://example.com')\nreturn {}",
        "x = os.environ\nreturn {}",
    ])
    def test_capability_escapes_rejected(self, validator, script):
        """Host access is a SecurityViolation naming the pattern"""
        from TaskEngine.src import FailureReason

        result = validator.validate(script)

        assert not result.is_valid
        assert result.has_security_violation
        assert any(i.kind == FailureReason.SECURITY_VIOLATION for i in result.issues)
        assert any("Forbidden pattern detected" in e for e in result.errors)

    def test_underscore_attribute_rejected_by_restricted_compile(self, validator):
        """Not in the denylist, caught by RestrictedPython"""
        result = validator.validate("state = rng._rng\nreturn {}")

        assert not result.is_valid
        assert result.has_security_violation

    def test_violation_reports_line(self, validator):
        result = validator.validate("x = 1\ny = 2\nimport os\nreturn {}")

        hit = next(i for i in result.issues if "module import" in i.message)
        assert hit.line == 3

    def test_infinite_loop_warning(self, validator):
        result = validator.validate("x = 0\nwhile True:\n    x += 1\nreturn {'x': x}")

        assert result.is_valid
        assert any("Potential infinite loop" in w for w in result.warnings)

    def test_loop_with_break_no_warning(self, validator):
        script = "x = 0\nwhile True:\n    x += 1\n    if x > 3:\n        break\nreturn {'x': x}"
        result = validator.validate(script)

        assert result.is_valid
        assert not any("infinite loop" in w for w in result.warnings)

    def test_break_in_nested_loop_does_not_count(self, validator):
        script = (
            "while True:\n"
            "    for i in range(3):\n"
            "        break\n"
            "return {}"
        )
        result = validator.validate(script)

        assert any("infinite loop" in w for w in result.warnings)

    def test_long_script_warning(self):
        from TaskEngine.src import ScriptValidator, ValidatorConfig

        validator = ScriptValidator(ValidatorConfig(max_script_length=50))
        script = "x = 1\n" * 20 + "return {'x': x}"

        result = validator.validate(script)

        assert result.is_valid
        assert any("characters long" in w for w in result.warnings)

    def test_validate_never_executes(self, validator):
        """A failing script is still valid: nothing is run"""
        result = validator.validate("return {'x': 1 / 0}")
        assert result.is_valid


# =============================================================================
# Compiler Tests
# =============================================================================

class TestCompiler:
    """compile_script / CompiledScript"""

    def test_compile_generator(self):
        from TaskEngine.src import compile_script, ScriptKind

        compiled = compile_script(GOOD_GENERATOR, ScriptKind.GENERATOR)

        assert compiled.kind == ScriptKind.GENERATOR
        assert compiled.entry_point == "generate"
        assert compiled.parameters == ("variant_index", "seed", "rng")
        assert len(compiled.digest) == 12
        assert compiled.load() is not None

    def test_wrap_script_dedents_body(self):
        from TaskEngine.src.script import wrap_script

        wrapped = wrap_script("    x = 1\n    return {'x': x}\n", "solution")

        assert wrapped.startswith("def solve(input_data, rng):\n")
        assert "    x = 1\n" in wrapped

    def test_compile_error_is_not_syntax(self):
        from TaskEngine.src import compile_script, ScriptCompileError

        with pytest.raises(ScriptCompileError) as exc_info:
            compile_script("return {'v': rng._rng}", "generator")

        assert exc_info.value.syntax is False

    def test_syntax_error(self):
        from TaskEngine.src import compile_script, ScriptCompileError

        with pytest.raises(ScriptCompileError) as exc_info:
            compile_script("return {", "generator")

        assert exc_info.value.syntax is True


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

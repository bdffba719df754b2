"""
SandboxExecutor tests

Every call starts a worker process, so these tests take a few seconds.

Usage:
    python -m pytest TaskEngine/tests/test_sandbox.py -v
"""

import sys
import os
import logging
import time

# project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

import pytest

logging.basicConfig(level=logging.INFO, format='%(asctime)s | %(name)s | %(levelname)s | %(message)s')


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture(scope="module")
def executor():
    from TaskEngine.src import SandboxExecutor
    return SandboxExecutor(timeout_seconds=10)


RANDOM_GENERATOR = """
values = [round(rng.uniform(-500, 500), 4) for i in range(5)]
return {'values': values, 'pick': rng.randint(1, 1000), 'r': Math.random(), 'index': variant_index}
"""

SUM_SOLUTION = """
return {'total': round(sum(input_data['values']), 4), 'noise': rng.random()}
"""


# =============================================================================
# Generator Tests
# =============================================================================

class TestExecuteGenerator:
    """execute_generator: capability surface + determinism"""

    def test_simple_generator(self, executor):
        result = executor.execute_generator("return {'a': 1, 'b': [1, 2.5, 'x'], 'c': None}")

        assert result.success, result.error
        assert result.data == {"a": 1, "b": [1, 2.5, "x"], "c": None}
        assert result.execution_time_ms is not None

    def test_parameters_are_passed(self, executor):
        result = executor.execute_generator("return {'i': variant_index, 's': seed}", variant_index=7, seed=99)

        assert result.success, result.error
        assert result.data == {"i": 7, "s": 99}

    def test_same_seed_same_output(self, executor):
        """Bit-identical output for the same (script, variant_index, seed)"""
        first = executor.execute_generator(RANDOM_GENERATOR, variant_index=3, seed=12345)
        second = executor.execute_generator(RANDOM_GENERATOR, variant_index=3, seed=12345)

        assert first.success and second.success
        assert first.data == second.data

    def test_variant_index_changes_output(self, executor):
        first = executor.execute_generator(RANDOM_GENERATOR, variant_index=0, seed=12345)
        second = executor.execute_generator(RANDOM_GENERATOR, variant_index=1, seed=12345)

        assert first.data["values"] != second.data["values"]

    def test_seed_changes_output(self, executor):
        first = executor.execute_generator(RANDOM_GENERATOR, variant_index=0, seed=1)
        second = executor.execute_generator(RANDOM_GENERATOR, variant_index=0, seed=2)

        assert first.data["values"] != second.data["values"]

    def test_primitives_available(self, executor):
        script = """
return {
    'sqrt': sqrt(16),
    'pi': round(PI, 5),
    'atan2': round(atan2(1, 1), 6),
    'floor': floor(2.7),
    'math': round(Math.cos(0), 1),
    'json': JSON.dumps({'a': 1}),
    'year': date(2024, 1, 1).year,
    'days': timedelta(days=2).days,
    'log': round(math.log10(1000), 6),
}
"""
        result = executor.execute_generator(script)

        assert result.success, result.error
        assert result.data == {
            "sqrt": 4.0,
            "pi": 3.14159,
            "atan2": 0.785398,
            "floor": 2,
            "math": 1.0,
            "json": '{"a": 1}',
            "year": 2024,
            "days": 2,
            "log": 3.0,
        }

    def test_compiled_script_reuse(self, executor):
        from TaskEngine.src import compile_script, ScriptKind

        compiled = compile_script(RANDOM_GENERATOR, ScriptKind.GENERATOR)
        first = executor.execute_generator(compiled, variant_index=2, seed=5)
        second = executor.execute_generator(RANDOM_GENERATOR, variant_index=2, seed=5)

        assert first.data == second.data

    def test_wrong_script_kind(self, executor):
        from TaskEngine.src import compile_script, ScriptKind, FailureReason

        compiled = compile_script("return {}", ScriptKind.SOLUTION)
        result = executor.execute_generator(compiled)

        assert not result.success
        assert result.error_type == FailureReason.RUNTIME_ERROR

    def test_negative_index_rejected(self, executor):
        result = executor.execute_generator("return {}", variant_index=-1)
        assert not result.success

    def test_helper_functions(self, executor):
        script = """
return {
    'distance': calculate_distance(0, 0, 3, 4),
    'angle': round(calculate_angle(0, 0, 1, 1), 6),
    'north': round(calculate_angle(5, 5, 5, 10), 6),
    'nan': isnan(float('nan')),
    'finite': isfinite(1e308 * 10),
}
"""
        result = executor.execute_generator(script)

        assert result.success, result.error
        assert result.data == {"distance": 5.0, "angle": 0.785398, "north": 1.570796, "nan": True, "finite": False}

    def test_generate_random_uses_seeded_rng(self, executor):
        script = "return {'values': [generate_random(10, 20) for i in range(5)], 'unit': generate_random()}"

        first = executor.execute_generator(script, variant_index=0, seed=3)
        second = executor.execute_generator(script, variant_index=0, seed=3)

        assert first.success, first.error
        assert first.data == second.data
        assert all(10 <= v < 20 for v in first.data["values"])
        assert 0 <= first.data["unit"] < 1


# =============================================================================
# Solution Tests
# =============================================================================

class TestExecuteSolution:
    """execute_solution"""

    def test_round_trip(self, executor):
        generated = executor.execute_generator(RANDOM_GENERATOR, variant_index=0, seed=42)
        solved = executor.execute_solution(SUM_SOLUTION, generated.data)

        assert solved.success, solved.error
        assert solved.data["total"] == round(sum(generated.data["values"]), 4)

    def test_solution_is_deterministic(self, executor):
        data = {"values": [1.5, 2.5]}
        first = executor.execute_solution(SUM_SOLUTION, data)
        second = executor.execute_solution(SUM_SOLUTION, data)

        assert first.data == second.data

    def test_scalar_solution(self, executor):
        result = executor.execute_solution("return input_data['a'] * 2", {"a": 2.5})

        assert result.success
        assert result.data == 5.0

    def test_non_object_input_rejected(self, executor):
        from TaskEngine.src import FailureReason

        result = executor.execute_solution("return 1", [1, 2])

        assert not result.success
        assert result.error_type == FailureReason.INVALID_OUTPUT


# =============================================================================
# Failure Tests
# =============================================================================

class TestFailures:
    """Every failure comes back as a typed ExecutionResult"""

    def test_runtime_error(self, executor):
        from TaskEngine.src import FailureReason

        result = executor.execute_generator("return {'x': 1 / 0}")

        assert not result.success
        assert result.error_type == FailureReason.RUNTIME_ERROR
        assert result.error.startswith("ZeroDivisionError")

    def test_raised_exception(self, executor):
        from TaskEngine.src import FailureReason

        result = executor.execute_generator("raise ValueError('bad seed')")

        assert result.error_type == FailureReason.RUNTIME_ERROR
        assert "ValueError: bad seed" in result.error

    @pytest.mark.parametrize("script", [
        "return [1, 2, 3]",
        "return 5",
        "return {'x': float('nan')}",
        "return {'f': len}",
        "return {1: 'a'}",
        "d = {}\nd['self'] = d\nreturn d",
    ])
    def test_invalid_generator_output(self, executor, script):
        from TaskEngine.src import FailureReason

        result = executor.execute_generator(script)

        assert not result.success
        assert result.error_type == FailureReason.INVALID_OUTPUT

    def test_solution_bool_is_invalid(self, executor):
        from TaskEngine.src import FailureReason

        result = executor.execute_solution("return True", {"a": 1})
        assert result.error_type == FailureReason.INVALID_OUTPUT

    def test_syntax_error(self, executor):
        from TaskEngine.src import FailureReason

        result = executor.execute_generator("return {")
        assert result.error_type == FailureReason.SYNTAX_ERROR

    @pytest.mark.parametrize("script", [
        "import os\nreturn {}",
        "m = __import__('os')\nreturn {'m': 1}",
        "f = open('/etc/passwd')\nreturn {}",
        "return {'c': rng.__class__}",
    ])
    def test_security_violation_never_runs(self, executor, script):
        from TaskEngine.src import FailureReason

        result = executor.execute_generator(script)

        assert not result.success
        assert result.error_type == FailureReason.SECURITY_VIOLATION

    def test_restricted_compile_without_validator(self):
        """validate_scripts=False still goes through RestrictedPython"""
        from TaskEngine.src import SandboxExecutor, SandboxConfig, FailureReason

        executor = SandboxExecutor(config=SandboxConfig(timeout_seconds=10, validate_scripts=False))
        result = executor.execute_generator("return {'v': rng._rng}")

        assert result.error_type == FailureReason.SECURITY_VIOLATION

    def test_import_unavailable_at_runtime(self):
        """No __import__ in the script's builtins"""
        from TaskEngine.src import SandboxExecutor, SandboxConfig, FailureReason

        executor = SandboxExecutor(config=SandboxConfig(timeout_seconds=10, validate_scripts=False))
        result = executor.execute_generator("import os\nreturn {'cwd': os.getcwd()}")

        assert not result.success
        assert result.error_type == FailureReason.RUNTIME_ERROR

    def test_timeout_then_executor_still_usable(self):
        from TaskEngine.src import SandboxExecutor, FailureReason

        executor = SandboxExecutor(timeout_seconds=3)

        start = time.monotonic()
        result = executor.execute_generator("x = 0\nwhile True:\n    x += 1\nreturn {'x': x}")
        elapsed = time.monotonic() - start

        assert result.error_type == FailureReason.TIMEOUT
        assert elapsed < 3 + 3.0

        follow_up = executor.execute_generator("return {'ok': True}")
        assert follow_up.success, follow_up.error
        assert follow_up.data == {"ok": True}

    @pytest.mark.skipif(not sys.platform.startswith("linux"), reason="RLIMIT_AS is enforced on Linux only")
    def test_memory_limit(self):
        from TaskEngine.src import SandboxExecutor, FailureReason

        executor = SandboxExecutor(timeout_seconds=20, memory_limit_mb=64)
        result = executor.execute_generator("big = [0] * (400 * 1024 * 1024)\nreturn {'n': len(big)}")

        assert not result.success
        assert result.error_type == FailureReason.RESOURCE_EXCEEDED

    def test_executors_have_independent_budgets(self):
        from TaskEngine.src import SandboxExecutor

        short = SandboxExecutor(timeout_seconds=1, memory_limit_mb=32)
        long = SandboxExecutor(timeout_seconds=30, memory_limit_mb=256)

        assert short.timeout_seconds == 1.0
        assert long.timeout_seconds == 30.0
        assert short.memory_limit_mb == 32
        assert long.memory_limit_mb == 256

    def test_invalid_timeout(self):
        from TaskEngine.src import SandboxExecutor

        with pytest.raises(ValueError):
            SandboxExecutor(timeout_seconds=0)


# =============================================================================
# Restart Determinism Tests
# =============================================================================

SET_ORDER_GENERATOR = """
words = {'alpha', 'beta', 'gamma', 'delta', 'epsilon', 'zeta', 'eta', 'theta'}
return {'words': list(words), 'hash': hash('alpha'), 'p': rng.random()}
"""

RUN_IN_FRESH_INTERPRETER = """
import json, sys
sys.path.insert(0, {root!r})
from TaskEngine.src import SandboxExecutor

result = SandboxExecutor(timeout_seconds=20).execute_generator({script!r}, variant_index=0, seed=7)
print(json.dumps({{"success": result.success, "data": result.data, "error": result.error}}, sort_keys=True))
"""


class TestHashSeed:
    """Same (script, variant_index, seed) -> same output after a restart"""

    def _run_fresh(self, host_hash_seed):
        import json
        import subprocess

        root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
        env = dict(os.environ, PYTHONHASHSEED=host_hash_seed)
        code = RUN_IN_FRESH_INTERPRETER.format(root=root, script=SET_ORDER_GENERATOR)

        completed = subprocess.run(
            [sys.executable, "-c", code], env=env, cwd=root, capture_output=True, text=True, timeout=120
        )
        assert completed.returncode == 0, completed.stderr
        return json.loads(completed.stdout.strip().splitlines()[-1])

    def test_set_order_stable_across_interpreters(self):
        outputs = [self._run_fresh(seed) for seed in ("1", "2", "random")]

        assert outputs[0]["success"], outputs[0]["error"]
        assert outputs[0] == outputs[1] == outputs[2]

    def test_host_environment_restored(self, executor):
        before = os.environ.get("PYTHONHASHSEED")

        result = executor.execute_generator("return {'a': 1}")

        assert result.success, result.error
        assert os.environ.get("PYTHONHASHSEED") == before

    def test_worker_refuses_unpinned_interpreter(self, monkeypatch):
        from TaskEngine.src.script.worker import check_hash_seed, WorkerEnvironmentError

        monkeypatch.setenv("PYTHONHASHSEED", "5")
        check_hash_seed(5)

        with pytest.raises(WorkerEnvironmentError):
            check_hash_seed(0)

        monkeypatch.delenv("PYTHONHASHSEED")
        with pytest.raises(WorkerEnvironmentError):
            check_hash_seed(0)


# =============================================================================
# Runtime Tests
# =============================================================================

class TestScriptRandom:
    """Seeded rng handed to scripts"""

    def test_same_seed_same_sequence(self):
        from TaskEngine.src.script.runtime import generator_random

        a = generator_random(12345, 0)
        b = generator_random(12345, 0)

        assert [a.random() for _ in range(5)] == [b.random() for _ in range(5)]

    def test_derive_seed_is_stable(self):
        from TaskEngine.src.script.runtime import derive_seed

        assert derive_seed("generator", 1, 2) == derive_seed("generator", 1, 2)
        assert derive_seed("generator", 1, 2) != derive_seed("generator", 2, 1)

    def test_shuffled_leaves_input(self):
        from TaskEngine.src import ScriptRandom

        items = [1, 2, 3, 4, 5]
        shuffled = ScriptRandom(1).shuffled(items)

        assert items == [1, 2, 3, 4, 5]
        assert sorted(shuffled) == items


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

"""Sandbox worker - child-process side of SandboxExecutor

Runs exactly one script call and reports back over a pipe:
    ("ok", <json text>)
    ("error", <FailureReason value>, <message>)

The process is disposable: one call, then exit. Resource limits are
applied before any script code is loaded.
"""

import json
import marshal
import math
import os
import platform
from typing import Any, Dict, Optional

from ..models.enums import FailureReason, ScriptKind
from .runtime import build_script_globals, generator_random, solution_random

# exit code used when even reporting a MemoryError fails
EXIT_MEMORY = 3

MB = 1024 * 1024
MAX_OUTPUT_DEPTH = 64
MAX_MESSAGE_LENGTH = 2000


class OutputError(Exception):
    """Script returned something that is not plain JSON"""


class WorkerEnvironmentError(Exception):
    """Worker interpreter was not started the way the sandbox requires"""


def check_hash_seed(hash_seed: int) -> None:
    """Refuse to run unless this interpreter started with PYTHONHASHSEED=hash_seed

    A fork server started elsewhere before the sandbox pinned the seed would
    otherwise make set iteration order differ between restarts.
    """
    actual = os.environ.get("PYTHONHASHSEED")
    if actual != str(hash_seed):
        raise WorkerEnvironmentError(
            f"worker interpreter has PYTHONHASHSEED={actual!r}, expected {hash_seed!r} "
            f"(use start_method=\"spawn\" if the fork server was started elsewhere)"
        )


# =============================================================================
# Resource limits
# =============================================================================

def apply_resource_limits(memory_limit_mb: Optional[int], cpu_seconds: Optional[int]) -> None:
    """Apply rlimits to the current (worker) process

    RLIMIT_AS is set relative to the worker's current virtual size so the
    ceiling measures what the script allocates, not the interpreter.
    Windows has no rlimits; the parent's wall-clock timeout still applies.
    """
    if platform.system() == "Windows":
        return

    import resource
    import psutil

    if cpu_seconds:
        try:
            resource.setrlimit(resource.RLIMIT_CPU, (cpu_seconds, cpu_seconds + 1))
        except (ValueError, OSError):
            pass

    if memory_limit_mb:
        baseline = psutil.Process().memory_info().vms
        limit = baseline + memory_limit_mb * MB
        try:
            _, hard = resource.getrlimit(resource.RLIMIT_AS)
            if hard != resource.RLIM_INFINITY:
                limit = min(limit, hard)
            resource.setrlimit(resource.RLIMIT_AS, (limit, hard))
        except (ValueError, OSError):
            pass

    try:
        resource.setrlimit(resource.RLIMIT_CORE, (0, 0))
    except (ValueError, OSError):
        pass


# =============================================================================
# Output checking
# =============================================================================

def check_json_value(value: Any, path: str = "result", _stack: Optional[set] = None, _depth: int = 0) -> None:
    """Raise OutputError unless value is a plain, finite, acyclic JSON value"""
    if _depth > MAX_OUTPUT_DEPTH:
        raise OutputError(f"{path}: nesting deeper than {MAX_OUTPUT_DEPTH} levels")

    if value is None or isinstance(value, (str, bool, int)):
        return
    if isinstance(value, float):
        if not math.isfinite(value):
            raise OutputError(f"{path}: non-finite number {value!r}")
        return

    if isinstance(value, (dict, list, tuple)):
        stack = _stack if _stack is not None else set()
        marker = id(value)
        if marker in stack:
            raise OutputError(f"{path}: circular structure")
        stack.add(marker)
        try:
            if isinstance(value, dict):
                for key, item in value.items():
                    if not isinstance(key, str):
                        raise OutputError(f"{path}: key {key!r} is not a string")
                    check_json_value(item, f"{path}.{key}", stack, _depth + 1)
            else:
                for i, item in enumerate(value):
                    check_json_value(item, f"{path}[{i}]", stack, _depth + 1)
        finally:
            stack.discard(marker)
        return

    raise OutputError(f"{path}: {type(value).__name__} is not JSON-serializable")


def encode_output(value: Any, kind: ScriptKind) -> str:
    """Check shape + serialise the script's return value"""
    check_json_value(value)

    if kind == ScriptKind.GENERATOR and not isinstance(value, dict):
        raise OutputError(f"generator must return an object, got {type(value).__name__}")
    if kind == ScriptKind.SOLUTION and not (
        isinstance(value, dict) or (isinstance(value, (int, float)) and not isinstance(value, bool))
    ):
        raise OutputError(f"solution must return an object or a number, got {type(value).__name__}")

    return json.dumps(value, allow_nan=False)


# =============================================================================
# Entry point
# =============================================================================

def _call_arguments(kind: ScriptKind, arguments: Dict[str, Any]) -> Dict[str, Any]:
    if kind == ScriptKind.GENERATOR:
        variant_index = arguments["variant_index"]
        seed = arguments.get("seed")
        return {
            "variant_index": variant_index,
            "seed": seed,
            "rng": generator_random(seed, variant_index),
        }
    input_data = arguments["input_data"]
    return {"input_data": input_data, "rng": solution_random(input_data)}


def run_script(
    code: bytes,
    kind: str,
    entry_point: str,
    arguments: Dict[str, Any],
    memory_limit_mb: Optional[int],
    cpu_seconds: Optional[int],
    hash_seed: int,
    conn,
) -> None:
    """Process target: execute one compiled script and send the outcome"""
    try:
        check_hash_seed(hash_seed)
        apply_resource_limits(memory_limit_mb, cpu_seconds)
        script_kind = ScriptKind(kind)
        call_kwargs = _call_arguments(script_kind, arguments)

        script_globals = build_script_globals(call_kwargs["rng"])
        exec(marshal.loads(code), script_globals)
        value = script_globals[entry_point](**call_kwargs)

        message = ("ok", encode_output(value, script_kind))

    except MemoryError:
        message = ("error", FailureReason.RESOURCE_EXCEEDED.value, "Memory limit exceeded")
    except RecursionError as e:
        message = ("error", FailureReason.RUNTIME_ERROR.value, f"RecursionError: {e}")
    except OutputError as e:
        message = ("error", FailureReason.INVALID_OUTPUT.value, str(e))
    except WorkerEnvironmentError as e:
        message = ("error", FailureReason.RUNTIME_ERROR.value, f"Sandbox failure: {e}")
    except Exception as e:
        message = ("error", FailureReason.RUNTIME_ERROR.value, f"{type(e).__name__}: {e}"[:MAX_MESSAGE_LENGTH])

    try:
        conn.send(message)
    except MemoryError:
        os._exit(EXIT_MEMORY)
    except (TypeError, ValueError, OSError) as e:
        conn.send(("error", FailureReason.RUNTIME_ERROR.value, f"Could not report result: {e}"))
    finally:
        conn.close()

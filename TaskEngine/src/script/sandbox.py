"""Sandbox executor - runs generator/solution scripts safely

Responsibility: execution only. Validation belongs to ScriptValidator,
batching to VariantGenerator.

Every call gets a fresh worker process:
- restricted globals (see runtime.py), nothing else reachable
- wall-clock timeout enforced by the parent (terminate -> kill -> join)
- memory ceiling + CPU rlimit applied inside the worker
- a fixed PYTHONHASHSEED, so set order is the same after a restart
- the outcome comes back as JSON text over a pipe

The executor never raises: every problem becomes a failed ExecutionResult.
"""

import contextlib
import json
import logging
import math
import multiprocessing
import os
import threading
import time
from typing import Any, Dict, Optional, Union

from ..config import DEFAULT_CONFIG, SandboxConfig
from ..errors import ScriptCompileError
from ..models.enums import FailureReason, ScriptKind
from ..models.script import ExecutionResult
from .compiler import CompiledScript, compile_cached
from .validator import ScriptValidator
from .worker import EXIT_MEMORY, check_json_value, OutputError, run_script

logger = logging.getLogger(__name__)

ScriptInput = Union[str, CompiledScript]

# os.environ is process-wide; worker starts that pin it are serialised
_START_LOCK = threading.Lock()


def _default_start_method() -> str:
    methods = multiprocessing.get_all_start_methods()
    return "forkserver" if "forkserver" in methods else "spawn"


@contextlib.contextmanager
def _pinned_hash_seed(hash_seed: int):
    """Start interpreters (spawned workers, the fork server) with a fixed PYTHONHASHSEED

    Hash randomization changes str hashing and therefore set iteration
    order, so without it the same (script, variant_index, seed) could
    produce different output after a restart.
    """
    with _START_LOCK:
        previous = os.environ.get("PYTHONHASHSEED")
        os.environ["PYTHONHASHSEED"] = str(hash_seed)
        try:
            yield
        finally:
            if previous is None:
                os.environ.pop("PYTHONHASHSEED", None)
            else:
                os.environ["PYTHONHASHSEED"] = previous


class SandboxExecutor:
    """Safe script execution environment

    Responsibilities:
    - run one script call per disposable worker process
    - enforce timeout and memory ceiling
    - convert every outcome into an ExecutionResult

    Not responsible for:
    - batching variants (VariantGenerator)
    - grading (AnswerComparator)

    Instances are immutable after construction, so concurrent callers with
    different budgets use different executors and cannot interfere.

    Example:
        executor = SandboxExecutor(timeout_seconds=2)

        result = executor.execute_generator(
            "return {'x': rng.randint(1, 10)}",
            variant_index=0,
            seed=12345,
        )

        if result.success:
            print(f"Input: {result.data}")
        else:
            print(f"{result.error_type.value}: {result.error}")
    """

    def __init__(
        self,
        timeout_seconds: Optional[float] = None,
        memory_limit_mb: Optional[int] = None,
        config: Optional[SandboxConfig] = None,
        validator: Optional[ScriptValidator] = None,
    ):
        """
        Args:
            timeout_seconds: wall-clock budget per call (seconds)
            memory_limit_mb: memory ceiling per call (MB)
            config: SandboxConfig (explicit arguments win)
            validator: ScriptValidator applied to raw source text
        """
        _config = config or DEFAULT_CONFIG.sandbox

        self._timeout_seconds = float(timeout_seconds if timeout_seconds is not None else _config.timeout_seconds)
        self._memory_limit_mb = memory_limit_mb if memory_limit_mb is not None else _config.memory_limit_mb
        self._validate_scripts = _config.validate_scripts
        self._kill_grace_seconds = _config.kill_grace_seconds
        self._hash_seed = _config.hash_seed
        self._context = multiprocessing.get_context(_config.start_method or _default_start_method())
        if self._context.get_start_method() == "forkserver":
            # only effective before the fork server starts; later calls are no-ops
            self._context.set_forkserver_preload([run_script.__module__])
        elif self._context.get_start_method() == "fork":
            logger.warning("⚠️ fork start method inherits the host hash seed; set order in scripts may vary between restarts")
        self._validator = validator or ScriptValidator()

        if self._timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")

    @property
    def timeout_seconds(self) -> float:
        return self._timeout_seconds

    @property
    def memory_limit_mb(self) -> int:
        return self._memory_limit_mb

    # =========================================================================
    # Public API
    # =========================================================================

    def execute_generator(
        self,
        script: ScriptInput,
        variant_index: int = 0,
        seed: Optional[int] = None,
    ) -> ExecutionResult:
        """Run a generator script

        Args:
            script: source text or CompiledScript (kind=generator)
            variant_index: index of the variant being generated (>= 0)
            seed: batch seed; None = non-deterministic randomness

        Returns:
            ExecutionResult whose data is the input_data object
        """
        if isinstance(variant_index, bool) or not isinstance(variant_index, int) or variant_index < 0:
            return ExecutionResult.failure(
                FailureReason.RUNTIME_ERROR, f"variant_index must be a non-negative integer, got {variant_index!r}"
            )
        if seed is not None and (isinstance(seed, bool) or not isinstance(seed, int)):
            return ExecutionResult.failure(FailureReason.RUNTIME_ERROR, f"seed must be an integer or None, got {seed!r}")

        return self._execute(
            script,
            ScriptKind.GENERATOR,
            {"variant_index": variant_index, "seed": seed},
        )

    def execute_solution(self, script: ScriptInput, input_data: Dict[str, Any]) -> ExecutionResult:
        """Run a solution script

        Args:
            script: source text or CompiledScript (kind=solution)
            input_data: JSON object produced by the generator

        Returns:
            ExecutionResult whose data is the solution (object or number)
        """
        try:
            check_json_value(input_data, "input_data")
        except OutputError as e:
            return ExecutionResult.failure(FailureReason.INVALID_OUTPUT, str(e))
        if not isinstance(input_data, dict):
            return ExecutionResult.failure(
                FailureReason.INVALID_OUTPUT, f"input_data must be an object, got {type(input_data).__name__}"
            )

        return self._execute(script, ScriptKind.SOLUTION, {"input_data": input_data})

    def prepare(self, script: ScriptInput, kind: Union[ScriptKind, str]) -> Union[CompiledScript, ExecutionResult]:
        """Source text -> CompiledScript, or a failed ExecutionResult

        Lets batch callers validate + compile once and reuse the handle.
        """
        kind = ScriptKind(kind)
        if isinstance(script, CompiledScript):
            if script.kind != kind:
                return ExecutionResult.failure(
                    FailureReason.RUNTIME_ERROR, f"expected a {kind.value} script, got a {script.kind.value} script"
                )
            return script

        if not isinstance(script, str):
            return ExecutionResult.failure(FailureReason.SYNTAX_ERROR, "script must be source text")

        if self._validate_scripts:
            validation = self._validator.validate(script, kind=kind)
            if not validation.is_valid:
                return ExecutionResult.failure(
                    validation.first_issue_kind or FailureReason.SECURITY_VIOLATION,
                    "; ".join(validation.errors),
                )

        try:
            return compile_cached(script, kind)
        except ScriptCompileError as e:
            reason = FailureReason.SYNTAX_ERROR if e.syntax else FailureReason.SECURITY_VIOLATION
            return ExecutionResult.failure(reason, str(e))

    # =========================================================================
    # Internals
    # =========================================================================

    def _execute(self, script: ScriptInput, kind: ScriptKind, arguments: Dict[str, Any]) -> ExecutionResult:
        start_time = time.monotonic()

        prepared = self.prepare(script, kind)
        if isinstance(prepared, ExecutionResult):
            logger.warning(f"🚫 {kind.value} script rejected: {prepared.error}")
            return prepared

        logger.info(f"⚙️ Executing {kind.value} script {prepared.digest} in sandbox...")
        logger.debug(f"   Source preview: {prepared.source[:100]}{'...' if len(prepared.source) > 100 else ''}")

        try:
            result = self._run_in_worker(prepared, arguments, start_time)
        except Exception as e:  # noqa: BLE001 - host-side failure starting/reading the worker
            logger.exception("❌ Sandbox worker failed")
            result = ExecutionResult.failure(FailureReason.RUNTIME_ERROR, f"Sandbox failure: {type(e).__name__}: {e}")

        result.execution_time_ms = (time.monotonic() - start_time) * 1000

        if result.success:
            logger.info(f"✅ {kind.value} script finished ({result.execution_time_ms:.1f}ms)")
        else:
            logger.error(f"❌ {kind.value} script failed [{result.error_type.value}]: {result.error}")
        return result

    def _run_in_worker(
        self,
        compiled: CompiledScript,
        arguments: Dict[str, Any],
        start_time: float,
    ) -> ExecutionResult:
        """Spawn the worker, wait for its report, always reap it"""
        receiver, sender = self._context.Pipe(duplex=False)
        process = self._context.Process(
            target=run_script,
            args=(
                compiled.code,
                compiled.kind.value,
                compiled.entry_point,
                arguments,
                self._memory_limit_mb,
                math.ceil(self._timeout_seconds) + 1,
                self._hash_seed,
                sender,
            ),
            daemon=True,
        )

        finished = False
        try:
            with _pinned_hash_seed(self._hash_seed):
                process.start()
            sender.close()

            remaining = self._timeout_seconds - (time.monotonic() - start_time)
            if not receiver.poll(max(remaining, 0)):
                logger.error(f"⏰ Execution timed out after {self._timeout_seconds}s")
                return ExecutionResult.failure(
                    FailureReason.TIMEOUT,
                    f"Execution timed out after {self._timeout_seconds} seconds",
                )

            finished = True
            try:
                message = receiver.recv()
            except EOFError:
                process.join(self._kill_grace_seconds)
                return self._from_exit_code(process.exitcode)

            return self._from_message(message)
        finally:
            self._reap(process, finished)
            receiver.close()

    def _reap(self, process, finished: bool) -> None:
        """(join) -> terminate -> kill -> join, then release the process handle"""
        if finished and process.is_alive():
            process.join(self._kill_grace_seconds)
        if process.is_alive():
            process.terminate()
            process.join(self._kill_grace_seconds)
        if process.is_alive():
            process.kill()
            process.join()
        process.close()

    def _from_message(self, message) -> ExecutionResult:
        if message[0] == "ok":
            return ExecutionResult(success=True, data=json.loads(message[1]))
        _, reason, text = message
        return ExecutionResult.failure(FailureReason(reason), text)

    def _from_exit_code(self, exitcode: Optional[int]) -> ExecutionResult:
        """Worker died without reporting"""
        if exitcode == EXIT_MEMORY or (exitcode is not None and exitcode < 0):
            return ExecutionResult.failure(
                FailureReason.RESOURCE_EXCEEDED,
                f"Worker was stopped by a resource limit (exit code {exitcode})",
            )
        return ExecutionResult.failure(
            FailureReason.RUNTIME_ERROR,
            f"Worker exited without a result (exit code {exitcode})",
        )

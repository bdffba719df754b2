"""Variant generator - materializes a template into N immutable variants

For each index i: generator(i, seed) -> input_data, solution(input_data)
-> solution, hash(solution). All or nothing.
"""

import logging
import os
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Dict, Optional, Tuple, Union

from ..config import DEFAULT_CONFIG, VariantConfig
from ..models.enums import FailureReason, ScriptKind
from ..models.script import ExecutionResult
from ..models.variant import MaterializationResult, Variant
from ..script.compiler import CompiledScript
from ..script.sandbox import SandboxExecutor
from .hashing import solution_hash

logger = logging.getLogger(__name__)

# how often the batch loop looks at the cancel event (seconds)
_POLL_INTERVAL = 0.05


class _VariantFailure(Exception):
    def __init__(self, index: int, result: ExecutionResult, stage: str):
        self.index = index
        self.result = result
        self.stage = stage
        super().__init__(f"{stage} failed at variant {index}: {result.error}")


def default_seed() -> int:
    """Batch seed derived from the current time (ms)"""
    return int(time.time() * 1000)


class VariantGenerator:
    """Batch materialization on a bounded thread pool

    Each iteration is independent (own worker processes, no shared state),
    so iterations run concurrently; the result is ordered by index.

    On the first failure, iterations with a higher index that have not
    started are cancelled; lower indices still run so the reported index
    is the lowest failing one regardless of completion order.

    Example:
        generator = VariantGenerator(SandboxExecutor(timeout_seconds=2))
        result = generator.materialize(template, count=5, seed=42)

        if result.success:
            store.replace(assignment_id, result.variants)
        else:
            print(f"Variant {result.failed_index}: {result.error}")
    """

    def __init__(
        self,
        executor: Optional[SandboxExecutor] = None,
        max_workers: Optional[int] = None,
        config: Optional[VariantConfig] = None,
    ):
        """
        Args:
            executor: SandboxExecutor used for every script call
            max_workers: pool size (default: config, then CPU count)
            config: VariantConfig
        """
        _config = config or DEFAULT_CONFIG.variants

        self.executor = executor or SandboxExecutor()
        self.max_workers = max_workers or _config.max_workers or os.cpu_count() or 1

    def materialize(
        self,
        template,
        count: int,
        seed: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> MaterializationResult:
        """Generate `count` variants from a template

        Args:
            template: anything with `generator_script` and `solution_script`
                (source text or CompiledScript)
            count: number of variants (>= 1)
            seed: batch seed (None = derived from the current time)
            cancel_event: set it to abort the batch

        Returns:
            MaterializationResult with all variants, or none and the failure

        Cancellation returns at once with a CANCELLED result. Iterations that
        already started are not interrupted: their workers run on in the
        background until they finish or hit the executor's timeout, and
        nothing they produce is returned.
        """
        start_time = time.monotonic()

        if isinstance(count, bool) or not isinstance(count, int) or count < 1:
            return MaterializationResult(
                success=False,
                seed=seed,
                error=f"count must be a positive integer, got {count!r}",
                error_type=FailureReason.RUNTIME_ERROR,
            )
        if seed is None:
            seed = default_seed()

        logger.info(f"🧬 Materializing {count} variants (seed={seed}, workers={self.max_workers})")

        prepared = self._prepare_scripts(template)
        if isinstance(prepared, MaterializationResult):
            prepared.seed = seed
            return prepared
        generator_script, solution_script = prepared

        result = self._run_batch(generator_script, solution_script, count, seed, cancel_event)
        result.execution_time_ms = (time.monotonic() - start_time) * 1000

        if result.success:
            logger.info(f"✅ Materialized {count} variants ({result.execution_time_ms:.1f}ms)")
        else:
            logger.error(f"❌ Materialization failed at index {result.failed_index} [{result.error_type.value}]: {result.error}")
        return result

    # =========================================================================
    # Internals
    # =========================================================================

    def _prepare_scripts(self, template) -> Union[Tuple[CompiledScript, CompiledScript], MaterializationResult]:
        """Validate + compile both scripts once for the whole batch"""
        handles = []
        for kind, source in (
            (ScriptKind.GENERATOR, template.generator_script),
            (ScriptKind.SOLUTION, template.solution_script),
        ):
            prepared = self.executor.prepare(source, kind)
            if isinstance(prepared, ExecutionResult):
                return MaterializationResult(
                    success=False,
                    error=f"{kind.value} script: {prepared.error}",
                    error_type=prepared.error_type,
                )
            handles.append(prepared)
        return handles[0], handles[1]

    def _build_variant(
        self,
        generator_script: CompiledScript,
        solution_script: CompiledScript,
        index: int,
        seed: int,
    ) -> Variant:
        generated = self.executor.execute_generator(generator_script, index, seed)
        if not generated.success:
            raise _VariantFailure(index, generated, "generator")

        solved = self.executor.execute_solution(solution_script, generated.data)
        if not solved.success:
            raise _VariantFailure(index, solved, "solution")

        return Variant(
            variant_index=index,
            input_data=generated.data,
            solution=solved.data,
            solution_hash=solution_hash(solved.data),
        )

    def _run_batch(
        self,
        generator_script: CompiledScript,
        solution_script: CompiledScript,
        count: int,
        seed: int,
        cancel_event: Optional[threading.Event],
    ) -> MaterializationResult:
        variants: Dict[int, Variant] = {}
        failures: Dict[int, _VariantFailure] = {}

        pool = ThreadPoolExecutor(max_workers=min(self.max_workers, count), thread_name_prefix="variant")
        try:
            futures: Dict[Future, int] = {
                pool.submit(self._build_variant, generator_script, solution_script, i, seed): i
                for i in range(count)
            }
            pending = set(futures)

            while pending:
                if cancel_event is not None and cancel_event.is_set():
                    for future in pending:
                        future.cancel()
                    logger.warning(f"🛑 Materialization cancelled ({len(variants)}/{count} done)")
                    return MaterializationResult(
                        success=False,
                        seed=seed,
                        error="Materialization cancelled",
                        error_type=FailureReason.CANCELLED,
                    )

                done, pending = wait(pending, timeout=_POLL_INTERVAL, return_when=FIRST_COMPLETED)
                for future in done:
                    index = futures[future]
                    if future.cancelled():
                        continue
                    try:
                        variants[index] = future.result()
                    except _VariantFailure as failure:
                        failures[index] = failure
                        self._cancel_above(futures, pending, index)
                    except Exception as e:  # noqa: BLE001 - e.g. hashing a malformed result
                        failures[index] = _VariantFailure(
                            index,
                            ExecutionResult.failure(FailureReason.RUNTIME_ERROR, f"{type(e).__name__}: {e}"),
                            "variant",
                        )
                        self._cancel_above(futures, pending, index)
                pending = {f for f in pending if not f.cancelled()}
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        if failures:
            first = failures[min(failures)]
            return MaterializationResult(
                success=False,
                seed=seed,
                failed_index=first.index,
                error=f"{first.stage} script: {first.result.error}",
                error_type=first.result.error_type,
            )

        return MaterializationResult(
            success=True,
            seed=seed,
            variants=[variants[i] for i in range(count)],
        )

    @staticmethod
    def _cancel_above(futures: Dict[Future, int], pending, index: int) -> None:
        """Cancel not-yet-started iterations with a higher index"""
        for future in pending:
            if futures[future] > index:
                future.cancel()

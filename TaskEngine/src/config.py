"""TaskEngine Configuration

Central configuration management for TaskEngine.
Includes settings for script validation, the Sandbox, variant generation
and grading.
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from dotenv import load_dotenv


# =============================================================================
# Script Configuration
# =============================================================================

@dataclass(frozen=True)
class SandboxConfig:
    """Sandbox execution settings"""

    timeout_seconds: float = 5.0
    """Wall-clock budget per script execution (seconds)"""

    memory_limit_mb: int = 128
    """Memory ceiling on top of the worker's baseline (MB, POSIX only)"""

    start_method: Optional[str] = None
    """multiprocessing start method (None = forkserver if available, else spawn)"""

    validate_scripts: bool = True
    """Run the ScriptValidator before executing raw source text"""

    kill_grace_seconds: float = 1.0
    """How long a terminated worker gets before it is killed"""

    hash_seed: int = 0
    """PYTHONHASHSEED of worker interpreters (pins str hashing and set order)"""


@dataclass(frozen=True)
class ValidatorConfig:
    """Script validation settings"""

    forbidden_patterns: List[Tuple[str, str]] = field(default_factory=lambda: [
        # dynamic module loading
        (r"\bimport\b", "module import"),
        (r"\b__import__\b", "__import__ function"),
        (r"\bimportlib\b", "importlib module"),
        # dynamic code evaluation
        (r"\beval\s*\(", "eval function"),
        (r"\bexec\s*\(", "exec function"),
        (r"\bcompile\s*\(", "compile function"),
        (r"\bglobals\s*\(", "globals function"),
        (r"\blocals\s*\(", "locals function"),
        (r"\bvars\s*\(", "vars function"),
        (r"\b__builtins__\b", "builtins access"),
        (r"__\w+__", "dunder attribute access"),
        (r"\bbreakpoint\s*\(", "breakpoint function"),
        (r"\binput\s*\(", "input function"),
        # process / OS / filesystem
        (r"\bos\.", "os module access"),
        (r"\bsys\.", "sys module access"),
        (r"\bopen\s*\(", "open function"),
        (r"\bshutil\b", "shutil module"),
        (r"\bpathlib\b", "pathlib module"),
        # network
        (r"\bsocket\b", "socket library"),
        (r"\burllib\b", "urllib library"),
        (r"\brequests\.", "requests library"),
        (r"\bhttpx?\.", "http library"),
        # timers
        (r"\btime\.sleep\b", "sleep call"),
        (r"\bthreading\b", "threading module"),
        (r"\basyncio\b", "asyncio module"),
        (r"\bsignal\.", "signal module"),
        # child processes
        (r"\bsubprocess\b", "subprocess module"),
        (r"\bmultiprocessing\b", "multiprocessing module"),
        (r"\bPopen\b", "process spawning"),
        (r"\bfork\s*\(", "process forking"),
    ])
    """Forbidden patterns (regex, description)"""

    max_script_length: int = 10_000
    """Scripts longer than this (characters) get a warning"""


# =============================================================================
# Variant / Grading Configuration
# =============================================================================

@dataclass(frozen=True)
class VariantConfig:
    """Variant materialization settings"""

    max_workers: Optional[int] = None
    """Worker threads per batch (None = os.cpu_count())"""


@dataclass(frozen=True)
class GradingConfig:
    """Grading defaults"""

    default_tolerance: float = 0.001
    """Tolerance used when a template does not set one"""

    default_tolerance_type: str = "absolute"
    """absolute | relative | percentage"""

    late_penalty_per_day: float = 0.1
    """Fraction of the score lost per started day of lateness"""

    max_late_penalty: float = 0.9
    """Upper bound of the late penalty"""


@dataclass(frozen=True)
class TaskEngineConfig:
    """TaskEngine combined settings"""

    sandbox: SandboxConfig = field(default_factory=SandboxConfig)
    validator: ValidatorConfig = field(default_factory=ValidatorConfig)
    variants: VariantConfig = field(default_factory=VariantConfig)
    grading: GradingConfig = field(default_factory=GradingConfig)

    debug_mode: bool = False
    """Debug mode (verbose logging of script previews)"""


# ═══════════════════════════════════════════════════════════════════════════
# Default instance
# ═══════════════════════════════════════════════════════════════════════════

DEFAULT_CONFIG = TaskEngineConfig()
"""Default settings - import and use"""


def get_config() -> TaskEngineConfig:
    """Return the default configuration"""
    return DEFAULT_CONFIG


def create_config(
    timeout_seconds: float = None,
    memory_limit_mb: int = None,
    max_workers: int = None,
    debug_mode: bool = None,
    **kwargs
) -> TaskEngineConfig:
    """Build a custom configuration

    Unknown keyword arguments are routed to whichever section declares them.

    Example:
        config = create_config(timeout_seconds=2, memory_limit_mb=64)
    """
    def _pick(section_cls, **explicit):
        values = {k: v for k, v in kwargs.items() if k in section_cls.__dataclass_fields__}
        values.update({k: v for k, v in explicit.items() if v is not None})
        return section_cls(**values)

    return TaskEngineConfig(
        sandbox=_pick(SandboxConfig, timeout_seconds=timeout_seconds, memory_limit_mb=memory_limit_mb),
        validator=_pick(ValidatorConfig),
        variants=_pick(VariantConfig, max_workers=max_workers),
        grading=_pick(GradingConfig),
        debug_mode=debug_mode if debug_mode is not None else DEFAULT_CONFIG.debug_mode,
    )


def load_config_from_env() -> TaskEngineConfig:
    """Build a configuration from TASKENGINE_* environment variables (.env aware)"""
    load_dotenv()

    def _get(name: str, cast):
        raw = os.getenv(f"TASKENGINE_{name}")
        return cast(raw) if raw not in (None, "") else None

    return create_config(
        timeout_seconds=_get("SANDBOX_TIMEOUT_SECONDS", float),
        memory_limit_mb=_get("SANDBOX_MEMORY_LIMIT_MB", int),
        max_workers=_get("VARIANT_MAX_WORKERS", int),
        debug_mode=_get("DEBUG", lambda v: v.lower() == "true"),
        **{
            k: v for k, v in {
                "start_method": _get("SANDBOX_START_METHOD", str),
                "default_tolerance": _get("DEFAULT_TOLERANCE", float),
                "default_tolerance_type": _get("DEFAULT_TOLERANCE_TYPE", str),
                "late_penalty_per_day": _get("LATE_PENALTY_PER_DAY", float),
            }.items() if v is not None
        },
    )

"""Script Module

Validation, compilation and sandboxed execution of instructor scripts.

Components:
- ScriptValidator: static security checks (never executes)
- compile_script / CompiledScript: restricted compilation, reusable handle
- SandboxExecutor: per-call worker process with timeout + memory ceiling
- ScriptRandom: seeded random source passed to scripts as `rng`
"""

from .validator import ScriptValidator
from .compiler import CompiledScript, compile_script, wrap_script
from .runtime import ScriptRandom, derive_seed
from .sandbox import SandboxExecutor

__all__ = [
    "ScriptValidator",
    "CompiledScript",
    "compile_script",
    "wrap_script",
    "ScriptRandom",
    "derive_seed",
    "SandboxExecutor",
]

"""Script compiler - function-body wrapping + restricted compilation

Responsibility: turn instructor source text into a reusable CompiledScript.
Validation lives in ScriptValidator, execution in SandboxExecutor.

A script is a function *body*. It is wrapped into a named function whose
parameters are the declared call parameters:

    generator:  def generate(variant_index, seed, rng): <body>
    solution:   def solve(input_data, rng): <body>
"""

import ast
import hashlib
import logging
import marshal
import re
import textwrap
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Tuple, Union

from RestrictedPython import compile_restricted_exec

from ..errors import ScriptCompileError
from ..models.enums import ScriptKind

logger = logging.getLogger(__name__)


ENTRY_POINTS = {
    ScriptKind.GENERATOR: ("generate", ("variant_index", "seed", "rng")),
    ScriptKind.SOLUTION: ("solve", ("input_data", "rng")),
}

# wrapped line N == script line N - 1 (the def header)
WRAPPER_LINE_OFFSET = 1

_LINE_PREFIX = re.compile(r"^Line (\d+):")


@dataclass(frozen=True)
class CompiledScript:
    """Validated, compiled script handle

    Produced once per script and reused for every execution.
    The bytecode is stored marshalled so the handle can be shipped
    to a worker process with any start method.
    """

    kind: ScriptKind
    source: str
    code: bytes = field(repr=False)
    entry_point: str
    parameters: Tuple[str, ...]
    warnings: Tuple[str, ...] = ()

    @property
    def digest(self) -> str:
        """Short SHA-256 of the source (for logs)"""
        return hashlib.sha256(self.source.encode("utf-8")).hexdigest()[:12]

    def load(self):
        """Unmarshal the module code object"""
        return marshal.loads(self.code)


def wrap_script(source: str, kind: Union[ScriptKind, str]) -> str:
    """Wrap a function body into its entry-point definition"""
    kind = ScriptKind(kind)
    entry_point, parameters = ENTRY_POINTS[kind]
    body = textwrap.dedent(source.expandtabs(4)).rstrip()
    header = f"def {entry_point}({', '.join(parameters)}):\n"
    return header + textwrap.indent(body, "    ") + "\n"


def script_line(wrapped_line: int) -> int:
    """Map a line number of the wrapped source back to the script"""
    return max(1, wrapped_line - WRAPPER_LINE_OFFSET)


def _renumber(message: str) -> str:
    match = _LINE_PREFIX.match(message)
    if not match:
        return message
    return f"Line {script_line(int(match.group(1)))}:" + message[match.end():]


def parse_script(source: str, kind: Union[ScriptKind, str]) -> ast.Module:
    """Parse the wrapped script, raising ScriptCompileError(syntax=True)"""
    if not source or not source.strip():
        raise ScriptCompileError(["Empty script"], syntax=True)

    try:
        return ast.parse(wrap_script(source, kind))
    except SyntaxError as e:
        line = script_line(e.lineno or 1)
        raise ScriptCompileError([f"Line {line}: {e.msg}"], syntax=True) from e


def compile_script(source: str, kind: Union[ScriptKind, str]) -> CompiledScript:
    """Compile a script body with RestrictedPython

    Raises:
        ScriptCompileError: syntax error (syntax=True) or policy rejection
    """
    kind = ScriptKind(kind)
    parse_script(source, kind)

    entry_point, parameters = ENTRY_POINTS[kind]
    result = compile_restricted_exec(wrap_script(source, kind), filename=f"<{kind.value}>")

    if result.errors:
        messages: List[str] = [_renumber(m) for m in result.errors]
        logger.debug(f"Restricted compile rejected {kind.value} script: {messages}")
        raise ScriptCompileError(messages)

    compiled = CompiledScript(
        kind=kind,
        source=source,
        code=marshal.dumps(result.code),
        entry_point=entry_point,
        parameters=parameters,
        warnings=tuple(_renumber(w) for w in result.warnings),
    )
    logger.debug(f"Compiled {kind.value} script {compiled.digest}")
    return compiled


@lru_cache(maxsize=256)
def compile_cached(source: str, kind: ScriptKind) -> CompiledScript:
    """compile_script with a process-wide cache keyed by (source, kind)"""
    return compile_script(source, kind)

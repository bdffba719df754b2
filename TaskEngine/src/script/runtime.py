"""Script runtime - capability surface of a sandboxed script

Builds the globals a compiled script runs against. Nothing outside this
namespace is reachable: RestrictedPython rewrites attribute, item and
iteration access into the guard functions installed here, and underscore
names are rejected at compile time.

Exposed to scripts:
- numeric primitives: sin, cos, tan, asin, acos, atan, atan2, sqrt, pow,
  abs, round, floor, ceil, min, max, PI, E
- namespaces: Math (primitives + random), math, JSON (dumps, loads)
- geometry helpers: calculate_distance, calculate_angle (radians, atan2)
- generate_random(min, max) drawing from the call's rng; isnan, isfinite
- dates: datetime, date, timedelta
- safe builtins (int, float, len, range, sorted, ...)
- the declared call parameters, including the explicit `rng`
"""

import datetime as _datetime
import hashlib
import json
import math
import operator
import random
from types import MappingProxyType, SimpleNamespace
from typing import Any, Dict, Optional, Sequence

from RestrictedPython.Eval import default_guarded_getitem, default_guarded_getiter
from RestrictedPython.Guards import (
    full_write_guard,
    guarded_iter_unpack_sequence,
    guarded_unpack_sequence,
    safe_builtins,
    safer_getattr,
)
from RestrictedPython.PrintCollector import PrintCollector


# =============================================================================
# Deterministic randomness
# =============================================================================

def derive_seed(*parts: Any) -> int:
    """Stable 64-bit seed from arbitrary parts (independent of PYTHONHASHSEED)"""
    material = ":".join(str(p) for p in parts).encode("utf-8")
    return int.from_bytes(hashlib.sha256(material).digest()[:8], "big")


class ScriptRandom:
    """Pseudo-random source handed to scripts as the `rng` parameter

    Seeded explicitly; with seed=None it draws entropy from the OS.
    The wrapped generator is private, so scripts can only call the
    public sampling methods below.

    Example:
        rng = ScriptRandom(derive_seed(12345, 0))
        x = rng.uniform(-500, 500)
    """

    def __init__(self, seed: Optional[int] = None):
        self._rng = random.Random(seed)

    def random(self) -> float:
        """Float in [0, 1)"""
        return self._rng.random()

    def uniform(self, a: float, b: float) -> float:
        return self._rng.uniform(a, b)

    def randint(self, a: int, b: int) -> int:
        """Integer in [a, b] (both inclusive)"""
        return self._rng.randint(a, b)

    def choice(self, seq: Sequence):
        return self._rng.choice(seq)

    def sample(self, population: Sequence, k: int) -> list:
        return self._rng.sample(list(population), k)

    def shuffled(self, seq: Sequence) -> list:
        """Shuffled copy (the input is left alone)"""
        items = list(seq)
        self._rng.shuffle(items)
        return items

    def gauss(self, mu: float = 0.0, sigma: float = 1.0) -> float:
        return self._rng.gauss(mu, sigma)


def generator_random(seed: Optional[int], variant_index: int) -> ScriptRandom:
    """rng for a generator call: a pure function of (seed, variant_index)"""
    if seed is None:
        return ScriptRandom()
    return ScriptRandom(derive_seed("generator", seed, variant_index))


def solution_random(input_data: Any) -> ScriptRandom:
    """rng for a solution call: a pure function of the input data"""
    canonical = json.dumps(input_data, sort_keys=True, separators=(",", ":"), default=str)
    return ScriptRandom(derive_seed("solution", canonical))


# =============================================================================
# Guards
# =============================================================================

_INPLACE_OPERATORS = MappingProxyType({
    "+=": operator.iadd,
    "-=": operator.isub,
    "*=": operator.imul,
    "/=": operator.itruediv,
    "//=": operator.ifloordiv,
    "%=": operator.imod,
    "**=": operator.ipow,
    "<<=": operator.ilshift,
    ">>=": operator.irshift,
    "&=": operator.iand,
    "|=": operator.ior,
    "^=": operator.ixor,
})


def _inplacevar(op: str, target, value):
    """`x += y` on plain names"""
    fn = _INPLACE_OPERATORS.get(op)
    if fn is None:
        raise SyntaxError(f"Augmented assignment {op} is not allowed")
    return fn(target, value)


def _apply(fn, *args, **kwargs):
    """Calls with *args / **kwargs"""
    return fn(*args, **kwargs)


# =============================================================================
# Namespaces
# =============================================================================

def calculate_distance(x1: float, y1: float, x2: float, y2: float) -> float:
    """Distance between (x1, y1) and (x2, y2)"""
    return math.hypot(x2 - x1, y2 - y1)


def calculate_angle(x1: float, y1: float, x2: float, y2: float) -> float:
    """Direction from (x1, y1) to (x2, y2) in radians, atan2(dy, dx)"""
    return math.atan2(y2 - y1, x2 - x1)


_PRIMITIVES = {
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
    "asin": math.asin,
    "acos": math.acos,
    "atan": math.atan,
    "atan2": math.atan2,
    "sqrt": math.sqrt,
    "pow": pow,
    "abs": abs,
    "round": round,
    "floor": math.floor,
    "ceil": math.ceil,
    "min": min,
    "max": max,
    "PI": math.pi,
    "E": math.e,
}

_HELPERS = {
    "calculate_distance": calculate_distance,
    "calculate_angle": calculate_angle,
    "isnan": math.isnan,
    "isfinite": math.isfinite,
}

_MATH_NAMES = (
    "acos", "acosh", "asin", "asinh", "atan", "atan2", "atanh", "ceil", "comb",
    "copysign", "cos", "cosh", "degrees", "dist", "e", "exp", "fabs", "factorial",
    "floor", "fmod", "fsum", "gcd", "hypot", "inf", "isclose", "isfinite", "isinf",
    "isnan", "log", "log10", "log2", "nan", "perm", "pi", "prod", "radians",
    "sin", "sinh", "sqrt", "tan", "tanh", "tau", "trunc",
)

_EXTRA_BUILTINS = {
    "list": list,
    "dict": dict,
    "set": set,
    "frozenset": frozenset,
    "sum": sum,
    "min": min,
    "max": max,
    "enumerate": enumerate,
    "map": map,
    "filter": filter,
    "reversed": reversed,
    "all": all,
    "any": any,
    "getattr": safer_getattr,
}


def _math_namespace() -> SimpleNamespace:
    return SimpleNamespace(**{name: getattr(math, name) for name in _MATH_NAMES if hasattr(math, name)})


def _safe_builtins() -> Dict[str, Any]:
    builtins = dict(safe_builtins)
    builtins.update(_EXTRA_BUILTINS)
    return builtins


def build_script_globals(rng: ScriptRandom) -> Dict[str, Any]:
    """Fresh globals for one script execution

    Args:
        rng: random source bound to Math.random and generate_random

    Returns:
        dict suitable for exec() of a RestrictedPython code object
    """
    math_api = SimpleNamespace(random=rng.random, **{
        k: v for k, v in _PRIMITIVES.items() if k not in ("PI", "E")
    })
    math_api.PI = math.pi
    math_api.E = math.e

    def generate_random(low=0, high=1):
        """Float in [low, high)"""
        return rng.random() * (high - low) + low

    script_globals = {
        "__builtins__": _safe_builtins(),
        "__name__": "script",
        "__metaclass__": type,
        # RestrictedPython guards
        "_getattr_": safer_getattr,
        "_getitem_": default_guarded_getitem,
        "_getiter_": default_guarded_getiter,
        "_write_": full_write_guard,
        "_iter_unpack_sequence_": guarded_iter_unpack_sequence,
        "_unpack_sequence_": guarded_unpack_sequence,
        "_inplacevar_": _inplacevar,
        "_apply_": _apply,
        "_print_": PrintCollector,
        # numeric surface
        **_PRIMITIVES,
        **_HELPERS,
        "generate_random": generate_random,
        "Math": math_api,
        "math": _math_namespace(),
        "JSON": SimpleNamespace(dumps=json.dumps, loads=json.loads),
        "datetime": _datetime.datetime,
        "date": _datetime.date,
        "timedelta": _datetime.timedelta,
    }
    return script_globals

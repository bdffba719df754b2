"""Variant models"""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import FailureReason

Solution = Union[Dict[str, Any], int, float]


def _read_only(self, *args, **kwargs):
    raise TypeError(f"{type(self).__name__} is read-only")


class FrozenDict(dict):
    """JSON object that cannot be changed in place

    Copies (copy, deepcopy, pickle) come back as plain dicts.
    """

    __slots__ = ()

    __setitem__ = __delitem__ = __ior__ = _read_only
    clear = pop = popitem = setdefault = update = _read_only

    def __reduce_ex__(self, protocol):
        return dict, (dict(self),)

    def __deepcopy__(self, memo):
        return thaw_json(self)


class FrozenList(list):
    """JSON array that cannot be changed in place"""

    __slots__ = ()

    __setitem__ = __delitem__ = __iadd__ = __imul__ = _read_only
    append = extend = insert = pop = remove = clear = sort = reverse = _read_only

    def __reduce_ex__(self, protocol):
        return list, (list(self),)

    def __deepcopy__(self, memo):
        return thaw_json(self)


def freeze_json(value: Any) -> Any:
    """Read-only deep copy of a JSON value"""
    if isinstance(value, dict):
        return FrozenDict((k, freeze_json(v)) for k, v in value.items())
    if isinstance(value, (list, tuple)):
        return FrozenList(freeze_json(v) for v in value)
    return value


def thaw_json(value: Any) -> Any:
    """Plain, mutable deep copy of a JSON value"""
    if isinstance(value, dict):
        return {k: thaw_json(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [thaw_json(v) for v in value]
    return value


class Variant(BaseModel):
    """One materialized task instance (immutable)

    input_data and solution are stored read-only, so the solution hash
    cannot be invalidated by mutating them in place.

    Example:
        variant = Variant(
            variant_index=0,
            input_data={"x1": 12.5, "y1": -3.0, "x2": 40.0, "y2": 17.25},
            solution={"distance": 34.1},
            solution_hash="9f2c..."
        )
    """

    model_config = ConfigDict(frozen=True)

    variant_index: int = Field(ge=0)
    """Unique within its assignment; equals the generation index"""

    input_data: Dict[str, Any]
    """Generator output"""

    solution: Solution
    """Solution output (object of named fields, or a single number)"""

    solution_hash: str
    """Lowercase SHA-256 hex of the canonical JSON of `solution`"""

    @field_validator('input_data', 'solution')
    @classmethod
    def _freeze(cls, v):
        return freeze_json(v)

    def verify(self) -> bool:
        """True if solution_hash still matches the solution"""
        from ..variants.hashing import solution_hash

        return solution_hash(self.solution) == self.solution_hash

    def learner_payload(self) -> Dict[str, Any]:
        """Learner-facing view: no solution, no hash"""
        return {
            "variant_index": self.variant_index,
            "input_data": thaw_json(self.input_data),
        }


class MaterializationResult(BaseModel):
    """Materialization result (VariantGenerator -> Assignment)

    Either every variant of the batch, or none plus the failing index.

    Example (failure):
        result = MaterializationResult(
            success=False,
            seed=1734431200123,
            failed_index=3,
            error="ZeroDivisionError: float division by zero",
            error_type=FailureReason.RUNTIME_ERROR
        )
    """

    success: bool

    seed: Optional[int] = None
    """Seed used for the whole batch (reported so it can be reproduced)"""

    variants: List[Variant] = Field(default_factory=list)
    """Ordered by variant_index; empty on failure"""

    failed_index: Optional[int] = None
    """Lowest failing variant index (None for batch-level failures)"""

    error: Optional[str] = None
    error_type: Optional[FailureReason] = None

    execution_time_ms: Optional[float] = None

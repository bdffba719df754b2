"""Solution hashing

solution_hash = sha256(canonical JSON).hexdigest()
Canonical JSON: sorted keys, compact separators, UTF-8, no NaN/Infinity.
"""

import hashlib
import json
from typing import Any


def canonical_json(value: Any) -> str:
    """Deterministic JSON text for hashing and seeding"""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, allow_nan=False)


def solution_hash(solution: Any) -> str:
    """Lowercase hex SHA-256 of the canonical JSON of a solution"""
    return hashlib.sha256(canonical_json(solution).encode("utf-8")).hexdigest()

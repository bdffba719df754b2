"""
Variants Module

Materialization of templates into immutable variant sets.

Components:
- VariantGenerator: batch generator + solution execution
- InMemoryVariantStore: atomic whole-set persistence
- solution_hash: integrity digest of a solution
"""

from ..models.variant import MaterializationResult, Variant
from .generator import VariantGenerator, default_seed
from .hashing import canonical_json, solution_hash
from .store import InMemoryVariantStore, get_variant_store, reset_global_store

__all__ = [
    "Variant",
    "MaterializationResult",
    "VariantGenerator",
    "default_seed",
    "canonical_json",
    "solution_hash",
    "InMemoryVariantStore",
    "get_variant_store",
    "reset_global_store",
]

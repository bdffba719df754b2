# TaskEngine/src/variants/store.py
"""
Variant Store

Holds the materialized variant set of each assignment.
A set is written in one step and replaced in one step; readers see
either the old complete set or the new complete set, never a mix.
"""

import logging
import threading
from typing import Any, Dict, Iterable, Optional, Tuple

from ..errors import VariantNotFoundError
from ..models.variant import Variant

logger = logging.getLogger(__name__)


class InMemoryVariantStore:
    """
    In-memory store for variant sets, keyed by assignment id.

    Features:
    - Whole-set replacement under a lock (no partial writes)
    - Immutable tuples handed out to readers
    - Lookup by (assignment_id, variant_index)

    Usage:
        store = InMemoryVariantStore()

        # Persist a fully materialized batch
        store.replace("assignment-1", variants)

        # Read
        variant = store.get_variant("assignment-1", 3)
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._sets: Dict[Any, Tuple[Variant, ...]] = {}

        logger.debug("InMemoryVariantStore initialized")

    def replace(self, assignment_id: Any, variants: Iterable[Variant]) -> Tuple[Variant, ...]:
        """
        Swap the assignment's whole variant set.

        Args:
            assignment_id: Owner of the set
            variants: Complete, successfully materialized batch

        Returns:
            The stored (ordered, immutable) set

        Raises:
            ValueError: if indices are not exactly 0..n-1
        """
        ordered = tuple(sorted(variants, key=lambda v: v.variant_index))
        expected = list(range(len(ordered)))
        if [v.variant_index for v in ordered] != expected:
            raise ValueError(f"Variant indices must be 0..{len(ordered) - 1} without gaps or duplicates")

        with self._lock:
            previous = self._sets.get(assignment_id)
            self._sets[assignment_id] = ordered

        logger.info(
            f"💾 Stored {len(ordered)} variants for assignment {assignment_id}"
            + (f" (replaced {len(previous)})" if previous is not None else "")
        )
        return ordered

    def get_variants(self, assignment_id: Any) -> Tuple[Variant, ...]:
        """Current set (empty tuple if never materialized)"""
        with self._lock:
            return self._sets.get(assignment_id, ())

    def get_variant(self, assignment_id: Any, variant_index: int) -> Variant:
        """
        Get one variant.

        Raises:
            VariantNotFoundError: no such index for the assignment
        """
        variants = self.get_variants(assignment_id)
        if isinstance(variant_index, bool) or not isinstance(variant_index, int) or not 0 <= variant_index < len(variants):
            raise VariantNotFoundError(f"Variant {variant_index} not found for assignment {assignment_id}")
        return variants[variant_index]

    def find_variant(self, assignment_id: Any, variant_index: int) -> Optional[Variant]:
        """get_variant without raising"""
        try:
            return self.get_variant(assignment_id, variant_index)
        except VariantNotFoundError:
            return None

    def delete(self, assignment_id: Any) -> int:
        """
        Drop an assignment's set.

        Returns:
            Number of variants removed
        """
        with self._lock:
            removed = self._sets.pop(assignment_id, ())
        if removed:
            logger.info(f"Deleted {len(removed)} variants for assignment {assignment_id}")
        return len(removed)

    def clear(self) -> int:
        """
        Clear all stored sets.

        Returns:
            Number of assignments cleared
        """
        with self._lock:
            count = len(self._sets)
            self._sets.clear()
        logger.info(f"Cleared variant sets of {count} assignments")
        return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._sets)

    def __contains__(self, assignment_id: Any) -> bool:
        with self._lock:
            return assignment_id in self._sets


# Global store instance
_global_store: Optional[InMemoryVariantStore] = None


def get_variant_store() -> InMemoryVariantStore:
    """
    Get the global variant store.

    Creates one if it doesn't exist.
    """
    global _global_store
    if _global_store is None:
        _global_store = InMemoryVariantStore()
    return _global_store


def reset_global_store() -> None:
    """Reset the global store (for testing)"""
    global _global_store
    _global_store = None

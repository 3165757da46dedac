"""Shared collection utilities.

Order-preserving dedupe used for photo galleries and endpoint candidates.
"""
from __future__ import annotations

from typing import Callable, Hashable, Iterable, List, Optional, TypeVar

__all__ = ["dedupe"]

T = TypeVar("T")


def dedupe(
    items: Iterable[T],
    key_fn: Optional[Callable[[T], Hashable]] = None,
    limit: Optional[int] = None,
) -> List[T]:
    """Remove duplicates while preserving first-seen order.

    Args:
        items: Items to deduplicate.
        key_fn: Optional function to extract a hashable key from each item.
                If None, uses the item itself as the key.
        limit: Stop once this many unique items were collected.

    Examples:
        dedupe([1, 2, 2, 3, 1]) -> [1, 2, 3]
        dedupe([1, 2, 2, 3, 1], limit=2) -> [1, 2]
    """
    if key_fn is None:
        def _identity(x: T) -> Hashable:
            return x  # type: ignore[return-value]
        key_fn = _identity

    seen: set[Hashable] = set()
    result: List[T] = []
    if limit is not None and limit <= 0:
        return result
    for item in items:
        key = key_fn(item)
        if key in seen:
            continue
        seen.add(key)
        result.append(item)
        if limit is not None and len(result) >= limit:
            break
    return result


"""Multi-key sort comparator.

Orders documents by an ordered list of sort keys, falling through to the
next key on ties.
"""

from __future__ import annotations

import functools
from collections.abc import Mapping, Sequence
from typing import Any

from ..core.errors import InvalidArgumentError
from ..core.types import Document, SortSpec


def normalize_sort(sort: SortSpec | None) -> dict[str, int]:
    """Return ``sort`` as an ordered ``{field: direction}`` mapping.

    Accepts a mapping or a sequence of ``(field, direction)`` pairs.
    Positive directions sort ascending, negative ones descending.

    Raises:
        InvalidArgumentError: If a direction is zero or not an integer
    """
    if not sort:
        return {}
    if isinstance(sort, Mapping):
        items = list(sort.items())
    elif isinstance(sort, Sequence) and not isinstance(sort, str):
        try:
            items = [(field, direction) for field, direction in sort]
        except (TypeError, ValueError) as e:
            raise InvalidArgumentError(f"sort must contain (field, direction) pairs: {e}") from e
    else:
        raise InvalidArgumentError(f"sort must be a mapping or a list of pairs, got {type(sort).__name__}")

    normalized: dict[str, int] = {}
    for field, direction in items:
        if isinstance(direction, bool) or not isinstance(direction, int) or direction == 0:
            raise InvalidArgumentError(f"sort direction for {field!r} must be a non-zero int, got {direction!r}")
        normalized[field] = direction
    return normalized


def compare(a: Document, b: Document, sort: Mapping[str, int], keys: Sequence[str], key_index: int = 0) -> int:
    """Compare two documents on ``keys[key_index:]``.

    Returns -1, 0 or 1. A key where both values are equal (or cannot be
    ordered against each other) defers to the next key; 0 once keys are
    exhausted.
    """
    if key_index >= len(keys):
        return 0

    key = keys[key_index]
    order = _compare_values(a.get(key), b.get(key))
    if order == 0:
        return compare(a, b, sort, keys, key_index + 1)
    return order if sort[key] > 0 else -order


def sort_documents(documents: Sequence[Document], sort: SortSpec | None) -> list[Document]:
    """Return ``documents`` fully sorted by ``sort``; stable on ties."""
    order = normalize_sort(sort)
    if not order:
        return list(documents)
    keys = list(order)
    return sorted(documents, key=functools.cmp_to_key(lambda a, b: compare(a, b, order, keys)))


def _compare_values(left: Any, right: Any) -> int:
    # None and missing fields sort before any present value
    if left is None or right is None:
        if left is None and right is None:
            return 0
        return -1 if left is None else 1
    try:
        if left > right:
            return 1
        if left < right:
            return -1
    except TypeError:
        return 0
    return 0

"""Update document application.

An update document is either a full replacement (no ``$`` keys) or a
mapping of modifier operators. ``apply_patch`` is pure: the base document
is never mutated.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any

from ..core.errors import InvalidPatchError
from ..core.types import Document, Query
from .matcher import ConditionKind, compile_query, strict_equal

_NUMBER = (int, float)


def is_modifier_patch(patch: Mapping) -> bool:
    """Return True when ``patch`` uses modifier operators.

    Raises:
        InvalidPatchError: If modifier and plain keys are mixed
    """
    dollar = [isinstance(key, str) and key.startswith("$") for key in patch]
    if any(dollar) and not all(dollar):
        raise InvalidPatchError("update document cannot mix modifier operators and plain fields")
    return bool(dollar) and all(dollar)


def apply_patch(document: Mapping, patch: Mapping, *, is_upsert: bool = False) -> Document:
    """Return the result of applying ``patch`` to ``document``.

    A replacement patch yields a copy of the patch carrying the base
    ``_id`` (if any). ``$setOnInsert`` is applied only when ``is_upsert``.

    Raises:
        InvalidPatchError: If the patch is malformed or a modifier hits a
            field of the wrong type
    """
    if not isinstance(patch, Mapping):
        raise InvalidPatchError(f"update document must be a mapping, got {type(patch).__name__}")

    if not is_modifier_patch(patch):
        result = copy.deepcopy(dict(patch))
        if "_id" in document:
            result["_id"] = document["_id"]
        return result

    result = copy.deepcopy(dict(document))
    for op, changes in patch.items():
        if not isinstance(changes, Mapping):
            raise InvalidPatchError(f"{op} requires a mapping of fields")
        handler = _MODIFIERS.get(op)
        if handler is None:
            raise InvalidPatchError(f"Unsupported update operator: {op}")
        if op == "$setOnInsert" and not is_upsert:
            continue
        for path, value in changes.items():
            handler(result, path, copy.deepcopy(value))
    return result


def upsert_base(query: Query) -> Document:
    """Build the content an upsert starts from.

    Literal and ``$eq`` fields of the query become fields of the new
    document; range and membership conditions do not.
    """
    base: Document = {}
    for predicate in compile_query(query).predicates:
        for condition in predicate.conditions:
            if condition.kind is ConditionKind.EQ:
                deep_set(base, predicate.field, copy.deepcopy(condition.operand))
                break
    return base


# -- Path helpers --

def deep_get(doc: Mapping, dotted_key: str, default: Any = None) -> Any:
    cur: Any = doc
    for part in dotted_key.split("."):
        if isinstance(cur, Mapping) and part in cur:
            cur = cur[part]
        else:
            return default
    return cur


def deep_set(doc: dict, dotted_key: str, value: Any) -> None:
    parts = dotted_key.split(".")
    cur = doc
    for part in parts[:-1]:
        if part not in cur or not isinstance(cur[part], dict):
            cur[part] = {}
        cur = cur[part]
    cur[parts[-1]] = value


def deep_unset(doc: dict, dotted_key: str) -> None:
    parts = dotted_key.split(".")
    cur = doc
    for part in parts[:-1]:
        if part not in cur or not isinstance(cur[part], dict):
            return
        cur = cur[part]
    cur.pop(parts[-1], None)


# -- Modifiers --

def _set(doc: dict, path: str, value: Any) -> None:
    deep_set(doc, path, value)


def _unset(doc: dict, path: str, value: Any) -> None:
    deep_unset(doc, path)


def _numeric(doc: dict, path: str, op: str) -> int | float:
    cur = deep_get(doc, path, 0)
    if isinstance(cur, bool) or not isinstance(cur, _NUMBER):
        raise InvalidPatchError(f"{op} requires a numeric field: {path}")
    return cur


def _inc(doc: dict, path: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, _NUMBER):
        raise InvalidPatchError(f"$inc requires a numeric amount for {path}")
    deep_set(doc, path, _numeric(doc, path, "$inc") + value)


def _mul(doc: dict, path: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, _NUMBER):
        raise InvalidPatchError(f"$mul requires a numeric factor for {path}")
    deep_set(doc, path, _numeric(doc, path, "$mul") * value)


def _min(doc: dict, path: str, value: Any) -> None:
    _bound(doc, path, value, lambda new, cur: new < cur)


def _max(doc: dict, path: str, value: Any) -> None:
    _bound(doc, path, value, lambda new, cur: new > cur)


def _bound(doc: dict, path: str, value: Any, replaces) -> None:
    cur = deep_get(doc, path, None)
    if cur is None:
        deep_set(doc, path, value)
        return
    try:
        if replaces(value, cur):
            deep_set(doc, path, value)
    except TypeError as e:
        raise InvalidPatchError(f"cannot compare {value!r} with field {path}") from e


def _rename(doc: dict, path: str, value: Any) -> None:
    if not isinstance(value, str):
        raise InvalidPatchError(f"$rename target for {path} must be a string")
    sentinel = object()
    cur = deep_get(doc, path, sentinel)
    if cur is sentinel:
        return
    deep_unset(doc, path)
    deep_set(doc, value, cur)


def _array(doc: dict, path: str, op: str) -> list:
    arr = deep_get(doc, path, None)
    if arr is None:
        arr = []
        deep_set(doc, path, arr)
    if not isinstance(arr, list):
        raise InvalidPatchError(f"{op} requires an array field: {path}")
    return arr


def _each(value: Any) -> list:
    if isinstance(value, Mapping) and "$each" in value:
        return list(value["$each"])
    return [value]


def _push(doc: dict, path: str, value: Any) -> None:
    _array(doc, path, "$push").extend(_each(value))


def _add_to_set(doc: dict, path: str, value: Any) -> None:
    arr = _array(doc, path, "$addToSet")
    for item in _each(value):
        if not any(strict_equal(item, existing) for existing in arr):
            arr.append(item)


def _pull(doc: dict, path: str, value: Any) -> None:
    arr = _array(doc, path, "$pull")
    if isinstance(value, Mapping):
        # Operator conditions apply to the element itself
        condition = compile_query({"value": value})
        kept = [item for item in arr if not condition.matches({"value": item})]
    else:
        kept = [item for item in arr if not strict_equal(item, value)]
    deep_set(doc, path, kept)


def _pull_all(doc: dict, path: str, value: Any) -> None:
    if not isinstance(value, (list, tuple)):
        raise InvalidPatchError(f"$pullAll requires a list for {path}")
    arr = _array(doc, path, "$pullAll")
    deep_set(doc, path, [item for item in arr if not any(strict_equal(item, v) for v in value)])


def _pop(doc: dict, path: str, value: Any) -> None:
    arr = _array(doc, path, "$pop")
    if value not in (1, -1) or isinstance(value, bool):
        raise InvalidPatchError("$pop value must be 1 or -1")
    if arr:
        if value == 1:
            arr.pop()
        else:
            arr.pop(0)


_MODIFIERS = {
    "$set": _set,
    "$setOnInsert": _set,
    "$unset": _unset,
    "$inc": _inc,
    "$mul": _mul,
    "$min": _min,
    "$max": _max,
    "$rename": _rename,
    "$push": _push,
    "$addToSet": _add_to_set,
    "$pull": _pull,
    "$pullAll": _pull_all,
    "$pop": _pop,
}

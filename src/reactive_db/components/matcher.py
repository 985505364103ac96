"""Query predicate matcher.

Compiles a MongoDB-style query mapping into per-field predicates and
evaluates them against documents. Matching is AND across fields and AND
across the operators of one field; there is no OR/NOT composition.
"""

from __future__ import annotations

import operator
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..core.errors import InvalidArgumentError

_MISSING = object()

_SEQUENCE_OPERANDS = (list, tuple, set, frozenset)


class ConditionKind(Enum):
    """Tag of a single compiled condition."""

    EQ = "$eq"
    NE = "$ne"
    GT = "$gt"
    GTE = "$gte"
    LT = "$lt"
    LTE = "$lte"
    IN = "$in"
    NIN = "$nin"
    EXISTS = "$exists"
    SUBQUERY = "subquery"


OPERATORS: dict[str, ConditionKind] = {
    kind.value: kind for kind in ConditionKind if kind is not ConditionKind.SUBQUERY
}

_ORDERED: dict[ConditionKind, Callable[[Any, Any], bool]] = {
    ConditionKind.GT: operator.gt,
    ConditionKind.GTE: operator.ge,
    ConditionKind.LT: operator.lt,
    ConditionKind.LTE: operator.le,
}


@dataclass(frozen=True)
class Condition:
    """One operator applied to a field value.

    For ``SUBQUERY`` the operand is a nested ``CompiledQuery`` matched
    against the field value itself.
    """

    kind: ConditionKind
    operand: Any


@dataclass(frozen=True)
class FieldPredicate:
    """All conditions placed on one top-level field."""

    field: str
    conditions: tuple[Condition, ...]
    requires_presence: bool


@dataclass(frozen=True)
class CompiledQuery:
    """A query parsed once, ready to be evaluated against many documents."""

    predicates: tuple[FieldPredicate, ...]

    def matches(self, document: Any) -> bool:
        for predicate in self.predicates:
            value = _lookup(document, predicate.field)
            if value is _MISSING and predicate.requires_presence:
                return False
            for condition in predicate.conditions:
                if not _evaluate(condition, value):
                    return False
        return True


def compile_query(query: Any) -> CompiledQuery:
    """Parse ``query`` into a ``CompiledQuery``.

    A list or tuple is accepted loosely and read as a mapping from
    stringified index to value.

    Raises:
        InvalidArgumentError: If the query is not a mapping, or an
            operator has an operand of the wrong type
    """
    if isinstance(query, CompiledQuery):
        return query
    if isinstance(query, (list, tuple)):
        query = {str(idx): value for idx, value in enumerate(query)}
    if not isinstance(query, Mapping):
        raise InvalidArgumentError(f"query must be a mapping, got {type(query).__name__}")

    return CompiledQuery(tuple(_compile_field(field, sub) for field, sub in query.items()))


def matches(document: Any, query: Any) -> bool:
    """Return True iff ``document`` satisfies every field of ``query``."""
    return compile_query(query).matches(document)


def _compile_field(field: str, sub_query: Any) -> FieldPredicate:
    if not isinstance(sub_query, Mapping):
        # Literal form: a None literal also matches an absent field
        return FieldPredicate(
            field=field,
            conditions=(Condition(ConditionKind.EQ, sub_query),),
            requires_presence=sub_query is not None,
        )

    conditions: list[Condition] = []
    nested: dict[str, Any] = {}
    requires_presence = True

    for key, operand in sub_query.items():
        kind = OPERATORS.get(key)
        if kind is None:
            nested[key] = operand
            continue
        if kind in (ConditionKind.IN, ConditionKind.NIN) and not isinstance(operand, _SEQUENCE_OPERANDS):
            raise InvalidArgumentError(f"{key} requires a list operand, got {type(operand).__name__}")
        if kind is ConditionKind.EXISTS and not operand:
            requires_presence = False
        conditions.append(Condition(kind, operand))

    if nested:
        conditions.append(Condition(ConditionKind.SUBQUERY, compile_query(nested)))

    return FieldPredicate(field=field, conditions=tuple(conditions), requires_presence=requires_presence)


def _lookup(document: Any, field: str) -> Any:
    if isinstance(document, Mapping) and field in document:
        return document[field]
    return _MISSING


def _evaluate(condition: Condition, value: Any) -> bool:
    kind = condition.kind
    operand = condition.operand

    if kind is ConditionKind.EQ:
        return strict_equal(None if value is _MISSING else value, operand)
    if kind is ConditionKind.NE:
        return not strict_equal(None if value is _MISSING else value, operand)
    if kind in _ORDERED:
        if value is _MISSING:
            return False
        try:
            return bool(_ORDERED[kind](value, operand))
        except TypeError:
            return False
    if kind is ConditionKind.IN:
        return value is not _MISSING and _contains(operand, value)
    if kind is ConditionKind.NIN:
        return value is _MISSING or not _contains(operand, value)
    if kind is ConditionKind.EXISTS:
        return (value is not _MISSING) == bool(operand)
    if kind is ConditionKind.SUBQUERY:
        return operand.matches(None if value is _MISSING else value)

    raise AssertionError(f"unhandled condition kind {kind}")


def strict_equal(left: Any, right: Any) -> bool:
    """Equality that never confuses booleans with numbers."""
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    try:
        return bool(left == right)
    except (TypeError, ValueError):
        return False


def _contains(candidates: Any, value: Any) -> bool:
    return any(strict_equal(value, candidate) for candidate in candidates)

"""Field projection applied to query results."""

from __future__ import annotations

from collections.abc import Mapping

from ..core.errors import InvalidArgumentError
from ..core.types import Document, Projection


def project(document: Document, projection: Projection) -> Document:
    """Return a new document holding only the projected fields.

    ``_id`` is kept unless the projection sets it to a falsy value. Any
    other field is kept only when its projection flag is truthy and the
    document has it.
    """
    out: Document = {}
    if projection.get("_id", True) and "_id" in document:
        out["_id"] = document["_id"]
    for field, include in projection.items():
        if field == "_id" or not include:
            continue
        if field in document:
            out[field] = document[field]
    return out


def validate_projection(projection: object) -> None:
    if projection is not None and not isinstance(projection, Mapping):
        raise InvalidArgumentError(f"projection must be a mapping, got {type(projection).__name__}")

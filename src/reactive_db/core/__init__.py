"""Reactive DB core package."""

from .collection import ReactiveCollection
from .database import ReactiveDatabase

__all__ = ["ReactiveCollection", "ReactiveDatabase"]

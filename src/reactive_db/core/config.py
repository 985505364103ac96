"""Configuration for reactive-db.

Defines the tunable parameters shared by a database's collections.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ReactiveConfig:
    """Configuration parameters for reactive collections.

    Attributes:
        notify_delay_ms: Debounce window; pending changes are delivered
            once no mutation has happened for this long
        first_id: First value of the per-collection default ``_id`` counter
        snapshot_documents: Deep-copy ``full_document`` when a change is
            recorded (False hands subscribers the live stored document)
    """

    notify_delay_ms: int = 200
    first_id: int = 0
    snapshot_documents: bool = True

    def __post_init__(self) -> None:
        if self.notify_delay_ms < 0:
            raise ValueError(f"notify_delay_ms must be >= 0, got {self.notify_delay_ms}")
        if self.first_id < 0:
            raise ValueError(f"first_id must be >= 0, got {self.first_id}")

    @property
    def notify_delay_seconds(self) -> float:
        return self.notify_delay_ms / 1000.0

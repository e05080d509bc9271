"""
Published result of a refresh cycle.

A ``UsageSnapshot`` is never mutated after construction. ``SnapshotStore``
holds the latest one and swaps it under a lock; the lock is only held for the
reference swap, never across I/O, so readers never wait on a refresh.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Mapping

from src.models.usage_models import ApplicationConfig, UsageRecord


@dataclass(frozen=True)
class UsageSnapshot:
    """Breach list and joined inputs of one completed refresh."""

    app_ids_passed_limit: tuple[str, ...] = ()
    applications: Mapping[str, ApplicationConfig] = field(
        default_factory=lambda: MappingProxyType({})
    )
    relays: tuple[UsageRecord, ...] = ()
    refreshed_at: datetime | None = None

    @classmethod
    def build(
        cls,
        app_ids_passed_limit: list[str],
        applications: dict[str, ApplicationConfig],
        relays: list[UsageRecord],
        refreshed_at: datetime,
    ) -> "UsageSnapshot":
        return cls(
            app_ids_passed_limit=tuple(app_ids_passed_limit),
            applications=MappingProxyType(dict(applications)),
            relays=tuple(relays),
            refreshed_at=refreshed_at,
        )


EMPTY_SNAPSHOT = UsageSnapshot()


class SnapshotStore:
    """Single-slot, thread-safe holder of the latest snapshot."""

    def __init__(self, initial: UsageSnapshot = EMPTY_SNAPSHOT):
        self._lock = threading.Lock()
        self._snapshot = initial

    def get(self) -> UsageSnapshot:
        with self._lock:
            return self._snapshot

    def publish(self, snapshot: UsageSnapshot) -> None:
        with self._lock:
            self._snapshot = snapshot

    def get_app_ids_passed_limit(self) -> list[str]:
        return list(self.get().app_ids_passed_limit)

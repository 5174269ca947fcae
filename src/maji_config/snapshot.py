"""Immutable configuration snapshots and the store holding the current one."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Iterator, Mapping

from maji_config.values import Value

logger = logging.getLogger(__name__)

__all__ = ["Snapshot", "CacheStore"]


class Snapshot(Mapping[str, Value]):
    """The complete key/value configuration returned by one fetch.

    Snapshots are never mutated. Each refresh produces a new instance
    which replaces the previous one in the :class:`CacheStore`, so a
    reader holding a reference keeps a consistent view.
    """

    __slots__ = ("_data", "_version", "_fetched_at")

    def __init__(
        self,
        data: Mapping[str, Value],
        version: int = 0,
        fetched_at: datetime | None = None,
    ) -> None:
        self._data: Mapping[str, Value] = MappingProxyType(dict(data))
        self._version = version
        self._fetched_at = fetched_at or datetime.now(timezone.utc)

    def __getitem__(self, key: str) -> Value:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"Snapshot(version={self._version}, keys={sorted(self._data)!r})"

    @property
    def version(self) -> int:
        """Install order assigned by the store; 0 until installed."""
        return self._version

    @property
    def fetched_at(self) -> datetime:
        return self._fetched_at

    def with_version(self, version: int) -> Snapshot:
        """Return a copy stamped with ``version``, sharing the same contents."""
        clone = Snapshot.__new__(Snapshot)
        clone._data = self._data
        clone._version = version
        clone._fetched_at = self._fetched_at
        return clone

    def to_dict(self) -> dict[str, Any]:
        """Plain Python values, e.g. for logging or serialisation."""
        return {key: value.to_python() for key, value in self._data.items()}


class CacheStore:
    """Holds the current :class:`Snapshot` reference.

    Thread safety:
        The lock covers only the reference swap. Fetching happens outside
        the store, so writers never hold readers up for a network round
        trip.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._snapshot: Snapshot | None = None
        self._version = 0

    def write(self, snapshot: Snapshot) -> Snapshot:
        """Install ``snapshot`` as current and return it with its new version."""
        with self._lock:
            self._version += 1
            installed = snapshot.with_version(self._version)
            self._snapshot = installed
        logger.debug(
            "Installed snapshot v%d (%d keys)", installed.version, len(installed)
        )
        return installed

    def read(self) -> Snapshot | None:
        """Return the current snapshot, or None before the first write."""
        with self._lock:
            return self._snapshot

    @property
    def version(self) -> int:
        with self._lock:
            return self._version

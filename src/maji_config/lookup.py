"""Tri-state result of reading a key: not ready, found, or not found."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from maji_config.values import Value

__all__ = ["Lookup", "LookupStatus"]


class LookupStatus(str, Enum):
    NOT_READY = "not_ready"
    FOUND = "found"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class Lookup:
    """Outcome of :meth:`Client.lookup`.

    ``value`` is set only when ``status`` is FOUND. A key whose value has
    a different kind than the one asked for is reported as NOT_FOUND.
    """

    status: LookupStatus
    value: Value | None = None

    @classmethod
    def not_ready(cls) -> Lookup:
        return cls(LookupStatus.NOT_READY)

    @classmethod
    def not_found(cls) -> Lookup:
        return cls(LookupStatus.NOT_FOUND)

    @classmethod
    def found(cls, value: Value) -> Lookup:
        return cls(LookupStatus.FOUND, value)

    @property
    def ready(self) -> bool:
        return self.status is not LookupStatus.NOT_READY

    @property
    def is_found(self) -> bool:
        return self.status is LookupStatus.FOUND

    def unwrap(self, default: Any = None) -> Any:
        """The plain Python value if found, else ``default``."""
        if self.value is None:
            return default
        return self.value.to_python()

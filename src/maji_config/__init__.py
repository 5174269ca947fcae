"""maji-config - Polling client for remote key/value configuration."""

from __future__ import annotations

# Core
from maji_config.client import Client, default_error_handler
from maji_config.fetch import Fetcher
from maji_config.lookup import Lookup, LookupStatus
from maji_config.scheduler import RefreshScheduler, SchedulerState
from maji_config.snapshot import CacheStore, Snapshot

# Settings
from maji_config.settings import DEFAULT_HOST, DEFAULT_INTERVAL, ClientSettings

# Transport
from maji_config.transport import HttpxTransport, Transport, TransportResponse

# Values
from maji_config.values import (
    BoolValue,
    ListValue,
    NullValue,
    NumberValue,
    ObjectValue,
    StringValue,
    Value,
    ValueKind,
    decode_snapshot,
)

# Errors
from maji_config.errors import (
    ClientStateError,
    ConfigClientError,
    ConfigError,
    ConfigNotFoundError,
    DecodeError,
    ErrorCodes,
    FetchError,
    NotReadyError,
    StatusError,
    TransportError,
)

# Observability
from maji_config.observability import MetricsCollector

__version__ = "0.1.0"

__all__ = [
    # Core
    "Client",
    "default_error_handler",
    "Fetcher",
    "Lookup",
    "LookupStatus",
    "RefreshScheduler",
    "SchedulerState",
    "CacheStore",
    "Snapshot",
    # Settings
    "ClientSettings",
    "DEFAULT_HOST",
    "DEFAULT_INTERVAL",
    # Transport
    "Transport",
    "TransportResponse",
    "HttpxTransport",
    # Values
    "Value",
    "ValueKind",
    "BoolValue",
    "StringValue",
    "NumberValue",
    "NullValue",
    "ListValue",
    "ObjectValue",
    "decode_snapshot",
    # Errors
    "ErrorCodes",
    "ConfigClientError",
    "ConfigError",
    "ConfigNotFoundError",
    "FetchError",
    "TransportError",
    "StatusError",
    "DecodeError",
    "NotReadyError",
    "ClientStateError",
    # Observability
    "MetricsCollector",
]

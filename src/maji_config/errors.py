"""Error hierarchy for the maji-config client."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

__all__ = [
    "ConfigClientError",
    "ConfigNotFoundError",
    "ConfigError",
    "FetchError",
    "TransportError",
    "StatusError",
    "DecodeError",
    "NotReadyError",
    "ClientStateError",
    "ErrorCodes",
]


class ConfigClientError(Exception):
    """Base error for all maji-config client errors."""

    def __init__(
        self,
        code: str,
        message: str,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details: dict[str, Any] = details or {}
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc).isoformat()

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class ConfigNotFoundError(ConfigClientError):
    """Raised when a settings file cannot be found."""

    def __init__(self, config_path: str, **kwargs: Any) -> None:
        super().__init__(
            code="CONFIG_NOT_FOUND",
            message=f"Configuration file not found: {config_path}",
            details={"config_path": config_path},
            **kwargs,
        )


class ConfigError(ConfigClientError):
    """Raised when client settings are invalid."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        super().__init__(code="CONFIG_INVALID", message=message, **kwargs)


class FetchError(ConfigClientError):
    """Common base for everything that can make a single fetch fail."""


class TransportError(FetchError):
    """Raised when the config host cannot be reached."""

    def __init__(self, url: str, reason: str, **kwargs: Any) -> None:
        super().__init__(
            code="TRANSPORT_ERROR",
            message=f"Request to {url} failed: {reason}",
            details={"url": url, "reason": reason},
            **kwargs,
        )

    @property
    def url(self) -> str:
        """The URL that could not be fetched."""
        return self.details["url"]


class StatusError(FetchError):
    """Raised when the config host answers with anything but 200."""

    def __init__(self, status_code: int, url: str | None = None, **kwargs: Any) -> None:
        super().__init__(
            code="STATUS_ERROR",
            message=f"config: {status_code} response",
            details={"status_code": status_code, "url": url},
            **kwargs,
        )

    @property
    def status_code(self) -> int:
        """The HTTP status code returned by the host."""
        return self.details["status_code"]


class DecodeError(FetchError):
    """Raised when a response body is not a JSON object."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        super().__init__(code="DECODE_ERROR", message=message, **kwargs)


class NotReadyError(ConfigClientError):
    """Raised when a value is read before the first successful fetch."""

    def __init__(self, key: str | None = None, **kwargs: Any) -> None:
        message = "config: not prepared, call start() first"
        if key is not None:
            message = f"config: not prepared, cannot read {key!r} before start()"
        super().__init__(
            code="NOT_READY",
            message=message,
            details={"key": key},
            **kwargs,
        )


class ClientStateError(ConfigClientError):
    """Raised on an illegal lifecycle transition."""

    def __init__(self, current: str, action: str, **kwargs: Any) -> None:
        super().__init__(
            code="CLIENT_STATE_ERROR",
            message=f"Cannot {action} while {current}",
            details={"state": current, "action": action},
            **kwargs,
        )

    @property
    def state(self) -> str:
        """The lifecycle state the transition was attempted from."""
        return self.details["state"]


class ErrorCodes:
    """All client error codes as constants.

    Example:
        if error.code == ErrorCodes.STATUS_ERROR:
            handle_bad_status()
    """

    CONFIG_NOT_FOUND = "CONFIG_NOT_FOUND"
    CONFIG_INVALID = "CONFIG_INVALID"
    TRANSPORT_ERROR = "TRANSPORT_ERROR"
    STATUS_ERROR = "STATUS_ERROR"
    DECODE_ERROR = "DECODE_ERROR"
    NOT_READY = "NOT_READY"
    CLIENT_STATE_ERROR = "CLIENT_STATE_ERROR"

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError("ErrorCodes is immutable")

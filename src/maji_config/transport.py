"""HTTP transport used to reach the config service."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Protocol

import httpx

from maji_config.errors import TransportError

logger = logging.getLogger(__name__)

__all__ = ["Transport", "TransportResponse", "HttpxTransport"]


@dataclass(frozen=True)
class TransportResponse:
    """Raw outcome of one GET: status code and body bytes."""

    status_code: int
    body: bytes


class Transport(Protocol):
    """Performs one authenticated GET.

    Implementations raise :class:`TransportError` when no response could
    be obtained. Non-2xx responses are returned, not raised.
    """

    def get(
        self, url: str, headers: dict[str, str], timeout: float
    ) -> TransportResponse: ...

    def close(self) -> None: ...


class HttpxTransport:
    """Transport backed by a reusable ``httpx.Client``.

    A client passed in is borrowed and left open on :meth:`close`; one
    created here is owned and closed. Redirects are followed and the
    final response is returned.
    """

    def __init__(self, client: httpx.Client | None = None) -> None:
        self._owns_client = client is None
        if client is None:
            client = httpx.Client(follow_redirects=True)
        self._client = client
        self._close_lock = threading.Lock()

    def get(
        self, url: str, headers: dict[str, str], timeout: float
    ) -> TransportResponse:
        try:
            response = self._client.get(
                url, headers=headers, timeout=timeout, follow_redirects=True
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            reason = str(e) or type(e).__name__
            raise TransportError(url=url, reason=reason, cause=e) from e
        return TransportResponse(
            status_code=response.status_code, body=response.content
        )

    def close(self) -> None:
        """Close an owned client. Safe to call more than once, from any thread."""
        if not self._owns_client:
            return
        with self._close_lock:
            if self._client.is_closed:
                return
            self._client.close()
        logger.debug("Closed HTTP client")

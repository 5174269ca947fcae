"""Fetch operation: one authenticated GET turned into a Snapshot."""

from __future__ import annotations

import logging
import time

from maji_config.errors import StatusError
from maji_config.settings import ClientSettings
from maji_config.snapshot import Snapshot
from maji_config.transport import Transport
from maji_config.values import decode_snapshot

logger = logging.getLogger(__name__)

__all__ = ["Fetcher"]


class Fetcher:
    """Retrieves the full configuration from ``{host}/getConfig``.

    There are no retries here. A failure surfaces once, as a
    :class:`~maji_config.errors.FetchError` subclass, and the caller
    decides what to do next.
    """

    def __init__(self, settings: ClientSettings, transport: Transport) -> None:
        self._settings = settings
        self._transport = transport

    def headers(self) -> dict[str, str]:
        return {"authorization": f"bearer {self._settings.api_key.get_secret_value()}"}

    def fetch(self) -> Snapshot:
        """Fetch and decode one snapshot.

        Raises:
            TransportError: If the host could not be reached.
            StatusError: If the status code is not exactly 200.
            DecodeError: If the body is empty or not a JSON object.
        """
        url = self._settings.config_url
        start = time.monotonic()
        timeout = self._settings.effective_timeout
        response = self._transport.get(url, self.headers(), timeout)
        duration_ms = (time.monotonic() - start) * 1000

        logger.debug("GET %s -> %d (%.2fms)", url, response.status_code, duration_ms)

        if response.status_code != 200:
            raise StatusError(response.status_code, url=url)

        data = decode_snapshot(response.body)
        logger.debug("Decoded %d keys from %s", len(data), url)
        return Snapshot(data)

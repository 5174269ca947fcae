"""Shared test fixtures for the config client test suite."""

from __future__ import annotations

from typing import Any

import pytest

from fake_server import TEST_HOST, FakeConfigServer, RecordingErrorHandler
from maji_config.client import Client
from maji_config.transport import HttpxTransport


# === Fixtures ===


@pytest.fixture
def server() -> FakeConfigServer:
    """A fake config service with no responses queued."""
    return FakeConfigServer()


@pytest.fixture
def transport(server: FakeConfigServer):
    """An HttpxTransport wired to the fake server."""
    http_client = server.http_client()
    yield HttpxTransport(http_client)
    http_client.close()


@pytest.fixture
def error_handler() -> RecordingErrorHandler:
    return RecordingErrorHandler()


@pytest.fixture
def make_client(transport: HttpxTransport, error_handler: RecordingErrorHandler):
    """Factory for clients pointed at the fake server. Stops them on teardown."""
    created: list[Client] = []

    def factory(**kwargs: Any) -> Client:
        kwargs.setdefault("host", TEST_HOST)
        kwargs.setdefault("interval", 60.0)
        kwargs.setdefault("error_handler", error_handler)
        kwargs.setdefault("transport", transport)
        client = Client(kwargs.pop("api_key", "XXX"), **kwargs)
        created.append(client)
        return client

    yield factory

    for client in created:
        client.stop()

"""Tests for Client: start/stop, refresh semantics and typed accessors."""

from __future__ import annotations

import logging
import threading
import time

import httpx
import pytest

from maji_config.client import Client, default_error_handler
from maji_config.errors import (
    ClientStateError,
    ConfigError,
    DecodeError,
    NotReadyError,
    StatusError,
    TransportError,
)
from maji_config.lookup import LookupStatus
from maji_config.observability.metrics import MetricsCollector
from maji_config.scheduler import SchedulerState
from maji_config.settings import DEFAULT_HOST, ClientSettings
from maji_config.transport import HttpxTransport
from maji_config.values import BoolValue, NumberValue, StringValue, ValueKind

from fake_server import TEST_HOST, wait_for

MIXED = {
    "str": "hello",
    "true": True,
    "false": False,
    "num": 42,
    "ratio": 0.5,
    "nested": {"a": 1},
}


def owned_transport_client(http_client: httpx.Client, **kwargs) -> Client:
    """A client that owns its transport, with requests routed to ``http_client``."""
    client = Client("XXX", host=TEST_HOST, **kwargs)
    client._transport._client.close()
    client._transport._client = http_client
    return client


class TestNewClient:
    def test_defaults(self):
        c = Client("XXX")
        assert c.settings.host == DEFAULT_HOST
        assert c.settings.api_key.get_secret_value() == "XXX"
        assert c.settings.interval == 5.0
        assert c.error_handler is default_error_handler
        assert c.state is SchedulerState.CREATED
        assert not c.ready
        assert c.snapshot is None
        c.stop()

    def test_missing_api_key(self):
        with pytest.raises(ConfigError):
            Client()

    def test_from_settings(self, transport):
        settings = ClientSettings.create(api_key="k", host=TEST_HOST, interval=1.0)
        c = Client.from_settings(settings, transport=transport)
        assert c.settings is settings

    def test_from_yaml(self, tmp_path, transport):
        path = tmp_path / "maji.yaml"
        path.write_text(f"api_key: abc\nhost: {TEST_HOST}\n")
        c = Client.from_yaml(str(path), transport=transport)
        assert c.settings.host == TEST_HOST

    def test_repr_hides_api_key(self):
        c = Client("super-secret")
        assert "super-secret" not in repr(c)
        c.stop()


class TestStart:
    def test_start_makes_ready(self, server, make_client):
        server.respond_json({"foo": "bar"})
        c = make_client()
        c.start()
        assert c.ready
        assert c.state is SchedulerState.STARTED
        assert c.snapshot.version == 1
        assert server.request_count == 1

    def test_start_sends_api_key(self, server, make_client):
        server.respond_json({})
        make_client(api_key="secret-key").start()
        assert server.requests[0].headers["authorization"] == "bearer secret-key"

    @pytest.mark.parametrize(
        "arrange, error_type",
        [
            (lambda s: s.respond(status_code=400), StatusError),
            (lambda s: s.respond(status_code=200), DecodeError),
            (lambda s: s.respond(status_code=200, content=b"nope"), DecodeError),
            (lambda s: s.fail_connect(), TransportError),
        ],
    )
    def test_failed_first_fetch(self, server, make_client, arrange, error_type):
        arrange(server)
        c = make_client()
        with pytest.raises(error_type):
            c.start()
        assert not c.ready
        assert c.state is SchedulerState.CREATED
        assert c._scheduler is None
        with pytest.raises(NotReadyError):
            c.get_string("foo")

    def test_start_failure_does_not_use_error_handler(
        self, server, make_client, error_handler
    ):
        server.respond(status_code=500)
        with pytest.raises(StatusError):
            make_client().start()
        assert error_handler.errors == []

    def test_start_can_be_retried_after_failure(self, server, make_client):
        server.respond(status_code=503).respond_json({"foo": "bar"})
        c = make_client()
        with pytest.raises(StatusError):
            c.start()
        c.start()
        assert c.get_string("foo") == ("bar", True)

    def test_start_twice(self, server, make_client):
        server.respond_json({})
        c = make_client()
        c.start()
        with pytest.raises(ClientStateError):
            c.start()

    def test_no_restart_after_stop(self, server, make_client):
        server.respond_json({})
        c = make_client()
        c.start()
        c.stop()
        with pytest.raises(ClientStateError):
            c.start()

    def test_context_manager(self, server, make_client):
        server.respond_json({"foo": "bar"})
        with make_client() as c:
            assert c.get_string("foo") == ("bar", True)
        assert c.state is SchedulerState.STOPPED


class TestStop:
    def test_stop_is_idempotent(self, server, make_client):
        server.respond_json({})
        c = make_client()
        c.start()
        c.stop()
        c.stop()
        assert c.state is SchedulerState.STOPPED

    def test_stop_before_start(self, make_client):
        c = make_client()
        c.stop()
        assert c.state is SchedulerState.STOPPED

    def test_values_remain_readable_after_stop(self, server, make_client):
        server.respond_json({"foo": "bar"})
        c = make_client()
        c.start()
        c.stop()
        assert c.get_string("foo") == ("bar", True)

    def test_refresh_after_stop_is_discarded(self, server, make_client, error_handler):
        server.respond_json({"qux": "mux"}).respond_json({"foo": "bar"})
        c = make_client()
        c.start()
        c.stop()
        assert c.refresh() is False
        assert c.get_string("qux") == ("mux", True)
        assert c.get_string("foo") == ("", False)
        assert error_handler.errors == []

    def test_owned_transport_closed_on_stop(self):
        c = Client("XXX")
        c.stop()
        assert c._transport._client.is_closed

    def test_borrowed_transport_left_open(self, server, make_client):
        http_client = server.http_client()
        c = make_client(transport=HttpxTransport(http_client))
        c.stop()
        assert not http_client.is_closed
        http_client.close()

    def test_owned_transport_closed_after_started_stop(self, server):
        server.respond_json({"foo": "bar"})
        c = owned_transport_client(server.http_client(), interval=0.01)
        c.start()
        c.stop()
        assert wait_for(lambda: c._transport._client.is_closed)

    def test_stop_from_error_handler_closes_transport(self, server):
        server.respond_json({"foo": "bar"}).respond(status_code=500)
        holder: dict[str, Client] = {}

        def handler(error: Exception) -> None:
            holder["client"].stop()

        c = owned_transport_client(
            server.http_client(), interval=0.01, error_handler=handler
        )
        holder["client"] = c
        c.start()
        assert wait_for(lambda: c._transport._client.is_closed)
        assert c.state is SchedulerState.STOPPED
        assert c.get_string("foo") == ("bar", True)

    def test_transport_closed_when_in_flight_refresh_outlives_stop(self):
        release = threading.Event()
        in_flight = threading.Event()
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            if len(requests) > 1:
                in_flight.set()
                release.wait(5.0)
            return httpx.Response(200, content=b'{"foo":"bar"}')

        c = owned_transport_client(
            httpx.Client(transport=httpx.MockTransport(handler)),
            interval=0.01,
            request_timeout=0.05,
        )
        c.start()
        assert in_flight.wait(2.0)
        c.stop()
        assert not c._transport._client.is_closed
        release.set()
        assert wait_for(lambda: c._transport._client.is_closed)


class TestRefresh:
    def test_refresh_replaces_snapshot(self, server, make_client):
        server.respond_json({"qux": "mux"}).respond_json({"foo": "bar"})
        c = make_client()
        c.start()
        assert c.get_string("qux") == ("mux", True)

        assert c.refresh() is True
        assert c.get_string("foo") == ("bar", True)
        assert c.get_string("qux") == ("", False)
        assert c.snapshot.version == 2

    def test_refresh_before_start_installs_and_readies(self, server, make_client):
        server.respond_json({"foo": "bar"})
        c = make_client()
        assert c.refresh() is True
        assert c.ready
        assert c.get_string("foo") == ("bar", True)

    def test_failed_refresh_keeps_snapshot(self, server, make_client, error_handler):
        server.respond_json({"foo": "bar"}).respond(status_code=400)
        c = make_client()
        c.start()
        before = c.snapshot

        assert c.refresh() is False
        assert c.snapshot is before
        assert dict(c.snapshot) == {"foo": StringValue("bar")}
        assert c.ready
        assert len(error_handler.errors) == 1
        assert isinstance(error_handler.errors[0], StatusError)

    def test_failed_refresh_before_start_stays_not_ready(
        self, server, make_client, error_handler
    ):
        server.respond(status_code=400)
        c = make_client()
        assert c.refresh() is False
        assert not c.ready
        assert len(error_handler.errors) == 1

    def test_raising_error_handler_is_contained(self, server, make_client, caplog):
        def handler(error: Exception) -> None:
            raise RuntimeError("handler broke")

        server.respond_json({"foo": "bar"}).respond(status_code=500)
        c = make_client(error_handler=handler)
        c.start()
        with caplog.at_level(logging.ERROR, logger="maji_config.client"):
            assert c.refresh() is False
        assert "Error handler raised" in caplog.text
        assert c.get_string("foo") == ("bar", True)

    def test_default_error_handler_logs(self, server, make_client, caplog):
        server.respond_json({}).respond(status_code=502)
        c = make_client(error_handler=default_error_handler)
        c.start()
        with caplog.at_level(logging.ERROR, logger="maji_config.client"):
            c.refresh()
        assert "config error" in caplog.text
        assert "502" in caplog.text


class TestBackgroundRefresh:
    def test_ticks_update_snapshot(self, server, make_client):
        server.respond_json({"qux": "mux"}).respond_json({"foo": "bar"})
        c = make_client(interval=0.01)
        c.start()
        deadline = time.monotonic() + 2.0
        while c.get_string("foo") != ("bar", True) and time.monotonic() < deadline:
            time.sleep(0.005)
        assert c.get_string("foo") == ("bar", True)
        assert c.get_string("qux") == ("", False)

    def test_tick_errors_go_to_handler(self, server, make_client, error_handler):
        server.respond_json({"foo": "bar"}).respond(status_code=400)
        c = make_client(interval=0.01)
        c.start()
        assert error_handler.called.wait(2.0)
        assert isinstance(error_handler.errors[0], StatusError)
        assert c.get_string("foo") == ("bar", True)

    def test_transient_failure_then_recovery(self, server, make_client, error_handler):
        server.respond_json({"v": "1"})
        server.respond(status_code=503).respond_json({"v": "2"})
        c = make_client(interval=0.01)
        c.start()
        deadline = time.monotonic() + 2.0
        while c.get_string("v") != ("2", True) and time.monotonic() < deadline:
            time.sleep(0.005)
        assert c.get_string("v") == ("2", True)
        assert len(error_handler.errors) >= 1

    def test_readers_during_refresh(self, server, make_client):
        server.respond_json({"a": "x", "b": "x"}).respond_json({"a": "y", "b": "y"})
        c = make_client(interval=0.001)
        c.start()
        mismatches: list[tuple] = []
        stop = threading.Event()

        def reader() -> None:
            while not stop.is_set():
                snap = c.snapshot
                if snap["a"] != snap["b"]:
                    mismatches.append((snap["a"], snap["b"]))

        threads = [threading.Thread(target=reader) for _ in range(3)]
        for t in threads:
            t.start()
        time.sleep(0.1)
        stop.set()
        for t in threads:
            t.join()
        assert mismatches == []


class TestAccessors:
    @pytest.fixture
    def client(self, server, make_client) -> Client:
        server.respond_json(MIXED)
        c = make_client()
        c.start()
        return c

    def test_get_boolean(self, client):
        assert client.get_boolean("true") == (True, True)
        assert client.get_boolean("false") == (False, True)
        assert client.get_boolean("str") == (False, False)
        assert client.get_boolean("num") == (False, False)
        assert client.get_boolean("not real") == (False, False)

    def test_get_string(self, client):
        assert client.get_string("str") == ("hello", True)
        assert client.get_string("true") == ("", False)
        assert client.get_string("missing") == ("", False)

    def test_get_number(self, client):
        assert client.get_number("num") == (42, True)
        assert client.get_number("ratio") == (0.5, True)
        assert client.get_number("true") == (0, False)
        assert client.get_number("missing") == (0, False)

    def test_get_value(self, client):
        value, found = client.get_value("nested")
        assert found
        assert value.kind is ValueKind.OBJECT
        assert value.to_python() == {"a": 1}
        assert client.get_value("missing") == (None, False)

    def test_foo_bar_scenario(self, server, make_client):
        server.respond_json({"foo": "bar"})
        c = make_client()
        c.start()
        assert c.get_string("foo") == ("bar", True)
        assert c.get_boolean("foo") == (False, False)

    @pytest.mark.parametrize(
        "accessor", ["get_boolean", "get_string", "get_number", "get_value"]
    )
    def test_accessors_before_ready_raise(self, make_client, accessor):
        c = make_client()
        with pytest.raises(NotReadyError) as exc_info:
            getattr(c, accessor)("foo")
        assert exc_info.value.details["key"] == "foo"


class TestLookup:
    def test_not_ready(self, make_client):
        result = make_client().lookup("foo")
        assert result.status is LookupStatus.NOT_READY
        assert not result.ready
        assert result.unwrap("dflt") == "dflt"

    def test_found_and_not_found(self, server, make_client):
        server.respond_json(MIXED)
        c = make_client()
        c.start()

        found = c.lookup("true")
        assert found.is_found
        assert found.value == BoolValue(True)
        assert found.unwrap() is True

        missing = c.lookup("missing")
        assert missing.status is LookupStatus.NOT_FOUND
        assert missing.ready

    def test_kind_filter(self, server, make_client):
        server.respond_json(MIXED)
        c = make_client()
        c.start()
        assert c.lookup("num", ValueKind.NUMBER).value == NumberValue(42)
        assert c.lookup("num", ValueKind.STRING).status is LookupStatus.NOT_FOUND
        assert c.lookup("str", ValueKind.STRING).unwrap() == "hello"


class TestMetrics:
    def test_start_and_refresh_recorded(self, server, make_client):
        metrics = MetricsCollector()
        server.respond_json({}).respond(status_code=404)
        c = make_client(metrics=metrics)
        c.start()
        c.refresh()

        counters = metrics.snapshot()["counters"]
        assert counters[("maji_config_refresh_total", (("status", "success"),))] == 1
        assert counters[("maji_config_refresh_total", (("status", "error"),))] == 1
        errors = ("maji_config_refresh_errors_total", (("error_code", "STATUS_ERROR"),))
        assert counters[errors] == 1
        histograms = metrics.snapshot()["histograms"]
        assert histograms["counts"][("maji_config_fetch_duration_seconds", ())] == 2

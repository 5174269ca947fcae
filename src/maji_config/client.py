"""Config client: initial fetch, periodic refresh and typed reads."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable

from maji_config.errors import ClientStateError, FetchError, NotReadyError
from maji_config.fetch import Fetcher
from maji_config.lookup import Lookup
from maji_config.observability.metrics import MetricsCollector
from maji_config.scheduler import RefreshScheduler, SchedulerState
from maji_config.settings import DEFAULT_HOST, DEFAULT_INTERVAL, ClientSettings
from maji_config.snapshot import CacheStore, Snapshot
from maji_config.transport import HttpxTransport, Transport
from maji_config.values import BoolValue, NumberValue, StringValue, Value, ValueKind

logger = logging.getLogger(__name__)

__all__ = ["Client", "ErrorHandler", "default_error_handler"]

ErrorHandler = Callable[[Exception], Any]


def default_error_handler(error: Exception) -> None:
    """Log a failed refresh. Without logging configured this lands on stderr."""
    logger.error("config error: %s", error)


class Client:
    """Keeps an in-memory copy of the remote configuration up to date.

    Lifecycle is ``created -> started -> stopped``. :meth:`start` fetches
    once synchronously and then refreshes every ``interval`` seconds on a
    background thread. A failed refresh goes to ``error_handler`` and the
    last good snapshot stays in place.

    Example::

        client = Client("my-api-key")
        client.start()
        enabled, found = client.get_boolean("feature.enabled")
        client.stop()

    Thread safety:
        Accessors may be called from any thread while the background
        refresh runs. Lifecycle methods are serialised internally.
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        host: str = DEFAULT_HOST,
        interval: float = DEFAULT_INTERVAL,
        request_timeout: float | None = None,
        error_handler: ErrorHandler | None = None,
        transport: Transport | None = None,
        metrics: MetricsCollector | None = None,
        settings: ClientSettings | None = None,
    ) -> None:
        """Create a client. Nothing is fetched until :meth:`start`.

        Args:
            api_key: Bearer token for the config service.
            host: Base URL of the config service.
            interval: Seconds between refreshes.
            request_timeout: HTTP deadline; defaults to ``interval``.
            error_handler: Called with each failed refresh's error.
            transport: Custom transport. One backed by httpx is created
                (and closed on stop) when omitted.
            metrics: Optional collector for fetch outcomes and durations.
            settings: Pre-validated settings; overrides the individual
                keyword arguments above.

        Raises:
            ConfigError: If the settings do not validate.
        """
        if settings is None:
            settings = ClientSettings.create(
                api_key=api_key,
                host=host,
                interval=interval,
                request_timeout=request_timeout,
            )
        self._settings = settings
        self.error_handler: ErrorHandler = error_handler or default_error_handler
        self._owns_transport = transport is None
        if transport is None:
            transport = HttpxTransport()
        self._transport: Transport = transport
        self._fetcher = Fetcher(settings, self._transport)
        self._metrics = metrics
        self._store = CacheStore()
        self._ready = False
        self._state = SchedulerState.CREATED
        self._scheduler: RefreshScheduler | None = None
        self._lifecycle_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: ClientSettings, **kwargs: Any) -> Client:
        return cls(settings=settings, **kwargs)

    @classmethod
    def from_yaml(cls, yaml_path: str, **kwargs: Any) -> Client:
        """Create a client from a settings file. See :meth:`ClientSettings.load`."""
        return cls(settings=ClientSettings.load(yaml_path), **kwargs)

    def __repr__(self) -> str:
        return (
            f"Client(host={self._settings.host!r}, "
            f"state={self._state.value}, ready={self._ready})"
        )

    def __enter__(self) -> Client:
        self.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.stop()

    # ----- Lifecycle -----

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def ready(self) -> bool:
        """True once any fetch has succeeded. Never reverts."""
        return self._ready

    @property
    def snapshot(self) -> Snapshot | None:
        """The snapshot readers currently see, or None before readiness."""
        return self._store.read()

    def start(self) -> None:
        """Fetch once, then begin refreshing in the background.

        Raises:
            FetchError: If the initial fetch fails. The client stays
                un-started and not ready, and no thread is created, so
                ``start()`` may be called again.
            ClientStateError: If already started or stopped.
        """
        with self._lifecycle_lock:
            if self._state is not SchedulerState.CREATED:
                raise ClientStateError(current=self._state.value, action="start")

            snapshot = self._timed_fetch()
            installed = self._install(snapshot)

            self._scheduler = RefreshScheduler(
                self._settings.interval,
                self.refresh,
                on_exit=self._transport.close if self._owns_transport else None,
            )
            self._scheduler.start()
            self._state = SchedulerState.STARTED

        logger.info(
            "Config client started: %d keys from %s, refreshing every %ss",
            len(installed),
            self._settings.host,
            self._settings.interval,
        )

    def stop(self, wait: bool = True) -> None:
        """Stop refreshing. Idempotent; a stopped client cannot be restarted.

        A refresh in flight is not interrupted, and its result is
        discarded. With ``wait=True`` this blocks until that refresh
        finishes, for at most one request timeout.
        """
        with self._lifecycle_lock:
            if self._state is SchedulerState.STOPPED:
                return
            self._state = SchedulerState.STOPPED
            scheduler = self._scheduler

        if scheduler is not None:
            scheduler.stop(wait=wait, timeout=self._settings.effective_timeout)
        # A worker still running closes the transport itself on exit.
        if self._owns_transport and (scheduler is None or not scheduler.running):
            self._transport.close()

        logger.info("Config client stopped")

    def refresh(self) -> bool:
        """Fetch once and replace the snapshot on success.

        This is what every background tick runs. Failures are passed to
        ``error_handler`` and never raised; the current snapshot is left
        untouched.

        Returns:
            True if a new snapshot was installed.
        """
        try:
            snapshot = self._timed_fetch()
        except FetchError as e:
            if self._state is SchedulerState.STOPPED:
                logger.debug("Dropping refresh error after stop: %s", e)
                return False
            self._handle_error(e)
            return False

        if self._state is SchedulerState.STOPPED:
            logger.debug("Discarding snapshot fetched after stop")
            return False

        self._install(snapshot)
        return True

    def _timed_fetch(self) -> Snapshot:
        start = time.monotonic()
        try:
            snapshot = self._fetcher.fetch()
        except FetchError as e:
            if self._metrics is not None:
                self._metrics.record_failure(e, time.monotonic() - start)
            raise
        if self._metrics is not None:
            self._metrics.record_success(time.monotonic() - start)
        return snapshot

    def _install(self, snapshot: Snapshot) -> Snapshot:
        installed = self._store.write(snapshot)
        self._ready = True
        return installed

    def _handle_error(self, error: Exception) -> None:
        try:
            self.error_handler(error)
        except Exception:
            logger.exception("Error handler raised while handling %r", error)

    # ----- Typed accessors -----

    def _current(self, key: str) -> Snapshot:
        snapshot = self._store.read()
        if not self._ready or snapshot is None:
            raise NotReadyError(key)
        return snapshot

    def get_value(self, key: str) -> tuple[Value | None, bool]:
        """Return the tagged value for ``key`` and whether it was found.

        Raises:
            NotReadyError: If no fetch has succeeded yet.
        """
        value = self._current(key).get(key)
        return value, value is not None

    def get_boolean(self, key: str) -> tuple[bool, bool]:
        """Return ``(value, True)`` for a boolean key, else ``(False, False)``.

        A key holding a non-boolean value counts as not found.

        Raises:
            NotReadyError: If no fetch has succeeded yet.
        """
        value = self._current(key).get(key)
        if isinstance(value, BoolValue):
            return value.value, True
        return False, False

    def get_string(self, key: str) -> tuple[str, bool]:
        """Return ``(value, True)`` for a string key, else ``("", False)``.

        Raises:
            NotReadyError: If no fetch has succeeded yet.
        """
        value = self._current(key).get(key)
        if isinstance(value, StringValue):
            return value.value, True
        return "", False

    def get_number(self, key: str) -> tuple[int | float, bool]:
        """Return ``(value, True)`` for a numeric key, else ``(0, False)``.

        Booleans are not numbers here.

        Raises:
            NotReadyError: If no fetch has succeeded yet.
        """
        value = self._current(key).get(key)
        if isinstance(value, NumberValue):
            return value.value, True
        return 0, False

    def lookup(self, key: str, kind: ValueKind | None = None) -> Lookup:
        """Read ``key`` without raising.

        Args:
            key: Config key.
            kind: If given, a value of any other kind is reported as not
                found.
        """
        snapshot = self._store.read()
        if not self._ready or snapshot is None:
            return Lookup.not_ready()
        value = snapshot.get(key)
        if value is None or (kind is not None and value.kind is not kind):
            return Lookup.not_found()
        return Lookup.found(value)

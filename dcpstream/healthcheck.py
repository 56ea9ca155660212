"""Periodic cluster health checking."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Protocol

from dcpstream.config import HealthCheckConfig

__all__ = ["HealthCheckError", "HealthCheck"]

_log = logging.getLogger(__name__)


class HealthCheckError(RuntimeError):
    """Raised when every ping attempt of a health check has failed."""


class _Pinger(Protocol):
    def ping(self) -> Any: ...


class HealthCheck:
    """Pings the cluster every ``config.interval`` in a background thread.

    A check retries a failed ping up to ``max_attempts`` times, waiting
    ``retry_interval`` seconds between attempts. When all fail, ``on_failure``
    receives the :class:`HealthCheckError` and checking stops; without a
    callback the error is raised in the background thread.
    """

    max_attempts = 5
    retry_interval = 1.0

    def __init__(
        self,
        config: HealthCheckConfig,
        client: _Pinger,
        on_failure: Callable[[HealthCheckError], None] | None = None,
    ) -> None:
        self._config = config
        self._client = client
        self._on_failure = on_failure
        self._stopped = threading.Event()
        self._lock = threading.Lock()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        """Start checking; later calls do nothing."""
        interval = self._config.interval.total_seconds()
        if interval <= 0:
            raise ValueError("health check interval must be positive")
        with self._lock:
            if self._thread is not None:
                return
            self._thread = threading.Thread(target=self._run, args=(interval,), name="health-check", daemon=True)
            self._thread.start()

    def stop(self) -> None:
        """Stop checking and wait for the background thread to finish."""
        self._stopped.set()
        with self._lock:
            thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()

    def _run(self, interval: float) -> None:
        while not self._stopped.wait(interval):
            try:
                self.perform_check()
            except HealthCheckError as error:
                _log.error("%s", error)
                if self._on_failure is None:
                    raise
                self._on_failure(error)
                return
        _log.info("health check stopped")

    def perform_check(self) -> None:
        """Ping with retries; raise :class:`HealthCheckError` if every attempt fails.

        Returns early, without raising, when the check is stopped while waiting to retry.
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                self._client.ping()
            except Exception as error:
                _log.warning("health check attempt %d/%d failed: %s", attempt, self.max_attempts, error)
                if attempt == self.max_attempts:
                    raise HealthCheckError(
                        f"health check failed after {self.max_attempts} attempts: {error}"
                    ) from error
                if self._stopped.wait(self.retry_interval):
                    _log.info("health check canceled during retry")
                    return
            else:
                _log.debug("health check success")
                return
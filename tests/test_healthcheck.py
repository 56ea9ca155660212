import queue
import threading
from datetime import timedelta

import pytest

from dcpstream.config import HealthCheckConfig
from dcpstream.healthcheck import HealthCheck, HealthCheckError


class MockClient:
    def __init__(self, fail_until=0):
        self.fail_until = fail_until
        self.calls = 0
        self.pings = queue.Queue()
        self._lock = threading.Lock()

    def ping(self):
        with self._lock:
            self.calls += 1
            calls = self.calls
        self.pings.put(calls)
        if calls <= self.fail_until:
            raise RuntimeError("ping failed")
        return {"mgmt": "ok"}


def _config():
    return HealthCheckConfig(interval=timedelta(milliseconds=100))


def _wait_for_pings(client, count, timeout):
    received = []
    for _ in range(count):
        received.append(client.pings.get(timeout=timeout))
    return received


def test_start_stop_pings_repeatedly():
    client = MockClient()
    check = HealthCheck(_config(), client)
    check.start()
    received = _wait_for_pings(client, 3, timeout=2)
    check.stop()
    assert received == [1, 2, 3]
    assert client.calls >= 3


def test_stop_halts_pinging():
    client = MockClient()
    check = HealthCheck(_config(), client)
    check.start()
    _wait_for_pings(client, 1, timeout=2)
    check.stop()
    check.stop()
    calls_after_stop = client.calls
    assert client.pings.get(timeout=0.3) is not None if not client.pings.empty() else True
    assert client.calls == calls_after_stop


def test_ping_failure_then_recovery():
    client = MockClient(fail_until=2)
    failures = []
    check = HealthCheck(_config(), client, on_failure=failures.append)
    check.retry_interval = 0.05
    check.start()
    received = _wait_for_pings(client, 3, timeout=10)
    check.stop()
    assert received == [1, 2, 3]
    assert failures == []


def test_persistent_failure_reports_error():
    client = MockClient(fail_until=1000)
    failures = queue.Queue()
    check = HealthCheck(_config(), client, on_failure=failures.put)
    check.retry_interval = 0.01
    check.start()
    error = failures.get(timeout=10)
    check.stop()
    assert isinstance(error, HealthCheckError)
    assert str(error.__cause__) == "ping failed"
    assert client.calls == 5


def test_perform_check_raises_after_max_attempts():
    client = MockClient(fail_until=1000)
    check = HealthCheck(_config(), client)
    check.retry_interval = 0.01
    with pytest.raises(HealthCheckError, match="5 attempts"):
        check.perform_check()
    assert client.calls == 5


def test_perform_check_stops_retrying_when_stopped():
    client = MockClient(fail_until=1000)
    check = HealthCheck(_config(), client)
    check.stop()
    check.perform_check()
    assert client.calls == 1


def test_perform_check_success_pings_once():
    client = MockClient()
    check = HealthCheck(_config(), client)
    check.perform_check()
    assert client.calls == 1


def test_start_requires_positive_interval():
    check = HealthCheck(HealthCheckConfig(), MockClient())
    with pytest.raises(ValueError, match="positive"):
        check.start()
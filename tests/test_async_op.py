import threading
import time

import pytest

from dcpstream.async_op import AsyncOp


class FakeOp:
    def __init__(self):
        self.cancelled = 0

    def cancel(self):
        self.cancelled += 1


def test_resolved_before_wait_returns_without_cancel():
    op = FakeOp()
    pending = AsyncOp(5)
    pending.resolve()
    pending.wait(op)
    assert op.cancelled == 0


def test_resolved_from_another_thread():
    op = FakeOp()
    pending = AsyncOp(5)
    results = []

    def complete():
        time.sleep(0.05)
        results.append("done")
        pending.resolve()

    worker = threading.Thread(target=complete)
    worker.start()
    pending.wait(op)
    worker.join()
    assert results == ["done"]
    assert op.cancelled == 0


def test_timeout_cancels_operation():
    op = FakeOp()
    pending = AsyncOp(0.05)
    with pytest.raises(TimeoutError):
        pending.wait(op)
    assert op.cancelled == 1


def test_timeout_without_operation_still_raises():
    pending = AsyncOp(0.01)
    with pytest.raises(TimeoutError):
        pending.wait(None)


def test_resolution_after_deadline_reports_timeout():
    op = FakeOp()
    pending = AsyncOp(0.01)
    time.sleep(0.05)
    pending.resolve()
    with pytest.raises(TimeoutError):
        pending.wait(op)
    assert op.cancelled == 0


def test_no_timeout_waits_for_resolution():
    op = FakeOp()
    pending = AsyncOp()
    timer = threading.Timer(0.05, pending.resolve)
    timer.start()
    started = time.monotonic()
    pending.wait(op)
    timer.join()
    assert time.monotonic() - started >= 0.04
    assert op.cancelled == 0
import random
import threading
import time

import pytest

from svcgov.breaker import (
    Breaker,
    BreakerOpenError,
    BreakerTimeoutError,
    ConsecCircuitBreaker,
)


def test_consec_circuit_breaker_sequence():
    count = -1

    def fn():
        nonlocal count
        count += 1
        if 5 <= count < 10:
            return None
        raise ValueError("test error")

    cb = ConsecCircuitBreaker(5, 0.1)

    for i in range(25):
        if i < 5 or 15 <= i < 20:
            with pytest.raises(ValueError, match="test error"):
                cb.call(fn, 0.2)
        elif 5 <= i < 10 or 20 <= i < 25:
            with pytest.raises(BreakerOpenError):
                cb.call(fn, 0.2)
        else:
            assert cb.call(fn, 0.2) is None

        if i == 9:
            time.sleep(0.15)


def test_breaker_error_messages():
    assert str(BreakerOpenError()) == "breaker open"
    assert str(BreakerTimeoutError()) == "breaker time out"


def test_call_returns_value_and_resets():
    cb = ConsecCircuitBreaker(2, 10)
    cb.fail()
    assert cb.failures == 1
    assert cb.call(lambda: 42) == 42
    assert cb.failures == 0


def test_timeout_counts_as_failure():
    cb = ConsecCircuitBreaker(1, 10)

    with pytest.raises(BreakerTimeoutError):
        cb.call(lambda: time.sleep(0.3), 0.05)
    assert cb.failures == 1
    assert cb.ready() is False
    with pytest.raises(BreakerOpenError):
        cb.call(lambda: 1)


def test_manual_fail_and_success():
    cb = ConsecCircuitBreaker(2, 10)
    cb.fail()
    assert cb.ready() is True
    cb.fail()
    assert cb.ready() is False
    cb.success()
    assert cb.ready() is True


def test_is_a_breaker():
    cb = ConsecCircuitBreaker(1, 1)
    assert isinstance(cb, Breaker) and cb.ready() is True


def test_circuit_breaker_race():
    cb = ConsecCircuitBreaker(2, 0.05)
    routines = 4
    loop = 200
    outcomes = []
    unexpected = []
    lock = threading.Lock()

    def fn():
        if random.randint(0, 1) == 1:
            return "done"
        raise ValueError("test error")

    def worker():
        for _ in range(loop):
            try:
                result = cb.call(fn, 0.1)
            except (ValueError, BreakerOpenError, BreakerTimeoutError) as exc:
                result = type(exc).__name__
            except Exception as exc:  # anything else is a bug
                with lock:
                    unexpected.append(exc)
                continue
            with lock:
                outcomes.append(result)

    threads = [threading.Thread(target=worker) for _ in range(routines)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert unexpected == []
    assert len(outcomes) == routines * loop
    assert set(outcomes) <= {
        "done",
        "ValueError",
        "BreakerOpenError",
        "BreakerTimeoutError",
    }
    cb.success()
    assert cb.failures == 0
    assert cb.ready() is True
"""Circuit breakers guarding calls to servers."""

from __future__ import annotations

import abc
import threading
import time
from typing import Any, Callable, TypeVar

T = TypeVar("T")


class BreakerOpenError(Exception):
    """Raised when the breaker is open and refuses calls."""

    def __init__(self, message: str = "breaker open") -> None:
        super().__init__(message)


class BreakerTimeoutError(Exception):
    """Raised when a guarded call does not finish in time."""

    def __init__(self, message: str = "breaker time out") -> None:
        super().__init__(message)


class Breaker(abc.ABC):
    """Interface of a circuit breaker."""

    @abc.abstractmethod
    def call(self, fn: Callable[[], Any], timeout: float = 0) -> Any:
        """Run ``fn`` through the breaker."""

    @abc.abstractmethod
    def fail(self) -> None:
        """Record a failure."""

    @abc.abstractmethod
    def success(self) -> None:
        """Record a success."""

    @abc.abstractmethod
    def ready(self) -> bool:
        """Tell whether the breaker lets calls through."""


def _call_with_timeout(fn: Callable[[], T], timeout: float) -> T:
    finished = threading.Event()
    outcome: dict[str, Any] = {}

    def runner() -> None:
        try:
            outcome["value"] = fn()
        except BaseException as exc:  # handed back to the caller
            outcome["error"] = exc
        finally:
            finished.set()

    threading.Thread(target=runner, daemon=True).start()
    if not finished.wait(timeout):
        raise BreakerTimeoutError()
    if "error" in outcome:
        raise outcome["error"]
    return outcome["value"]


class ConsecCircuitBreaker(Breaker):
    """Sliding-window breaker that opens after consecutive failures.

    The breaker opens once ``failure_threshold`` failures have happened with
    no more than ``window`` seconds between the last failure and the next call;
    once the window has passed it resets and lets calls through again.
    """

    def __init__(self, failure_threshold: int, window: float) -> None:
        self.failure_threshold = failure_threshold
        self.window = window
        self._failures = 0
        self._last_failure = float("-inf")
        self._lock = threading.Lock()

    def call(self, fn: Callable[[], T], timeout: float = 0) -> T:
        """Run ``fn``; raise BreakerOpenError if open, BreakerTimeoutError on timeout.

        Exceptions from ``fn`` count as failures and propagate unchanged.
        """
        if not self.ready():
            raise BreakerOpenError()
        try:
            if timeout:
                result = _call_with_timeout(fn, timeout)
            else:
                result = fn()
        except Exception:
            self.fail()
            raise
        self.success()
        return result

    def ready(self) -> bool:
        with self._lock:
            if time.monotonic() - self._last_failure > self.window:
                self._reset_locked()
                return True
            return self._failures < self.failure_threshold

    def success(self) -> None:
        with self._lock:
            self._reset_locked()

    def fail(self) -> None:
        with self._lock:
            self._failures += 1
            self._last_failure = time.monotonic()

    @property
    def failures(self) -> int:
        """The number of failures counted since the last reset."""
        with self._lock:
            return self._failures

    def _reset_locked(self) -> None:
        self._failures = 0
        self._last_failure = time.monotonic()
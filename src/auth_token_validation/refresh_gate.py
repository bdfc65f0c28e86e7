"""Single-flight coordination for key set refreshes.

This module implements RefreshGate, a thread-safe coordinator that collapses
overlapping refresh requests into one execution. When many requests arrive
with an unknown or expired ``kid`` at the same moment, only the first one
performs the network fetch; every other caller blocks on the same outcome.

This protects against:

1. Thundering-herd fetches when a key rotates under load
2. Outbound request amplification from tokens with random ``kid`` values
3. Races between concurrent refreshes overwriting each other's results
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RefreshGate:
    """Thread-safe single-flight gate for refresh operations.

    At most one operation runs per gate at any time. The in-flight operation
    is represented by a ``concurrent.futures.Future`` held under a lock; it is
    cleared unconditionally before the outcome is published, so the next miss
    after completion starts a fresh operation instead of reusing a stale one.

    Thread Safety:
        All state transitions happen under an internal lock. The operation
        itself runs outside the lock, on the thread of the first caller.

    Cancellation:
        A waiter that stops waiting (timeout) only gives up its own wait. The
        operation keeps running on the leader's thread and other waiters
        still observe its result.

    Attributes:
        _timeout: Default maximum seconds a waiter blocks, or None.
        _lock: Guards ``_in_flight`` and ``_waiting``.
        _in_flight: Future for the running operation, or None when idle.
        _waiting: Number of callers currently joined to ``_in_flight``.
    """

    def __init__(self, timeout: float | None = None) -> None:
        """Initialize the gate.

        Args:
            timeout: Default maximum seconds a joining caller waits for the
                in-flight operation. None waits indefinitely.

        Raises:
            ValueError: If timeout is not positive.
        """
        if timeout is not None and timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")

        self._timeout = timeout
        self._lock = threading.Lock()
        self._in_flight: Future | None = None
        self._waiting: int = 0

    @property
    def in_flight(self) -> bool:
        """True while an operation is running."""
        with self._lock:
            return self._in_flight is not None

    @property
    def waiting(self) -> int:
        """Number of callers blocked on the running operation."""
        with self._lock:
            return self._waiting

    def run(self, operation: Callable[[], T], timeout: float | None = None) -> T:
        """Run ``operation`` unless one is already running, then share its outcome.

        Args:
            operation: Zero-argument callable performing the refresh.
            timeout: Overrides the gate's waiter timeout for this call.

        Returns:
            The operation's return value (the same object for every caller).

        Raises:
            Whatever the operation raised; every overlapping caller sees the
            same exception instance.
            TimeoutError: If this caller joined an in-flight operation and it
                did not finish within the timeout.
        """
        with self._lock:
            future = self._in_flight
            leader = future is None
            if leader:
                future = Future()
                future.set_running_or_notify_cancel()
                self._in_flight = future
            else:
                self._waiting += 1

        if leader:
            return self._lead(future, operation)

        logger.debug("Joining in-flight refresh")
        try:
            return future.result(timeout=timeout if timeout is not None else self._timeout)
        finally:
            with self._lock:
                self._waiting -= 1

    def _lead(self, future: Future, operation: Callable[[], T]) -> T:
        try:
            result = operation()
        except BaseException as e:
            self._clear(future)
            future.set_exception(e)
            raise

        self._clear(future)
        future.set_result(result)
        return result

    def _clear(self, future: Future) -> None:
        # Cleared before the future resolves so woken waiters never see it set.
        with self._lock:
            if self._in_flight is future:
                self._in_flight = None

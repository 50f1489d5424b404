"""Timeout and cancellation helpers for calls that may block."""

from __future__ import annotations

import threading
import time
from concurrent.futures import Executor, TimeoutError as FutureTimeout
from typing import Callable, TypeVar

T = TypeVar("T")


def call_with_timeout(
    fn: Callable[[], T],
    timeout: float | None,
    executor: Executor | None,
    on_timeout: Callable[[], Exception],
) -> T:
    """Run ``fn`` on ``executor`` and wait at most ``timeout`` seconds.

    Without an executor or a timeout the call runs inline. On expiry the
    worker keeps running in the background, the caller gets the exception
    built by ``on_timeout``.
    """
    if executor is None or timeout is None:
        return fn()
    future = executor.submit(fn)
    try:
        return future.result(timeout=timeout)
    except FutureTimeout as exc:
        future.cancel()
        raise on_timeout() from exc


def deadline_after(timeout: float | None) -> float | None:
    """Monotonic deadline for a caller budget of ``timeout`` seconds."""
    return None if timeout is None else time.monotonic() + timeout


def remaining(deadline: float | None) -> float | None:
    """Seconds left before ``deadline``; ``None`` means unbounded."""
    if deadline is None:
        return None
    return max(deadline - time.monotonic(), 0.0)


def is_cancelled(event: threading.Event | None) -> bool:
    return event is not None and event.is_set()


__all__ = ["call_with_timeout", "deadline_after", "remaining", "is_cancelled"]

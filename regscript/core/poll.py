"""
Poll-until-condition helper used in place of fixed propagation delays.
"""

import time
from collections.abc import Callable
from typing import Any


class WaitTimeoutError(TimeoutError):
    """Raised when a polled condition does not hold before the deadline."""

    pass


def wait_until(
    condition: Callable[[], Any],
    *,
    timeout_ms: int,
    interval_ms: int = 250,
    description: str = "condition",
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> Any:
    """
    Call ``condition`` until it returns a truthy value and return that value.

    The condition is always evaluated at least once. Raises WaitTimeoutError
    once ``timeout_ms`` has elapsed without success.
    """
    deadline = clock() + timeout_ms / 1000.0
    interval = max(interval_ms, 1) / 1000.0
    while True:
        value = condition()
        if value:
            return value
        remaining = deadline - clock()
        if remaining <= 0:
            raise WaitTimeoutError(f"Timed out after {timeout_ms}ms waiting for {description}")
        sleep(min(interval, remaining))

"""
Generic poll-until-done loop used to wait on stack operations.
"""

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Generic, Optional, TypeVar

from .models import WaitConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


class WaitCondition(Enum):
    """Why the wait loop stopped."""

    DONE = "done"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class WaitResult(Generic[T]):
    """Last fetched value and the condition the loop stopped on."""

    value: Optional[T]
    condition: WaitCondition
    attempts: int

    @property
    def done(self) -> bool:
        return self.condition == WaitCondition.DONE


def wait_until(
    fetch: Callable[[], T],
    is_done: Callable[[T], bool],
    config: WaitConfig,
    cancel: Optional[threading.Event] = None,
    clock: Callable[[], float] = time.monotonic,
) -> WaitResult[T]:
    """
    Fetch repeatedly until ``is_done`` accepts the result.

    The first fetch happens immediately. Between fetches the loop sleeps
    for ``config.interval`` (never past the deadline) on the ``cancel``
    event, so setting the event wakes it up at once. A fetch that is
    already running is allowed to finish before cancellation is honoured.

    Errors raised by ``fetch`` are not retried and propagate to the caller.

    Args:
        fetch: Returns the current state of the thing being polled
        is_done: Returns True once the state is settled
        config: Timeout and poll interval
        cancel: Event set by whoever wants the wait to stop early
        clock: Monotonic time source in seconds

    Returns:
        WaitResult holding the last fetched value
    """
    cancel = cancel or threading.Event()
    deadline = clock() + config.timeout
    attempts = 0
    value: Optional[T] = None

    if cancel.is_set():
        return WaitResult(value, WaitCondition.CANCELLED, attempts)

    while True:
        value = fetch()
        attempts += 1

        if is_done(value):
            logger.debug("Wait finished after %d attempt(s)", attempts)
            return WaitResult(value, WaitCondition.DONE, attempts)

        if cancel.is_set():
            logger.debug("Wait cancelled after %d attempt(s)", attempts)
            return WaitResult(value, WaitCondition.CANCELLED, attempts)

        remaining = deadline - clock()
        if remaining <= 0:
            logger.debug("Wait timed out after %d attempt(s)", attempts)
            return WaitResult(value, WaitCondition.TIMEOUT, attempts)

        if cancel.wait(min(config.interval, remaining)):
            logger.debug("Wait cancelled during sleep after %d attempt(s)", attempts)
            return WaitResult(value, WaitCondition.CANCELLED, attempts)

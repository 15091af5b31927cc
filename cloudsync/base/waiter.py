"""
Polling for asynchronous provider operations.

Submit-then-poll: the waiter asks the provider for the operation's state
with bounded exponential backoff until it reports ``DONE``, the overall
budget runs out, or the caller sets the cancellation event.
"""

from __future__ import annotations

import threading
import time
from typing import Callable

from cloudsync.base.config import PollingPolicy
from cloudsync.base.exceptions import Cancelled, OperationTimeoutError, ProviderError
from cloudsync.base.logger import ROOT_LOGGER, get_logger
from cloudsync.base.provider import DONE, Operation

logger = get_logger(ROOT_LOGGER)


def operation_error(operation: Operation) -> ProviderError | None:
    """Build a ProviderError from a finished operation's ``error`` block, if any."""
    error = operation.get("error")
    if not error:
        return None
    details = error.get("errors") or []
    message = "\n".join(d.get("message", "") for d in details if d.get("message"))
    code = operation.get("httpErrorStatusCode")
    return ProviderError(message or f"Operation '{operation.get('name')}' failed", code)


class OperationWaiter:
    """Waits for provider operations under a :class:`PollingPolicy`.

    Attributes:
        policy: Backoff intervals and overall timeout.
        cancel_event: Set by the host to abort waiting.
    """

    def __init__(
        self,
        policy: PollingPolicy | None = None,
        cancel_event: threading.Event | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.policy = policy or PollingPolicy()
        self.cancel_event = cancel_event or threading.Event()
        self._clock = clock

    def wait(self, poll: Callable[[Operation], Operation], operation: Operation) -> Operation:
        """Poll *operation* until done.

        Args:
            poll: Fetches the latest state of an operation.
            operation: Handle returned by the submitting call.

        Returns:
            The finished operation.

        Raises:
            ProviderError: The operation finished with an error.
            OperationTimeoutError: The polling budget was exhausted.
            Cancelled: The cancel event was set while waiting.
        """
        name = str(operation.get("name", "<unnamed>"))
        deadline = self._clock() + self.policy.timeout
        intervals = self.policy.intervals()
        current = operation

        while current.get("status") != DONE:
            if self.cancel_event.is_set():
                raise Cancelled(f"Stopped waiting on operation '{name}'")
            remaining = deadline - self._clock()
            if remaining <= 0:
                raise OperationTimeoutError(name, self.policy.timeout)
            delay = min(next(intervals), remaining)
            logger.debug("Operation %s is %s; next poll in %.1fs", name, current.get("status"), delay)
            if self.cancel_event.wait(delay):
                raise Cancelled(f"Stopped waiting on operation '{name}'")
            current = poll(current)

        failure = operation_error(current)
        if failure is not None:
            raise failure
        return current


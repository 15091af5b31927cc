"""
Bounded retries for provider calls.

Only transient failures get another attempt: network errors and provider
errors flagged as transient (5xx, throttling). Rejected requests (4xx)
surface on the first attempt.
"""

from __future__ import annotations

import functools
import time
from typing import Any, Callable

from cloudsync.base.config import RetryPolicy
from cloudsync.base.exceptions import ProviderError
from cloudsync.base.logger import ROOT_LOGGER, get_logger

logger = get_logger(ROOT_LOGGER)


def is_transient(exc: BaseException) -> bool:
    """Return True for failures worth another attempt."""
    if isinstance(exc, ProviderError):
        return exc.transient
    return isinstance(exc, (ConnectionError, TimeoutError))


def _describe(fn: Callable) -> str:
    return getattr(fn, "__qualname__", None) or repr(fn)


def retry(
    policy: RetryPolicy | None = None,
    retry_if: Callable[[BaseException], bool] = is_transient,
    sleep: Callable[[float], None] = time.sleep,
) -> Callable:
    """Decorator: re-run the wrapped call while it fails transiently.

    Args:
        policy: Attempt budget and backoff; defaults to ``RetryPolicy()``.
        retry_if: Decides whether an exception deserves another attempt.
        sleep: Called with each backoff delay.
    """
    policy = policy or RetryPolicy()

    def decorator(fn: Callable) -> Callable:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            delays = policy.delays()
            attempt = 1
            while True:
                try:
                    return fn(*args, **kwargs)
                except Exception as exc:
                    if not retry_if(exc):
                        raise
                    if attempt >= policy.max_attempts:
                        logger.error(
                            "%s still failing after %d attempt(s): %s",
                            _describe(fn), attempt, exc,
                        )
                        raise
                    delay = next(delays)
                    logger.warning(
                        "%s failed on attempt %d/%d (%s); retrying in %.1fs",
                        _describe(fn), attempt, policy.max_attempts, exc, delay,
                    )
                    sleep(delay)
                    attempt += 1

        return wrapper

    return decorator


def call_with_retry(policy: RetryPolicy, fn: Callable, *args: Any, **kwargs: Any) -> Any:
    """Invoke *fn* once under the budget described by *policy*."""
    return retry(policy)(fn)(*args, **kwargs)

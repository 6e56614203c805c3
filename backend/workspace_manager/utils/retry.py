"""Async retry with exponential back-off + jitter for remote API calls.

The sync engine wraps every queued-operation delivery with :func:`async_retry`
so transient failures (dropped connections, 5xx, rate limiting) are absorbed
inside a single drain cycle.  Anything the server rejects outright (4xx other
than 408/429) surfaces immediately and is left to the engine's stuck-head
handling.

```python
policy = RetryPolicy.from_settings(get_settings(validate=False))


@async_retry(policy, retriable=is_retryable_http_exc, provider="sync")
async def push(op): ...
```
"""

from __future__ import annotations

import asyncio
import functools
import random
from dataclasses import dataclass
from typing import Awaitable
from typing import Callable
from typing import ParamSpec
from typing import TypeVar

from workspace_manager.config import Settings
from workspace_manager.config import get_settings
from workspace_manager.metrics import external_api_retry_total
from workspace_manager.utils.log import log

_T = TypeVar("_T")
_P = ParamSpec("_P")

# 408 Request Timeout and 429 Too Many Requests are the only 4xx worth
# repeating verbatim.
_TRANSIENT_4XX = frozenset({408, 429})


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to try and how long to wait in between.

    ``max_attempts`` counts the first try, so ``1`` disables retry.  The n-th
    retry sleeps ``base_delay * 2**(n-1)`` seconds, capped at ``max_delay``,
    with ``±jitter`` relative noise.
    """

    max_attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 8.0
    jitter: float = 0.25

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.sync_max_attempts,
            base_delay=settings.sync_base_delay,
            max_delay=settings.sync_max_delay,
        )

    def delay_for(self, retry_number: int) -> float:
        """Sleep before retry *retry_number* (1-based)."""

        delay = min(self.base_delay * (2 ** (retry_number - 1)), self.max_delay)
        return max(0.0, delay * (1 + random.uniform(-self.jitter, self.jitter)))


def _testing_policy(policy: RetryPolicy) -> RetryPolicy:
    # Same attempt count, near-zero sleeps inside the unit-test harness.
    return RetryPolicy(
        max_attempts=policy.max_attempts,
        base_delay=min(policy.base_delay, 0.01),
        max_delay=min(policy.max_delay, 0.05),
        jitter=policy.jitter,
    )


def async_retry(
    policy: RetryPolicy | None = None,
    *,
    retriable: Callable[[Exception], bool] | None = None,
    provider: str | None = None,
) -> Callable[[Callable[_P, Awaitable[_T]]], Callable[_P, Awaitable[_T]]]:
    """Decorate an *async* function so it is retried according to *policy*.

    *retriable* decides whether an exception is worth another attempt (all
    exceptions by default).  *provider* labels the retry metric.
    """

    policy = policy or RetryPolicy()
    if policy.max_attempts < 1:
        policy = RetryPolicy(1, policy.base_delay, policy.max_delay, policy.jitter)
    if get_settings(validate=False).testing:
        policy = _testing_policy(policy)

    def decorator(fn: Callable[_P, Awaitable[_T]]) -> Callable[_P, Awaitable[_T]]:
        label = provider or fn.__module__

        @functools.wraps(fn)
        async def wrapper(*args: _P.args, **kwargs: _P.kwargs) -> _T:
            attempt = 1
            while True:
                try:
                    return await fn(*args, **kwargs)
                except Exception as exc:
                    if attempt >= policy.max_attempts or (retriable is not None and not retriable(exc)):
                        log.warning(
                            "retry-exhausted",
                            provider=label,
                            function=fn.__name__,
                            attempts=attempt,
                            error=str(exc),
                        )
                        raise

                    sleep_for = policy.delay_for(attempt)
                    log.debug(
                        "retry",
                        provider=label,
                        function=fn.__name__,
                        attempt=attempt,
                        max_attempts=policy.max_attempts,
                        sleep=sleep_for,
                    )
                    external_api_retry_total.labels(label, fn.__name__).inc()
                    await asyncio.sleep(sleep_for)
                    attempt += 1

        return wrapper

    return decorator


def is_retryable_http_exc(exc: Exception) -> bool:
    """Return *True* if *exc* looks like a transient HTTP failure.

    Reads an integer ``status_code`` attribute, as carried by
    :class:`~workspace_manager.client.remote.RemoteError`.  Without one the
    request never got a response (connection refused, timeout) and is retried.
    """

    status = getattr(exc, "status_code", None)
    if status is None:
        return True
    return status in _TRANSIENT_4XX or status >= 500


__all__ = [
    "RetryPolicy",
    "async_retry",
    "is_retryable_http_exc",
]

"""
Retry/Backoff Executor

Drives repeated attempts against a single target. A target is retried while
attempts raise or return a status matching the fallback trigger, sleeping a
capped, growing delay between attempts. Any other result is returned as a
success straight away.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterator, Optional

from virtual_router.config import BackoffSpec, BackoffType, FallbackTrigger
from virtual_router.duration import parse_duration
from virtual_router.policy import ResolvedPolicy

logger = logging.getLogger(__name__)

DEFAULT_INITIAL = "500ms"
DEFAULT_MULTIPLIER = 2.0
DEFAULT_MAX = "30s"

Attempt = Callable[[], Awaitable[Any]]
Sleep = Callable[[float], Awaitable[Any]]


@dataclass
class BackoffResult:
    """Outcome of driving one target; ``ok`` is False once retries are exhausted"""
    ok: bool
    result: Any = None
    last_status: Optional[int] = None
    last_error: Optional[BaseException] = None
    attempts: int = 0


def should_fallback_status(status: int, fallback_on: FallbackTrigger) -> bool:
    return fallback_on.matches(status)


def status_of(result: Any) -> Optional[int]:
    """HTTP status of an attempt result (``status_code`` attribute), if it carries one"""
    status = getattr(result, "status_code", None)
    return status if isinstance(status, int) else None


def backoff_delays(backoff: Optional[BackoffSpec]) -> Iterator[float]:
    """
    Endless sequence of retry delays in milliseconds

    exponential multiplies by ``multiplier`` each step, linear adds ``initial``
    each step, fixed repeats ``initial``. Every delay is capped at ``max``.
    """
    initial = parse_duration(backoff.initial if backoff else DEFAULT_INITIAL)
    cap = parse_duration(backoff.max if backoff else DEFAULT_MAX)
    multiplier = backoff.multiplier if backoff else DEFAULT_MULTIPLIER
    kind = backoff.type if backoff else BackoffType.EXPONENTIAL

    delay = min(initial, cap)
    while True:
        yield delay
        if kind == BackoffType.EXPONENTIAL:
            delay = min(delay * multiplier, cap)
        elif kind == BackoffType.LINEAR:
            delay = min(delay + initial, cap)


async def execute_with_backoff(
    attempt: Attempt,
    policy: ResolvedPolicy,
    fallback_on: Optional[FallbackTrigger] = None,
    sleep: Sleep = asyncio.sleep
) -> BackoffResult:
    """
    Attempt the same target up to ``policy.max_retries + 1`` times

    Args:
        attempt: Zero-argument coroutine function performing one attempt
        policy: Resolved policy supplying retries, backoff and timeout
        fallback_on: Trigger deciding which statuses are failures; defaults to the policy's
        sleep: Awaitable sleep taking seconds

    Returns:
        BackoffResult carrying either the successful result or the last status/error

    Cancellation of the awaiting task propagates without producing a result.
    """
    trigger = fallback_on or policy.fallback_on
    max_retries = max(policy.max_retries, 0)
    timeout_s = parse_duration(policy.timeout) / 1000.0 if policy.timeout else None
    delays = backoff_delays(policy.backoff)

    last_status: Optional[int] = None
    last_error: Optional[BaseException] = None

    for attempt_no in range(max_retries + 1):
        retries_left = attempt_no < max_retries

        try:
            if timeout_s is not None:
                result = await asyncio.wait_for(attempt(), timeout=timeout_s)
            else:
                result = await attempt()
        except Exception as e:
            last_error = e
            if not retries_left:
                return BackoffResult(
                    ok=False, last_status=last_status, last_error=e, attempts=attempt_no + 1
                )
            delay = next(delays)
            logger.debug(f"Attempt {attempt_no + 1} raised {e!r}; retrying in {delay:.0f}ms")
            await sleep(delay / 1000.0)
            continue

        status = status_of(result)
        if status is not None and should_fallback_status(status, trigger):
            last_status = status
            if not retries_left:
                return BackoffResult(
                    ok=False, last_status=status, last_error=last_error, attempts=attempt_no + 1
                )
            delay = next(delays)
            logger.debug(f"Attempt {attempt_no + 1} returned {status}; retrying in {delay:.0f}ms")
            await sleep(delay / 1000.0)
            continue

        return BackoffResult(ok=True, result=result, last_status=status, attempts=attempt_no + 1)

    return BackoffResult(ok=False, last_status=last_status, last_error=last_error, attempts=max_retries + 1)

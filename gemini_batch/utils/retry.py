"""Retry policy and the remote call wrapper that applies it.

RetryPolicy decides retry-or-stop for a failed attempt: rate-limited
errors back off linearly, other transient errors back off exponentially,
fatal errors stop immediately. RemoteCaller runs one logical remote
operation through that policy.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

import httpx

from gemini_batch.utils.errors import RateLimitedError, RemoteError, TransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Operation = Callable[[], Awaitable[T]]

DEFAULT_RATE_LIMIT_BASE_SECONDS = 30.0
DEFAULT_BACKOFF_BASE_SECONDS = 1.0


@dataclass(frozen=True)
class RetryDecision:
    """Outcome of consulting the policy: stop, or retry after ``delay``."""

    should_retry: bool
    delay: float = 0.0


STOP = RetryDecision(should_retry=False)


def retry_after(delay: float) -> RetryDecision:
    return RetryDecision(should_retry=True, delay=delay)


@dataclass
class RetryContext:
    """Per-invocation retry bookkeeping."""

    attempt: int = 0
    last_error: BaseException | None = None
    next_delay: float = 0.0


def is_retryable(error: BaseException) -> bool:
    """Classify an error as transient (retryable) or fatal."""
    if isinstance(error, RemoteError):
        return error.retryable
    return isinstance(
        error, (httpx.TransportError, ConnectionError, asyncio.TimeoutError)
    )


class RetryPolicy:
    """Decide whether a failed attempt is retried and after what delay.

    Args:
        rate_limit_base: Linear backoff unit for rate-limited errors;
            the delay after attempt ``n`` (0-based) is ``base * (n + 1)``.
        backoff_base: Exponential backoff base for other transient errors;
            the delay after attempt ``n`` is ``base * 2**n``.
    """

    def __init__(
        self,
        rate_limit_base: float = DEFAULT_RATE_LIMIT_BASE_SECONDS,
        backoff_base: float = DEFAULT_BACKOFF_BASE_SECONDS,
    ) -> None:
        self.rate_limit_base = rate_limit_base
        self.backoff_base = backoff_base

    def delay_for(self, error: BaseException, attempt: int) -> float:
        if isinstance(error, RateLimitedError):
            return self.rate_limit_base * (attempt + 1)
        return self.backoff_base * (2**attempt)

    def decide(
        self, error: BaseException, attempt: int, max_attempts: int
    ) -> RetryDecision:
        """Return STOP or a retry decision for the failed ``attempt``.

        Args:
            error: The exception raised by the attempt.
            attempt: 0-based index of the attempt that failed.
            max_attempts: Total attempts allowed (1 disables retries).
        """
        if not is_retryable(error):
            return STOP
        if attempt + 1 >= max_attempts:
            return STOP
        return retry_after(self.delay_for(error, attempt))


class RemoteCaller:
    """Run remote operations under a retry policy.

    The caller is agnostic to what an operation does: it is used the same
    way for transcription, image generation and the upload sequence.
    ``attempts`` accumulates over every ``execute`` call made through
    this instance.

    Args:
        policy: Retry policy to consult after each failure.
        max_attempts: Maximum attempts per ``execute`` call.
        attempt_timeout: Optional wall-clock limit per attempt in seconds.
            An overrun is reported as a retryable TransportError.
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        max_attempts: int = 3,
        attempt_timeout: float | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.policy = policy or RetryPolicy()
        self.max_attempts = max_attempts
        self.attempt_timeout = attempt_timeout
        self.attempts = 0

    async def _attempt(self, operation: Operation[T], name: str) -> T:
        self.attempts += 1
        if self.attempt_timeout is None:
            return await operation()
        try:
            return await asyncio.wait_for(operation(), self.attempt_timeout)
        except asyncio.TimeoutError as exc:
            raise TransportError(
                f"{name} timed out after {self.attempt_timeout}s",
                operation=name,
            ) from exc

    async def execute(self, operation: Operation[T], name: str = "remote call") -> T:
        """Call ``operation`` until it succeeds or the policy says stop.

        Args:
            operation: Zero-argument coroutine function performing one attempt.
            name: Label used in retry log lines.

        Returns:
            The operation's result.

        Raises:
            The last error raised by the operation once retries stop.
        """
        context = RetryContext()
        while True:
            try:
                return await self._attempt(operation, name)
            except Exception as exc:
                context.last_error = exc
                decision = self.policy.decide(exc, context.attempt, self.max_attempts)
                if not decision.should_retry:
                    raise
                context.next_delay = decision.delay
                logger.warning(
                    "Retry %d/%d for %s after %.1fs: %s",
                    context.attempt + 1,
                    self.max_attempts - 1,
                    name,
                    decision.delay,
                    exc,
                    extra={
                        "attempt": context.attempt + 1,
                        "delay_seconds": decision.delay,
                        "error": str(exc),
                    },
                )
                await asyncio.sleep(decision.delay)
                context.attempt += 1

"""Resilient access to remote cells.

Provides:
- RetryConfig: Attempt budget, backoff, and what counts as retryable
- classify_error: Map raw exceptions to RemoteError subclasses
- calculate_backoff: Capped exponential delay for a 1-based attempt
- RateLimiter: Token bucket applied before each remote call
- ResilientCellClient: Retrying wrapper around a CellTransport

Every plan read and write goes through ResilientCellClient. The client
keeps no state between calls apart from the optional rate limiter.
"""

from __future__ import annotations

import asyncio
import random
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Awaitable, Callable, TypeVar

import httpx

from sheetplan.errors import NetworkError, RemoteError
from sheetplan.logging import Loggers
from sheetplan.remote.transport import (
    CellTransport,
    network_error_code,
    parse_retry_after,
    transport_error_code,
)

if TYPE_CHECKING:
    from sheetplan.config import Settings

logger = Loggers.remote()

T = TypeVar("T")

DEFAULT_RETRYABLE_ERRORS: tuple[str, ...] = (
    "ECONNRESET",
    "ETIMEDOUT",
    "ENOTFOUND",
    "ECONNREFUSED",
    "ECONNABORTED",
    "EPIPE",
    "ENETUNREACH",
    "EAI_AGAIN",
)

RETRYABLE_STATUS_CODES: tuple[int, ...] = (429, 500, 502, 503, 504)


@dataclass
class RetryConfig:
    """Configuration for retry behavior.

    Attributes:
        enabled: Retry at all (False = single attempt, fail fast)
        max_attempts: Maximum attempts per call, including the first
        base_delay: Delay before the second attempt, in seconds
        max_delay: Cap for any single delay, in seconds
        jitter: Random extra delay as a fraction of the computed delay
        retryable_errors: Network error codes treated as transient
        retryable_statuses: HTTP statuses treated as transient
    """

    enabled: bool = True
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    jitter: float = 0.0
    retryable_errors: tuple[str, ...] = DEFAULT_RETRYABLE_ERRORS
    retryable_statuses: tuple[int, ...] = RETRYABLE_STATUS_CODES

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    @classmethod
    def from_settings(cls, settings: "Settings") -> "RetryConfig":
        return cls(
            enabled=settings.retry_enabled,
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
            jitter=settings.retry_jitter,
        )


def calculate_backoff(
    attempt: int,
    base_delay: float,
    max_delay: float,
    jitter: float = 0.0,
) -> float:
    """Calculate the delay after a failed attempt.

    Formula: min(max_delay, base_delay * 2^(attempt-1)), plus up to
    ``jitter`` of that value at random.

    Args:
        attempt: The attempt that just failed (1-based)
        base_delay: Initial delay in seconds
        max_delay: Maximum delay in seconds
        jitter: Jitter ratio in [0, 1]

    Returns:
        Delay in seconds
    """
    delay = min(max_delay, base_delay * (2 ** (attempt - 1)))
    if jitter:
        delay += random.uniform(0, delay * jitter)
    return delay


def classify_error(error: BaseException) -> RemoteError | None:
    """Map an exception raised by a transport to a RemoteError.

    Returns None for exceptions that are not recognizably remote failures;
    those are fatal and must propagate untouched.
    """
    if isinstance(error, RemoteError):
        return error

    if isinstance(error, httpx.HTTPStatusError):
        response = error.response
        classified = RemoteError.from_status(
            response.status_code,
            str(error),
            retry_after=parse_retry_after(response.headers.get("retry-after")),
        )
        classified.__cause__ = error
        return classified

    if isinstance(error, (httpx.TransportError, OSError)):
        code = network_error_code(error)
        if code is None and isinstance(error, httpx.TransportError):
            code = transport_error_code(error)
        # Plain OSErrors only count when they carry a known network code
        if code is not None and (isinstance(error, httpx.TransportError) or code in DEFAULT_RETRYABLE_ERRORS):
            classified = NetworkError(str(error) or type(error).__name__, error_code=code)
            classified.__cause__ = error
            return classified

    return None


def is_retryable(error: RemoteError, config: RetryConfig) -> bool:
    """Check whether a classified error should be retried under ``config``."""
    if isinstance(error, NetworkError):
        return error.error_code in config.retryable_errors
    return error.status is not None and error.status in config.retryable_statuses


@dataclass
class RateLimiter:
    """Token bucket rate limiter.

    Tokens are added at a fixed rate and each remote call consumes one.
    Callers wait for a token instead of provoking a 429.

    Attributes:
        rate: Tokens per second
        burst: Maximum bucket size

    Example:
        limiter = RateLimiter(rate=1.0, burst=5)  # 60 requests/minute
        await limiter.acquire()
    """

    rate: float
    burst: int = 10

    _tokens: float = field(default=0.0, init=False)
    _last_update: float = field(default=0.0, init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False)

    def __post_init__(self) -> None:
        if self.rate <= 0:
            raise ValueError("rate must be positive")
        self._tokens = float(self.burst)
        self._last_update = time.monotonic()

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self._last_update
        self._tokens = min(self.burst, self._tokens + elapsed * self.rate)
        self._last_update = now

    @property
    def available(self) -> float:
        """Tokens currently in the bucket."""
        self._refill()
        return self._tokens

    def try_acquire(self) -> bool:
        """Take a token if one is available, without waiting."""
        self._refill()
        if self._tokens >= 1:
            self._tokens -= 1
            return True
        return False

    async def acquire(self) -> None:
        """Wait until a token is available, then take it."""
        async with self._lock:
            while not self.try_acquire():
                await asyncio.sleep((1 - self._tokens) / self.rate)


class ResilientCellClient:
    """Retrying, classifying wrapper around a CellTransport.

    Transient failures (network codes, 429, 5xx) are retried with capped
    exponential backoff until the attempt budget runs out; the last
    classified error is then raised as-is. Fatal failures surface on the
    first attempt.

    Example:
        client = ResilientCellClient(transport, RetryConfig(max_attempts=3))
        text = await client.read("AGENTSCAPE!C6")
        await client.write("AGENTSCAPE!C6", text + "\\nmore")
    """

    def __init__(
        self,
        transport: CellTransport,
        config: RetryConfig | None = None,
        rate_limiter: RateLimiter | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.transport = transport
        self.config = config or RetryConfig()
        self.rate_limiter = rate_limiter
        self._sleep = sleep

    @property
    def max_attempts(self) -> int:
        """Effective attempt budget (1 when retry is disabled)."""
        return self.config.max_attempts if self.config.enabled else 1

    async def read(self, ref: str) -> str:
        """Read a cell's text through the retry policy."""
        return await self.execute("get_cell", lambda: self.transport.get_cell(ref), ref=ref)

    async def write(self, ref: str, text: str) -> None:
        """Overwrite a cell's text through the retry policy."""
        await self.execute("set_cell", lambda: self.transport.set_cell(ref, text), ref=ref)

    async def execute(
        self,
        operation: str,
        fn: Callable[[], Awaitable[T]],
        ref: str | None = None,
    ) -> T:
        """Run ``fn`` with classification, backoff, and the attempt budget.

        Args:
            operation: Name used in log events
            fn: Factory returning a fresh awaitable per attempt
            ref: Cell reference, for log context

        Raises:
            RemoteError: The classified error once it is fatal or the budget is spent
            Exception: Unclassified transport exceptions, unchanged, on first failure
        """
        max_attempts = self.max_attempts
        attempt = 0

        while True:
            attempt += 1
            if self.rate_limiter is not None:
                await self.rate_limiter.acquire()

            try:
                return await fn()
            except Exception as e:
                error = classify_error(e)
                if error is None:
                    logger.error(
                        "remote_call_failed",
                        operation=operation,
                        ref=ref,
                        error_type=type(e).__name__,
                        error=str(e),
                    )
                    raise
                error.attempts = attempt

                if not is_retryable(error, self.config):
                    logger.error(
                        "remote_call_failed",
                        operation=operation,
                        ref=ref,
                        status=error.status,
                        code=error.code,
                        error=error.message,
                    )
                    if error is e:
                        raise
                    raise error from e

                if attempt >= max_attempts:
                    if self.config.enabled:
                        logger.error(
                            "retry_exhausted",
                            operation=operation,
                            ref=ref,
                            attempts=attempt,
                            max_attempts=max_attempts,
                            status=error.status,
                            error_code=error.error_code,
                            error=error.message,
                        )
                    if error is e:
                        raise
                    raise error from e

                delay = self._delay_for(attempt, error)
                logger.warning(
                    "retrying_after_error",
                    operation=operation,
                    ref=ref,
                    attempt=attempt,
                    max_attempts=max_attempts,
                    delay=delay,
                    error_type=type(error).__name__,
                    status=error.status,
                    error_code=error.error_code,
                )
                await self._sleep(delay)

    def _delay_for(self, attempt: int, error: RemoteError) -> float:
        if error.retry_after is not None:
            return error.retry_after
        return calculate_backoff(
            attempt,
            self.config.base_delay,
            self.config.max_delay,
            self.config.jitter,
        )

    @classmethod
    def from_settings(
        cls,
        transport: CellTransport,
        settings: "Settings",
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> "ResilientCellClient":
        limiter = None
        if settings.requests_per_second:
            limiter = RateLimiter(rate=settings.requests_per_second, burst=settings.rate_limit_burst)
        return cls(transport, RetryConfig.from_settings(settings), rate_limiter=limiter, sleep=sleep)

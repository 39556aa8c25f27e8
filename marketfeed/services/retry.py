"""
Retry executor - runs one async operation with a per-attempt timeout and a
bounded number of attempts, sleeping on a backoff schedule in between.

It knows nothing about circuit breakers; services compose the two.
"""

import asyncio
import time
from dataclasses import asdict, dataclass, replace
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger

from marketfeed.services.errors import ProviderError, ProviderErrorCode

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[None]]


@dataclass
class RetryConfig:
    """Retry configuration: 3 attempts, 1s/2s/4s backoff, 10s timeout."""

    max_attempts: int = 3
    backoff: tuple[float, ...] = (1.0, 2.0, 4.0)  # Seconds before attempt i+2
    timeout: float = 10.0  # Seconds, per attempt
    max_retry_after: float = 30.0  # Upper bound on a vendor Retry-After pause


@dataclass
class RetryAttempt:
    """Outcome of one failed attempt."""

    attempt: int
    error: str
    error_type: str
    elapsed_ms: int
    timed_out: bool = False
    error_code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _backoff_delay(config: RetryConfig, attempt_index: int, error: Exception) -> float:
    """Delay before the attempt following attempt_index (0-based)."""
    if config.backoff:
        delay = config.backoff[min(attempt_index, len(config.backoff) - 1)]
    else:
        delay = 0.0

    if (
        isinstance(error, ProviderError)
        and error.code == ProviderErrorCode.RATE_LIMITED
    ):
        retry_after = error.details.get("retry_after")
        if retry_after:
            delay = max(delay, min(float(retry_after), config.max_retry_after))

    return delay


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    provider_name: str = "unknown",
    operation_name: str = "operation",
    config: RetryConfig | None = None,
    max_attempts: int | None = None,
    backoff: tuple[float, ...] | None = None,
    timeout: float | None = None,
    sleep: SleepFn = asyncio.sleep,
) -> T:
    """
    Execute an async operation with timeout and retries.

    Args:
        operation: Zero-argument coroutine function to run
        provider_name: Provider identity for logs and the final error
        operation_name: Name used in logs and the final error message
        config: Base retry configuration (keyword overrides win)
        max_attempts: Override config.max_attempts
        backoff: Override config.backoff
        timeout: Override config.timeout
        sleep: Sleep function, injectable for tests

    Returns:
        The first successful result

    Raises:
        ProviderError: code PROVIDER_FAILED once all attempts are exhausted,
            with the per-attempt history in details["attempts"]
    """
    cfg = config or RetryConfig()
    overrides: dict[str, Any] = {}
    if max_attempts is not None:
        overrides["max_attempts"] = max_attempts
    if backoff is not None:
        overrides["backoff"] = tuple(backoff)
    if timeout is not None:
        overrides["timeout"] = timeout
    if overrides:
        cfg = replace(cfg, **overrides)

    total = max(1, cfg.max_attempts)
    attempts: list[RetryAttempt] = []
    last_error: Exception | None = None

    for attempt in range(1, total + 1):
        started = time.monotonic()
        try:
            result = await asyncio.wait_for(operation(), timeout=cfg.timeout)
        except asyncio.TimeoutError as e:
            elapsed_ms = int((time.monotonic() - started) * 1000)
            error: Exception = e
            attempts.append(
                RetryAttempt(
                    attempt=attempt,
                    error=f"Request timed out after {cfg.timeout}s",
                    error_type="TimeoutError",
                    elapsed_ms=elapsed_ms,
                    timed_out=True,
                    error_code=ProviderErrorCode.TIMEOUT.value,
                )
            )
        except Exception as e:
            elapsed_ms = int((time.monotonic() - started) * 1000)
            error = e
            attempts.append(
                RetryAttempt(
                    attempt=attempt,
                    error=str(e),
                    error_type=type(e).__name__,
                    elapsed_ms=elapsed_ms,
                    timed_out=isinstance(e, ProviderError)
                    and e.code == ProviderErrorCode.TIMEOUT,
                    error_code=e.code.value if isinstance(e, ProviderError) else None,
                )
            )
        else:
            if attempt > 1:
                logger.info(
                    f"{provider_name}.{operation_name} succeeded on attempt "
                    f"{attempt}/{total}"
                )
            return result

        last_error = error
        logger.warning(
            f"{provider_name}.{operation_name} attempt {attempt}/{total} failed: "
            f"{attempts[-1].error}"
        )

        if attempt < total:
            delay = _backoff_delay(cfg, attempt - 1, error)
            logger.debug(
                f"Retrying {provider_name}.{operation_name} in {delay:.2f}s"
            )
            await sleep(delay)

    last_message = attempts[-1].error if attempts else "Unknown error"
    logger.error(
        f"{provider_name}.{operation_name} failed after {total} attempts: "
        f"{last_message}"
    )

    raise ProviderError(
        f"{operation_name} failed after {total} attempts: {last_message}",
        code=ProviderErrorCode.PROVIDER_FAILED,
        provider=provider_name,
        details={
            "attempts": [a.to_dict() for a in attempts],
            "total_attempts": total,
        },
    ) from last_error


def create_retry_wrapper(
    provider_name: str = "unknown",
    config: RetryConfig | None = None,
    sleep: SleepFn = asyncio.sleep,
) -> Callable[..., Awaitable[Any]]:
    """
    Build a retry function with pre-configured options.

    Usage:
        gemini_retry = create_retry_wrapper("gemini-api")
        prices = await gemini_retry(lambda: fetch(symbols), "fetch_prices")
    """

    async def run(
        operation: Callable[[], Awaitable[T]],
        operation_name: str = "operation",
    ) -> T:
        return await with_retry(
            operation,
            provider_name=provider_name,
            operation_name=operation_name,
            config=config,
            sleep=sleep,
        )

    return run

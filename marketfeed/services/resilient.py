"""
Plumbing shared by the price, fundamentals and exchange-rate services.

A provider call is always breaker(provider).execute(with_retry(call)), so an
exhausted retry sequence counts as one breaker failure and an open breaker
skips the provider without touching the network.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger

from marketfeed.services.cache import CacheClient, CacheEntry
from marketfeed.services.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
    CircuitBreakerSnapshot,
    circuit_breaker_registry,
)
from marketfeed.services.errors import ProviderError
from marketfeed.services.retry import RetryConfig, SleepFn, with_retry

T = TypeVar("T")

DEFAULT_CACHE_TTL_SECONDS = 24 * 60 * 60


class ResilientService:
    """Breaker, retry and cache wiring for one primary/fallback provider pair."""

    def __init__(
        self,
        primary: Any,
        fallback: Any = None,
        cache: CacheClient | None = None,
        *,
        cache_ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS,
        retry_config: RetryConfig | None = None,
        breaker_config: CircuitBreakerConfig | None = None,
        breaker_registry: CircuitBreakerRegistry | None = None,
        sleep: SleepFn = asyncio.sleep,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.primary = primary
        self.fallback = fallback
        self.cache = cache
        self.cache_ttl_seconds = cache_ttl_seconds
        self.retry_config = retry_config or RetryConfig()
        self._breaker_config = breaker_config
        self._registry = breaker_registry or circuit_breaker_registry
        self._sleep = sleep
        self._clock = clock

    def _providers(self) -> list[Any]:
        return [p for p in (self.primary, self.fallback) if p is not None]

    def breaker_for(self, provider: Any) -> CircuitBreaker:
        return self._registry.get_breaker(provider.name, self._breaker_config)

    async def _call_provider(
        self,
        provider: Any,
        operation_name: str,
        operation: Callable[[], Awaitable[T]],
    ) -> T:
        """Run operation against provider through its breaker and the retry executor."""
        breaker = self.breaker_for(provider)
        return await breaker.execute(
            lambda: with_retry(
                operation,
                provider_name=provider.name,
                operation_name=operation_name,
                config=self.retry_config,
                sleep=self._sleep,
            )
        )

    @property
    def _ttl(self) -> timedelta:
        return timedelta(seconds=self.cache_ttl_seconds)

    async def _cache_get(self, key: str) -> CacheEntry[Any] | None:
        """Cache read; failures are logged and read as a miss."""
        if self.cache is None or not self.cache.is_enabled():
            return None
        try:
            return await self.cache.get(key)
        except Exception as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            return None

    async def _cache_get_fresh(self, key: str) -> CacheEntry[Any] | None:
        entry = await self._cache_get(key)
        if entry is not None and entry.is_fresh(self._ttl, now=self._clock()):
            return entry
        return None

    async def _cache_set(self, key: str, value: Any, source: str) -> None:
        """Cache write; failures are logged and ignored."""
        if self.cache is None or not self.cache.is_enabled():
            return
        try:
            await self.cache.set(key, value, self.cache_ttl_seconds, source=source)
        except Exception as e:
            logger.warning(f"Cache write failed for {key}: {e}")

    @staticmethod
    def _record_failure(errors: dict[str, Any], provider: Any, error: Exception) -> None:
        if isinstance(error, ProviderError):
            errors[provider.name] = error.to_dict()
        else:
            errors[provider.name] = {"error": str(error), "type": type(error).__name__}

    async def health_check(self) -> dict[str, bool | None]:
        """
        Check both providers concurrently.

        Breakers are not consulted or updated. A check that raises counts
        as unhealthy.

        Returns:
            {"primary": bool, "fallback": bool | None}
        """

        async def check(provider: Any) -> bool:
            try:
                return bool(await provider.health_check())
            except Exception as e:
                logger.warning(f"Health check for {provider.name} raised: {e}")
                return False

        if self.fallback is None:
            return {"primary": await check(self.primary), "fallback": None}

        primary_ok, fallback_ok = await asyncio.gather(
            check(self.primary), check(self.fallback)
        )
        return {"primary": primary_ok, "fallback": fallback_ok}

    def get_circuit_breaker_states(self) -> dict[str, CircuitBreakerSnapshot]:
        return {p.name: self.breaker_for(p).get_state() for p in self._providers()}

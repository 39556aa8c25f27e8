"""
Tiered lookup for per-symbol data (daily prices, company fundamentals).

Tiers, strictly in order, for one request:
1. Fresh cache (skipped with skip_cache=True)
2. Primary provider, through its circuit breaker and the retry executor
3. Fallback provider, same pattern
4. Stale cache, any retained entry, flagged is_stale
5. AllProvidersFailedError

Intermediate failures are logged, never raised. Partial vendor results are
returned as-is; callers compare the result length with what they asked for.

Cache layout, for KEY_PREFIX "prices":
    prices:batch:{SYMBOL1,SYMBOL2,...}   records for one exact request
    prices:{SYMBOL}                      latest record per symbol
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from loguru import logger

from marketfeed.models import Freshness
from marketfeed.services.cache import CacheEntry
from marketfeed.services.errors import AllProvidersFailedError
from marketfeed.services.resilient import ResilientService
from marketfeed.utils import preview


class SymbolDataService(ResilientService, ABC):
    """Base for services keyed by asset symbol. Records carry .symbol and .fetched_at."""

    KEY_PREFIX = ""
    KIND = ""

    def batch_key(self, symbols: list[str]) -> str:
        return f"{self.KEY_PREFIX}:batch:{','.join(sorted(symbols))}"

    def symbol_key(self, symbol: str) -> str:
        return f"{self.KEY_PREFIX}:{symbol}"

    @abstractmethod
    async def _fetch(self, provider: Any, symbols: list[str]) -> list[Any]:
        """One guarded provider call (see ResilientService._call_provider)."""
        ...

    @abstractmethod
    def _result(self, records: list[Any], from_cache: bool, provider: str, freshness: Freshness) -> Any:
        ...

    async def _lookup(self, symbols: list[str], skip_cache: bool) -> Any:
        symbols = list(dict.fromkeys(s.strip().upper() for s in symbols if s.strip()))
        if not symbols:
            return self._result([], False, "none", Freshness(source="none", fetched_at=self._clock()))

        if not skip_cache:
            cached = await self._read_fresh(symbols)
            if cached is not None:
                logger.debug(f"{self.KIND.capitalize()} cache hit for {preview(symbols)}")
                return cached

        errors: dict[str, Any] = {}

        for provider in self._providers():
            try:
                records = await self._fetch(provider, symbols)
            except Exception as e:
                self._record_failure(errors, provider, e)
                logger.warning(f"{self.KIND.capitalize()} provider {provider.name} failed: {e}")
                continue

            await self._write_through(symbols, records, provider.name)
            if provider is not self.primary:
                logger.info(f"{self.KIND.capitalize()} for {preview(symbols)} served by fallback {provider.name}")
            return self._result(
                records,
                False,
                provider.name,
                Freshness(
                    source=provider.name,
                    fetched_at=min((r.fetched_at for r in records), default=self._clock()),
                ),
            )

        stale = await self._read_stale(symbols)
        if stale is not None:
            logger.warning(
                f"All {self.KIND} providers failed, serving stale cache for {preview(symbols)}"
            )
            return stale

        logger.error(f"All {self.KIND} providers failed for {preview(symbols)} and no cache available")
        raise AllProvidersFailedError(
            f"All {self.KIND} providers failed and no cached data is available",
            details={"symbols": symbols, "errors": errors},
        )

    async def _read_fresh(self, symbols: list[str]) -> Any:
        """Fresh batch entry, else fresh per-symbol entries covering every symbol."""
        entry = await self._cache_get_fresh(self.batch_key(symbols))
        if entry is not None:
            return self._cached_result(entry.data, [entry], is_stale=False)

        entries = []
        for symbol in symbols:
            entry = await self._cache_get_fresh(self.symbol_key(symbol))
            if entry is None:
                return None
            entries.append(entry)
        return self._cached_result([e.data for e in entries], entries, is_stale=False)

    async def _read_stale(self, symbols: list[str]) -> Any:
        """Any retained data for any of the requested symbols."""
        entry = await self._cache_get(self.batch_key(symbols))
        if entry is not None and entry.data:
            return self._cached_result(entry.data, [entry], is_stale=True)

        entries: list[CacheEntry[Any]] = []
        for symbol in symbols:
            entry = await self._cache_get(self.symbol_key(symbol))
            if entry is not None:
                entries.append(entry)
        if not entries:
            return None
        return self._cached_result([e.data for e in entries], entries, is_stale=True)

    def _cached_result(self, records: list[Any], entries: list[CacheEntry[Any]], is_stale: bool) -> Any:
        oldest = min(entries, key=lambda e: e.metadata.cached_at)
        if is_stale:
            records = [r.model_copy(update={"is_stale": True}) for r in records]

        return self._result(
            list(records),
            True,
            "cache",
            Freshness(
                source=oldest.metadata.source,
                fetched_at=oldest.metadata.cached_at,
                is_stale=is_stale,
                stale_since=self._stale_since(oldest) if is_stale else None,
            ),
        )

    def _stale_since(self, entry: CacheEntry[Any]) -> datetime | None:
        expires_at = entry.metadata.expires_at
        return expires_at if self._clock() > expires_at else None

    async def _write_through(self, symbols: list[str], records: list[Any], source: str) -> None:
        await self._cache_set(self.batch_key(symbols), list(records), source)
        for record in records:
            await self._cache_set(self.symbol_key(record.symbol), record, source)

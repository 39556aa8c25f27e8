"""
FundamentalsService - company fundamentals with the same provider chain,
breakers, retries and cache as prices. Keys live under "fundamentals:" and
the default TTL is seven days.
"""

from typing import Any

from marketfeed.datasource.base import FundamentalsProvider
from marketfeed.models import Freshness, Fundamentals, FundamentalsServiceResult
from marketfeed.services.cache import CacheClient
from marketfeed.services.errors import FundamentalsNotFoundError
from marketfeed.services.symbol_service import SymbolDataService

DEFAULT_FUNDAMENTALS_TTL_SECONDS = 7 * 24 * 60 * 60


class FundamentalsService(SymbolDataService):
    """
    Usage:
        service = FundamentalsService(GeminiFundamentalsProvider(key), cache=cache)
        result = await service.get_fundamentals(["PETR4", "VALE3"])
    """

    KEY_PREFIX = "fundamentals"
    KIND = "fundamentals"

    primary: FundamentalsProvider
    fallback: FundamentalsProvider | None

    def __init__(
        self,
        primary: FundamentalsProvider,
        fallback: FundamentalsProvider | None = None,
        cache: CacheClient | None = None,
        **kwargs: Any,
    ):
        kwargs.setdefault("cache_ttl_seconds", DEFAULT_FUNDAMENTALS_TTL_SECONDS)
        super().__init__(primary, fallback, cache, **kwargs)

    async def get_fundamentals(
        self,
        symbols: list[str],
        skip_cache: bool = False,
    ) -> FundamentalsServiceResult:
        """
        Raises:
            AllProvidersFailedError: Both providers failed and nothing is cached
        """
        return await self._lookup(symbols, skip_cache)

    async def get_fundamental(self, symbol: str, skip_cache: bool = False) -> Fundamentals:
        symbol = symbol.strip().upper()
        result = await self.get_fundamentals([symbol], skip_cache=skip_cache)
        for record in result.fundamentals:
            if record.symbol == symbol:
                return record
        raise FundamentalsNotFoundError(symbol, provider=result.provider)

    async def _fetch(self, provider: FundamentalsProvider, symbols: list[str]) -> list[Fundamentals]:
        return await self._call_provider(
            provider, "fetch_fundamentals", lambda: provider.fetch_fundamentals(symbols)
        )

    def _result(
        self, records: list[Any], from_cache: bool, provider: str, freshness: Freshness
    ) -> FundamentalsServiceResult:
        return FundamentalsServiceResult(
            fundamentals=records, from_cache=from_cache, provider=provider, freshness=freshness
        )

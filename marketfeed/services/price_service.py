"""
PriceService - resilient daily price lookup.

Tiers and cache layout are described in marketfeed.services.symbol_service;
keys here live under "prices:".
"""

from typing import Any

from marketfeed.datasource.base import PriceProvider
from marketfeed.models import Freshness, PriceQuote, PriceServiceResult
from marketfeed.services.errors import PriceNotFoundError
from marketfeed.services.symbol_service import SymbolDataService


class PriceService(SymbolDataService):
    """
    Price lookup with provider fallback and cache.

    Usage:
        service = PriceService(GeminiPriceProvider(key), YahooFinancePriceProvider(), cache)
        result = await service.get_prices(["PETR4", "VALE3"])
        if result.freshness.is_stale:
            ...
    """

    KEY_PREFIX = "prices"
    KIND = "price"

    primary: PriceProvider
    fallback: PriceProvider | None

    async def get_prices(
        self,
        symbols: list[str],
        skip_cache: bool = False,
    ) -> PriceServiceResult:
        """
        Get prices for symbols.

        Args:
            symbols: Asset symbols, normalized to upper case
            skip_cache: Bypass the fresh-cache tier (the stale tier still applies)

        Raises:
            AllProvidersFailedError: Both providers failed and nothing is cached
        """
        return await self._lookup(symbols, skip_cache)

    async def get_price(self, symbol: str, skip_cache: bool = False) -> PriceQuote:
        """
        Get the price for one symbol.

        Raises:
            PriceNotFoundError: The lookup succeeded without this symbol
            AllProvidersFailedError: As for get_prices
        """
        symbol = symbol.strip().upper()
        result = await self.get_prices([symbol], skip_cache=skip_cache)
        for quote in result.prices:
            if quote.symbol == symbol:
                return quote
        raise PriceNotFoundError(symbol, provider=result.provider)

    async def _fetch(self, provider: PriceProvider, symbols: list[str]) -> list[PriceQuote]:
        return await self._call_provider(provider, "fetch_prices", lambda: provider.fetch_prices(symbols))

    def _result(
        self, records: list[Any], from_cache: bool, provider: str, freshness: Freshness
    ) -> PriceServiceResult:
        return PriceServiceResult(prices=records, from_cache=from_cache, provider=provider, freshness=freshness)

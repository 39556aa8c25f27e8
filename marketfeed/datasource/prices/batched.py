from marketfeed.datasource.base import PriceProvider
from marketfeed.datasource.batched import BatchedProvider
from marketfeed.models import PriceQuote


class BatchedPriceProvider(BatchedProvider, PriceProvider):
    """Base for price vendors that take a list of symbols per request."""

    async def fetch_prices(self, symbols: list[str]) -> list[PriceQuote]:
        return await self._fetch_all(symbols, "prices")

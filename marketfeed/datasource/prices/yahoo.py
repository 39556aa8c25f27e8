"""
Yahoo Finance quote API - fallback price vendor.

GET /v7/finance/quote?symbols=A,B,C. Works without a key against the public
endpoint; RapidAPI headers are sent when a key is configured. Symbols come
back with exchange suffixes (PETR4.SA) which are stripped.
"""

from datetime import datetime, timezone
from typing import Any

from loguru import logger

from marketfeed.datasource.batched import SymbolError
from marketfeed.datasource.prices.batched import BatchedPriceProvider
from marketfeed.models import PriceQuote
from marketfeed.services.errors import InvalidResponseError, ProviderError, ProviderErrorCode

RAPIDAPI_HOST = "apidojo-yahoo-finance-v1.p.rapidapi.com"


def strip_exchange_suffix(symbol: str) -> str:
    """PETR4.SA -> PETR4"""
    return symbol.split(".")[0].upper()


class YahooFinancePriceProvider(BatchedPriceProvider):
    """
    Yahoo Finance price provider.

    Usage:
        provider = YahooFinancePriceProvider()
        quotes = await provider.fetch_prices(["PETR4.SA", "VALE3.SA"])
    """

    PROVIDER_NAME = "yahoo-finance"
    BASE_URL = "https://query1.finance.yahoo.com"
    REQUIRES_API_KEY = False

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["X-RapidAPI-Key"] = self.api_key
            headers["X-RapidAPI-Host"] = RAPIDAPI_HOST
        return headers

    async def _fetch_batch(self, symbols: list[str]) -> tuple[list[PriceQuote], list[SymbolError]]:
        data = await self.http.request_json(
            "GET",
            f"{self.base_url}/v7/finance/quote",
            params={"symbols": ",".join(symbols)},
            headers=self._headers(),
        )

        quote_response = data.get("quoteResponse") if isinstance(data, dict) else None
        if not isinstance(quote_response, dict):
            raise InvalidResponseError(
                "Yahoo Finance response is missing quoteResponse",
                provider=self.name,
                details={"symbols": symbols},
            )

        if quote_response.get("error"):
            raise ProviderError(
                f"Yahoo Finance API error: {quote_response['error']}",
                code=ProviderErrorCode.PROVIDER_FAILED,
                provider=self.name,
                details={"error": quote_response["error"]},
            )

        results: list[PriceQuote] = []
        errors: list[SymbolError] = []
        returned: set[str] = set()
        fetched_at = datetime.now(timezone.utc)

        for quote in quote_response.get("result") or []:
            symbol = quote.get("symbol", "") if isinstance(quote, dict) else ""
            returned.add(symbol.upper())
            parsed = self._parse_record(symbol, lambda quote=quote: self._transform(quote, fetched_at))
            if isinstance(parsed, PriceQuote):
                results.append(parsed)
            else:
                errors.append(parsed)

        for symbol in symbols:
            if symbol not in returned:
                errors.append({"symbol": symbol, "error": "Symbol not found in response"})

        return results, errors

    def _transform(self, quote: dict[str, Any], fetched_at: datetime) -> PriceQuote:
        """Map a Yahoo quote to a PriceQuote, omitting null OHLV fields."""
        fields = {
            "open": "regularMarketOpen",
            "high": "regularMarketDayHigh",
            "low": "regularMarketDayLow",
            "volume": "regularMarketVolume",
        }
        optional = {
            field: quote[key] for field, key in fields.items() if quote.get(key) is not None
        }

        market_time = quote.get("regularMarketTime")
        if market_time is not None:
            price_date = datetime.fromtimestamp(int(market_time), tz=timezone.utc).date()
        else:
            price_date = fetched_at.date()

        return PriceQuote(
            symbol=strip_exchange_suffix(quote["symbol"]),
            close=quote["regularMarketPrice"],
            currency=quote["currency"],
            source=self.name,
            fetched_at=fetched_at,
            price_date=price_date,
            **optional,
        )

    async def health_check(self) -> bool:
        """Yahoo has no health endpoint; quote a well-known symbol instead."""
        try:
            await self.http.request(
                "GET",
                f"{self.base_url}/v7/finance/quote",
                params={"symbols": "AAPL"},
                headers=self._headers(),
                timeout=5.0,
            )
        except ProviderError as e:
            logger.warning(f"[{self.name}] Health check failed: {e.message}")
            return False
        except Exception as e:
            logger.warning(f"[{self.name}] Health check error: {e}")
            return False

        logger.debug(f"[{self.name}] Health check passed")
        return True

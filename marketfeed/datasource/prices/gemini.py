"""
Gemini price API - primary price vendor.

POST /v1/prices/batch with a bearer key. The response carries successful
quotes in `data` and per-symbol failures in `errors`:

    {
        "data": [{"symbol": "PETR4", "close": 38.45, "currency": "BRL",
                  "price_date": "2025-12-05", "open": 38.1, ...}],
        "errors": [{"symbol": "XXXX", "error": "Unknown symbol", "code": "NOT_FOUND"}]
    }
"""

import uuid
from datetime import date, datetime, timezone
from typing import Any

from loguru import logger

from marketfeed.datasource.batched import SymbolError
from marketfeed.datasource.prices.batched import BatchedPriceProvider
from marketfeed.models import PriceQuote
from marketfeed.services.errors import InvalidResponseError, ProviderError


class GeminiPriceProvider(BatchedPriceProvider):
    """
    Gemini price provider.

    Usage:
        provider = GeminiPriceProvider(api_key="...")
        quotes = await provider.fetch_prices(["PETR4", "VALE3"])
    """

    PROVIDER_NAME = "gemini-api"
    BASE_URL = "https://api.gemini.example.com"

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _fetch_batch(self, symbols: list[str]) -> tuple[list[PriceQuote], list[SymbolError]]:
        headers = self._headers()
        headers["X-Request-ID"] = f"prices-{uuid.uuid4().hex[:12]}"

        data = await self.http.request_json(
            "POST",
            f"{self.base_url}/v1/prices/batch",
            headers=headers,
            json_data={"symbols": symbols},
        )

        if not isinstance(data, dict) or not isinstance(data.get("data"), list):
            raise InvalidResponseError(
                "Gemini response is missing the data array",
                provider=self.name,
                details={"symbols": symbols},
            )

        results: list[PriceQuote] = []
        errors: list[SymbolError] = []
        fetched_at = datetime.now(timezone.utc)

        for item in data["data"]:
            parsed = self._parse_record(
                item.get("symbol") if isinstance(item, dict) else item,
                lambda item=item: self._transform(item, fetched_at),
            )
            if isinstance(parsed, PriceQuote):
                results.append(parsed)
            else:
                errors.append(parsed)

        errors.extend(self._symbol_errors(data.get("errors")))

        return results, errors

    def _transform(self, item: dict[str, Any], fetched_at: datetime) -> PriceQuote:
        """Map a Gemini record to a PriceQuote, omitting null OHLV fields."""
        optional = {
            field: item[field]
            for field in ("open", "high", "low", "volume")
            if item.get(field) is not None
        }
        return PriceQuote(
            symbol=str(item["symbol"]).upper(),
            close=item["close"],
            currency=item["currency"],
            source=self.name,
            fetched_at=fetched_at,
            price_date=date.fromisoformat(str(item["price_date"])[:10]),
            **optional,
        )

    async def health_check(self) -> bool:
        """GET /v1/health with a short timeout."""
        if not self.is_configured():
            return False

        try:
            await self.http.request(
                "GET",
                f"{self.base_url}/v1/health",
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

"""
Gemini fundamentals API.

POST /v1/fundamentals/batch with a bearer key, same envelope as the price
endpoint:

    {
        "data": [{"symbol": "PETR4", "pe_ratio": 4.2, "pb_ratio": 1.1,
                  "dividend_yield": 12.5, "market_cap": 480000000000,
                  "revenue": ..., "net_income": ..., "sector": "Energy",
                  "industry": "Oil & Gas", "data_date": "2025-12-05"}],
        "errors": [{"symbol": "XXXX", "error": "Unknown symbol", "code": "NOT_FOUND"}]
    }
"""

import uuid
from datetime import date, datetime, timezone
from typing import Any

from loguru import logger

from marketfeed.datasource.base import FundamentalsProvider
from marketfeed.datasource.batched import BatchedProvider, SymbolError
from marketfeed.models import Fundamentals
from marketfeed.services.errors import InvalidResponseError, ProviderError

# vendor field -> Fundamentals field
METRIC_FIELDS = {
    "pe_ratio": "pe_ratio",
    "pb_ratio": "pb_ratio",
    "dividend_yield": "dividend_yield",
    "market_cap": "market_cap",
    "revenue": "revenue",
    "net_income": "earnings",
    "sector": "sector",
    "industry": "industry",
}


class GeminiFundamentalsProvider(BatchedProvider, FundamentalsProvider):
    """
    Gemini fundamentals provider.

    Usage:
        provider = GeminiFundamentalsProvider(api_key="...")
        fundamentals = await provider.fetch_fundamentals(["PETR4", "VALE3"])
    """

    PROVIDER_NAME = "gemini-api"
    BASE_URL = "https://api.gemini.example.com"

    async def fetch_fundamentals(self, symbols: list[str]) -> list[Fundamentals]:
        return await self._fetch_all(symbols, "fundamentals")

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _fetch_batch(self, symbols: list[str]) -> tuple[list[Fundamentals], list[SymbolError]]:
        headers = self._headers()
        headers["X-Request-ID"] = f"fundamentals-{uuid.uuid4().hex[:12]}"

        data = await self.http.request_json(
            "POST",
            f"{self.base_url}/v1/fundamentals/batch",
            headers=headers,
            json_data={"symbols": symbols},
        )

        if not isinstance(data, dict) or not isinstance(data.get("data"), list):
            raise InvalidResponseError(
                "Gemini response is missing the data array",
                provider=self.name,
                details={"symbols": symbols},
            )

        results: list[Fundamentals] = []
        errors: list[SymbolError] = []
        fetched_at = datetime.now(timezone.utc)

        for item in data["data"]:
            parsed = self._parse_record(
                item.get("symbol") if isinstance(item, dict) else item,
                lambda item=item: self._transform(item, fetched_at),
            )
            if isinstance(parsed, Fundamentals):
                results.append(parsed)
            else:
                errors.append(parsed)

        errors.extend(self._symbol_errors(data.get("errors")))
        return results, errors

    def _transform(self, item: dict[str, Any], fetched_at: datetime) -> Fundamentals:
        metrics = {
            field: item[key] for key, field in METRIC_FIELDS.items() if item.get(key) is not None
        }
        return Fundamentals(
            symbol=str(item["symbol"]).upper(),
            source=self.name,
            fetched_at=fetched_at,
            data_date=date.fromisoformat(str(item["data_date"])[:10]),
            **metrics,
        )

    async def health_check(self) -> bool:
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

        return True

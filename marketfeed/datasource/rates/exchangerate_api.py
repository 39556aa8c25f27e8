"""
ExchangeRate-API - primary exchange-rate vendor.

GET {base_url}/{api_key}/latest/{BASE}. Any supported currency can be the
base. Free tier: 1500 requests/month.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

import httpx
from loguru import logger

from marketfeed.datasource.base import ExchangeRateProvider
from marketfeed.datasource.http import ProviderHttpClient
from marketfeed.datasource.rates.currencies import check_currencies
from marketfeed.models import RateSet
from marketfeed.services.cross_rates import normalize_currency
from marketfeed.services.errors import InvalidResponseError, ProviderError, ProviderErrorCode
from marketfeed.utils import previous_trading_day


class ExchangeRateAPIProvider(ExchangeRateProvider):
    """
    ExchangeRate-API provider.

    Usage:
        provider = ExchangeRateAPIProvider(api_key="...")
        rate_set = await provider.fetch_rates("USD", ["BRL", "EUR"])
    """

    PROVIDER_NAME = "exchangerate-api"
    BASE_URL = "https://v6.exchangerate-api.com/v6"

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key or None
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.http = ProviderHttpClient(self.PROVIDER_NAME, timeout=timeout, http_client=http_client)

        if not self.api_key:
            logger.warning("ExchangeRateAPIProvider initialized without API key")

    @property
    def name(self) -> str:
        return self.PROVIDER_NAME

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def fetch_rates(self, base: str, targets: list[str]) -> RateSet:
        """
        Fetch rates from base to each target.

        Targets missing from the vendor payload are left out and logged.

        Raises:
            InvalidResponseError: Unsupported currency or an error payload
            ProviderError: No API key, or any HTTP/transport failure
        """
        base = normalize_currency(base)
        targets = list(dict.fromkeys(normalize_currency(t) for t in targets))
        check_currencies(self.name, base, targets)

        if not targets:
            return self._transform(base, [], {})

        if not self.api_key:
            raise ProviderError(
                "API key is required for ExchangeRate-API",
                code=ProviderErrorCode.PROVIDER_FAILED,
                provider=self.name,
            )

        logger.info(f"[{self.name}] Fetching exchange rates {base} -> {','.join(targets)}")

        data = await self.http.request_json(
            "GET",
            f"{self.base_url}/{self.api_key}/latest/{base}",
            headers={"X-Request-ID": f"rates-{uuid.uuid4().hex[:12]}"},
        )

        if (
            not isinstance(data, dict)
            or data.get("result") != "success"
            or not isinstance(data.get("conversion_rates"), dict)
        ):
            error_type = data.get("error-type") if isinstance(data, dict) else None
            raise InvalidResponseError(
                f"API error: {error_type or 'Unknown error'}",
                provider=self.name,
                details={"error_type": error_type},
            )

        rate_set = self._transform(base, targets, data["conversion_rates"])
        logger.info(
            f"[{self.name}] Exchange rates fetch completed: {len(rate_set.rates)} rates "
            f"for {rate_set.rate_date.isoformat()}"
        )
        return rate_set

    def _transform(self, base: str, targets: list[str], conversion_rates: dict[str, Any]) -> RateSet:
        now = datetime.now(timezone.utc)
        rates: dict[str, Decimal] = {}

        for target in targets:
            rate = conversion_rates.get(target)
            if rate is None:
                logger.warning(f"[{self.name}] Missing rate for {base} -> {target}")
                continue
            rates[target] = Decimal(str(rate))

        return RateSet(
            base=base,
            rates=rates,
            source=self.name,
            fetched_at=now,
            rate_date=previous_trading_day(now),
        )

    async def health_check(self) -> bool:
        """Minimal USD request; healthy only on a success payload."""
        if not self.api_key:
            logger.warning(f"[{self.name}] Health check skipped - no API key")
            return False

        try:
            data = await self.http.request_json(
                "GET",
                f"{self.base_url}/{self.api_key}/latest/USD",
                timeout=5.0,
            )
        except Exception as e:
            logger.warning(f"[{self.name}] Health check error: {e}")
            return False

        if isinstance(data, dict) and data.get("result") == "success":
            logger.debug(f"[{self.name}] Health check passed")
            return True

        logger.warning(f"[{self.name}] Health check failed: unexpected payload")
        return False

    async def close(self) -> None:
        await self.http.close()

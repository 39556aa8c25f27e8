"""
Open Exchange Rates - fallback exchange-rate vendor.

GET {base_url}/latest.json?app_id=...&symbols=... Rates are always quoted
against USD on the free tier; other bases are derived as cross rates.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

import httpx
from loguru import logger

from marketfeed.datasource.base import ExchangeRateProvider
from marketfeed.datasource.http import ProviderHttpClient
from marketfeed.datasource.rates.currencies import check_currencies
from marketfeed.models import RateSet
from marketfeed.services.cross_rates import derive_cross_rates, fetch_targets_for, normalize_currency
from marketfeed.services.errors import InvalidResponseError, ProviderError, ProviderErrorCode
from marketfeed.utils import previous_trading_day


class OpenExchangeRatesProvider(ExchangeRateProvider):
    """
    Open Exchange Rates provider.

    Usage:
        provider = OpenExchangeRatesProvider(app_id="...")
        rate_set = await provider.fetch_rates("USD", ["BRL", "EUR"])
    """

    PROVIDER_NAME = "open-exchange-rates"
    BASE_URL = "https://openexchangerates.org/api"

    native_base = "USD"

    def __init__(
        self,
        app_id: str | None = None,
        base_url: str | None = None,
        timeout: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.app_id = app_id or None
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.http = ProviderHttpClient(self.PROVIDER_NAME, timeout=timeout, http_client=http_client)

        if not self.app_id:
            logger.warning("OpenExchangeRatesProvider initialized without App ID")

    @property
    def name(self) -> str:
        return self.PROVIDER_NAME

    def is_configured(self) -> bool:
        return bool(self.app_id)

    async def fetch_rates(self, base: str, targets: list[str]) -> RateSet:
        """
        Fetch rates from base to each target.

        A base other than USD is served by fetching USD rates for the targets
        plus the base, then dividing.

        Raises:
            InvalidResponseError: Unsupported currency, an error payload, or
                no USD rate for the requested base
            ProviderError: No App ID, or any HTTP/transport failure
        """
        base = normalize_currency(base)
        targets = list(dict.fromkeys(normalize_currency(t) for t in targets))
        check_currencies(self.name, base, targets)

        if not targets:
            return self._transform({}, []).model_copy(update={"base": base})

        if not self.app_id:
            raise ProviderError(
                "App ID is required for Open Exchange Rates",
                code=ProviderErrorCode.PROVIDER_FAILED,
                provider=self.name,
            )

        symbols = fetch_targets_for(base, targets, self.native_base)
        if not symbols:
            return derive_cross_rates(self._transform({}, []), base, targets)

        logger.info(
            f"[{self.name}] Fetching exchange rates {self.native_base} -> {','.join(symbols)}"
            + (f" for base {base}" if base != self.native_base else "")
        )

        data = await self.http.request_json(
            "GET",
            f"{self.base_url}/latest.json",
            params={"app_id": self.app_id, "symbols": ",".join(symbols)},
        )

        if not isinstance(data, dict) or data.get("error") or not isinstance(data.get("rates"), dict):
            message = None
            if isinstance(data, dict):
                message = data.get("message") or data.get("description")
            raise InvalidResponseError(
                f"API error: {message or 'Unknown error'}",
                provider=self.name,
                details={"status": data.get("status") if isinstance(data, dict) else None},
            )

        native = self._transform(data["rates"], symbols)
        rate_set = derive_cross_rates(native, base, targets)
        logger.info(
            f"[{self.name}] Exchange rates fetch completed: {len(rate_set.rates)} rates "
            f"for {rate_set.rate_date.isoformat()}"
        )
        return rate_set

    def _transform(self, raw_rates: dict[str, Any], symbols: list[str]) -> RateSet:
        now = datetime.now(timezone.utc)
        rates = {
            code: Decimal(str(raw_rates[code]))
            for code in symbols
            if raw_rates.get(code) is not None
        }
        return RateSet(
            base=self.native_base,
            rates=rates,
            source=self.name,
            fetched_at=now,
            rate_date=previous_trading_day(now),
        )

    async def health_check(self) -> bool:
        """Minimal USD request; healthy only on a rates payload."""
        if not self.app_id:
            logger.warning(f"[{self.name}] Health check skipped - no App ID")
            return False

        try:
            data = await self.http.request_json(
                "GET",
                f"{self.base_url}/latest.json",
                params={"app_id": self.app_id, "symbols": "USD"},
                timeout=5.0,
            )
        except Exception as e:
            logger.warning(f"[{self.name}] Health check error: {e}")
            return False

        if isinstance(data, dict) and not data.get("error") and isinstance(data.get("rates"), dict):
            logger.debug(f"[{self.name}] Health check passed")
            return True

        logger.warning(f"[{self.name}] Health check failed: unexpected payload")
        return False

    async def close(self) -> None:
        await self.http.close()

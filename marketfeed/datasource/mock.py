"""
In-process providers for development and tests.

Deterministic data, switchable failures and delays, and call counters.
The service factory falls back to these when no API keys are configured.
"""

import asyncio
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from marketfeed.datasource.base import ExchangeRateProvider, FundamentalsProvider, PriceProvider
from marketfeed.models import Fundamentals, PriceQuote, RateSet
from marketfeed.services.errors import ProviderError, ProviderErrorCode


class _MockBehaviour:
    """Failure/delay switches shared by the mock providers."""

    def __init__(
        self,
        should_succeed: bool = True,
        delay: float = 0.0,
        error_message: str | None = None,
        error_code: ProviderErrorCode = ProviderErrorCode.PROVIDER_FAILED,
        is_healthy: bool = True,
    ):
        self.should_succeed = should_succeed
        self.delay = delay
        self.error_message = error_message
        self.error_code = error_code
        self.is_healthy = is_healthy
        self.call_count = 0
        self._failures_left = 0

    def set_success(self) -> None:
        self.should_succeed = True
        self._failures_left = 0

    def set_failure(
        self,
        error_message: str | None = None,
        error_code: ProviderErrorCode = ProviderErrorCode.PROVIDER_FAILED,
    ) -> None:
        self.should_succeed = False
        self.error_message = error_message
        self.error_code = error_code

    def fail_next(self, times: int, error_code: ProviderErrorCode = ProviderErrorCode.PROVIDER_FAILED) -> None:
        """Fail the next `times` calls, then succeed."""
        self._failures_left = times
        self.error_code = error_code

    def set_delay(self, delay: float) -> None:
        self.delay = delay

    async def _begin_call(self, provider: str) -> None:
        self.call_count += 1
        if self.delay > 0:
            await asyncio.sleep(self.delay)

        if self._failures_left > 0:
            self._failures_left -= 1
            raise self._error(provider)
        if not self.should_succeed:
            raise self._error(provider)

    def _error(self, provider: str) -> ProviderError:
        return ProviderError(
            self.error_message or "Mock provider failure",
            code=self.error_code,
            provider=provider,
        )

    async def health_check(self) -> bool:
        if self.delay > 0:
            await asyncio.sleep(self.delay)
        return self.is_healthy


class MockPriceProvider(_MockBehaviour, PriceProvider):
    """
    Mock price provider.

    Usage:
        provider = MockPriceProvider("primary")
        provider.set_price("PETR4", close="38.45", currency="BRL")
        provider.set_failure("vendor down")
    """

    def __init__(self, name: str = "mock-price", **behaviour: Any):
        super().__init__(**behaviour)
        self._name = name
        self._prices: dict[str, dict[str, Any]] = {}

    @property
    def name(self) -> str:
        return self._name

    def set_price(self, symbol: str, **fields: Any) -> None:
        """Override the generated quote for one symbol."""
        self._prices[symbol.upper()] = fields

    async def fetch_prices(self, symbols: list[str]) -> list[PriceQuote]:
        if not symbols:
            return []

        await self._begin_call(self.name)

        now = datetime.now(timezone.utc)
        quotes = []
        for symbol in dict.fromkeys(s.strip().upper() for s in symbols):
            fields: dict[str, Any] = {
                "open": Decimal("99.50"),
                "high": Decimal("101.00"),
                "low": Decimal("98.00"),
                "close": Decimal("100.00"),
                "volume": Decimal("1000000"),
                "currency": "USD",
            }
            fields.update(self._prices.get(symbol, {}))
            quotes.append(
                PriceQuote(
                    symbol=symbol,
                    source=self.name,
                    fetched_at=now,
                    price_date=now.date(),
                    **fields,
                )
            )
        return quotes


class MockExchangeRateProvider(_MockBehaviour, ExchangeRateProvider):
    """
    Mock exchange-rate provider.

    With native_base set it behaves like a fixed-base vendor and always
    answers against that base, whatever base is asked for.

    Usage:
        provider = MockExchangeRateProvider("oxr", native_base="USD")
        provider.set_rate("EUR", "0.92")
        provider.set_rate("BRL", "5.01")
    """

    DEFAULT_RATE = Decimal("1.2345")

    def __init__(
        self,
        name: str = "mock-exchange",
        native_base: str | None = None,
        **behaviour: Any,
    ):
        super().__init__(**behaviour)
        self._name = name
        self.native_base = native_base
        self._rates: dict[str, Decimal] = {}
        self.requests: list[tuple[str, list[str]]] = []

    @property
    def name(self) -> str:
        return self._name

    def set_rate(self, currency: str, rate: str | Decimal) -> None:
        self._rates[currency.upper()] = Decimal(str(rate))

    async def fetch_rates(self, base: str, targets: list[str]) -> RateSet:
        base = base.upper()
        targets = [t.upper() for t in targets]
        self.requests.append((base, targets))

        await self._begin_call(self.name)

        quote_base = self.native_base or base
        rates = {}
        for target in targets:
            if target == quote_base:
                rates[target] = Decimal("1")
            else:
                rates[target] = self._rates.get(target, self.DEFAULT_RATE)

        now = datetime.now(timezone.utc)
        return RateSet(
            base=quote_base,
            rates=rates,
            source=self.name,
            fetched_at=now,
            rate_date=now.date(),
        )


class MockFundamentalsProvider(_MockBehaviour, FundamentalsProvider):
    """
    Mock fundamentals provider.

    Usage:
        provider = MockFundamentalsProvider("primary")
        provider.set_fundamentals("PETR4", pe_ratio="4.2", sector="Energy")
    """

    def __init__(self, name: str = "mock-fundamentals", **behaviour: Any):
        super().__init__(**behaviour)
        self._name = name
        self._fundamentals: dict[str, dict[str, Any]] = {}

    @property
    def name(self) -> str:
        return self._name

    def set_fundamentals(self, symbol: str, **fields: Any) -> None:
        self._fundamentals[symbol.upper()] = fields

    async def fetch_fundamentals(self, symbols: list[str]) -> list[Fundamentals]:
        if not symbols:
            return []

        await self._begin_call(self.name)

        now = datetime.now(timezone.utc)
        results = []
        for symbol in dict.fromkeys(s.strip().upper() for s in symbols):
            fields: dict[str, Any] = {
                "pe_ratio": Decimal("15.5"),
                "pb_ratio": Decimal("2.3"),
                "dividend_yield": Decimal("3.5"),
                "market_cap": Decimal("1000000000"),
                "revenue": Decimal("500000000"),
                "earnings": Decimal("50000000"),
                "sector": "Technology",
                "industry": "Software",
            }
            fields.update(self._fundamentals.get(symbol, {}))
            results.append(
                Fundamentals(
                    symbol=symbol,
                    source=self.name,
                    fetched_at=now,
                    data_date=now.date(),
                    **fields,
                )
            )
        return results

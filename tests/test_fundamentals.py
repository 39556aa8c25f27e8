"""
Tests for the Gemini fundamentals adapter, FundamentalsService and its
factory.
"""

import asyncio
import json
from datetime import date
from decimal import Decimal

import httpx
import pytest

from marketfeed.datasource.fundamentals import GeminiFundamentalsProvider
from marketfeed.datasource.mock import MockFundamentalsProvider
from marketfeed.services.errors import (
    AllProvidersFailedError,
    FundamentalsNotFoundError,
    ProviderError,
    ProviderErrorCode,
    RateLimitError,
)
from marketfeed.services.factory import get_fundamentals_service
from marketfeed.services.fundamentals_service import FundamentalsService
from marketfeed.settings import load_settings

SYMBOLS = ["PETR4", "VALE3"]


class Vendor:
    def __init__(self, respond):
        self.respond = respond
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.respond(request)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


def record(symbol: str, **extra) -> dict:
    return {"symbol": symbol, "pe_ratio": 4.2, "data_date": "2025-12-05", **extra}


def echo(request: httpx.Request) -> httpx.Response:
    symbols = json.loads(request.content)["symbols"]
    return httpx.Response(200, json={"data": [record(s) for s in symbols], "errors": []})


def make_gemini(vendor: Vendor, **kwargs) -> GeminiFundamentalsProvider:
    kwargs.setdefault("api_key", "test-key")
    return GeminiFundamentalsProvider(base_url="https://gemini.test", http_client=vendor.client(), **kwargs)


class TestGeminiFundamentalsProvider:
    def test_fetch_fundamentals(self):
        vendor = Vendor(
            lambda request: httpx.Response(
                200,
                json={
                    "data": [
                        record(
                            "PETR4",
                            pb_ratio=1.1,
                            dividend_yield=12.5,
                            market_cap=480000000000,
                            revenue=None,
                            net_income=124600000000,
                            sector="Energy",
                            industry="Oil & Gas",
                        )
                    ]
                },
            )
        )
        results = asyncio.run(make_gemini(vendor).fetch_fundamentals(["petr4"]))

        request = vendor.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/v1/fundamentals/batch"
        assert request.headers["Authorization"] == "Bearer test-key"
        assert request.headers["X-Request-ID"].startswith("fundamentals-")

        petr4 = results[0]
        assert petr4.symbol == "PETR4"
        assert petr4.pe_ratio == Decimal("4.2")
        assert petr4.market_cap == Decimal("480000000000")
        assert petr4.earnings == Decimal("124600000000")
        assert petr4.revenue is None
        assert petr4.sector == "Energy"
        assert petr4.data_date == date(2025, 12, 5)
        assert petr4.source == "gemini-api"

    def test_empty_symbols_make_no_request(self):
        vendor = Vendor(echo)
        assert asyncio.run(make_gemini(vendor).fetch_fundamentals([])) == []
        assert vendor.requests == []

    def test_batches_are_capped(self):
        vendor = Vendor(echo)
        symbols = [f"SYM{i}" for i in range(60)]
        results = asyncio.run(make_gemini(vendor, batch_size=100).fetch_fundamentals(symbols))

        assert [len(json.loads(r.content)["symbols"]) for r in vendor.requests] == [50, 10]
        assert len(results) == 60

    def test_rate_limit_aborts(self):
        vendor = Vendor(lambda request: httpx.Response(429))
        with pytest.raises(RateLimitError):
            asyncio.run(make_gemini(vendor).fetch_fundamentals(SYMBOLS))

    def test_all_symbols_failed(self):
        vendor = Vendor(
            lambda request: httpx.Response(
                200, json={"data": [], "errors": [{"symbol": "XXXX", "error": "Unknown symbol"}]}
            )
        )
        with pytest.raises(ProviderError) as exc_info:
            asyncio.run(make_gemini(vendor).fetch_fundamentals(["XXXX"]))
        assert exc_info.value.code == ProviderErrorCode.PROVIDER_FAILED

    def test_missing_api_key(self):
        vendor = Vendor(echo)
        provider = make_gemini(vendor, api_key=None)

        with pytest.raises(ProviderError):
            asyncio.run(provider.fetch_fundamentals(SYMBOLS))
        assert asyncio.run(provider.health_check()) is False
        assert vendor.requests == []


@pytest.fixture
def primary():
    provider = MockFundamentalsProvider("primary")
    provider.set_fundamentals("PETR4", pe_ratio=Decimal("4.2"), sector="Energy")
    return provider


@pytest.fixture
def fallback():
    return MockFundamentalsProvider("fallback")


@pytest.fixture
def service(primary, fallback, cache, registry, sleeps, clock):
    return FundamentalsService(
        primary, fallback, cache, breaker_registry=registry, sleep=sleeps, clock=clock
    )


class TestFundamentalsService:
    def test_default_ttl_is_seven_days(self, service):
        assert service.cache_ttl_seconds == 7 * 24 * 60 * 60

    def test_primary_success(self, service, fallback):
        result = asyncio.run(service.get_fundamentals(SYMBOLS))

        assert result.provider == "primary"
        assert [f.symbol for f in result.fundamentals] == SYMBOLS
        assert result.fundamentals[0].pe_ratio == Decimal("4.2")
        assert fallback.call_count == 0

    def test_fallback_when_primary_fails(self, service, primary, fallback):
        primary.set_failure()
        result = asyncio.run(service.get_fundamentals(SYMBOLS))

        assert result.provider == "fallback"
        assert primary.call_count == 3

    def test_cache_hit_within_ttl(self, service, primary, clock):
        asyncio.run(service.get_fundamentals(SYMBOLS))
        clock.advance(days=6)
        result = asyncio.run(service.get_fundamentals(SYMBOLS))

        assert result.from_cache is True
        assert result.provider == "cache"
        assert primary.call_count == 1

    def test_stale_cache_when_providers_fail(self, service, primary, fallback, clock):
        asyncio.run(service.get_fundamentals(SYMBOLS))
        clock.advance(days=8)
        primary.set_failure()
        fallback.set_failure()

        result = asyncio.run(service.get_fundamentals(SYMBOLS))

        assert result.freshness.is_stale is True
        assert all(f.is_stale for f in result.fundamentals)

    def test_all_failed_without_cache(self, primary, fallback, registry, sleeps, clock):
        service = FundamentalsService(primary, fallback, breaker_registry=registry, sleep=sleeps, clock=clock)
        primary.set_failure()
        fallback.set_failure()

        with pytest.raises(AllProvidersFailedError) as exc_info:
            asyncio.run(service.get_fundamentals(SYMBOLS))
        assert exc_info.value.details["symbols"] == SYMBOLS

    def test_get_fundamental(self, service):
        petr4 = asyncio.run(service.get_fundamental("petr4"))
        assert petr4.sector == "Energy"

    def test_get_fundamental_not_found(self, cache, registry, sleeps, clock):
        class EmptyProvider(MockFundamentalsProvider):
            async def fetch_fundamentals(self, symbols):
                await self._begin_call(self.name)
                return []

        service = FundamentalsService(
            EmptyProvider("empty"), cache=cache, breaker_registry=registry, sleep=sleeps, clock=clock
        )
        with pytest.raises(FundamentalsNotFoundError) as exc_info:
            asyncio.run(service.get_fundamental("XXXX"))
        assert exc_info.value.code == ProviderErrorCode.PROVIDER_FAILED


class TestFundamentalsFactory:
    def test_mocks_without_key(self):
        service = get_fundamentals_service(load_settings({}))
        assert isinstance(service.primary, MockFundamentalsProvider)
        assert isinstance(service.fallback, MockFundamentalsProvider)

    def test_gemini_with_key(self):
        service = get_fundamentals_service(
            load_settings({"GEMINI_API_KEY": "g", "CACHE_TTL_FUNDAMENTALS": "3600"})
        )
        assert isinstance(service.primary, GeminiFundamentalsProvider)
        assert service.fallback is None
        assert service.cache_ttl_seconds == 3600

"""
Tests for the Gemini and Yahoo Finance price adapters against
httpx.MockTransport.
"""

import asyncio
import json
from datetime import date
from decimal import Decimal

import httpx
import pytest

from marketfeed.datasource.prices import GeminiPriceProvider, YahooFinancePriceProvider
from marketfeed.services.errors import ProviderError, ProviderErrorCode, RateLimitError


class Vendor:
    """MockTransport handler that records requests."""

    def __init__(self, respond):
        self.respond = respond
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.respond(request)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


def gemini_record(symbol: str, close: float = 10.5, **extra) -> dict:
    return {"symbol": symbol, "close": close, "currency": "BRL", "price_date": "2025-12-05", **extra}


def gemini_echo(request: httpx.Request) -> httpx.Response:
    symbols = json.loads(request.content)["symbols"]
    return httpx.Response(200, json={"data": [gemini_record(s) for s in symbols], "errors": []})


def make_gemini(vendor: Vendor, **kwargs) -> GeminiPriceProvider:
    kwargs.setdefault("api_key", "test-key")
    return GeminiPriceProvider(base_url="https://gemini.test", http_client=vendor.client(), **kwargs)


class TestGeminiPriceProvider:
    def test_fetch_prices(self):
        vendor = Vendor(
            lambda request: httpx.Response(
                200,
                json={
                    "data": [
                        gemini_record("PETR4", 38.45, open=38.1, high=38.9, low=37.8, volume=1000),
                        gemini_record("VALE3", 61.2, open=None),
                    ]
                },
            )
        )
        quotes = asyncio.run(make_gemini(vendor).fetch_prices(["petr4", "VALE3"]))

        request = vendor.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/v1/prices/batch"
        assert request.headers["Authorization"] == "Bearer test-key"
        assert json.loads(request.content) == {"symbols": ["PETR4", "VALE3"]}

        petr4, vale3 = quotes
        assert petr4.close == Decimal("38.45")
        assert petr4.open == Decimal("38.1")
        assert petr4.volume == Decimal("1000")
        assert petr4.source == "gemini-api"
        assert petr4.price_date == date(2025, 12, 5)
        assert vale3.open is None
        assert "open" not in vale3.model_dump(exclude_none=True)

    def test_empty_symbols_make_no_request(self):
        vendor = Vendor(gemini_echo)
        assert asyncio.run(make_gemini(vendor).fetch_prices([])) == []
        assert vendor.requests == []

    def test_batches_of_fifty(self):
        vendor = Vendor(gemini_echo)
        symbols = [f"SYM{i}" for i in range(120)]
        quotes = asyncio.run(make_gemini(vendor, batch_size=500).fetch_prices(symbols))

        sizes = [len(json.loads(r.content)["symbols"]) for r in vendor.requests]
        assert sizes == [50, 50, 20]
        assert len(quotes) == 120

    def test_partial_errors_return_subset(self):
        vendor = Vendor(
            lambda request: httpx.Response(
                200,
                json={
                    "data": [gemini_record("PETR4")],
                    "errors": [{"symbol": "XXXX", "error": "Unknown symbol", "code": "NOT_FOUND"}],
                },
            )
        )
        quotes = asyncio.run(make_gemini(vendor).fetch_prices(["PETR4", "XXXX"]))
        assert [q.symbol for q in quotes] == ["PETR4"]

    def test_failed_batch_does_not_affect_others(self):
        def respond(request):
            symbols = json.loads(request.content)["symbols"]
            if symbols[0] == "A0":
                return httpx.Response(500)
            return gemini_echo(request)

        vendor = Vendor(respond)
        symbols = [f"A{i}" for i in range(2)] + [f"B{i}" for i in range(2)]
        quotes = asyncio.run(make_gemini(vendor, batch_size=2).fetch_prices(symbols))
        assert [q.symbol for q in quotes] == ["B0", "B1"]

    def test_rate_limit_aborts_whole_fetch(self):
        def respond(request):
            symbols = json.loads(request.content)["symbols"]
            if symbols[0] == "B0":
                return httpx.Response(429, headers={"Retry-After": "5"})
            return gemini_echo(request)

        vendor = Vendor(respond)
        symbols = ["A0", "A1", "B0", "B1", "C0"]
        with pytest.raises(RateLimitError) as exc_info:
            asyncio.run(make_gemini(vendor, batch_size=2).fetch_prices(symbols))

        assert exc_info.value.retry_after == 5.0
        assert len(vendor.requests) == 2

    def test_all_symbols_failed(self):
        vendor = Vendor(
            lambda request: httpx.Response(
                200, json={"data": [], "errors": [{"symbol": "XXXX", "error": "Unknown symbol"}]}
            )
        )
        with pytest.raises(ProviderError) as exc_info:
            asyncio.run(make_gemini(vendor).fetch_prices(["XXXX"]))

        assert exc_info.value.code == ProviderErrorCode.PROVIDER_FAILED
        assert exc_info.value.details["errors"] == [{"symbol": "XXXX", "error": "Unknown symbol"}]

    def test_malformed_record_is_a_symbol_error(self):
        vendor = Vendor(
            lambda request: httpx.Response(
                200, json={"data": [gemini_record("PETR4"), {"symbol": "BROKEN"}]}
            )
        )
        quotes = asyncio.run(make_gemini(vendor).fetch_prices(["PETR4", "BROKEN"]))
        assert [q.symbol for q in quotes] == ["PETR4"]

    def test_non_object_error_entries_are_symbol_errors(self):
        vendor = Vendor(
            lambda request: httpx.Response(
                200, json={"data": [gemini_record("PETR4")], "errors": ["XXXX", None]}
            )
        )
        quotes = asyncio.run(make_gemini(vendor).fetch_prices(["PETR4", "XXXX"]))
        assert [q.symbol for q in quotes] == ["PETR4"]

    def test_errors_field_not_a_list(self):
        vendor = Vendor(
            lambda request: httpx.Response(200, json={"data": [], "errors": "bad request"})
        )
        with pytest.raises(ProviderError) as exc_info:
            asyncio.run(make_gemini(vendor).fetch_prices(["PETR4"]))

        assert exc_info.value.code == ProviderErrorCode.PROVIDER_FAILED
        assert "errors field is not a list" in exc_info.value.details["errors"][0]["error"]

    def test_missing_api_key_makes_no_request(self):
        vendor = Vendor(gemini_echo)
        provider = make_gemini(vendor, api_key=None)

        with pytest.raises(ProviderError) as exc_info:
            asyncio.run(provider.fetch_prices(["PETR4"]))
        assert exc_info.value.code == ProviderErrorCode.PROVIDER_FAILED
        assert vendor.requests == []
        assert asyncio.run(provider.health_check()) is False

    def test_health_check(self):
        healthy = Vendor(lambda request: httpx.Response(200, json={"status": "ok"}))
        assert asyncio.run(make_gemini(healthy).health_check()) is True
        assert healthy.requests[0].url.path == "/v1/health"

        unhealthy = Vendor(lambda request: httpx.Response(503))
        assert asyncio.run(make_gemini(unhealthy).health_check()) is False


def yahoo_quote(symbol: str, price: float = 38.45, **extra) -> dict:
    return {"symbol": symbol, "regularMarketPrice": price, "currency": "BRL", **extra}


def make_yahoo(vendor: Vendor, **kwargs) -> YahooFinancePriceProvider:
    return YahooFinancePriceProvider(base_url="https://yahoo.test", http_client=vendor.client(), **kwargs)


class TestYahooFinancePriceProvider:
    def test_fetch_prices_strips_exchange_suffix(self):
        vendor = Vendor(
            lambda request: httpx.Response(
                200,
                json={
                    "quoteResponse": {
                        "result": [
                            yahoo_quote(
                                "PETR4.SA",
                                regularMarketOpen=38.1,
                                regularMarketDayHigh=38.9,
                                regularMarketDayLow=37.8,
                                regularMarketVolume=52000000,
                                regularMarketTime=1764950400,
                            )
                        ],
                        "error": None,
                    }
                },
            )
        )
        quotes = asyncio.run(make_yahoo(vendor).fetch_prices(["PETR4.SA"]))

        request = vendor.requests[0]
        assert request.url.path == "/v7/finance/quote"
        assert request.url.params["symbols"] == "PETR4.SA"
        assert "X-RapidAPI-Key" not in request.headers

        quote = quotes[0]
        assert quote.symbol == "PETR4"
        assert quote.close == Decimal("38.45")
        assert quote.high == Decimal("38.9")
        assert quote.volume == Decimal("52000000")
        assert quote.price_date == date(2025, 12, 5)
        assert quote.source == "yahoo-finance"

    def test_rapidapi_headers_with_key(self):
        vendor = Vendor(
            lambda request: httpx.Response(
                200, json={"quoteResponse": {"result": [yahoo_quote("AAPL")], "error": None}}
            )
        )
        asyncio.run(make_yahoo(vendor, api_key="rapid-key").fetch_prices(["AAPL"]))

        headers = vendor.requests[0].headers
        assert headers["X-RapidAPI-Key"] == "rapid-key"
        assert headers["X-RapidAPI-Host"] == "apidojo-yahoo-finance-v1.p.rapidapi.com"

    def test_missing_symbols_are_dropped(self):
        vendor = Vendor(
            lambda request: httpx.Response(
                200, json={"quoteResponse": {"result": [yahoo_quote("AAPL")], "error": None}}
            )
        )
        quotes = asyncio.run(make_yahoo(vendor).fetch_prices(["AAPL", "MSFT"]))
        assert [q.symbol for q in quotes] == ["AAPL"]

    def test_api_error_is_provider_failed(self):
        vendor = Vendor(
            lambda request: httpx.Response(
                200, json={"quoteResponse": {"result": [], "error": "Invalid request"}}
            )
        )
        with pytest.raises(ProviderError) as exc_info:
            asyncio.run(make_yahoo(vendor).fetch_prices(["AAPL"]))
        assert exc_info.value.code == ProviderErrorCode.PROVIDER_FAILED
        assert "Invalid request" in exc_info.value.message

    def test_health_check(self):
        vendor = Vendor(lambda request: httpx.Response(200, json={"quoteResponse": {"result": []}}))
        assert asyncio.run(make_yahoo(vendor).health_check()) is True
        assert vendor.requests[0].url.params["symbols"] == "AAPL"

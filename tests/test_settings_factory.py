"""
Tests for settings loading, the service factories and provider
configuration reporting.
"""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from marketfeed.datasource.batched import MAX_BATCH_SIZE
from marketfeed.datasource.mock import MockExchangeRateProvider, MockPriceProvider
from marketfeed.datasource.prices import GeminiPriceProvider, YahooFinancePriceProvider
from marketfeed.datasource.rates import ExchangeRateAPIProvider, OpenExchangeRatesProvider
from marketfeed.services.factory import (
    get_exchange_rate_service,
    get_price_service,
    log_provider_config_status,
    validate_provider_config,
)
from marketfeed.settings import load_settings

ALL_KEYS = {
    "GEMINI_API_KEY": "g",
    "YAHOO_FINANCE_API_KEY": "y",
    "EXCHANGE_RATE_API_KEY": "e",
    "OPEN_EXCHANGE_RATES_APP_ID": "o",
}


class TestSettings:
    def test_defaults(self):
        settings = load_settings({})
        assert settings.prices_batch_size == 50
        assert settings.provider_retry_attempts == 3
        assert settings.provider_timeout_seconds == 10.0
        assert settings.circuit_breaker_threshold == 5
        assert settings.cache_ttl_prices == 86400
        assert settings.cache_enabled is True
        assert not settings.is_production

    def test_env_values_are_coerced(self):
        settings = load_settings(
            {
                "PROVIDER_RETRY_ATTEMPTS": "5",
                "CIRCUIT_BREAKER_RESET_SECONDS": "60",
                "CACHE_ENABLED": "false",
                "ENVIRONMENT": "production",
                "UNRELATED": "ignored",
            }
        )
        assert settings.retry_config().max_attempts == 5
        assert settings.circuit_breaker_config().reset_timeout == timedelta(seconds=60)
        assert settings.cache_enabled is False
        assert settings.is_production

    def test_batch_size_capped(self):
        with pytest.raises(ValidationError):
            load_settings({"PRICES_BATCH_SIZE": "100"})

    def test_batch_cap_matches_adapters(self):
        settings = load_settings({})
        assert settings.prices_batch_size == MAX_BATCH_SIZE
        assert settings.fundamentals_batch_size == MAX_BATCH_SIZE
        load_settings({"FUNDAMENTALS_BATCH_SIZE": str(MAX_BATCH_SIZE)})
        with pytest.raises(ValidationError):
            load_settings({"FUNDAMENTALS_BATCH_SIZE": str(MAX_BATCH_SIZE + 1)})


class TestFactories:
    def test_mocks_without_keys(self):
        settings = load_settings({})
        prices = get_price_service(settings)
        rates = get_exchange_rate_service(settings)

        assert isinstance(prices.primary, MockPriceProvider)
        assert isinstance(prices.fallback, MockPriceProvider)
        assert isinstance(rates.primary, MockExchangeRateProvider)
        assert isinstance(rates.fallback, MockExchangeRateProvider)

    def test_real_providers_with_keys(self):
        settings = load_settings(ALL_KEYS)
        prices = get_price_service(settings)
        rates = get_exchange_rate_service(settings)

        assert isinstance(prices.primary, GeminiPriceProvider)
        assert isinstance(prices.fallback, YahooFinancePriceProvider)
        assert isinstance(rates.primary, ExchangeRateAPIProvider)
        assert isinstance(rates.fallback, OpenExchangeRatesProvider)

    def test_gemini_key_enables_yahoo_fallback(self):
        prices = get_price_service(load_settings({"GEMINI_API_KEY": "g"}))
        assert isinstance(prices.fallback, YahooFinancePriceProvider)

    def test_settings_flow_into_service(self):
        settings = load_settings(
            {"PROVIDER_RETRY_ATTEMPTS": "2", "CACHE_TTL_EXCHANGE_RATES": "600"}
        )
        rates = get_exchange_rate_service(settings)
        assert rates.retry_config.max_attempts == 2
        assert rates.cache_ttl_seconds == 600

    def test_overrides_win(self):
        primary = MockPriceProvider("custom")
        prices = get_price_service(load_settings(ALL_KEYS), primary=primary, cache=None)
        assert prices.primary is primary
        assert prices.cache is None


class TestProviderConfigReport:
    def test_missing_required_keys(self):
        report = validate_provider_config(load_settings({"YAHOO_FINANCE_API_KEY": "y"}))

        assert report.using_mock_providers
        assert report.summary() == {
            "GEMINI_API_KEY": False,
            "EXCHANGE_RATE_API_KEY": False,
            "YAHOO_FINANCE_API_KEY": True,
            "OPEN_EXCHANGE_RATES_APP_ID": False,
        }
        assert len(report.warnings) == 2
        assert report.warnings[0].startswith("GEMINI_API_KEY not set - using MOCK Gemini API")

    def test_all_required_configured(self):
        report = validate_provider_config(
            load_settings({"GEMINI_API_KEY": "g", "EXCHANGE_RATE_API_KEY": "e"})
        )
        assert not report.using_mock_providers
        assert report.warnings == []

    def test_log_status_returns_report(self):
        report = log_provider_config_status(load_settings({"ENVIRONMENT": "production"}))
        assert report.is_production
        assert report.using_mock_providers

"""
Service factories and provider configuration checks.

Real vendors are used when their keys are configured; otherwise the
services run on mock providers so development works without credentials.
"""

from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from marketfeed.datasource.fundamentals import GeminiFundamentalsProvider
from marketfeed.datasource.mock import MockExchangeRateProvider, MockFundamentalsProvider, MockPriceProvider
from marketfeed.datasource.prices import GeminiPriceProvider, YahooFinancePriceProvider
from marketfeed.datasource.rates import ExchangeRateAPIProvider, OpenExchangeRatesProvider
from marketfeed.services.cache import CacheManager
from marketfeed.services.exchange_rate_service import ExchangeRateService
from marketfeed.services.fundamentals_service import FundamentalsService
from marketfeed.services.price_service import PriceService
from marketfeed.settings import Settings, global_settings


@dataclass(frozen=True)
class ProviderRequirement:
    name: str
    env_var: str
    required: bool
    description: str
    get_key_url: str


@dataclass
class ProviderConfigStatus:
    name: str
    env_var: str
    configured: bool
    required: bool
    description: str
    get_key_url: str


@dataclass
class ProviderConfigReport:
    is_production: bool
    using_mock_providers: bool
    providers: list[ProviderConfigStatus] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def summary(self) -> dict[str, bool]:
        """{env_var: configured}"""
        return {p.env_var: p.configured for p in self.providers}


PROVIDER_REQUIREMENTS = [
    ProviderRequirement(
        name="Gemini API",
        env_var="GEMINI_API_KEY",
        required=True,
        description="Daily asset prices and company fundamentals",
        get_key_url="https://aistudio.google.com/app/apikey",
    ),
    ProviderRequirement(
        name="ExchangeRate-API",
        env_var="EXCHANGE_RATE_API_KEY",
        required=True,
        description="Currency exchange rates",
        get_key_url="https://www.exchangerate-api.com/",
    ),
    ProviderRequirement(
        name="Yahoo Finance",
        env_var="YAHOO_FINANCE_API_KEY",
        required=False,
        description="Fallback price provider",
        get_key_url="https://rapidapi.com/apidojo/api/yahoo-finance1",
    ),
    ProviderRequirement(
        name="Open Exchange Rates",
        env_var="OPEN_EXCHANGE_RATES_APP_ID",
        required=False,
        description="Fallback exchange rates provider",
        get_key_url="https://openexchangerates.org/signup",
    ),
]

_ENV_TO_FIELD = {
    "GEMINI_API_KEY": "gemini_api_key",
    "EXCHANGE_RATE_API_KEY": "exchange_rate_api_key",
    "YAHOO_FINANCE_API_KEY": "yahoo_finance_api_key",
    "OPEN_EXCHANGE_RATES_APP_ID": "open_exchange_rates_app_id",
}


def validate_provider_config(settings: Settings | None = None) -> ProviderConfigReport:
    """Report which providers are configured and whether mocks will be used."""
    settings = settings or global_settings

    providers = [
        ProviderConfigStatus(
            name=req.name,
            env_var=req.env_var,
            configured=bool(getattr(settings, _ENV_TO_FIELD[req.env_var])),
            required=req.required,
            description=req.description,
            get_key_url=req.get_key_url,
        )
        for req in PROVIDER_REQUIREMENTS
    ]

    missing_required = [p for p in providers if p.required and not p.configured]
    warnings = [
        f"{p.env_var} not set - using MOCK {p.name}. Get key from: {p.get_key_url}"
        for p in missing_required
    ]

    return ProviderConfigReport(
        is_production=settings.is_production,
        using_mock_providers=bool(missing_required),
        providers=providers,
        warnings=warnings,
    )


def log_provider_config_status(settings: Settings | None = None) -> ProviderConfigReport:
    report = validate_provider_config(settings)

    configured = ", ".join(p.name for p in report.providers if p.configured) or "none"
    mocked = ", ".join(p.name for p in report.providers if p.required and not p.configured)

    if report.using_mock_providers and report.is_production:
        logger.error(
            f"PRODUCTION USING MOCK PROVIDERS - data refresh will return fake data "
            f"(configured: {configured}; mocked: {mocked}). "
            f"Set required API keys in environment variables"
        )
    elif report.using_mock_providers:
        logger.info(f"Development mode: using mock providers (configured: {configured}; mocked: {mocked})")
    else:
        logger.info(f"All required data providers configured: {configured}")

    for warning in report.warnings:
        logger.warning(warning)

    return report


def _cache_from(settings: Settings) -> CacheManager:
    return CacheManager(max_size=settings.cache_max_size, enabled=settings.cache_enabled)


def get_price_service(settings: Settings | None = None, **overrides: Any) -> PriceService:
    """
    Build a PriceService from settings.

    Gemini is primary when GEMINI_API_KEY is set. Yahoo Finance is the
    fallback when either price key is set. Mocks fill the gaps. Any
    PriceService constructor argument can be passed as an override.
    """
    settings = settings or global_settings
    http_client = overrides.pop("http_client", None)

    if "primary" not in overrides:
        if settings.gemini_api_key:
            overrides["primary"] = GeminiPriceProvider(
                api_key=settings.gemini_api_key,
                base_url=settings.gemini_api_url,
                timeout=settings.provider_timeout_seconds,
                batch_size=settings.prices_batch_size,
                http_client=http_client,
            )
        else:
            logger.warning("GEMINI_API_KEY not set - using mock price provider")
            overrides["primary"] = MockPriceProvider("mock-price-primary")

    if "fallback" not in overrides:
        if settings.yahoo_finance_api_key or settings.gemini_api_key:
            overrides["fallback"] = YahooFinancePriceProvider(
                api_key=settings.yahoo_finance_api_key,
                base_url=settings.yahoo_finance_api_url,
                timeout=settings.provider_timeout_seconds,
                batch_size=settings.prices_batch_size,
                http_client=http_client,
            )
        else:
            overrides["fallback"] = MockPriceProvider("mock-price-fallback")

    overrides.setdefault("cache", _cache_from(settings))
    overrides.setdefault("cache_ttl_seconds", settings.cache_ttl_prices)
    overrides.setdefault("retry_config", settings.retry_config())
    overrides.setdefault("breaker_config", settings.circuit_breaker_config())

    return PriceService(**overrides)


def get_exchange_rate_service(settings: Settings | None = None, **overrides: Any) -> ExchangeRateService:
    """
    Build an ExchangeRateService from settings.

    ExchangeRate-API is primary when EXCHANGE_RATE_API_KEY is set and Open
    Exchange Rates is the fallback when OPEN_EXCHANGE_RATES_APP_ID is set.
    Mocks fill the gaps.
    """
    settings = settings or global_settings
    http_client = overrides.pop("http_client", None)

    if "primary" not in overrides:
        if settings.exchange_rate_api_key:
            overrides["primary"] = ExchangeRateAPIProvider(
                api_key=settings.exchange_rate_api_key,
                base_url=settings.exchange_rate_api_url,
                timeout=settings.provider_timeout_seconds,
                http_client=http_client,
            )
        else:
            logger.warning("EXCHANGE_RATE_API_KEY not set - using mock exchange rate provider")
            overrides["primary"] = MockExchangeRateProvider("mock-exchange-primary")

    if "fallback" not in overrides:
        if settings.open_exchange_rates_app_id:
            overrides["fallback"] = OpenExchangeRatesProvider(
                app_id=settings.open_exchange_rates_app_id,
                base_url=settings.open_exchange_rates_url,
                timeout=settings.provider_timeout_seconds,
                http_client=http_client,
            )
        else:
            overrides["fallback"] = MockExchangeRateProvider("mock-exchange-fallback")

    overrides.setdefault("cache", _cache_from(settings))
    overrides.setdefault("cache_ttl_seconds", settings.cache_ttl_exchange_rates)
    overrides.setdefault("retry_config", settings.retry_config())
    overrides.setdefault("breaker_config", settings.circuit_breaker_config())

    return ExchangeRateService(**overrides)


def get_fundamentals_service(settings: Settings | None = None, **overrides: Any) -> FundamentalsService:
    """
    Build a FundamentalsService from settings.

    Gemini is primary when GEMINI_API_KEY is set, with no fallback. Without
    the key both tiers are mocks.
    """
    settings = settings or global_settings
    http_client = overrides.pop("http_client", None)

    if "primary" not in overrides:
        if settings.gemini_api_key:
            overrides["primary"] = GeminiFundamentalsProvider(
                api_key=settings.gemini_api_key,
                base_url=settings.gemini_api_url,
                timeout=settings.provider_timeout_seconds,
                batch_size=settings.fundamentals_batch_size,
                http_client=http_client,
            )
            overrides.setdefault("fallback", None)
        else:
            logger.warning("GEMINI_API_KEY not set - using mock fundamentals provider")
            overrides["primary"] = MockFundamentalsProvider("mock-fundamentals-primary")

    if "fallback" not in overrides:
        overrides["fallback"] = MockFundamentalsProvider("mock-fundamentals-fallback")

    overrides.setdefault("cache", _cache_from(settings))
    overrides.setdefault("cache_ttl_seconds", settings.cache_ttl_fundamentals)
    overrides.setdefault("retry_config", settings.retry_config())
    overrides.setdefault("breaker_config", settings.circuit_breaker_config())

    return FundamentalsService(**overrides)

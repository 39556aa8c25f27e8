"""
marketfeed - resilient multi-provider access to asset prices, FX rates and
company fundamentals.
"""

from marketfeed.models import (
    ExchangeRateServiceResult,
    Freshness,
    Fundamentals,
    FundamentalsServiceResult,
    PriceQuote,
    PriceServiceResult,
    RateSet,
)
from marketfeed.services.errors import ProviderError, ProviderErrorCode
from marketfeed.services.exchange_rate_service import ExchangeRateService
from marketfeed.services.fundamentals_service import FundamentalsService
from marketfeed.services.price_service import PriceService
from marketfeed.services.factory import (
    get_exchange_rate_service,
    get_fundamentals_service,
    get_price_service,
    log_provider_config_status,
    validate_provider_config,
)

__all__ = [
    "ExchangeRateService",
    "ExchangeRateServiceResult",
    "Freshness",
    "Fundamentals",
    "FundamentalsService",
    "FundamentalsServiceResult",
    "PriceQuote",
    "PriceService",
    "PriceServiceResult",
    "ProviderError",
    "ProviderErrorCode",
    "RateSet",
    "get_exchange_rate_service",
    "get_fundamentals_service",
    "get_price_service",
    "log_provider_config_status",
    "validate_provider_config",
]

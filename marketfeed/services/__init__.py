"""
Service layer - resilience patterns around the market-data vendors.

Provides:
- CacheManager: In-memory cache with TTL and stale retention
- CircuitBreaker: Stops calling a failing provider
- with_retry: Per-attempt timeout and backoff retries
- derive_cross_rates: Cross rates for fixed-base vendors

PriceService, ExchangeRateService and the factories live in their own
modules and are re-exported from the top-level package.
"""

from marketfeed.services.errors import (
    AllProvidersFailedError,
    CircuitOpenError,
    InvalidResponseError,
    FundamentalsNotFoundError,
    PriceNotFoundError,
    ProviderError,
    ProviderErrorCode,
    RateLimitError,
    RateNotFoundError,
    RequestTimeoutError,
)
from marketfeed.services.cache import CacheClient, CacheEntry, CacheManager, CacheMetadata
from marketfeed.services.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
    CircuitState,
    circuit_breaker_registry,
)
from marketfeed.services.retry import RetryConfig, create_retry_wrapper, with_retry
from marketfeed.services.cross_rates import derive_cross_rates

__all__ = [
    # Errors
    "ProviderError",
    "ProviderErrorCode",
    "CircuitOpenError",
    "RateLimitError",
    "RequestTimeoutError",
    "InvalidResponseError",
    "AllProvidersFailedError",
    "PriceNotFoundError",
    "FundamentalsNotFoundError",
    "RateNotFoundError",
    # Cache
    "CacheClient",
    "CacheEntry",
    "CacheManager",
    "CacheMetadata",
    # Circuit Breaker
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerRegistry",
    "CircuitState",
    "circuit_breaker_registry",
    # Retry
    "RetryConfig",
    "create_retry_wrapper",
    "with_retry",
    # Cross rates
    "derive_cross_rates",
]

import os
from collections.abc import Mapping
from datetime import timedelta

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from marketfeed.datasource.batched import MAX_BATCH_SIZE
from marketfeed.services.circuit_breaker import CircuitBreakerConfig
from marketfeed.services.retry import RetryConfig

load_dotenv()


class Settings(BaseModel):
    # Runtime
    environment: str = Field(default="development", alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Price providers
    gemini_api_key: str = Field(default="", alias="GEMINI_API_KEY")
    gemini_api_url: str = Field(
        default="https://api.gemini.example.com", alias="GEMINI_API_URL"
    )
    yahoo_finance_api_key: str = Field(default="", alias="YAHOO_FINANCE_API_KEY")
    yahoo_finance_api_url: str = Field(
        default="https://query1.finance.yahoo.com", alias="YAHOO_FINANCE_API_URL"
    )
    prices_batch_size: int = Field(
        default=MAX_BATCH_SIZE, ge=1, le=MAX_BATCH_SIZE, alias="PRICES_BATCH_SIZE"
    )
    fundamentals_batch_size: int = Field(
        default=MAX_BATCH_SIZE, ge=1, le=MAX_BATCH_SIZE, alias="FUNDAMENTALS_BATCH_SIZE"
    )

    # Exchange rate providers
    exchange_rate_api_key: str = Field(default="", alias="EXCHANGE_RATE_API_KEY")
    exchange_rate_api_url: str = Field(
        default="https://v6.exchangerate-api.com/v6", alias="EXCHANGE_RATE_API_URL"
    )
    open_exchange_rates_app_id: str = Field(
        default="", alias="OPEN_EXCHANGE_RATES_APP_ID"
    )
    open_exchange_rates_url: str = Field(
        default="https://openexchangerates.org/api", alias="OPEN_EXCHANGE_RATES_URL"
    )

    # Retry
    provider_retry_attempts: int = Field(default=3, ge=1, alias="PROVIDER_RETRY_ATTEMPTS")
    provider_timeout_seconds: float = Field(
        default=10.0, gt=0, alias="PROVIDER_TIMEOUT_SECONDS"
    )

    # Circuit breaker
    circuit_breaker_threshold: int = Field(
        default=5, ge=1, alias="CIRCUIT_BREAKER_THRESHOLD"
    )
    circuit_breaker_reset_seconds: int = Field(
        default=300, ge=0, alias="CIRCUIT_BREAKER_RESET_SECONDS"
    )

    # Cache
    cache_enabled: bool = Field(default=True, alias="CACHE_ENABLED")
    cache_ttl_prices: int = Field(default=24 * 60 * 60, ge=1, alias="CACHE_TTL_PRICES")
    cache_ttl_exchange_rates: int = Field(
        default=24 * 60 * 60, ge=1, alias="CACHE_TTL_EXCHANGE_RATES"
    )
    cache_ttl_fundamentals: int = Field(
        default=7 * 24 * 60 * 60, ge=1, alias="CACHE_TTL_FUNDAMENTALS"
    )
    cache_max_size: int = Field(default=1000, ge=1, alias="CACHE_MAX_SIZE")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    def retry_config(self) -> RetryConfig:
        return RetryConfig(
            max_attempts=self.provider_retry_attempts,
            timeout=self.provider_timeout_seconds,
        )

    def circuit_breaker_config(self) -> CircuitBreakerConfig:
        return CircuitBreakerConfig(
            failure_threshold=self.circuit_breaker_threshold,
            reset_timeout=timedelta(seconds=self.circuit_breaker_reset_seconds),
        )


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """Build Settings from environment variables (or any mapping)."""
    source = os.environ if env is None else env
    known = {field.alias for field in Settings.model_fields.values()}
    return Settings.model_validate({k: v for k, v in source.items() if k in known})


global_settings = load_settings()

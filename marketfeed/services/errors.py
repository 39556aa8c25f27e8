"""
Provider layer exceptions.

Every failure surfaced by this package is a ProviderError carrying a code
from ProviderErrorCode. Subclasses exist so callers can `except` a specific
failure without inspecting the code.
"""

from enum import Enum
from typing import Any


class ProviderErrorCode(str, Enum):
    """Error codes for provider operations."""

    PROVIDER_FAILED = "PROVIDER_FAILED"
    CIRCUIT_OPEN = "CIRCUIT_OPEN"
    TIMEOUT = "TIMEOUT"
    ALL_PROVIDERS_FAILED = "ALL_PROVIDERS_FAILED"
    INVALID_RESPONSE = "INVALID_RESPONSE"
    RATE_LIMITED = "RATE_LIMITED"


class ProviderError(Exception):
    """Base exception for provider failures."""

    def __init__(
        self,
        message: str,
        code: ProviderErrorCode = ProviderErrorCode.PROVIDER_FAILED,
        provider: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code
        self.provider = provider
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "error": self.message,
            "code": self.code.value,
            "provider": self.provider,
            "details": self.details,
        }


class CircuitOpenError(ProviderError):
    """Circuit breaker is open, request blocked."""

    def __init__(
        self,
        provider: str,
        reset_after_seconds: float,
        details: dict[str, Any] | None = None,
    ):
        self.reset_after_seconds = reset_after_seconds
        super().__init__(
            f"Circuit breaker open for provider '{provider}', "
            f"retry after {reset_after_seconds:.1f}s",
            code=ProviderErrorCode.CIRCUIT_OPEN,
            provider=provider,
            details=details,
        )


class RequestTimeoutError(ProviderError):
    """Request timed out."""

    def __init__(
        self,
        provider: str,
        timeout: float,
        details: dict[str, Any] | None = None,
    ):
        self.timeout = timeout
        super().__init__(
            f"Request to provider '{provider}' timed out after {timeout}s",
            code=ProviderErrorCode.TIMEOUT,
            provider=provider,
            details=details,
        )


class RateLimitError(ProviderError):
    """Rate limit exceeded (HTTP 429)."""

    def __init__(
        self,
        provider: str,
        retry_after: float | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.retry_after = retry_after
        msg = f"Rate limit exceeded for provider '{provider}'"
        if retry_after:
            msg += f", retry after {retry_after}s"
        details = dict(details or {})
        if retry_after is not None:
            details["retry_after"] = retry_after
        super().__init__(
            msg,
            code=ProviderErrorCode.RATE_LIMITED,
            provider=provider,
            details=details,
        )


class InvalidResponseError(ProviderError):
    """Provider answered, but the payload is unusable."""

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            message,
            code=ProviderErrorCode.INVALID_RESPONSE,
            provider=provider,
            details=details,
        )


class AllProvidersFailedError(ProviderError):
    """Every tier (primary, fallback, stale cache) failed or was absent."""

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            message,
            code=ProviderErrorCode.ALL_PROVIDERS_FAILED,
            provider=provider,
            details=details,
        )


class PriceNotFoundError(ProviderError):
    """A successful price lookup did not contain the requested symbol."""

    def __init__(self, symbol: str, provider: str | None = None):
        self.symbol = symbol
        super().__init__(
            f"Price not found for symbol: {symbol}",
            code=ProviderErrorCode.PROVIDER_FAILED,
            provider=provider,
            details={"symbol": symbol},
        )


class FundamentalsNotFoundError(ProviderError):
    """A successful fundamentals lookup did not contain the requested symbol."""

    def __init__(self, symbol: str, provider: str | None = None):
        self.symbol = symbol
        super().__init__(
            f"Fundamentals not found for symbol: {symbol}",
            code=ProviderErrorCode.PROVIDER_FAILED,
            provider=provider,
            details={"symbol": symbol},
        )


class RateNotFoundError(ProviderError):
    """A successful rate lookup did not contain the requested target."""

    def __init__(self, base: str, target: str, provider: str | None = None):
        self.base = base
        self.target = target
        super().__init__(
            f"Exchange rate not found for {base} -> {target}",
            code=ProviderErrorCode.INVALID_RESPONSE,
            provider=provider,
            details={"base": base, "target": target},
        )

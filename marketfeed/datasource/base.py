"""
Base provider interfaces.
"""

from abc import ABC, abstractmethod

from marketfeed.models import Fundamentals, PriceQuote, RateSet


class PriceProvider(ABC):
    """
    Abstract base class for price vendors.

    All price providers should:
    - Return normalized PriceQuote models with canonical symbols
    - Return an empty list for an empty symbol list, without a network call
    - Return the successful subset on partial failure, raising only when
      no symbol succeeded
    - Raise ProviderError subclasses, never raw transport exceptions
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique provider identity, used for attribution and breaker lookup."""
        ...

    @abstractmethod
    async def fetch_prices(self, symbols: list[str]) -> list[PriceQuote]:
        """Fetch prices for the given symbols."""
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the provider is reachable. Never raises."""
        ...


class ExchangeRateProvider(ABC):
    """
    Abstract base class for exchange-rate vendors.

    native_base is the only base currency the vendor publishes, or None when
    any base can be requested directly. The exchange-rate service derives
    cross rates for fixed-base vendors.
    """

    native_base: str | None = None

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique provider identity, used for attribution and breaker lookup."""
        ...

    @abstractmethod
    async def fetch_rates(self, base: str, targets: list[str]) -> RateSet:
        """Fetch rates from base to each target."""
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the provider is reachable. Never raises."""
        ...


class FundamentalsProvider(ABC):
    """
    Abstract base class for company fundamentals vendors.

    Same contract as PriceProvider: empty input makes no request, partial
    results are returned, and only ProviderError subclasses are raised.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    async def fetch_fundamentals(self, symbols: list[str]) -> list[Fundamentals]:
        """Fetch fundamentals for the given symbols."""
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        ...

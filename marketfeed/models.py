"""
Normalized market data types shared by every provider and service.

Monetary values are Decimal, never float. Serializing with
model_dump(mode="json") emits them as decimal strings.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class PriceQuote(BaseModel):
    """Daily price for one asset.

    open/high/low/volume are None when the vendor did not supply them.
    They are never zero-filled.
    """

    model_config = ConfigDict(frozen=True)

    symbol: str
    open: Decimal | None = None
    high: Decimal | None = None
    low: Decimal | None = None
    close: Decimal
    volume: Decimal | None = None
    currency: str
    source: str
    fetched_at: datetime
    price_date: date
    is_stale: bool = False


class RateSet(BaseModel):
    """Exchange rates from one base currency to several targets."""

    model_config = ConfigDict(frozen=True)

    base: str
    rates: dict[str, Decimal] = Field(default_factory=dict)
    source: str
    fetched_at: datetime
    rate_date: date
    is_stale: bool = False


class Fundamentals(BaseModel):
    """Company fundamentals for one asset.

    Metrics the vendor did not report are None. earnings is net income.
    """

    model_config = ConfigDict(frozen=True)

    symbol: str
    pe_ratio: Decimal | None = None
    pb_ratio: Decimal | None = None
    dividend_yield: Decimal | None = None
    market_cap: Decimal | None = None
    revenue: Decimal | None = None
    earnings: Decimal | None = None
    sector: str | None = None
    industry: str | None = None
    source: str
    fetched_at: datetime
    data_date: date
    is_stale: bool = False


class Freshness(BaseModel):
    """Where a result came from and whether it is stale."""

    model_config = ConfigDict(frozen=True)

    source: str
    fetched_at: datetime
    is_stale: bool = False
    stale_since: datetime | None = None


@dataclass
class PriceServiceResult:
    """Result from PriceService.get_prices."""

    prices: list[PriceQuote]
    from_cache: bool
    provider: str
    freshness: Freshness


@dataclass
class ExchangeRateServiceResult:
    """Result from ExchangeRateService.get_rates."""

    rates: RateSet
    from_cache: bool
    provider: str
    freshness: Freshness


@dataclass
class FundamentalsServiceResult:
    """Result from FundamentalsService.get_fundamentals."""

    fundamentals: list[Fundamentals]
    from_cache: bool
    provider: str
    freshness: Freshness

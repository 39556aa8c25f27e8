"""
Market-data vendors behind the PriceProvider, ExchangeRateProvider and
FundamentalsProvider interfaces.
"""

from marketfeed.datasource.base import ExchangeRateProvider, FundamentalsProvider, PriceProvider

__all__ = ["ExchangeRateProvider", "FundamentalsProvider", "PriceProvider"]

"""
Price vendors.
"""

from marketfeed.datasource.prices.gemini import GeminiPriceProvider
from marketfeed.datasource.prices.yahoo import YahooFinancePriceProvider

__all__ = ["GeminiPriceProvider", "YahooFinancePriceProvider"]

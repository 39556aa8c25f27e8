"""
Exchange-rate vendors.
"""

from marketfeed.datasource.rates.currencies import SUPPORTED_CURRENCIES, validate_currency
from marketfeed.datasource.rates.exchangerate_api import ExchangeRateAPIProvider
from marketfeed.datasource.rates.open_exchange_rates import OpenExchangeRatesProvider

__all__ = [
    "SUPPORTED_CURRENCIES",
    "ExchangeRateAPIProvider",
    "OpenExchangeRatesProvider",
    "validate_currency",
]

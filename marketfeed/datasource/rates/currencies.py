"""
Currencies accepted by the exchange-rate vendors.
"""

from marketfeed.services.errors import InvalidResponseError

SUPPORTED_CURRENCIES = ("USD", "EUR", "GBP", "BRL", "CAD", "AUD", "JPY", "CHF")


def validate_currency(currency: str) -> bool:
    return currency in SUPPORTED_CURRENCIES


def check_currencies(provider: str, base: str, targets: list[str]) -> None:
    """
    Reject unsupported codes before any network call.

    Raises:
        InvalidResponseError: base or any target is unsupported
    """
    supported = ", ".join(SUPPORTED_CURRENCIES)

    if not validate_currency(base):
        raise InvalidResponseError(
            f"Unsupported base currency: {base}. Supported currencies: {supported}",
            provider=provider,
            details={"base": base, "supported_currencies": list(SUPPORTED_CURRENCIES)},
        )

    invalid = [t for t in targets if not validate_currency(t)]
    if invalid:
        raise InvalidResponseError(
            f"Unsupported target currencies: {', '.join(invalid)}. "
            f"Supported currencies: {supported}",
            provider=provider,
            details={"invalid_targets": invalid, "supported_currencies": list(SUPPORTED_CURRENCIES)},
        )

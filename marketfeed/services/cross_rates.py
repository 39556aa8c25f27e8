"""
Cross-rate derivation for vendors that publish against one fixed base.

For native base N and requested base B:

    rate(B -> T) = rate(N -> T) / rate(N -> B)

and rate(X -> X) is always exactly 1.
"""

from decimal import Decimal

from loguru import logger

from marketfeed.models import RateSet
from marketfeed.services.errors import InvalidResponseError

ONE = Decimal("1")


def normalize_currency(code: str) -> str:
    return code.strip().upper()


def fetch_targets_for(base: str, targets: list[str], native_base: str | None) -> list[str]:
    """Currencies to request from a provider to answer (base, targets).

    Identity targets are dropped. For a fixed-base provider queried with a
    different base, the base itself is added so the divisor is available.
    """
    wanted = [t for t in dict.fromkeys(targets) if t != base]
    if native_base and base != native_base:
        if base not in wanted:
            wanted.append(base)
        wanted = [t for t in wanted if t != native_base]
    return wanted


def derive_cross_rates(
    native: RateSet,
    base: str,
    targets: list[str],
) -> RateSet:
    """
    Re-express a native-base RateSet against base, scoped to targets.

    Raises:
        InvalidResponseError: the rate from the native base to the requested
            base is missing or zero
    """
    rates: dict[str, Decimal] = {}

    if base == native.base:
        divisor = ONE
    else:
        divisor = native.rates.get(base)
        if divisor is None or divisor == 0:
            raise InvalidResponseError(
                f"Could not get {native.base} to {base} rate for conversion",
                provider=native.source,
                details={"base": base, "available_rates": sorted(native.rates)},
            )

    for target in targets:
        if target == base:
            rates[target] = ONE
        elif target == native.base:
            rates[target] = ONE / divisor
        elif target in native.rates:
            rates[target] = native.rates[target] / divisor
        else:
            logger.warning(
                f"Missing rate for target currency {target} "
                f"(provider={native.source}, base={base})"
            )

    return RateSet(
        base=base,
        rates=rates,
        source=native.source,
        fetched_at=native.fetched_at,
        rate_date=native.rate_date,
    )

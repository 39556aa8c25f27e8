"""
marketfeed command line entry point.

    python main.py prices PETR4 VALE3
    python main.py rates USD BRL EUR
    python main.py fundamentals PETR4 VALE3
    python main.py health
    python main.py config
"""

import argparse
import asyncio
import json
import sys

from loguru import logger

from marketfeed import (
    ProviderError,
    get_exchange_rate_service,
    get_fundamentals_service,
    get_price_service,
    log_provider_config_status,
)
from marketfeed.settings import global_settings
from marketfeed.utils import configure_logging


async def show_prices(symbols: list[str], skip_cache: bool) -> None:
    service = get_price_service()
    result = await service.get_prices(symbols, skip_cache=skip_cache)

    logger.info(
        f"{len(result.prices)}/{len(symbols)} prices from {result.provider} "
        f"(stale={result.freshness.is_stale})"
    )
    print(json.dumps([q.model_dump(mode="json", exclude_none=True) for q in result.prices], indent=2))


async def show_rates(base: str, targets: list[str], skip_cache: bool) -> None:
    service = get_exchange_rate_service()
    result = await service.get_rates(base, targets, skip_cache=skip_cache)

    logger.info(f"Rates for {base} from {result.provider} (stale={result.freshness.is_stale})")
    print(json.dumps(result.rates.model_dump(mode="json"), indent=2))


async def show_fundamentals(symbols: list[str], skip_cache: bool) -> None:
    service = get_fundamentals_service()
    result = await service.get_fundamentals(symbols, skip_cache=skip_cache)

    logger.info(
        f"{len(result.fundamentals)}/{len(symbols)} fundamentals from {result.provider} "
        f"(stale={result.freshness.is_stale})"
    )
    print(json.dumps([f.model_dump(mode="json", exclude_none=True) for f in result.fundamentals], indent=2))


async def show_health() -> None:
    prices = get_price_service()
    rates = get_exchange_rate_service()
    fundamentals = get_fundamentals_service()
    price_health, rate_health, fundamentals_health = await asyncio.gather(
        prices.health_check(), rates.health_check(), fundamentals.health_check()
    )

    states = {
        **prices.get_circuit_breaker_states(),
        **rates.get_circuit_breaker_states(),
        **fundamentals.get_circuit_breaker_states(),
    }
    print(
        json.dumps(
            {
                "prices": price_health,
                "exchange_rates": rate_health,
                "fundamentals": fundamentals_health,
                "circuit_breakers": {name: s.to_dict() for name, s in states.items()},
            },
            indent=2,
        )
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Fetch prices, exchange rates and fundamentals")
    parser.add_argument("--skip-cache", action="store_true", help="Bypass the fresh cache tier")
    sub = parser.add_subparsers(dest="command", required=True)

    prices = sub.add_parser("prices", help="Fetch daily prices")
    prices.add_argument("symbols", nargs="+")

    rates = sub.add_parser("rates", help="Fetch exchange rates")
    rates.add_argument("base")
    rates.add_argument("targets", nargs="+")

    fundamentals = sub.add_parser("fundamentals", help="Fetch company fundamentals")
    fundamentals.add_argument("symbols", nargs="+")

    sub.add_parser("health", help="Check all providers")
    sub.add_parser("config", help="Show provider configuration status")
    return parser


async def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(global_settings.log_level)

    try:
        if args.command == "prices":
            await show_prices(args.symbols, args.skip_cache)
        elif args.command == "rates":
            await show_rates(args.base, args.targets, args.skip_cache)
        elif args.command == "fundamentals":
            await show_fundamentals(args.symbols, args.skip_cache)
        elif args.command == "health":
            await show_health()
        else:
            report = log_provider_config_status()
            print(json.dumps(report.summary(), indent=2))
    except ProviderError as e:
        logger.error(f"{e.code.value}: {e.message}")
        print(json.dumps(e.to_dict(), indent=2, default=str), file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))

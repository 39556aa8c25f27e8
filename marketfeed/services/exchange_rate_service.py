"""
ExchangeRateService - resilient FX rate lookup.

Same tiers as PriceService (fresh cache, primary, fallback, stale cache),
keyed by the base currency and the sorted target list:

    rates:{BASE}:{T1,T2,...}

Fixed-base vendors are queried against their native base and the requested
base is derived with cross rates before caching, so cached sets always
match the request that produced them.
"""

from decimal import Decimal
from typing import Any

from loguru import logger

from marketfeed.datasource.base import ExchangeRateProvider
from marketfeed.models import ExchangeRateServiceResult, Freshness, RateSet
from marketfeed.services.cache import CacheEntry
from marketfeed.services.cross_rates import (
    ONE,
    derive_cross_rates,
    fetch_targets_for,
    normalize_currency,
)
from marketfeed.services.errors import AllProvidersFailedError, RateNotFoundError
from marketfeed.services.resilient import ResilientService


def rates_cache_key(base: str, targets: list[str]) -> str:
    return f"rates:{base}:{','.join(sorted(targets))}"


class ExchangeRateService(ResilientService):
    """
    Exchange-rate lookup with provider fallback and cache.

    Usage:
        service = ExchangeRateService(ExchangeRateAPIProvider(key), OpenExchangeRatesProvider(app_id), cache)
        result = await service.get_rates("USD", ["BRL", "EUR"])
        brl = result.rates.rates["BRL"]
    """

    primary: ExchangeRateProvider
    fallback: ExchangeRateProvider | None

    async def get_rates(
        self,
        base: str,
        targets: list[str],
        skip_cache: bool = False,
    ) -> ExchangeRateServiceResult:
        """
        Get rates from base to each target.

        A target equal to the base is always 1. When every target is the
        base no provider or cache is touched.

        Raises:
            AllProvidersFailedError: Both providers failed and nothing is cached
        """
        base = normalize_currency(base)
        targets = list(dict.fromkeys(normalize_currency(t) for t in targets if t.strip()))

        if not targets or all(t == base for t in targets):
            return self._local_result(base, targets)

        cache_key = rates_cache_key(base, targets)

        if not skip_cache:
            entry = await self._cache_get_fresh(cache_key)
            if entry is not None:
                logger.debug(f"Exchange rate cache hit for {cache_key}")
                return self._cached_result(entry, is_stale=False)

        errors: dict[str, Any] = {}

        for provider in self._providers():
            try:
                rate_set = await self._call_provider(
                    provider,
                    "fetch_rates",
                    lambda provider=provider: self._fetch_from(provider, base, targets),
                )
            except Exception as e:
                self._record_failure(errors, provider, e)
                logger.warning(f"Exchange rate provider {provider.name} failed: {e}")
                continue

            await self._cache_set(cache_key, rate_set, provider.name)
            if provider is not self.primary:
                logger.info(f"Rates for {cache_key} served by fallback {provider.name}")
            return ExchangeRateServiceResult(
                rates=rate_set,
                from_cache=False,
                provider=provider.name,
                freshness=Freshness(source=provider.name, fetched_at=rate_set.fetched_at),
            )

        entry = await self._cache_get(cache_key)
        if entry is not None:
            logger.warning(
                f"All exchange rate providers failed, serving stale cache from "
                f"{entry.metadata.source} for {cache_key}"
            )
            return self._cached_result(entry, is_stale=True)

        logger.error(f"All exchange rate providers failed for {cache_key} and no cache available")
        raise AllProvidersFailedError(
            "All exchange rate providers failed and no cached data is available",
            details={"base": base, "targets": targets, "errors": errors},
        )

    async def get_rate(self, base: str, target: str, skip_cache: bool = False) -> Decimal:
        """
        Get a single rate.

        Raises:
            RateNotFoundError: The lookup succeeded without this target
            AllProvidersFailedError: As for get_rates
        """
        base = normalize_currency(base)
        target = normalize_currency(target)
        result = await self.get_rates(base, [target], skip_cache=skip_cache)

        rate = result.rates.rates.get(target)
        if rate is None:
            raise RateNotFoundError(base, target, provider=result.provider)
        return rate

    async def _fetch_from(
        self,
        provider: ExchangeRateProvider,
        base: str,
        targets: list[str],
    ) -> RateSet:
        """Fetch from one provider and re-express against base, scoped to targets."""
        native_base = provider.native_base
        request_base = native_base if native_base and native_base != base else base

        raw = await provider.fetch_rates(request_base, fetch_targets_for(base, targets, native_base))
        return derive_cross_rates(raw, base, targets)

    def _local_result(self, base: str, targets: list[str]) -> ExchangeRateServiceResult:
        now = self._clock()
        provider = "identity" if targets else "none"
        rate_set = RateSet(
            base=base,
            rates={t: ONE for t in targets},
            source=provider,
            fetched_at=now,
            rate_date=now.date(),
        )
        return ExchangeRateServiceResult(
            rates=rate_set,
            from_cache=False,
            provider=provider,
            freshness=Freshness(source=provider, fetched_at=now),
        )

    def _cached_result(self, entry: CacheEntry[Any], is_stale: bool) -> ExchangeRateServiceResult:
        rate_set: RateSet = entry.data
        stale_since = None
        if is_stale:
            rate_set = rate_set.model_copy(update={"is_stale": True})
            if self._clock() > entry.metadata.expires_at:
                stale_since = entry.metadata.expires_at

        return ExchangeRateServiceResult(
            rates=rate_set,
            from_cache=True,
            provider="cache",
            freshness=Freshness(
                source=entry.metadata.source,
                fetched_at=entry.metadata.cached_at,
                is_stale=is_stale,
                stale_since=stale_since,
            ),
        )

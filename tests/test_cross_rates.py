"""
Unit tests for cross-rate derivation.
"""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from marketfeed.models import RateSet
from marketfeed.services.cross_rates import derive_cross_rates, fetch_targets_for
from marketfeed.services.errors import InvalidResponseError, ProviderErrorCode


def usd_rates(**rates: str) -> RateSet:
    return RateSet(
        base="USD",
        rates={code: Decimal(value) for code, value in rates.items()},
        source="open-exchange-rates",
        fetched_at=datetime(2025, 12, 8, tzinfo=timezone.utc),
        rate_date=date(2025, 12, 5),
    )


class TestDeriveCrossRates:
    def test_eur_to_brl(self):
        native = usd_rates(EUR="0.92", BRL="5.01")
        result = derive_cross_rates(native, "EUR", ["BRL"])

        assert result.base == "EUR"
        assert result.rates["BRL"] == Decimal("5.01") / Decimal("0.92")
        assert result.source == "open-exchange-rates"
        assert result.rate_date == date(2025, 12, 5)

    def test_identity_is_exactly_one(self):
        native = usd_rates(EUR="0.92", BRL="5.01")
        result = derive_cross_rates(native, "EUR", ["EUR", "BRL"])
        assert result.rates["EUR"] == Decimal("1")

    def test_native_base_target_is_inverse(self):
        native = usd_rates(EUR="0.8")
        result = derive_cross_rates(native, "EUR", ["USD"])
        assert result.rates["USD"] == Decimal("1.25")

    def test_same_base_scopes_to_targets(self):
        native = usd_rates(EUR="0.92", BRL="5.01", GBP="0.79")
        result = derive_cross_rates(native, "USD", ["BRL", "USD"])
        assert result.rates == {"BRL": Decimal("5.01"), "USD": Decimal("1")}

    def test_missing_divisor_is_invalid_response(self):
        native = usd_rates(BRL="5.01")
        with pytest.raises(InvalidResponseError) as exc_info:
            derive_cross_rates(native, "EUR", ["BRL"])
        assert exc_info.value.code == ProviderErrorCode.INVALID_RESPONSE

    def test_zero_divisor_is_invalid_response(self):
        native = usd_rates(EUR="0", BRL="5.01")
        with pytest.raises(InvalidResponseError):
            derive_cross_rates(native, "EUR", ["BRL"])

    def test_missing_target_is_left_out(self):
        native = usd_rates(EUR="0.92")
        result = derive_cross_rates(native, "EUR", ["BRL"])
        assert result.rates == {}


class TestFetchTargetsFor:
    def test_any_base_provider_drops_identity(self):
        assert fetch_targets_for("USD", ["USD", "BRL", "EUR"], None) == ["BRL", "EUR"]

    def test_fixed_base_provider_adds_requested_base(self):
        assert fetch_targets_for("EUR", ["BRL", "USD"], "USD") == ["BRL", "EUR"]

    def test_fixed_base_matching_request(self):
        assert fetch_targets_for("USD", ["BRL", "BRL"], "USD") == ["BRL"]

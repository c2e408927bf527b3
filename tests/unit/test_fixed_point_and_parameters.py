"""
test_fixed_point_and_parameters.py - Unit tests for core types

Tests:
- to_fixed / from_fixed boundary conversion
- EngineParameters normalization and validation
- CollateralAsset validation
- LogicalClock monotonicity
- require_positive / require_account
- Exception hierarchy
"""

import pytest
from datetime import datetime, timedelta
from decimal import Decimal

from pegledger import (
    PRECISION, MAX_HEALTH_FACTOR,
    to_fixed, from_fixed,
    EngineParameters, CollateralAsset, LogicalClock, NullTransfer,
    StaticPriceFeed,
    EngineError, ValidationError, InvalidAmountError, ConfigurationError,
    ConfigurationMismatchError, HealthFactorBrokenError, ExternalCallError,
    OracleReadError, StalePriceError, LiquidationError, TargetIsSafeError,
    LiquidationDidNotImproveHealthError, ReentrantCallError,
)
from pegledger.core import require_account, require_positive


class TestToFixed:
    """Tests for the fixed-point boundary helpers."""

    def test_int_is_whole_units(self):
        assert to_fixed(3) == 3 * 10**18
        assert to_fixed(1000, 8) == 1000 * 10**8

    def test_decimal_fraction(self):
        assert to_fixed(Decimal("0.5")) == PRECISION // 2
        assert to_fixed("1.25") == 1_250_000_000_000_000_000

    def test_rounds_down(self):
        assert to_fixed(Decimal("0.123456789"), 8) == 12345678
        assert to_fixed(Decimal("-0.123456789"), 8) == -12345678

    def test_rejects_float(self):
        with pytest.raises(TypeError):
            to_fixed(0.5)

    def test_rejects_bool(self):
        with pytest.raises(TypeError):
            to_fixed(True)

    def test_rejects_non_finite(self):
        with pytest.raises(ValueError):
            to_fixed(Decimal("Infinity"))

    def test_from_fixed(self):
        assert from_fixed(1_250_000_000_000_000_000) == Decimal("1.25")
        assert from_fixed(150_000_000, 8) == Decimal("1.5")


class TestEngineParameters:
    """Tests for risk-parameter normalization."""

    def test_defaults(self):
        params = EngineParameters()
        assert params.liquidation_threshold == PRECISION // 2
        assert params.liquidation_bonus == PRECISION // 10
        assert params.min_health_factor == PRECISION
        assert params.max_price_age == timedelta(hours=3)

    def test_decimal_fractions_are_scaled(self):
        params = EngineParameters(
            liquidation_threshold=Decimal("0.8"),
            liquidation_bonus="0.05",
            min_health_factor=Decimal("1.1"),
        )
        assert params.liquidation_threshold == 8 * 10**17
        assert params.liquidation_bonus == 5 * 10**16
        assert params.min_health_factor == 11 * 10**17

    def test_int_fractions_already_scaled(self):
        params = EngineParameters(liquidation_threshold=75 * 10**16)
        assert params.liquidation_threshold == 75 * 10**16

    def test_plain_int_is_not_whole_units(self):
        # to_fixed(1) is one whole unit; a parameter int is taken as already scaled
        assert to_fixed(1) == PRECISION
        assert EngineParameters(min_health_factor=1).min_health_factor == 1
        assert EngineParameters(min_health_factor=Decimal("1")).min_health_factor == PRECISION
        assert EngineParameters(min_health_factor="1").min_health_factor == PRECISION

    @pytest.mark.parametrize("threshold", [0, Decimal("1.01"), -1])
    def test_threshold_out_of_range(self, threshold):
        with pytest.raises(ConfigurationError):
            EngineParameters(liquidation_threshold=threshold)

    def test_threshold_of_one_allowed(self):
        assert EngineParameters(liquidation_threshold=Decimal("1")).liquidation_threshold == PRECISION

    @pytest.mark.parametrize("bonus", [Decimal("1"), Decimal("-0.1")])
    def test_bonus_out_of_range(self, bonus):
        with pytest.raises(ConfigurationError):
            EngineParameters(liquidation_bonus=bonus)

    def test_zero_bonus_allowed(self):
        assert EngineParameters(liquidation_bonus=0).liquidation_bonus == 0

    def test_min_health_factor_must_be_positive(self):
        with pytest.raises(ConfigurationError):
            EngineParameters(min_health_factor=0)

    def test_max_price_age_must_be_positive(self):
        with pytest.raises(ConfigurationError):
            EngineParameters(max_price_age=timedelta(0))

    def test_max_price_age_can_be_disabled(self):
        assert EngineParameters(max_price_age=None).max_price_age is None

    def test_float_rejected(self):
        with pytest.raises(ConfigurationError):
            EngineParameters(liquidation_bonus=0.1)

    def test_frozen(self):
        params = EngineParameters()
        with pytest.raises(AttributeError):
            params.liquidation_bonus = 0


class TestCollateralAsset:
    def test_valid(self):
        asset = CollateralAsset("WBTC", StaticPriceFeed(20000), 8)
        assert asset.decimals == 8

    def test_empty_symbol(self):
        with pytest.raises(ConfigurationError):
            CollateralAsset("  ", StaticPriceFeed(1))

    def test_missing_feed(self):
        with pytest.raises(ConfigurationError):
            CollateralAsset("WETH", None)

    def test_negative_decimals(self):
        with pytest.raises(ConfigurationError):
            CollateralAsset("WETH", StaticPriceFeed(1), -1)


class TestLogicalClock:
    def test_advance_forward(self):
        clock = LogicalClock(datetime(2025, 1, 1))
        clock.advance(datetime(2025, 1, 2))
        assert clock() == datetime(2025, 1, 2)

    def test_cannot_move_backwards(self):
        clock = LogicalClock(datetime(2025, 1, 2))
        with pytest.raises(ValueError):
            clock.advance(datetime(2025, 1, 1))


class TestValidators:
    @pytest.mark.parametrize("amount", [0, -1, True, 1.5, Decimal("1"), "10", None])
    def test_require_positive_rejects(self, amount):
        with pytest.raises(InvalidAmountError):
            require_positive(amount)

    def test_require_positive_accepts(self):
        assert require_positive(1) == 1

    @pytest.mark.parametrize("account", ["", "   ", None, 42])
    def test_require_account_rejects(self, account):
        with pytest.raises(ValidationError):
            require_account(account)

    def test_null_transfer_succeeds(self):
        t = NullTransfer()
        assert t.transfer_in("a", "WETH", 1)
        assert t.transfer_out("a", "WETH", 1)


class TestExceptionHierarchy:
    """Callers can catch by category."""

    def test_categories(self):
        assert issubclass(InvalidAmountError, ValidationError)
        assert issubclass(ConfigurationMismatchError, ConfigurationError)
        assert issubclass(StalePriceError, OracleReadError)
        assert issubclass(OracleReadError, ExternalCallError)
        assert issubclass(TargetIsSafeError, LiquidationError)
        assert issubclass(LiquidationDidNotImproveHealthError, LiquidationError)
        for exc in (ValidationError, HealthFactorBrokenError, ExternalCallError,
                    LiquidationError, ReentrantCallError):
            assert issubclass(exc, EngineError)

    def test_health_factor_error_carries_value(self):
        err = HealthFactorBrokenError(375 * 10**15, "alice")
        assert err.health_factor == 375 * 10**15
        assert err.user == "alice"
        assert "0.375000" in str(err)

    def test_max_health_factor(self):
        assert MAX_HEALTH_FACTOR == 2**256 - 1

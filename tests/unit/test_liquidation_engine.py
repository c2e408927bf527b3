"""
test_liquidation_engine.py - Unit tests for LiquidationEngine

Tests:
- Pure calculate_seizure
- quote_seizure preview (base, bonus, cap)
- Successful liquidation: balances, debt, events, result
- Rejections: safe target, excess cover, nothing to seize, no improvement
- Capability failures roll the whole liquidation back
"""

import pytest

from pegledger import (
    PRECISION,
    CollateralRedeemed, DebtBurned, Liquidated,
    calculate_seizure,
    InvalidAmountError, UnsupportedAssetError, InsufficientCollateralError,
    InsufficientDebtError, TargetIsSafeError, LiquidationDidNotImproveHealthError,
    BurnFailedError, TransferFailedError, ValidationError,
)

from tests.fakes import units


# 1000 USD of WETH at $700, and the 10% bonus on top
BASE_AT_700 = 1_428_571_428_571_428_571
BONUS_AT_700 = 142_857_142_857_142_857
SEIZED_AT_700 = BASE_AT_700 + BONUS_AT_700


@pytest.fixture
def unsafe_engine(indebted_engine, eth_feed):
    """alice at health factor 0.875 (WETH at $700)."""
    eth_feed.update_price(700)
    return indebted_engine


class TestCalculateSeizure:
    """PURE FUNCTION tests."""

    def test_bonus_and_total(self):
        assert calculate_seizure(1000, PRECISION // 10, 10_000) == (100, 1100)

    def test_capped_at_available(self):
        assert calculate_seizure(1000, PRECISION // 10, 1050) == (100, 1050)

    def test_zero_bonus(self):
        assert calculate_seizure(1000, 0, 10_000) == (0, 1000)

    def test_bonus_rounds_down(self):
        assert calculate_seizure(19, PRECISION // 10, 100) == (1, 20)


class TestQuoteSeizure:

    def test_quote(self, unsafe_engine):
        quote = unsafe_engine.quote_seizure("alice", "WETH", units(1000))
        assert quote.base == BASE_AT_700
        assert quote.bonus == BONUS_AT_700
        assert quote.total == SEIZED_AT_700
        assert quote.seized == SEIZED_AT_700
        assert quote.available == units(10)
        assert not quote.capped

    def test_quote_at_300(self, indebted_engine, eth_feed):
        eth_feed.update_price(300)
        quote = indebted_engine.quote_seizure("alice", "WETH", units(1000))
        assert quote.seized == 3_666_666_666_666_666_666

    def test_quote_is_read_only(self, unsafe_engine):
        unsafe_engine.quote_seizure("alice", "WETH", units(1000))
        assert unsafe_engine.get_collateral_balance("alice", "WETH") == units(10)
        assert len(unsafe_engine.events) == 2

    def test_quote_capped(self, engine):
        engine.deposit_collateral("alice", "WBTC", units("0.05", 8))
        quote = engine.quote_seizure("alice", "WBTC", units(1000))
        assert quote.base == 5_000_000
        assert quote.bonus == 500_000
        assert quote.seized == 5_000_000
        assert quote.capped

    def test_quote_invalid_amount(self, unsafe_engine):
        with pytest.raises(InvalidAmountError):
            unsafe_engine.quote_seizure("alice", "WETH", 0)


class TestLiquidate:

    def test_successful_liquidation(self, unsafe_engine, token, transfer):
        result = unsafe_engine.liquidate("bob", "alice", "WETH", units(1000))

        assert result.debt_covered == units(1000)
        assert result.collateral_seized == SEIZED_AT_700
        assert result.health_before == 875 * 10**15
        assert result.health_after > result.health_before

        assert unsafe_engine.get_debt_balance("alice") == units(3000)
        assert unsafe_engine.get_collateral_balance("alice", "WETH") == units(10) - SEIZED_AT_700
        assert unsafe_engine.get_health_factor("alice") == result.health_after
        assert transfer.calls[-1] == ("out", "bob", "WETH", SEIZED_AT_700)
        assert token.calls[-1] == ("burn", "bob", units(1000))

    def test_liquidation_events(self, unsafe_engine):
        unsafe_engine.liquidate("bob", "alice", "WETH", units(1000))
        records = [r for r in unsafe_engine.events.records if r.operation == "liquidate"]
        assert [r.event for r in records] == [
            DebtBurned("alice", units(1000)),
            CollateralRedeemed("alice", "WETH", SEIZED_AT_700, "bob"),
            Liquidated("bob", "alice", "WETH", units(1000), SEIZED_AT_700),
        ]

    def test_seized_value_bounded_by_bonus(self, unsafe_engine):
        result = unsafe_engine.liquidate("bob", "alice", "WETH", units(1000))
        seized_usd = unsafe_engine.get_asset_value_usd("WETH", result.collateral_seized)
        assert seized_usd <= units(1100)

    def test_capped_liquidation(self, engine, eth_feed):
        engine.deposit_collateral("alice", "WETH", units(10))
        engine.deposit_collateral("alice", "WBTC", units("0.05", 8))
        engine.mint_debt("alice", units(5000))
        eth_feed.update_price(800)

        result = engine.liquidate("bob", "alice", "WBTC", units(1000))
        assert result.collateral_seized == 5_000_000
        assert engine.get_collateral_balance("alice", "WBTC") == 0
        assert result.health_after == PRECISION

    def test_self_liquidation_allowed(self, unsafe_engine):
        unsafe_engine.liquidate("alice", "alice", "WETH", units(1000))
        assert unsafe_engine.get_debt_balance("alice") == units(3000)

    def test_safe_target(self, indebted_engine):
        with pytest.raises(TargetIsSafeError) as exc_info:
            indebted_engine.liquidate("bob", "alice", "WETH", units(1000))
        assert exc_info.value.health_factor == 1_250_000_000_000_000_000

    def test_debt_free_target(self, engine):
        engine.deposit_collateral("alice", "WETH", units(1))
        with pytest.raises(TargetIsSafeError):
            engine.liquidate("bob", "alice", "WETH", 1)

    def test_cover_more_than_debt(self, unsafe_engine):
        with pytest.raises(InsufficientDebtError):
            unsafe_engine.liquidate("bob", "alice", "WETH", units(4000) + 1)

    @pytest.mark.parametrize("amount", [0, -1])
    def test_invalid_cover(self, unsafe_engine, amount):
        with pytest.raises(InvalidAmountError):
            unsafe_engine.liquidate("bob", "alice", "WETH", amount)

    def test_unsupported_asset(self, unsafe_engine):
        with pytest.raises(UnsupportedAssetError):
            unsafe_engine.liquidate("bob", "alice", "DOGE", units(1))

    def test_nothing_to_seize(self, unsafe_engine):
        with pytest.raises(InsufficientCollateralError):
            unsafe_engine.liquidate("bob", "alice", "WBTC", units(1))

    def test_dust_cover_rounds_to_no_collateral(self, unsafe_engine):
        # 1e-18 USD at $700 is less than 1 wei of WETH; alice still holds 10 WETH
        before = unsafe_engine.snapshot()
        with pytest.raises(InvalidAmountError, match="less than one smallest unit of WETH"):
            unsafe_engine.liquidate("bob", "alice", "WETH", 1)
        assert unsafe_engine.snapshot() == before

    def test_empty_liquidator(self, unsafe_engine):
        with pytest.raises(ValidationError):
            unsafe_engine.liquidate("", "alice", "WETH", units(1))

    def test_no_improvement_rejected_before_transfers(self, indebted_engine, eth_feed, token, transfer):
        eth_feed.update_price(300)
        token_calls, transfer_calls = len(token.calls), len(transfer.calls)

        with pytest.raises(LiquidationDidNotImproveHealthError) as exc_info:
            indebted_engine.liquidate("bob", "alice", "WETH", units(1000))

        assert exc_info.value.before == 375 * 10**15
        assert exc_info.value.after < exc_info.value.before
        assert indebted_engine.get_debt_balance("alice") == units(4000)
        assert indebted_engine.get_collateral_balance("alice", "WETH") == units(10)
        assert len(token.calls) == token_calls
        assert len(transfer.calls) == transfer_calls

    def test_burn_failure_rolls_back(self, unsafe_engine, token):
        token.fail_burn = True
        published = len(unsafe_engine.events)
        with pytest.raises(BurnFailedError):
            unsafe_engine.liquidate("bob", "alice", "WETH", units(1000))
        assert unsafe_engine.get_debt_balance("alice") == units(4000)
        assert unsafe_engine.get_collateral_balance("alice", "WETH") == units(10)
        assert len(unsafe_engine.events) == published

    def test_transfer_failure_rolls_back(self, unsafe_engine, transfer, token):
        transfer.fail_out = True
        with pytest.raises(TransferFailedError):
            unsafe_engine.liquidate("bob", "alice", "WETH", units(1000))
        assert unsafe_engine.get_debt_balance("alice") == units(4000)
        assert ("burn", "bob", units(1000)) not in token.calls

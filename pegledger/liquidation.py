"""
liquidation.py - Forced repayment of unsafe accounts

A liquidator repays part of an unsafe account's debt with their own pegged
tokens and receives the equivalent collateral plus a bonus. The bonus is the
liquidator's entire incentive: the USD value seized never exceeds
debt_covered * (1 + liquidation_bonus).

Algorithm (liquidate):
    1. Target must be below the minimum health factor
    2. 0 < debt_to_cover <= target's debt
    3. base  = debt_to_cover converted to asset units at the latest price
       bonus = base * liquidation_bonus
    4. seized = min(base + bonus, target's balance of asset)
    5. Reduce target's debt and debit the seized collateral
    6. Target's health factor must be strictly higher than before
    7. Send the collateral to the liquidator, burn the liquidator's tokens

State machine: an account is Safe or Unsafe. Liquidation is only valid from
Unsafe and must move the account toward Safe, or it does not happen at all.

Note: when the health factor is below
    liquidation_threshold * (1 + liquidation_bonus)
seizing collateral costs the account more backing value than the debt it
removes, so no liquidation can improve it. Such accounts are rejected in
step 6, before any collateral or token moves.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Tuple

from .core import (
    EngineParameters, PeggedToken, PRECISION,
    BurnFailedError, InsufficientCollateralError, InsufficientDebtError, InvalidAmountError,
    TargetIsSafeError, LiquidationDidNotImproveHealthError,
    require_account, require_positive,
)
from .events import Liquidated
from .health import HealthFactorCalculator
from .journal import Journal
from .ledger import CollateralLedger, DebtLedger
from .pricing_source import PriceOracleAdapter


@dataclass(frozen=True, slots=True)
class SeizureQuote:
    """
    Collateral a liquidation would seize, before execution.

    Attributes:
        base: Asset amount worth debt_to_cover at the latest price
        bonus: Liquidator incentive on top of base
        available: Target's deposited balance of the asset
        seized: min(base + bonus, available)
    """
    asset: str
    debt_to_cover: int
    base: int
    bonus: int
    available: int
    seized: int

    @property
    def total(self) -> int:
        return self.base + self.bonus

    @property
    def capped(self) -> bool:
        """True if the target held less than base + bonus."""
        return self.seized < self.total


@dataclass(frozen=True, slots=True)
class LiquidationResult:
    liquidator: str
    target: str
    asset: str
    debt_covered: int
    collateral_seized: int
    health_before: int
    health_after: int


def calculate_seizure(base: int, liquidation_bonus: int, available: int) -> Tuple[int, int]:
    """
    PURE FUNCTION - bonus and capped seizure for a base amount.

    Returns:
        (bonus, seized)
    """
    bonus = base * liquidation_bonus // PRECISION
    return bonus, min(base + bonus, available)


class LiquidationEngine:
    """Validates, executes and re-validates liquidations of unsafe accounts."""

    def __init__(
        self,
        collateral: CollateralLedger,
        debt: DebtLedger,
        health: HealthFactorCalculator,
        oracle: PriceOracleAdapter,
        token: PeggedToken,
        journal: Journal,
        parameters: EngineParameters,
    ):
        self.collateral = collateral
        self.debt = debt
        self.health = health
        self.oracle = oracle
        self.token = token
        self.journal = journal
        self.parameters = parameters

    def quote_seizure(self, target: str, asset: str, debt_to_cover: int) -> SeizureQuote:
        """Read-only preview of steps 3 and 4."""
        require_positive(debt_to_cover, "debt_to_cover")
        available = self.collateral.balance_of(target, asset)
        base = self.oracle.amount_from_usd(asset, debt_to_cover)
        bonus, seized = calculate_seizure(base, self.parameters.liquidation_bonus, available)
        return SeizureQuote(asset, debt_to_cover, base, bonus, available, seized)

    def liquidate(self, liquidator: str, target: str, asset: str, debt_to_cover: int) -> LiquidationResult:
        """
        Repay debt_to_cover of target's debt and seize discounted collateral.

        Raises:
            TargetIsSafeError: If target is at or above the minimum health factor.
            InvalidAmountError: If debt_to_cover is not positive or rounds to no collateral.
            InsufficientDebtError: If debt_to_cover exceeds target's debt.
            InsufficientCollateralError: If target holds none of asset.
            BurnFailedError / TransferFailedError: If a capability fails.
            LiquidationDidNotImproveHealthError: If target is no healthier afterwards.
        """
        require_account(liquidator, "liquidator")
        require_account(target, "target")
        require_positive(debt_to_cover, "debt_to_cover")

        with self.journal.operation("liquidate"):
            before = self.health.compute(target)
            if before >= self.parameters.min_health_factor:
                raise TargetIsSafeError(before, target)

            outstanding = self.debt.balance_of(target)
            if debt_to_cover > outstanding:
                raise InsufficientDebtError(
                    f"{target} owes {outstanding}, cannot cover {debt_to_cover}"
                )

            quote = self.quote_seizure(target, asset, debt_to_cover)
            if quote.available == 0:
                raise InsufficientCollateralError(f"{target} has no {asset} to seize")
            if quote.seized == 0:
                raise InvalidAmountError(
                    f"debt_to_cover {debt_to_cover} is worth less than one smallest unit of {asset}"
                )

            self.debt.decrease(target, debt_to_cover)
            self.collateral.debit(target, asset, quote.seized, recipient=liquidator)

            after = self.health.compute(target)
            if after <= before:
                raise LiquidationDidNotImproveHealthError(before, after)

            self.collateral.send(liquidator, asset, quote.seized)
            if not self.token.burn(liquidator, debt_to_cover):
                raise BurnFailedError(f"burn of {debt_to_cover} from {liquidator} failed")

            self.journal.events.record(
                Liquidated(liquidator, target, asset, debt_to_cover, quote.seized)
            )
            return LiquidationResult(
                liquidator, target, asset, debt_to_cover, quote.seized, before, after
            )

    def __repr__(self) -> str:
        return f"LiquidationEngine(bonus={self.parameters.liquidation_bonus})"

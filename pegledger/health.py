"""
health.py - Health factor: the single source of truth for account safety

ARCHITECTURE (Pure Function Pattern):
=====================================

1. PURE CALCULATION FUNCTIONS (calculate_*):
   - Take all inputs explicitly as ints at the 1e18 scale
   - No ledgers, no oracle, no hidden state
   - Trivially testable, stress-testable

2. CALCULATOR (HealthFactorCalculator):
   - Reads collateral value and debt for one user
   - Delegates the arithmetic to the pure functions
   - Owns the minimum-health-factor comparison

Key Formulas:
    health_factor = collateral_usd * liquidation_threshold / debt
    health_factor = MAX_HEALTH_FACTOR                  (debt == 0)
    safe          = health_factor >= min_health_factor

The computed ratio and its minimum share the 1e18 scale. There is no second
scale anywhere in the comparison.
"""

from __future__ import annotations
from dataclasses import dataclass

from .core import (
    EngineParameters,
    HealthFactorBrokenError,
    MAX_HEALTH_FACTOR, PRECISION,
)
from .ledger import CollateralLedger, DebtLedger


@dataclass(frozen=True, slots=True)
class AccountInformation:
    """Debt, collateral value and health factor of one account, read together."""
    debt: int
    collateral_usd: int
    health_factor: int

    @property
    def has_debt(self) -> bool:
        return self.debt > 0


# ============================================================================
# PURE CALCULATION FUNCTIONS - All Inputs Explicit
# ============================================================================

def calculate_threshold_adjusted_collateral(collateral_usd: int, liquidation_threshold: int) -> int:
    """Collateral value that counts toward backing debt (1e18 USD)."""
    return collateral_usd * liquidation_threshold // PRECISION


def calculate_health_factor(collateral_usd: int, debt: int, liquidation_threshold: int) -> int:
    """
    Health factor at the 1e18 scale.

    PURE FUNCTION - All inputs explicit, no hidden state.

    Accounts without debt are unconstrained and get MAX_HEALTH_FACTOR,
    whatever their collateral (including none).

    Example:
        # $10,000 collateral, 4,000 debt, 50% threshold -> 1.25
        calculate_health_factor(10_000 * 10**18, 4_000 * 10**18, 5 * 10**17)
        # -> 1250000000000000000
    """
    if debt < 0 or collateral_usd < 0:
        raise ValueError(f"negative input: collateral_usd={collateral_usd}, debt={debt}")
    if debt == 0:
        return MAX_HEALTH_FACTOR
    return collateral_usd * liquidation_threshold // debt


def calculate_max_mintable(collateral_usd: int, debt: int, liquidation_threshold: int,
                           min_health_factor: int) -> int:
    """
    Largest additional debt that keeps the health factor at or above the minimum.

    Returns 0 if the account is already at or below the limit.
    """
    capacity = collateral_usd * liquidation_threshold // min_health_factor
    return max(capacity - debt, 0)


# ============================================================================
# CALCULATOR
# ============================================================================

class HealthFactorCalculator:
    """
    Derives solvency from the collateral ledger, the debt ledger and the oracle.

    Never caches: every call revalues collateral at the latest prices.
    """

    def __init__(self, collateral: CollateralLedger, debt: DebtLedger, parameters: EngineParameters):
        self.collateral = collateral
        self.debt = debt
        self.parameters = parameters

    def account_information(self, user: str) -> AccountInformation:
        debt = self.debt.balance_of(user)
        collateral_usd = self.collateral.total_value_usd(user)
        hf = calculate_health_factor(collateral_usd, debt, self.parameters.liquidation_threshold)
        return AccountInformation(debt, collateral_usd, hf)

    def compute(self, user: str) -> int:
        """Current health factor of user (1e18 scale)."""
        debt = self.debt.balance_of(user)
        if debt == 0:
            # Debt-free accounts never read the feeds.
            return MAX_HEALTH_FACTOR
        collateral_usd = self.collateral.total_value_usd(user)
        return calculate_health_factor(collateral_usd, debt, self.parameters.liquidation_threshold)

    def is_safe(self, user: str) -> bool:
        return self.compute(user) >= self.parameters.min_health_factor

    def assert_safe(self, user: str) -> int:
        """
        Raises:
            HealthFactorBrokenError: If user's health factor is below the minimum.

        Returns:
            The health factor that passed the check.
        """
        hf = self.compute(user)
        if hf < self.parameters.min_health_factor:
            raise HealthFactorBrokenError(hf, user)
        return hf

    def max_mintable(self, user: str) -> int:
        """Additional debt user could mint right now without breaking the invariant."""
        return calculate_max_mintable(
            self.collateral.total_value_usd(user),
            self.debt.balance_of(user),
            self.parameters.liquidation_threshold,
            self.parameters.min_health_factor,
        )

    def __repr__(self) -> str:
        return f"HealthFactorCalculator({self.parameters!r})"

"""
accounting.py - User-facing collateral and debt operations

AccountingEngine is one of the two components allowed to mutate the ledgers
(the other is LiquidationEngine). It only ever touches the calling user's own
rows.

Invariant enforcement (checks run after the internal effects, before any
external call):
    - Collateral-increasing and debt-decreasing steps cannot break solvency
      and are not checked.
    - Debt-increasing and collateral-decreasing steps are followed by
      HealthFactorCalculator.assert_safe() before the operation commits.

Every public method is one Journal operation, so a failure at any step
(validation, health check, transfer, mint, burn) leaves no trace.
"""

from __future__ import annotations
from typing import Optional

from .core import (
    PeggedToken,
    MintFailedError, BurnFailedError,
    require_account, require_positive,
)
from .health import HealthFactorCalculator
from .journal import Journal
from .ledger import CollateralLedger, DebtLedger


class AccountingEngine:
    """
    Deposit, mint, redeem and burn, plus their atomic combinations.

    Example:
        accounting.deposit_and_mint("alice", "WETH", 10 * 10**18, 4_000 * 10**18)
        accounting.redeem_and_burn("alice", "WETH", 2 * 10**18, 1_000 * 10**18)
    """

    def __init__(
        self,
        collateral: CollateralLedger,
        debt: DebtLedger,
        health: HealthFactorCalculator,
        token: PeggedToken,
        journal: Journal,
    ):
        self.collateral = collateral
        self.debt = debt
        self.health = health
        self.token = token
        self.journal = journal

    # ========================================================================
    # SINGLE OPERATIONS
    # ========================================================================

    def deposit_collateral(self, user: str, asset: str, amount: int) -> None:
        """Deposit collateral. No health check: more collateral cannot hurt."""
        with self.journal.operation("deposit_collateral"):
            self._deposit(user, asset, amount)

    def mint_debt(self, user: str, amount: int) -> int:
        """
        Mint amount of the pegged asset against user's collateral.

        Returns:
            The user's health factor after minting.

        Raises:
            InvalidAmountError: If amount is not positive.
            HealthFactorBrokenError: If the new debt breaks the invariant.
            MintFailedError: If the token refuses to mint.
        """
        with self.journal.operation("mint_debt"):
            return self._mint(user, amount)

    def redeem_collateral(self, user: str, asset: str, amount: int,
                          recipient: Optional[str] = None) -> int:
        """
        Withdraw collateral to recipient (default: user).

        Returns:
            The user's health factor after the withdrawal.

        Raises:
            InsufficientCollateralError: If user holds less than amount.
            HealthFactorBrokenError: If the withdrawal breaks the invariant.
            TransferFailedError: If the transfer out fails.
        """
        with self.journal.operation("redeem_collateral"):
            recipient = self._debit(user, asset, amount, recipient)
            hf = self.health.assert_safe(user)
            self.collateral.send(recipient, asset, amount)
            return hf

    def burn_debt(self, user: str, amount: int) -> None:
        """
        Repay amount of user's debt by burning user's pegged tokens.

        Raises:
            InsufficientDebtError: If amount exceeds the outstanding debt.
            BurnFailedError: If the token refuses to burn.
        """
        with self.journal.operation("burn_debt"):
            self._reduce_debt(user, amount)
            self._burn(user, amount)

    # ========================================================================
    # COMPOSITE OPERATIONS
    # ========================================================================

    def deposit_and_mint(self, user: str, asset: str, collateral_amount: int, debt_amount: int) -> int:
        """
        Deposit collateral and mint against it in one step.

        Either both happen or neither does.
        """
        require_positive(collateral_amount, "collateral_amount")
        require_positive(debt_amount, "debt_amount")
        with self.journal.operation("deposit_and_mint"):
            self._deposit(user, asset, collateral_amount)
            return self._mint(user, debt_amount)

    def redeem_and_burn(self, user: str, asset: str, collateral_amount: int, debt_amount: int) -> int:
        """
        Burn debt and withdraw collateral in one step.

        The debt is reduced first so the health check sees it. Tokens are burned
        and collateral sent only after the check passes.
        """
        require_positive(collateral_amount, "collateral_amount")
        require_positive(debt_amount, "debt_amount")
        with self.journal.operation("redeem_and_burn"):
            self._reduce_debt(user, debt_amount)
            recipient = self._debit(user, asset, collateral_amount, None)
            hf = self.health.assert_safe(user)
            self._burn(user, debt_amount)
            self.collateral.send(recipient, asset, collateral_amount)
            return hf

    # ========================================================================
    # STEPS (run inside an open journal operation)
    # ========================================================================

    def _deposit(self, user: str, asset: str, amount: int) -> None:
        require_account(user)
        self.collateral.deposit(user, asset, amount)

    def _mint(self, user: str, amount: int) -> int:
        require_account(user)
        require_positive(amount)
        self.debt.increase(user, amount)
        hf = self.health.assert_safe(user)
        if not self.token.mint(user, amount):
            raise MintFailedError(f"mint of {amount} to {user} failed")
        return hf

    def _debit(self, user: str, asset: str, amount: int, recipient: Optional[str]) -> str:
        require_account(user)
        if recipient is not None:
            require_account(recipient, "recipient")
        return self.collateral.debit(user, asset, amount, recipient)

    def _reduce_debt(self, user: str, amount: int) -> None:
        require_account(user)
        self.debt.decrease(user, amount)

    def _burn(self, user: str, amount: int) -> None:
        if not self.token.burn(user, amount):
            raise BurnFailedError(f"burn of {amount} from {user} failed")

    def __repr__(self) -> str:
        return f"AccountingEngine({self.collateral!r}, {self.debt!r})"

"""
ledger.py - Collateral and debt position tables

CollateralLedger and DebtLedger are the only holders of durable account
state. Neither decides whether an account is safe; that is the job of the
HealthFactorCalculator, consulted by the engines before an operation commits.

Ordering (checks-effects-interactions):
    1. Validate inputs
    2. Update the internal table and record the event
    3. Call the external transfer capability last

Withdrawals are also exposed as two halves, debit() and send(), so an engine
can run its health check between the effect and the interaction.

A reentrant read made from inside the external call therefore observes the
already-updated table. If the external call fails, the ledger restores its own
row before raising; the enclosing Journal operation restores everything else.
"""

from __future__ import annotations
from typing import Dict, List, Optional, Set

from .core import (
    CollateralTransfer, NullTransfer,
    PositionTable, DebtTable,
    InsufficientCollateralError, InsufficientDebtError, TransferFailedError,
    require_positive,
)
from .events import (
    EventLog, CollateralDeposited, CollateralRedeemed, DebtMinted, DebtBurned,
)
from .pricing_source import PriceOracleAdapter
from .registry import CollateralRegistry


class CollateralLedger:
    """
    Per-user, per-asset deposited amounts.

    Positions are created on first deposit and stay addressable at zero.

    Example:
        collateral = CollateralLedger(registry, oracle, transfer, events)
        collateral.deposit("alice", "WETH", 10 * 10**18)
        collateral.balance_of("alice", "WETH")      # 10000000000000000000
        collateral.total_value_usd("alice")         # 1e18-scaled USD
    """

    def __init__(
        self,
        registry: CollateralRegistry,
        oracle: PriceOracleAdapter,
        transfer: Optional[CollateralTransfer] = None,
        events: Optional[EventLog] = None,
    ):
        self.registry = registry
        self.oracle = oracle
        self.transfer = transfer or NullTransfer()
        self.events = events if events is not None else EventLog()
        self._positions: PositionTable = {}

    # ========================================================================
    # READS
    # ========================================================================

    def balance_of(self, user: str, asset: str) -> int:
        self.registry.require(asset)
        return self._positions.get((user, asset), 0)

    def balances_of(self, user: str) -> Dict[str, int]:
        """Every registered asset's balance for user, in registration order."""
        return {a: self._positions.get((user, a), 0) for a in self.registry.list_assets()}

    def total_value_usd(self, user: str) -> int:
        """
        Sum of the user's collateral valued at the latest prices (1e18 USD).

        Assets are summed in registration order. Zero balances contribute
        zero and their feeds are not read.
        """
        total = 0
        for asset in self.registry.list_assets():
            amount = self._positions.get((user, asset), 0)
            if amount:
                total += self.oracle.value_of(asset, amount)
        return total

    def total_deposited(self, asset: str) -> int:
        """Total amount of an asset held across all users."""
        self.registry.require(asset)
        return sum(amount for (_, a), amount in sorted(self._positions.items()) if a == asset)

    def users(self) -> Set[str]:
        return {user for user, _ in self._positions}

    # ========================================================================
    # MUTATIONS
    # ========================================================================

    def deposit(self, user: str, asset: str, amount: int) -> None:
        """
        Credit amount of asset to user, then pull it in via the transfer capability.

        Raises:
            InvalidAmountError: If amount is not a positive int.
            UnsupportedAssetError: If asset is not registered.
            TransferFailedError: If transfer_in reports failure.
        """
        require_positive(amount)
        self.registry.require(asset)
        key = (user, asset)
        previous = self._positions.get(key, 0)

        mark = self.events.pending_mark()
        self._positions[key] = previous + amount
        self.events.record(CollateralDeposited(user, asset, amount))

        try:
            ok = self.transfer.transfer_in(user, asset, amount)
        except Exception:
            self._positions[key] = previous
            self.events.discard_after(mark)
            raise
        if not ok:
            self._positions[key] = previous
            self.events.discard_after(mark)
            raise TransferFailedError(f"transfer in of {amount} {asset} from {user} failed")

    def withdraw(self, user: str, asset: str, amount: int, recipient: Optional[str] = None) -> None:
        """
        Debit amount of asset from user, then send it to recipient.

        Raises:
            InvalidAmountError: If amount is not a positive int.
            UnsupportedAssetError: If asset is not registered.
            InsufficientCollateralError: If user holds less than amount.
            TransferFailedError: If transfer_out reports failure.
        """
        key = (user, asset)
        previous = self._positions.get(key, 0)
        mark = self.events.pending_mark()
        recipient = self.debit(user, asset, amount, recipient)
        try:
            self.send(recipient, asset, amount)
        except Exception:
            self._positions[key] = previous
            self.events.discard_after(mark)
            raise

    def debit(self, user: str, asset: str, amount: int, recipient: Optional[str] = None) -> str:
        """
        Internal half of a withdrawal: decrease the position and record the event.

        The caller must follow up with send() once its own checks pass.

        Returns:
            The recipient (user if none was given).
        """
        require_positive(amount)
        self.registry.require(asset)
        recipient = recipient or user
        key = (user, asset)
        previous = self._positions.get(key, 0)
        if amount > previous:
            raise InsufficientCollateralError(
                f"{user} has {previous} {asset}, cannot withdraw {amount}"
            )
        self._positions[key] = previous - amount
        self.events.record(CollateralRedeemed(user, asset, amount, recipient))
        return recipient

    def send(self, recipient: str, asset: str, amount: int) -> None:
        """
        External half of a withdrawal: hand collateral to the transfer capability.

        Raises:
            TransferFailedError: If transfer_out reports failure.
        """
        if not self.transfer.transfer_out(recipient, asset, amount):
            raise TransferFailedError(f"transfer out of {amount} {asset} to {recipient} failed")

    # ========================================================================
    # SNAPSHOTS
    # ========================================================================

    def snapshot(self) -> PositionTable:
        return dict(self._positions)

    def restore(self, positions: PositionTable) -> None:
        self._positions = dict(positions)

    def __repr__(self) -> str:
        return f"CollateralLedger({len(self._positions)} positions)"


class DebtLedger:
    """Per-user outstanding minted debt, in smallest units of the pegged asset."""

    def __init__(self, events: Optional[EventLog] = None):
        self.events = events if events is not None else EventLog()
        self._debts: DebtTable = {}

    def balance_of(self, user: str) -> int:
        return self._debts.get(user, 0)

    def total_debt(self) -> int:
        return sum(self._debts[u] for u in sorted(self._debts))

    def users(self) -> Set[str]:
        return set(self._debts)

    def indebted_users(self) -> List[str]:
        """Users with non-zero debt, sorted for deterministic iteration."""
        return sorted(u for u, d in self._debts.items() if d > 0)

    def increase(self, user: str, amount: int) -> None:
        require_positive(amount)
        self._debts[user] = self._debts.get(user, 0) + amount
        self.events.record(DebtMinted(user, amount))

    def decrease(self, user: str, amount: int) -> None:
        """
        Raises:
            InvalidAmountError: If amount is not a positive int.
            InsufficientDebtError: If amount exceeds the user's debt.
        """
        require_positive(amount)
        current = self._debts.get(user, 0)
        if amount > current:
            raise InsufficientDebtError(f"{user} owes {current}, cannot repay {amount}")
        self._debts[user] = current - amount
        self.events.record(DebtBurned(user, amount))

    def snapshot(self) -> DebtTable:
        return dict(self._debts)

    def restore(self, debts: DebtTable) -> None:
        self._debts = dict(debts)

    def __repr__(self) -> str:
        return f"DebtLedger({len(self.indebted_users())} indebted users)"

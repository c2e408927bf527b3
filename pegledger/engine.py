"""
engine.py - Public facade of the collateral accounting engine

Engine wires the components together from the construction arguments and
exposes every public operation and read-only query:

    registry   -> CollateralRegistry (immutable, fixed at construction)
    oracle     -> PriceOracleAdapter
    collateral -> CollateralLedger          debt -> DebtLedger
    health     -> HealthFactorCalculator
    journal    -> Journal (atomicity + call-depth guard, shared)
    accounting -> AccountingEngine          liquidation -> LiquidationEngine

Usage:
    from pegledger import Engine, StaticPriceFeed

    eth = StaticPriceFeed(Decimal("2000"))
    engine = Engine(["WETH"], [eth], pegged_token)

    engine.deposit_and_mint("alice", "WETH", 10 * 10**18, 5_000 * 10**18)
    engine.get_health_factor("alice")   # 2000000000000000000 (2.0)

    eth.update_price(Decimal("900"))
    engine.liquidate("bob", "alice", "WETH", 1_000 * 10**18)
"""

from __future__ import annotations
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .accounting import AccountingEngine
from .core import (
    CollateralTransfer, EngineParameters, LogicalClock, NullTransfer, PeggedToken,
    PositionTable, DebtTable,
)
from .events import EventLog
from .health import AccountInformation, HealthFactorCalculator, calculate_health_factor
from .journal import Journal
from .ledger import CollateralLedger, DebtLedger
from .liquidation import LiquidationEngine, LiquidationResult, SeizureQuote
from .pricing_source import PriceOracleAdapter, normalized_prices
from .registry import CollateralRegistry


class Engine:
    """
    Overcollateralized pegged-asset engine.

    Thread Safety:
        Not thread-safe. Operations are serialized by the caller; a
        state-changing call made while another is in flight raises
        ReentrantCallError.
    """

    def __init__(
        self,
        assets: Sequence[str],
        price_feeds: Sequence[Any],
        pegged_token: PeggedToken,
        transfer: Optional[CollateralTransfer] = None,
        parameters: Optional[EngineParameters] = None,
        decimals: Optional[Dict[str, int]] = None,
        initial_time: Optional[datetime] = None,
        clock: Optional[LogicalClock] = None,
        verbose: bool = False,
    ):
        """
        Create an engine.

        Args:
            assets: Collateral symbols, in registration order
            price_feeds: One PriceFeed per asset, matched by position
            pegged_token: PeggedToken capability (mint/burn)
            transfer: CollateralTransfer capability (default: NullTransfer)
            parameters: Risk parameters (default: 50% threshold, 10% bonus, min 1.0)
            decimals: Per-asset smallest-unit exponent (default 18)
            initial_time: Starting logical time (ignored if clock is given)
            clock: Shared LogicalClock, e.g. one also driving TimeSeriesPriceFeeds
            verbose: Print published events and rejected operations

        Raises:
            ConfigurationMismatchError: If assets and price_feeds differ in length.
        """
        self.parameters = parameters or EngineParameters()
        self.clock = clock or LogicalClock(initial_time)
        self.verbose = verbose

        self.registry = CollateralRegistry.from_lists(assets, price_feeds, decimals)
        self.oracle = PriceOracleAdapter(self.registry, self.clock, self.parameters.max_price_age)
        self.events = EventLog(verbose=verbose)
        self.collateral = CollateralLedger(
            self.registry, self.oracle, transfer or NullTransfer(), self.events
        )
        self.debt = DebtLedger(self.events)
        self.health = HealthFactorCalculator(self.collateral, self.debt, self.parameters)
        self.journal = Journal(self.collateral, self.debt, self.events, self.clock, verbose)
        self.token = pegged_token
        self.accounting = AccountingEngine(
            self.collateral, self.debt, self.health, pegged_token, self.journal
        )
        self.liquidation = LiquidationEngine(
            self.collateral, self.debt, self.health, self.oracle,
            pegged_token, self.journal, self.parameters,
        )

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        return self.clock.now()

    def advance_time(self, new_time: datetime) -> None:
        """Advance the logical clock. Time can only move forward."""
        self.clock.advance(new_time)

    # ========================================================================
    # STATE-CHANGING OPERATIONS
    # ========================================================================

    def deposit_collateral(self, user: str, asset: str, amount: int) -> None:
        self.accounting.deposit_collateral(user, asset, amount)

    def mint_debt(self, user: str, amount: int) -> int:
        return self.accounting.mint_debt(user, amount)

    def redeem_collateral(self, user: str, asset: str, amount: int,
                          recipient: Optional[str] = None) -> int:
        return self.accounting.redeem_collateral(user, asset, amount, recipient)

    def burn_debt(self, user: str, amount: int) -> None:
        self.accounting.burn_debt(user, amount)

    def deposit_and_mint(self, user: str, asset: str, collateral_amount: int, debt_amount: int) -> int:
        return self.accounting.deposit_and_mint(user, asset, collateral_amount, debt_amount)

    def redeem_and_burn(self, user: str, asset: str, collateral_amount: int, debt_amount: int) -> int:
        return self.accounting.redeem_and_burn(user, asset, collateral_amount, debt_amount)

    def liquidate(self, liquidator: str, target: str, asset: str, debt_to_cover: int) -> LiquidationResult:
        return self.liquidation.liquidate(liquidator, target, asset, debt_to_cover)

    # ========================================================================
    # READ-ONLY QUERIES
    # ========================================================================

    def get_health_factor(self, user: str) -> int:
        return self.health.compute(user)

    def get_account_collateral_value_usd(self, user: str) -> int:
        return self.collateral.total_value_usd(user)

    def get_asset_value_usd(self, asset: str, amount: int) -> int:
        return self.oracle.value_of(asset, amount)

    def get_collateral_balance(self, user: str, asset: str) -> int:
        return self.collateral.balance_of(user, asset)

    def get_debt_balance(self, user: str) -> int:
        return self.debt.balance_of(user)

    def get_account_information(self, user: str) -> AccountInformation:
        return self.health.account_information(user)

    def calculate_health_factor(self, debt: int, collateral_usd: int) -> int:
        """Health factor for hypothetical inputs, using this engine's threshold."""
        return calculate_health_factor(collateral_usd, debt, self.parameters.liquidation_threshold)

    def get_token_amount_from_usd(self, asset: str, usd_value: int) -> int:
        return self.oracle.amount_from_usd(asset, usd_value)

    def get_max_mintable(self, user: str) -> int:
        return self.health.max_mintable(user)

    def get_collateral_assets(self) -> Tuple[str, ...]:
        return self.registry.list_assets()

    def get_price_feed(self, asset: str) -> Any:
        return self.registry.price_feed_of(asset)

    def get_prices(self) -> Dict[str, int]:
        return normalized_prices(self.oracle)

    def get_liquidation_threshold(self) -> int:
        return self.parameters.liquidation_threshold

    def get_liquidation_bonus(self) -> int:
        return self.parameters.liquidation_bonus

    def get_min_health_factor(self) -> int:
        return self.parameters.min_health_factor

    def quote_seizure(self, target: str, asset: str, debt_to_cover: int) -> SeizureQuote:
        return self.liquidation.quote_seizure(target, asset, debt_to_cover)

    def is_liquidatable(self, user: str) -> bool:
        return not self.health.is_safe(user)

    # ========================================================================
    # AUDIT
    # ========================================================================

    def verify_invariant(self) -> Dict[str, Any]:
        """
        Check the health-factor invariant for every indebted user.

        Returns:
            Dict with keys:
            - 'valid': bool - True if every indebted user is at or above the minimum
            - 'checked': int - Number of indebted users examined
            - 'violations': List[Dict] - user, health_factor, debt, collateral_usd

        Example:
            result = engine.verify_invariant()
            assert result['valid'], result['violations']
        """
        violations: List[Dict[str, Any]] = []
        users = self.debt.indebted_users()
        for user in users:
            info = self.health.account_information(user)
            if info.health_factor < self.parameters.min_health_factor:
                violations.append({
                    'user': user,
                    'health_factor': info.health_factor,
                    'debt': info.debt,
                    'collateral_usd': info.collateral_usd,
                })
        return {
            'valid': len(violations) == 0,
            'checked': len(users),
            'violations': violations,
        }

    def snapshot(self) -> Dict[str, Any]:
        """
        The durable state: registry, collateral positions and debt positions.

        Zero-valued rows are kept; a position that existed stays addressable.
        """
        positions: PositionTable = self.collateral.snapshot()
        debts: DebtTable = self.debt.snapshot()
        return {
            'assets': self.registry.list_assets(),
            'positions': positions,
            'debts': debts,
        }

    def __repr__(self) -> str:
        return (
            f"Engine({self.registry!r}, {len(self.debt.indebted_users())} indebted users, "
            f"t={self.current_time.isoformat()})"
        )

"""
pegledger - Overcollateralized Pegged-Asset Accounting Engine

Tracks collateral deposits and minted debt per user, keeps every indebted
account at or above a minimum health factor, and lets third parties liquidate
accounts that fall below it.

Usage:
    from decimal import Decimal
    from pegledger import Engine, StaticPriceFeed, to_fixed

    eth = StaticPriceFeed(Decimal("1000"))
    engine = Engine(["WETH"], [eth], pegged_token)

    engine.deposit_collateral("alice", "WETH", to_fixed(10))
    engine.mint_debt("alice", to_fixed(4000))
    engine.get_health_factor("alice")       # 1250000000000000000 (1.25)

    eth.update_price(Decimal("700"))
    engine.liquidate("bob", "alice", "WETH", to_fixed(1000))
"""

# Core types
from .core import (
    PRECISION,
    DEBT_DECIMALS,
    DEFAULT_ASSET_DECIMALS,
    MAX_HEALTH_FACTOR,
    DEFAULT_LIQUIDATION_THRESHOLD,
    DEFAULT_LIQUIDATION_BONUS,
    DEFAULT_MIN_HEALTH_FACTOR,
    DEFAULT_MAX_PRICE_AGE,
    to_fixed,
    from_fixed,
    PriceRound,
    PriceFeed,
    PeggedToken,
    CollateralTransfer,
    NullTransfer,
    LogicalClock,
    CollateralAsset,
    EngineParameters,
    EngineError,
    ValidationError,
    InvalidAmountError,
    UnsupportedAssetError,
    ConfigurationError,
    ConfigurationMismatchError,
    InsufficientCollateralError,
    InsufficientDebtError,
    HealthFactorBrokenError,
    ExternalCallError,
    TransferFailedError,
    MintFailedError,
    BurnFailedError,
    OracleReadError,
    StalePriceError,
    LiquidationError,
    TargetIsSafeError,
    LiquidationDidNotImproveHealthError,
    ReentrantCallError,
)

# Registry and pricing
from .registry import CollateralRegistry
from .pricing_source import (
    PriceOracleAdapter,
    StaticPriceFeed,
    TimeSeriesPriceFeed,
    normalized_prices,
    DEFAULT_FEED_DECIMALS,
)

# Events
from .events import (
    CollateralDeposited,
    CollateralRedeemed,
    DebtMinted,
    DebtBurned,
    Liquidated,
    EventRecord,
    EventLog,
)

# Ledgers and health
from .ledger import CollateralLedger, DebtLedger
from .health import (
    AccountInformation,
    HealthFactorCalculator,
    calculate_health_factor,
    calculate_threshold_adjusted_collateral,
    calculate_max_mintable,
)

# Engines
from .journal import Journal
from .accounting import AccountingEngine
from .liquidation import (
    LiquidationEngine,
    LiquidationResult,
    SeizureQuote,
    calculate_seizure,
)
from .engine import Engine

__version__ = "1.0.0"

__all__ = [
    # Constants
    'PRECISION', 'DEBT_DECIMALS', 'DEFAULT_ASSET_DECIMALS', 'MAX_HEALTH_FACTOR',
    'DEFAULT_LIQUIDATION_THRESHOLD', 'DEFAULT_LIQUIDATION_BONUS',
    'DEFAULT_MIN_HEALTH_FACTOR', 'DEFAULT_MAX_PRICE_AGE', 'DEFAULT_FEED_DECIMALS',
    # Fixed-point helpers
    'to_fixed', 'from_fixed',
    # Core types
    'PriceRound', 'PriceFeed', 'PeggedToken', 'CollateralTransfer', 'NullTransfer',
    'LogicalClock', 'CollateralAsset', 'EngineParameters',
    # Exceptions
    'EngineError', 'ValidationError', 'InvalidAmountError', 'UnsupportedAssetError',
    'ConfigurationError', 'ConfigurationMismatchError',
    'InsufficientCollateralError', 'InsufficientDebtError', 'HealthFactorBrokenError',
    'ExternalCallError', 'TransferFailedError', 'MintFailedError', 'BurnFailedError',
    'OracleReadError', 'StalePriceError',
    'LiquidationError', 'TargetIsSafeError', 'LiquidationDidNotImproveHealthError',
    'ReentrantCallError',
    # Registry and pricing
    'CollateralRegistry', 'PriceOracleAdapter', 'StaticPriceFeed', 'TimeSeriesPriceFeed',
    'normalized_prices',
    # Events
    'CollateralDeposited', 'CollateralRedeemed', 'DebtMinted', 'DebtBurned', 'Liquidated',
    'EventRecord', 'EventLog',
    # Ledgers and health
    'CollateralLedger', 'DebtLedger',
    'AccountInformation', 'HealthFactorCalculator',
    'calculate_health_factor', 'calculate_threshold_adjusted_collateral', 'calculate_max_mintable',
    # Engines
    'Journal', 'AccountingEngine',
    'LiquidationEngine', 'LiquidationResult', 'SeizureQuote', 'calculate_seizure',
    'Engine',
]

"""
Core types, constants and exceptions for the collateral accounting engine.

This module provides the foundational pieces every other module builds on:
1. Fixed-point scale: PRECISION and the to_fixed()/from_fixed() boundary helpers
2. Configuration: EngineParameters (frozen, validated at construction)
3. Protocols: PriceFeed, PeggedToken and CollateralTransfer collaborators
4. Immutable data structures: PriceRound, CollateralAsset
5. Exceptions: EngineError and the domain-specific error types

Every ledger quantity is a Python int in the asset's smallest unit. USD values,
fractions and health factors share a single scale of 1e18. Decimal is only used
at the boundary, when a human-friendly value enters or leaves the engine.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_EVEN, getcontext
from typing import Any, Dict, Optional, Protocol, Tuple, Union, runtime_checkable


# ============================================================================
# DECIMAL CONTEXT CONFIGURATION
# ============================================================================
#
# Decimal only appears at the conversion boundary, but conversions must be
# deterministic. prec=50 covers 1e18-scaled values with room to spare.
#
_ENGINE_DECIMAL_CONTEXT = getcontext()
_ENGINE_DECIMAL_CONTEXT.prec = 50
_ENGINE_DECIMAL_CONTEXT.rounding = ROUND_HALF_EVEN


# ============================================================================
# CONSTANTS
# ============================================================================

# The one fixed-point scale. USD values, the threshold and bonus fractions,
# health factors and the minimum health factor are all expressed in it.
PRECISION = 10 ** 18

# Decimals of the pegged unit (1 unit == 1 USD at PRECISION).
DEBT_DECIMALS = 18

# Default smallest-unit exponent for collateral assets.
DEFAULT_ASSET_DECIMALS = 18

# Health factor reported for accounts without debt.
MAX_HEALTH_FACTOR = 2 ** 256 - 1

DEFAULT_LIQUIDATION_THRESHOLD = PRECISION // 2       # 50% -> 200% overcollateralized
DEFAULT_LIQUIDATION_BONUS = PRECISION // 10          # 10%
DEFAULT_MIN_HEALTH_FACTOR = PRECISION                # 1.0
DEFAULT_MAX_PRICE_AGE = timedelta(hours=3)

# Fixed-point value accepted at the boundary.
FixedInput = Union[int, Decimal, str]

# Mapping from (user, asset) to deposited amount.
PositionTable = Dict[Tuple[str, str], int]

# Mapping from user to outstanding debt.
DebtTable = Dict[str, int]


# ============================================================================
# FIXED-POINT HELPERS
# ============================================================================

def to_fixed(value: FixedInput, decimals: int = 18) -> int:
    """
    Convert a human-friendly number to a fixed-point integer.

    Ints are taken as whole units. Decimals and strings are scaled by
    10**decimals and rounded down, so a conversion never creates value.

    Example:
        to_fixed(Decimal("0.5"))   -> 500000000000000000
        to_fixed("1000", 8)        -> 100000000000
    """
    if isinstance(value, bool):
        raise TypeError("bool is not a fixed-point value")
    if isinstance(value, int):
        return value * 10 ** decimals
    if isinstance(value, float):
        raise TypeError("floats are not accepted; pass a Decimal or str")
    d = value if isinstance(value, Decimal) else Decimal(str(value))
    if d.is_nan() or d.is_infinite():
        raise ValueError(f"fixed-point value must be finite, got {value}")
    scaled = (d * (Decimal(10) ** decimals)).quantize(Decimal(1), rounding=ROUND_DOWN)
    return int(scaled)


def from_fixed(value: int, decimals: int = 18) -> Decimal:
    """Convert a fixed-point integer back to a Decimal for display."""
    return Decimal(value) / (Decimal(10) ** decimals)


def _fraction(name: str, value: Optional[FixedInput], default: int) -> int:
    """
    Normalize a configured fraction to the 1e18 scale.

    Ints are assumed to already be at the 1e18 scale; Decimal and str values
    are treated as plain fractions (Decimal("0.5") == 50%).
    """
    if value is None:
        return default
    if isinstance(value, bool):
        raise ConfigurationError(f"{name} must be numeric, got {value!r}")
    if isinstance(value, int):
        return value
    try:
        return to_fixed(value)
    except (TypeError, ValueError, ArithmeticError) as e:
        raise ConfigurationError(f"{name}: {e}") from e


# ============================================================================
# EXCEPTIONS
# ============================================================================

class EngineError(Exception):
    """Base exception for all engine errors."""
    pass


class ValidationError(EngineError):
    """Caller-correctable input error. Nothing was changed."""
    pass


class InvalidAmountError(ValidationError):
    """Raised when an amount is zero, negative or not an integer."""
    pass


class UnsupportedAssetError(ValidationError):
    """Raised when an operation references an asset that is not registered."""
    pass


class ConfigurationError(ValidationError):
    """Raised when engine configuration is invalid."""
    pass


class ConfigurationMismatchError(ConfigurationError):
    """Raised when the asset list and price-feed list differ in length."""
    pass


class InsufficientCollateralError(ValidationError):
    """Raised when a withdrawal exceeds the deposited balance."""
    pass


class InsufficientDebtError(ValidationError):
    """Raised when a repayment exceeds the outstanding debt."""
    pass


class HealthFactorBrokenError(EngineError):
    """
    Raised when an operation would leave an account below the minimum health factor.

    Attributes:
        health_factor: The computed health factor (1e18 scale) that was rejected.
    """

    def __init__(self, health_factor: int, user: Optional[str] = None):
        self.health_factor = health_factor
        self.user = user
        who = f" for {user}" if user else ""
        super().__init__(
            f"health factor {from_fixed(health_factor):.6f} below minimum{who}"
        )


class ExternalCallError(EngineError):
    """Base class for failures reported by external collaborators."""
    pass


class TransferFailedError(ExternalCallError):
    """Raised when a collateral transfer in or out reports failure."""
    pass


class MintFailedError(ExternalCallError):
    """Raised when the pegged token refuses to mint."""
    pass


class BurnFailedError(ExternalCallError):
    """Raised when the pegged token refuses to burn."""
    pass


class OracleReadError(ExternalCallError):
    """Raised when a price feed cannot be read or returns an invalid price."""
    pass


class StalePriceError(OracleReadError):
    """Raised when a price feed's last update is older than the allowed age."""
    pass


class LiquidationError(EngineError):
    """Base class for liquidation-specific failures."""
    pass


class TargetIsSafeError(LiquidationError):
    """Raised when liquidating an account that is at or above the minimum health factor."""

    def __init__(self, health_factor: int, user: Optional[str] = None):
        self.health_factor = health_factor
        self.user = user
        super().__init__(f"{user or 'target'} is safe (health factor {from_fixed(health_factor):.6f})")


class LiquidationDidNotImproveHealthError(LiquidationError):
    """Raised when a liquidation leaves the target no healthier than before."""

    def __init__(self, before: int, after: int):
        self.before = before
        self.after = after
        super().__init__(
            f"health factor did not improve: {from_fixed(before):.6f} -> {from_fixed(after):.6f}"
        )


class ReentrantCallError(EngineError):
    """Raised when a state-changing operation is entered while another is in flight."""
    pass


# ============================================================================
# PROTOCOLS
# ============================================================================

@dataclass(frozen=True, slots=True)
class PriceRound:
    """
    A single raw answer from a price feed.

    Attributes:
        answer: Price in USD scaled by 10**decimals.
        decimals: Native precision of the feed (Chainlink USD feeds use 8).
        updated_at: When the feed last updated; None if the feed does not say.
    """
    answer: int
    decimals: int
    updated_at: Optional[datetime] = None


@runtime_checkable
class PriceFeed(Protocol):
    """Read-only price source for one collateral asset."""

    def latest_round(self) -> PriceRound:
        """Return the most recent answer. May raise on failure."""
        ...


@runtime_checkable
class PeggedToken(Protocol):
    """
    The issued stable asset, consumed as a capability.

    Both calls return True on success. A False return aborts the enclosing
    engine operation.
    """

    def mint(self, user: str, amount: int) -> bool:
        ...

    def burn(self, user: str, amount: int) -> bool:
        ...


@runtime_checkable
class CollateralTransfer(Protocol):
    """Moves collateral between users and the engine's custody."""

    def transfer_in(self, user: str, asset: str, amount: int) -> bool:
        ...

    def transfer_out(self, recipient: str, asset: str, amount: int) -> bool:
        ...


class NullTransfer:
    """CollateralTransfer that always succeeds; for pure accounting runs."""

    def transfer_in(self, user: str, asset: str, amount: int) -> bool:
        return True

    def transfer_out(self, recipient: str, asset: str, amount: int) -> bool:
        return True

    def __repr__(self) -> str:
        return "NullTransfer()"


# ============================================================================
# LOGICAL TIME
# ============================================================================

class LogicalClock:
    """
    Monotonic logical clock shared by the engine and time-aware price feeds.

    Time can only move forward, never backward.
    """

    def __init__(self, initial_time: Optional[datetime] = None):
        self._current_time: datetime = initial_time or datetime(1970, 1, 1)

    def now(self) -> datetime:
        return self._current_time

    __call__ = now

    def advance(self, new_time: datetime) -> None:
        """
        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time

    def __repr__(self) -> str:
        return f"LogicalClock({self._current_time.isoformat()})"


# ============================================================================
# DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class CollateralAsset:
    """
    An approved collateral asset and the feed that prices it.

    Attributes:
        symbol: Asset identifier (e.g., "WETH").
        price_feed: PriceFeed quoting the asset in USD.
        decimals: Smallest-unit exponent of the asset (18 for WETH, 8 for WBTC).
    """
    symbol: str
    price_feed: Any
    decimals: int = DEFAULT_ASSET_DECIMALS

    def __post_init__(self):
        if not self.symbol or not self.symbol.strip():
            raise ConfigurationError("Collateral symbol cannot be empty")
        if self.price_feed is None:
            raise ConfigurationError(f"Collateral {self.symbol} has no price feed")
        if not isinstance(self.decimals, int) or self.decimals < 0:
            raise ConfigurationError(
                f"Collateral {self.symbol} decimals must be a non-negative int, got {self.decimals!r}"
            )

    def __repr__(self) -> str:
        return f"CollateralAsset({self.symbol}, decimals={self.decimals})"


@dataclass(frozen=True, slots=True)
class EngineParameters:
    """
    Immutable risk parameters, shared by every component of one engine.

    Fractions may be given as Decimal/str (Decimal("0.5")) or as ints already
    at the 1e18 scale (500000000000000000). After construction every field is
    an int at the 1e18 scale, so the health factor and its minimum can never
    be compared across scales.

    Unlike to_fixed(), a plain int is never treated as whole units here:

        EngineParameters(min_health_factor=Decimal("1"))   # 1.0
        EngineParameters(min_health_factor=PRECISION)      # 1.0
        EngineParameters(min_health_factor=1)              # 1e-18, not 1.0

    Attributes:
        liquidation_threshold: Share of collateral value that backs debt.
        liquidation_bonus: Extra collateral share paid to liquidators.
        min_health_factor: Health factor below which an account is liquidatable.
        max_price_age: Oldest acceptable feed update, or None to disable.
    """
    liquidation_threshold: Any = DEFAULT_LIQUIDATION_THRESHOLD
    liquidation_bonus: Any = DEFAULT_LIQUIDATION_BONUS
    min_health_factor: Any = DEFAULT_MIN_HEALTH_FACTOR
    max_price_age: Optional[timedelta] = DEFAULT_MAX_PRICE_AGE

    def __post_init__(self):
        threshold = _fraction("liquidation_threshold", self.liquidation_threshold,
                              DEFAULT_LIQUIDATION_THRESHOLD)
        bonus = _fraction("liquidation_bonus", self.liquidation_bonus, DEFAULT_LIQUIDATION_BONUS)
        min_hf = _fraction("min_health_factor", self.min_health_factor, DEFAULT_MIN_HEALTH_FACTOR)

        if not 0 < threshold <= PRECISION:
            raise ConfigurationError(f"liquidation_threshold must be in (0, 1], got {from_fixed(threshold)}")
        if not 0 <= bonus < PRECISION:
            raise ConfigurationError(f"liquidation_bonus must be in [0, 1), got {from_fixed(bonus)}")
        if min_hf <= 0:
            raise ConfigurationError(f"min_health_factor must be positive, got {from_fixed(min_hf)}")
        if self.max_price_age is not None and self.max_price_age <= timedelta(0):
            raise ConfigurationError(f"max_price_age must be positive, got {self.max_price_age}")

        object.__setattr__(self, 'liquidation_threshold', threshold)
        object.__setattr__(self, 'liquidation_bonus', bonus)
        object.__setattr__(self, 'min_health_factor', min_hf)

    def __repr__(self) -> str:
        return (
            f"EngineParameters(threshold={from_fixed(self.liquidation_threshold)}, "
            f"bonus={from_fixed(self.liquidation_bonus)}, "
            f"min_hf={from_fixed(self.min_health_factor)}, max_price_age={self.max_price_age})"
        )


def require_account(account: Any, what: str = "user") -> str:
    """
    Raises:
        ValidationError: If account is not a non-empty string.
    """
    if not isinstance(account, str) or not account.strip():
        raise ValidationError(f"{what} must be a non-empty string, got {account!r}")
    return account


def require_positive(amount: Any, what: str = "amount") -> int:
    """
    Validate that an amount is a positive int in smallest units.

    Raises:
        InvalidAmountError: If amount is not an int or is <= 0.
    """
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmountError(f"{what} must be an int in smallest units, got {type(amount).__name__}")
    if amount <= 0:
        raise InvalidAmountError(f"{what} must be greater than zero, got {amount}")
    return amount

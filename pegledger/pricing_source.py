"""
pricing_source.py - Price feeds and the oracle adapter used for valuation

Classes:
- PriceOracleAdapter: Normalizes raw feed answers to the engine's 1e18 USD scale
- StaticPriceFeed: A single, manually updated price
- TimeSeriesPriceFeed: Time-varying prices read at the current logical time

Feeds report prices in their own native precision (Chainlink USD feeds use 8
decimals). The adapter is the only place that knows about that precision;
everything downstream sees 1e18-scaled USD values.

The adapter never caches. Every valuation re-reads the feed.
"""

from __future__ import annotations
from bisect import bisect_right
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Tuple, Union

from .core import (
    PriceRound, CollateralAsset,
    OracleReadError, StalePriceError, InvalidAmountError,
    to_fixed,
)
from .registry import CollateralRegistry


# Native precision of the bundled feeds (matches Chainlink USD pairs).
DEFAULT_FEED_DECIMALS = 8

PriceInput = Union[int, Decimal, str]


class PriceOracleAdapter:
    """
    Converts between collateral amounts and 1e18-scaled USD values.

    Fails closed: a feed that raises, answers with a non-positive price, or
    reports an update older than max_price_age produces an OracleReadError,
    never a zero valuation.
    """

    def __init__(
        self,
        registry: CollateralRegistry,
        clock: Optional[Callable[[], datetime]] = None,
        max_price_age: Optional[timedelta] = None,
    ):
        self.registry = registry
        self.clock = clock
        self.max_price_age = max_price_age

    def _read(self, asset: CollateralAsset) -> PriceRound:
        try:
            round_ = asset.price_feed.latest_round()
        except OracleReadError:
            raise
        except Exception as e:
            raise OracleReadError(f"{asset.symbol} feed read failed: {e}") from e
        if not isinstance(round_, PriceRound):
            raise OracleReadError(f"{asset.symbol} feed returned {type(round_).__name__}, expected PriceRound")
        return round_

    def _check_staleness(self, asset: CollateralAsset, round_: PriceRound) -> None:
        if round_.updated_at is None or self.clock is None:
            return
        now = self.clock()
        if round_.updated_at > now:
            raise StalePriceError(
                f"{asset.symbol} price updated in the future ({round_.updated_at} > {now})"
            )
        if self.max_price_age is not None and now - round_.updated_at > self.max_price_age:
            raise StalePriceError(
                f"{asset.symbol} price is stale: last update {round_.updated_at}, "
                f"now {now}, max age {self.max_price_age}"
            )

    def price_of(self, symbol: str) -> int:
        """
        Latest USD price of one whole unit of the asset, at the 1e18 scale.

        Raises:
            UnsupportedAssetError: If the asset is not registered.
            OracleReadError: If the feed fails or answers with an invalid price.
            StalePriceError: If the answer is too old.
        """
        asset = self.registry.require(symbol)
        round_ = self._read(asset)

        answer, decimals = round_.answer, round_.decimals
        if isinstance(answer, bool) or not isinstance(answer, int):
            raise OracleReadError(f"{symbol} answer must be an int, got {answer!r}")
        if isinstance(decimals, bool) or not isinstance(decimals, int) or decimals < 0:
            raise OracleReadError(f"{symbol} feed decimals invalid: {decimals!r}")
        if answer <= 0:
            raise OracleReadError(f"{symbol} price must be positive, got {answer}")
        self._check_staleness(asset, round_)

        if decimals <= 18:
            price = answer * 10 ** (18 - decimals)
        else:
            price = answer // 10 ** (decimals - 18)
        if price <= 0:
            raise OracleReadError(f"{symbol} price {answer}e-{decimals} is below 1e-18 USD")
        return price

    def value_of(self, symbol: str, amount: int) -> int:
        """USD value (1e18 scale) of an amount of the asset in smallest units."""
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
            raise InvalidAmountError(f"amount must be a non-negative int, got {amount!r}")
        asset = self.registry.require(symbol)
        price = self.price_of(symbol)
        return price * amount // 10 ** asset.decimals

    def amount_from_usd(self, symbol: str, usd_value: int) -> int:
        """
        Amount of the asset (smallest units) worth usd_value at the latest price.

        Rounds down.
        """
        if isinstance(usd_value, bool) or not isinstance(usd_value, int) or usd_value < 0:
            raise InvalidAmountError(f"usd_value must be a non-negative int, got {usd_value!r}")
        asset = self.registry.require(symbol)
        price = self.price_of(symbol)
        return usd_value * 10 ** asset.decimals // price

    def __repr__(self) -> str:
        return f"PriceOracleAdapter({len(self.registry)} assets, max_age={self.max_price_age})"


class StaticPriceFeed:
    """
    Price feed with a single price that changes only when told to.

    The price is given in USD (Decimal, str or whole-dollar int) and stored
    as a raw answer in the feed's native precision.
    """

    def __init__(
        self,
        price: PriceInput,
        decimals: int = DEFAULT_FEED_DECIMALS,
        updated_at: Optional[datetime] = None,
    ):
        self.decimals = decimals
        self.answer = to_fixed(price, decimals)
        self.updated_at = updated_at

    @classmethod
    def from_answer(cls, answer: int, decimals: int = DEFAULT_FEED_DECIMALS,
                    updated_at: Optional[datetime] = None) -> StaticPriceFeed:
        """Build a feed from a raw answer, bypassing conversion."""
        feed = cls(0, decimals, updated_at)
        feed.answer = answer
        return feed

    def latest_round(self) -> PriceRound:
        return PriceRound(self.answer, self.decimals, self.updated_at)

    def update_price(self, price: PriceInput, updated_at: Optional[datetime] = None):
        """Update the price (and, optionally, the update timestamp)."""
        self.answer = to_fixed(price, self.decimals)
        if updated_at is not None:
            self.updated_at = updated_at

    def __repr__(self):
        return f"StaticPriceFeed({self.answer}e-{self.decimals})"


class TimeSeriesPriceFeed:
    """
    Price feed backed by a price path.

    latest_round() returns the most recent observation at or before the
    clock's current time, with updated_at set to that observation's time,
    so the adapter's staleness check sees real gaps in the path.

    Example:
        clock = LogicalClock(datetime(2025, 1, 1))
        feed = TimeSeriesPriceFeed(clock, [
            (datetime(2025, 1, 1), Decimal("2000")),
            (datetime(2025, 1, 2), Decimal("1500")),
        ])
    """

    def __init__(
        self,
        clock: Callable[[], datetime],
        price_path: Optional[List[Tuple[datetime, PriceInput]]] = None,
        decimals: int = DEFAULT_FEED_DECIMALS,
    ):
        self.clock = clock
        self.decimals = decimals
        self.price_history: List[Tuple[datetime, int]] = []
        if price_path:
            self.price_history = sorted(
                ((ts, to_fixed(p, decimals)) for ts, p in price_path),
                key=lambda x: x[0],
            )

    def add_price(self, timestamp: datetime, price: PriceInput):
        """Add a price observation at a specific time."""
        self.price_history.append((timestamp, to_fixed(price, self.decimals)))
        self.price_history.sort(key=lambda x: x[0])

    def round_at(self, timestamp: datetime) -> PriceRound:
        """
        Observation at or before timestamp.

        Raises:
            OracleReadError: If there is no observation at or before timestamp.
        """
        timestamps = [ts for ts, _ in self.price_history]
        idx = bisect_right(timestamps, timestamp)
        if idx == 0:
            raise OracleReadError(f"no price at or before {timestamp}")
        ts, answer = self.price_history[idx - 1]
        return PriceRound(answer, self.decimals, ts)

    def latest_round(self) -> PriceRound:
        return self.round_at(self.clock())

    def get_all_timestamps(self) -> List[datetime]:
        return [ts for ts, _ in self.price_history]

    def __repr__(self):
        return f"TimeSeriesPriceFeed({len(self.price_history)} observations, decimals={self.decimals})"


def normalized_prices(adapter: PriceOracleAdapter) -> Dict[str, int]:
    """Latest 1e18-scaled price of every registered asset, in registration order."""
    return {symbol: adapter.price_of(symbol) for symbol in adapter.registry.list_assets()}

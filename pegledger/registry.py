"""
registry.py - Approved collateral assets and their price feeds

The registry is built once, when the engine is constructed, and never changes
afterwards. Registration order is preserved because collateral valuation sums
over assets in that order.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Tuple

from .core import (
    CollateralAsset,
    ConfigurationError, ConfigurationMismatchError, UnsupportedAssetError,
    DEFAULT_ASSET_DECIMALS,
)


@dataclass(frozen=True, slots=True)
class CollateralRegistry:
    """
    Immutable, ordered set of approved collateral assets.

    Example:
        registry = CollateralRegistry.from_lists(["WETH", "WBTC"], [eth_feed, btc_feed])
        registry.is_supported("WETH")   # True
        registry.list_assets()          # ("WETH", "WBTC")
    """
    assets: Tuple[CollateralAsset, ...]

    def __post_init__(self):
        if not self.assets:
            raise ConfigurationError("At least one collateral asset is required")
        seen = set()
        for asset in self.assets:
            if asset.symbol in seen:
                raise ConfigurationError(f"Collateral {asset.symbol} registered twice")
            seen.add(asset.symbol)

    @classmethod
    def from_lists(
        cls,
        symbols: Sequence[str],
        price_feeds: Sequence[Any],
        decimals: Optional[Dict[str, int]] = None,
    ) -> CollateralRegistry:
        """
        Build a registry from parallel lists, matched by position.

        Args:
            symbols: Asset identifiers, in registration order.
            price_feeds: One PriceFeed per symbol.
            decimals: Optional per-asset smallest-unit exponent (default 18).

        Raises:
            ConfigurationMismatchError: If the lists differ in length.
        """
        if len(symbols) != len(price_feeds):
            raise ConfigurationMismatchError(
                f"{len(symbols)} assets but {len(price_feeds)} price feeds"
            )
        decimals = decimals or {}
        unknown = set(decimals) - set(symbols)
        if unknown:
            raise ConfigurationError(f"decimals given for unregistered assets: {sorted(unknown)}")
        return cls(tuple(
            CollateralAsset(symbol, feed, decimals.get(symbol, DEFAULT_ASSET_DECIMALS))
            for symbol, feed in zip(symbols, price_feeds)
        ))

    def is_supported(self, symbol: str) -> bool:
        return any(a.symbol == symbol for a in self.assets)

    def require(self, symbol: str) -> CollateralAsset:
        """Return the registered asset or raise UnsupportedAssetError."""
        for asset in self.assets:
            if asset.symbol == symbol:
                return asset
        raise UnsupportedAssetError(f"Collateral {symbol} is not supported")

    def list_assets(self) -> Tuple[str, ...]:
        """Registered symbols in registration order."""
        return tuple(a.symbol for a in self.assets)

    def price_feed_of(self, symbol: str) -> Any:
        return self.require(symbol).price_feed

    def __len__(self) -> int:
        return len(self.assets)

    def __repr__(self) -> str:
        return f"CollateralRegistry({', '.join(self.list_assets())})"

"""
registry.py - Collateral Registry

Immutable mapping from supported collateral assets to their tokens and price
feeds. Built once at engine construction from parallel lists; there is no
add or remove operation.
"""

from __future__ import annotations
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterator, Mapping, Sequence, Tuple

from .core import ConfigurationLengthMismatch, UnsupportedAsset
from .oracle import PriceFeed
from .tokens import Token


@dataclass(frozen=True, slots=True)
class CollateralAsset:
    """A supported collateral asset: its token and the feed that prices it."""
    token: Token
    feed: PriceFeed

    @property
    def symbol(self) -> str:
        return self.token.symbol


@dataclass(frozen=True, slots=True)
class CollateralRegistry:
    """
    Immutable registry of collateral assets, keyed by token symbol.

    Iteration order is registration order.
    """
    entries: Mapping[str, CollateralAsset]

    @classmethod
    def from_lists(cls, tokens: Sequence[Token], feeds: Sequence[PriceFeed]) -> 'CollateralRegistry':
        """
        Build a registry from parallel lists of tokens and price feeds.

        Raises:
            ConfigurationLengthMismatch: If the lists differ in length
            ValueError: If a feed is missing or a token appears twice
        """
        if len(tokens) != len(feeds):
            raise ConfigurationLengthMismatch(
                f"{len(tokens)} collateral tokens but {len(feeds)} price feeds"
            )
        entries = {}
        for token, feed in zip(tokens, feeds):
            if feed is None:
                raise ValueError(f"collateral {token.symbol} has no price feed")
            if token.symbol in entries:
                raise ValueError(f"collateral {token.symbol} registered twice")
            entries[token.symbol] = CollateralAsset(token=token, feed=feed)
        return cls(entries=MappingProxyType(entries))

    @property
    def assets(self) -> Tuple[str, ...]:
        return tuple(self.entries)

    def get(self, asset: str) -> CollateralAsset:
        """
        Look up a registered asset.

        Raises:
            UnsupportedAsset: If the asset is not registered
        """
        try:
            return self.entries[asset]
        except KeyError:
            raise UnsupportedAsset(f"{asset} is not a supported collateral asset") from None

    def token_for(self, asset: str) -> Token:
        return self.get(asset).token

    def feed_for(self, asset: str) -> PriceFeed:
        return self.get(asset).feed

    def __contains__(self, asset: object) -> bool:
        return asset in self.entries

    def __iter__(self) -> Iterator[str]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

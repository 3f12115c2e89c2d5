"""
oracle.py - Price feeds for collateral valuation

Provides the price oracle interface the engine consumes and two in-process
implementations.

Classes:
- PriceRound: One reported price observation
- PriceFeed: Protocol defining the feed interface
- StaticPriceFeed: Settable price (the mock aggregator used by tests and demos)
- TimeSeriesPriceFeed: Time-varying prices read against a ledger clock

All prices are USD prices as signed integers with `decimals` decimals
(8 by convention). The engine never trusts a non-positive price: read_price()
is the single place prices enter the risk computation.
"""

from __future__ import annotations
from bisect import bisect_right
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple, Protocol, runtime_checkable

from .core import (
    EPOCH, FEED_DECIMALS, LedgerView,
    OraclePriceInvalid, OraclePriceStale,
)


@dataclass(frozen=True, slots=True)
class PriceRound:
    """
    One reported price observation.

    Attributes:
        round_id: Monotonic round identifier (starts at 1)
        price: USD price with the feed's decimals; may be non-positive if the feed is broken
        updated_at: When the price was reported
    """
    round_id: int
    price: int
    updated_at: datetime


@runtime_checkable
class PriceFeed(Protocol):
    """
    Protocol for price feeds.

    A feed reports the latest USD price of one collateral asset.
    """
    decimals: int

    def latest_round(self) -> PriceRound:
        """Return the most recent price round."""
        ...


class StaticPriceFeed:
    """
    Price feed with a settable price.

    Each update_price() call opens a new round. Prices are not validated here;
    a feed can report zero or negative prices, and the engine must reject them.
    """

    def __init__(self, price: int, decimals: int = FEED_DECIMALS, updated_at: Optional[datetime] = None):
        """
        Initialize with a starting price.

        Args:
            price: Initial USD price with `decimals` decimals
            decimals: Decimals of reported prices (default: 8)
            updated_at: Report time of the initial round (default: 1970-01-01)
        """
        self.decimals = decimals
        self._round = PriceRound(round_id=1, price=price, updated_at=updated_at or EPOCH)

    def latest_round(self) -> PriceRound:
        return self._round

    def update_price(self, price: int, updated_at: Optional[datetime] = None):
        """Report a new price, keeping the previous report time if none is given."""
        self._round = PriceRound(
            round_id=self._round.round_id + 1,
            price=price,
            updated_at=updated_at or self._round.updated_at,
        )

    def __repr__(self):
        return f"StaticPriceFeed(price={self._round.price}, decimals={self.decimals}, round={self._round.round_id})"


class TimeSeriesPriceFeed:
    """
    Price feed with time-varying prices.

    Stores a price path and reports the most recent price at or before the
    clock's current time. The clock is any LedgerView (normally the token
    ledger), so advancing the ledger's time moves the feed along its path.
    """

    def __init__(
        self,
        clock: LedgerView,
        price_path: Optional[List[Tuple[datetime, int]]] = None,
        decimals: int = FEED_DECIMALS,
    ):
        """
        Initialize the feed.

        Args:
            clock: Provides current_time
            price_path: Optional list of (timestamp, price) tuples
            decimals: Decimals of reported prices (default: 8)

        Example:
            feed = TimeSeriesPriceFeed(ledger, [(t0, 2000_00000000), (t1, 1500_00000000)])
        """
        self.clock = clock
        self.decimals = decimals
        self.price_history: List[Tuple[datetime, int]] = sorted(price_path or [], key=lambda x: x[0])

    def add_price(self, timestamp: datetime, price: int):
        """Add a price observation at a specific time."""
        self.price_history.append((timestamp, price))
        self.price_history.sort(key=lambda x: x[0])

    def add_prices(self, prices: Dict[datetime, int]):
        """Add several observations at once."""
        for timestamp, price in prices.items():
            self.add_price(timestamp, price)

    def latest_round(self) -> PriceRound:
        """
        Return the latest observation at or before the clock's current time.

        Uses binary search for efficient O(log n) lookup.

        Raises:
            OraclePriceInvalid: If there is no observation at or before current time
        """
        now = self.clock.current_time
        timestamps = [ts for ts, _ in self.price_history]
        idx = bisect_right(timestamps, now)
        if idx == 0:
            raise OraclePriceInvalid(f"no price reported at or before {now}")
        timestamp, price = self.price_history[idx - 1]
        return PriceRound(round_id=idx, price=price, updated_at=timestamp)

    def __repr__(self):
        return f"TimeSeriesPriceFeed({len(self.price_history)} observations, decimals={self.decimals})"


def read_price(
    feed: PriceFeed,
    now: Optional[datetime] = None,
    timeout: Optional[timedelta] = None,
) -> int:
    """
    Read and validate the latest price of a feed.

    Args:
        feed: The price feed
        now: Current time, required for the staleness check
        timeout: Maximum accepted age of the round; None disables the check

    Returns:
        The positive price, with feed.decimals decimals

    Raises:
        OraclePriceInvalid: If the price is zero or negative
        OraclePriceStale: If the round is older than timeout
    """
    latest = feed.latest_round()
    if latest.price <= 0:
        raise OraclePriceInvalid(f"feed reported non-positive price {latest.price} in round {latest.round_id}")
    if timeout is not None and now is not None and now - latest.updated_at > timeout:
        raise OraclePriceStale(
            f"round {latest.round_id} updated at {latest.updated_at} is older than {timeout}"
        )
    return latest.price

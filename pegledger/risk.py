"""
risk.py - Collateral valuation and health factors

Two layers, in the same shape as the rest of the package:

1. PURE CALCULATION FUNCTIONS - no ledger access, all inputs explicit.
   Useful for what-if queries: pass a hypothetical price or debt and read the
   resulting health factor without touching any state.
2. RiskEngine - adapter that reads positions from a PositionBook and prices
   from the CollateralRegistry's feeds, then delegates to the pure functions.

All arithmetic is integer arithmetic with floor division. USD values and
health factors are 18-decimal fixed point.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

from .core import (
    DEFAULT_RISK_PARAMETERS, HEALTH_FACTOR_MAX,
    LedgerView, RiskParameters,
    HealthFactorTooLow, OraclePriceInvalid,
    require_amount,
)
from .oracle import read_price
from .positions import PositionBook
from .registry import CollateralRegistry


# ============================================================================
# RESULT TYPES
# ============================================================================

@dataclass(frozen=True, slots=True)
class AccountInformation:
    """
    Debt and collateral value of one account at the current prices.

    Attributes:
        debt_minted: Debt token minted by the account (18 decimals)
        collateral_value_usd: Value of all deposited collateral (18 decimals)
        health_factor: Derived solvency measure (18 decimals)
    """
    debt_minted: int
    collateral_value_usd: int
    health_factor: int


# ============================================================================
# PURE CALCULATION FUNCTIONS - No Ledger Access, All Inputs Explicit
# ============================================================================

def _require_price(price: int) -> int:
    if isinstance(price, bool) or not isinstance(price, int):
        raise OraclePriceInvalid(f"price must be an integer, got {type(price).__name__}")
    if price <= 0:
        raise OraclePriceInvalid(f"price must be positive, got {price}")
    return price


def calculate_usd_value(price: int, amount: int, params: RiskParameters = DEFAULT_RISK_PARAMETERS) -> int:
    """
    USD value of an amount of collateral.

    PURE FUNCTION - All inputs explicit.

        value = price * additional_feed_precision * amount // precision

    Args:
        price: Feed price with params.feed_decimals decimals
        amount: Collateral amount in smallest units
        params: Risk parameters providing the scales

    Returns:
        USD value, 18 decimals, rounded down.

    Raises:
        OraclePriceInvalid: If price is not positive

    Example:
        # 10 WETH at 1000 USD
        calculate_usd_value(1000 * 10**8, 10 * 10**18)   # 10000 * 10**18
    """
    _require_price(price)
    require_amount(amount, allow_zero=True)
    return price * params.additional_feed_precision * amount // params.precision


def calculate_amount_from_usd(price: int, usd_value: int, params: RiskParameters = DEFAULT_RISK_PARAMETERS) -> int:
    """
    Amount of collateral worth usd_value, the inverse of calculate_usd_value.

    PURE FUNCTION - All inputs explicit.

        amount = usd_value * precision // (price * additional_feed_precision)

    Rounded down, so converting back never yields more than usd_value.

    Raises:
        OraclePriceInvalid: If price is not positive
    """
    _require_price(price)
    require_amount(usd_value, allow_zero=True)
    return usd_value * params.precision // (price * params.additional_feed_precision)


def calculate_health_factor(
    debt_minted: int,
    collateral_value_usd: int,
    params: RiskParameters = DEFAULT_RISK_PARAMETERS,
) -> int:
    """
    Health factor of a position.

    PURE FUNCTION - All inputs explicit.

        adjusted = collateral_value_usd * liquidation_threshold // liquidation_precision
        health   = adjusted * precision // debt_minted

    An account with no debt has the maximum health factor; there is no
    division by zero.

    Example:
        # 10000 USD of collateral against 2000 debt
        calculate_health_factor(2000 * 10**18, 10000 * 10**18)   # 2.5 * 10**18
    """
    require_amount(debt_minted, allow_zero=True)
    require_amount(collateral_value_usd, allow_zero=True)
    if debt_minted == 0:
        return HEALTH_FACTOR_MAX
    adjusted = collateral_value_usd * params.liquidation_threshold // params.liquidation_precision
    return adjusted * params.precision // debt_minted


def calculate_liquidation_payout(seized: int, params: RiskParameters = DEFAULT_RISK_PARAMETERS) -> Tuple[int, int]:
    """
    Liquidator bonus on a seized collateral amount.

    Returns:
        Tuple of (bonus, total) where total = seized + bonus.
    """
    require_amount(seized, allow_zero=True)
    bonus = seized * params.liquidation_bonus // params.liquidation_precision
    return bonus, seized + bonus


# ============================================================================
# RISK ENGINE - Adapter over positions and price feeds
# ============================================================================

class RiskEngine:
    """
    Values positions at current oracle prices.

    Reads only: never mutates the position book or the feeds. Every price goes
    through read_price(), so a broken or stale feed raises before any
    arithmetic is done.
    """

    def __init__(
        self,
        registry: CollateralRegistry,
        book: PositionBook,
        params: RiskParameters = DEFAULT_RISK_PARAMETERS,
        clock: Optional[LedgerView] = None,
    ):
        """
        Args:
            registry: Supported collateral and their price feeds
            book: Positions to value
            params: Risk policy
            clock: Source of current time for the staleness check
        """
        for asset in registry:
            decimals = registry.feed_for(asset).decimals
            if decimals != params.feed_decimals:
                raise ValueError(
                    f"feed for {asset} reports {decimals} decimals, expected {params.feed_decimals}"
                )
        self.registry = registry
        self.book = book
        self.params = params
        self.clock = clock

    def _now(self) -> Optional[datetime]:
        return self.clock.current_time if self.clock is not None else None

    def price_of(self, asset: str) -> int:
        """Latest validated price of an asset."""
        return read_price(self.registry.feed_for(asset), now=self._now(), timeout=self.params.oracle_timeout)

    def value_of(self, asset: str, amount: int) -> int:
        """USD value of an amount of a registered asset."""
        return calculate_usd_value(self.price_of(asset), amount, self.params)

    def amount_from_usd_value(self, asset: str, usd_value: int) -> int:
        """Amount of a registered asset worth usd_value, rounded down."""
        return calculate_amount_from_usd(self.price_of(asset), usd_value, self.params)

    def total_collateral_value_usd(self, account: str) -> int:
        """Value of the account's collateral across every registered asset."""
        return sum(
            self.value_of(asset, self.book.collateral_of(account, asset))
            for asset in self.registry
        )

    def account_information(self, account: str) -> AccountInformation:
        debt = self.book.debt_of(account)
        value = self.total_collateral_value_usd(account)
        return AccountInformation(
            debt_minted=debt,
            collateral_value_usd=value,
            health_factor=calculate_health_factor(debt, value, self.params),
        )

    def health_factor(self, account: str) -> int:
        debt = self.book.debt_of(account)
        if debt == 0:
            return HEALTH_FACTOR_MAX
        return calculate_health_factor(debt, self.total_collateral_value_usd(account), self.params)

    def is_liquidatable(self, account: str) -> bool:
        return self.health_factor(account) < self.params.min_health_factor

    def assert_solvent(self, account: str) -> int:
        """
        Require the account's health factor to be at least the minimum.

        Returns:
            The health factor

        Raises:
            HealthFactorTooLow: Carrying the offending value
        """
        health = self.health_factor(account)
        if health < self.params.min_health_factor:
            raise HealthFactorTooLow(health, account)
        return health

"""
positions.py - Position Ledger

Per-account collateral balances (per asset) and minted debt. This is the
mutable heart of the protocol; only the engine writes to it.

Every account implicitly exists with zero balances. Records are created on
first credit and never destroyed, even when they return to zero.
"""

from __future__ import annotations
from collections import defaultdict
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Mapping, Set, Tuple

from .core import CollateralBalances, InsufficientBalance, require_amount


@dataclass(frozen=True, slots=True)
class AccountPosition:
    """
    Immutable snapshot of one account's position.

    Attributes:
        account: Account identifier
        collateral: Asset -> deposited quantity (assets never deposited are absent)
        debt_minted: Debt token minted against the collateral, 18 decimals
    """
    account: str
    collateral: Mapping[str, int]
    debt_minted: int

    def collateral_of(self, asset: str) -> int:
        return self.collateral.get(asset, 0)


# State captured by PositionBook.snapshot()
PositionSnapshot = Tuple[Dict[str, Dict[str, int]], Dict[str, int]]


class PositionBook:
    """
    Collateral and debt balances of every account.

    Decrements never wrap: taking more than an account holds raises
    InsufficientBalance and leaves the balance untouched.
    """

    def __init__(self):
        self._collateral: Dict[str, Dict[str, int]] = defaultdict(dict)
        self._debt: Dict[str, int] = {}

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def collateral_of(self, account: str, asset: str) -> int:
        return self._collateral.get(account, {}).get(asset, 0)

    def collateral_balances(self, account: str) -> CollateralBalances:
        return dict(self._collateral.get(account, {}))

    def debt_of(self, account: str) -> int:
        return self._debt.get(account, 0)

    def position(self, account: str) -> AccountPosition:
        return AccountPosition(
            account=account,
            collateral=MappingProxyType(self.collateral_balances(account)),
            debt_minted=self.debt_of(account),
        )

    def accounts(self) -> Set[str]:
        """Every account that has ever held collateral or debt."""
        return set(self._collateral) | set(self._debt)

    def total_collateral(self, asset: str) -> int:
        return sum(balances.get(asset, 0) for balances in self._collateral.values())

    def total_debt(self) -> int:
        return sum(self._debt.values())

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def credit_collateral(self, account: str, asset: str, amount: int) -> int:
        require_amount(amount, allow_zero=True)
        balances = self._collateral[account]
        balances[asset] = balances.get(asset, 0) + amount
        return balances[asset]

    def debit_collateral(self, account: str, asset: str, amount: int) -> int:
        require_amount(amount, allow_zero=True)
        current = self.collateral_of(account, asset)
        if amount > current:
            raise InsufficientBalance(
                f"{account} has {current} {asset} deposited, cannot take {amount}"
            )
        balances = self._collateral[account]
        balances[asset] = current - amount
        return balances[asset]

    def credit_debt(self, account: str, amount: int) -> int:
        require_amount(amount, allow_zero=True)
        self._debt[account] = self.debt_of(account) + amount
        return self._debt[account]

    def debit_debt(self, account: str, amount: int) -> int:
        require_amount(amount, allow_zero=True)
        current = self.debt_of(account)
        if amount > current:
            raise InsufficientBalance(
                f"{account} has {current} debt minted, cannot burn {amount}"
            )
        self._debt[account] = current - amount
        return self._debt[account]

    # ------------------------------------------------------------------
    # Snapshot / restore
    # ------------------------------------------------------------------

    def snapshot(self) -> PositionSnapshot:
        return (
            {account: dict(balances) for account, balances in self._collateral.items()},
            dict(self._debt),
        )

    def restore(self, snapshot: PositionSnapshot) -> None:
        collateral, debt = snapshot
        self._collateral = defaultdict(dict, {a: dict(b) for a, b in collateral.items()})
        self._debt = dict(debt)

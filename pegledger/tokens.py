"""
tokens.py - Token wrappers over the balance ledger

Thin adapters that give each ledger unit the balance-ledger interface the
engine expects from an external token contract:

- Token: balance_of, total_supply, transfer, transfer_from (returns bool)
- CollateralToken: Token with an open faucet mint, used to fund accounts
- DebtToken: Token whose mint and burn are gated to a single owner

Every transfer is one ledger transaction; a rejected transaction is reported
as False, never as a partial transfer. Transfers never touch the SYSTEM_WALLET:
only issuance and retirement move tokens out of or back into it.
"""

from __future__ import annotations
from typing import Optional

from .core import (
    Move, OriginType, TransactionOrigin, ExecuteResult,
    SYSTEM_WALLET, ZERO_ADDRESS, UNIT_TYPE_COLLATERAL, UNIT_TYPE_DEBT,
    InsufficientBalance, MintFailed, NotOwner,
    build_transaction, require_amount,
)
from .ledger import Ledger


class Token:
    """
    A ledger unit exposed through the standard balance-ledger interface.

    Allowances are not modelled: transfer_from moves tokens out of any wallet.
    """

    def __init__(self, ledger: Ledger, symbol: str):
        self.ledger = ledger
        self.unit = ledger.get_unit(symbol)

    @property
    def symbol(self) -> str:
        return self.unit.symbol

    @property
    def decimals(self) -> int:
        return self.unit.decimals

    def balance_of(self, account: str) -> int:
        if not self.ledger.is_registered(account):
            return 0
        return self.ledger.get_balance(account, self.symbol)

    def total_supply(self) -> int:
        return self.ledger.total_supply(self.symbol)

    def transfer(self, caller: str, to: str, amount: int) -> bool:
        """Move amount from the caller to another wallet."""
        return self._move(caller, to, amount, OriginType.USER_ACTION, caller, "TRANSFER")

    def transfer_from(self, source: str, dest: str, amount: int, spender: Optional[str] = None) -> bool:
        """Move amount from source to dest on behalf of spender (the engine, usually)."""
        return self._move(source, dest, amount, OriginType.CONTRACT, spender or dest, "TRANSFER_FROM")

    def _move(
        self,
        source: str,
        dest: str,
        amount: int,
        origin_type: OriginType,
        initiator: str,
        event_type: str,
    ) -> bool:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            return False
        if not source or not dest or source == dest:
            return False
        if SYSTEM_WALLET in (source, dest):
            return False
        pending = build_transaction(
            self.ledger,
            [Move(amount, self.symbol, source, dest, f"{self.symbol.lower()}:{event_type.lower()}")],
            origin=TransactionOrigin(origin_type, initiator, event_type),
        )
        return self.ledger.execute(pending) == ExecuteResult.APPLIED

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.symbol})"


class CollateralToken(Token):
    """Collateral asset token. Anyone may mint (test faucet, like an ERC20 mock)."""

    def __init__(self, ledger: Ledger, symbol: str):
        super().__init__(ledger, symbol)
        if self.unit.unit_type != UNIT_TYPE_COLLATERAL:
            raise ValueError(f"{symbol} is not a collateral unit")

    def mint(self, to: str, amount: int) -> bool:
        require_amount(amount)
        return self.ledger.issue(to, self.symbol, amount, f"{self.symbol.lower()}:faucet") == ExecuteResult.APPLIED


class DebtToken(Token):
    """
    The pegged debt token.

    mint and burn are privileged: the caller must be the owner, compared by
    identity of the account id. The owner is set once at deployment, normally
    by handing ownership to the engine.
    """

    def __init__(self, ledger: Ledger, symbol: str, owner: str):
        super().__init__(ledger, symbol)
        if self.unit.unit_type != UNIT_TYPE_DEBT:
            raise ValueError(f"{symbol} is not a debt unit")
        if not owner or owner == ZERO_ADDRESS:
            raise ValueError("DebtToken owner cannot be empty")
        self._owner = owner

    @property
    def owner(self) -> str:
        return self._owner

    def _only_owner(self, caller: str) -> None:
        if caller != self._owner:
            raise NotOwner(f"{caller} is not the owner of {self.symbol}")

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        self._only_owner(caller)
        if not new_owner or new_owner == ZERO_ADDRESS:
            raise ValueError("new owner cannot be empty")
        self._owner = new_owner

    def mint(self, caller: str, to: str, amount: int) -> bool:
        """
        Issue amount of debt token to an account.

        Raises:
            NotOwner: If caller is not the owner
            MintFailed: If to is the null account or the system wallet
            InvalidAmount: If amount is not positive

        Returns:
            True when the ledger applied the issuance, False if it rejected it.
        """
        self._only_owner(caller)
        if not to or to == ZERO_ADDRESS:
            raise MintFailed("cannot mint to the zero address")
        if to == SYSTEM_WALLET:
            raise MintFailed("cannot mint to the system wallet")
        require_amount(amount)
        return self.ledger.issue(to, self.symbol, amount, f"{self.symbol.lower()}:mint") == ExecuteResult.APPLIED

    def burn(self, caller: str, amount: int) -> None:
        """
        Destroy amount of debt token held by the caller (the owner).

        Raises:
            NotOwner: If caller is not the owner
            InvalidAmount: If amount is not positive
            InsufficientBalance: If the caller holds less than amount
        """
        self._only_owner(caller)
        require_amount(amount)
        balance = self.balance_of(caller)
        if balance < amount:
            raise InsufficientBalance(f"burn amount {amount} exceeds balance {balance}")
        result = self.ledger.retire(caller, self.symbol, amount, f"{self.symbol.lower()}:burn")
        if result != ExecuteResult.APPLIED:
            raise InsufficientBalance(f"ledger rejected burn of {amount} {self.symbol}")

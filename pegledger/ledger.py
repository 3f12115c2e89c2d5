"""
ledger.py - Stateful Token Balance Ledger

The Ledger class holds every token balance of the system: collateral tokens
and the pegged debt token, per wallet. It plays the part of the chain the
engine and the tokens live on, and it is the only module that mutates
token balances.

Key responsibilities:
    - Implements LedgerView protocol for safe read-only access
    - Executes transactions atomically (all moves succeed or all fail)
    - Issuance and burning move tokens from/to the reserved SYSTEM_WALLET
    - Tracks logical time (read by price feeds for staleness checks)
    - Snapshots and restores state so the engine can revert whole operations
"""

from __future__ import annotations
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Set, Optional, Tuple, Any

from .core import (
    # Types
    Move, Transaction, Unit,
    PendingTransaction, TransactionOrigin, OriginType,
    ExecuteResult,
    BalanceMap,
    # Constants
    EPOCH, SYSTEM_WALLET,
    # Exceptions
    UnitNotRegistered, WalletNotRegistered,
)


@dataclass(frozen=True, slots=True)
class LedgerSnapshot:
    """
    Point-in-time copy of a ledger's mutable state.

    Produced by Ledger.snapshot() and consumed by Ledger.restore().
    """
    balances: Dict[str, Dict[str, int]]
    registered_wallets: frozenset
    units: Dict[str, Unit]
    log_length: int


class Ledger:
    """
    Token balance ledger with full validation and audit trail.

    Implements the LedgerView protocol, allowing the ledger to be passed to
    price feeds and the risk engine, which only read from it.

    Design Principles:
        - Always validates: Every transaction is validated against unit and
          wallet registration and non-negative balances. No shortcuts.
        - Always logs: Every applied transaction is recorded in the audit trail.
        - Conserves: For every unit, the sum of all balances including the
          SYSTEM_WALLET is zero; circulating supply is the negated system balance.

    Thread Safety:
        Not thread-safe. Each thread should maintain its own Ledger instance.

    Example:
        ledger = Ledger("chain")
        ledger.register_unit(collateral_unit("WETH", "Wrapped Ether"))
        ledger.register_wallet("alice")
        ledger.issue("alice", "WETH", 10 * 10**18)
    """

    def __init__(
        self,
        name: str,
        initial_time: Optional[datetime] = None,
        verbose: bool = True,
    ):
        """
        Create a ledger.

        Args:
            name: Ledger identifier
            initial_time: Starting time for the ledger (default: 1970-01-01)
            verbose: Enable debug output (default: True)
        """
        self.name = name
        self.balances: Dict[str, Dict[str, int]] = {}
        self.units: Dict[str, Unit] = {}
        self.registered_wallets: Set[str] = set()
        self.transaction_log: List[Transaction] = []
        self._current_time: datetime = initial_time or EPOCH
        self.verbose = verbose

        # Auto-register the system wallet (used for issuance and burning)
        self.registered_wallets.add(SYSTEM_WALLET)
        self.balances[SYSTEM_WALLET] = defaultdict(int)

    # ========================================================================
    # LedgerView PROTOCOL IMPLEMENTATION (read-only methods)
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        """Current logical time of the ledger."""
        return self._current_time

    def get_balance(self, wallet_id: str, unit_symbol: str) -> int:
        """
        Get the balance of a specific unit in a wallet.

        Returns:
            Current balance (0 if wallet has no balance for this unit)

        Raises:
            WalletNotRegistered: If wallet is not registered
            UnitNotRegistered: If unit is not registered
        """
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return self.balances[wallet_id].get(unit_symbol, 0)

    def list_wallets(self) -> Set[str]:
        """List all registered wallet IDs."""
        return self.registered_wallets.copy()

    def get_unit(self, symbol: str) -> Unit:
        """Return the Unit object for a given symbol."""
        if symbol not in self.units:
            raise UnitNotRegistered(f"Unit {symbol} not registered")
        return self.units[symbol]

    def get_wallet_balances(self, wallet_id: str) -> BalanceMap:
        """Get all balances for a wallet."""
        if wallet_id not in self.registered_wallets:
            raise WalletNotRegistered(f"Wallet {wallet_id} not registered")
        return dict(self.balances[wallet_id])

    def total_supply(self, unit_symbol: str) -> int:
        """
        Calculate the circulating supply of a unit.

        Sums every wallet except the SYSTEM_WALLET. Wallets are sorted before
        summation to ensure deterministic accumulation order.

        Raises:
            UnitNotRegistered: If unit is not registered
        """
        if unit_symbol not in self.units:
            raise UnitNotRegistered(f"Unit {unit_symbol} not registered")
        return sum(
            self.balances[w].get(unit_symbol, 0)
            for w in sorted(self.registered_wallets)
            if w != SYSTEM_WALLET
        )

    def verify_double_entry(self) -> Dict[str, Any]:
        """
        Verify that conservation laws hold for all units.

        Every token in circulation was moved out of the SYSTEM_WALLET, so for
        every unit the sum of all balances, system wallet included, is zero,
        and no other wallet holds a negative balance.

        Returns:
            Dict with keys:
            - 'valid': bool - True if all conservation laws hold
            - 'supplies': Dict[str, int] - Circulating supply for each unit
            - 'discrepancies': List[Dict] - Details of any violations

        Example:
            result = ledger.verify_double_entry()
            assert result['valid'], f"Conservation violated: {result['discrepancies']}"
        """
        supplies = {}
        discrepancies = []

        for unit_symbol in sorted(self.units):
            circulating = self.total_supply(unit_symbol)
            supplies[unit_symbol] = circulating
            system_balance = self.balances[SYSTEM_WALLET].get(unit_symbol, 0)
            if circulating + system_balance != 0:
                discrepancies.append({
                    'unit': unit_symbol,
                    'circulating': circulating,
                    'system': system_balance,
                    'difference': circulating + system_balance,
                })
            for wallet in sorted(self.registered_wallets - {SYSTEM_WALLET}):
                balance = self.balances[wallet].get(unit_symbol, 0)
                if balance < 0:
                    discrepancies.append({
                        'unit': unit_symbol,
                        'wallet': wallet,
                        'balance': balance,
                        'error': 'negative balance',
                    })

        return {
            'valid': len(discrepancies) == 0,
            'supplies': supplies,
            'discrepancies': discrepancies,
        }

    def is_registered(self, wallet_id: str) -> bool:
        """Check if a wallet is registered."""
        return wallet_id in self.registered_wallets

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    def advance_time(self, new_time: datetime) -> None:
        """
        Advance the ledger's logical clock to a new time.

        Time can only move forward, never backward.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time

    # ========================================================================
    # REGISTRATION (Mutating)
    # ========================================================================

    def register_wallet(self, wallet_id: str) -> str:
        """
        Register a new wallet in the ledger.

        Returns:
            The wallet_id that was registered

        Raises:
            ValueError: If wallet is already registered or the id is empty
        """
        if not wallet_id or not wallet_id.strip():
            raise ValueError("Wallet id cannot be empty")
        if wallet_id in self.registered_wallets:
            raise ValueError(f"Wallet {wallet_id} already registered")
        self.registered_wallets.add(wallet_id)
        self.balances[wallet_id] = defaultdict(int)
        return wallet_id

    def register_unit(self, unit: Unit) -> Unit:
        """
        Register a new unit (token) in the ledger.

        If verbose mode is enabled, prints registration confirmation.

        Raises:
            ValueError: If unit symbol is already registered
        """
        if unit.symbol in self.units:
            raise ValueError(f"Unit {unit.symbol} already registered")
        self.units[unit.symbol] = unit
        if self.verbose:
            print(f"📝 Registered: {unit.symbol} ({unit.name}) [{unit.unit_type}, {unit.decimals} decimals]")
        return unit

    # ========================================================================
    # TRANSACTION EXECUTION (Mutating)
    # ========================================================================

    def execute(self, pending: PendingTransaction) -> ExecuteResult:
        """
        Execute a PendingTransaction atomically.

        All moves succeed together or all fail together.

        All transactions are fully validated against:
        - Unit and wallet registration
        - Non-negative balances (SYSTEM_WALLET exempt)
        - Timestamp requirements

        Returns:
            ExecuteResult.APPLIED if successful
            ExecuteResult.REJECTED if validation failed
        """
        if pending.is_empty():
            return ExecuteResult.APPLIED

        valid, reason = self._validate_pending(pending)
        if not valid:
            if self.verbose:
                print(f"✗ REJECTED: {reason}")
            return ExecuteResult.REJECTED

        tx = Transaction(
            moves=pending.moves,
            origin=pending.origin,
            timestamp=pending.timestamp,
            ledger_name=self.name,
            execution_time=self._current_time,
        )

        self._execute_moves(tx.moves)

        # Log transaction (always - audit trail is mandatory)
        self.transaction_log.append(tx)

        if self.verbose:
            print(f"✓ APPLIED: {tx!r}")
        return ExecuteResult.APPLIED

    def issue(self, wallet_id: str, unit_symbol: str, quantity: int, contract_id: str = "issue") -> ExecuteResult:
        """Move newly issued tokens from the SYSTEM_WALLET to a wallet."""
        return self.execute(PendingTransaction(
            moves=(Move(quantity, unit_symbol, SYSTEM_WALLET, wallet_id, contract_id),),
            origin=TransactionOrigin(OriginType.SYSTEM, wallet_id, "ISSUE"),
            timestamp=self._current_time,
        ))

    def retire(self, wallet_id: str, unit_symbol: str, quantity: int, contract_id: str = "retire") -> ExecuteResult:
        """Move tokens from a wallet back to the SYSTEM_WALLET, taking them out of circulation."""
        return self.execute(PendingTransaction(
            moves=(Move(quantity, unit_symbol, wallet_id, SYSTEM_WALLET, contract_id),),
            origin=TransactionOrigin(OriginType.SYSTEM, wallet_id, "RETIRE"),
            timestamp=self._current_time,
        ))

    def _validate_pending(self, pending: PendingTransaction) -> Tuple[bool, str]:
        """
        Validate pending transaction against all constraints.

        Checks performed:
        1. Timestamp validation (transaction must not be from the future)
        2. Unit and wallet registration
        3. Non-negative resulting balances

        Returns:
            Tuple of (success: bool, reason: str)
        """
        if pending.timestamp > self._current_time:
            return False, "future timestamp"

        for move in pending.moves:
            if move.unit_symbol not in self.units:
                return False, f"unit not registered: {move.unit_symbol}"
            if not self.is_registered(move.source):
                return False, f"wallet not registered: {move.source}"
            if not self.is_registered(move.dest):
                return False, f"wallet not registered: {move.dest}"

        net: Dict[Tuple[str, str], int] = {}
        for move in pending.moves:
            key_src = (move.source, move.unit_symbol)
            key_dst = (move.dest, move.unit_symbol)
            net[key_src] = net.get(key_src, 0) - move.quantity
            net[key_dst] = net.get(key_dst, 0) + move.quantity

        # SYSTEM_WALLET is exempt - it can hold any balance
        for (wallet, unit_sym), delta in net.items():
            if wallet == SYSTEM_WALLET:
                continue
            proposed = self.balances[wallet][unit_sym] + delta
            if proposed < 0:
                return False, f"{wallet} {unit_sym}: {proposed} < 0"

        return True, ""

    def _execute_moves(self, moves) -> None:
        """Apply all moves to wallet balances."""
        for move in moves:
            self.balances[move.source][move.unit_symbol] -= move.quantity
            self.balances[move.dest][move.unit_symbol] += move.quantity

    # ========================================================================
    # SNAPSHOT / RESTORE
    # ========================================================================

    def snapshot(self) -> LedgerSnapshot:
        """
        Capture the ledger's mutable state.

        Time is not captured: restoring never moves the clock backwards.
        """
        return LedgerSnapshot(
            balances={w: dict(b) for w, b in self.balances.items()},
            registered_wallets=frozenset(self.registered_wallets),
            units=dict(self.units),
            log_length=len(self.transaction_log),
        )

    def restore(self, snapshot: LedgerSnapshot) -> None:
        """
        Restore state captured by snapshot().

        Transactions applied since the snapshot are dropped from the log.
        """
        self.balances = {
            w: defaultdict(int, b) for w, b in snapshot.balances.items()
        }
        self.registered_wallets = set(snapshot.registered_wallets)
        self.units = dict(snapshot.units)
        del self.transaction_log[snapshot.log_length:]
        
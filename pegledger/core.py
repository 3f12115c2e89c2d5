"""
Core types and pure functions for the pegged-token ledger system.

This module provides the foundational data structures and protocols:
1. Protocols: LedgerView for read-only access to token balances and time
2. Immutable data structures: Move, PendingTransaction, Transaction, Unit
3. Configuration: RiskParameters, the immutable protocol policy
4. Exceptions: LedgerError and the protocol error taxonomy
5. Unit factories: Functions to create collateral and debt token units

All amounts are non-negative integers in the smallest unit of their token.
Fixed-point values (USD valuations, health factors) carry 18 decimals.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import (
    Dict, List, Set, Optional, Protocol,
    Tuple, runtime_checkable,
)


# ============================================================================
# CONSTANTS
# ============================================================================

# Reserved wallet for token issuance and burning.
# The system wallet is exempt from balance validation: minting moves tokens
# out of it (driving it negative), burning moves them back in.
SYSTEM_WALLET = "system"

# Null account identifier. Minting to it is refused.
ZERO_ADDRESS = "0x0"

# Default wallet of the engine; holds every custodied collateral token.
ENGINE_WALLET = "engine"

# Logical start of time for ledgers and price rounds with no explicit time.
EPOCH = datetime(1970, 1, 1)

# Unit type constants (strings, not enum).
UNIT_TYPE_COLLATERAL = "COLLATERAL"
UNIT_TYPE_DEBT = "DEBT"

# Fixed-point precision used for every USD value and health factor.
PRECISION_DECIMALS = 18
PRECISION = 10 ** PRECISION_DECIMALS

# Oracle prices are reported with 8 decimals.
FEED_DECIMALS = 8
FEED_PRECISION = 10 ** FEED_DECIMALS
ADDITIONAL_FEED_PRECISION = PRECISION // FEED_PRECISION

# 50/100 => collateral must be worth at least 200% of the debt.
LIQUIDATION_THRESHOLD = 50
LIQUIDATION_PRECISION = 100
LIQUIDATION_BONUS = 10
MIN_HEALTH_FACTOR = PRECISION

# Health factor of an account with no debt (uint256 max).
HEALTH_FACTOR_MAX = 2 ** 256 - 1


# ============================================================================
# TYPE ALIASES
# ============================================================================

# Mapping from unit symbol to quantity held in a single wallet.
BalanceMap = Dict[str, int]

# Mapping from collateral asset symbol to quantity deposited by one account.
CollateralBalances = Dict[str, int]


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class LedgerView(Protocol):
    """
    Read-only interface to token ledger state.

    Price feeds and the risk engine receive a LedgerView to read the logical
    clock; token wrappers use it to read balances. Functions accepting a
    LedgerView parameter declare their read-only intent.
    """

    @property
    def current_time(self) -> datetime:
        """Return the current logical time of the ledger."""
        ...

    def get_balance(self, wallet_id: str, unit_symbol: str) -> int:
        """Return the balance of a unit in a wallet (0 if none)."""
        ...

    def list_wallets(self) -> Set[str]:
        """Return the set of all registered wallet IDs."""
        ...

    def get_unit(self, symbol: str) -> 'Unit':
        """Return the Unit object for a given symbol."""
        ...


# ============================================================================
# ENUMS
# ============================================================================

class ExecuteResult(Enum):
    """
    Outcome of a transaction execution attempt.

    APPLIED: Transaction was successfully validated and applied to the ledger.
    REJECTED: Transaction failed validation (unregistered unit or wallet,
              or a balance would go negative).
    """
    APPLIED = "applied"
    REJECTED = "rejected"


class OriginType(Enum):
    """
    Classification of where a transaction originated.

    Used for the audit trail of the token ledger.
    """
    USER_ACTION = "user_action"           # Transfer initiated by an account
    CONTRACT = "contract"                 # Transfer initiated by the engine
    SYSTEM = "system"                     # Issuance and burning


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all ledger-related errors."""
    pass


class UnitNotRegistered(LedgerError):
    """Raised when attempting to operate on a unit that has not been registered with the ledger."""
    pass


class WalletNotRegistered(LedgerError):
    """Raised when attempting to operate on a wallet that has not been registered with the ledger."""
    pass


class NotOwner(LedgerError):
    """Raised when an owner-gated token operation is called by anyone but the owner."""
    pass


class EngineError(LedgerError):
    """Base exception for protocol operation failures. Every one aborts the whole operation."""
    pass


class InvalidAmount(EngineError):
    """Raised when a zero or negative amount is supplied where a positive one is required."""
    pass


class UnsupportedAsset(EngineError):
    """Raised when an asset is not present in the collateral registry."""
    pass


class ConfigurationLengthMismatch(EngineError):
    """Raised at construction when the asset and price feed lists differ in length."""
    pass


class TransferFailed(EngineError):
    """Raised when an asset or debt token transfer reports failure."""
    pass


class MintFailed(EngineError):
    """Raised when the debt token declines to mint."""
    pass


class InsufficientBalance(EngineError):
    """Raised when a decrement would underflow a collateral or debt balance."""
    pass


class HealthFactorTooLow(EngineError):
    """Raised when an operation would leave an account under-collateralized."""

    def __init__(self, health_factor: int, account: Optional[str] = None):
        self.health_factor = health_factor
        self.account = account
        who = f" for {account}" if account else ""
        super().__init__(f"health factor {health_factor}{who} is below minimum")


class NotEligibleForLiquidation(EngineError):
    """Raised when liquidating an account whose health factor is at or above the minimum."""

    def __init__(self, health_factor: int, account: Optional[str] = None):
        self.health_factor = health_factor
        self.account = account
        who = f"{account} " if account else ""
        super().__init__(f"{who}is not liquidatable: health factor {health_factor}")


class LiquidationDidNotImprovePosition(EngineError):
    """Raised when a liquidation leaves the target's health factor unchanged or lower."""

    def __init__(self, before: int, after: int):
        self.before = before
        self.after = after
        super().__init__(f"health factor went from {before} to {after}")


class OraclePriceInvalid(EngineError):
    """Raised when a price feed reports a non-positive price or has no price at all."""
    pass


class OraclePriceStale(EngineError):
    """Raised when the latest price round is older than the oracle timeout."""
    pass


class ReentrancyError(EngineError):
    """Raised when a mutating operation is entered while another is in progress."""
    pass


class ReservedAccount(EngineError):
    """Raised when the system wallet, the engine or the null account is named as a protocol account."""
    pass


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass(frozen=True, slots=True)
class RiskParameters:
    """
    Immutable protocol policy - fixed at deployment, never changes.

    Attributes:
        liquidation_threshold: Share of collateral value counted as backing,
            over liquidation_precision (50/100 => 200% overcollateralized).
        liquidation_precision: Denominator for threshold and bonus.
        liquidation_bonus: Liquidator incentive, over liquidation_precision.
        min_health_factor: Health factors below this are liquidatable.
        precision: Fixed-point scale of USD values and health factors.
        feed_decimals: Decimals of oracle prices (8 by convention).
        oracle_timeout: Maximum age of a price round; None disables the check.
    """
    liquidation_threshold: int = LIQUIDATION_THRESHOLD
    liquidation_precision: int = LIQUIDATION_PRECISION
    liquidation_bonus: int = LIQUIDATION_BONUS
    min_health_factor: int = MIN_HEALTH_FACTOR
    precision: int = PRECISION
    feed_decimals: int = FEED_DECIMALS
    oracle_timeout: Optional[timedelta] = None

    def __post_init__(self):
        if self.liquidation_precision <= 0:
            raise ValueError(f"liquidation_precision must be positive, got {self.liquidation_precision}")
        if not 0 < self.liquidation_threshold <= self.liquidation_precision:
            raise ValueError(
                f"liquidation_threshold must be in (0, {self.liquidation_precision}], "
                f"got {self.liquidation_threshold}"
            )
        if self.liquidation_bonus < 0:
            raise ValueError(f"liquidation_bonus cannot be negative, got {self.liquidation_bonus}")
        if self.min_health_factor <= 0:
            raise ValueError(f"min_health_factor must be positive, got {self.min_health_factor}")
        if self.precision <= 0:
            raise ValueError(f"precision must be positive, got {self.precision}")
        if self.feed_decimals < 0 or 10 ** self.feed_decimals > self.precision:
            raise ValueError(f"feed_decimals must be in [0, precision decimals], got {self.feed_decimals}")
        if self.oracle_timeout is not None and self.oracle_timeout <= timedelta(0):
            raise ValueError(f"oracle_timeout must be positive, got {self.oracle_timeout}")

    @property
    def feed_precision(self) -> int:
        return 10 ** self.feed_decimals

    @property
    def additional_feed_precision(self) -> int:
        """Scale that lifts a feed price to the 18-decimal precision."""
        return self.precision // self.feed_precision


DEFAULT_RISK_PARAMETERS = RiskParameters()


# ============================================================================
# TRANSACTION ORIGIN
# ============================================================================

@dataclass(frozen=True, slots=True)
class TransactionOrigin:
    """
    Immutable record of a transaction's origin for audit purposes.

    Attributes:
        origin_type: Classification of the origin source
        source_id: Identifier of the account or contract that initiated it
        event_type: Specific action (e.g., "TRANSFER", "MINT", "BURN")
    """
    origin_type: OriginType
    source_id: str
    event_type: Optional[str] = None

    def __repr__(self) -> str:
        parts = [f"{self.origin_type.value}:{self.source_id}"]
        if self.event_type:
            parts.append(f"event={self.event_type}")
        return f"Origin({', '.join(parts)})"


# ============================================================================
# CORE DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class Move:
    """
    A single transfer of tokens between two wallets.

    Attributes:
        quantity: The amount to transfer, a positive integer in smallest units.
        unit_symbol: The symbol of the token being transferred (e.g., "WETH", "DSC").
        source: The wallet ID from which tokens are debited.
        dest: The wallet ID to which tokens are credited.
        contract_id: Identifier of the operation generating this move.

    This class is immutable (frozen=True) and memory-optimized (slots=True).
    All fields are validated in __post_init__.
    """
    quantity: int
    unit_symbol: str
    source: str
    dest: str
    contract_id: str

    def __post_init__(self):
        if not self.source or not self.source.strip():
            raise ValueError("Move source cannot be empty")
        if not self.dest or not self.dest.strip():
            raise ValueError("Move dest cannot be empty")
        if not self.unit_symbol or not self.unit_symbol.strip():
            raise ValueError("Move unit_symbol cannot be empty")
        if not self.contract_id or not self.contract_id.strip():
            raise ValueError("Move contract_id cannot be empty")
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise ValueError(f"Move quantity must be int, got {type(self.quantity)}")
        if self.quantity <= 0:
            raise ValueError(f"Move quantity must be positive, got {self.quantity}")
        if self.source == self.dest:
            raise ValueError("Source and dest must be different")

    def __repr__(self) -> str:
        return f"Move({self.quantity} {self.unit_symbol}: {self.source}→{self.dest})"


@dataclass(frozen=True, slots=True)
class PendingTransaction:
    """
    A transaction specification before execution - represents INTENT.

    Attributes:
        moves: Tuple of token transfers between wallets
        origin: Who/what created this transaction and why
        timestamp: When this pending transaction was created
    """
    moves: Tuple[Move, ...]
    origin: TransactionOrigin
    timestamp: datetime

    def is_empty(self) -> bool:
        """Return True if this pending transaction has no moves."""
        return not self.moves

    def __repr__(self) -> str:
        return f"PendingTransaction({len(self.moves)} moves, {self.origin})"


def build_transaction(
    view: LedgerView,
    moves: List[Move],
    origin: Optional[TransactionOrigin] = None,
) -> PendingTransaction:
    """
    Build a PendingTransaction from moves.

    Args:
        view: Read-only ledger view (provides current_time)
        moves: List of moves to include in the transaction
        origin: Transaction origin (defaults to CONTRACT origin)

    Returns:
        A PendingTransaction ready for execution

    Example:
        tx = build_transaction(ledger, [Move(10**18, "WETH", "alice", "engine", "deposit")])
        ledger.execute(tx)
    """
    if origin is None:
        origin = TransactionOrigin(
            origin_type=OriginType.CONTRACT,
            source_id="contract",
        )
    return PendingTransaction(
        moves=tuple(moves),
        origin=origin,
        timestamp=view.current_time,
    )


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    An executed, immutable record of token movements - represents FACT.

    Attributes:
        moves: Tuple of token transfers between wallets
        origin: Who/what created this transaction and why
        timestamp: When the PendingTransaction was created
        ledger_name: Name of the ledger that executed this
        execution_time: When this was executed and logged
    """
    moves: Tuple[Move, ...]
    origin: TransactionOrigin
    timestamp: datetime
    ledger_name: str
    execution_time: datetime

    def __post_init__(self):
        if not self.moves:
            raise ValueError("Transaction must have moves")

    def __repr__(self) -> str:
        moves = ", ".join(repr(m) for m in self.moves)
        return f"Transaction({self.ledger_name}, {self.origin}, [{moves}])"


@dataclass(frozen=True, slots=True)
class Unit:
    """
    Definition of a token in the ledger.

    Attributes:
        symbol: Short identifier for the token (e.g., "WETH", "DSC").
        name: Human-readable name for the token.
        unit_type: Category of the unit (COLLATERAL or DEBT).
        decimals: Number of decimals of the smallest unit (18 => 1 token = 10**18).
    """
    symbol: str
    name: str
    unit_type: str
    decimals: int = 18

    def __post_init__(self):
        if not self.symbol or not self.symbol.strip():
            raise ValueError("Unit symbol cannot be empty")
        if self.decimals < 0:
            raise ValueError(f"Unit decimals cannot be negative, got {self.decimals}")

    def whole(self, tokens: int) -> int:
        """Convert a whole-token count to smallest units."""
        return tokens * 10 ** self.decimals


# ============================================================================
# UNIT FACTORIES
# ============================================================================

def collateral_unit(symbol: str, name: str, decimals: int = 18) -> Unit:
    """
    Create a collateral token unit.

    Args:
        symbol: Token symbol (e.g., "WETH", "WBTC").
        name: Full name of the token.
        decimals: Decimals of the token's smallest unit (default: 18).
    """
    return Unit(symbol=symbol, name=name, unit_type=UNIT_TYPE_COLLATERAL, decimals=decimals)


def debt_unit(symbol: str = "DSC", name: str = "Decentralized Stable Coin") -> Unit:
    """Create the pegged debt token unit (always 18 decimals)."""
    return Unit(symbol=symbol, name=name, unit_type=UNIT_TYPE_DEBT, decimals=PRECISION_DECIMALS)


def require_amount(amount: int, allow_zero: bool = False) -> int:
    """
    Validate a token amount.

    Raises:
        InvalidAmount: If amount is not an int, is negative, or is zero
                       when allow_zero is False.
    """
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmount(f"amount must be an integer, got {type(amount).__name__}")
    if amount < 0 or (amount == 0 and not allow_zero):
        raise InvalidAmount(f"amount must be {'non-negative' if allow_zero else 'positive'}, got {amount}")
    return amount

"""
pegledger - Over-collateralized Stablecoin Ledger

Accounting and risk core of a USD-pegged debt token: accounts deposit
collateral, mint debt against it, and under-collateralized accounts can be
liquidated for a bonus.

Usage:
    from pegledger import (
        Ledger, CollateralToken, DebtToken, StablecoinEngine, StaticPriceFeed,
        collateral_unit, debt_unit,
    )

    ledger = Ledger("chain")
    ledger.register_unit(collateral_unit("WETH", "Wrapped Ether"))
    ledger.register_unit(debt_unit())
    ledger.register_wallet("alice")

    weth = CollateralToken(ledger, "WETH")
    dsc = DebtToken(ledger, "DSC", owner="deployer")
    engine = StablecoinEngine(ledger, [weth], [StaticPriceFeed(2000 * 10**8)], dsc)
    dsc.transfer_ownership("deployer", engine.address)

    weth.mint("alice", 10 * 10**18)
    engine.deposit_collateral_and_mint("alice", "WETH", 10 * 10**18, 5000 * 10**18)
    engine.health_factor("alice")   # 2 * 10**18
"""

# Core types
from .core import (
    LedgerView,
    Move,
    Transaction,
    PendingTransaction,
    TransactionOrigin,
    OriginType,
    build_transaction,
    Unit,
    ExecuteResult,
    RiskParameters,
    DEFAULT_RISK_PARAMETERS,
    collateral_unit,
    debt_unit,
    require_amount,
    # Exceptions
    LedgerError,
    UnitNotRegistered,
    WalletNotRegistered,
    NotOwner,
    EngineError,
    InvalidAmount,
    UnsupportedAsset,
    ConfigurationLengthMismatch,
    TransferFailed,
    MintFailed,
    InsufficientBalance,
    HealthFactorTooLow,
    NotEligibleForLiquidation,
    LiquidationDidNotImprovePosition,
    OraclePriceInvalid,
    OraclePriceStale,
    ReentrancyError,
    ReservedAccount,
    # Constants
    SYSTEM_WALLET,
    ZERO_ADDRESS,
    ENGINE_WALLET,
    UNIT_TYPE_COLLATERAL,
    UNIT_TYPE_DEBT,
    PRECISION,
    FEED_DECIMALS,
    FEED_PRECISION,
    ADDITIONAL_FEED_PRECISION,
    LIQUIDATION_THRESHOLD,
    LIQUIDATION_PRECISION,
    LIQUIDATION_BONUS,
    MIN_HEALTH_FACTOR,
    HEALTH_FACTOR_MAX,
)

# Token ledger
from .ledger import Ledger, LedgerSnapshot

# Tokens
from .tokens import Token, CollateralToken, DebtToken

# Price feeds
from .oracle import PriceRound, PriceFeed, StaticPriceFeed, TimeSeriesPriceFeed, read_price

# Registry and positions
from .registry import CollateralAsset, CollateralRegistry
from .positions import AccountPosition, PositionBook

# Risk
from .risk import (
    AccountInformation,
    RiskEngine,
    calculate_usd_value,
    calculate_amount_from_usd,
    calculate_health_factor,
    calculate_liquidation_payout,
)

# Events
from .events import (
    CollateralDeposited,
    CollateralRedeemed,
    DebtMinted,
    DebtBurned,
    Liquidated,
    EventBus,
    DeliveryFailure,
)

# Engine
from .engine import StablecoinEngine

__all__ = [
    # Core
    'LedgerView', 'Move', 'Transaction', 'PendingTransaction', 'TransactionOrigin', 'OriginType',
    'build_transaction', 'Unit', 'ExecuteResult',
    'RiskParameters', 'DEFAULT_RISK_PARAMETERS',
    'collateral_unit', 'debt_unit', 'require_amount',
    # Exceptions
    'LedgerError', 'UnitNotRegistered', 'WalletNotRegistered', 'NotOwner',
    'EngineError', 'InvalidAmount', 'UnsupportedAsset', 'ConfigurationLengthMismatch',
    'TransferFailed', 'MintFailed', 'InsufficientBalance',
    'HealthFactorTooLow', 'NotEligibleForLiquidation', 'LiquidationDidNotImprovePosition',
    'OraclePriceInvalid', 'OraclePriceStale', 'ReentrancyError', 'ReservedAccount',
    # Constants
    'SYSTEM_WALLET', 'ZERO_ADDRESS', 'ENGINE_WALLET',
    'UNIT_TYPE_COLLATERAL', 'UNIT_TYPE_DEBT',
    'PRECISION', 'FEED_DECIMALS', 'FEED_PRECISION', 'ADDITIONAL_FEED_PRECISION',
    'LIQUIDATION_THRESHOLD', 'LIQUIDATION_PRECISION', 'LIQUIDATION_BONUS',
    'MIN_HEALTH_FACTOR', 'HEALTH_FACTOR_MAX',
    # Ledger
    'Ledger', 'LedgerSnapshot',
    # Tokens
    'Token', 'CollateralToken', 'DebtToken',
    # Price feeds
    'PriceRound', 'PriceFeed', 'StaticPriceFeed', 'TimeSeriesPriceFeed', 'read_price',
    # Registry and positions
    'CollateralAsset', 'CollateralRegistry', 'AccountPosition', 'PositionBook',
    # Risk
    'AccountInformation', 'RiskEngine',
    'calculate_usd_value', 'calculate_amount_from_usd',
    'calculate_health_factor', 'calculate_liquidation_payout',
    # Events
    'CollateralDeposited', 'CollateralRedeemed', 'DebtMinted', 'DebtBurned', 'Liquidated',
    'EventBus', 'DeliveryFailure',
    # Engine
    'StablecoinEngine',
]

__version__ = '1.0.0'

"""
engine.py - Stablecoin Engine (protocol operations)

The StablecoinEngine is the only writer of positions. Every public mutating
entry point:

1. Takes the re-entrancy lock (ReentrancyError if already held)
2. Snapshots the position book and the token ledger
3. Runs its steps: position updates, token transfers, solvency checks
4. On any exception restores both snapshots and re-raises; otherwise commits
   and publishes the events the operation produced

Subscribers run after the commit. A failing subscriber is recorded in
delivery_failures and never turns a committed operation into an error.

So an operation either applies completely or leaves no trace: no position
change, no token movement, no event.

Composite operations (deposit_collateral_and_mint, burn_and_redeem) call the
private step methods inside one guarded region; they never nest public calls.
"""

from __future__ import annotations
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence, Set, Tuple

from .core import (
    DEFAULT_RISK_PARAMETERS, ENGINE_WALLET, SYSTEM_WALLET, ZERO_ADDRESS,
    RiskParameters,
    LedgerError, EngineError, NotOwner,
    MintFailed, TransferFailed, ReentrancyError, ReservedAccount,
    NotEligibleForLiquidation, LiquidationDidNotImprovePosition,
    require_amount,
)
from .events import (
    CollateralDeposited, CollateralRedeemed, DebtMinted, DebtBurned, Liquidated,
    DeliveryFailure, EngineEvent, EventBus, EventHandler,
)
from .ledger import Ledger
from .oracle import PriceFeed
from .positions import AccountPosition, PositionBook
from .registry import CollateralRegistry
from .risk import AccountInformation, RiskEngine, calculate_health_factor, calculate_liquidation_payout
from .tokens import DebtToken, Token


class StablecoinEngine:
    """
    Over-collateralized minting engine for a USD-pegged debt token.

    Accounts deposit collateral into engine custody and mint debt token
    against it, as long as their health factor stays at or above the minimum.
    Anyone may liquidate an account whose health factor falls below it by
    repaying part of its debt in exchange for collateral plus a bonus.

    Example:
        engine = StablecoinEngine(ledger, [weth], [weth_feed], dsc)
        dsc.transfer_ownership("deployer", engine.address)
        engine.deposit_collateral_and_mint("alice", "WETH", 10 * 10**18, 2000 * 10**18)
    """

    def __init__(
        self,
        ledger: Ledger,
        collateral_tokens: Sequence[Token],
        price_feeds: Sequence[PriceFeed],
        debt_token: DebtToken,
        params: RiskParameters = DEFAULT_RISK_PARAMETERS,
        address: str = ENGINE_WALLET,
        verbose: bool = True,
    ):
        """
        Deploy the engine.

        Args:
            ledger: Token ledger holding collateral and debt token balances
            collateral_tokens: Supported collateral, parallel to price_feeds
            price_feeds: One feed per collateral token
            debt_token: The pegged token; its owner must be this engine's address
            params: Risk policy
            address: Wallet id of the engine (custody of all collateral)
            verbose: Print one line per committed or reverted operation

        Raises:
            ConfigurationLengthMismatch: If the token and feed lists differ in length
            ValueError: If a token lives on another ledger or is registered twice
        """
        self.registry = CollateralRegistry.from_lists(collateral_tokens, price_feeds)
        for token in list(collateral_tokens) + [debt_token]:
            if token.ledger is not ledger:
                raise ValueError(f"{token.symbol} does not live on ledger {ledger.name}")
        if debt_token.symbol in self.registry:
            raise ValueError(f"{debt_token.symbol} cannot be both collateral and debt token")

        self.ledger = ledger
        self.debt_token = debt_token
        self.params = params
        self.address = address
        self.verbose = verbose

        self.book = PositionBook()
        self.risk = RiskEngine(self.registry, self.book, params, clock=ledger)
        self.bus = EventBus()
        self.event_log: List[EngineEvent] = []
        self.delivery_failures: List[DeliveryFailure] = []

        self._locked = False
        self._pending_events: Optional[List[EngineEvent]] = None

        if not ledger.is_registered(address):
            ledger.register_wallet(address)

    # ========================================================================
    # OPERATION GUARD
    # ========================================================================

    @contextmanager
    def _operation(self, description: str) -> Iterator[None]:
        if self._locked:
            raise ReentrancyError(f"{description} entered while another operation is in progress")
        self._locked = True
        book_snapshot = self.book.snapshot()
        ledger_snapshot = self.ledger.snapshot()
        events: List[EngineEvent] = []
        self._pending_events = events
        try:
            yield
        except BaseException as exc:
            self.book.restore(book_snapshot)
            self.ledger.restore(ledger_snapshot)
            if self.verbose:
                print(f"✗ REVERTED: {description}: {type(exc).__name__}: {exc}")
            raise
        finally:
            self._pending_events = None
            self._locked = False

        self.event_log.extend(events)
        if self.verbose:
            print(f"✓ COMMITTED: {description}")
        for event in events:
            for failure in self.bus.publish(event):
                self.delivery_failures.append(failure)
                if self.verbose:
                    error = failure.error
                    print(f"⚠ SUBSCRIBER FAILED: {type(event).__name__}: {type(error).__name__}: {error}")

    def _emit(self, event: EngineEvent) -> None:
        self._pending_events.append(event)

    @property
    def in_operation(self) -> bool:
        return self._locked

    def _require_account(self, account: str) -> None:
        if not account or account in (SYSTEM_WALLET, ZERO_ADDRESS, self.address):
            raise ReservedAccount(f"{account!r} cannot hold a position")

    # ========================================================================
    # TOKEN MOVEMENTS
    # ========================================================================

    def _pull(self, token: Token, source: str, amount: int) -> None:
        """Move tokens from an account into engine custody."""
        if amount == 0:
            return
        try:
            ok = token.transfer_from(source, self.address, amount, spender=self.address)
        except EngineError:
            raise
        except LedgerError as exc:
            raise TransferFailed(f"pulling {amount} {token.symbol} from {source}: {exc}") from exc
        if not ok:
            raise TransferFailed(f"pulling {amount} {token.symbol} from {source} was refused")

    def _push(self, token: Token, dest: str, amount: int) -> None:
        """Move tokens out of engine custody to an account."""
        if amount == 0:
            return
        try:
            ok = token.transfer(self.address, dest, amount)
        except EngineError:
            raise
        except LedgerError as exc:
            raise TransferFailed(f"sending {amount} {token.symbol} to {dest}: {exc}") from exc
        if not ok:
            raise TransferFailed(f"sending {amount} {token.symbol} to {dest} was refused")

    # ========================================================================
    # OPERATION STEPS (run inside a guarded region)
    # ========================================================================

    def _deposit(self, account: str, asset: str, amount: int) -> None:
        require_amount(amount)
        token = self.registry.token_for(asset)
        self.book.credit_collateral(account, asset, amount)
        self._pull(token, account, amount)
        self._emit(CollateralDeposited(account, asset, amount))

    def _mint(self, account: str, amount: int) -> None:
        require_amount(amount)
        self.book.credit_debt(account, amount)
        self.risk.assert_solvent(account)
        try:
            minted = self.debt_token.mint(self.address, account, amount)
        except NotOwner as exc:
            raise MintFailed(f"engine {self.address} cannot mint {self.debt_token.symbol}: {exc}") from exc
        if not minted:
            raise MintFailed(f"{self.debt_token.symbol} refused to mint {amount} to {account}")
        self._emit(DebtMinted(account, amount))

    def _redeem(self, redeemed_from: str, redeemed_to: str, asset: str, amount: int) -> None:
        token = self.registry.token_for(asset)
        self.book.debit_collateral(redeemed_from, asset, amount)
        self._push(token, redeemed_to, amount)
        self._emit(CollateralRedeemed(redeemed_from, redeemed_to, asset, amount))

    def _burn(self, on_behalf_of: str, payer: str, amount: int) -> None:
        self.book.debit_debt(on_behalf_of, amount)
        self._pull(self.debt_token, payer, amount)
        self.debt_token.burn(self.address, amount)
        self._emit(DebtBurned(on_behalf_of, payer, amount))

    # ========================================================================
    # PROTOCOL OPERATIONS
    # ========================================================================

    def deposit_collateral(self, caller: str, asset: str, amount: int) -> None:
        """
        Deposit collateral into engine custody.

        Raises:
            InvalidAmount: If amount is not positive
            UnsupportedAsset: If asset is not registered
            TransferFailed: If the token transfer is refused
        """
        with self._operation(f"deposit_collateral({caller}, {asset}, {amount})"):
            self._require_account(caller)
            self._deposit(caller, asset, amount)

    def mint_debt(self, caller: str, amount: int) -> None:
        """
        Mint debt token against the caller's collateral.

        Raises:
            InvalidAmount: If amount is not positive
            HealthFactorTooLow: If the new debt would break the minimum health factor
            MintFailed: If the debt token declines to mint
        """
        with self._operation(f"mint_debt({caller}, {amount})"):
            self._require_account(caller)
            self._mint(caller, amount)

    def deposit_collateral_and_mint(self, caller: str, asset: str, collateral_amount: int, debt_amount: int) -> None:
        """Deposit collateral and mint debt in one atomic operation."""
        with self._operation(
            f"deposit_collateral_and_mint({caller}, {asset}, {collateral_amount}, {debt_amount})"
        ):
            self._require_account(caller)
            self._deposit(caller, asset, collateral_amount)
            self._mint(caller, debt_amount)

    def redeem_collateral(self, caller: str, asset: str, amount: int) -> None:
        """
        Withdraw collateral from engine custody.

        Raises:
            InvalidAmount: If amount is not positive
            UnsupportedAsset: If asset is not registered
            InsufficientBalance: If the caller deposited less than amount
            HealthFactorTooLow: If the withdrawal would break the minimum health factor
        """
        with self._operation(f"redeem_collateral({caller}, {asset}, {amount})"):
            self._require_account(caller)
            require_amount(amount)
            self._redeem(caller, caller, asset, amount)
            self.risk.assert_solvent(caller)

    def burn_debt(self, caller: str, amount: int) -> None:
        """
        Repay debt by returning debt token to the engine, which burns it.

        Raises:
            InvalidAmount: If amount is not positive
            InsufficientBalance: If the caller's debt is less than amount
            TransferFailed: If the caller holds less debt token than amount
        """
        with self._operation(f"burn_debt({caller}, {amount})"):
            self._require_account(caller)
            require_amount(amount)
            self._burn(caller, caller, amount)
            # Burning only raises the health factor
            self.risk.assert_solvent(caller)

    def burn_and_redeem(self, caller: str, asset: str, collateral_amount: int, debt_amount: int) -> None:
        """Burn debt then redeem collateral in one atomic operation."""
        with self._operation(
            f"burn_and_redeem({caller}, {asset}, {collateral_amount}, {debt_amount})"
        ):
            self._require_account(caller)
            require_amount(debt_amount)
            require_amount(collateral_amount)
            self._burn(caller, caller, debt_amount)
            self._redeem(caller, caller, asset, collateral_amount)
            self.risk.assert_solvent(caller)

    def liquidate(self, caller: str, asset: str, target: str, debt_to_cover: int) -> Tuple[int, int]:
        """
        Cover part of an under-collateralized account's debt for a collateral bonus.

        The caller repays debt_to_cover of debt token on the target's behalf and
        receives collateral worth debt_to_cover plus liquidation_bonus percent.

        Args:
            caller: The liquidator
            asset: Collateral asset to seize
            target: Account being liquidated
            debt_to_cover: Debt token amount to repay (18 decimals)

        Returns:
            Tuple of (collateral_seized, bonus); collateral_seized includes the bonus.

        Raises:
            ReservedAccount: If caller or target is the system wallet, the engine or the null account
            InvalidAmount: If debt_to_cover is not positive
            UnsupportedAsset: If asset is not registered
            NotEligibleForLiquidation: If the target's health factor is not below the minimum
            InsufficientBalance: If the target has too little of asset or too little debt
            TransferFailed: If the caller holds too little debt token
            LiquidationDidNotImprovePosition: If the target's health factor did not increase
            HealthFactorTooLow: If the liquidator ends up below the minimum
        """
        with self._operation(f"liquidate({caller}, {asset}, {target}, {debt_to_cover})"):
            self._require_account(caller)
            self._require_account(target)
            require_amount(debt_to_cover)
            self.registry.get(asset)

            before = self.risk.health_factor(target)
            if before >= self.params.min_health_factor:
                raise NotEligibleForLiquidation(before, target)

            seized = self.risk.amount_from_usd_value(asset, debt_to_cover)
            bonus, total = calculate_liquidation_payout(seized, self.params)

            self._redeem(target, caller, asset, total)
            self._burn(target, caller, debt_to_cover)

            after = self.risk.health_factor(target)
            if after <= before:
                raise LiquidationDidNotImprovePosition(before, after)
            self.risk.assert_solvent(caller)

            self._emit(Liquidated(
                liquidator=caller,
                target=target,
                asset=asset,
                debt_covered=debt_to_cover,
                collateral_seized=total,
                bonus=bonus,
                health_factor_before=before,
                health_factor_after=after,
            ))
        return total, bonus

    # ========================================================================
    # READ-ONLY GETTERS
    # ========================================================================

    def collateral_balance(self, account: str, asset: str) -> int:
        return self.book.collateral_of(account, asset)

    def debt_minted(self, account: str) -> int:
        return self.book.debt_of(account)

    def position(self, account: str) -> AccountPosition:
        return self.book.position(account)

    def accounts(self) -> Set[str]:
        return self.book.accounts()

    def account_information(self, account: str) -> AccountInformation:
        return self.risk.account_information(account)

    def health_factor(self, account: str) -> int:
        return self.risk.health_factor(account)

    def collateral_value_usd(self, account: str) -> int:
        return self.risk.total_collateral_value_usd(account)

    def usd_value(self, asset: str, amount: int) -> int:
        return self.risk.value_of(asset, amount)

    def token_amount_from_usd(self, asset: str, usd_value: int) -> int:
        return self.risk.amount_from_usd_value(asset, usd_value)

    def calculate_health_factor(self, debt_minted: int, collateral_value_usd: int) -> int:
        """What-if health factor under this engine's policy."""
        return calculate_health_factor(debt_minted, collateral_value_usd, self.params)

    def collateral_assets(self) -> Tuple[str, ...]:
        return self.registry.assets

    def price_feed(self, asset: str) -> PriceFeed:
        return self.registry.feed_for(asset)

    @property
    def risk_parameters(self) -> RiskParameters:
        return self.params

    # ========================================================================
    # SUBSCRIPTIONS
    # ========================================================================

    def subscribe(self, event_type: type, handler: EventHandler) -> None:
        """Call handler with every committed event of event_type."""
        self.bus.subscribe(event_type, handler)

    def subscribe_all(self, handler: EventHandler) -> None:
        self.bus.subscribe_all(handler)

    # ========================================================================
    # INVARIANT AUDIT
    # ========================================================================

    def verify_invariants(self) -> Dict[str, Any]:
        """
        Check the conservation laws between positions and token balances.

        - Debt token supply equals the sum of debt minted over all accounts
        - Engine custody of each asset equals the sum deposited over all accounts
        - The token ledger itself conserves every unit

        Protocol-wide collateral value versus debt supply is reported under
        'overcollateralized' but is not a discrepancy: prices can fall.

        Returns:
            Dict with keys 'valid', 'debt_supply', 'total_debt_minted', 'custody',
            'total_collateral', 'collateral_value_usd', 'overcollateralized',
            'insolvent_accounts' and 'discrepancies'.

        Example:
            result = engine.verify_invariants()
            assert result['valid'], result['discrepancies']
        """
        discrepancies: List[Dict[str, Any]] = []

        debt_supply = self.debt_token.total_supply()
        total_debt_minted = self.book.total_debt()
        if debt_supply != total_debt_minted:
            discrepancies.append({
                'check': 'debt supply',
                'supply': debt_supply,
                'minted': total_debt_minted,
                'difference': debt_supply - total_debt_minted,
            })

        custody: Dict[str, int] = {}
        total_collateral: Dict[str, int] = {}
        collateral_value_usd = 0
        for asset in self.registry:
            custody[asset] = self.registry.token_for(asset).balance_of(self.address)
            total_collateral[asset] = self.book.total_collateral(asset)
            if custody[asset] != total_collateral[asset]:
                discrepancies.append({
                    'check': 'custody',
                    'asset': asset,
                    'custody': custody[asset],
                    'deposited': total_collateral[asset],
                    'difference': custody[asset] - total_collateral[asset],
                })
            collateral_value_usd += self.risk.value_of(asset, total_collateral[asset])

        ledger_check = self.ledger.verify_double_entry()
        for item in ledger_check['discrepancies']:
            discrepancies.append({'check': 'ledger', **item})

        insolvent = sorted(a for a in self.book.accounts() if self.risk.is_liquidatable(a))

        return {
            'valid': len(discrepancies) == 0,
            'debt_supply': debt_supply,
            'total_debt_minted': total_debt_minted,
            'custody': custody,
            'total_collateral': total_collateral,
            'collateral_value_usd': collateral_value_usd,
            'overcollateralized': collateral_value_usd >= debt_supply,
            'insolvent_accounts': insolvent,
            'discrepancies': discrepancies,
        }

    def __repr__(self) -> str:
        return (
            f"StablecoinEngine({self.address}, collateral={list(self.registry.assets)}, "
            f"debt={self.debt_token.symbol})"
        )

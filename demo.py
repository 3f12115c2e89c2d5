#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Learn the Stablecoin Engine Step by Step

A walk through the life of an over-collateralized stablecoin. Each step builds
on the previous one. Press Enter to advance.

WHAT YOU'LL LEARN:
  1-2: Deployment    - The token ledger, collateral, the debt token, the engine
  3-4: Borrowing     - Depositing collateral, minting, the health factor
  5:   Guard Rails   - Rejected operations leave no trace
  6:   Repaying      - Burning debt and redeeming collateral
  7-8: Liquidation   - A price crash, and who cleans it up
  9:   Stale Prices  - The oracle timeout freezes the protocol
  10:  Audit         - Conservation between positions and token balances

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
import sys

from pegledger import (
    Ledger, CollateralToken, DebtToken, StablecoinEngine,
    StaticPriceFeed, TimeSeriesPriceFeed, RiskParameters,
    collateral_unit, debt_unit,
    EngineError, Liquidated,
    HEALTH_FACTOR_MAX, PRECISION,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    start_time: datetime = datetime(2025, 1, 1, 9, 0, 0)

    # Prices in USD (the feeds report them with 8 decimals)
    weth_price: int = 1000
    wbtc_price: int = 30000
    crash_price: int = 300

    # Borrower
    alice_weth: int = 10
    alice_mint: int = 2000

    # Liquidator
    bob_weth: int = 20
    bob_mint: int = 2000


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    """Print a step header with learning objective."""
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    print(f"\n--- {text} ---\n")


def fmt(amount: int) -> str:
    """Render an 18-decimal fixed point amount."""
    if amount == HEALTH_FACTOR_MAX:
        return "max"
    return f"{Decimal(amount) / Decimal(PRECISION):,.4f}"


def usd(price: int) -> int:
    """Whole USD price to 8-decimal feed price."""
    return price * 10 ** 8


def whole(tokens: int) -> int:
    return tokens * PRECISION


def show_account(engine: StablecoinEngine, account: str):
    info = engine.account_information(account)
    print(f"    {account:8s} collateral=${fmt(info.collateral_value_usd):>14s}  "
          f"debt={fmt(info.debt_minted):>12s}  health={fmt(info.health_factor)}")


# ============================================================================
# STEPS
# ============================================================================

def step_01_token_ledger():
    step_header(1, "The Token Ledger",
        "Every token balance lives in one ledger; minting and burning go through the system wallet.")

    ledger = Ledger("chain", initial_time=CONFIG.start_time)
    ledger.register_unit(collateral_unit("WETH", "Wrapped Ether"))
    ledger.register_unit(collateral_unit("WBTC", "Wrapped Bitcoin"))
    ledger.register_unit(debt_unit())
    for wallet in ("deployer", "alice", "bob"):
        ledger.register_wallet(wallet)

    print(f"\n    Wallets: {sorted(ledger.list_wallets())}")
    print(f"    Units:   {sorted(ledger.units)}")
    return ledger


def step_02_deploy(ledger: Ledger):
    step_header(2, "Deploying the Engine",
        "The engine custodies collateral and is the only account allowed to mint the debt token.")

    weth = CollateralToken(ledger, "WETH")
    wbtc = CollateralToken(ledger, "WBTC")
    dsc = DebtToken(ledger, "DSC", owner="deployer")
    weth_feed = StaticPriceFeed(usd(CONFIG.weth_price), updated_at=CONFIG.start_time)
    wbtc_feed = StaticPriceFeed(usd(CONFIG.wbtc_price), updated_at=CONFIG.start_time)

    engine = StablecoinEngine(ledger, [weth, wbtc], [weth_feed, wbtc_feed], dsc)
    dsc.transfer_ownership("deployer", engine.address)

    print(f"\n    {engine!r}")
    print(f"    DSC owner: {dsc.owner}")
    params = engine.risk_parameters
    print(f"    Liquidation threshold: {params.liquidation_threshold}/{params.liquidation_precision}"
          f"  (collateral must be worth 2x the debt)")
    print(f"    Liquidation bonus:     {params.liquidation_bonus}%")
    return engine, weth, dsc, weth_feed


def step_03_deposit(engine: StablecoinEngine, weth: CollateralToken):
    step_header(3, "Depositing Collateral",
        "Collateral moves from the account into engine custody and is valued at the oracle price.")

    weth.mint("alice", whole(CONFIG.alice_weth))
    engine.deposit_collateral("alice", "WETH", whole(CONFIG.alice_weth))

    print(f"\n    alice deposited {CONFIG.alice_weth} WETH at ${CONFIG.weth_price}")
    print(f"    collateral value: ${fmt(engine.collateral_value_usd('alice'))}")
    print(f"    WETH in custody:  {fmt(weth.balance_of(engine.address))}")


def step_04_mint(engine: StablecoinEngine, dsc: DebtToken):
    step_header(4, "Minting Against Collateral",
        "Debt can be minted while the health factor stays at or above 1.")

    engine.mint_debt("alice", whole(CONFIG.alice_mint))
    print(f"\n    alice minted {CONFIG.alice_mint} DSC, holds {fmt(dsc.balance_of('alice'))}")
    show_account(engine, "alice")
    print("""
    health = (collateral value * 50 / 100) / debt
           = (10,000 * 0.5) / 2,000 = 2.5
    """)


def step_05_rejections(engine: StablecoinEngine, dsc: DebtToken):
    step_header(5, "Guard Rails",
        "A failing operation is rolled back completely: no position change, no token movement.")

    attempts = [
        ("deposit zero", lambda: engine.deposit_collateral("alice", "WETH", 0)),
        ("unsupported asset", lambda: engine.deposit_collateral("alice", "DOGE", whole(1))),
        ("mint past the limit", lambda: engine.mint_debt("alice", whole(3001))),
        ("redeem everything", lambda: engine.redeem_collateral("alice", "WETH", whole(CONFIG.alice_weth))),
    ]
    for label, attempt in attempts:
        try:
            attempt()
        except EngineError as exc:
            print(f"    {label:22s} -> {type(exc).__name__}")

    section_header("Nothing changed")
    show_account(engine, "alice")
    print(f"    alice DSC balance: {fmt(dsc.balance_of('alice'))}")


def step_06_repay(engine: StablecoinEngine, dsc: DebtToken):
    step_header(6, "Repaying",
        "Burning debt raises the health factor; redeeming collateral lowers it.")

    engine.burn_and_redeem("alice", "WETH", whole(1), whole(500))
    print("\n    alice burned 500 DSC and redeemed 1 WETH in one operation")
    show_account(engine, "alice")

    engine.deposit_collateral("alice", "WETH", whole(1))
    engine.mint_debt("alice", whole(500))
    print("\n    ...and put it back")
    show_account(engine, "alice")


def step_07_crash(engine: StablecoinEngine, weth: CollateralToken, weth_feed: StaticPriceFeed):
    step_header(7, "The Price Crash",
        "When collateral loses value the health factor can fall below 1.")

    weth.mint("bob", whole(CONFIG.bob_weth))
    engine.deposit_collateral_and_mint("bob", "WETH", whole(CONFIG.bob_weth), whole(CONFIG.bob_mint))
    print(f"\n    bob deposited {CONFIG.bob_weth} WETH and minted {CONFIG.bob_mint} DSC")

    weth_feed.update_price(usd(CONFIG.crash_price))
    print(f"    WETH falls from ${CONFIG.weth_price} to ${CONFIG.crash_price}\n")
    show_account(engine, "alice")
    show_account(engine, "bob")
    print(f"\n    Liquidatable: {engine.verify_invariants()['insolvent_accounts']}")


def step_08_liquidation(engine: StablecoinEngine, weth: CollateralToken):
    step_header(8, "Liquidation",
        "Anyone may repay an unhealthy account's debt and take its collateral plus a 10% bonus.")

    engine.subscribe(Liquidated, lambda e: print(
        f"    [event] {e.liquidator} covered {fmt(e.debt_covered)} of {e.target}'s debt, "
        f"seized {fmt(e.collateral_seized)} {e.asset} (bonus {fmt(e.bonus)})"
    ))

    weth_before = weth.balance_of("bob")
    engine.liquidate("bob", "WETH", "alice", whole(CONFIG.alice_mint))

    print()
    show_account(engine, "alice")
    show_account(engine, "bob")
    print(f"\n    bob's WETH wallet: {fmt(weth_before)} -> {fmt(weth.balance_of('bob'))}")
    print(f"    alice keeps {fmt(engine.collateral_balance('alice', 'WETH'))} WETH in custody")


def step_09_stale_prices():
    step_header(9, "Stale Prices",
        "With an oracle timeout, a price older than the timeout stops every valuation.")

    ledger = Ledger("stale", initial_time=CONFIG.start_time, verbose=False)
    ledger.register_unit(collateral_unit("WETH", "Wrapped Ether"))
    ledger.register_unit(debt_unit())
    ledger.register_wallet("carol")
    weth = CollateralToken(ledger, "WETH")
    dsc = DebtToken(ledger, "DSC", owner="engine")
    feed = TimeSeriesPriceFeed(ledger, [(CONFIG.start_time, usd(CONFIG.weth_price))])
    engine = StablecoinEngine(
        ledger, [weth], [feed], dsc,
        params=RiskParameters(oracle_timeout=timedelta(hours=3)),
        verbose=False,
    )

    weth.mint("carol", whole(5))
    engine.deposit_collateral_and_mint("carol", "WETH", whole(5), whole(1000))
    show_account(engine, "carol")

    ledger.advance_time(CONFIG.start_time + timedelta(hours=4))
    print(f"\n    Four hours pass with no new price...")
    try:
        engine.mint_debt("carol", whole(1))
    except EngineError as exc:
        print(f"    mint_debt -> {type(exc).__name__}: {exc}")

    feed.add_price(ledger.current_time, usd(CONFIG.weth_price))
    engine.mint_debt("carol", whole(1))
    print("    A fresh price arrives and minting works again")
    show_account(engine, "carol")


def step_10_audit(engine: StablecoinEngine):
    step_header(10, "The Audit",
        "Debt supply equals total debt minted; custody equals total deposits.")

    result = engine.verify_invariants()
    print(f"    DSC supply:         {fmt(result['debt_supply'])}")
    print(f"    Total debt minted:  {fmt(result['total_debt_minted'])}")
    for asset in engine.collateral_assets():
        print(f"    {asset} custody/deposits: {fmt(result['custody'][asset])} / "
              f"{fmt(result['total_collateral'][asset])}")
    print(f"    Collateral value:   ${fmt(result['collateral_value_usd'])}")
    print(f"    Valid:              {result['valid']}")
    print(f"\n    Events committed:   {len(engine.event_log)}")
    print(f"    Ledger transactions: {len(engine.ledger.transaction_log)}")


# ============================================================================
# MAIN
# ============================================================================

def main():
    print("=" * 70)
    print("       STABLECOIN ENGINE TUTORIAL")
    print("=" * 70)

    ledger = step_01_token_ledger()
    wait_for_enter()

    engine, weth, dsc, weth_feed = step_02_deploy(ledger)
    wait_for_enter()

    step_03_deposit(engine, weth)
    wait_for_enter()

    step_04_mint(engine, dsc)
    wait_for_enter()

    step_05_rejections(engine, dsc)
    wait_for_enter()

    step_06_repay(engine, dsc)
    wait_for_enter()

    step_07_crash(engine, weth, weth_feed)
    wait_for_enter()

    step_08_liquidation(engine, weth)
    wait_for_enter()

    step_09_stale_prices()
    wait_for_enter()

    step_10_audit(engine)

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    print("""
    You've learned:

    BORROWING
      - Collateral is custodied by the engine and valued at oracle prices
      - Debt can be minted while health >= 1 (200% collateralization)

    SAFETY
      - Every operation is all-or-nothing
      - Stale or broken prices stop the protocol rather than misprice it

    LIQUIDATION
      - Unhealthy accounts can be repaid by anyone for a 10% collateral bonus
      - A liquidation must improve the target and leave the liquidator healthy

    Next steps:
      - See pegledger/engine.py for the operations
      - Run tests: pytest tests/
    """)


if __name__ == "__main__":
    main()

"""
operations.py - Hypothesis strategies for random operation sequences

Each drawn operation is a tuple naming an engine entry point and its
arguments; apply_operation() runs it and reports whether it committed.
"""

from hypothesis import strategies as st

from pegledger import EngineError

from tests.protocol_setup import Protocol, build_protocol, usd, whole


ACCOUNTS = ["alice", "bob", "carol"]
ASSETS = ["WETH", "WBTC"]

accounts = st.sampled_from(ACCOUNTS)
assets = st.sampled_from(ASSETS)
collateral_amounts = st.integers(min_value=0, max_value=whole(30))
debt_amounts = st.integers(min_value=0, max_value=whole(40000))

deposits = st.tuples(st.just("deposit"), accounts, assets, collateral_amounts)
mints = st.tuples(st.just("mint"), accounts, debt_amounts)
deposit_and_mints = st.tuples(st.just("deposit_and_mint"), accounts, assets, collateral_amounts, debt_amounts)
redeems = st.tuples(st.just("redeem"), accounts, assets, collateral_amounts)
burns = st.tuples(st.just("burn"), accounts, debt_amounts)
burn_and_redeems = st.tuples(st.just("burn_and_redeem"), accounts, assets, collateral_amounts, debt_amounts)
liquidations = st.tuples(st.just("liquidate"), accounts, assets, accounts, debt_amounts)
price_moves = st.tuples(st.just("price"), assets, st.integers(min_value=usd(1), max_value=usd(60000)))

user_operations = st.one_of(
    deposits, mints, deposit_and_mints, redeems, burns, burn_and_redeems, liquidations,
)
market_operations = st.one_of(user_operations, price_moves)


def funded_protocol() -> Protocol:
    """Protocol where every account holds 100 WETH and 10 WBTC in its wallet."""
    protocol = build_protocol()
    for account in ACCOUNTS:
        protocol.fund(account, weth=whole(100), wbtc=whole(10))
    return protocol


def apply_operation(protocol: Protocol, operation: tuple) -> bool:
    """
    Run one drawn operation.

    Returns:
        True if it committed, False if the engine refused it.
    """
    engine = protocol.engine
    name, *args = operation
    if name == "price":
        asset, price = args
        feed = protocol.weth_feed if asset == "WETH" else protocol.wbtc_feed
        feed.update_price(price)
        return True

    action = {
        "deposit": engine.deposit_collateral,
        "mint": engine.mint_debt,
        "deposit_and_mint": engine.deposit_collateral_and_mint,
        "redeem": engine.redeem_collateral,
        "burn": engine.burn_debt,
        "burn_and_redeem": engine.burn_and_redeem,
        "liquidate": engine.liquidate,
    }[name]
    try:
        action(*args)
    except EngineError:
        return False
    return True

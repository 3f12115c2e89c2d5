"""
conftest.py - Shared pytest fixtures for pegledger tests

Provides common fixtures used across unit and functional tests:
- A bare token ledger with collateral and debt units registered
- A deployed protocol (ledger, tokens, feeds, engine)
- Protocols with open positions, healthy and liquidatable
"""

import pytest

from pegledger import Ledger, collateral_unit, debt_unit

from tests.protocol_setup import START, build_protocol, whole, usd


@pytest.fixture
def ledger():
    """Quiet ledger with WETH, WBTC and DSC registered and two wallets."""
    ledger = Ledger("test", initial_time=START, verbose=False)
    ledger.register_unit(collateral_unit("WETH", "Wrapped Ether"))
    ledger.register_unit(collateral_unit("WBTC", "Wrapped Bitcoin", decimals=8))
    ledger.register_unit(debt_unit())
    ledger.register_wallet("alice")
    ledger.register_wallet("bob")
    return ledger


@pytest.fixture
def protocol():
    """Deployed protocol at WETH=$1000, WBTC=$30000, nothing deposited."""
    return build_protocol()


@pytest.fixture
def borrowed(protocol):
    """alice holds 10 WETH deposited and 2000 DSC minted (health 2.5)."""
    protocol.open_position("alice", whole(10), whole(2000))
    return protocol


@pytest.fixture
def crashed(borrowed):
    """
    bob opened 20 WETH / 2000 DSC, then WETH fell to $300.

    alice: 3000 USD of collateral against 2000 debt, health 0.75.
    bob:   6000 USD of collateral against 2000 debt, health 1.5.
    """
    borrowed.open_position("bob", whole(20), whole(2000))
    borrowed.weth_feed.update_price(usd(300))
    return borrowed

"""
test_liquidation_scenarios.py - End-to-end protocol scenarios

Walks complete deposit -> mint -> price move -> liquidation stories through a
deployed protocol and checks balances, positions and events at each stage.

Scenarios:
1. Collateral valuation at a fixed price
2. Health factor after minting
3. Zero deposit rejected without state change
4. Full liquidation of an account at health 0.75
5. Liquidation of a healthy account refused
Plus partial, multi-asset, self and failing liquidations.
"""

import pytest

from pegledger import (
    Liquidated, CollateralRedeemed, DebtBurned,
    InvalidAmount, InsufficientBalance, NotEligibleForLiquidation,
    LiquidationDidNotImprovePosition, HealthFactorTooLow, TransferFailed,
    UnsupportedAsset, HEALTH_FACTOR_MAX,
)

from tests.protocol_setup import build_protocol, usd, whole


# =============================================================================
# SPECIFIED SCENARIOS
# =============================================================================

class TestScenarios:

    def test_scenario_1_valuation(self, protocol):
        """10 WETH at 1000 USD is worth 10,000 USD."""
        protocol.open_position("alice", whole(10))
        assert protocol.engine.usd_value("WETH", whole(10)) == 10_000 * 10 ** 18
        assert protocol.engine.collateral_value_usd("alice") == 10_000 * 10 ** 18

    def test_scenario_2_health_factor(self, protocol):
        """Minting 2,000 against 10,000 USD gives health 2.5."""
        protocol.open_position("alice", whole(10))
        protocol.engine.mint_debt("alice", 2_000 * 10 ** 18)
        assert protocol.engine.health_factor("alice") == 25 * 10 ** 17

    def test_scenario_3_zero_deposit(self, protocol):
        """A zero deposit fails and changes nothing."""
        protocol.fund("alice", weth=whole(10))
        before = protocol.state()
        with pytest.raises(InvalidAmount):
            protocol.engine.deposit_collateral("alice", "WETH", 0)
        assert protocol.state() == before

    def test_scenario_4_full_liquidation(self, crashed):
        """
        alice: 10 WETH at 300 USD against 2000 debt (health 0.75).
        bob covers all 2000 and receives 2000/300 WETH plus 10%.
        """
        engine = crashed.engine
        assert engine.health_factor("alice") == 75 * 10 ** 16
        bob_weth_before = crashed.weth.balance_of("bob")

        seized, bonus = engine.liquidate("bob", "WETH", "alice", whole(2000))

        assert bonus == 666666666666666666
        assert seized == 7333333333333333332
        assert engine.collateral_balance("alice", "WETH") == whole(10) - seized
        assert engine.collateral_balance("alice", "WETH") == 2666666666666666668
        assert engine.debt_minted("alice") == 0
        assert engine.health_factor("alice") == HEALTH_FACTOR_MAX

        assert crashed.weth.balance_of("bob") == bob_weth_before + seized
        assert crashed.dsc.balance_of("bob") == 0
        assert engine.debt_minted("bob") == whole(2000)
        assert engine.health_factor("bob") == 15 * 10 ** 17

        assert crashed.dsc.total_supply() == whole(2000)
        assert engine.verify_invariants()['valid']

    def test_scenario_5_healthy_account(self):
        """An account at health 2.0 cannot be liquidated."""
        protocol = build_protocol()
        protocol.open_position("alice", whole(10), whole(2500))
        protocol.open_position("bob", whole(20), whole(2500))
        assert protocol.engine.health_factor("alice") == 2 * 10 ** 18

        before = protocol.state()
        with pytest.raises(NotEligibleForLiquidation) as exc_info:
            protocol.engine.liquidate("bob", "WETH", "alice", whole(100))
        assert exc_info.value.health_factor == 2 * 10 ** 18
        assert protocol.state() == before


# =============================================================================
# LIQUIDATION VARIANTS
# =============================================================================

class TestLiquidation:

    def test_events(self, crashed):
        crashed.engine.liquidate("bob", "WETH", "alice", whole(2000))
        events = crashed.engine.event_log[-3:]
        assert events[0] == CollateralRedeemed("alice", "bob", "WETH", 7333333333333333332)
        assert events[1] == DebtBurned("alice", "bob", whole(2000))
        assert isinstance(events[2], Liquidated)
        assert events[2].health_factor_before == 75 * 10 ** 16
        assert events[2].health_factor_after == HEALTH_FACTOR_MAX

    def test_partial_liquidation_improves_target(self, crashed):
        engine = crashed.engine
        before = engine.health_factor("alice")
        engine.liquidate("bob", "WETH", "alice", whole(500))
        after = engine.health_factor("alice")
        assert before < after < 10 ** 18
        assert engine.debt_minted("alice") == whole(1500)
        assert engine.risk.is_liquidatable("alice")

    def test_repeated_partial_liquidations(self, crashed):
        engine = crashed.engine
        engine.liquidate("bob", "WETH", "alice", whole(500))
        engine.liquidate("bob", "WETH", "alice", whole(500))
        assert engine.debt_minted("alice") == whole(1000)
        assert engine.verify_invariants()['valid']

    def test_liquidation_that_worsens_position(self):
        """Below 110% collateralization a partial liquidation lowers the health factor."""
        protocol = build_protocol()
        protocol.open_position("alice", whole(10), whole(2000))
        protocol.open_position("bob", whole(20), whole(2000))
        protocol.weth_feed.update_price(usd(200))

        before = protocol.state()
        with pytest.raises(LiquidationDidNotImprovePosition) as exc_info:
            protocol.engine.liquidate("bob", "WETH", "alice", whole(500))
        assert exc_info.value.before == 5 * 10 ** 17
        assert exc_info.value.after < exc_info.value.before
        assert protocol.state() == before

    def test_seizure_larger_than_collateral(self):
        protocol = build_protocol()
        protocol.open_position("alice", whole(10), whole(2000))
        protocol.open_position("bob", whole(20), whole(2000))
        protocol.weth_feed.update_price(usd(200))

        before = protocol.state()
        with pytest.raises(InsufficientBalance):
            protocol.engine.liquidate("bob", "WETH", "alice", whole(2000))
        assert protocol.state() == before

    def test_liquidator_must_stay_solvent(self):
        protocol = build_protocol()
        protocol.open_position("alice", whole(10), whole(2000))
        protocol.open_position("bob", whole(12), whole(2000))
        protocol.weth_feed.update_price(usd(300))
        assert protocol.engine.health_factor("bob") == 9 * 10 ** 17

        before = protocol.state()
        with pytest.raises(HealthFactorTooLow):
            protocol.engine.liquidate("bob", "WETH", "alice", whole(2000))
        assert protocol.state() == before

    def test_liquidator_without_debt_tokens(self, crashed):
        crashed.dsc.transfer("bob", "carol", whole(2000))
        with pytest.raises(TransferFailed):
            crashed.engine.liquidate("bob", "WETH", "alice", whole(100))

    def test_zero_debt_liquidator_with_tokens(self, crashed):
        """A liquidator with no position of its own always passes the solvency check."""
        crashed.dsc.transfer("bob", "carol", whole(2000))
        crashed.engine.liquidate("carol", "WETH", "alice", whole(2000))
        assert crashed.engine.debt_minted("alice") == 0
        assert crashed.engine.health_factor("carol") == HEALTH_FACTOR_MAX

    def test_cover_more_than_target_debt(self, crashed):
        crashed.open_position("carol", whole(100), whole(3000))
        with pytest.raises(InsufficientBalance):
            crashed.engine.liquidate("carol", "WETH", "alice", whole(2001))

    def test_self_liquidation(self, crashed):
        crashed.engine.liquidate("alice", "WETH", "alice", whole(2000))
        assert crashed.engine.debt_minted("alice") == 0
        assert crashed.weth.balance_of("alice") == 7333333333333333332

    def test_seize_second_asset(self):
        protocol = build_protocol()
        protocol.fund("alice", weth=whole(10), wbtc=whole(1))
        protocol.engine.deposit_collateral("alice", "WETH", whole(10))
        protocol.engine.deposit_collateral("alice", "WBTC", whole(1))
        protocol.engine.mint_debt("alice", whole(20000))
        protocol.open_position("bob", whole(100), whole(5000))

        protocol.wbtc_feed.update_price(usd(20000))
        assert protocol.engine.health_factor("alice") == 75 * 10 ** 16

        seized, _ = protocol.engine.liquidate("bob", "WBTC", "alice", whole(5000))
        assert seized == 275 * 10 ** 15
        assert protocol.wbtc.balance_of("bob") == 275 * 10 ** 15
        assert protocol.engine.collateral_balance("alice", "WETH") == whole(10)

    def test_unsupported_asset(self, crashed):
        with pytest.raises(UnsupportedAsset):
            crashed.engine.liquidate("bob", "DSC", "alice", whole(1))

    def test_zero_cover(self, crashed):
        with pytest.raises(InvalidAmount):
            crashed.engine.liquidate("bob", "WETH", "alice", 0)


# =============================================================================
# FULL LIFECYCLE
# =============================================================================

class TestLifecycle:

    def test_borrow_repay_withdraw(self, protocol):
        engine = protocol.engine
        protocol.fund("alice", weth=whole(5), wbtc=whole(1))
        engine.deposit_collateral_and_mint("alice", "WETH", whole(5), whole(1000))
        engine.deposit_collateral("alice", "WBTC", whole(1))
        engine.mint_debt("alice", whole(10000))
        # 35,000 USD of collateral against 11,000 debt
        assert engine.health_factor("alice") == 1590909090909090909

        engine.burn_and_redeem("alice", "WBTC", whole(1), whole(10000))
        engine.burn_and_redeem("alice", "WETH", whole(5), whole(1000))

        assert engine.position("alice").debt_minted == 0
        assert protocol.weth.balance_of("alice") == whole(5)
        assert protocol.wbtc.balance_of("alice") == whole(1)
        assert protocol.dsc.total_supply() == 0
        assert engine.verify_invariants()['valid']

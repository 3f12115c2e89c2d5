"""
test_risk.py - Unit tests for valuation and health factors

Tests:
- Pure calculation functions (USD value, inverse, health factor, payout)
- Rounding direction of integer arithmetic
- RiskEngine valuation across all registered assets
- Solvency assertion and liquidatability
- Oracle validation on every read
"""

import pytest
from datetime import timedelta

from pegledger import (
    CollateralToken, CollateralRegistry, PositionBook, RiskEngine, RiskParameters, StaticPriceFeed,
    calculate_usd_value, calculate_amount_from_usd,
    calculate_health_factor, calculate_liquidation_payout,
    HealthFactorTooLow, OraclePriceInvalid, OraclePriceStale,
    HEALTH_FACTOR_MAX, PRECISION,
)

from tests.protocol_setup import START, build_protocol, usd, whole


# ============================================================================
# PURE CALCULATION FUNCTIONS
# ============================================================================

class TestCalculateUsdValue:

    def test_ten_units_at_thousand(self):
        assert calculate_usd_value(usd(1000), whole(10)) == whole(10000)

    def test_fractional_amount(self):
        assert calculate_usd_value(usd(2000), whole(0.5)) == whole(1000)

    def test_rounds_down(self):
        assert calculate_usd_value(1, 1) == 0
        assert calculate_usd_value(usd(3), 1) == 3

    def test_zero_amount(self):
        assert calculate_usd_value(usd(1000), 0) == 0

    @pytest.mark.parametrize("price", [0, -usd(1)])
    def test_non_positive_price(self, price):
        with pytest.raises(OraclePriceInvalid):
            calculate_usd_value(price, whole(1))


class TestCalculateAmountFromUsd:

    def test_inverse(self):
        assert calculate_amount_from_usd(usd(2000), whole(100)) == 5 * 10 ** 16

    def test_rounds_down(self):
        # 2000 USD at 300 USD per unit is 6.666... units
        assert calculate_amount_from_usd(usd(300), whole(2000)) == 6666666666666666666

    def test_non_positive_price(self):
        with pytest.raises(OraclePriceInvalid):
            calculate_amount_from_usd(0, whole(1))


class TestCalculateHealthFactor:

    def test_worked_example(self):
        assert calculate_health_factor(whole(2000), whole(10000)) == 25 * 10 ** 17

    def test_zero_debt_is_max(self):
        assert calculate_health_factor(0, 0) == HEALTH_FACTOR_MAX
        assert calculate_health_factor(0, whole(1)) == HEALTH_FACTOR_MAX

    def test_exactly_at_minimum(self):
        assert calculate_health_factor(whole(5000), whole(10000)) == PRECISION

    def test_no_collateral(self):
        assert calculate_health_factor(whole(1), 0) == 0

    def test_custom_threshold(self):
        params = RiskParameters(liquidation_threshold=80)
        assert calculate_health_factor(whole(8000), whole(10000), params) == PRECISION


class TestLiquidationPayout:

    def test_ten_percent_bonus(self):
        bonus, total = calculate_liquidation_payout(6666666666666666666)
        assert bonus == 666666666666666666
        assert total == 7333333333333333332

    def test_zero(self):
        assert calculate_liquidation_payout(0) == (0, 0)


# ============================================================================
# RISK ENGINE
# ============================================================================

class TestRiskEngine:

    def test_value_of(self, protocol):
        assert protocol.engine.risk.value_of("WETH", whole(10)) == whole(10000)

    def test_amount_from_usd_value(self, protocol):
        assert protocol.engine.risk.amount_from_usd_value("WBTC", whole(15000)) == whole(0.5)

    def test_total_value_spans_assets(self, protocol):
        protocol.fund("alice", weth=whole(10), wbtc=whole(1))
        protocol.engine.deposit_collateral("alice", "WETH", whole(10))
        protocol.engine.deposit_collateral("alice", "WBTC", whole(1))
        assert protocol.engine.risk.total_collateral_value_usd("alice") == whole(40000)

    def test_health_factor(self, borrowed):
        assert borrowed.engine.risk.health_factor("alice") == 25 * 10 ** 17

    def test_zero_debt_skips_prices(self, protocol):
        protocol.weth_feed.update_price(0)
        assert protocol.engine.risk.health_factor("alice") == HEALTH_FACTOR_MAX
        assert protocol.engine.risk.assert_solvent("alice") == HEALTH_FACTOR_MAX

    def test_account_information(self, borrowed):
        info = borrowed.engine.risk.account_information("alice")
        assert info.debt_minted == whole(2000)
        assert info.collateral_value_usd == whole(10000)
        assert info.health_factor == 25 * 10 ** 17

    def test_assert_solvent_raises_with_value(self, crashed):
        with pytest.raises(HealthFactorTooLow) as exc_info:
            crashed.engine.risk.assert_solvent("alice")
        assert exc_info.value.health_factor == 75 * 10 ** 16

    def test_is_liquidatable(self, crashed):
        assert crashed.engine.risk.is_liquidatable("alice")
        assert not crashed.engine.risk.is_liquidatable("bob")

    def test_broken_feed_of_unheld_asset_blocks_valuation(self, borrowed):
        borrowed.wbtc_feed.update_price(-1)
        with pytest.raises(OraclePriceInvalid):
            borrowed.engine.risk.health_factor("alice")

    def test_stale_price(self):
        protocol = build_protocol(params=RiskParameters(oracle_timeout=timedelta(hours=3)))
        risk = protocol.engine.risk
        assert risk.value_of("WETH", whole(1)) == whole(1000)

        protocol.ledger.advance_time(START + timedelta(hours=4))
        with pytest.raises(OraclePriceStale):
            risk.value_of("WETH", whole(1))

        protocol.weth_feed.update_price(usd(1000), protocol.ledger.current_time)
        assert risk.value_of("WETH", whole(1)) == whole(1000)

    def test_feed_decimals_must_match(self, ledger):
        registry = CollateralRegistry.from_lists(
            [CollateralToken(ledger, "WETH")], [StaticPriceFeed(2000 * 10 ** 6, decimals=6)]
        )
        with pytest.raises(ValueError, match="decimals"):
            RiskEngine(registry, PositionBook())
        engine = RiskEngine(registry, PositionBook(), RiskParameters(feed_decimals=6))
        assert engine.value_of("WETH", whole(1)) == whole(2000)

    def test_queries_do_not_mutate(self, borrowed):
        before = borrowed.state()
        borrowed.engine.risk.health_factor("alice")
        borrowed.engine.risk.account_information("bob")
        borrowed.engine.risk.value_of("WBTC", whole(3))
        assert borrowed.state() == before

"""
test_solvency.py - Unit tests for the pure risk calculations

Tests:
- Price normalization and USD <-> token conversions
- Health factor, including the no-debt and exact-boundary cases
- Max mintable debt
- Liquidation seizure and its simulated effect on the debtor
"""

import pytest
from hypothesis import given, settings, strategies as st

from stablecoin import (
    LiquidationQuote, PRECISION, MAX_HEALTH_FACTOR, MIN_HEALTH_FACTOR,
    normalize_price, calculate_usd_value, calculate_token_amount_from_usd,
    calculate_health_factor, is_healthy, calculate_max_mintable,
    calculate_liquidation_seizure, simulate_health_factor_after_liquidation,
    to_wei,
)


ETH_PRICE = 2000 * 10**8

amounts = st.integers(min_value=1, max_value=10**30)


class TestPriceConversion:

    def test_normalize_8_decimal_price(self):
        assert normalize_price(ETH_PRICE, 8) == 2000 * PRECISION

    def test_normalize_18_decimal_price(self):
        assert normalize_price(2000 * PRECISION, 18) == 2000 * PRECISION

    def test_normalize_truncates_above_18_decimals(self):
        assert normalize_price(2000 * 10**20 + 99, 20) == 2000 * PRECISION

    def test_usd_value(self):
        # 15 ETH at $2000 -> $30,000
        assert calculate_usd_value(ETH_PRICE, 8, to_wei(15)) == to_wei(30000)

    def test_usd_value_of_zero(self):
        assert calculate_usd_value(ETH_PRICE, 8, 0) == 0

    def test_usd_value_same_for_any_feed_decimals(self):
        assert calculate_usd_value(2000 * 10**6, 6, to_wei(3)) == \
            calculate_usd_value(ETH_PRICE, 8, to_wei(3))

    def test_token_amount_from_usd(self):
        # $100 at $2000 per ETH -> 0.05 ETH
        assert calculate_token_amount_from_usd(ETH_PRICE, 8, to_wei(100)) == to_wei("0.05")

    def test_token_amount_truncates(self):
        # $1 at $3 -> 0.333... with the remainder dropped
        assert calculate_token_amount_from_usd(3 * 10**8, 8, PRECISION) == 333333333333333333

    def test_token_amount_rejects_zero_price(self):
        with pytest.raises(ValueError):
            calculate_token_amount_from_usd(0, 8, PRECISION)

    @given(amount=amounts)
    @settings(max_examples=50)
    def test_round_trip_never_gains(self, amount):
        """Converting to USD and back never yields more tokens than went in."""
        usd = calculate_usd_value(ETH_PRICE, 8, amount)
        assert calculate_token_amount_from_usd(ETH_PRICE, 8, usd) <= amount


class TestHealthFactor:

    def test_no_debt_is_max(self):
        assert calculate_health_factor(0, to_wei(1000)) == MAX_HEALTH_FACTOR

    def test_no_debt_no_collateral_is_max(self):
        assert calculate_health_factor(0, 0) == MAX_HEALTH_FACTOR

    def test_two_x_collateral_is_exactly_one(self):
        assert calculate_health_factor(to_wei(100), to_wei(200)) == PRECISION

    def test_example_position(self):
        # $20,000 collateral, 5,000 debt -> 2.0
        assert calculate_health_factor(to_wei(5000), to_wei(20000)) == 2 * PRECISION

    def test_below_boundary(self):
        # $18,000 collateral, 10,000 debt -> 0.9
        assert calculate_health_factor(to_wei(10000), to_wei(18000)) == 9 * PRECISION // 10

    def test_custom_threshold(self):
        # 80% threshold: $100 collateral supports 80 debt at exactly 1.0
        assert calculate_health_factor(to_wei(80), to_wei(100), 80, 100) == PRECISION

    def test_is_healthy_boundary(self):
        assert is_healthy(MIN_HEALTH_FACTOR)
        assert not is_healthy(MIN_HEALTH_FACTOR - 1)
        assert is_healthy(MAX_HEALTH_FACTOR)

    @given(debt=amounts, collateral=amounts, extra=amounts)
    @settings(max_examples=50)
    def test_monotone_in_collateral(self, debt, collateral, extra):
        assert calculate_health_factor(debt, collateral + extra) >= calculate_health_factor(debt, collateral)

    @given(debt=amounts, collateral=amounts, extra=amounts)
    @settings(max_examples=50)
    def test_antitone_in_debt(self, debt, collateral, extra):
        assert calculate_health_factor(debt + extra, collateral) <= calculate_health_factor(debt, collateral)


class TestMaxMintable:

    def test_fresh_position(self):
        assert calculate_max_mintable(0, to_wei(20000)) == to_wei(10000)

    def test_partially_minted(self):
        assert calculate_max_mintable(to_wei(5000), to_wei(20000)) == to_wei(5000)

    def test_underwater_position_is_zero(self):
        assert calculate_max_mintable(to_wei(10000), to_wei(18000)) == 0

    @given(debt=st.integers(min_value=0, max_value=10**30), collateral=amounts)
    @settings(max_examples=50)
    def test_max_mintable_is_tight(self, debt, collateral):
        """Minting the maximum stays healthy; one more unit does not."""
        room = calculate_max_mintable(debt, collateral)
        if room == 0:
            return
        assert is_healthy(calculate_health_factor(debt + room, collateral))
        assert not is_healthy(calculate_health_factor(debt + room + 1, collateral))


class TestLiquidationSeizure:

    def test_ten_percent_bonus(self):
        assert calculate_liquidation_seizure(100) == LiquidationQuote(100, 10, 110)

    def test_bonus_truncates(self):
        quote = calculate_liquidation_seizure(19)
        assert quote.bonus_collateral == 1
        assert quote.total_seized == 20

    def test_custom_bonus(self):
        assert calculate_liquidation_seizure(to_wei(1), 5, 100).total_seized == to_wei("1.05")

    def test_simulated_health_factor_improves(self):
        # $18,000 collateral, 10,000 debt; cover 2,000 and seize $2,200
        after = simulate_health_factor_after_liquidation(
            to_wei(10000), to_wei(18000), to_wei(2000), to_wei(2200),
        )
        assert after == to_wei("0.9875")
        assert after > calculate_health_factor(to_wei(10000), to_wei(18000))

    def test_simulated_full_cover_is_max(self):
        after = simulate_health_factor_after_liquidation(
            to_wei(10000), to_wei(18000), to_wei(10000), to_wei(11000),
        )
        assert after == MAX_HEALTH_FACTOR

    def test_deeply_underwater_gets_worse(self):
        # Collateral below 110% of debt: every seizure lowers the health factor
        before = calculate_health_factor(to_wei(10000), to_wei(10000))
        after = simulate_health_factor_after_liquidation(
            to_wei(10000), to_wei(10000), to_wei(1000), to_wei(1100),
        )
        assert after < before

    def test_simulated_overcover_rejected(self):
        with pytest.raises(ValueError):
            simulate_health_factor_after_liquidation(to_wei(10), to_wei(100), to_wei(11), 0)

    def test_simulated_overseizure_rejected(self):
        with pytest.raises(ValueError):
            simulate_health_factor_after_liquidation(to_wei(10), to_wei(100), to_wei(1), to_wei(101))

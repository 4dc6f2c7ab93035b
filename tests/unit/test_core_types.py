"""
test_core_types.py - Unit tests for core.py

Tests:
- Fixed-point helpers (to_wei, from_wei, format_health_factor)
- Argument validation helpers
- Clock: forward-only time
- EngineConfig validation
- Exception payloads
"""

import pytest
from datetime import datetime, timedelta
from decimal import Decimal

from stablecoin import (
    Clock, EngineConfig, BreaksHealthFactor, EngineError,
    InvalidAmount, StalePrice, TokenError, InsufficientFunds,
    PRECISION, MAX_HEALTH_FACTOR, ADDITIONAL_FEED_PRECISION, FEED_PRECISION,
    to_wei, from_wei, format_health_factor,
)
from stablecoin.core import require_amount, require_account


class TestFixedPoint:
    """to_wei / from_wei conversions."""

    def test_to_wei_integer(self):
        assert to_wei(10) == 10 * 10**18

    def test_to_wei_decimal_string(self):
        assert to_wei("1.5") == 1_500_000_000_000_000_000

    def test_to_wei_custom_decimals(self):
        assert to_wei(2000, 8) == 2000 * FEED_PRECISION

    def test_to_wei_truncates_excess_digits(self):
        assert to_wei(Decimal("0.0000000000000000019")) == 1

    def test_to_wei_rejects_float(self):
        with pytest.raises(TypeError):
            to_wei(1.5)

    def test_to_wei_rejects_infinity(self):
        with pytest.raises(ValueError):
            to_wei(Decimal("Infinity"))

    def test_from_wei(self):
        assert from_wei(1_500_000_000_000_000_000) == Decimal("1.5")

    def test_large_amount_is_exact(self):
        amount = to_wei("123456789012345678901234.123456789012345678")
        assert amount == 123456789012345678901234123456789012345678
        assert from_wei(amount) == Decimal("123456789012345678901234.123456789012345678")

    def test_feed_precision_constants(self):
        assert FEED_PRECISION * ADDITIONAL_FEED_PRECISION == PRECISION


class TestFormatHealthFactor:

    def test_format_regular(self):
        assert format_health_factor(2 * PRECISION) == "2.0000"

    def test_format_fractional(self):
        assert format_health_factor(9 * PRECISION // 10) == "0.9000"

    def test_format_max_is_inf(self):
        assert format_health_factor(MAX_HEALTH_FACTOR) == "inf"


class TestArgumentValidation:

    def test_require_amount_accepts_zero(self):
        assert require_amount(0) == 0

    def test_require_amount_rejects_negative(self):
        with pytest.raises(ValueError):
            require_amount(-1)

    def test_require_amount_rejects_bool(self):
        with pytest.raises(TypeError):
            require_amount(True)

    def test_require_amount_rejects_decimal(self):
        with pytest.raises(TypeError):
            require_amount(Decimal("1"))

    def test_require_account_rejects_blank(self):
        with pytest.raises(ValueError):
            require_account("   ")


class TestClock:

    def test_default_epoch(self):
        assert Clock().now == datetime(1970, 1, 1)

    def test_advance_time(self):
        clock = Clock(datetime(2025, 1, 1))
        clock.advance_time(datetime(2025, 1, 2))
        assert clock.now == datetime(2025, 1, 2)

    def test_advance_delta(self):
        clock = Clock(datetime(2025, 1, 1))
        assert clock.advance(timedelta(hours=3)) == datetime(2025, 1, 1, 3)

    def test_cannot_move_backwards(self):
        clock = Clock(datetime(2025, 1, 2))
        with pytest.raises(ValueError, match="backwards"):
            clock.advance_time(datetime(2025, 1, 1))


class TestEngineConfig:

    def test_defaults(self):
        config = EngineConfig()
        assert config.liquidation_threshold == 50
        assert config.liquidation_bonus == 10
        assert config.liquidation_precision == 100
        assert config.min_health_factor == PRECISION
        assert config.oracle_timeout == timedelta(hours=3)

    def test_is_frozen(self):
        config = EngineConfig()
        with pytest.raises(AttributeError):
            config.liquidation_bonus = 20

    @pytest.mark.parametrize("kwargs", [
        {"liquidation_threshold": 0},
        {"liquidation_threshold": 101},
        {"liquidation_bonus": -1},
        {"liquidation_precision": 0},
        {"min_health_factor": 0},
        {"precision": 0},
        {"precision": 10**9},
        {"precision": 10**27},
        {"oracle_timeout": timedelta(0)},
    ])
    def test_invalid_values_rejected(self, kwargs):
        with pytest.raises(ValueError):
            EngineConfig(**kwargs)

    def test_precision_pinned_to_wad_scale(self):
        """Amounts and prices are 18-decimal, so a rescaled precision would misvalue collateral."""
        with pytest.raises(ValueError, match="precision"):
            EngineConfig(precision=10**9, min_health_factor=10**9)
        assert EngineConfig(precision=PRECISION).precision == PRECISION


class TestExceptions:

    def test_breaks_health_factor_carries_value(self):
        exc = BreaksHealthFactor(123)
        assert exc.health_factor == 123
        assert "123" in str(exc)

    def test_engine_errors_share_base(self):
        assert issubclass(InvalidAmount, EngineError)
        assert issubclass(StalePrice, EngineError)

    def test_token_errors_are_separate(self):
        assert issubclass(InsufficientFunds, TokenError)
        assert not issubclass(InsufficientFunds, EngineError)

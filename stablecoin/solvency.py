"""
solvency.py - Pure risk calculations

ARCHITECTURE (Pure Function Pattern):
=====================================

Every function here takes all of its inputs explicitly as parameters:
no engine, no feeds, no hidden state. The engine reads ledger state and
oracle prices once, then calls these functions. Liquidation uses the same
functions to simulate a seizure before committing it.

Key Formulas (all integer arithmetic, truncating division):
    normalized_price  = price * 10**(18 - feed_decimals)
    usd_value         = normalized_price * amount // PRECISION
    token_amount      = usd_amount * PRECISION // normalized_price
    adjusted          = collateral_value * threshold // liquidation_precision
    health_factor     = adjusted * PRECISION // debt        (MAX if debt == 0)
    bonus_collateral  = token_amount * bonus // liquidation_precision
"""

from __future__ import annotations
from dataclasses import dataclass

from .core import (
    Wad,
    PRECISION, WAD_DECIMALS,
    LIQUIDATION_THRESHOLD, LIQUIDATION_BONUS, LIQUIDATION_PRECISION,
    MIN_HEALTH_FACTOR, MAX_HEALTH_FACTOR,
)


@dataclass(frozen=True, slots=True)
class LiquidationQuote:
    """
    Collateral a liquidator receives for covering some debt.

    Attributes:
        token_amount_from_debt: Collateral worth exactly the covered debt.
        bonus_collateral: Extra collateral paid as the liquidation bonus.
        total_seized: token_amount_from_debt + bonus_collateral.
    """
    token_amount_from_debt: Wad
    bonus_collateral: Wad
    total_seized: Wad


# ============================================================================
# PRICE NORMALIZATION
# ============================================================================

def normalize_price(price: int, feed_decimals: int) -> int:
    """
    Lift a feed price to the canonical 18-decimal scale.

    Feeds with more than 18 decimals are truncated down to 18.
    """
    if feed_decimals <= WAD_DECIMALS:
        return price * 10 ** (WAD_DECIMALS - feed_decimals)
    return price // 10 ** (feed_decimals - WAD_DECIMALS)


def calculate_usd_value(price: int, feed_decimals: int, amount: Wad, precision: int = PRECISION) -> Wad:
    """
    USD value (18 decimals) of amount of an asset.

    PURE FUNCTION - All inputs explicit.

    Example:
        # 15 ETH at $2000 (8-decimal feed) -> $30,000
        calculate_usd_value(2000 * 10**8, 8, 15 * 10**18) == 30_000 * 10**18
    """
    return normalize_price(price, feed_decimals) * amount // precision


def calculate_token_amount_from_usd(
    price: int,
    feed_decimals: int,
    usd_amount: Wad,
    precision: int = PRECISION,
) -> Wad:
    """
    Amount of an asset worth usd_amount, truncated.

    PURE FUNCTION - All inputs explicit.

    Raises:
        ValueError: If the normalized price is not positive
    """
    normalized = normalize_price(price, feed_decimals)
    if normalized <= 0:
        raise ValueError(f"Cannot convert USD at non-positive price {price}")
    return usd_amount * precision // normalized


# ============================================================================
# HEALTH FACTOR
# ============================================================================

def calculate_health_factor(
    total_debt: Wad,
    collateral_value_usd: Wad,
    liquidation_threshold: int = LIQUIDATION_THRESHOLD,
    liquidation_precision: int = LIQUIDATION_PRECISION,
    precision: int = PRECISION,
) -> int:
    """
    Compute the health factor of a (debt, collateral value) pair.

    PURE FUNCTION - All inputs explicit, no hidden state.

    An account without debt can never be unsafe and reports
    MAX_HEALTH_FACTOR. Otherwise the collateral value is discounted by the
    liquidation threshold and compared to the debt in the fixed-point scale.

    Args:
        total_debt: Minted debt (18 decimals)
        collateral_value_usd: Total collateral value (18 decimals)
        liquidation_threshold: Percentage of collateral counted
        liquidation_precision: Denominator of liquidation_threshold
        precision: Fixed-point scale of the result

    Returns:
        Health factor where `precision` means exactly at the boundary.

    Example:
        # $20,000 collateral, 5,000 debt, 50% threshold -> 2.0
        calculate_health_factor(5_000 * 10**18, 20_000 * 10**18) == 2 * 10**18
    """
    if total_debt == 0:
        return MAX_HEALTH_FACTOR
    adjusted_collateral = collateral_value_usd * liquidation_threshold // liquidation_precision
    return adjusted_collateral * precision // total_debt


def is_healthy(health_factor: int, min_health_factor: int = MIN_HEALTH_FACTOR) -> bool:
    """A position is safe iff its health factor is at least the minimum."""
    return health_factor >= min_health_factor


def calculate_max_mintable(
    total_debt: Wad,
    collateral_value_usd: Wad,
    liquidation_threshold: int = LIQUIDATION_THRESHOLD,
    liquidation_precision: int = LIQUIDATION_PRECISION,
    min_health_factor: int = MIN_HEALTH_FACTOR,
    precision: int = PRECISION,
) -> Wad:
    """
    Largest additional debt that keeps the position healthy.

    PURE FUNCTION - All inputs explicit.

    Returns 0 for positions already at or beyond the boundary.
    """
    adjusted_collateral = collateral_value_usd * liquidation_threshold // liquidation_precision
    max_debt = adjusted_collateral * precision // min_health_factor
    return max(max_debt - total_debt, 0)


# ============================================================================
# LIQUIDATION
# ============================================================================

def calculate_liquidation_seizure(
    token_amount_from_debt: Wad,
    liquidation_bonus: int = LIQUIDATION_BONUS,
    liquidation_precision: int = LIQUIDATION_PRECISION,
) -> LiquidationQuote:
    """
    Add the liquidation bonus to the collateral equivalent of covered debt.

    PURE FUNCTION - All inputs explicit.

    Example:
        calculate_liquidation_seizure(100) == LiquidationQuote(100, 10, 110)
    """
    bonus_collateral = token_amount_from_debt * liquidation_bonus // liquidation_precision
    return LiquidationQuote(
        token_amount_from_debt=token_amount_from_debt,
        bonus_collateral=bonus_collateral,
        total_seized=token_amount_from_debt + bonus_collateral,
    )


def simulate_health_factor_after_liquidation(
    total_debt: Wad,
    collateral_value_usd: Wad,
    debt_to_cover: Wad,
    seized_value_usd: Wad,
    liquidation_threshold: int = LIQUIDATION_THRESHOLD,
    liquidation_precision: int = LIQUIDATION_PRECISION,
    precision: int = PRECISION,
) -> int:
    """
    Health factor of the debtor after covering debt and seizing collateral.

    PURE FUNCTION - All inputs explicit.

    Raises:
        ValueError: If the seizure or the repayment exceeds what the debtor has
    """
    if debt_to_cover > total_debt:
        raise ValueError(f"debt_to_cover {debt_to_cover} exceeds debt {total_debt}")
    if seized_value_usd > collateral_value_usd:
        raise ValueError(f"seized value {seized_value_usd} exceeds collateral value {collateral_value_usd}")
    return calculate_health_factor(
        total_debt - debt_to_cover,
        collateral_value_usd - seized_value_usd,
        liquidation_threshold,
        liquidation_precision,
        precision,
    )

"""
conftest.py - Shared pytest fixtures for stablecoin engine tests

Provides common fixtures used across unit, conformance and functional tests:
- Clock, price feeds and collateral tokens (WETH at $2000, WBTC at $1000)
- A deployed engine that owns its debt token
- Users at successive stages (funded, deposited, minted)

Constants and helper functions live in tests/market_setup.py.
"""

import pytest

from stablecoin import Clock, StaticPriceFeed, Token

from tests.market_setup import (
    START_TIME, ETH_USD_PRICE, BTC_USD_PRICE,
    STARTING_USER_BALANCE, COLLATERAL_AMOUNT, AMOUNT_TO_MINT, USER,
    fund, approve_dsc, make_engine,
)


# =============================================================================
# BASIC FIXTURES
# =============================================================================

@pytest.fixture
def clock():
    return Clock(START_TIME)


@pytest.fixture
def eth_usd(clock):
    return StaticPriceFeed(ETH_USD_PRICE, decimals=8, clock=clock)


@pytest.fixture
def btc_usd(clock):
    return StaticPriceFeed(BTC_USD_PRICE, decimals=8, clock=clock)


@pytest.fixture
def weth():
    return Token("WETH", "Wrapped Ether")


@pytest.fixture
def wbtc():
    return Token("WBTC", "Wrapped Bitcoin")


@pytest.fixture
def engine(clock, weth, wbtc, eth_usd, btc_usd):
    """Engine accepting WETH and WBTC, owning its DSC token."""
    return make_engine(clock, [weth, wbtc], [eth_usd, btc_usd])


@pytest.fixture
def dsc(engine):
    return engine.dsc


# =============================================================================
# POSITION FIXTURES
# =============================================================================

@pytest.fixture
def funded_user(engine, weth):
    """USER holds 100 WETH and has approved the engine."""
    fund(engine, weth, USER, STARTING_USER_BALANCE)
    return USER


@pytest.fixture
def deposited_user(engine, funded_user):
    """USER has deposited 10 WETH ($20,000)."""
    engine.deposit_collateral(funded_user, "WETH", COLLATERAL_AMOUNT)
    return funded_user


@pytest.fixture
def minted_user(engine, deposited_user):
    """USER has deposited 10 WETH and minted 5,000 DSC (health factor 2.0)."""
    engine.mint_dsc(deposited_user, AMOUNT_TO_MINT)
    approve_dsc(engine, deposited_user)
    return deposited_user

#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Learn the Stablecoin Engine Step by Step

This is a pedagogical demonstration of an overcollateralized stablecoin.
Each step builds on the previous one. Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3:  Foundation   - Tokens, price feeds, deploying the engine
  4-6:  Positions    - Depositing, minting, the health factor, rejections
  7-8:  Risk         - A price crash and a liquidation
  9:    Oracle       - Stale prices halt the engine

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
import sys

from stablecoin import (
    StablecoinEngine, StableCoin, Token, StaticPriceFeed, Clock,
    EngineError, StalePrice, MAX_ALLOWANCE, FEED_PRECISION,
    to_wei, from_wei, format_health_factor,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    start_time: datetime = datetime(2025, 1, 1, 9, 0, 0)

    # Prices in USD
    eth_price: int = 2000
    btc_price: int = 30000
    crashed_eth_price: int = 1800

    # Positions in whole tokens
    alice_weth: int = 10
    alice_mint: int = 10000
    keeper_weth: int = 20
    keeper_mint: int = 10000


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
    """Print a section header within a step."""
    print(f"\n--- {text} ---\n")


def show_account(engine: StablecoinEngine, account: str):
    info = engine.get_account_information(account)
    print(f"{account:>12}: collateral ${from_wei(info.collateral_value_in_usd):,.2f}  "
          f"debt {from_wei(info.total_dsc_minted):,.2f} DSC  "
          f"health factor {format_health_factor(engine.get_health_factor(account))}")


# ============================================================================
# PHASE 1: FOUNDATION (Steps 1-3)
# ============================================================================

def step_01_tokens():
    """Create collateral tokens and fund accounts."""
    step_header(1, "Collateral Tokens",
        "Understand that collateral lives on external token ledgers.")

    weth = Token("WETH", "Wrapped Ether")
    wbtc = Token("WBTC", "Wrapped Bitcoin")
    weth.issue("alice", to_wei(100))
    weth.issue("keeper", to_wei(100))

    print(">>> weth = Token('WETH', 'Wrapped Ether')")
    print(">>> weth.issue('alice', to_wei(100))")
    print(f"\nalice holds {from_wei(weth.balance_of('alice'))} WETH")
    print("""
    Amounts are integers with 18 decimals ("wei"). to_wei() and from_wei()
    are the only places where human-readable numbers appear.
    """)
    return weth, wbtc


def step_02_price_feeds(clock: Clock):
    """Create USD price feeds."""
    step_header(2, "Price Feeds",
        "Every collateral asset has a USD price feed with 8 decimals.")

    eth_usd = StaticPriceFeed(CONFIG.eth_price * FEED_PRECISION, clock=clock)
    btc_usd = StaticPriceFeed(CONFIG.btc_price * FEED_PRECISION, clock=clock)
    print(f">>> eth_usd = StaticPriceFeed({CONFIG.eth_price} * 10**8, clock=clock)")
    print(f"\n{eth_usd!r}")
    print(f"{btc_usd!r}")
    return eth_usd, btc_usd


def step_03_deploy(clock, weth, wbtc, eth_usd, btc_usd):
    """Deploy the debt token and the engine."""
    step_header(3, "Deploying the Engine",
        "The engine must own the debt token so that only it can mint.")

    dsc = StableCoin(owner="deployer")
    engine = StablecoinEngine([weth, wbtc], [eth_usd, btc_usd], dsc, clock=clock, verbose=True)
    dsc.transfer_ownership("deployer", engine.address)

    section_header("Risk Parameters")
    print(f"Liquidation threshold: {engine.get_liquidation_threshold()}%")
    print(f"Liquidation bonus:     {engine.get_liquidation_bonus()}%")
    print(f"Min health factor:     {format_health_factor(engine.get_min_health_factor())}")
    print(f"Oracle timeout:        {engine.get_oracle_timeout()}")
    return engine


# ============================================================================
# PHASE 2: POSITIONS (Steps 4-6)
# ============================================================================

def step_04_deposit_and_mint(engine: StablecoinEngine, weth: Token):
    """Deposit collateral and mint against it."""
    step_header(4, "Deposit and Mint",
        "Lock collateral and borrow DSC against half of its value.")

    weth.approve("alice", engine.address, MAX_ALLOWANCE)
    engine.dsc.approve("alice", engine.address, MAX_ALLOWANCE)
    engine.deposit_collateral("alice", "WETH", to_wei(CONFIG.alice_weth))
    show_account(engine, "alice")
    print(f"\nalice can still mint {from_wei(engine.get_max_mintable('alice')):,.2f} DSC")

    engine.mint_dsc("alice", to_wei(CONFIG.alice_mint))
    show_account(engine, "alice")


def step_05_rejection(engine: StablecoinEngine):
    """Attempt to mint beyond the health factor."""
    step_header(5, "A Rejected Mint",
        "Any operation that would leave the account unsafe is rolled back.")

    try:
        engine.mint_dsc("alice", to_wei(1))
    except EngineError as exc:
        print(f"\nCaught {type(exc).__name__}")
    show_account(engine, "alice")


def step_06_keeper(engine: StablecoinEngine, weth: Token):
    """A second account prepares to act as a liquidator."""
    step_header(6, "A Keeper Position",
        "Liquidators need DSC to repay someone else's debt.")

    weth.approve("keeper", engine.address, MAX_ALLOWANCE)
    engine.dsc.approve("keeper", engine.address, MAX_ALLOWANCE)
    engine.deposit_collateral_and_mint_dsc(
        "keeper", "WETH", to_wei(CONFIG.keeper_weth), to_wei(CONFIG.keeper_mint)
    )
    show_account(engine, "keeper")


# ============================================================================
# PHASE 3: RISK (Steps 7-8)
# ============================================================================

def step_07_price_crash(engine: StablecoinEngine, eth_usd: StaticPriceFeed, clock: Clock):
    """ETH falls and alice drops below the minimum."""
    step_header(7, "Price Crash",
        f"ETH falls from ${CONFIG.eth_price} to ${CONFIG.crashed_eth_price}.")

    clock.advance(timedelta(minutes=30))
    eth_usd.update_price(CONFIG.crashed_eth_price * FEED_PRECISION)
    show_account(engine, "alice")
    show_account(engine, "keeper")

    result = engine.verify_solvency()
    print(f"\nverify_solvency()['valid'] = {result['valid']}")
    for account, health_factor in result['unhealthy_accounts'].items():
        print(f"  unhealthy: {account} ({format_health_factor(health_factor)})")


def step_08_liquidation(engine: StablecoinEngine, weth: Token):
    """The keeper liquidates alice."""
    step_header(8, "Liquidation",
        "Repay the debt, receive the collateral plus a 10% bonus.")

    debt = engine.get_account_information("alice").total_dsc_minted
    quote = engine.simulate_liquidation("WETH", debt)
    print(f"Covering {from_wei(debt):,.2f} DSC seizes {from_wei(quote.total_seized):.6f} WETH "
          f"(bonus {from_wei(quote.bonus_collateral):.6f})")

    engine.liquidate("keeper", "WETH", "alice", debt)

    section_header("After")
    show_account(engine, "alice")
    show_account(engine, "keeper")
    print(f"\nkeeper wallet: {from_wei(weth.balance_of('keeper')):.6f} WETH")
    print(f"verify_solvency()['valid'] = {engine.verify_solvency()['valid']}")


# ============================================================================
# PHASE 4: ORACLE (Step 9)
# ============================================================================

def step_09_stale_price(engine: StablecoinEngine, clock: Clock):
    """Prices older than the timeout are refused."""
    step_header(9, "Stale Prices",
        "No price older than the oracle timeout is ever used.")

    clock.advance(engine.get_oracle_timeout() + timedelta(seconds=1))
    try:
        engine.get_health_factor("keeper")
    except StalePrice as exc:
        print(f"Caught StalePrice: {exc}")


def main():
    """Run the complete tutorial."""
    print("=" * 70)
    print("       STABLECOIN ENGINE - INTERACTIVE TUTORIAL")
    print("=" * 70)

    if QUICK_MODE:
        print("Running in QUICK mode (no pauses)")
    else:
        print("Running in INTERACTIVE mode (press Enter to advance)")

    wait_for_enter()

    clock = Clock(CONFIG.start_time)
    weth, wbtc = step_01_tokens()
    wait_for_enter()

    eth_usd, btc_usd = step_02_price_feeds(clock)
    wait_for_enter()

    engine = step_03_deploy(clock, weth, wbtc, eth_usd, btc_usd)
    wait_for_enter()

    step_04_deposit_and_mint(engine, weth)
    wait_for_enter()

    step_05_rejection(engine)
    wait_for_enter()

    step_06_keeper(engine, weth)
    wait_for_enter()

    step_07_price_crash(engine, eth_usd, clock)
    wait_for_enter()

    step_08_liquidation(engine, weth)
    wait_for_enter()

    step_09_stale_price(engine, clock)

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    print("""
    You've learned:
      - Debt is only minted against at least twice its value in collateral
      - Every operation is all-or-nothing
      - Undercollateralized accounts are liquidated at a 10% discount
      - Stale prices stop the engine instead of mispricing it

    Run tests: pytest tests/
    """)


if __name__ == "__main__":
    main()

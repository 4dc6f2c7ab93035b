"""
engine.py - Overcollateralized stablecoin engine

The StablecoinEngine is the only component that mutates positions. It owns
an EngineState and the ledgers built on it, and exposes:

    - Position operations: deposit, mint, redeem, burn and their combinations
    - Liquidation of accounts below the minimum health factor
    - Read-only valuation, health factor and registry getters

Every mutating entry point runs inside _atomic(), which:
    1. Rejects re-entry while another operation is in progress
    2. Snapshots the engine state and every token ledger it touches
    3. Restores all snapshots and re-raises if anything fails
so no partial effect of a failed operation is ever observable.

Solvency rule: after any operation that can weaken the acting account's
position, its health factor must be at least the minimum.
"""

from __future__ import annotations
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Any, Dict, Iterator, List, Optional, Sequence

from .core import (
    Account, AssetSymbol, Wad,
    AccountInformation, EngineConfig, EngineEvent,
    Clock, DebtToken, PriceFeed, TokenLedger,
    InvalidAmount, ArithmeticUnderflow, BreaksHealthFactor, HealthFactorOk,
    HealthFactorNotImproved, ReentrantCall,
    ADDITIONAL_FEED_PRECISION, ENGINE_ADDRESS,
    format_health_factor, require_account, require_amount,
)
from .positions import AssetRegistry, CollateralLedger, DebtLedger, EngineState
from .pricing_source import OracleGuard
from .solvency import (
    LiquidationQuote,
    calculate_health_factor, calculate_liquidation_seizure, calculate_max_mintable,
    is_healthy, simulate_health_factor_after_liquidation,
)


class StablecoinEngine:
    """
    Collateral and debt accounting with solvency enforcement and liquidation.

    Thread Safety:
        Not thread-safe. Operations are serialized; the reentrancy guard only
        protects against nested calls made from inside a collaborator.

    Example:
        clock = Clock(datetime(2025, 1, 1))
        weth = Token("WETH", "Wrapped Ether")
        dsc = StableCoin(owner="deployer")
        engine = StablecoinEngine([weth], [StaticPriceFeed(2000 * 10**8, clock=clock)],
                                  dsc, clock=clock)
        dsc.transfer_ownership("deployer", engine.address)

        weth.issue("alice", to_wei(10))
        weth.approve("alice", engine.address, to_wei(10))
        engine.deposit_collateral_and_mint_dsc("alice", "WETH", to_wei(10), to_wei(5000))
    """

    def __init__(
        self,
        collateral_tokens: Sequence[TokenLedger],
        price_feeds: Sequence[PriceFeed],
        dsc: DebtToken,
        clock: Optional[Clock] = None,
        config: Optional[EngineConfig] = None,
        address: Account = ENGINE_ADDRESS,
        verbose: bool = True,
    ):
        """
        Create an engine.

        Args:
            collateral_tokens: Token ledgers of the supported collateral, in registry order
            price_feeds: USD price feed of each collateral token, same order
            dsc: Debt token; the engine must become its owner before minting
            clock: Time source for oracle staleness checks (default: 1970-01-01)
            config: Risk parameters (default: EngineConfig())
            address: Account id under which the engine holds tokens
            verbose: Print registrations and operation outcomes (default: True)

        Raises:
            ConfigurationError: If tokens and feeds do not pair up one to one
        """
        self.config = config or EngineConfig()
        self.clock = clock or Clock()
        self.address = require_account(address, "address")
        self.dsc = dsc
        self.verbose = verbose

        self.registry = AssetRegistry(collateral_tokens, price_feeds)
        self.oracle = OracleGuard(self.clock, self.config.oracle_timeout)
        self.state = EngineState()
        self.collateral = CollateralLedger(
            self.state, self.registry, self.oracle, self.address, self.config.precision
        )
        self.debt = DebtLedger(self.state, dsc, self.address)

        self._entered = False

        if self.verbose:
            for asset in self.registry:
                print(f"📝 Registered collateral: {asset} -> {self.registry.feed(asset)!r}")

    # ========================================================================
    # ATOMICITY AND REENTRANCY
    # ========================================================================

    def _participants(self) -> List[TokenLedger]:
        return [*self.registry.tokens(), self.dsc]

    @contextmanager
    def _atomic(self, operation: str, **details: Any) -> Iterator[None]:
        """
        Run one mutating operation all-or-nothing.

        Raises:
            ReentrantCall: If another mutating operation is already running
        """
        if self._entered:
            raise ReentrantCall(f"{operation} called while another operation is in progress")
        self._entered = True
        state_snapshot = self.state.clone()
        token_snapshots = [(token, token.snapshot()) for token in self._participants()]
        try:
            yield
        except Exception as exc:
            self.state.restore(state_snapshot)
            for token, snapshot in token_snapshots:
                token.restore(snapshot)
            if self.verbose:
                print(f"✗ REJECTED {operation}: {type(exc).__name__}: {exc}")
            raise
        else:
            if self.verbose:
                args = ", ".join(f"{k}={v}" for k, v in details.items())
                print(f"✓ APPLIED {operation}({args})")
        finally:
            self._entered = False

    # ========================================================================
    # POSITION OPERATIONS (Mutating)
    # ========================================================================

    def deposit_collateral(self, account: Account, asset: AssetSymbol, amount: Wad) -> None:
        """
        Deposit amount of asset as collateral for account.

        Depositing can never lower a health factor, so no solvency check runs.
        The engine must be approved to pull amount from account.

        Raises:
            InvalidAmount, UnsupportedAsset, TransferFailed
        """
        with self._atomic("deposit_collateral", account=account, asset=asset, amount=amount):
            self.collateral.deposit(account, asset, amount)

    def mint_dsc(self, account: Account, amount: Wad) -> None:
        """
        Mint amount of debt token to account against its collateral.

        Raises:
            InvalidAmount, BreaksHealthFactor, MintFailed, StalePrice
        """
        with self._atomic("mint_dsc", account=account, amount=amount):
            self._mint_dsc(account, amount)

    def _mint_dsc(self, account: Account, amount: Wad) -> None:
        self.debt.record_mint(account, amount)
        self.assert_solvent(account)
        self.debt.issue(account, amount)

    def deposit_collateral_and_mint_dsc(
        self,
        account: Account,
        asset: AssetSymbol,
        amount_collateral: Wad,
        amount_dsc_to_mint: Wad,
    ) -> None:
        """Deposit collateral and mint against it in one operation."""
        with self._atomic(
            "deposit_collateral_and_mint_dsc",
            account=account, asset=asset,
            amount_collateral=amount_collateral, amount_dsc_to_mint=amount_dsc_to_mint,
        ):
            self.collateral.deposit(account, asset, amount_collateral)
            self._mint_dsc(account, amount_dsc_to_mint)

    def redeem_collateral(self, account: Account, asset: AssetSymbol, amount: Wad) -> None:
        """
        Withdraw amount of asset from account's collateral back to account.

        Raises:
            InvalidAmount, UnsupportedAsset, ArithmeticUnderflow,
            BreaksHealthFactor, TransferFailed, StalePrice
        """
        with self._atomic("redeem_collateral", account=account, asset=asset, amount=amount):
            self.collateral.redeem(asset, amount, account, account)
            self.assert_solvent(account)

    def burn_dsc(self, account: Account, amount: Wad) -> None:
        """
        Repay amount of account's debt with its own tokens.

        The engine must be approved to pull amount of debt token from account.
        """
        with self._atomic("burn_dsc", account=account, amount=amount):
            self.debt.burn(amount, account, account)
            # Burning only raises the health factor; kept as a backstop.
            self.assert_solvent(account)

    def redeem_collateral_for_dsc(
        self,
        account: Account,
        asset: AssetSymbol,
        amount_collateral: Wad,
        amount_dsc_to_burn: Wad,
    ) -> None:
        """Burn debt and withdraw collateral in one operation."""
        with self._atomic(
            "redeem_collateral_for_dsc",
            account=account, asset=asset,
            amount_collateral=amount_collateral, amount_dsc_to_burn=amount_dsc_to_burn,
        ):
            self.debt.burn(amount_dsc_to_burn, account, account)
            self.collateral.redeem(asset, amount_collateral, account, account)
            self.assert_solvent(account)

    # ========================================================================
    # LIQUIDATION (Mutating)
    # ========================================================================

    def liquidate(
        self,
        liquidator: Account,
        collateral_asset: AssetSymbol,
        debtor: Account,
        debt_to_cover: Wad,
    ) -> LiquidationQuote:
        """
        Repay part of an unsafe account's debt in exchange for its collateral plus a bonus.

        The liquidator pays debt_to_cover in debt token (the engine must be
        approved to pull it) and receives the equivalent amount of
        collateral_asset plus the liquidation bonus, taken from the debtor's
        deposit.

        If the bonus-adjusted seizure exceeds what the debtor has deposited,
        the whole liquidation fails with ArithmeticUnderflow; there is no
        partial-seizure fallback.

        Returns:
            LiquidationQuote describing the seized collateral

        Raises:
            InvalidAmount: If debt_to_cover is zero
            UnsupportedAsset: If collateral_asset is not registered
            HealthFactorOk: If the debtor is not below the minimum
            ArithmeticUnderflow: If the debtor lacks the collateral or the debt
            HealthFactorNotImproved: If the debtor's health factor did not rise
            BreaksHealthFactor: If the liquidator ends up unsafe
        """
        with self._atomic(
            "liquidate",
            liquidator=liquidator, collateral_asset=collateral_asset,
            debtor=debtor, debt_to_cover=debt_to_cover,
        ):
            require_account(liquidator, "liquidator")
            require_account(debtor, "debtor")
            if require_amount(debt_to_cover, "debt_to_cover") == 0:
                raise InvalidAmount("Debt to cover must be more than zero")
            self.registry.require(collateral_asset)

            starting_health_factor = self.get_health_factor(debtor)
            if is_healthy(starting_health_factor, self.config.min_health_factor):
                raise HealthFactorOk(
                    f"{debtor} health factor {format_health_factor(starting_health_factor)} is not liquidatable"
                )

            quote = self.simulate_liquidation(collateral_asset, debt_to_cover)
            self.collateral.redeem(collateral_asset, quote.total_seized, debtor, liquidator)
            self.debt.burn(debt_to_cover, debtor, liquidator)

            ending_health_factor = self.get_health_factor(debtor)
            if ending_health_factor <= starting_health_factor:
                raise HealthFactorNotImproved(
                    f"{debtor} health factor went from {format_health_factor(starting_health_factor)} "
                    f"to {format_health_factor(ending_health_factor)}"
                )
            self.assert_solvent(liquidator)
        return quote

    def simulate_liquidation(self, collateral_asset: AssetSymbol, debt_to_cover: Wad) -> LiquidationQuote:
        """Collateral a liquidator would receive for covering debt_to_cover at current prices."""
        token_amount = self.collateral.token_amount_from_usd(collateral_asset, debt_to_cover)
        return calculate_liquidation_seizure(
            token_amount, self.config.liquidation_bonus, self.config.liquidation_precision
        )

    def simulate_health_factor_after_liquidation(
        self,
        collateral_asset: AssetSymbol,
        debtor: Account,
        debt_to_cover: Wad,
    ) -> int:
        """
        Debtor's health factor if debt_to_cover were liquidated against collateral_asset now.

        Raises:
            ArithmeticUnderflow: If the debtor lacks the collateral or the debt
        """
        quote = self.simulate_liquidation(collateral_asset, debt_to_cover)
        balance = self.collateral.balance(debtor, collateral_asset)
        if quote.total_seized > balance:
            raise ArithmeticUnderflow(
                f"Cannot seize {quote.total_seized} {collateral_asset} from {debtor}: deposit is {balance}"
            )
        info = self.get_account_information(debtor)
        if debt_to_cover > info.total_dsc_minted:
            raise ArithmeticUnderflow(
                f"Cannot cover {debt_to_cover} of {debtor}'s debt: debt is {info.total_dsc_minted}"
            )
        # Value lost by the position, rounded the same way valuation_usd rounds it
        seized_value = (
            self.collateral.usd_value(collateral_asset, balance)
            - self.collateral.usd_value(collateral_asset, balance - quote.total_seized)
        )
        return simulate_health_factor_after_liquidation(
            info.total_dsc_minted,
            info.collateral_value_in_usd,
            debt_to_cover,
            seized_value,
            self.config.liquidation_threshold,
            self.config.liquidation_precision,
            self.config.precision,
        )

    # ========================================================================
    # SOLVENCY
    # ========================================================================

    def calculate_health_factor(self, total_dsc_minted: Wad, collateral_value_in_usd: Wad) -> int:
        """Health factor of a hypothetical (debt, collateral value) pair under this engine's config."""
        return calculate_health_factor(
            total_dsc_minted,
            collateral_value_in_usd,
            self.config.liquidation_threshold,
            self.config.liquidation_precision,
            self.config.precision,
        )

    def get_health_factor(self, account: Account) -> int:
        info = self.get_account_information(account)
        return self.calculate_health_factor(info.total_dsc_minted, info.collateral_value_in_usd)

    def assert_solvent(self, account: Account) -> None:
        """
        Raises:
            BreaksHealthFactor: If account's health factor is below the minimum
        """
        health_factor = self.get_health_factor(account)
        if not is_healthy(health_factor, self.config.min_health_factor):
            raise BreaksHealthFactor(health_factor)

    def get_max_mintable(self, account: Account) -> Wad:
        """Additional debt account could mint right now without becoming unsafe."""
        info = self.get_account_information(account)
        return calculate_max_mintable(
            info.total_dsc_minted,
            info.collateral_value_in_usd,
            self.config.liquidation_threshold,
            self.config.liquidation_precision,
            self.config.min_health_factor,
            self.config.precision,
        )

    def verify_solvency(self) -> Dict[str, Any]:
        """
        Check the system-wide and per-account solvency invariants.

        Returns:
            Dict with keys:
            - 'valid': bool - True if total collateral value covers total debt
              and no account is below the minimum health factor
            - 'total_collateral_value_usd': Wad
            - 'total_dsc_minted': Wad
            - 'unhealthy_accounts': Dict[str, int] - account -> health factor

        Example:
            result = engine.verify_solvency()
            assert result['valid'], f"Insolvent: {result['unhealthy_accounts']}"
        """
        total_value = self.total_collateral_value_usd()
        total_debt = self.total_dsc_minted()
        unhealthy = {}
        for account in self.debt.accounts():
            health_factor = self.get_health_factor(account)
            if not is_healthy(health_factor, self.config.min_health_factor):
                unhealthy[account] = health_factor
        return {
            'valid': total_value >= total_debt and not unhealthy,
            'total_collateral_value_usd': total_value,
            'total_dsc_minted': total_debt,
            'unhealthy_accounts': unhealthy,
        }

    # ========================================================================
    # READ-ONLY API
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        return self.clock.now

    @property
    def events(self) -> List[EngineEvent]:
        return list(self.state.events)

    def get_account_information(self, account: Account) -> AccountInformation:
        return AccountInformation(
            total_dsc_minted=self.debt.debt(account),
            collateral_value_in_usd=self.collateral.valuation_usd(account),
        )

    def get_account_collateral_value(self, account: Account) -> Wad:
        return self.collateral.valuation_usd(account)

    def get_usd_value(self, asset: AssetSymbol, amount: Wad) -> Wad:
        return self.collateral.usd_value(asset, amount)

    def get_token_amount_from_usd(self, asset: AssetSymbol, usd_amount_in_wei: Wad) -> Wad:
        return self.collateral.token_amount_from_usd(asset, usd_amount_in_wei)

    def get_collateral_balance_of_user(self, account: Account, asset: AssetSymbol) -> Wad:
        return self.collateral.balance(account, asset)

    def get_collateral_tokens(self) -> List[AssetSymbol]:
        return self.registry.symbols()

    def get_collateral_token(self, asset: AssetSymbol) -> TokenLedger:
        return self.registry.token(asset)

    def get_collateral_token_price_feed(self, asset: AssetSymbol) -> PriceFeed:
        return self.registry.feed(asset)

    def get_dsc(self) -> DebtToken:
        return self.dsc

    def total_dsc_minted(self) -> Wad:
        return self.debt.total_debt()

    def total_collateral_value_usd(self) -> Wad:
        return sum(self.collateral.valuation_usd(a) for a in self.collateral.accounts())

    # Configuration getters

    def get_precision(self) -> int:
        return self.config.precision

    def get_additional_feed_precision(self) -> int:
        return ADDITIONAL_FEED_PRECISION

    def get_liquidation_threshold(self) -> int:
        return self.config.liquidation_threshold

    def get_liquidation_bonus(self) -> int:
        return self.config.liquidation_bonus

    def get_liquidation_precision(self) -> int:
        return self.config.liquidation_precision

    def get_min_health_factor(self) -> int:
        return self.config.min_health_factor

    def get_oracle_timeout(self) -> timedelta:
        return self.oracle.get_timeout()

    def __repr__(self) -> str:
        return (
            f"StablecoinEngine({len(self.registry)} collateral types, "
            f"{len(self.debt.accounts())} debtors, minted={self.total_dsc_minted()})"
        )

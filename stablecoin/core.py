"""
Core types and pure helpers for the stablecoin engine.

This module provides the foundational pieces shared by every other module:
1. Constants: fixed-point scales, risk parameters, oracle timeout
2. Protocols: PriceFeed, TokenLedger and DebtToken collaborator interfaces
3. Exceptions: EngineError / TokenError hierarchies
4. Immutable data structures: PriceQuote, AccountInformation, engine events,
   EngineConfig
5. Clock: forward-only logical time shared by the engine and price feeds
6. Fixed-point helpers: conversions between Decimal and 18-decimal integers

All monetary quantities inside the engine are Python ints in base units
("wei", 18 fractional digits). Decimal is only used at the human boundary
(to_wei / from_wei); float never touches a monetary value.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_EVEN, getcontext
from typing import (
    Any, Dict, Optional, Protocol, Union, runtime_checkable
)


# ============================================================================
# DECIMAL CONTEXT CONFIGURATION
# ============================================================================
#
# Decimal is only used to parse and display human amounts, but the parsing
# must be exact for 18 fractional digits on top of large integer parts.
#
_ENGINE_DECIMAL_CONTEXT = getcontext()
_ENGINE_DECIMAL_CONTEXT.prec = 78
_ENGINE_DECIMAL_CONTEXT.rounding = ROUND_HALF_EVEN


# ============================================================================
# CONSTANTS
# ============================================================================

# Fractional digits of every engine-side amount (collateral, debt, USD value).
WAD_DECIMALS = 18

# Canonical fixed-point scale (1.0 == PRECISION).
PRECISION = 10 ** WAD_DECIMALS

# Native scale of the reference 8-decimal price feeds and the factor that
# lifts such a price to the canonical scale.
FEED_DECIMALS = 8
FEED_PRECISION = 10 ** FEED_DECIMALS
ADDITIONAL_FEED_PRECISION = 10 ** (WAD_DECIMALS - FEED_DECIMALS)

# Half of the collateral value must cover the debt: 200% overcollateralized.
LIQUIDATION_THRESHOLD = 50
# Liquidators receive a 10% collateral bonus on the debt they cover.
LIQUIDATION_BONUS = 10
LIQUIDATION_PRECISION = 100

MIN_HEALTH_FACTOR = PRECISION

# Health factor reported for accounts without debt.
MAX_HEALTH_FACTOR = 2 ** 256 - 1

# Quotes older than this are rejected by the oracle guard.
ORACLE_TIMEOUT = timedelta(hours=3)

# Account id of the engine itself (custodian of deposited collateral).
ENGINE_ADDRESS = "dsc_engine"

# Account id that can never receive minted tokens.
ZERO_ADDRESS = "0x0"

# Type aliases
Account = str
AssetSymbol = str
Wad = int
CollateralPositions = Dict[Account, Dict[AssetSymbol, Wad]]
DebtPositions = Dict[Account, Wad]


# ============================================================================
# EXCEPTIONS
# ============================================================================

class EngineError(Exception):
    """Base exception for all engine-related errors."""
    pass


class InvalidAmount(EngineError):
    """Raised when a zero amount is passed where a positive one is required."""
    pass


class UnsupportedAsset(EngineError):
    """Raised when an asset is not a registered collateral type."""
    pass


class TransferFailed(EngineError):
    """Raised when a token collaborator reports a failed transfer."""
    pass


class MintFailed(EngineError):
    """Raised when the debt token reports a failed mint."""
    pass


class BreaksHealthFactor(EngineError):
    """Raised when an operation would leave the acting account below the minimum health factor."""

    def __init__(self, health_factor: int):
        self.health_factor = health_factor
        super().__init__(f"Health factor {health_factor} is below the minimum")


class HealthFactorOk(EngineError):
    """Raised when liquidation is attempted on a healthy account."""
    pass


class HealthFactorNotImproved(EngineError):
    """Raised when a liquidation does not strictly improve the debtor's health factor."""
    pass


class StalePrice(EngineError):
    """Raised by the oracle guard when a quote is too old or incomplete."""
    pass


class InvalidPrice(EngineError):
    """Raised by the oracle guard when a feed reports a non-positive price."""
    pass


class ArithmeticUnderflow(EngineError):
    """Raised when a decrement would take a collateral or debt balance below zero."""
    pass


class ReentrantCall(EngineError):
    """Raised when a mutating entry point is invoked while another one is in progress."""
    pass


class ConfigurationError(EngineError):
    """Raised when the engine is constructed with an inconsistent asset registry."""
    pass


class TokenError(Exception):
    """Base exception for token ledger errors."""
    pass


class InsufficientFunds(TokenError):
    """Raised when a transfer or burn exceeds the holder's balance."""
    pass


class InsufficientAllowance(TokenError):
    """Raised when transfer_from exceeds the approved allowance."""
    pass


class NotOwner(TokenError):
    """Raised when a restricted token operation is called by someone other than the owner."""
    pass


class ZeroAddress(TokenError):
    """Raised when minting to the zero address."""
    pass


class BurnAmountExceedsBalance(TokenError):
    """Raised when the debt token is asked to burn more than the holder owns."""
    pass


# ============================================================================
# IMMUTABLE DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class PriceQuote:
    """
    One round of a price feed.

    Attributes:
        round_id: Monotonic round counter of the feed.
        price: Price in the feed's native decimals (must be positive to be usable).
        started_at: When the round started.
        updated_at: When the price was last written (None if never).
        answered_in_round: Round in which the answer was computed.
    """
    round_id: int
    price: int
    started_at: Optional[datetime]
    updated_at: Optional[datetime]
    answered_in_round: int


@dataclass(frozen=True, slots=True)
class AccountInformation:
    """Debt and USD collateral value of one account."""
    total_dsc_minted: Wad
    collateral_value_in_usd: Wad


@dataclass(frozen=True, slots=True)
class CollateralDeposited:
    """Emitted when an account deposits collateral."""
    user: Account
    asset: AssetSymbol
    amount: Wad


@dataclass(frozen=True, slots=True)
class CollateralRedeemed:
    """Emitted when collateral leaves a position (redemption or liquidation seizure)."""
    redeemed_from: Account
    redeemed_to: Account
    asset: AssetSymbol
    amount: Wad


EngineEvent = Union[CollateralDeposited, CollateralRedeemed]


@dataclass(frozen=True, slots=True)
class EngineConfig:
    """
    Risk parameters fixed at engine construction.

    Attributes:
        liquidation_threshold: Percentage of collateral value counted toward solvency.
        liquidation_bonus: Percentage bonus paid to liquidators in collateral.
        liquidation_precision: Denominator of the two percentages above.
        min_health_factor: Health factor below which an account is liquidatable.
        precision: Fixed-point scale of health factors and USD values. Token
            amounts and normalized prices are always 18-decimal, so this
            must equal PRECISION.
        oracle_timeout: Maximum accepted age of a price quote.
    """
    liquidation_threshold: int = LIQUIDATION_THRESHOLD
    liquidation_bonus: int = LIQUIDATION_BONUS
    liquidation_precision: int = LIQUIDATION_PRECISION
    min_health_factor: int = MIN_HEALTH_FACTOR
    precision: int = PRECISION
    oracle_timeout: timedelta = ORACLE_TIMEOUT

    def __post_init__(self):
        if self.liquidation_precision <= 0:
            raise ValueError(f"liquidation_precision must be positive, got {self.liquidation_precision}")
        if not 0 < self.liquidation_threshold <= self.liquidation_precision:
            raise ValueError(
                f"liquidation_threshold must be in (0, {self.liquidation_precision}], "
                f"got {self.liquidation_threshold}"
            )
        if self.liquidation_bonus < 0:
            raise ValueError(f"liquidation_bonus cannot be negative, got {self.liquidation_bonus}")
        if self.min_health_factor <= 0:
            raise ValueError(f"min_health_factor must be positive, got {self.min_health_factor}")
        if self.precision != PRECISION:
            raise ValueError(f"precision must be 10**{WAD_DECIMALS}, got {self.precision}")
        if self.oracle_timeout <= timedelta(0):
            raise ValueError(f"oracle_timeout must be positive, got {self.oracle_timeout}")


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class PriceFeed(Protocol):
    """
    External price source for one collateral asset.

    The engine never reads a feed directly: every read goes through
    OracleGuard, which rejects stale and non-positive quotes.
    """

    @property
    def decimals(self) -> int:
        """Number of fractional digits in reported prices."""
        ...

    def latest_quote(self) -> PriceQuote:
        """Return the most recent round."""
        ...


@runtime_checkable
class TokenLedger(Protocol):
    """
    Balance bookkeeping of a fungible token.

    snapshot()/restore() let the engine roll back every collaborator effect
    of a failed operation.
    """
    symbol: str

    def balance_of(self, account: Account) -> Wad:
        ...

    def total_supply(self) -> Wad:
        ...

    def allowance(self, owner: Account, spender: Account) -> Wad:
        ...

    def approve(self, owner: Account, spender: Account, amount: Wad) -> bool:
        ...

    def transfer(self, sender: Account, to: Account, amount: Wad) -> bool:
        ...

    def transfer_from(self, spender: Account, source: Account, to: Account, amount: Wad) -> bool:
        ...

    def snapshot(self) -> Any:
        ...

    def restore(self, snapshot: Any) -> None:
        ...


@runtime_checkable
class DebtToken(TokenLedger, Protocol):
    """The engine's debt token. Only its owner may mint or burn."""

    def mint(self, caller: Account, to: Account, amount: Wad) -> bool:
        ...

    def burn(self, caller: Account, amount: Wad) -> None:
        ...


# ============================================================================
# CLOCK
# ============================================================================

class Clock:
    """
    Forward-only logical clock.

    Shared by the engine (oracle staleness checks) and by price feeds that
    stamp or select quotes by time.
    """

    def __init__(self, initial_time: Optional[datetime] = None):
        self._now: datetime = initial_time or datetime(1970, 1, 1)

    @property
    def now(self) -> datetime:
        return self._now

    def advance_time(self, new_time: datetime) -> None:
        """
        Move the clock to new_time.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._now:
            raise ValueError(f"Cannot move time backwards: {new_time} < {self._now}")
        self._now = new_time

    def advance(self, delta: timedelta) -> datetime:
        """Advance by a non-negative delta and return the new time."""
        self.advance_time(self._now + delta)
        return self._now

    def __repr__(self) -> str:
        return f"Clock({self._now.isoformat()})"


# ============================================================================
# FIXED-POINT HELPERS
# ============================================================================

def to_wei(value: Union[Decimal, int, str], decimals: int = WAD_DECIMALS) -> int:
    """
    Convert a human amount to an integer with `decimals` fractional digits.

    Digits beyond `decimals` are truncated (ROUND_DOWN), never rounded up.

    Example:
        to_wei("1.5")          # 1500000000000000000
        to_wei(2000, 8)        # 200000000000
    """
    if isinstance(value, float):
        raise TypeError("to_wei does not accept float; pass Decimal, int or str")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    if value.is_nan() or value.is_infinite():
        raise ValueError(f"Amount must be finite, got {value}")
    scaled = (value * (Decimal(10) ** decimals)).quantize(Decimal(1), rounding=ROUND_DOWN)
    return int(scaled)


def from_wei(amount: int, decimals: int = WAD_DECIMALS) -> Decimal:
    """Convert a fixed-point integer back to a Decimal."""
    return Decimal(amount) / (Decimal(10) ** decimals)


def format_health_factor(health_factor: int, precision: int = PRECISION) -> str:
    """Render a health factor for display ("inf" for debt-free accounts)."""
    if health_factor == MAX_HEALTH_FACTOR:
        return "inf"
    return f"{Decimal(health_factor) / Decimal(precision):.4f}"


def require_amount(amount: Any, name: str = "amount") -> int:
    """
    Validate the shape of an amount argument.

    Amounts must be non-negative ints (bool is rejected). Zero passes this
    check; callers decide whether zero is an InvalidAmount.

    Raises:
        TypeError: If amount is not an int
        ValueError: If amount is negative
    """
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise TypeError(f"{name} must be an int in base units, got {type(amount).__name__}")
    if amount < 0:
        raise ValueError(f"{name} cannot be negative, got {amount}")
    return amount


def require_account(account: Any, name: str = "account") -> str:
    """Validate that an account id is a non-empty string."""
    if not isinstance(account, str) or not account.strip():
        raise ValueError(f"{name} cannot be empty")
    return account

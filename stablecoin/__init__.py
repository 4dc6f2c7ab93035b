"""
stablecoin - Overcollateralized Stablecoin Engine

An accounting and risk engine for a dollar-pegged debt token backed by
external collateral. Accounts deposit collateral, mint debt against it up
to a 200% collateralization boundary, and can be liquidated by third
parties once they fall below it.

Usage:
    from datetime import datetime
    from stablecoin import (
        StablecoinEngine, StableCoin, Token, StaticPriceFeed, Clock, to_wei,
    )

    clock = Clock(datetime(2025, 1, 1))
    weth = Token("WETH", "Wrapped Ether")
    eth_usd = StaticPriceFeed(2000 * 10**8, decimals=8, clock=clock)
    dsc = StableCoin(owner="deployer")

    engine = StablecoinEngine([weth], [eth_usd], dsc, clock=clock)
    dsc.transfer_ownership("deployer", engine.address)

    weth.issue("alice", to_wei(10))
    weth.approve("alice", engine.address, to_wei(10))
    engine.deposit_collateral_and_mint_dsc("alice", "WETH", to_wei(10), to_wei(5000))

    engine.get_health_factor("alice")    # 2 * 10**18
"""

# Core types
from .core import (
    # Constants
    WAD_DECIMALS,
    PRECISION,
    FEED_DECIMALS,
    FEED_PRECISION,
    ADDITIONAL_FEED_PRECISION,
    LIQUIDATION_THRESHOLD,
    LIQUIDATION_BONUS,
    LIQUIDATION_PRECISION,
    MIN_HEALTH_FACTOR,
    MAX_HEALTH_FACTOR,
    ORACLE_TIMEOUT,
    ENGINE_ADDRESS,
    ZERO_ADDRESS,
    # Data structures
    PriceQuote,
    AccountInformation,
    CollateralDeposited,
    CollateralRedeemed,
    EngineEvent,
    EngineConfig,
    Clock,
    # Protocols
    PriceFeed,
    TokenLedger,
    DebtToken,
    # Exceptions
    EngineError,
    InvalidAmount,
    UnsupportedAsset,
    TransferFailed,
    MintFailed,
    BreaksHealthFactor,
    HealthFactorOk,
    HealthFactorNotImproved,
    StalePrice,
    InvalidPrice,
    ArithmeticUnderflow,
    ReentrantCall,
    ConfigurationError,
    TokenError,
    InsufficientFunds,
    InsufficientAllowance,
    NotOwner,
    ZeroAddress,
    BurnAmountExceedsBalance,
    # Helpers
    to_wei,
    from_wei,
    format_health_factor,
)

# Pricing
from .pricing_source import (
    StaticPriceFeed,
    TimeSeriesPriceFeed,
    OracleGuard,
    stale_check_latest_quote,
)

# Tokens
from .token import (
    Token,
    StableCoin,
    MAX_ALLOWANCE,
)

# Pure risk calculations
from .solvency import (
    LiquidationQuote,
    normalize_price,
    calculate_usd_value,
    calculate_token_amount_from_usd,
    calculate_health_factor,
    is_healthy,
    calculate_max_mintable,
    calculate_liquidation_seizure,
    simulate_health_factor_after_liquidation,
)

# Positions
from .positions import (
    EngineState,
    AssetRegistry,
    CollateralLedger,
    DebtLedger,
)

# Engine
from .engine import StablecoinEngine

__all__ = [
    # Constants
    'WAD_DECIMALS', 'PRECISION', 'FEED_DECIMALS', 'FEED_PRECISION',
    'ADDITIONAL_FEED_PRECISION', 'LIQUIDATION_THRESHOLD', 'LIQUIDATION_BONUS',
    'LIQUIDATION_PRECISION', 'MIN_HEALTH_FACTOR', 'MAX_HEALTH_FACTOR',
    'ORACLE_TIMEOUT', 'ENGINE_ADDRESS', 'ZERO_ADDRESS',
    # Data structures
    'PriceQuote', 'AccountInformation', 'CollateralDeposited', 'CollateralRedeemed',
    'EngineEvent', 'EngineConfig', 'Clock',
    # Protocols
    'PriceFeed', 'TokenLedger', 'DebtToken',
    # Exceptions
    'EngineError', 'InvalidAmount', 'UnsupportedAsset', 'TransferFailed', 'MintFailed',
    'BreaksHealthFactor', 'HealthFactorOk', 'HealthFactorNotImproved', 'StalePrice',
    'InvalidPrice', 'ArithmeticUnderflow', 'ReentrantCall', 'ConfigurationError',
    'TokenError', 'InsufficientFunds', 'InsufficientAllowance', 'NotOwner',
    'ZeroAddress', 'BurnAmountExceedsBalance',
    # Helpers
    'to_wei', 'from_wei', 'format_health_factor',
    # Pricing
    'StaticPriceFeed', 'TimeSeriesPriceFeed', 'OracleGuard', 'stale_check_latest_quote',
    # Tokens
    'Token', 'StableCoin', 'MAX_ALLOWANCE',
    # Solvency
    'LiquidationQuote', 'normalize_price', 'calculate_usd_value',
    'calculate_token_amount_from_usd', 'calculate_health_factor', 'is_healthy',
    'calculate_max_mintable', 'calculate_liquidation_seizure',
    'simulate_health_factor_after_liquidation',
    # Positions
    'EngineState', 'AssetRegistry', 'CollateralLedger', 'DebtLedger',
    # Engine
    'StablecoinEngine',
]

__version__ = "0.1.0"

"""
positions.py - Collateral and debt bookkeeping

This module owns the engine's mutable data and the two ledgers built on it:

1. EngineState: the single aggregate holding every position and the event
   log. The engine snapshots and restores it as a whole.
2. AssetRegistry: the immutable, insertion-ordered set of supported
   collateral assets with their token ledgers and price feeds.
3. CollateralLedger: per-(account, asset) deposits and their USD valuation.
4. DebtLedger: per-account minted debt and its effects on the debt token.

Ordering discipline: every ledger method applies its internal mutation
before calling out to a token collaborator. The ledgers do not check
solvency and do not roll anything back; both are the engine's job.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Sequence, Tuple

from .core import (
    Account, AssetSymbol, Wad,
    CollateralPositions, DebtPositions,
    CollateralDeposited, CollateralRedeemed, EngineEvent,
    DebtToken, PriceFeed, TokenLedger,
    InvalidAmount, UnsupportedAsset, TransferFailed, MintFailed,
    ArithmeticUnderflow, ConfigurationError,
    PRECISION,
    require_account, require_amount,
)
from .pricing_source import OracleGuard
from .solvency import calculate_usd_value, calculate_token_amount_from_usd


@dataclass
class EngineState:
    """
    All mutable engine data.

    Zero-valued entries are never stored, so an account that has redeemed
    and burned everything is indistinguishable from one never seen.
    """
    collateral_deposited: CollateralPositions = field(default_factory=dict)
    dsc_minted: DebtPositions = field(default_factory=dict)
    events: List[EngineEvent] = field(default_factory=list)

    def clone(self) -> EngineState:
        """Return a fully independent copy."""
        return EngineState(
            collateral_deposited={
                account: dict(assets) for account, assets in self.collateral_deposited.items()
            },
            dsc_minted=dict(self.dsc_minted),
            events=list(self.events),
        )

    def restore(self, snapshot: EngineState) -> None:
        """
        Replace this state's contents with those of snapshot.

        Restores in place: the ledgers keep a reference to this object.
        """
        restored = snapshot.clone()
        self.collateral_deposited = restored.collateral_deposited
        self.dsc_minted = restored.dsc_minted
        self.events = restored.events


class AssetRegistry:
    """
    Supported collateral assets, keyed by token symbol.

    Set once at construction. Iteration follows registration order so that
    aggregate valuations are deterministic.
    """

    def __init__(self, tokens: Sequence[TokenLedger], price_feeds: Sequence[PriceFeed]):
        """
        Raises:
            ConfigurationError: If the sequences differ in length or a symbol repeats
        """
        if len(tokens) != len(price_feeds):
            raise ConfigurationError(
                f"Token addresses and price feed addresses amounts don't match: "
                f"{len(tokens)} tokens, {len(price_feeds)} feeds"
            )
        self._entries: Dict[AssetSymbol, Tuple[TokenLedger, PriceFeed]] = {}
        for token, feed in zip(tokens, price_feeds):
            if token.symbol in self._entries:
                raise ConfigurationError(f"Collateral {token.symbol} registered twice")
            self._entries[token.symbol] = (token, feed)

    def __contains__(self, asset: AssetSymbol) -> bool:
        return asset in self._entries

    def __iter__(self) -> Iterator[AssetSymbol]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def symbols(self) -> List[AssetSymbol]:
        return list(self._entries)

    def require(self, asset: AssetSymbol) -> None:
        if asset not in self._entries:
            raise UnsupportedAsset(f"Collateral {asset} is not allowed")

    def token(self, asset: AssetSymbol) -> TokenLedger:
        self.require(asset)
        return self._entries[asset][0]

    def feed(self, asset: AssetSymbol) -> PriceFeed:
        self.require(asset)
        return self._entries[asset][1]

    def tokens(self) -> List[TokenLedger]:
        return [token for token, _ in self._entries.values()]


class CollateralLedger:
    """
    Deposited collateral per account and asset.

    Tokens deposited here are held by the engine's own account on each
    collateral token ledger.
    """

    def __init__(
        self,
        state: EngineState,
        registry: AssetRegistry,
        oracle: OracleGuard,
        custodian: Account,
        precision: int = PRECISION,
    ):
        self.state = state
        self.registry = registry
        self.oracle = oracle
        self.custodian = custodian
        self.precision = precision

    def balance(self, account: Account, asset: AssetSymbol) -> Wad:
        return self.state.collateral_deposited.get(account, {}).get(asset, 0)

    def deposit(self, account: Account, asset: AssetSymbol, amount: Wad) -> None:
        """
        Credit amount of asset to account, then pull the tokens in.

        Raises:
            InvalidAmount: If amount is zero
            UnsupportedAsset: If asset is not registered
            TransferFailed: If the token reports a failed transfer_from
        """
        require_account(account)
        if require_amount(amount) == 0:
            raise InvalidAmount("Deposit amount must be more than zero")
        self.registry.require(asset)

        self._set_balance(account, asset, self.balance(account, asset) + amount)
        self.state.events.append(CollateralDeposited(user=account, asset=asset, amount=amount))

        token = self.registry.token(asset)
        if not token.transfer_from(self.custodian, account, self.custodian, amount):
            raise TransferFailed(f"{asset} transfer_from {account} failed")

    def redeem(self, asset: AssetSymbol, amount: Wad, from_account: Account, to_account: Account) -> None:
        """
        Debit amount of asset from from_account, then send the tokens to to_account.

        Used both for self-redemption (from == to) and liquidation seizure.

        Raises:
            InvalidAmount: If amount is zero
            UnsupportedAsset: If asset is not registered
            ArithmeticUnderflow: If amount exceeds from_account's balance
            TransferFailed: If the token reports a failed transfer
        """
        require_account(from_account, "from_account")
        require_account(to_account, "to_account")
        if require_amount(amount) == 0:
            raise InvalidAmount("Redeem amount must be more than zero")
        self.registry.require(asset)

        balance = self.balance(from_account, asset)
        if amount > balance:
            raise ArithmeticUnderflow(
                f"Cannot redeem {amount} {asset} from {from_account}: balance is {balance}"
            )
        self._set_balance(from_account, asset, balance - amount)
        self.state.events.append(CollateralRedeemed(
            redeemed_from=from_account, redeemed_to=to_account, asset=asset, amount=amount,
        ))

        token = self.registry.token(asset)
        if not token.transfer(self.custodian, to_account, amount):
            raise TransferFailed(f"{asset} transfer to {to_account} failed")

    def _set_balance(self, account: Account, asset: AssetSymbol, amount: Wad) -> None:
        positions = self.state.collateral_deposited.setdefault(account, {})
        if amount:
            positions[asset] = amount
        else:
            positions.pop(asset, None)
            if not positions:
                del self.state.collateral_deposited[account]

    # ========================================================================
    # VALUATION (every price goes through the oracle guard)
    # ========================================================================

    def usd_value(self, asset: AssetSymbol, amount: Wad) -> Wad:
        feed = self.registry.feed(asset)
        price = self.oracle.latest_price(feed)
        return calculate_usd_value(price, feed.decimals, amount, self.precision)

    def token_amount_from_usd(self, asset: AssetSymbol, usd_amount: Wad) -> Wad:
        feed = self.registry.feed(asset)
        price = self.oracle.latest_price(feed)
        return calculate_token_amount_from_usd(price, feed.decimals, usd_amount, self.precision)

    def valuation_usd(self, account: Account) -> Wad:
        """
        Total USD value of account's collateral across every registered asset.

        Every asset's feed is read, including assets the account does not
        hold, so a stale feed fails the valuation of every account.
        """
        total = 0
        for asset in self.registry:
            total += self.usd_value(asset, self.balance(account, asset))
        return total

    def accounts(self) -> List[Account]:
        return list(self.state.collateral_deposited)


class DebtLedger:
    """Minted debt per account, mirrored by the debt token's supply."""

    def __init__(self, state: EngineState, dsc: DebtToken, custodian: Account):
        self.state = state
        self.dsc = dsc
        self.custodian = custodian

    def debt(self, account: Account) -> Wad:
        return self.state.dsc_minted.get(account, 0)

    def total_debt(self) -> Wad:
        return sum(self.state.dsc_minted.values())

    def accounts(self) -> List[Account]:
        return list(self.state.dsc_minted)

    def record_mint(self, account: Account, amount: Wad) -> None:
        """
        Increase account's recorded debt. No tokens move.

        Raises:
            InvalidAmount: If amount is zero
        """
        require_account(account)
        if require_amount(amount) == 0:
            raise InvalidAmount("Mint amount must be more than zero")
        self.state.dsc_minted[account] = self.debt(account) + amount

    def issue(self, account: Account, amount: Wad) -> None:
        """
        Ask the debt token to mint amount to account.

        Raises:
            MintFailed: If the debt token reports failure
        """
        if not self.dsc.mint(self.custodian, account, amount):
            raise MintFailed(f"Minting {amount} to {account} failed")

    def burn(self, amount: Wad, debtor: Account, payer: Account) -> None:
        """
        Cancel amount of debtor's debt with tokens pulled from payer.

        Raises:
            InvalidAmount: If amount is zero
            ArithmeticUnderflow: If amount exceeds debtor's debt
            TransferFailed: If the debt token reports a failed transfer_from
        """
        require_account(debtor, "debtor")
        require_account(payer, "payer")
        if require_amount(amount) == 0:
            raise InvalidAmount("Burn amount must be more than zero")

        debt = self.debt(debtor)
        if amount > debt:
            raise ArithmeticUnderflow(f"Cannot burn {amount} of {debtor}'s debt: debt is {debt}")
        if debt - amount:
            self.state.dsc_minted[debtor] = debt - amount
        else:
            del self.state.dsc_minted[debtor]

        if not self.dsc.transfer_from(self.custodian, payer, self.custodian, amount):
            raise TransferFailed(f"{self.dsc.symbol} transfer_from {payer} failed")
        self.dsc.burn(self.custodian, amount)

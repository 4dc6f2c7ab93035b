"""
token.py - Fungible token ledgers used as engine collaborators

Token is a minimal ERC20-style balance book: balances, allowances, total
supply, and snapshot()/restore() so that the engine can roll back the token
side of a failed operation. StableCoin is the engine's debt token: a Token
whose mint and burn are restricted to its owner.

Amounts are ints in base units. Transfers either return True or raise;
subclasses may return False to model a collaborator that reports failure
without raising, which the engine turns into TransferFailed / MintFailed.
"""

from __future__ import annotations
from typing import Dict, Tuple

from .core import (
    Account, Wad,
    InsufficientFunds, InsufficientAllowance, NotOwner, ZeroAddress,
    BurnAmountExceedsBalance,
    WAD_DECIMALS, ZERO_ADDRESS,
    require_account, require_amount,
)

# Allowance that is never decremented by transfer_from.
MAX_ALLOWANCE = 2 ** 256 - 1

TokenSnapshot = Tuple[Dict[Account, Wad], Dict[Tuple[Account, Account], Wad], Wad]


class Token:
    """
    Balance book of one fungible token.

    Example:
        weth = Token("WETH", "Wrapped Ether")
        weth.issue("alice", to_wei(10))
        weth.approve("alice", engine.address, to_wei(10))
    """

    def __init__(self, symbol: str, name: str, decimals: int = WAD_DECIMALS):
        if not symbol or not symbol.strip():
            raise ValueError("Token symbol cannot be empty")
        self.symbol = symbol
        self.name = name
        self.decimals = decimals
        self.balances: Dict[Account, Wad] = {}
        self.allowances: Dict[Tuple[Account, Account], Wad] = {}
        self._total_supply: Wad = 0

    # ========================================================================
    # READS
    # ========================================================================

    def balance_of(self, account: Account) -> Wad:
        """Return the balance of account (0 if it never held the token)."""
        return self.balances.get(account, 0)

    def total_supply(self) -> Wad:
        return self._total_supply

    def allowance(self, owner: Account, spender: Account) -> Wad:
        return self.allowances.get((owner, spender), 0)

    def holders(self) -> Dict[Account, Wad]:
        """Return all non-zero balances."""
        return {a: b for a, b in self.balances.items() if b}

    # ========================================================================
    # TRANSFERS
    # ========================================================================

    def approve(self, owner: Account, spender: Account, amount: Wad) -> bool:
        """Let spender move up to amount of owner's tokens."""
        require_account(owner, "owner")
        require_account(spender, "spender")
        self.allowances[(owner, spender)] = require_amount(amount)
        return True

    def transfer(self, sender: Account, to: Account, amount: Wad) -> bool:
        """
        Move amount from sender to to.

        Raises:
            InsufficientFunds: If sender's balance is below amount
        """
        self._move(sender, to, amount)
        return True

    def transfer_from(self, spender: Account, source: Account, to: Account, amount: Wad) -> bool:
        """
        Move amount from source to to on behalf of spender.

        Raises:
            InsufficientAllowance: If spender's allowance from source is below amount
            InsufficientFunds: If source's balance is below amount
        """
        current = self.allowance(source, spender)
        if current < amount:
            raise InsufficientAllowance(
                f"{self.symbol}: {spender} allowance from {source} is {current}, needs {amount}"
            )
        self._move(source, to, amount)
        if current != MAX_ALLOWANCE:
            self.allowances[(source, spender)] = current - amount
        return True

    def _move(self, source: Account, dest: Account, amount: Wad) -> None:
        require_account(source, "source")
        require_account(dest, "dest")
        require_amount(amount)
        balance = self.balance_of(source)
        if balance < amount:
            raise InsufficientFunds(f"{self.symbol}: {source} has {balance}, needs {amount}")
        self.balances[source] = balance - amount
        self.balances[dest] = self.balance_of(dest) + amount

    # ========================================================================
    # SUPPLY
    # ========================================================================

    def issue(self, to: Account, amount: Wad) -> None:
        """Create amount new tokens in to's balance (unrestricted)."""
        require_account(to, "to")
        require_amount(amount)
        self.balances[to] = self.balance_of(to) + amount
        self._total_supply += amount

    def destroy(self, holder: Account, amount: Wad) -> None:
        """Remove amount tokens from holder's balance (unrestricted)."""
        require_amount(amount)
        balance = self.balance_of(holder)
        if balance < amount:
            raise InsufficientFunds(f"{self.symbol}: {holder} has {balance}, cannot destroy {amount}")
        self.balances[holder] = balance - amount
        self._total_supply -= amount

    # ========================================================================
    # ROLLBACK SUPPORT
    # ========================================================================

    def snapshot(self) -> TokenSnapshot:
        """Capture balances, allowances and supply."""
        return dict(self.balances), dict(self.allowances), self._total_supply

    def restore(self, snapshot: TokenSnapshot) -> None:
        """Return to a state captured by snapshot()."""
        balances, allowances, total_supply = snapshot
        self.balances = dict(balances)
        self.allowances = dict(allowances)
        self._total_supply = total_supply

    def __repr__(self) -> str:
        return f"Token({self.symbol}, supply={self._total_supply}, holders={len(self.holders())})"


class StableCoin(Token):
    """
    The engine's debt token.

    Only the owner may mint or burn. The engine becomes the owner through
    transfer_ownership() so that every unit in circulation is backed by a
    recorded debt position.
    """

    def __init__(self, owner: Account, symbol: str = "DSC", name: str = "DecentralizedStableCoin"):
        super().__init__(symbol, name, WAD_DECIMALS)
        self.owner = require_account(owner, "owner")

    def _only_owner(self, caller: Account) -> None:
        if caller != self.owner:
            raise NotOwner(f"{caller} is not the owner of {self.symbol}")

    def transfer_ownership(self, caller: Account, new_owner: Account) -> None:
        self._only_owner(caller)
        self.owner = require_account(new_owner, "new_owner")

    def mint(self, caller: Account, to: Account, amount: Wad) -> bool:
        """
        Mint amount to `to`.

        Raises:
            NotOwner: If caller is not the owner
            ZeroAddress: If `to` is the zero address
            ValueError: If amount is not positive
        """
        self._only_owner(caller)
        if not to or to == ZERO_ADDRESS:
            raise ZeroAddress(f"{self.symbol}: cannot mint to the zero address")
        if require_amount(amount) == 0:
            raise ValueError("Mint amount must be more than zero")
        self.issue(to, amount)
        return True

    def burn(self, caller: Account, amount: Wad) -> None:
        """
        Burn amount from the caller's own balance.

        Raises:
            NotOwner: If caller is not the owner
            BurnAmountExceedsBalance: If caller holds less than amount
            ValueError: If amount is not positive
        """
        self._only_owner(caller)
        if require_amount(amount) == 0:
            raise ValueError("Burn amount must be more than zero")
        if self.balance_of(caller) < amount:
            raise BurnAmountExceedsBalance(
                f"{self.symbol}: {caller} holds {self.balance_of(caller)}, cannot burn {amount}"
            )
        self.destroy(caller, amount)

    def snapshot(self) -> Tuple[TokenSnapshot, Account]:
        return super().snapshot(), self.owner

    def restore(self, snapshot: Tuple[TokenSnapshot, Account]) -> None:
        token_snapshot, owner = snapshot
        super().restore(token_snapshot)
        self.owner = owner

    def __repr__(self) -> str:
        return f"StableCoin({self.symbol}, supply={self._total_supply}, owner={self.owner})"

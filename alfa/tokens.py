"""
ALFA Protocol - Fungible Tokens

Minimal ERC-20 component used for payment assets (USDT, USDC, project
tokens) on the in-process ledger.
"""

from typing import Dict, Optional, Tuple

from .contract import Contract, transactional
from .errors import TransferFailed
from .game_types import ZERO_ADDRESS, to_address
from .ledger import Ledger


class Token(Contract):
    """
    ERC-20 style fungible token.

    transfer/transfer_from revert on insufficient balance or allowance
    and return True otherwise. mint() is an open faucet.
    """

    def __init__(self, ledger: Ledger, name: str, symbol: str, decimals: int = 18,
                 address: Optional[str] = None):
        super().__init__(ledger, symbol, address=address)
        self.name = name
        self.symbol = symbol
        self.decimals = decimals
        self.total_supply = 0
        self.balances: Dict[str, int] = {}
        self.allowances: Dict[Tuple[str, str], int] = {}

    def balance_of(self, account: str) -> int:
        return self.balances.get(to_address(account), 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self.allowances.get((to_address(owner), to_address(spender)), 0)

    @transactional
    def approve(self, owner: str, spender: str, amount: int) -> bool:
        owner, spender = to_address(owner), to_address(spender)
        self.allowances[(owner, spender)] = amount
        self._emit("Approval", owner=owner, spender=spender, value=amount)
        return True

    @transactional
    def transfer(self, sender: str, to: str, amount: int) -> bool:
        self._move(to_address(sender), to_address(to), amount)
        return True

    @transactional
    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> bool:
        spender, owner = to_address(spender), to_address(owner)
        allowed = self.allowances.get((owner, spender), 0)
        if allowed < amount:
            raise TransferFailed(f"{self.symbol}: insufficient allowance ({allowed} < {amount})")
        self.allowances[(owner, spender)] = allowed - amount
        self._move(owner, to_address(to), amount)
        return True

    @transactional
    def mint(self, to: str, amount: int):
        to = to_address(to)
        self.balances[to] = self.balances.get(to, 0) + amount
        self.total_supply += amount
        self._emit("Transfer", sender=ZERO_ADDRESS, to=to, value=amount)

    def _move(self, sender: str, to: str, amount: int):
        if amount < 0:
            raise ValueError(f"Amount must be non-negative, got {amount}")
        balance = self.balances.get(sender, 0)
        if balance < amount:
            raise TransferFailed(f"{self.symbol}: transfer amount {amount} exceeds balance {balance}")
        self.balances[sender] = balance - amount
        self.balances[to] = self.balances.get(to, 0) + amount
        self._emit("Transfer", sender=sender, to=to, value=amount)

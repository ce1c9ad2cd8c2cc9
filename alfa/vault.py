"""
ALFA Protocol - Vault

Multi-asset treasury with pro-rata redemption rights.

Timeline:
    [deploy, unlock_date)              sale window (Store/Forge open)
    [unlock_date, redeem_until]        redemption window
    (redeem_until, ...)                admin may withdraw allowed assets

Shares:
    share(holder) = holder's master-type count * 100% / master-type supply

Redemption pays balance(asset) // supply for every allowed asset, using
the supply at the moment of the call, then burns the redeemed Key. As
supply shrinks later redeemers get larger slices; truncation dust stays
in the Vault.
"""

import logging
from typing import List, Optional, Sequence

from .catalog import MASTER_KEY_TYPE
from .contract import DEFAULT_ADMIN_ROLE, Contract, non_reentrant, transactional
from .errors import AdminError, PreconditionFailed
from .game_types import PERCENT_PRECISION, VaultToken, to_address
from .keys import KeyCollection
from .ledger import Ledger
from .oracle import PriceOracle

log = logging.getLogger(__name__)


class Vault(Contract):
    """
    Store sales sink and redemption pool.

    Args:
        ledger: Execution environment
        deployer: Admin account
        key: Key collection (needs BURNER_ROLE there)
        tokens: Initially allowed assets (NATIVE for the native coin)
        unlock_date: End of the sale window, start of redemption
        redeem_until: Last second of the redemption window
        oracle: Used only for valuation queries
        share_type: Master Key type
    """

    def __init__(self, ledger: Ledger, deployer: str, key: KeyCollection, tokens: Sequence[str],
                 unlock_date: int, redeem_until: int, oracle: Optional[PriceOracle] = None,
                 share_type: int = MASTER_KEY_TYPE):
        super().__init__(ledger, "ALFAVault", deployer)
        self.key = key
        self.oracle = oracle
        self.allowed_tokens: List[str] = []
        for token in tokens:
            self._add_token(to_address(token))
        self.share_type = share_type
        self.unlock_date = 0
        self.redeem_until = 0
        self._set_dates(unlock_date, redeem_until)

    def receive(self, sender: str, amount: int):
        """Accept native coin (sales, forwarded refunds)."""
        log.debug(f"Vault received {amount} native from {sender}")

    # ═══════════════════════════════════════════════════════════════════════
    # QUERIES
    # ═══════════════════════════════════════════════════════════════════════

    def is_token_allowed(self, token: str) -> bool:
        return to_address(token) in self.allowed_tokens

    def is_sale_open(self) -> bool:
        return self.now < self.unlock_date

    def is_redeem_open(self) -> bool:
        return self.unlock_date <= self.now <= self.redeem_until

    def get_vault_tokens(self) -> List[VaultToken]:
        """Current balance of every allowed asset, in allowlist order."""
        return [VaultToken(token=t, amount=self._balance(t)) for t in self.allowed_tokens]

    def get_vault_value(self) -> int:
        """
        Total holdings valued in the reference unit.

        Raises:
            PreconditionFailed: If no oracle is configured
            OracleError: If an asset cannot be quoted
        """
        if self.oracle is None:
            raise PreconditionFailed("Vault has no price oracle")
        return sum(self.oracle.quote_from_asset(t.token, t.amount) for t in self.get_vault_tokens())

    def get_total_shares(self) -> int:
        return self.key.type_count(self.share_type)

    def get_holder_share(self, holder: str) -> int:
        """Holder's share in PERCENT_PRECISION units (0 when supply is 0)."""
        total = self.get_total_shares()
        if total == 0:
            return 0
        return self.key.holder_type_count(holder, self.share_type) * PERCENT_PRECISION // total

    def get_redeem_amounts(self) -> List[VaultToken]:
        """What a single master Key redeems for right now."""
        total = self.get_total_shares()
        if total == 0:
            return [VaultToken(token=t, amount=0) for t in self.allowed_tokens]
        return [VaultToken(token=t, amount=self._balance(t) // total) for t in self.allowed_tokens]

    # ═══════════════════════════════════════════════════════════════════════
    # REDEMPTION
    # ═══════════════════════════════════════════════════════════════════════

    @non_reentrant
    def redeem(self, sender: str, token_id: int) -> List[VaultToken]:
        """
        Redeem one master Key for its slice of every allowed asset.

        The Key is burned before any asset leaves the Vault.

        Args:
            sender: Must own token_id
            token_id: Key instance of the master type

        Returns:
            Amounts paid, one entry per allowed asset

        Raises:
            PreconditionFailed: Wrong owner, wrong type, or outside the window
        """
        sender = to_address(sender)
        if self.key.owner_of(token_id) != sender:
            raise PreconditionFailed(f"Key {token_id} is not owned by {sender}")
        type_id = self.key.token_type(token_id)
        if type_id != self.share_type:
            raise PreconditionFailed(f"Key {token_id} has type {type_id}, only type {self.share_type} redeems")
        if not self.is_redeem_open():
            raise PreconditionFailed(
                f"Redemption is open from {self.unlock_date} to {self.redeem_until}, now {self.now}"
            )

        amounts = self.get_redeem_amounts()
        self.key.burn(self.address, sender, token_id)

        for entry in amounts:
            if entry.amount > 0:
                self._pay(entry.token, sender, entry.amount)

        self._emit("Redeemed", holder=sender, token_id=token_id,
                   amounts=[entry.to_dict() for entry in amounts])
        log.info(f"Vault: {sender} redeemed key #{token_id} for "
                 + ", ".join(f"{e.amount} {e.token}" for e in amounts))
        return amounts

    # ═══════════════════════════════════════════════════════════════════════
    # ADMIN
    # ═══════════════════════════════════════════════════════════════════════

    @transactional
    def add_token(self, sender: str, token: str):
        self._check_role(DEFAULT_ADMIN_ROLE, sender)
        self._add_token(to_address(token))

    def _add_token(self, token: str):
        if token in self.allowed_tokens:
            raise AdminError("Token is already allowed")
        self.allowed_tokens.append(token)
        self._emit("TokenAdded", token=token)
        log.info(f"Vault: allowed {token}")

    @transactional
    def remove_token(self, sender: str, token: str):
        self._check_role(DEFAULT_ADMIN_ROLE, sender)
        token = to_address(token)
        if token not in self.allowed_tokens:
            raise AdminError("Token is not allowed")
        self.allowed_tokens.remove(token)
        self._emit("TokenRemoved", token=token)
        log.info(f"Vault: disallowed {token}")

    @transactional
    def set_share_type(self, sender: str, type_id: int):
        self._check_role(DEFAULT_ADMIN_ROLE, sender)
        self.key.get_type(type_id)
        self.share_type = type_id
        self._emit("ShareTypeChanged", type_id=type_id)
        log.info(f"Vault: master type set to {type_id}")

    @transactional
    def set_dates(self, sender: str, unlock_date: int, redeem_until: int):
        self._check_role(DEFAULT_ADMIN_ROLE, sender)
        self._set_dates(unlock_date, redeem_until)

    def _set_dates(self, unlock_date: int, redeem_until: int):
        if unlock_date > redeem_until:
            raise AdminError(f"Unlock date {unlock_date} is after redeem deadline {redeem_until}")
        self.unlock_date = unlock_date
        self.redeem_until = redeem_until
        self._emit("DatesChanged", unlock_date=unlock_date, redeem_until=redeem_until)
        log.info(f"Vault: unlock {unlock_date}, redeem until {redeem_until}")

    @transactional
    def withdraw(self, sender: str, token: str, amount: int, to: Optional[str] = None):
        """
        Admin withdrawal.

        Allowed assets stay locked until the redemption window has
        closed; any other asset can be withdrawn at any time.
        """
        self._check_role(DEFAULT_ADMIN_ROLE, sender)
        token = to_address(token)
        to = to_address(to or sender)
        if token in self.allowed_tokens and self.now <= self.redeem_until:
            raise PreconditionFailed(f"Token {token} is locked until {self.redeem_until}")
        if amount <= 0:
            raise PreconditionFailed("Withdraw amount must be positive")
        self._pay(token, to, amount)
        self._emit("Withdrawn", token=token, to=to, amount=amount)
        log.info(f"Vault: withdrew {amount} {token} to {to}")

"""
ALFA Protocol - Contract Base

Shared plumbing for every protocol component: address registration,
role-based access control, events, guarded entry points and asset
movement helpers.
"""

import functools
import logging
from typing import Dict, Iterable, List, Optional, Set

from web3 import Web3

from .errors import AccessDenied, ProtocolError, ReentrancyError, TransferFailed
from .game_types import NATIVE, to_address
from .ledger import Ledger

log = logging.getLogger(__name__)


def role_id(name: str) -> str:
    """Role identifier: keccak-256 of the role name."""
    return Web3.to_hex(Web3.keccak(text=name))


DEFAULT_ADMIN_ROLE = "0x" + "00" * 32
MINTER_ROLE = role_id("MINTER_ROLE")
BURNER_ROLE = role_id("BURNER_ROLE")
CONNECTOR_ROLE = role_id("CONNECTOR_ROLE")

ROLE_NAMES = {
    DEFAULT_ADMIN_ROLE: "DEFAULT_ADMIN_ROLE",
    MINTER_ROLE: "MINTER_ROLE",
    BURNER_ROLE: "BURNER_ROLE",
    CONNECTOR_ROLE: "CONNECTOR_ROLE",
}


def transactional(method):
    """Run a mutating entry point inside a ledger transaction."""
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self.ledger.atomic():
            return method(self, *args, **kwargs)
    return wrapper


def non_reentrant(method):
    """Transactional entry point that refuses nested entry on the same component."""
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self.ledger.atomic():
            if self._locked:
                raise ReentrancyError(f"{self.label}.{method.__name__}")
            self._locked = True
            try:
                return method(self, *args, **kwargs)
            finally:
                self._locked = False
    return wrapper


class Contract:
    """
    Base class for ledger components.

    Every mutating method takes the calling account as its first
    argument (sender). Components calling each other pass their own
    address as sender.
    """

    # Roles granted to the deployer besides DEFAULT_ADMIN_ROLE
    DEPLOYER_ROLES: tuple = ()

    def __init__(self, ledger: Ledger, label: str, deployer: Optional[str] = None,
                 address: Optional[str] = None):
        self.ledger = ledger
        self.label = label
        self._roles: Dict[str, Set[str]] = {}
        self._locked = False
        self.address = ledger.register(self, label, address)
        if deployer is not None:
            deployer = to_address(deployer)
            for role in (DEFAULT_ADMIN_ROLE, *self.DEPLOYER_ROLES):
                self._roles.setdefault(role, set()).add(deployer)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.label} at {self.address}>"

    @property
    def now(self) -> int:
        return self.ledger.timestamp

    def _emit(self, event: str, **args):
        self.ledger.emit(self.address, event, args)

    # ═══════════════════════════════════════════════════════════════════════
    # ACCESS CONTROL
    # ═══════════════════════════════════════════════════════════════════════

    def has_role(self, role: str, account: str) -> bool:
        return to_address(account) in self._roles.get(role, set())

    def role_members(self, role: str) -> List[str]:
        return sorted(self._roles.get(role, set()))

    @transactional
    def grant_role(self, sender: str, role: str, account: str):
        self._check_role(DEFAULT_ADMIN_ROLE, sender)
        account = to_address(account)
        if account not in self._roles.setdefault(role, set()):
            self._roles[role].add(account)
            self._emit("RoleGranted", role=role, account=account, sender=to_address(sender))
            log.info(f"{self.label}: granted {ROLE_NAMES.get(role, role)} to {account}")

    @transactional
    def revoke_role(self, sender: str, role: str, account: str):
        self._check_role(DEFAULT_ADMIN_ROLE, sender)
        account = to_address(account)
        if account in self._roles.get(role, set()):
            self._roles[role].discard(account)
            self._emit("RoleRevoked", role=role, account=account, sender=to_address(sender))
            log.info(f"{self.label}: revoked {ROLE_NAMES.get(role, role)} from {account}")

    def _check_role(self, role: str, account: str):
        if not self.has_role(role, account):
            raise AccessDenied(to_address(account), ROLE_NAMES.get(role, role))

    def _check_any_role(self, roles: Iterable[str], account: str):
        roles = list(roles)
        if not any(self.has_role(role, account) for role in roles):
            raise AccessDenied(to_address(account), " or ".join(ROLE_NAMES.get(r, r) for r in roles))

    # ═══════════════════════════════════════════════════════════════════════
    # ASSET MOVEMENT
    # ═══════════════════════════════════════════════════════════════════════

    def _balance(self, asset: str) -> int:
        return self.ledger.balance_of(asset, self.address)

    def _collect(self, asset: str, payer: str, amount: int):
        """Pull a token payment from payer into this component. Mandatory."""
        if not self.ledger.token(asset).transfer_from(self.address, payer, self.address, amount):
            raise TransferFailed(f"Token {asset} transferFrom {payer} returned false")

    def _pay(self, asset: str, to: str, amount: int):
        """Send native coin or tokens from this component. Mandatory."""
        if to_address(asset) == NATIVE:
            self.ledger.transfer_native(self.address, to, amount)
        elif not self.ledger.token(asset).transfer(self.address, to, amount):
            raise TransferFailed(f"Token {asset} transfer to {to} returned false")

    def _try_pay(self, asset: str, to: str, amount: int) -> bool:
        """
        Best-effort transfer.

        Runs in a savepoint so a rejecting recipient leaves no partial
        state. Returns False instead of raising.
        """
        try:
            with self.ledger.atomic():
                self._pay(asset, to, amount)
            return True
        except ProtocolError as e:
            log.warning(f"{self.label}: best-effort transfer of {amount} {asset} to {to} failed: {e}")
            return False

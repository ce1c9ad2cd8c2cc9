"""
ALFA Protocol - Typed Assets

Non-fungible collections where every instance carries an immutable type.

Bookkeeping kept in lockstep with ownership:
  - per-type global count (instances in existence)
  - per-holder per-type count
  - per-holder instance id set

Every ownership change runs _update(), which always decrements the source
side before incrementing the destination side. Mint has no source side,
burn has no destination side.
"""

import logging
from typing import Dict, List, Optional, Sequence, Set

from .contract import BURNER_ROLE, DEFAULT_ADMIN_ROLE, MINTER_ROLE, Contract, transactional
from .drops import validate_drops
from .errors import AdminError, PreconditionFailed
from .game_types import ZERO_ADDRESS, AssetType, Drop, to_address
from .ledger import Ledger

log = logging.getLogger(__name__)


class TypedAsset(Contract):
    """
    Typed non-fungible collection.

    Type ids and instance ids are both append-only sequences starting at 1.
    Removed type ids are never reused.
    """

    DEPLOYER_ROLES = (MINTER_ROLE, BURNER_ROLE)

    def __init__(self, ledger: Ledger, label: str, deployer: str):
        super().__init__(ledger, label, deployer)
        self.types: Dict[int, AssetType] = {}
        self.token_types: Dict[int, int] = {}
        self.owners: Dict[int, str] = {}
        self.holder_counts: Dict[str, Dict[int, int]] = {}
        self.holder_tokens: Dict[str, Set[int]] = {}
        self.token_approvals: Dict[int, str] = {}
        self.operator_approvals: Dict[str, Set[str]] = {}
        self._next_type_id = 1
        self._next_token_id = 1

    # ═══════════════════════════════════════════════════════════════════════
    # TYPE QUERIES
    # ═══════════════════════════════════════════════════════════════════════

    def get_types(self) -> List[AssetType]:
        return [self.types[t] for t in sorted(self.types)]

    def get_type(self, type_id: int) -> AssetType:
        """
        Raises:
            PreconditionFailed: If the type does not exist
        """
        asset_type = self.types.get(type_id)
        if asset_type is None:
            raise PreconditionFailed(f"{self.label}: unknown type {type_id}")
        return asset_type

    def has_type(self, type_id: int) -> bool:
        return type_id in self.types

    def type_count(self, type_id: int) -> int:
        """Instances of type_id currently in existence."""
        asset_type = self.types.get(type_id)
        return asset_type.count if asset_type else 0

    def max_type_id(self) -> int:
        return max(self.types) if self.types else 0

    def get_drops(self, type_id: int) -> List[Drop]:
        return list(self.get_type(type_id).drops)

    # ═══════════════════════════════════════════════════════════════════════
    # INSTANCE QUERIES
    # ═══════════════════════════════════════════════════════════════════════

    def owner_of(self, token_id: int) -> str:
        """
        Raises:
            PreconditionFailed: If the instance does not exist
        """
        owner = self.owners.get(token_id)
        if owner is None:
            raise PreconditionFailed(f"{self.label}: token {token_id} does not exist")
        return owner

    def exists(self, token_id: int) -> bool:
        return token_id in self.owners

    def token_type(self, token_id: int) -> int:
        self.owner_of(token_id)
        return self.token_types[token_id]

    def balance_of(self, holder: str) -> int:
        return len(self.holder_tokens.get(to_address(holder), set()))

    def holder_type_count(self, holder: str, type_id: int) -> int:
        return self.holder_counts.get(to_address(holder), {}).get(type_id, 0)

    def get_holder_amounts(self, holder: str) -> List[int]:
        """Per-type counts for holder, in type id order."""
        counts = self.holder_counts.get(to_address(holder), {})
        return [counts.get(t, 0) for t in sorted(self.types)]

    def get_holder_tokens(self, holder: str) -> List[int]:
        return sorted(self.holder_tokens.get(to_address(holder), set()))

    # ═══════════════════════════════════════════════════════════════════════
    # TYPE ADMINISTRATION
    # ═══════════════════════════════════════════════════════════════════════

    @transactional
    def add_type(self, sender: str, name: str, uri: str, drops: Optional[Sequence[Drop]] = None) -> int:
        """
        Append a new type.

        Returns:
            New type id
        """
        self._check_role(DEFAULT_ADMIN_ROLE, sender)
        type_id = self._next_type_id
        self._next_type_id += 1
        self.types[type_id] = AssetType(type_id=type_id, name=name, uri=uri)
        self._emit("TypeAdded", type_id=type_id, name=name, uri=uri)
        if drops:
            self._set_drops(type_id, list(drops))
        log.info(f"{self.label}: added type {type_id} '{name}'")
        return type_id

    @transactional
    def update_type(self, sender: str, type_id: int, name: str, uri: str):
        self._check_role(DEFAULT_ADMIN_ROLE, sender)
        asset_type = self.get_type(type_id)
        asset_type.name = name
        asset_type.uri = uri
        self._emit("TypeUpdated", type_id=type_id, name=name, uri=uri)

    @transactional
    def remove_type(self, sender: str, type_id: int):
        """
        Raises:
            AdminError: If instances of the type still exist
        """
        self._check_role(DEFAULT_ADMIN_ROLE, sender)
        asset_type = self.get_type(type_id)
        if asset_type.count != 0:
            raise AdminError(f"{self.label}: type {type_id} still has {asset_type.count} instances")
        del self.types[type_id]
        self._emit("TypeRemoved", type_id=type_id)
        log.info(f"{self.label}: removed type {type_id}")

    @transactional
    def set_drops(self, sender: str, type_id: int, drops: Sequence[Drop]):
        self._check_role(DEFAULT_ADMIN_ROLE, sender)
        self._set_drops(type_id, list(drops))

    def _set_drops(self, type_id: int, drops: List[Drop]):
        asset_type = self.get_type(type_id)
        validate_drops(drops)
        target = self._drop_target()
        for index, drop in enumerate(drops[1:], start=1):
            if not target.has_type(drop.result_type_id):
                raise AdminError(
                    f"{self.label}: drop {index} of type {type_id} points to unknown "
                    f"{target.label} type {drop.result_type_id}"
                )
        asset_type.drops = drops
        self._emit("DropsChanged", type_id=type_id, drops=[d.to_dict() for d in drops])

    def _drop_target(self) -> "TypedAsset":
        """Collection that drop result types refer to."""
        return self

    # ═══════════════════════════════════════════════════════════════════════
    # MINT / BURN / TRANSFER
    # ═══════════════════════════════════════════════════════════════════════

    @transactional
    def mint(self, sender: str, holder: str, type_id: int) -> int:
        """
        Mint one instance of type_id to holder.

        Returns:
            New instance id
        """
        self._check_role(MINTER_ROLE, sender)
        return self._mint(to_address(holder), type_id)

    @transactional
    def burn(self, sender: str, holder: str, token_id: int):
        """
        Burn holder's instance.

        Raises:
            PreconditionFailed: If holder is not the current owner
        """
        self._check_role(BURNER_ROLE, sender)
        self._burn(to_address(holder), token_id)

    @transactional
    def approve(self, sender: str, to: str, token_id: int):
        sender = to_address(sender)
        owner = self.owner_of(token_id)
        if sender != owner and sender not in self.operator_approvals.get(owner, set()):
            raise PreconditionFailed(f"{self.label}: caller is not owner nor approved for all")
        self.token_approvals[token_id] = to_address(to)
        self._emit("Approval", owner=owner, approved=to_address(to), token_id=token_id)

    @transactional
    def set_approval_for_all(self, sender: str, operator: str, approved: bool):
        sender, operator = to_address(sender), to_address(operator)
        if sender == operator:
            raise PreconditionFailed(f"{self.label}: approve to caller")
        operators = self.operator_approvals.setdefault(sender, set())
        if approved:
            operators.add(operator)
        else:
            operators.discard(operator)
        self._emit("ApprovalForAll", owner=sender, operator=operator, approved=approved)

    def get_approved(self, token_id: int) -> str:
        self.owner_of(token_id)
        return self.token_approvals.get(token_id, ZERO_ADDRESS)

    def is_approved_for_all(self, owner: str, operator: str) -> bool:
        return to_address(operator) in self.operator_approvals.get(to_address(owner), set())

    @transactional
    def transfer_from(self, sender: str, from_: str, to: str, token_id: int):
        sender, from_, to = to_address(sender), to_address(from_), to_address(to)
        owner = self.owner_of(token_id)
        if owner != from_:
            raise PreconditionFailed(f"{self.label}: transfer from incorrect owner")
        if to == ZERO_ADDRESS:
            raise PreconditionFailed(f"{self.label}: transfer to the zero address")
        if not (sender == owner
                or self.token_approvals.get(token_id) == sender
                or sender in self.operator_approvals.get(owner, set())):
            raise PreconditionFailed(f"{self.label}: caller is not token owner or approved")
        self._update(from_, to, token_id)

    def _mint(self, holder: str, type_id: int) -> int:
        if holder == ZERO_ADDRESS:
            raise PreconditionFailed(f"{self.label}: mint to the zero address")
        self.get_type(type_id)
        token_id = self._next_token_id
        self._next_token_id += 1
        self.token_types[token_id] = type_id
        self._update(ZERO_ADDRESS, holder, token_id)
        self._emit("TokenMinted", holder=holder, type_id=type_id, token_id=token_id)
        log.debug(f"{self.label}: minted #{token_id} (type {type_id}) to {holder}")
        return token_id

    def _burn(self, holder: str, token_id: int):
        owner = self.owner_of(token_id)
        if owner != holder:
            raise PreconditionFailed(f"{self.label}: token {token_id} is not owned by {holder}")
        type_id = self.token_types[token_id]
        self._update(holder, ZERO_ADDRESS, token_id)
        del self.token_types[token_id]
        self._emit("TokenBurned", holder=holder, type_id=type_id, token_id=token_id)
        log.debug(f"{self.label}: burned #{token_id} (type {type_id}) of {holder}")

    def _update(self, from_: str, to: str, token_id: int):
        type_id = self.token_types[token_id]
        asset_type = self.types.get(type_id)
        self.token_approvals.pop(token_id, None)

        if from_ == ZERO_ADDRESS:
            asset_type.count += 1
        else:
            self.holder_counts[from_][type_id] -= 1
            self.holder_tokens[from_].discard(token_id)
            del self.owners[token_id]

        if to == ZERO_ADDRESS:
            asset_type.count -= 1
        else:
            self.holder_counts.setdefault(to, {})
            self.holder_counts[to][type_id] = self.holder_counts[to].get(type_id, 0) + 1
            self.holder_tokens.setdefault(to, set()).add(token_id)
            self.owners[token_id] = to

        self._emit("Transfer", sender=from_, to=to, token_id=token_id)

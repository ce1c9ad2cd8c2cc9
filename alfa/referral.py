"""
ALFA Protocol - Referral Tree

Parent/child links between participants plus level-scaled payout
percentages.

Rules:
  - A participant has at most one parent and any number of children
  - addRelation replaces an existing link, it never appends a second one
  - Chain walks stop after the configured number of levels, so even a
    cyclic link set cannot cause unbounded traversal
  - Percentages are independent of who is linked to whom
"""

import logging
from typing import Dict, List, Optional, Sequence, Set

from .contract import CONNECTOR_ROLE, DEFAULT_ADMIN_ROLE, Contract, transactional
from .errors import AdminError, PreconditionFailed
from .game_types import PERCENT_PRECISION, ZERO_ADDRESS, ReferralEntry, to_address
from .ledger import Ledger

log = logging.getLogger(__name__)

# 8%, 4%, 2%, 1%, 1% for levels 1..5
DEFAULT_PERCENTS: List[int] = [80_000, 40_000, 20_000, 10_000, 10_000]


class ReferralTree(Contract):
    """
    Referral links and per-level percentages.

    Links are written by CONNECTOR_ROLE holders (Store, Forge) on behalf
    of buyers, or directly by the admin.
    """

    DEPLOYER_ROLES = (CONNECTOR_ROLE,)

    def __init__(self, ledger: Ledger, deployer: str, percents: Optional[Sequence[int]] = None):
        super().__init__(ledger, "ALFAReferral", deployer)
        self.parents: Dict[str, str] = {}
        self.children: Dict[str, Set[str]] = {}
        self.percents: List[int] = []
        self._set_percents(list(DEFAULT_PERCENTS if percents is None else percents))

    # ═══════════════════════════════════════════════════════════════════════
    # QUERIES
    # ═══════════════════════════════════════════════════════════════════════

    @property
    def levels(self) -> int:
        return len(self.percents)

    def get_percents(self) -> List[int]:
        return list(self.percents)

    def get_parent(self, child: str) -> str:
        return self.parents.get(to_address(child), ZERO_ADDRESS)

    def get_children(self, parent: str) -> List[str]:
        return sorted(self.children.get(to_address(parent), set()))

    def get_referral_percents(self, child: str) -> List[ReferralEntry]:
        """
        Payout chain for child.

        Always one entry per configured level. Entries past the end of
        the actual chain carry ZERO_ADDRESS and the level's percentage.
        """
        chain = []
        current = to_address(child)
        for percents in self.percents:
            current = self.parents.get(current, ZERO_ADDRESS)
            chain.append(ReferralEntry(parent=current, percents=percents))
        return chain

    # ═══════════════════════════════════════════════════════════════════════
    # LINKS
    # ═══════════════════════════════════════════════════════════════════════

    @transactional
    def add_relation(self, sender: str, parent: str, child: str):
        """
        Link child under parent, replacing child's previous parent.

        Raises:
            AccessDenied: If sender is neither connector nor admin
            PreconditionFailed: On zero addresses or a self-link
        """
        self._check_any_role((CONNECTOR_ROLE, DEFAULT_ADMIN_ROLE), sender)
        self._add_relation(to_address(parent), to_address(child))

    @transactional
    def set_sequence(self, sender: str, sequence: Sequence[str]) -> int:
        """
        Link an ordered list [participant, parent, grandparent, ...].

        Consecutive pairs are linked until a participant that already has
        a parent is reached, a self-link is found, or the list ends.
        Already-linked participants are never overwritten here.

        Args:
            sender: Connector or admin account
            sequence: Acting participant followed by proposed ancestors

        Returns:
            Number of links written

        Raises:
            PreconditionFailed: If sequence is empty or longer than levels + 1
        """
        self._check_any_role((CONNECTOR_ROLE, DEFAULT_ADMIN_ROLE), sender)
        if not sequence:
            raise PreconditionFailed("Referral sequence is empty")
        if len(sequence) > self.levels + 1:
            raise PreconditionFailed(
                f"Referral sequence too long: {len(sequence)} > {self.levels + 1}"
            )
        sequence = [to_address(a) for a in sequence]
        linked = 0
        for child, parent in zip(sequence, sequence[1:]):
            if child == parent or child in self.parents:
                break
            self._add_relation(parent, child)
            linked += 1
        return linked

    def _add_relation(self, parent: str, child: str):
        if parent == ZERO_ADDRESS or child == ZERO_ADDRESS:
            raise PreconditionFailed("Zero address cannot be linked")
        if parent == child:
            raise PreconditionFailed("Participant cannot refer itself")
        previous = self.parents.get(child)
        if previous == parent:
            return
        if previous is not None:
            self.children[previous].discard(child)
            self._emit("RelationRemoved", parent=previous, child=child)
        self.parents[child] = parent
        self.children.setdefault(parent, set()).add(child)
        self._emit("RelationAdded", parent=parent, child=child)
        log.info(f"Referral link {child} -> {parent}" + (f" (was {previous})" if previous else ""))

    # ═══════════════════════════════════════════════════════════════════════
    # PERCENTAGES
    # ═══════════════════════════════════════════════════════════════════════

    @transactional
    def set_percents(self, sender: str, percents: Sequence[int]):
        """
        Replace per-level percentages (index 0 = nearest parent).

        Raises:
            AdminError: If empty, negative, or summing past 100%
        """
        self._check_role(DEFAULT_ADMIN_ROLE, sender)
        self._set_percents(list(percents))

    def _set_percents(self, percents: List[int]):
        if not percents:
            raise AdminError("At least one referral level is required")
        if any(p < 0 for p in percents):
            raise AdminError("Referral percents must be non-negative")
        if sum(percents) > PERCENT_PRECISION:
            raise AdminError(f"Referral percents sum {sum(percents)} exceeds {PERCENT_PRECISION}")
        self.percents = percents
        self._emit("PercentsChanged", percents=list(percents))
        log.info(f"Referral percents set to {percents}")

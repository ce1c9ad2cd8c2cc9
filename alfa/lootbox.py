"""
ALFA Protocol - Lootbox Collection

Lootboxes are sold by the Store. Opening one rolls its type's drop
table, mints the resulting Key type to the opener (nothing for index 0)
and burns the box.
"""

import logging
from typing import Optional

from .contract import DEFAULT_ADMIN_ROLE, non_reentrant, transactional
from .drops import BlockRandomizer, Randomizer, resolve_drop
from .errors import PreconditionFailed
from .game_types import DropOutcome, to_address
from .keys import KeyCollection
from .ledger import Ledger
from .typed_asset import TypedAsset

log = logging.getLogger(__name__)


class LootboxCollection(TypedAsset):
    """
    Typed Lootbox collection.

    Drop results refer to Key types; this collection needs MINTER_ROLE
    on the Key collection.
    """

    def __init__(self, ledger: Ledger, deployer: str, key: KeyCollection,
                 randomizer: Optional[Randomizer] = None):
        self.key = key
        self.randomizer = randomizer or BlockRandomizer()
        self._roll_nonce = 0
        super().__init__(ledger, "ALFALootbox", deployer)

    def _drop_target(self) -> TypedAsset:
        return self.key

    def roll(self, type_id: int) -> DropOutcome:
        """Draw against type_id's drop table and advance the roll counter."""
        drops = self.get_type(type_id).drops
        self._roll_nonce += 1
        draw = self.randomizer.draw(self.ledger, self.address, self._roll_nonce)
        return resolve_drop(drops, draw)

    @transactional
    def set_randomizer(self, sender: str, randomizer: Randomizer):
        self._check_role(DEFAULT_ADMIN_ROLE, sender)
        self.randomizer = randomizer

    @non_reentrant
    def open(self, sender: str, token_id: int) -> Optional[int]:
        """
        Open a lootbox.

        Args:
            sender: Must own token_id
            token_id: Lootbox instance

        Returns:
            Minted Key instance id, or None if the roll was empty

        Raises:
            PreconditionFailed: If sender does not own the box
        """
        sender = to_address(sender)
        if self.owner_of(token_id) != sender:
            raise PreconditionFailed(f"{self.label}: token {token_id} is not owned by {sender}")

        type_id = self.token_types[token_id]
        outcome = self.roll(type_id)
        self._emit("DropRolled", holder=sender, type_id=type_id, token_id=token_id,
                   index=outcome.index, result_type_id=outcome.type_id)

        key_id = None
        if not outcome.is_empty:
            key_id = self.key.mint(self.address, sender, outcome.type_id)
        self._burn(sender, token_id)

        log.info(f"Lootbox #{token_id} (type {type_id}) opened by {sender}: "
                 + (f"key #{key_id} (type {outcome.type_id})" if key_id else "nothing"))
        return key_id

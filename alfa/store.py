"""
ALFA Protocol - Store

Sells Lootbox instances for native coin or Vault-allowed tokens.

Purchase flow:
    1. Checks: count > 0, sale window open, known type with a price,
       payment asset allowed by the Vault
    2. Extend the buyer's referral chain (only if parents were given)
    3. price = quote(unit price, asset) * count
    4. Collect payment (typed insufficiency errors)
    5. Distribute: referrals, team, Vault (capped by vault_share)
    6. Mint count boxes to the buyer
    7. Refund native overpayment (forwarded to the Vault on failure)
"""

import logging
from typing import Dict, List, Optional, Sequence

from .catalog import STORE_PRICES, STORE_VAULT_SHARE
from .contract import DEFAULT_ADMIN_ROLE, Contract, non_reentrant, transactional
from .distributor import collect_payment, distribute, refund_excess
from .errors import AdminError, OracleError, PreconditionFailed
from .game_types import NATIVE, PERCENT_PRECISION, PriceEntry, to_address
from .ledger import Ledger
from .lootbox import LootboxCollection
from .oracle import PriceOracle
from .referral import ReferralTree
from .vault import Vault

log = logging.getLogger(__name__)


class Store(Contract):
    """
    Lootbox shop.

    Needs MINTER_ROLE on the Lootbox collection and CONNECTOR_ROLE on the
    referral tree. Prices are reference-unit amounts per box type.
    """

    def __init__(self, ledger: Ledger, deployer: str, vault: Vault, lootbox: LootboxCollection,
                 referral: ReferralTree, oracle: PriceOracle, prices: Optional[Dict[int, int]] = None):
        super().__init__(ledger, "ALFAStore", deployer)
        self.vault = vault
        self.lootbox = lootbox
        self.referral = referral
        self.oracle = oracle
        self.prices: Dict[int, int] = dict(STORE_PRICES if prices is None else prices)
        self.team_account = to_address(deployer)
        self.vault_share = STORE_VAULT_SHARE

    # ═══════════════════════════════════════════════════════════════════════
    # PRICES
    # ═══════════════════════════════════════════════════════════════════════

    def get_unit_price(self, type_id: int) -> int:
        """Reference-unit price of one box (0 = not for sale)."""
        return self.prices.get(type_id, 0)

    def get_price(self, type_id: int, token: str, count: int = 1) -> int:
        """
        Price of count boxes in token.

        Raises:
            PreconditionFailed: If the type is not for sale
            OracleError: If the asset cannot be quoted
        """
        unit_price = self.get_unit_price(type_id)
        if unit_price == 0:
            raise PreconditionFailed(f"Lootbox type {type_id} is not for sale")
        return self.oracle.quote(unit_price, token) * count

    def get_prices(self) -> List[List[PriceEntry]]:
        """
        Unit prices of every box type for sale, one list per type, one
        entry per Vault-allowed asset.

        Assets that cannot be quoted are listed with amount 0.
        """
        listing = []
        for asset_type in self.lootbox.get_types():
            unit_price = self.get_unit_price(asset_type.type_id)
            if unit_price == 0:
                continue
            entries = []
            for token in self.vault.allowed_tokens:
                try:
                    amount = self.oracle.quote(unit_price, token)
                except OracleError as e:
                    log.warning(f"Store: cannot quote type {asset_type.type_id} in {token}: {e}")
                    amount = 0
                entries.append(PriceEntry(type_id=asset_type.type_id, token=token, amount=amount))
            listing.append(entries)
        return listing

    # ═══════════════════════════════════════════════════════════════════════
    # PURCHASE
    # ═══════════════════════════════════════════════════════════════════════

    @non_reentrant
    def buy(self, sender: str, type_id: int, token: str = NATIVE, count: int = 1,
            referral_parents: Sequence[str] = (), value: int = 0) -> List[int]:
        """
        Buy lootboxes.

        Args:
            sender: Buyer
            type_id: Lootbox type
            token: Payment asset (NATIVE for the native coin)
            count: Number of boxes
            referral_parents: Buyer's proposed ancestors, nearest first
            value: Native coin attached to the call

        Returns:
            Minted Lootbox instance ids

        Raises:
            PreconditionFailed: A purchase precondition does not hold
            InsufficientValue / InsufficientBalance / InsufficientAllowance
            OracleError: If the asset cannot be quoted
        """
        sender, token = to_address(sender), to_address(token)
        if value:
            self.ledger.move_native(sender, self.address, value)

        if count <= 0:
            raise PreconditionFailed("Box count must be positive")
        if not self.vault.is_sale_open():
            raise PreconditionFailed(f"Sale ended at {self.vault.unlock_date}")
        if not 1 <= type_id <= self.lootbox.max_type_id() or not self.lootbox.has_type(type_id):
            raise PreconditionFailed(f"Unknown lootbox type {type_id}")
        if self.get_unit_price(type_id) == 0:
            raise PreconditionFailed(f"Lootbox type {type_id} is not for sale")
        if not self.vault.is_token_allowed(token):
            raise PreconditionFailed("Token is not allowed")

        if referral_parents:
            self.referral.set_sequence(self.address, [sender, *referral_parents])
        chain = self.referral.get_referral_percents(sender)

        price = self.get_price(type_id, token, count)
        excess = collect_payment(self, sender, token, price, value)

        distribute(self, sender, token, price, chain, self.team_account,
                   self.vault.address, self.vault_share, "VaultRefilled")

        token_ids = [self.lootbox.mint(self.address, sender, type_id) for _ in range(count)]
        self._emit("BoxesPurchased", holder=sender, type_id=type_id, token=token,
                   count=count, amount=price, token_ids=token_ids)
        log.info(f"Store: {sender} bought {count} x type {type_id} for {price} {token}")

        refund_excess(self, sender, excess, self.vault.address)
        return token_ids

    # ═══════════════════════════════════════════════════════════════════════
    # ADMIN
    # ═══════════════════════════════════════════════════════════════════════

    @transactional
    def set_price(self, sender: str, type_id: int, price: int):
        """Set a box type's reference-unit price (0 stops sales)."""
        self._check_role(DEFAULT_ADMIN_ROLE, sender)
        if price < 0:
            raise AdminError("Price must be non-negative")
        self.prices[type_id] = price
        self._emit("PriceSet", type_id=type_id, price=price)
        log.info(f"Store: price of type {type_id} set to {price}")

    @transactional
    def set_team_account(self, sender: str, account: str):
        self._check_role(DEFAULT_ADMIN_ROLE, sender)
        self.team_account = to_address(account)
        self._emit("TeamAccountChanged", account=self.team_account)
        log.info(f"Store: team account set to {self.team_account}")

    @transactional
    def set_vault_share(self, sender: str, share: int):
        self._check_role(DEFAULT_ADMIN_ROLE, sender)
        if not 0 <= share <= PERCENT_PRECISION:
            raise AdminError(f"Vault share {share} out of range")
        self.vault_share = share
        self._emit("VaultShareChanged", share=share)
        log.info(f"Store: vault share set to {share}")

    @transactional
    def withdraw(self, sender: str, token: str, amount: int, to: Optional[str] = None):
        """Recover truncation dust or stray balances."""
        self._check_role(DEFAULT_ADMIN_ROLE, sender)
        to = to_address(to or sender)
        self._pay(token, to, amount)
        self._emit("Withdrawn", token=to_address(token), to=to, amount=amount)
        log.info(f"Store: withdrew {amount} {token} to {to}")

"""
ALFA Protocol - Forge

Paid Key upgrades with a probabilistic outcome.

Upgrade flow:
    1. Checks: caller owns the Key, sale window open (Vault schedule),
       type is priced and below the top type, asset on the Forge allowlist
    2. price = quote(type price, asset) - discount(asset)
    3. Collect payment, distribute to referrals / team / burn account
    4. Burn the source Key
    5. Roll the source type's drop table:
         index 0  -> KeyBurned, nothing minted
         index N  -> mint a Key of the drop's type, KeyUpgraded
    6. Refund native overpayment

Plain native transfers into the Forge are forwarded to the team account
on a best-effort basis. A failed forward is only logged and the coin
stays in the Forge, without any accounting.
"""

import logging
from typing import Dict, List, Optional, Sequence

from .catalog import FORGE_BURN_SHARE, FORGE_PRICES
from .contract import DEFAULT_ADMIN_ROLE, Contract, non_reentrant, transactional
from .distributor import collect_payment, distribute, refund_excess
from .drops import BlockRandomizer, Randomizer, resolve_drop
from .errors import AdminError, OracleError, PreconditionFailed
from .game_types import NATIVE, PERCENT_PRECISION, DropOutcome, PriceEntry, percent_of, to_address
from .keys import KeyCollection
from .ledger import Ledger
from .oracle import PriceOracle
from .referral import ReferralTree
from .vault import Vault

log = logging.getLogger(__name__)


class Forge(Contract):
    """
    Key upgrader.

    Needs MINTER_ROLE and BURNER_ROLE on the Key collection and
    CONNECTOR_ROLE on the referral tree. The payment allowlist is the
    Forge's own, independent of the Vault's.
    """

    def __init__(self, ledger: Ledger, deployer: str, key: KeyCollection, burn_account: str,
                 referral: ReferralTree, vault: Vault, oracle: PriceOracle,
                 prices: Optional[Dict[int, int]] = None, randomizer: Optional[Randomizer] = None):
        super().__init__(ledger, "ALFAForge", deployer)
        self.key = key
        self.referral = referral
        self.vault = vault
        self.oracle = oracle
        self.randomizer = randomizer or BlockRandomizer()
        self.prices: Dict[int, int] = dict(FORGE_PRICES if prices is None else prices)
        self.allowed_tokens: List[str] = [NATIVE]
        self.discounts: Dict[str, int] = {}
        self.team_account = to_address(deployer)
        self.burn_account = to_address(burn_account)
        self.burn_share = FORGE_BURN_SHARE
        self._roll_nonce = 0

    def receive(self, sender: str, amount: int):
        if not self._try_pay(NATIVE, self.team_account, amount):
            log.warning(f"Forge: {amount} native from {sender} kept, team forward failed")

    # ═══════════════════════════════════════════════════════════════════════
    # PRICES
    # ═══════════════════════════════════════════════════════════════════════

    def is_token_allowed(self, token: str) -> bool:
        return to_address(token) in self.allowed_tokens

    def get_unit_price(self, type_id: int) -> int:
        return self.prices.get(type_id, 0)

    def get_discount(self, token: str) -> int:
        return self.discounts.get(to_address(token), 0)

    def is_upgradable(self, type_id: int) -> bool:
        return self.get_unit_price(type_id) > 0 and type_id < self.key.max_type_id()

    def get_price(self, type_id: int, token: str) -> int:
        """
        Upgrade price of type_id in token, discount applied.

        Raises:
            PreconditionFailed: If the type is not upgradable
            OracleError: If the asset cannot be quoted
        """
        if not self.is_upgradable(type_id):
            raise PreconditionFailed(f"Key type {type_id} is not upgradable")
        price = self.oracle.quote(self.get_unit_price(type_id), token)
        return price - percent_of(price, self.get_discount(token))

    def get_prices(self) -> List[List[PriceEntry]]:
        """Discounted prices per upgradable type, one entry per allowed asset."""
        listing = []
        for asset_type in self.key.get_types():
            if not self.is_upgradable(asset_type.type_id):
                continue
            entries = []
            for token in self.allowed_tokens:
                try:
                    amount = self.get_price(asset_type.type_id, token)
                except OracleError as e:
                    log.warning(f"Forge: cannot quote type {asset_type.type_id} in {token}: {e}")
                    amount = 0
                entries.append(PriceEntry(type_id=asset_type.type_id, token=token, amount=amount))
            listing.append(entries)
        return listing

    # ═══════════════════════════════════════════════════════════════════════
    # UPGRADE
    # ═══════════════════════════════════════════════════════════════════════

    def roll(self, type_id: int) -> DropOutcome:
        drops = self.key.get_type(type_id).drops
        self._roll_nonce += 1
        draw = self.randomizer.draw(self.ledger, self.address, self._roll_nonce)
        return resolve_drop(drops, draw)

    @non_reentrant
    def upgrade(self, sender: str, token_id: int, token: str = NATIVE, value: int = 0,
                referral_parents: Sequence[str] = ()) -> Optional[int]:
        """
        Upgrade a Key.

        Args:
            sender: Key owner
            token_id: Key instance to upgrade (always burned)
            token: Payment asset (NATIVE for the native coin)
            value: Native coin attached to the call
            referral_parents: Optional ancestors to link, nearest first

        Returns:
            New Key instance id, or None when the roll burned the Key only

        Raises:
            PreconditionFailed: An upgrade precondition does not hold
            InsufficientValue / InsufficientBalance / InsufficientAllowance
            OracleError: If the asset cannot be quoted
        """
        sender, token = to_address(sender), to_address(token)
        if value:
            self.ledger.move_native(sender, self.address, value)

        if self.key.owner_of(token_id) != sender:
            raise PreconditionFailed(f"Key {token_id} is not owned by {sender}")
        if not self.vault.is_sale_open():
            raise PreconditionFailed(f"Forge closed at {self.vault.unlock_date}")
        type_id = self.key.token_type(token_id)
        if not self.is_upgradable(type_id):
            raise PreconditionFailed(f"Key type {type_id} is not upgradable")
        if not self.is_token_allowed(token):
            raise PreconditionFailed("Token is not allowed")

        self.key.burn(self.address, sender, token_id)

        if referral_parents:
            self.referral.set_sequence(self.address, [sender, *referral_parents])
        chain = self.referral.get_referral_percents(sender)

        price = self.get_price(type_id, token)
        excess = collect_payment(self, sender, token, price, value)
        distribute(self, sender, token, price, chain, self.team_account,
                   self.burn_account, self.burn_share, "BurnAccountRefilled")

        outcome = self.roll(type_id)

        new_token_id = None
        if outcome.is_empty:
            self._emit("KeyBurned", holder=sender, type_id=type_id, token_id=token_id)
            log.info(f"Forge: {sender} burned key #{token_id} (type {type_id}), nothing dropped")
        else:
            new_token_id = self.key.mint(self.address, sender, outcome.type_id)
            self._emit("KeyUpgraded", holder=sender, type_id=type_id, token_id=token_id,
                       new_type_id=outcome.type_id, new_token_id=new_token_id)
            log.info(f"Forge: {sender} upgraded key #{token_id} (type {type_id}) "
                     f"to #{new_token_id} (type {outcome.type_id})")

        refund_excess(self, sender, excess, self.vault.address)
        return new_token_id

    # ═══════════════════════════════════════════════════════════════════════
    # ADMIN
    # ═══════════════════════════════════════════════════════════════════════

    @transactional
    def add_token(self, sender: str, token: str):
        self._check_role(DEFAULT_ADMIN_ROLE, sender)
        token = to_address(token)
        if token in self.allowed_tokens:
            raise AdminError("Token is already allowed")
        self.allowed_tokens.append(token)
        self._emit("TokenAdded", token=token)
        log.info(f"Forge: allowed {token}")

    @transactional
    def remove_token(self, sender: str, token: str):
        self._check_role(DEFAULT_ADMIN_ROLE, sender)
        token = to_address(token)
        if token not in self.allowed_tokens:
            raise AdminError("Token is not allowed")
        self.allowed_tokens.remove(token)
        self._emit("TokenRemoved", token=token)
        log.info(f"Forge: disallowed {token}")

    @transactional
    def set_discount(self, sender: str, token: str, percents: int):
        self._check_role(DEFAULT_ADMIN_ROLE, sender)
        if not 0 <= percents <= PERCENT_PRECISION:
            raise AdminError(f"Discount {percents} out of range")
        token = to_address(token)
        self.discounts[token] = percents
        self._emit("DiscountSet", token=token, percents=percents)
        log.info(f"Forge: discount for {token} set to {percents}")

    @transactional
    def set_price(self, sender: str, type_id: int, price: int):
        self._check_role(DEFAULT_ADMIN_ROLE, sender)
        if price < 0:
            raise AdminError("Price must be non-negative")
        self.prices[type_id] = price
        self._emit("PriceSet", type_id=type_id, price=price)
        log.info(f"Forge: price of type {type_id} set to {price}")

    @transactional
    def set_team_account(self, sender: str, account: str):
        self._check_role(DEFAULT_ADMIN_ROLE, sender)
        self.team_account = to_address(account)
        self._emit("TeamAccountChanged", account=self.team_account)
        log.info(f"Forge: team account set to {self.team_account}")

    @transactional
    def set_burn_account(self, sender: str, account: str):
        self._check_role(DEFAULT_ADMIN_ROLE, sender)
        self.burn_account = to_address(account)
        self._emit("BurnAccountChanged", account=self.burn_account)
        log.info(f"Forge: burn account set to {self.burn_account}")

    @transactional
    def set_burn_share(self, sender: str, share: int):
        self._check_role(DEFAULT_ADMIN_ROLE, sender)
        if not 0 <= share <= PERCENT_PRECISION:
            raise AdminError(f"Burn share {share} out of range")
        self.burn_share = share
        self._emit("BurnShareChanged", share=share)
        log.info(f"Forge: burn share set to {share}")

    @transactional
    def set_randomizer(self, sender: str, randomizer: Randomizer):
        self._check_role(DEFAULT_ADMIN_ROLE, sender)
        self.randomizer = randomizer

    @transactional
    def withdraw(self, sender: str, token: str, amount: int, to: Optional[str] = None):
        """Recover truncation dust and kept forwards."""
        self._check_role(DEFAULT_ADMIN_ROLE, sender)
        to = to_address(to or sender)
        self._pay(token, to, amount)
        self._emit("Withdrawn", token=to_address(token), to=to, amount=amount)
        log.info(f"Forge: withdrew {amount} {token} to {to}")

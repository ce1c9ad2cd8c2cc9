"""
ALFA Protocol - Deployment

Deploys and wires a complete protocol instance on a ledger.

Order:
    Key -> Lootbox -> Referral -> Vault -> Store -> Forge

Wiring after deployment:
    Store, Forge   team account = config.team_account
    Forge          allowlist += USDT, USDC
    Key            BURNER_ROLE -> Vault, Forge
    Key            MINTER_ROLE -> Forge, Lootbox
    Lootbox        MINTER_ROLE -> Store
    Referral       CONNECTOR_ROLE -> Store, Forge

Usage:
    protocol = deploy_protocol(Config())
    protocol.usdt.mint(buyer, 10 * 10**18)
    protocol.usdt.approve(buyer, protocol.store.address, 10 * 10**18)
    protocol.store.buy(buyer, 1, protocol.usdt.address, 1)
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

from .catalog import KEY_DROPS, KEY_TYPES, LOOTBOX_DROPS, LOOTBOX_TYPES
from .config import Config
from .contract import BURNER_ROLE, CONNECTOR_ROLE, MINTER_ROLE
from .drops import Randomizer
from .forge import Forge
from .game_types import NATIVE, to_address
from .keys import KeyCollection
from .ledger import Ledger
from .lootbox import LootboxCollection
from .oracle import PriceOracle, Router, StaticRouter, Web3Router
from .referral import ReferralTree
from .store import Store
from .tokens import Token
from .vault import Vault

log = logging.getLogger(__name__)

# Hardhat account #0
DEVNET_DEPLOYER = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"


@dataclass
class Protocol:
    """Deployed protocol components."""
    ledger: Ledger
    config: Config
    deployer: str
    oracle: PriceOracle
    wbnb: Token
    usdt: Token
    usdc: Token
    key: KeyCollection
    lootbox: LootboxCollection
    referral: ReferralTree
    vault: Vault
    store: Store
    forge: Forge

    def addresses(self) -> Dict[str, str]:
        return {
            "key": self.key.address,
            "lootbox": self.lootbox.address,
            "referral": self.referral.address,
            "vault": self.vault.address,
            "store": self.store.address,
            "forge": self.forge.address,
            "wbnb": self.wbnb.address,
            "usdt": self.usdt.address,
            "usdc": self.usdc.address,
        }


def devnet_router(config: Config) -> StaticRouter:
    """Fixed rates: 1 WBNB = 333.33 USDT, USDC pegged 1:1 to USDT."""
    router = StaticRouter()
    router.set_rate(config.usdt, config.wbnb, 3, 1000)
    router.set_rate(config.wbnb, config.usdt, 1000, 3)
    router.set_rate(config.usdt, config.usdc, 1, 1)
    router.set_rate(config.usdc, config.usdt, 1, 1)
    return router


def install_catalog(key: KeyCollection, lootbox: LootboxCollection, admin: str):
    """Add the default Key and Lootbox types with their drop tables."""
    for name, uri in KEY_TYPES:
        key.add_type(admin, name, uri)
    # Key tables reference higher Key types, so they go in after all types exist
    for type_id, drops in KEY_DROPS.items():
        if drops:
            key.set_drops(admin, type_id, drops)
    for type_id, (name, uri) in enumerate(LOOTBOX_TYPES, start=1):
        lootbox.add_type(admin, name, uri, LOOTBOX_DROPS.get(type_id))


def deploy_protocol(config: Optional[Config] = None, ledger: Optional[Ledger] = None,
                    router: Optional[Router] = None, deployer: str = DEVNET_DEPLOYER,
                    randomizer: Optional[Randomizer] = None, catalog: bool = True) -> Protocol:
    """
    Deploy and wire every component.

    Args:
        config: Deployment parameters (defaults to mainnet values)
        ledger: Target ledger (a fresh one if omitted)
        router: Price router; defaults to Web3Router when config.rpc_url
            is set, else the devnet StaticRouter
        deployer: Admin of every component
        randomizer: Drop entropy source for Lootbox and Forge
        catalog: Install the default types and drop tables

    Returns:
        Protocol with every deployed component
    """
    config = config or Config()
    ledger = ledger or Ledger()
    deployer = to_address(deployer)

    if router is None:
        if config.rpc_url:
            router = Web3Router(config.rpc_url, config.router)
        else:
            router = devnet_router(config)
    oracle = PriceOracle(router, config.usdt, config.wbnb)

    wbnb = _token_at(ledger, "Wrapped BNB", "WBNB", config.wbnb)
    usdt = _token_at(ledger, "Tether USD", "USDT", config.usdt)
    usdc = _token_at(ledger, "USD Coin", "USDC", config.usdc)
    for token in config.vault_tokens:
        if to_address(token) != NATIVE and ledger.component(token) is None:
            _token_at(ledger, "Payment Token", "TKN", token)

    key = KeyCollection(ledger, deployer)
    lootbox = LootboxCollection(ledger, deployer, key, randomizer)
    referral = ReferralTree(ledger, deployer)
    vault = Vault(ledger, deployer, key, config.vault_tokens,
                  config.unlock_date, config.redeem_until, oracle)
    store = Store(ledger, deployer, vault, lootbox, referral, oracle)
    forge = Forge(ledger, deployer, key, config.burn_account, referral, vault, oracle,
                  randomizer=randomizer)

    if catalog:
        install_catalog(key, lootbox, deployer)

    store.set_team_account(deployer, config.team_account)
    forge.set_team_account(deployer, config.team_account)
    forge.add_token(deployer, config.usdt)
    forge.add_token(deployer, config.usdc)

    key.grant_role(deployer, BURNER_ROLE, vault.address)
    key.grant_role(deployer, BURNER_ROLE, forge.address)
    key.grant_role(deployer, MINTER_ROLE, forge.address)
    key.grant_role(deployer, MINTER_ROLE, lootbox.address)
    lootbox.grant_role(deployer, MINTER_ROLE, store.address)
    referral.grant_role(deployer, CONNECTOR_ROLE, store.address)
    referral.grant_role(deployer, CONNECTOR_ROLE, forge.address)

    protocol = Protocol(
        ledger=ledger, config=config, deployer=deployer, oracle=oracle,
        wbnb=wbnb, usdt=usdt, usdc=usdc,
        key=key, lootbox=lootbox, referral=referral,
        vault=vault, store=store, forge=forge,
    )
    for name, address in protocol.addresses().items():
        log.info(f"Deployed {name} at {address}")
    return protocol


def _token_at(ledger: Ledger, name: str, symbol: str, address: str) -> Token:
    existing = ledger.component(address)
    if existing is not None:
        return existing
    return Token(ledger, name, symbol, address=address)

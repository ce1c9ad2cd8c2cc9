"""
ALFA Protocol

Game-economy protocol: typed Key and Lootbox collections, a referral
tree with level-based revenue splits, a multi-asset Vault with pro-rata
redemption, a Store selling lootboxes and a Forge upgrading keys, all
priced in USDT through a DEX router.
"""

from .game_types import (
    PERCENT_PRECISION,
    ZERO_ADDRESS,
    NATIVE,
    Drop,
    AssetType,
    DropOutcome,
    NO_DROP,
    ReferralEntry,
    Payout,
    PayoutKind,
    PriceEntry,
    VaultToken,
    Event,
)

from .errors import (
    ProtocolError,
    PreconditionFailed,
    AccessDenied,
    AdminError,
    InsufficientAmount,
    InsufficientValue,
    InsufficientBalance,
    InsufficientAllowance,
    TransferFailed,
    OracleError,
    ReentrancyError,
)

from .ledger import Ledger
from .contract import DEFAULT_ADMIN_ROLE, MINTER_ROLE, BURNER_ROLE, CONNECTOR_ROLE
from .tokens import Token
from .oracle import PriceOracle, StaticRouter, Web3Router
from .referral import ReferralTree
from .distributor import split_payment
from .drops import resolve_index, resolve_drop, BlockRandomizer
from .keys import KeyCollection
from .lootbox import LootboxCollection
from .vault import Vault
from .store import Store
from .forge import Forge
from .config import Config
from .protocol import Protocol, deploy_protocol

__version__ = "1.0.0"
__all__ = [
    # Types
    "PERCENT_PRECISION",
    "ZERO_ADDRESS",
    "NATIVE",
    "Drop",
    "AssetType",
    "DropOutcome",
    "NO_DROP",
    "ReferralEntry",
    "Payout",
    "PayoutKind",
    "PriceEntry",
    "VaultToken",
    "Event",
    # Errors
    "ProtocolError",
    "PreconditionFailed",
    "AccessDenied",
    "AdminError",
    "InsufficientAmount",
    "InsufficientValue",
    "InsufficientBalance",
    "InsufficientAllowance",
    "TransferFailed",
    "OracleError",
    "ReentrancyError",
    # Components
    "Ledger",
    "DEFAULT_ADMIN_ROLE",
    "MINTER_ROLE",
    "BURNER_ROLE",
    "CONNECTOR_ROLE",
    "Token",
    "PriceOracle",
    "StaticRouter",
    "Web3Router",
    "ReferralTree",
    "split_payment",
    "resolve_index",
    "resolve_drop",
    "BlockRandomizer",
    "KeyCollection",
    "LootboxCollection",
    "Vault",
    "Store",
    "Forge",
    # Deployment
    "Config",
    "Protocol",
    "deploy_protocol",
]

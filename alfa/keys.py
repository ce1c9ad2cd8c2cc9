"""
ALFA Protocol - Key Collection

Keys are the upgradable tier assets. Each Key type's drop table lists
the Key types an upgrade can produce; the Forge rolls it. The top tier
(master type) weights Vault shares.
"""

from .ledger import Ledger
from .typed_asset import TypedAsset


class KeyCollection(TypedAsset):
    """Typed Key collection. Drop results refer to Key types."""

    def __init__(self, ledger: Ledger, deployer: str):
        super().__init__(ledger, "ALFAKey", deployer)

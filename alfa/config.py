"""
ALFA Protocol - Configuration

Deployment parameters. Defaults are the BSC mainnet deployment; every
field can be overridden with an ALFA_* environment variable.

Environment:
    ALFA_RPC_URL            BSC JSON-RPC endpoint (empty = devnet rates)
    ALFA_ROUTER             PancakeSwap V2 router
    ALFA_WBNB / ALFA_USDT / ALFA_USDC
    ALFA_TEAM_ACCOUNT       Team recipient (Store and Forge)
    ALFA_BURN_ACCOUNT       Forge sink
    ALFA_UNLOCK_DATE        End of sale, start of redemption (unix time)
    ALFA_REDEEM_UNTIL       End of redemption (unix time)
    ALFA_START_TIME         Devnet ledger start time (0 = wall clock)
    ALFA_VAULT_TOKENS       Comma-separated Vault allowlist (0x00..00 = native)
    ALFA_HTTP_PORT          API server port
    ALFA_LOG_LEVEL
"""

import os
from dataclasses import dataclass, field, fields
from typing import List

from .game_types import NATIVE


@dataclass
class Config:
    # BSC RPC (empty = in-process devnet router)
    rpc_url: str = ""

    # PancakeSwap V2 router and assets (BSC mainnet)
    router: str = "0x10ED43C718714eb63d5aA57B78B54704E256024E"
    wbnb: str = "0xbb4CdB9CBd36B01bD1cBaEBF2De08d9173bc095c"
    usdt: str = "0x55d398326f99059fF775485246999027B3197955"
    usdc: str = "0x8ac76a51cc950d9822d68b83fe1ad97b32cd580d"

    # Revenue recipients
    team_account: str = "0x8c6f19f97c4980F1397CdA79Fa81EbFBEc96074d"
    burn_account: str = "0x04A0600F50BF6a213939d3820568CE2efdAbE9a4"

    # Schedule
    unlock_date: int = 1761480000       # 26 Oct 2025 12:00 UTC
    redeem_until: int = 1761912000      # 31 Oct 2025 12:00 UTC

    # Devnet clock start (0 = wall clock)
    start_time: int = 0

    # Server
    http_port: int = 8080
    log_level: str = "INFO"

    # Vault-allowed assets; empty = [NATIVE, USDT, USDC]
    vault_tokens: List[str] = field(default_factory=list)

    def __post_init__(self):
        if not self.vault_tokens:
            self.vault_tokens = [NATIVE, self.usdt, self.usdc]

    @classmethod
    def from_env(cls, prefix: str = "ALFA_") -> "Config":
        """
        Build config from environment variables.

        Raises:
            ValueError: If a numeric variable does not parse
        """
        values = {}
        for f in fields(cls):
            raw = os.environ.get(prefix + f.name.upper())
            if raw is None:
                continue
            if f.name == "vault_tokens":
                values[f.name] = [t.strip() for t in raw.split(",") if t.strip()]
            elif f.type is int or f.type == "int":
                values[f.name] = int(raw)
            else:
                values[f.name] = raw
        return cls(**values)

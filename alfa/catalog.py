"""
ALFA Protocol - Catalog Defaults

Type definitions, drop tables and reference-unit prices installed at
deployment.

Tiers:
    Key 1      - Bronze    (upgradable)
    Key 2      - Silver    (upgradable)
    Key 3      - Gold      (upgradable)
    Key 4      - Platinum  (upgradable)
    Key 5      - Diamond   (top tier, Vault master type)

Lootbox types mirror the Key tiers: a box of tier N mostly yields a Key
of tier N, with small odds of a higher tier. Box tables give index 0
zero weight, so opening a box always yields a Key.

Key drop tables are Forge upgrade outcomes. Index 0 is the burn-only
outcome: the Key is destroyed and nothing is minted.
"""

from typing import Dict, List, Tuple

from .game_types import Drop

# USDT has 18 decimals on BSC
USDT_UNIT = 10 ** 18

URI_BASE = "ipfs://bafybeialfaprotocolmetadata"

# ═══════════════════════════════════════════════════════════════════════════════
# KEYS
# ═══════════════════════════════════════════════════════════════════════════════

KEY_TYPES: List[Tuple[str, str]] = [
    ("Bronze Key", f"{URI_BASE}/keys/1.json"),
    ("Silver Key", f"{URI_BASE}/keys/2.json"),
    ("Gold Key", f"{URI_BASE}/keys/3.json"),
    ("Platinum Key", f"{URI_BASE}/keys/4.json"),
    ("Diamond Key", f"{URI_BASE}/keys/5.json"),
]

KEY_DROPS: Dict[int, List[Drop]] = {
    1: [Drop(0, 200_000), Drop(2, 780_000), Drop(3, 17_500), Drop(4, 2_400), Drop(5, 100)],
    2: [Drop(0, 300_000), Drop(3, 680_000), Drop(4, 17_500), Drop(5, 2_500)],
    3: [Drop(0, 400_000), Drop(4, 590_000), Drop(5, 10_000)],
    4: [Drop(0, 500_000), Drop(5, 500_000)],
    5: [],
}

# Type whose supply split weights Vault shares
MASTER_KEY_TYPE = 5

# ═══════════════════════════════════════════════════════════════════════════════
# LOOTBOXES
# ═══════════════════════════════════════════════════════════════════════════════

LOOTBOX_TYPES: List[Tuple[str, str]] = [
    ("Bronze Box", f"{URI_BASE}/boxes/1.json"),
    ("Silver Box", f"{URI_BASE}/boxes/2.json"),
    ("Gold Box", f"{URI_BASE}/boxes/3.json"),
    ("Platinum Box", f"{URI_BASE}/boxes/4.json"),
    ("Diamond Box", f"{URI_BASE}/boxes/5.json"),
]

LOOTBOX_DROPS: Dict[int, List[Drop]] = {
    1: [Drop(0, 0), Drop(1, 900_000), Drop(2, 80_000), Drop(3, 15_000), Drop(4, 4_500), Drop(5, 500)],
    2: [Drop(0, 0), Drop(2, 900_000), Drop(3, 80_000), Drop(4, 18_000), Drop(5, 2_000)],
    3: [Drop(0, 0), Drop(3, 900_000), Drop(4, 90_000), Drop(5, 10_000)],
    4: [Drop(0, 0), Drop(4, 950_000), Drop(5, 50_000)],
    5: [Drop(0, 0), Drop(5, 1_000_000)],
}

# ═══════════════════════════════════════════════════════════════════════════════
# PRICES (reference unit, smallest units)
# ═══════════════════════════════════════════════════════════════════════════════

STORE_PRICES: Dict[int, int] = {
    1: 1 * USDT_UNIT,
    2: 5 * USDT_UNIT,
    3: 10 * USDT_UNIT,
    4: 50 * USDT_UNIT,
    5: 100 * USDT_UNIT,
}

# Price 0 = not upgradable
FORGE_PRICES: Dict[int, int] = {
    1: 1 * USDT_UNIT,
    2: 3 * USDT_UNIT,
    3: 10 * USDT_UNIT,
    4: 30 * USDT_UNIT,
    5: 0,
}

# Sink caps (PERCENT_PRECISION units)
STORE_VAULT_SHARE = 800_000
FORGE_BURN_SHARE = 500_000


def drop_total(drops: List[Drop]) -> int:
    """
    Sum of weights at indices 1..N (index 0 is never read).

    Examples:
        >>> drop_total(KEY_DROPS[4])
        500000
        >>> drop_total(LOOTBOX_DROPS[1])
        1000000
    """
    return sum(d.weight for d in drops[1:])

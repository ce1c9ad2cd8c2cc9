"""
ALFA Protocol - Drop Tables

Weighted outcome selection for lootbox opening and key upgrades.

Resolution:
  - Draw an integer in [0, PERCENT_PRECISION)
  - Walk the table from the highest index down to index 1, adding up
    weights; the first index whose running sum is >= the draw wins
  - Nothing found (or a table of one row or less) resolves to index 0

Index 0 is the residual bucket: its own weight is never read. Weights
of indices 1..N do not have to add up to PERCENT_PRECISION.

The entropy source (block randomness, timestamp, per-contract counter)
is predictable to block producers. It is good enough for cosmetic and
economic tiers only.
"""

from typing import Protocol, Sequence

from web3 import Web3

from .errors import AdminError
from .game_types import NO_DROP, PERCENT_PRECISION, Drop, DropOutcome
from .ledger import Ledger


def resolve_index(drops: Sequence[Drop], draw: int) -> int:
    """
    Resolve a draw against a drop table.

    Examples:
        >>> table = [Drop(0, 200000), Drop(2, 780000), Drop(3, 17500), Drop(4, 2400), Drop(5, 100)]
        >>> resolve_index(table, 100)
        4
        >>> resolve_index(table, 2500)
        3
        >>> resolve_index(table, 900000)
        0
    """
    cumulative = 0
    for index in range(len(drops) - 1, 0, -1):
        cumulative += drops[index].weight
        if cumulative >= draw:
            return index
    return 0


def resolve_drop(drops: Sequence[Drop], draw: int) -> DropOutcome:
    """Resolve a draw into a tagged outcome (NO_DROP for index 0)."""
    index = resolve_index(drops, draw)
    if index == 0:
        return NO_DROP
    return DropOutcome(index=index, type_id=drops[index].result_type_id)


def validate_drops(drops: Sequence[Drop]):
    """
    Raises:
        AdminError: If a weight is outside [0, PERCENT_PRECISION]
    """
    for index, drop in enumerate(drops):
        if not 0 <= drop.weight <= PERCENT_PRECISION:
            raise AdminError(f"Drop weight at index {index} out of range: {drop.weight}")
        if drop.result_type_id < 0:
            raise AdminError(f"Drop result type at index {index} is negative")


# ═══════════════════════════════════════════════════════════════════════════════
# RANDOMNESS
# ═══════════════════════════════════════════════════════════════════════════════

class Randomizer(Protocol):
    def draw(self, ledger: Ledger, salt: str, nonce: int) -> int:
        ...


class BlockRandomizer:
    """keccak(prevrandao, timestamp, contract, nonce) mod PERCENT_PRECISION."""

    def draw(self, ledger: Ledger, salt: str, nonce: int) -> int:
        digest = Web3.solidity_keccak(
            ["uint256", "uint256", "address", "uint256"],
            [ledger.prevrandao(), ledger.timestamp, salt, nonce],
        )
        return int.from_bytes(bytes(digest), "big") % PERCENT_PRECISION

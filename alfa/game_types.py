"""
ALFA Protocol - Data Types

Typed asset, drop, referral, pricing and event structures shared by
every component.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List

from web3 import Web3

# ═══════════════════════════════════════════════════════════════════════════════
# NUMERIC CONVENTIONS
# ═══════════════════════════════════════════════════════════════════════════════

# 100% in fixed point (6 decimal digits of percentage precision)
PERCENT_PRECISION = 1_000_000

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Native coin sentinel in token positions
NATIVE = ZERO_ADDRESS


def to_address(value: str) -> str:
    """
    Normalize an account or asset identifier to its checksummed form.

    Raises:
        ValueError: If value is not a 20-byte hex address
    """
    if not isinstance(value, str) or not Web3.is_address(value):
        raise ValueError(f"Invalid address: {value!r}")
    return Web3.to_checksum_address(value)


def percent_of(amount: int, percents: int) -> int:
    """Multiply first, then truncate."""
    return amount * percents // PERCENT_PRECISION


# ═══════════════════════════════════════════════════════════════════════════════
# TYPED ASSETS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Drop:
    """One drop table row: result type in the target collection and its weight."""
    result_type_id: int
    weight: int

    def to_dict(self) -> dict:
        return {"result_type_id": self.result_type_id, "weight": self.weight}


@dataclass
class AssetType:
    """
    Typed asset type.

    count is the number of instances currently in existence (minted minus
    burned). drops is only populated for drop-producing types; index 0 is
    the residual "nothing" bucket.
    """
    type_id: int
    name: str
    uri: str
    count: int = 0
    drops: List[Drop] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "type_id": self.type_id,
            "name": self.name,
            "uri": self.uri,
            "count": self.count,
            "drops": [d.to_dict() for d in self.drops],
        }


@dataclass(frozen=True)
class DropOutcome:
    """Resolved roll. index 0 means nothing dropped."""
    index: int
    type_id: int = 0

    @property
    def is_empty(self) -> bool:
        return self.index == 0

    def to_dict(self) -> dict:
        return {"index": self.index, "type_id": self.type_id}


NO_DROP = DropOutcome(index=0, type_id=0)


# ═══════════════════════════════════════════════════════════════════════════════
# REFERRAL / PAYMENTS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ReferralEntry:
    """Chain entry. parent is ZERO_ADDRESS past the end of the actual chain."""
    parent: str
    percents: int

    def to_dict(self) -> dict:
        return {"parent": self.parent, "percents": self.percents}


class PayoutKind(Enum):
    """Revenue leg"""
    REFERRAL = "referral"
    TEAM = "team"
    SINK = "sink"


@dataclass(frozen=True)
class Payout:
    """One leg of a revenue distribution."""
    kind: PayoutKind
    recipient: str
    amount: int
    level: int = 0

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "recipient": self.recipient,
            "amount": self.amount,
            "level": self.level,
        }


@dataclass(frozen=True)
class PriceEntry:
    """Quoted price of one type in one payment asset."""
    type_id: int
    token: str
    amount: int

    def to_dict(self) -> dict:
        return {"type_id": self.type_id, "token": self.token, "amount": self.amount}


@dataclass(frozen=True)
class VaultToken:
    """Vault holding of one allowed asset."""
    token: str
    amount: int

    def to_dict(self) -> dict:
        return {"token": self.token, "amount": self.amount}


# ═══════════════════════════════════════════════════════════════════════════════
# EVENTS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Event:
    """Emitted observability record."""
    source: str
    name: str
    args: Dict[str, Any]
    block: int
    timestamp: int

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "name": self.name,
            "args": dict(self.args),
            "block": self.block,
            "timestamp": self.timestamp,
        }

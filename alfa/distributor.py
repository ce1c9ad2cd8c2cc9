"""
ALFA Protocol - Revenue Distribution

Fans a payment out to referral parents, the team account and a sink
account (Vault for Store sales, burn account for Forge upgrades).

Algorithm:
    remaining = 100%
    for each chain entry, nearest parent first:
        stop at the first ZERO_ADDRESS parent
        parent gets total * percents / 100%;  remaining -= percents
    if remaining > sink_share:
        team gets total * (remaining - sink_share) / 100%
        remaining = sink_share
    sink gets total * remaining / 100%

Every leg truncates. The sink leg is computed last from the leftover
percentage, with no correction step; truncation dust stays with the
distributing component.

Payment collection (native value or token transferFrom) and best-effort
refund of native overpayment live here too, shared by Store and Forge.
"""

import logging
from typing import List, Sequence

from .contract import Contract
from .errors import InsufficientAllowance, InsufficientBalance, InsufficientValue, PreconditionFailed
from .game_types import (
    NATIVE, PERCENT_PRECISION, ZERO_ADDRESS,
    Payout, PayoutKind, ReferralEntry, percent_of, to_address,
)

log = logging.getLogger(__name__)


def split_payment(total: int, chain: Sequence[ReferralEntry], team_account: str,
                  sink_account: str, sink_share: int) -> List[Payout]:
    """
    Compute distribution legs without moving anything.

    Args:
        total: Amount being distributed (smallest units)
        chain: Referral chain, nearest parent first
        team_account: Receives the part above sink_share
        sink_account: Receives the capped remainder
        sink_share: Cap on the sink leg, in PERCENT_PRECISION units

    Returns:
        Payouts in transfer order: referrals, team (if any), sink

    Raises:
        ValueError: If total is negative or the chain overdraws 100%
    """
    if total < 0:
        raise ValueError(f"Total must be non-negative, got {total}")

    payouts = []
    remaining = PERCENT_PRECISION

    for level, entry in enumerate(chain):
        if entry.parent == ZERO_ADDRESS:
            break
        if entry.percents > remaining:
            raise ValueError(f"Referral percents overdraw 100% at level {level + 1}")
        payouts.append(Payout(PayoutKind.REFERRAL, entry.parent, percent_of(total, entry.percents), level + 1))
        remaining -= entry.percents

    if remaining > sink_share:
        payouts.append(Payout(PayoutKind.TEAM, team_account, percent_of(total, remaining - sink_share)))
        remaining = sink_share

    payouts.append(Payout(PayoutKind.SINK, sink_account, percent_of(total, remaining)))
    return payouts


def distribute(contract: Contract, payer: str, asset: str, total: int,
               chain: Sequence[ReferralEntry], team_account: str, sink_account: str,
               sink_share: int, sink_event: str) -> List[Payout]:
    """
    Pay out a collected amount held by contract.

    Every leg is mandatory: a failing transfer aborts the caller's
    transaction. Zero-amount legs are skipped.

    Args:
        contract: Component holding the funds (Store or Forge)
        payer: Buyer, recorded in the emitted events
        asset: NATIVE or token address
        total: Amount to distribute
        chain: Payer's referral chain
        team_account: Team recipient
        sink_account: Vault or burn account
        sink_share: Sink cap in PERCENT_PRECISION units
        sink_event: Event name for the sink leg (VaultRefilled / BurnAccountRefilled)

    Returns:
        The executed payouts
    """
    payer, asset = to_address(payer), to_address(asset)
    payouts = split_payment(total, chain, team_account, sink_account, sink_share)

    for payout in payouts:
        if payout.amount == 0:
            continue
        contract._pay(asset, payout.recipient, payout.amount)
        if payout.kind == PayoutKind.REFERRAL:
            contract._emit("ReferralRewardSent", holder=payer, parent=payout.recipient,
                           token=asset, amount=payout.amount, level=payout.level)
        elif payout.kind == PayoutKind.TEAM:
            contract._emit("TeamRewardSent", holder=payer, team=payout.recipient,
                           token=asset, amount=payout.amount)
        else:
            contract._emit(sink_event, holder=payer, token=asset, amount=payout.amount)

    log.debug(f"{contract.label}: distributed {total} of {asset} in {len(payouts)} legs")
    return payouts


# ═══════════════════════════════════════════════════════════════════════════════
# PAYMENT COLLECTION
# ═══════════════════════════════════════════════════════════════════════════════

def collect_payment(contract: Contract, payer: str, asset: str, price: int, value: int) -> int:
    """
    Take a payment of price into contract.

    Native payments arrive as call value (already credited to contract);
    token payments are pulled with transferFrom after balance and
    allowance checks.

    Returns:
        Native overpayment to refund (0 for token payments)

    Raises:
        InsufficientValue: value < price
        InsufficientBalance: Token balance < price
        InsufficientAllowance: Token allowance to contract < price
        PreconditionFailed: Call value attached to a token payment
    """
    payer, asset = to_address(payer), to_address(asset)

    if asset == NATIVE:
        if value < price:
            raise InsufficientValue(price, value)
        return value - price

    if value:
        raise PreconditionFailed("Native value sent with a token payment")
    token = contract.ledger.token(asset)
    balance = token.balance_of(payer)
    if balance < price:
        raise InsufficientBalance(price, balance)
    allowance = token.allowance(payer, contract.address)
    if allowance < price:
        raise InsufficientAllowance(price, allowance)
    contract._collect(asset, payer, price)
    return 0


def refund_excess(contract: Contract, payer: str, excess: int, fallback: str):
    """
    Return native overpayment to payer, best effort.

    If payer rejects the refund it is forwarded to fallback (the Vault);
    if that fails too the excess stays in contract.
    """
    if excess <= 0:
        return
    if contract._try_pay(NATIVE, payer, excess):
        return
    log.warning(f"{contract.label}: refund of {excess} to {payer} failed, forwarding to {fallback}")
    contract._try_pay(NATIVE, fallback, excess)

"""Revenue split arithmetic and payment collection."""

import pytest

from alfa.distributor import split_payment
from alfa.game_types import PERCENT_PRECISION, ZERO_ADDRESS, PayoutKind, ReferralEntry

from conftest import account

TEAM = account(100)
SINK = account(101)
P1, P2, P3 = account(1), account(2), account(3)


def chain(*entries):
    padded = list(entries) + [(ZERO_ADDRESS, 10000)] * (5 - len(entries))
    return [ReferralEntry(parent, percents) for parent, percents in padded]


def amounts(payouts):
    return [(p.kind, p.recipient, p.amount) for p in payouts]


def test_referral_team_and_sink():
    payouts = split_payment(10 ** 18, chain((P1, 80000), (P2, 40000)), TEAM, SINK, 800000)
    assert amounts(payouts) == [
        (PayoutKind.REFERRAL, P1, 8 * 10 ** 16),
        (PayoutKind.REFERRAL, P2, 4 * 10 ** 16),
        (PayoutKind.TEAM, TEAM, 8 * 10 ** 16),
        (PayoutKind.SINK, SINK, 8 * 10 ** 17),
    ]
    assert [p.level for p in payouts[:2]] == [1, 2]


def test_no_team_leg_when_remaining_within_cap():
    payouts = split_payment(1000, chain((P1, 300000)), TEAM, SINK, 800000)
    assert amounts(payouts) == [
        (PayoutKind.REFERRAL, P1, 300),
        (PayoutKind.SINK, SINK, 700),
    ]


def test_stops_at_first_zero_parent():
    entries = [ReferralEntry(P1, 80000), ReferralEntry(ZERO_ADDRESS, 40000), ReferralEntry(P3, 20000)]
    payouts = split_payment(1000, entries, TEAM, SINK, 500000)
    assert [p.recipient for p in payouts] == [P1, TEAM, SINK]


def test_sink_leg_computed_from_leftover():
    payouts = split_payment(7, chain((P1, 80000), (P2, 40000), (P3, 20000)), TEAM, SINK, 800000)
    # 7 * 8% = 0, 7 * 4% = 0, 7 * 2% = 0, team 7 * 6% = 0, sink 7 * 80% = 5
    assert [p.amount for p in payouts] == [0, 0, 0, 0, 5]


@pytest.mark.parametrize("total", [0, 1, 99, 10 ** 6 + 7, 3 * 10 ** 15, 123456789123456789])
@pytest.mark.parametrize("share", [0, 500000, 800000, PERCENT_PRECISION])
def test_conservation_within_truncation(total, share):
    payouts = split_payment(total, chain((P1, 80000), (P2, 40000), (P3, 20000)), TEAM, SINK, share)
    paid = sum(p.amount for p in payouts)
    assert paid <= total
    assert total - paid < len(payouts)


def test_full_cap_sends_everything_to_sink():
    payouts = split_payment(1000, chain(), TEAM, SINK, PERCENT_PRECISION)
    assert amounts(payouts) == [(PayoutKind.SINK, SINK, 1000)]


def test_rejects_negative_total_and_overdraw():
    with pytest.raises(ValueError):
        split_payment(-1, chain(), TEAM, SINK, 0)
    with pytest.raises(ValueError, match="overdraw"):
        split_payment(1, [ReferralEntry(P1, 600000), ReferralEntry(P2, 600000)], TEAM, SINK, 0)

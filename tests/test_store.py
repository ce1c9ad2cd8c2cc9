"""Lootbox sales: pricing, payment, distribution and referral extension."""

import threading
import time

import pytest

from alfa.errors import (
    AccessDenied, AdminError, InsufficientAllowance, InsufficientBalance,
    InsufficientValue, PreconditionFailed, ReentrancyError, TransferFailed,
)
from alfa.game_types import NATIVE

from conftest import BNB, USDT, account

# 1 USDT at devnet rates
BOX_1_BNB = 3 * 10 ** 15


def test_price_listing(protocol):
    prices = protocol.store.get_prices()

    assert [entries[0].type_id for entries in prices] == [1, 2, 3, 4, 5]
    first = {p.token: p.amount for p in prices[0]}
    assert first == {
        NATIVE: BOX_1_BNB,
        protocol.usdt.address: USDT,
        protocol.usdc.address: USDT,
    }
    assert protocol.store.get_price(4, protocol.usdt.address, 2) == 100 * USDT


def test_price_listing_tolerates_oracle_failure(protocol, ledger):
    protocol.oracle.router.clear_rate(protocol.usdt.address, protocol.usdc.address)
    prices = protocol.store.get_prices()
    usdc = [p for p in prices[0] if p.token == protocol.usdc.address]
    assert usdc[0].amount == 0


def test_buy_with_referral_chain(funded, buyer, parent, grandpa, team):
    p = funded
    usdt = p.usdt

    token_ids = p.store.buy(buyer, 1, usdt.address, 1, [parent, grandpa])

    assert token_ids == [1]
    assert p.lootbox.owner_of(1) == buyer
    assert p.lootbox.type_count(1) == 1
    assert usdt.balance_of(parent) == 8 * 10 ** 16
    assert usdt.balance_of(grandpa) == 4 * 10 ** 16
    assert usdt.balance_of(team) == 8 * 10 ** 16
    assert usdt.balance_of(p.vault.address) == 8 * 10 ** 17
    assert usdt.balance_of(buyer) == 999 * USDT
    assert p.referral.get_parent(buyer) == parent
    assert p.referral.get_parent(parent) == grandpa


def test_buy_emits_sale_and_rewards(funded, buyer, parent, ledger):
    p = funded
    p.store.buy(buyer, 2, p.usdt.address, 3, [parent])

    sale = ledger.get_events("BoxesPurchased", source=p.store.address)[-1].args
    assert sale["count"] == 3 and sale["amount"] == 15 * USDT
    assert sale["token_ids"] == [1, 2, 3]
    reward = ledger.get_events("ReferralRewardSent")[-1].args
    assert reward == {"holder": buyer, "parent": parent, "token": p.usdt.address,
                      "amount": 15 * USDT * 8 // 100, "level": 1}
    assert ledger.get_events("VaultRefilled")[-1].args["amount"] == 12 * USDT


def test_existing_link_is_kept(funded, buyer, parent, grandpa):
    p = funded
    p.store.buy(buyer, 1, p.usdt.address, 1, [parent])
    p.store.buy(buyer, 1, p.usdt.address, 1, [grandpa])
    assert p.referral.get_parent(buyer) == parent


def test_five_level_chain_pays_last_level(funded, buyer):
    p = funded
    ancestors = [account(n) for n in range(10, 15)]
    p.store.buy(buyer, 1, p.usdt.address, 1, ancestors)
    assert p.usdt.balance_of(ancestors[-1]) == USDT // 100


def test_buy_native_refunds_excess(funded, buyer, team, ledger):
    p = funded
    p.store.buy(buyer, 1, NATIVE, 1, value=10 ** 16)

    assert ledger.native_balance(buyer) == 10 * BNB - BOX_1_BNB
    assert ledger.native_balance(team) == BOX_1_BNB * 200000 // 10 ** 6
    assert ledger.native_balance(p.vault.address) == BOX_1_BNB * 800000 // 10 ** 6
    assert ledger.native_balance(p.store.address) == 0


def test_rejected_refund_goes_to_vault(funded, buyer, ledger):
    p = funded

    def reject(sender, amount):
        raise TransferFailed("contract wallet rejects")

    ledger.set_receive_hook(buyer, reject)
    p.store.buy(buyer, 1, NATIVE, 1, value=10 ** 16)

    assert ledger.native_balance(buyer) == 10 * BNB - 10 ** 16
    excess = 10 ** 16 - BOX_1_BNB
    assert ledger.native_balance(p.vault.address) == BOX_1_BNB * 8 // 10 + excess
    assert p.lootbox.balance_of(buyer) == 1


def test_insufficient_value(funded, buyer, ledger):
    with pytest.raises(InsufficientValue) as info:
        funded.store.buy(buyer, 1, NATIVE, 1, value=10 ** 15)
    assert (info.value.required, info.value.actual) == (BOX_1_BNB, 10 ** 15)
    assert info.value.to_dict()["error"] == "insufficient_value"
    assert ledger.native_balance(buyer) == 10 * BNB


def test_insufficient_balance_and_allowance(protocol, buyer):
    p = protocol
    with pytest.raises(InsufficientBalance) as info:
        p.store.buy(buyer, 1, p.usdt.address, 2)
    assert (info.value.required, info.value.actual) == (2 * USDT, 0)

    p.usdt.mint(buyer, 5 * USDT)
    p.usdt.approve(buyer, p.store.address, USDT)
    with pytest.raises(InsufficientAllowance) as info:
        p.store.buy(buyer, 1, p.usdt.address, 2)
    assert (info.value.required, info.value.actual) == (2 * USDT, USDT)


def test_value_with_token_payment_rejected(funded, buyer):
    with pytest.raises(PreconditionFailed, match="Native value"):
        funded.store.buy(buyer, 1, funded.usdt.address, 1, value=1)


@pytest.mark.parametrize("type_id,count,message", [
    (1, 0, "count must be positive"),
    (6, 1, "Unknown lootbox type"),
    (0, 1, "Unknown lootbox type"),
])
def test_buy_preconditions(funded, buyer, type_id, count, message):
    with pytest.raises(PreconditionFailed, match=message):
        funded.store.buy(buyer, type_id, funded.usdt.address, count)


def test_disallowed_token(funded, buyer):
    with pytest.raises(PreconditionFailed, match="Token is not allowed"):
        funded.store.buy(buyer, 1, funded.wbnb.address, 1)


def test_unpriced_type(funded, buyer, admin):
    funded.store.set_price(admin, 3, 0)
    with pytest.raises(PreconditionFailed, match="not for sale"):
        funded.store.buy(buyer, 3, funded.usdt.address, 1)


def test_sale_closed_at_unlock(funded, buyer, ledger):
    ledger.set_timestamp(funded.vault.unlock_date)
    with pytest.raises(PreconditionFailed, match="Sale ended"):
        funded.store.buy(buyer, 1, funded.usdt.address, 1)


def test_failed_distribution_reverts_everything(funded, buyer, parent, admin, ledger):
    p = funded
    # A component without receive() rejects native coin
    p.store.set_team_account(admin, p.key.address)
    events_before = len(ledger.events)

    with pytest.raises(TransferFailed):
        p.store.buy(buyer, 1, NATIVE, 1, [parent], value=BOX_1_BNB)

    assert ledger.native_balance(buyer) == 10 * BNB
    assert p.lootbox.balance_of(buyer) == 0
    assert p.referral.get_parent(buyer) == "0x0000000000000000000000000000000000000000"
    assert len(ledger.events) == events_before


def test_reentrant_buy_from_refund_is_blocked(funded, buyer, ledger):
    p = funded
    seen = []

    def reenter(sender, amount):
        try:
            p.store.buy(buyer, 1, NATIVE, 1, value=BOX_1_BNB)
        except ReentrancyError as e:
            seen.append(e)

    ledger.set_receive_hook(buyer, reenter)
    p.store.buy(buyer, 1, NATIVE, 1, value=2 * BOX_1_BNB)

    assert len(seen) == 1
    assert p.lootbox.balance_of(buyer) == 1


def test_admin_settings(protocol, admin, buyer):
    store = protocol.store
    with pytest.raises(AccessDenied):
        store.set_price(buyer, 1, 1)
    with pytest.raises(AdminError):
        store.set_vault_share(admin, 1_000_001)
    store.set_vault_share(admin, 900000)
    assert store.vault_share == 900000


def test_withdraw_truncation_dust(funded, buyer, admin, ledger):
    p = funded
    # Odd price so every leg truncates
    p.store.set_price(admin, 1, 10 ** 18 + 7)
    parent = account(20)
    p.store.buy(buyer, 1, p.usdt.address, 1, [parent])

    dust = p.usdt.balance_of(p.store.address)
    assert dust > 0
    p.store.withdraw(admin, p.usdt.address, dust)
    assert p.usdt.balance_of(admin) == dust


def test_concurrent_buyers_are_serialized(funded, buyer, parent, ledger):
    p = funded
    other = account(50)
    ledger.mint_native(other, BNB)
    a_inside, b_started = threading.Event(), threading.Event()

    def reject(sender, amount):
        a_inside.set()
        b_started.wait(timeout=5)
        time.sleep(0.05)
        raise TransferFailed("parent rejects")

    def second_buyer():
        a_inside.wait(timeout=5)
        b_started.set()
        return p.store.buy(other, 1, NATIVE, 1, value=BOX_1_BNB)

    ledger.set_receive_hook(parent, reject)
    errors, results = [], []

    def run(target):
        try:
            results.append(target())
        except Exception as e:
            errors.append(e)

    threads = [
        threading.Thread(target=run, args=(lambda: p.store.buy(buyer, 1, NATIVE, 1, [parent], value=BNB),)),
        threading.Thread(target=run, args=(second_buyer,)),
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)

    assert [type(e) for e in errors] == [TransferFailed]
    assert results == [[1]]
    assert p.lootbox.owner_of(1) == other
    assert p.lootbox.balance_of(buyer) == 0
    assert ledger.native_balance(buyer) == 10 * BNB
    assert p.referral.get_parent(buyer) == "0x0000000000000000000000000000000000000000"

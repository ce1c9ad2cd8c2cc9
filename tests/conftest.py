"""Shared fixtures: ledger, accounts and a fully wired devnet protocol."""

from typing import List

import pytest

from alfa.config import Config
from alfa.game_types import to_address
from alfa.ledger import Ledger
from alfa.protocol import DEVNET_DEPLOYER, deploy_protocol

# One week before the default unlock date
START_TIME = 1761480000 - 7 * 24 * 3600

USDT = 10 ** 18
BNB = 10 ** 18


def account(n: int) -> str:
    return to_address("0x" + f"{0xA11CE000 + n:040x}")


class ScriptedRandomizer:
    """Returns queued draws in order, then `default`."""

    def __init__(self, default: int = 0):
        self.queue: List[int] = []
        self.default = default
        self.calls = []

    def push(self, *draws: int):
        self.queue.extend(draws)

    def draw(self, ledger, salt, nonce):
        self.calls.append((salt, nonce))
        return self.queue.pop(0) if self.queue else self.default


@pytest.fixture
def ledger():
    return Ledger(timestamp=START_TIME)


@pytest.fixture
def admin():
    return to_address(DEVNET_DEPLOYER)


@pytest.fixture
def buyer():
    return account(1)


@pytest.fixture
def parent():
    return account(2)


@pytest.fixture
def grandpa():
    return account(3)


@pytest.fixture
def team():
    return account(100)


@pytest.fixture
def burn():
    return account(101)


@pytest.fixture
def randomizer():
    return ScriptedRandomizer()


@pytest.fixture
def config(team, burn):
    return Config(team_account=team, burn_account=burn)


@pytest.fixture
def protocol(config, ledger, admin, randomizer):
    return deploy_protocol(config, ledger=ledger, deployer=admin, randomizer=randomizer)


@pytest.fixture
def funded(protocol, buyer):
    """Buyer with 1000 USDT approved to Store and Forge, and 10 BNB."""
    usdt = protocol.usdt
    usdt.mint(buyer, 1000 * USDT)
    usdt.approve(buyer, protocol.store.address, 1000 * USDT)
    usdt.approve(buyer, protocol.forge.address, 1000 * USDT)
    protocol.ledger.mint_native(buyer, 10 * BNB)
    return protocol

"""Configuration and deployment wiring."""

import pytest

from alfa.config import Config
from alfa.contract import BURNER_ROLE, CONNECTOR_ROLE, MINTER_ROLE
from alfa.game_types import NATIVE
from alfa.protocol import deploy_protocol

from conftest import account


def test_config_defaults():
    config = Config()
    assert config.vault_tokens == [NATIVE, config.usdt, config.usdc]
    assert config.unlock_date < config.redeem_until


def test_config_from_env(monkeypatch):
    monkeypatch.setenv("ALFA_HTTP_PORT", "9090")
    monkeypatch.setenv("ALFA_UNLOCK_DATE", "100")
    monkeypatch.setenv("ALFA_LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("ALFA_VAULT_TOKENS", f"{NATIVE}, {account(5)}")

    config = Config.from_env()

    assert config.http_port == 9090
    assert config.unlock_date == 100
    assert config.log_level == "DEBUG"
    assert config.vault_tokens == [NATIVE, account(5)]


def test_config_from_env_rejects_bad_numbers(monkeypatch):
    monkeypatch.setenv("ALFA_REDEEM_UNTIL", "soon")
    with pytest.raises(ValueError):
        Config.from_env()


def test_deploy_grants_roles(protocol):
    p = protocol
    assert p.key.has_role(BURNER_ROLE, p.vault.address)
    assert p.key.has_role(BURNER_ROLE, p.forge.address)
    assert p.key.has_role(MINTER_ROLE, p.lootbox.address)
    assert p.lootbox.has_role(MINTER_ROLE, p.store.address)
    assert p.referral.has_role(CONNECTOR_ROLE, p.store.address)
    assert p.referral.has_role(CONNECTOR_ROLE, p.forge.address)
    assert not p.lootbox.has_role(MINTER_ROLE, p.forge.address)


def test_deploy_applies_config(protocol, team, burn):
    p = protocol
    assert p.store.team_account == team
    assert p.forge.team_account == team
    assert p.forge.burn_account == burn
    assert p.vault.allowed_tokens == [NATIVE, p.usdt.address, p.usdc.address]
    assert len(set(p.addresses().values())) == 9


def test_deploy_without_catalog(ledger, admin):
    p = deploy_protocol(ledger=ledger, deployer=admin, catalog=False)
    assert p.key.get_types() == []
    assert p.store.get_prices() == []


def test_extra_vault_token_is_deployed(ledger, admin):
    extra = account(55)
    config = Config(vault_tokens=[NATIVE, extra])
    p = deploy_protocol(config, ledger=ledger, deployer=admin)
    assert ledger.token(extra).symbol == "TKN"
    assert p.vault.is_token_allowed(extra)

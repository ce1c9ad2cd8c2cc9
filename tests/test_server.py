"""REST API over a devnet protocol."""

import pytest

from alfa.game_types import NATIVE
from alfa.server import create_app

from conftest import BNB, USDT


@pytest.fixture
def client(protocol):
    app = create_app(protocol)
    app.config["TESTING"] = True
    return app.test_client()


def test_health_and_status(client, protocol):
    assert client.get("/health").get_json()["ok"] is True

    status = client.get("/api/status").get_json()
    assert status["sale_open"] is True
    assert status["redeem_open"] is False
    assert status["contracts"]["store"] == protocol.store.address


def test_types(client):
    keys = client.get("/api/types/keys").get_json()
    assert keys["count"] == 5
    assert keys["types"][0]["name"] == "Bronze Key"

    response = client.get("/api/types/weapons")
    assert response.status_code == 404
    assert response.get_json()["error"] == "not_found"


def test_prices(client, protocol):
    prices = client.get("/api/store/prices").get_json()["prices"]
    assert len(prices) == 5
    native = [p for p in prices[0] if p["token"] == NATIVE]
    assert native[0]["amount"] == 3 * 10 ** 15

    forge_prices = client.get("/api/forge/prices").get_json()["prices"]
    assert len(forge_prices) == 4


def test_buy_flow(client, protocol, buyer, parent):
    usdt = protocol.usdt.address
    faucet = client.post("/api/faucet", json={"account": buyer, "token": usdt, "amount": 10 * USDT})
    assert faucet.get_json()["balance"] == 10 * USDT
    protocol.usdt.approve(buyer, protocol.store.address, 10 * USDT)

    response = client.post("/api/store/buy", json={
        "sender": buyer, "type_id": 2, "token": usdt, "referral_parents": [parent],
    })

    assert response.status_code == 200
    assert response.get_json()["token_ids"] == [1]

    boxes = client.get(f"/api/lootboxes/{buyer}").get_json()
    assert boxes["amounts"]["2"] == 1
    assert boxes["tokens"] == [{"token_id": 1, "type_id": 2}]

    referral = client.get(f"/api/referral/{buyer}").get_json()
    assert referral["parent"] == parent
    assert referral["chain"][0]["parent"] == parent


def test_open_and_keys(client, protocol, buyer, randomizer):
    client.post("/api/faucet", json={"account": buyer, "amount": BNB})
    client.post("/api/store/buy", json={"sender": buyer, "type_id": 1, "value": BNB})
    randomizer.push(999999)

    key_id = client.post("/api/lootbox/open", json={"sender": buyer, "token_id": 1}).get_json()["key_id"]

    keys = client.get(f"/api/keys/{buyer}").get_json()
    assert keys["tokens"] == [{"token_id": key_id, "type_id": 1}]


def test_protocol_error_is_400(client, protocol, buyer):
    response = client.post("/api/store/buy", json={
        "sender": buyer, "type_id": 1, "token": protocol.usdt.address,
    })
    assert response.status_code == 400
    body = response.get_json()
    assert body["error"] == "insufficient_balance"
    assert (body["required"], body["actual"]) == (USDT, 0)


@pytest.mark.parametrize("payload", [
    {"type_id": 1},
    {"sender": "not-an-address", "type_id": 1},
    {"sender": "0x" + "11" * 20, "type_id": "one"},
])
def test_bad_request(client, payload):
    response = client.post("/api/store/buy", json=payload)
    assert response.status_code == 400
    assert response.get_json()["error"] == "bad_request"


def test_empty_body(client):
    assert client.post("/api/vault/redeem").status_code == 400


def test_vault_endpoints(client, protocol, admin, buyer, ledger):
    protocol.key.mint(admin, buyer, 5)
    ledger.mint_native(protocol.vault.address, 2 * BNB)

    tokens = client.get("/api/vault/tokens").get_json()
    assert tokens["total_shares"] == 1
    assert tokens["redeem_amounts"][0] == {"token": NATIVE, "amount": 2 * BNB}
    assert client.get(f"/api/vault/share/{buyer}").get_json()["share"] == 10 ** 6

    early = client.post("/api/vault/redeem", json={"sender": buyer, "token_id": 1})
    assert early.get_json()["error"] == "precondition_failed"

    ledger.set_timestamp(protocol.vault.unlock_date)
    paid = client.post("/api/vault/redeem", json={"sender": buyer, "token_id": 1}).get_json()["amounts"]
    assert paid[0]["amount"] == 2 * BNB

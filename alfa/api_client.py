"""
ALFA Protocol - API Client

HTTP client for the protocol REST server.
"""

from typing import Any, Dict, List, Optional, Sequence

import requests

from .game_types import NATIVE


class APIError(Exception):
    """API call failed."""
    def __init__(self, code: str, message: str, payload: Optional[dict] = None):
        self.code = code
        self.message = message
        self.payload = payload or {}
        super().__init__(f"API Error {code}: {message}")


class ProtocolClient:
    """
    Client for alfa.server.

    Usage:
        api = ProtocolClient("http://localhost:8080")
        prices = api.store_prices()
        box_ids = api.buy(buyer, type_id=1, value=prices[0][0]["amount"])
    """

    def __init__(self, base_url: str = "http://localhost:8080", timeout: int = 30):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()

    def _request(self, method: str, path: str, payload: dict = None) -> Any:
        """Make HTTP call, raising APIError on transport or protocol failure."""
        try:
            response = self.session.request(
                method,
                f"{self.base_url}{path}",
                json=payload,
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            raise APIError("connection_failed", f"Connection failed: {e}")

        try:
            result = response.json()
        except ValueError:
            response.raise_for_status()
            raise APIError("invalid_response", f"Non-JSON response from {path}")

        if response.status_code >= 400:
            raise APIError(
                result.get("error", str(response.status_code)),
                result.get("message", response.reason),
                result
            )
        return result

    def _get(self, path: str) -> Any:
        return self._request("GET", path)

    def _post(self, path: str, payload: dict) -> Any:
        return self._request("POST", path, payload)

    # ═══════════════════════════════════════════════════════════════════════
    # QUERIES
    # ═══════════════════════════════════════════════════════════════════════

    def status(self) -> dict:
        return self._get("/api/status")

    def types(self, collection: str = "keys") -> List[dict]:
        """Type definitions of 'keys' or 'lootboxes'."""
        return self._get(f"/api/types/{collection}")["types"]

    def store_prices(self) -> List[List[dict]]:
        return self._get("/api/store/prices")["prices"]

    def forge_prices(self) -> List[List[dict]]:
        return self._get("/api/forge/prices")["prices"]

    def vault_tokens(self) -> dict:
        return self._get("/api/vault/tokens")

    def vault_share(self, holder: str) -> int:
        return self._get(f"/api/vault/share/{holder}")["share"]

    def referral(self, account: str) -> dict:
        return self._get(f"/api/referral/{account}")

    def keys(self, holder: str) -> dict:
        return self._get(f"/api/keys/{holder}")

    def lootboxes(self, holder: str) -> dict:
        return self._get(f"/api/lootboxes/{holder}")

    # ═══════════════════════════════════════════════════════════════════════
    # ACTIONS
    # ═══════════════════════════════════════════════════════════════════════

    def buy(self, sender: str, type_id: int, token: str = NATIVE, count: int = 1,
            referral_parents: Sequence[str] = (), value: int = 0) -> List[int]:
        """Buy lootboxes, returns minted box ids."""
        return self._post("/api/store/buy", {
            "sender": sender,
            "type_id": type_id,
            "token": token,
            "count": count,
            "referral_parents": list(referral_parents),
            "value": value,
        })["token_ids"]

    def upgrade(self, sender: str, token_id: int, token: str = NATIVE, value: int = 0,
                referral_parents: Sequence[str] = ()) -> Optional[int]:
        """Upgrade a key, returns the new key id (None if burned only)."""
        return self._post("/api/forge/upgrade", {
            "sender": sender,
            "token_id": token_id,
            "token": token,
            "value": value,
            "referral_parents": list(referral_parents),
        })["new_token_id"]

    def open_lootbox(self, sender: str, token_id: int) -> Optional[int]:
        return self._post("/api/lootbox/open", {"sender": sender, "token_id": token_id})["key_id"]

    def redeem(self, sender: str, token_id: int) -> List[Dict[str, Any]]:
        return self._post("/api/vault/redeem", {"sender": sender, "token_id": token_id})["amounts"]

    def faucet(self, account: str, amount: int, token: str = NATIVE) -> int:
        """Devnet only. Returns the new balance."""
        return self._post("/api/faucet", {"account": account, "token": token, "amount": amount})["balance"]

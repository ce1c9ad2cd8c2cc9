"""
ALFA Protocol - Price Oracle

Spot quotes between the reference unit (USDT) and payment assets through
a DEX router's getAmountsOut.

Routing:
  - Direct path [reference, target] first
  - On OracleError, fallback path [reference, bridge, target]
  - Fallback failure propagates (no further retry)
  - The native coin is routed as the wrapped-native bridge asset

Quotes are instantaneous. Two quotes for the same amount may differ if
the router's reserves move between them.
"""

import logging
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

from web3 import Web3

from .errors import OracleError
from .game_types import NATIVE, to_address

log = logging.getLogger(__name__)

# Below this many smallest units a balance is valued at zero
DUST_THRESHOLD = 1_000

ROUTER_ABI = [
    {
        "name": "getAmountsOut",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": "amountIn", "type": "uint256"},
            {"name": "path", "type": "address[]"}
        ],
        "outputs": [{"name": "amounts", "type": "uint256[]"}]
    }
]


class Router(Protocol):
    """Price-oracle capability."""

    def get_amounts_out(self, amount_in: int, path: Sequence[str]) -> List[int]:
        ...


# ═══════════════════════════════════════════════════════════════════════════════
# ROUTERS
# ═══════════════════════════════════════════════════════════════════════════════

class StaticRouter:
    """
    Fixed-rate router for devnet and tests.

    Usage:
        router = StaticRouter()
        router.set_rate(USDT, WBNB, 3, 1000)   # 1 USDT -> 0.003 WBNB
        router.get_amounts_out(10**18, [USDT, WBNB])
    """

    def __init__(self):
        self.rates: Dict[Tuple[str, str], Tuple[int, int]] = {}

    def set_rate(self, asset_in: str, asset_out: str, numerator: int, denominator: int):
        if denominator <= 0:
            raise ValueError(f"Denominator must be positive, got {denominator}")
        self.rates[(to_address(asset_in), to_address(asset_out))] = (numerator, denominator)

    def clear_rate(self, asset_in: str, asset_out: str):
        self.rates.pop((to_address(asset_in), to_address(asset_out)), None)

    def get_amounts_out(self, amount_in: int, path: Sequence[str]) -> List[int]:
        if len(path) < 2:
            raise OracleError("Path must contain at least two assets")
        amounts = [amount_in]
        for asset_in, asset_out in zip(path, path[1:]):
            rate = self.rates.get((to_address(asset_in), to_address(asset_out)))
            if rate is None:
                raise OracleError(f"No liquidity for {asset_in} -> {asset_out}")
            numerator, denominator = rate
            amounts.append(amounts[-1] * numerator // denominator)
        return amounts


class Web3Router:
    """
    Live DEX router (UniswapV2/PancakeSwap interface) via web3.

    Any transport or contract failure is raised as OracleError.
    """

    def __init__(self, rpc_url: str, router_address: str, w3: Optional[Web3] = None):
        self.w3 = w3 if w3 is not None else Web3(Web3.HTTPProvider(rpc_url))
        self.contract = self.w3.eth.contract(
            address=Web3.to_checksum_address(router_address),
            abi=ROUTER_ABI
        )

    def get_amounts_out(self, amount_in: int, path: Sequence[str]) -> List[int]:
        checksummed = [Web3.to_checksum_address(a) for a in path]
        try:
            amounts = self.contract.functions.getAmountsOut(amount_in, checksummed).call()
        except Exception as e:
            raise OracleError(f"getAmountsOut failed for {len(path)}-hop path: {e}") from e
        return [int(a) for a in amounts]


# ═══════════════════════════════════════════════════════════════════════════════
# ADAPTER
# ═══════════════════════════════════════════════════════════════════════════════

class PriceOracle:
    """
    Quotes reference-unit amounts in payment assets and back.

    Args:
        router: Object exposing get_amounts_out(amount_in, path)
        reference_asset: Stable reference unit (USDT)
        bridge_asset: Intermediate hop for fallback routes (WBNB)
        dust_threshold: Amounts below this are valued at zero
    """

    def __init__(self, router: Router, reference_asset: str, bridge_asset: str,
                 dust_threshold: int = DUST_THRESHOLD):
        self.router = router
        self.reference_asset = to_address(reference_asset)
        self.bridge_asset = to_address(bridge_asset)
        self.dust_threshold = dust_threshold

    def quote(self, reference_amount: int, target_asset: str) -> int:
        """
        Price of reference_amount USDT in target_asset.

        Raises:
            OracleError: If both the direct and the fallback route fail
        """
        target = self._routed(target_asset)
        if target == self.reference_asset:
            return reference_amount
        return self._quote_path(
            reference_amount,
            [self.reference_asset, target],
            [self.reference_asset, self.bridge_asset, target],
        )

    def quote_from_asset(self, source_asset: str, source_amount: int) -> int:
        """
        Reference-unit value of source_amount of source_asset.

        Dust amounts short-circuit to zero without a router call.

        Raises:
            OracleError: If both the direct and the fallback route fail
        """
        if source_amount < self.dust_threshold:
            return 0
        source = self._routed(source_asset)
        if source == self.reference_asset:
            return source_amount
        return self._quote_path(
            source_amount,
            [source, self.reference_asset],
            [source, self.bridge_asset, self.reference_asset],
        )

    def _routed(self, asset: str) -> str:
        asset = to_address(asset)
        return self.bridge_asset if asset == NATIVE else asset

    def _quote_path(self, amount: int, direct: List[str], fallback: List[str]) -> int:
        try:
            return self.router.get_amounts_out(amount, direct)[-1]
        except OracleError as e:
            if self.bridge_asset in direct:
                raise
            log.debug(f"Direct route {direct} failed ({e}), trying via bridge")
        return self.router.get_amounts_out(amount, fallback)[-1]

"""Price quoting with direct and bridge routes."""

import pytest

from alfa.errors import OracleError
from alfa.game_types import NATIVE
from alfa.oracle import PriceOracle, StaticRouter, Web3Router

from conftest import account

USDT = account(50)
WBNB = account(51)
CAKE = account(52)


class RecordingRouter(StaticRouter):
    def __init__(self):
        super().__init__()
        self.paths = []

    def get_amounts_out(self, amount_in, path):
        self.paths.append(list(path))
        return super().get_amounts_out(amount_in, path)


@pytest.fixture
def router():
    router = RecordingRouter()
    router.set_rate(USDT, WBNB, 3, 1000)
    router.set_rate(WBNB, USDT, 1000, 3)
    return router


@pytest.fixture
def oracle(router):
    return PriceOracle(router, USDT, WBNB)


def test_reference_asset_is_identity(oracle, router):
    assert oracle.quote(10 ** 18, USDT) == 10 ** 18
    assert router.paths == []


def test_direct_route(oracle, router):
    assert oracle.quote(10 ** 18, WBNB) == 3 * 10 ** 15
    assert router.paths == [[USDT, WBNB]]


def test_native_is_routed_as_bridge(oracle, router):
    assert oracle.quote(10 ** 18, NATIVE) == 3 * 10 ** 15
    assert router.paths == [[USDT, WBNB]]


def test_fallback_through_bridge(oracle, router):
    router.set_rate(WBNB, CAKE, 100, 1)
    # 1 USDT -> 0.003 WBNB -> 0.3 CAKE
    assert oracle.quote(10 ** 18, CAKE) == 3 * 10 ** 17
    assert router.paths == [[USDT, CAKE], [USDT, WBNB, CAKE]]


def test_direct_route_preferred(oracle, router):
    router.set_rate(WBNB, CAKE, 100, 1)
    router.set_rate(USDT, CAKE, 2, 1)
    assert oracle.quote(10 ** 18, CAKE) == 2 * 10 ** 18
    assert router.paths == [[USDT, CAKE]]


def test_fallback_failure_propagates(oracle, router):
    with pytest.raises(OracleError):
        oracle.quote(10 ** 18, CAKE)
    assert len(router.paths) == 2


def test_bridge_target_has_no_fallback(oracle, router):
    router.clear_rate(USDT, WBNB)
    with pytest.raises(OracleError):
        oracle.quote(10 ** 18, WBNB)
    assert router.paths == [[USDT, WBNB]]


def test_quote_from_asset(oracle, router):
    assert oracle.quote_from_asset(NATIVE, 3 * 10 ** 18) == 10 ** 21
    assert oracle.quote_from_asset(USDT, 5 * 10 ** 18) == 5 * 10 ** 18


def test_quote_from_asset_dust_short_circuits(oracle, router):
    assert oracle.quote_from_asset(CAKE, 999) == 0
    assert router.paths == []


def test_quote_from_asset_fallback(oracle, router):
    router.set_rate(CAKE, WBNB, 1, 100)
    # 100 CAKE -> 1 WBNB -> 333.33 USDT
    assert oracle.quote_from_asset(CAKE, 100 * 10 ** 18) == 10 ** 18 * 1000 // 3
    assert router.paths == [[CAKE, USDT], [CAKE, WBNB, USDT]]


def test_static_router_rejects_bad_denominator():
    with pytest.raises(ValueError):
        StaticRouter().set_rate(USDT, WBNB, 1, 0)


# ═══════════════════════════════════════════════════════════════════════════════
# Web3Router
# ═══════════════════════════════════════════════════════════════════════════════

class _Call:
    def __init__(self, result):
        self.result = result

    def call(self):
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class _Functions:
    def __init__(self, result):
        self.result = result
        self.args = None

    def getAmountsOut(self, amount_in, path):
        self.args = (amount_in, path)
        return _Call(self.result)


class _Contract:
    def __init__(self, result):
        self.functions = _Functions(result)


class _Eth:
    def __init__(self, result):
        self.contract_args = None
        self.result = result

    def contract(self, address, abi):
        self.contract_args = (address, abi)
        return _Contract(self.result)


class _W3:
    def __init__(self, result):
        self.eth = _Eth(result)


def test_web3_router_calls_get_amounts_out():
    w3 = _W3([10 ** 18, 3 * 10 ** 15])
    router = Web3Router("http://unused", "0x10ed43c718714eb63d5aa57b78b54704e256024e", w3=w3)

    assert router.get_amounts_out(10 ** 18, [USDT, WBNB]) == [10 ** 18, 3 * 10 ** 15]
    assert router.contract.functions.args == (10 ** 18, [USDT, WBNB])
    assert w3.eth.contract_args[0] == "0x10ED43C718714eb63d5aA57B78B54704E256024E"


def test_web3_router_wraps_failures():
    router = Web3Router("http://unused", USDT, w3=_W3(RuntimeError("execution reverted")))
    with pytest.raises(OracleError, match="execution reverted"):
        router.get_amounts_out(1, [USDT, WBNB])


def test_web3_router_failure_triggers_fallback():
    class Flaky:
        def __init__(self):
            self.calls = 0

        def get_amounts_out(self, amount_in, path):
            self.calls += 1
            if len(path) == 2:
                raise OracleError("no liquidity")
            return [amount_in, amount_in, amount_in * 7]

    flaky = Flaky()
    assert PriceOracle(flaky, USDT, WBNB).quote(2, CAKE) == 14
    assert flaky.calls == 2

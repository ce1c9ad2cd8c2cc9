"""
ALFA Protocol - Ledger

In-process execution environment for the protocol components.

Architecture:
  - Components (contracts, tokens) register here and get an address
  - Native coin balances live here, keyed by account address
  - Every public mutating entry point runs inside atomic(): on any
    exception all component state, balances and events are restored
  - Nested atomic() blocks are savepoints (a caught failure inside
    one reverts only that block, like a reverted sub-call)
  - Each committed outermost transaction mines one block
  - Transactions are serialized: the outermost atomic() holds a
    re-entrant lock, so concurrent callers (server threads) wait

Usage:
    ledger = Ledger(timestamp=1_760_000_000)
    ledger.mint_native(alice, 10**18)

    with ledger.atomic():
        ledger.transfer_native(alice, bob, 10**17)

    ledger.advance_time(3600)
"""

import copy
import logging
import threading
import time
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from web3 import Web3

from .errors import PreconditionFailed, TransferFailed
from .game_types import NATIVE, Event, to_address

log = logging.getLogger(__name__)

# Ledger attributes kept across a rollback (the append-only event log is truncated instead)
_UNVERSIONED = frozenset({"_receive_hooks", "_depth", "_lock", "events"})

_CONTAINERS = (dict, list, set)


class Ledger:
    """
    Shared, globally visible state for one protocol deployment.

    Time is whatever the ledger says it is: tests and the devnet server
    move it explicitly with set_timestamp()/advance_time().
    """

    def __init__(self, timestamp: Optional[int] = None, block_number: int = 1):
        self.timestamp = int(time.time()) if timestamp is None else int(timestamp)
        self.block_number = block_number
        self.native_balances: Dict[str, int] = {}
        self.events: List[Event] = []
        self._components: Dict[str, Any] = {}
        self._deploy_nonce = 0
        self._receive_hooks: Dict[str, Callable[[str, int], None]] = {}
        self._depth = 0
        self._lock = threading.RLock()

    # ═══════════════════════════════════════════════════════════════════════
    # COMPONENTS
    # ═══════════════════════════════════════════════════════════════════════

    def register(self, component: Any, label: str, address: Optional[str] = None) -> str:
        """
        Register a component and assign its address.

        Args:
            component: Contract or token object
            label: Human-readable name, mixed into the derived address
            address: Fixed address (e.g. a well-known token), optional

        Returns:
            Checksummed component address
        """
        if address is None:
            self._deploy_nonce += 1
            digest = Web3.solidity_keccak(["string", "uint256"], [label, self._deploy_nonce])
            address = to_address("0x" + bytes(digest)[-20:].hex())
        else:
            address = to_address(address)
        if address in self._components:
            raise PreconditionFailed(f"Address {address} is already in use")
        self._components[address] = component
        log.debug(f"Registered {label} at {address}")
        return address

    def component(self, address: str) -> Any:
        """Get registered component by address (None if not a component)."""
        return self._components.get(to_address(address))

    def token(self, address: str) -> Any:
        """
        Get fungible token component by address.

        Raises:
            PreconditionFailed: If no token is deployed at address
        """
        component = self._components.get(to_address(address))
        if component is None or not hasattr(component, "transfer_from"):
            raise PreconditionFailed(f"No token at {address}")
        return component

    def set_receive_hook(self, account: str, hook: Optional[Callable[[str, int], None]]):
        """
        Install code that runs when an external account receives native coin.

        Used to simulate contract wallets (rejecting or re-entering payees).
        Pass None to remove the hook.
        """
        account = to_address(account)
        if hook is None:
            self._receive_hooks.pop(account, None)
        else:
            self._receive_hooks[account] = hook

    # ═══════════════════════════════════════════════════════════════════════
    # TIME / BLOCKS
    # ═══════════════════════════════════════════════════════════════════════

    def set_timestamp(self, timestamp: int):
        self.timestamp = int(timestamp)

    def advance_time(self, seconds: int):
        self.timestamp += int(seconds)

    def prevrandao(self) -> int:
        """Per-block entropy value."""
        digest = Web3.solidity_keccak(["uint256"], [self.block_number])
        return int.from_bytes(bytes(digest), "big")

    # ═══════════════════════════════════════════════════════════════════════
    # NATIVE COIN
    # ═══════════════════════════════════════════════════════════════════════

    def native_balance(self, account: str) -> int:
        return self.native_balances.get(to_address(account), 0)

    def balance_of(self, asset: str, account: str) -> int:
        """Balance of native coin (NATIVE) or a fungible token."""
        if to_address(asset) == NATIVE:
            return self.native_balance(account)
        return self.token(asset).balance_of(account)

    def mint_native(self, account: str, amount: int):
        """Credit native coin out of thin air (devnet faucet)."""
        account = to_address(account)
        with self.atomic():
            self.native_balances[account] = self.native_balances.get(account, 0) + amount

    def move_native(self, sender: str, to: str, amount: int):
        """
        Move native coin without running recipient code.

        This is the value attached to a call: it is credited before the
        called component executes.

        Raises:
            TransferFailed: If sender balance is too low
        """
        sender, to = to_address(sender), to_address(to)
        if amount < 0:
            raise ValueError(f"Amount must be non-negative, got {amount}")
        with self.atomic():
            balance = self.native_balances.get(sender, 0)
            if balance < amount:
                raise TransferFailed(f"Native transfer of {amount} exceeds balance {balance} of {sender}")
            self.native_balances[sender] = balance - amount
            self.native_balances[to] = self.native_balances.get(to, 0) + amount

    def transfer_native(self, sender: str, to: str, amount: int):
        """
        Send native coin and run the recipient's receive code.

        Components must implement receive(sender, amount) to accept plain
        transfers. External accounts accept unless a receive hook says
        otherwise.

        Raises:
            TransferFailed: If the balance is too low or the recipient rejects
        """
        with self.atomic():
            self.move_native(sender, to, amount)
            to = to_address(to)
            component = self._components.get(to)
            if component is not None:
                receive = getattr(component, "receive", None)
                if receive is None:
                    raise TransferFailed(f"{component.label} does not accept native transfers")
                receive(to_address(sender), amount)
            elif to in self._receive_hooks:
                self._receive_hooks[to](to_address(sender), amount)

    # ═══════════════════════════════════════════════════════════════════════
    # EVENTS
    # ═══════════════════════════════════════════════════════════════════════

    def emit(self, source: str, name: str, args: Dict[str, Any]):
        self.events.append(Event(
            source=source,
            name=name,
            args=args,
            block=self.block_number,
            timestamp=self.timestamp,
        ))

    def get_events(self, name: Optional[str] = None, source: Optional[str] = None) -> List[Event]:
        """Filter the event log by name and/or emitting address."""
        events = self.events
        if name is not None:
            events = [e for e in events if e.name == name]
        if source is not None:
            source = to_address(source)
            events = [e for e in events if e.source == source]
        return list(events)

    # ═══════════════════════════════════════════════════════════════════════
    # TRANSACTIONS
    # ═══════════════════════════════════════════════════════════════════════

    @contextmanager
    def atomic(self) -> Iterator["Ledger"]:
        """
        All-or-nothing execution scope.

        On exception every registered component, every balance and the
        event log return to their state at entry, then the exception
        propagates. The outermost block holds the ledger lock until it
        commits or rolls back, so transactions from different threads
        run one at a time.
        """
        with self._lock:
            snapshot = self._snapshot()
            self._depth += 1
            try:
                yield self
            except BaseException:
                self._depth -= 1
                self._restore(snapshot)
                raise
            else:
                self._depth -= 1
                if self._depth == 0:
                    self.block_number += 1

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    def _snapshot(self) -> Tuple[int, List[tuple]]:
        # Components keep their identity; only containers are copied.
        memo = {id(c): c for c in self._components.values()}
        memo[id(self)] = self
        saved = []
        for obj in [self, *self._components.values()]:
            state = {}
            for name, value in vars(obj).items():
                if obj is self and name in _UNVERSIONED:
                    continue
                state[name] = copy.deepcopy(value, memo) if isinstance(value, _CONTAINERS) else value
            saved.append((obj, state))
        return len(self.events), saved

    def _restore(self, snapshot: Tuple[int, List[tuple]]):
        event_count, saved = snapshot
        del self.events[event_count:]
        for obj, state in saved:
            attrs = vars(obj)
            if obj is self:
                keep = {k: attrs[k] for k in _UNVERSIONED}
                attrs.clear()
                attrs.update(keep)
            else:
                attrs.clear()
            attrs.update(state)

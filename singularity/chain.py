"""
In-process ledger hosting the engine's contracts.

The Chain owns every contract by address, the native balances, the current
block timestamp and the chain id. State-mutating calls run inside
``Chain.transaction()``: the outermost call snapshots the whole ledger and
restores it if anything raises, so an operation either fully commits or
leaves no trace. Calls are serialized by a re-entrant lock.
"""
import functools
import logging
import threading
import time
from contextlib import contextmanager
from typing import Optional

import msgpack

from singularity.config import Config
from singularity.crypto import contract_address
from singularity.errors import ValidationError, InsufficientBalance, NegativeAmount, ZeroAddress
from singularity.fixed_point import ZERO_ADDRESS

logger = logging.getLogger(__name__)

# Reserved addresses
DEPLOYER_ADDRESS = b'\x00' * 19 + b'\x01'


def pack_balances(balances: dict) -> dict:
    """Encode an address -> amount mapping for storage."""
    return {addr.hex(): str(amount) for addr, amount in balances.items()}


def unpack_balances(data: dict) -> dict:
    return {bytes.fromhex(addr): int(amount) for addr, amount in data.items()}


def pack_allowances(allowances: dict) -> dict:
    return {owner.hex(): pack_balances(spenders) for owner, spenders in allowances.items()}


def unpack_allowances(data: dict) -> dict:
    return {bytes.fromhex(owner): unpack_balances(spenders) for owner, spenders in data.items()}


class Contract:
    """
    Base class for everything that lives at an address on the Chain.

    Subclasses implement ``to_dict``/``load_state`` so the ledger can be
    snapshotted and rolled back.
    """
    component = "Contract"

    def __init__(self, chain: 'Chain', address: Optional[bytes] = None):
        self.chain = chain
        self.address = chain.register(self, address)

    def to_dict(self) -> dict:
        raise NotImplementedError

    def load_state(self, data: dict):
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.address.hex()[:10]})"


def atomic(method):
    """Run a contract method inside a ledger transaction."""
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self.chain.transaction():
            return method(self, *args, **kwargs)
    return wrapper


class Chain:
    def __init__(self, config: Optional[Config] = None, timestamp: Optional[int] = None,
                 monitor=None):
        self.config = config or Config.default()
        self.chain_id = self.config.chain.chain_id
        self.timestamp = int(timestamp if timestamp is not None else time.time())
        self.monitor = monitor
        self.contracts = {}
        self.native_balances = {}
        self.deploy_nonce = 0
        self.total_transactions = 0
        self._lock = threading.RLock()
        self._depth = 0

    # ------------------------------------------------------------------
    # Contracts
    # ------------------------------------------------------------------

    def register(self, contract: Contract, address: Optional[bytes] = None) -> bytes:
        if address is None:
            address = contract_address(DEPLOYER_ADDRESS, self.deploy_nonce)
            self.deploy_nonce += 1
        if address == ZERO_ADDRESS:
            raise ZeroAddress("Chain")
        if address in self.contracts:
            raise ValidationError("Chain", f"address {address.hex()} already in use")
        self.contracts[address] = contract
        logger.debug(f"Deployed {type(contract).__name__} at {address.hex()}")
        return address

    def get_contract(self, address: bytes) -> Contract:
        contract = self.contracts.get(address)
        if contract is None:
            raise ValidationError("Chain", f"no contract at {address.hex()}")
        return contract

    def has_contract(self, address: bytes) -> bool:
        return address in self.contracts

    # ------------------------------------------------------------------
    # Native value
    # ------------------------------------------------------------------

    def native_balance(self, address: bytes) -> int:
        return self.native_balances.get(address, 0)

    def mint_native(self, address: bytes, value: int):
        """Credit native value out of thin air (genesis allocations, tests)."""
        if value < 0:
            raise NegativeAmount("Chain", "native value")
        self.native_balances[address] = self.native_balance(address) + value

    def transfer_native(self, sender: bytes, to: bytes, value: int):
        if value < 0:
            raise NegativeAmount("Chain", "native value")
        if self.native_balance(sender) < value:
            raise InsufficientBalance("Chain", "native value")
        self.native_balances[sender] -= value
        self.native_balances[to] = self.native_balance(to) + value

    # ------------------------------------------------------------------
    # Time
    # ------------------------------------------------------------------

    def advance_time(self, seconds: int):
        self.timestamp += seconds

    # ------------------------------------------------------------------
    # Atomicity
    # ------------------------------------------------------------------

    def snapshot(self) -> bytes:
        state = {
            'timestamp': self.timestamp,
            'deploy_nonce': self.deploy_nonce,
            'native_balances': pack_balances(self.native_balances),
            'contracts': {
                address.hex(): contract.to_dict()
                for address, contract in self.contracts.items()
            },
        }
        return msgpack.packb(state, use_bin_type=True)

    def restore(self, snapshot: bytes):
        state = msgpack.unpackb(snapshot, raw=False)
        self.timestamp = state['timestamp']
        self.deploy_nonce = state['deploy_nonce']
        self.native_balances = unpack_balances(state['native_balances'])

        saved = {bytes.fromhex(addr): data for addr, data in state['contracts'].items()}
        for address in list(self.contracts):
            if address not in saved:
                # Deployed by the transaction being rolled back
                del self.contracts[address]
        for address, data in saved.items():
            self.contracts[address].load_state(data)

    @contextmanager
    def transaction(self):
        """
        Atomic unit of work. Nested calls join the outermost transaction.

        Example:
            with chain.transaction():
                token.transfer(alice, bob, 10)
                token.transfer(bob, carol, 10)
        """
        with self._lock:
            if self._depth:
                self._depth += 1
                try:
                    yield self
                finally:
                    self._depth -= 1
                return

            snapshot = self.snapshot()
            self._depth = 1
            try:
                yield self
                self.total_transactions += 1
            except Exception as e:
                logger.warning(f"Transaction failed: {e}")
                self.restore(snapshot)
                if self.monitor is not None:
                    self.monitor.record_failure(getattr(e, 'reason', type(e).__name__))
                raise
            finally:
                self._depth = 0

"""
Fungible token collaborators: a plain ERC20 and the wrapped native token.

Every method takes the calling address explicitly as ``caller``.
"""
import logging

from singularity.chain import (
    Contract, atomic, pack_balances, unpack_balances, pack_allowances, unpack_allowances,
)
from singularity.errors import InsufficientBalance, InsufficientAllowance, NegativeAmount, ZeroAddress
from singularity.fixed_point import MAX_UINT256, ZERO_ADDRESS

logger = logging.getLogger(__name__)


class ERC20(Contract):
    component = "ERC20"

    def __init__(self, chain, name: str, symbol: str, decimals: int = 18, address: bytes = None):
        super().__init__(chain, address)
        self.name = name
        self.symbol = symbol
        self.decimals = decimals
        self.total_supply = 0
        self.balances = {}
        self.allowances = {}

    def to_dict(self) -> dict:
        return {
            'total_supply': str(self.total_supply),
            'balances': pack_balances(self.balances),
            'allowances': pack_allowances(self.allowances),
        }

    def load_state(self, data: dict):
        self.total_supply = int(data['total_supply'])
        self.balances = unpack_balances(data['balances'])
        self.allowances = unpack_allowances(data['allowances'])

    # Views

    def balance_of(self, owner: bytes) -> int:
        return self.balances.get(owner, 0)

    def allowance(self, owner: bytes, spender: bytes) -> int:
        return self.allowances.get(owner, {}).get(spender, 0)

    # Mutations

    @atomic
    def transfer(self, caller: bytes, to: bytes, amount: int) -> bool:
        self._transfer(caller, to, amount)
        return True

    @atomic
    def transfer_from(self, caller: bytes, owner: bytes, to: bytes, amount: int) -> bool:
        self._spend_allowance(owner, caller, amount)
        self._transfer(owner, to, amount)
        return True

    @atomic
    def approve(self, caller: bytes, spender: bytes, amount: int) -> bool:
        self._approve(caller, spender, amount)
        return True

    @atomic
    def increase_allowance(self, caller: bytes, spender: bytes, added: int) -> bool:
        self._check_amount(added)
        current = self.allowance(caller, spender)
        self._approve(caller, spender, min(current + added, MAX_UINT256))
        return True

    @atomic
    def mint(self, caller: bytes, to: bytes, amount: int):
        """Unrestricted faucet, stands in for however the asset is issued."""
        self._mint(to, amount)

    # Internals

    def _check_amount(self, amount: int):
        if amount < 0:
            raise NegativeAmount(self.component, f"{self.symbol}: {amount}")

    def _transfer(self, sender: bytes, to: bytes, amount: int):
        self._check_amount(amount)
        if to == ZERO_ADDRESS:
            raise ZeroAddress(self.component)
        balance = self.balance_of(sender)
        if balance < amount:
            raise InsufficientBalance(self.component, f"{self.symbol}: {balance} < {amount}")
        self.balances[sender] = balance - amount
        self.balances[to] = self.balance_of(to) + amount

    def _approve(self, owner: bytes, spender: bytes, amount: int):
        self._check_amount(amount)
        if spender == ZERO_ADDRESS:
            raise ZeroAddress(self.component)
        self.allowances.setdefault(owner, {})[spender] = amount

    def _spend_allowance(self, owner: bytes, spender: bytes, amount: int):
        self._check_amount(amount)
        current = self.allowance(owner, spender)
        if current == MAX_UINT256:
            return
        if current < amount:
            raise InsufficientAllowance(self.component, f"{self.symbol}: {current} < {amount}")
        self.allowances[owner][spender] = current - amount

    def _mint(self, to: bytes, amount: int):
        self._check_amount(amount)
        if to == ZERO_ADDRESS:
            raise ZeroAddress(self.component)
        self.total_supply += amount
        self.balances[to] = self.balance_of(to) + amount

    def _burn(self, owner: bytes, amount: int):
        self._check_amount(amount)
        balance = self.balance_of(owner)
        if balance < amount:
            raise InsufficientBalance(self.component, f"{self.symbol}: {balance} < {amount}")
        self.balances[owner] = balance - amount
        self.total_supply -= amount


class WrappedNative(ERC20):
    """Native value held 1:1 as an ERC20 balance."""

    def __init__(self, chain, name: str = "Wrapped FTM", symbol: str = "wFTM", address: bytes = None):
        super().__init__(chain, name, symbol, 18, address)

    @atomic
    def deposit(self, caller: bytes, value: int):
        self.chain.transfer_native(caller, self.address, value)
        self._mint(caller, value)
        logger.debug(f"Wrapped {value} native for {caller.hex()[:8]}")

    @atomic
    def withdraw(self, caller: bytes, amount: int):
        self._burn(caller, amount)
        self.chain.transfer_native(self.address, caller, amount)
        logger.debug(f"Unwrapped {amount} native for {caller.hex()[:8]}")

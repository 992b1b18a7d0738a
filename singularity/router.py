"""
Router: the only entry point allowed to move liquidity in and out of pools.

A swap from token A to token B is two pool legs joined by a USD value:

    usd_value  = pool_A.swap_in(amount_in)        # fee charged in A
    amount_out = pool_B.swap_out(usd_value, to)   # slippage + fee charged in B

Quotes run the very same math without mutating anything.
"""
import logging

from singularity.chain import Contract, atomic
from singularity.crypto import create2_address, generate_hash
from singularity.errors import (
    AmountIsZero, Expired, InsufficientInputAmount, InsufficientLiquidityAmount,
    InsufficientOutputAmount, InsufficientTokenAmount, InvalidInToken, InvalidOutToken,
    NegativeAmount, PoolNotFound,
)
from singularity.fixed_point import MAX_UINT256
from singularity.permit import PermitSignature
from singularity.pool import POOL_CODE_HASH

logger = logging.getLogger(__name__)


class Router(Contract):
    component = "SingularityRouter"

    def __init__(self, chain, factory: bytes, weth: bytes, address: bytes = None):
        super().__init__(chain, address)
        self.factory = factory
        self.WETH = weth

    def to_dict(self) -> dict:
        # Stateless
        return {}

    def load_state(self, data: dict):
        pass

    @property
    def pool_code_hash(self) -> bytes:
        return POOL_CODE_HASH

    # ------------------------------------------------------------------
    # Pool resolution
    # ------------------------------------------------------------------

    def pool_for(self, factory: bytes, token: bytes) -> bytes:
        """Pool address for ``token``, derived without reading the registry."""
        return create2_address(factory, generate_hash(token), POOL_CODE_HASH)

    def _get_pool(self, token: bytes):
        address = self.pool_for(self.factory, token)
        if not self.chain.has_contract(address):
            raise PoolNotFound(self.component, token.hex())
        return self.chain.get_contract(address)

    # ------------------------------------------------------------------
    # Quotes
    # ------------------------------------------------------------------

    def get_amount_out(self, amount_in: int, token_in: bytes, token_out: bytes) -> int:
        if amount_in <= 0:
            raise InsufficientInputAmount(self.component, str(amount_in))
        pool_in = self._get_pool(token_in)
        pool_out = self._get_pool(token_out)
        usd_value = pool_in.get_swap_in_quote(amount_in).usd_value
        return pool_out.get_swap_out_quote(usd_value).amount_out

    def get_amounts_out(self, amount_in: int, path: list) -> list:
        """Chained quote along ``path``; element i is the amount of path[i]."""
        if len(path) < 2:
            raise InvalidOutToken(self.component, "path needs at least two tokens")
        amounts = [amount_in]
        for token_in, token_out in zip(path, path[1:]):
            amounts.append(self.get_amount_out(amounts[-1], token_in, token_out))
        return amounts

    # ------------------------------------------------------------------
    # Liquidity
    # ------------------------------------------------------------------

    @atomic
    def add_liquidity(self, caller: bytes, token: bytes, amount: int, min_liquidity: int,
                      to: bytes, deadline: int) -> int:
        self._ensure(deadline)
        self._get_pool(token).ensure_not_paused()
        self._check_amounts(amount, min_liquidity)
        self.chain.get_contract(token).transfer_from(self.address, caller, self.address, amount)
        return self._add_liquidity(token, amount, min_liquidity, to)

    @atomic
    def add_liquidity_eth(self, caller: bytes, value: int, min_liquidity: int,
                          to: bytes, deadline: int) -> int:
        self._ensure(deadline)
        self._get_pool(self.WETH).ensure_not_paused()
        self._check_amounts(value, min_liquidity)
        self.chain.transfer_native(caller, self.address, value)
        self.chain.get_contract(self.WETH).deposit(self.address, value)
        return self._add_liquidity(self.WETH, value, min_liquidity, to)

    def _add_liquidity(self, token: bytes, amount: int, min_liquidity: int, to: bytes) -> int:
        pool = self._get_pool(token)
        self.chain.get_contract(token).increase_allowance(self.address, pool.address, amount)
        liquidity = pool.deposit(self.address, amount, to)
        if liquidity < min_liquidity:
            raise InsufficientLiquidityAmount(self.component, f"{liquidity} < {min_liquidity}")
        self._record_liquidity('add', pool)
        logger.info(f"Added liquidity: {amount} -> {liquidity} {pool.symbol} for {to.hex()[:8]}")
        return liquidity

    @atomic
    def remove_liquidity(self, caller: bytes, token: bytes, liquidity: int, min_amount: int,
                         to: bytes, deadline: int) -> int:
        self._ensure(deadline)
        return self._remove_liquidity(caller, token, liquidity, min_amount, to)

    @atomic
    def remove_liquidity_eth(self, caller: bytes, liquidity: int, min_amount: int,
                             to: bytes, deadline: int) -> int:
        self._ensure(deadline)
        amount = self._remove_liquidity(caller, self.WETH, liquidity, min_amount, self.address)
        self._unwrap_to(to, amount)
        return amount

    @atomic
    def remove_liquidity_with_permit(self, caller: bytes, token: bytes, liquidity: int,
                                     min_amount: int, to: bytes, deadline: int,
                                     approve_max: bool, signature: PermitSignature) -> int:
        self._ensure(deadline)
        self._check_remove(token, liquidity, min_amount)
        self._permit(caller, token, liquidity, deadline, approve_max, signature)
        return self._remove_liquidity(caller, token, liquidity, min_amount, to)

    @atomic
    def remove_liquidity_eth_with_permit(self, caller: bytes, liquidity: int, min_amount: int,
                                         to: bytes, deadline: int, approve_max: bool,
                                         signature: PermitSignature) -> int:
        self._ensure(deadline)
        self._check_remove(self.WETH, liquidity, min_amount)
        self._permit(caller, self.WETH, liquidity, deadline, approve_max, signature)
        amount = self._remove_liquidity(caller, self.WETH, liquidity, min_amount, self.address)
        self._unwrap_to(to, amount)
        return amount

    def _remove_liquidity(self, caller: bytes, token: bytes, liquidity: int, min_amount: int,
                          to: bytes) -> int:
        pool = self._check_remove(token, liquidity, min_amount)
        pool.transfer_from(self.address, caller, self.address, liquidity)
        amount = pool.withdraw(self.address, liquidity, to)
        if amount < min_amount:
            raise InsufficientTokenAmount(self.component, f"{amount} < {min_amount}")
        self._record_liquidity('remove', pool)
        logger.info(f"Removed liquidity: {liquidity} {pool.symbol} -> {amount} for {to.hex()[:8]}")
        return amount

    def _check_remove(self, token: bytes, liquidity: int, min_amount: int):
        pool = self._get_pool(token)
        pool.ensure_not_paused()
        self._check_amounts(liquidity, min_amount)
        return pool

    def _permit(self, caller: bytes, token: bytes, liquidity: int, deadline: int,
                approve_max: bool, signature: PermitSignature):
        value = MAX_UINT256 if approve_max else liquidity
        self._get_pool(token).permit(self.address, caller, self.address, value, deadline, signature)

    # ------------------------------------------------------------------
    # Swaps
    # ------------------------------------------------------------------

    @atomic
    def swap_exact_tokens_for_tokens(self, caller: bytes, token_in: bytes, token_out: bytes,
                                     amount_in: int, min_amount_out: int, to: bytes,
                                     deadline: int) -> int:
        self._ensure(deadline)
        self._prepare_swap(amount_in, token_in, token_out, min_amount_out)
        self.chain.get_contract(token_in).transfer_from(self.address, caller, self.address, amount_in)
        return self._swap(amount_in, token_in, token_out, min_amount_out, to)

    @atomic
    def swap_exact_eth_for_tokens(self, caller: bytes, value: int, token_in: bytes,
                                  token_out: bytes, min_amount_out: int, to: bytes,
                                  deadline: int) -> int:
        self._ensure(deadline)
        if token_in != self.WETH:
            raise InvalidInToken(self.component)
        self._prepare_swap(value, token_in, token_out, min_amount_out)
        self.chain.transfer_native(caller, self.address, value)
        self.chain.get_contract(self.WETH).deposit(self.address, value)
        return self._swap(value, token_in, token_out, min_amount_out, to)

    @atomic
    def swap_exact_tokens_for_eth(self, caller: bytes, token_in: bytes, token_out: bytes,
                                  amount_in: int, min_amount_out: int, to: bytes,
                                  deadline: int) -> int:
        self._ensure(deadline)
        if token_out != self.WETH:
            raise InvalidOutToken(self.component)
        self._prepare_swap(amount_in, token_in, token_out, min_amount_out)
        self.chain.get_contract(token_in).transfer_from(self.address, caller, self.address, amount_in)
        amount_out = self._swap(amount_in, token_in, token_out, min_amount_out, self.address)
        self._unwrap_to(to, amount_out)
        return amount_out

    def _prepare_swap(self, amount_in: int, token_in: bytes, token_out: bytes,
                      min_amount_out: int) -> int:
        """Checks before any asset moves: pools live, quote clears the minimum."""
        pool_in = self._get_pool(token_in)
        pool_out = self._get_pool(token_out)
        pool_in.ensure_not_paused()
        pool_out.ensure_not_paused()
        if min_amount_out < 0:
            raise NegativeAmount(self.component, str(min_amount_out))
        expected = self.get_amount_out(amount_in, token_in, token_out)
        if expected < min_amount_out:
            raise InsufficientOutputAmount(self.component, f"{expected} < {min_amount_out}")
        return expected

    def _swap(self, amount_in: int, token_in: bytes, token_out: bytes, min_amount_out: int,
              to: bytes) -> int:
        pool_in = self._get_pool(token_in)
        pool_out = self._get_pool(token_out)
        self.chain.get_contract(token_in).increase_allowance(self.address, pool_in.address, amount_in)
        usd_value = pool_in.swap_in(self.address, amount_in)
        amount_out = pool_out.swap_out(self.address, usd_value, to)
        if amount_out < min_amount_out:
            raise InsufficientOutputAmount(self.component, f"{amount_out} < {min_amount_out}")
        if self.chain.monitor is not None:
            self.chain.monitor.record_swap(pool_in, pool_out, usd_value)
        logger.info(
            f"Swap {amount_in} {pool_in.symbol} -> {amount_out} {pool_out.symbol} "
            f"(${usd_value / 1e18:.2f}) to {to.hex()[:8]}"
        )
        return amount_out

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _check_amounts(self, amount: int, minimum: int):
        if amount <= 0:
            raise AmountIsZero(self.component, str(amount))
        if minimum < 0:
            raise NegativeAmount(self.component, str(minimum))

    def _ensure(self, deadline: int):
        if deadline < self.chain.timestamp:
            raise Expired(self.component)

    def _unwrap_to(self, to: bytes, amount: int):
        self.chain.get_contract(self.WETH).withdraw(self.address, amount)
        self.chain.transfer_native(self.address, to, amount)

    def _record_liquidity(self, action: str, pool):
        if self.chain.monitor is not None:
            self.chain.monitor.record_liquidity(action, pool)

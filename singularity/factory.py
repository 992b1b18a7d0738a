"""
Pool registry and admin authority.

The Factory creates exactly one Pool per asset at a deterministic address,
remembers the router all pools trust, and holds the admin-controlled knobs:
deposit caps, base fees, the global pause switch and the fee sweep.
"""
import logging

from singularity.chain import Contract, atomic
from singularity.crypto import create2_address, generate_hash
from singularity.errors import (
    NotAdmin, NotSameLength, PoolExists, PoolNotFound, ZeroAddress,
)
from singularity.fixed_point import ZERO_ADDRESS
from singularity.pool import Pool, POOL_CODE_HASH, check_base_fee

logger = logging.getLogger(__name__)


class Factory(Contract):
    component = "SingularityFactory"

    def __init__(self, chain, tranche: str, admin: bytes, oracle: bytes, fee_to: bytes,
                 address: bytes = None):
        for addr in (admin, oracle, fee_to):
            if addr == ZERO_ADDRESS:
                raise ZeroAddress(self.component)
        super().__init__(chain, address)
        self.tranche = tranche
        self.admin = admin
        self.oracle = oracle
        self.fee_to = fee_to
        self.router = ZERO_ADDRESS
        self.pools = {}  # token -> pool address
        self.all_pools = []

    def to_dict(self) -> dict:
        return {
            'admin': self.admin,
            'oracle': self.oracle,
            'fee_to': self.fee_to,
            'router': self.router,
            'pools': {token.hex(): pool for token, pool in self.pools.items()},
            'all_pools': list(self.all_pools),
        }

    def load_state(self, data: dict):
        self.admin = data['admin']
        self.oracle = data['oracle']
        self.fee_to = data['fee_to']
        self.router = data['router']
        self.pools = {bytes.fromhex(token): pool for token, pool in data['pools'].items()}
        self.all_pools = list(data['all_pools'])

    # Views

    @property
    def pool_code_hash(self) -> bytes:
        return POOL_CODE_HASH

    def all_pools_length(self) -> int:
        return len(self.all_pools)

    def get_pool(self, token: bytes) -> bytes:
        """Pool address for ``token``, ZERO_ADDRESS if none exists."""
        return self.pools.get(token, ZERO_ADDRESS)

    def get_pool_contract(self, token: bytes) -> Pool:
        pool = self.pools.get(token)
        if pool is None:
            raise PoolNotFound(self.component, token.hex())
        return self.chain.get_contract(pool)

    def iter_pools(self):
        for address in self.all_pools:
            yield self.chain.get_contract(address)

    # Pool creation

    @atomic
    def create_pool(self, caller: bytes, token: bytes, is_stablecoin: bool, base_fee: int) -> bytes:
        self._only_admin(caller)
        if token == ZERO_ADDRESS:
            raise ZeroAddress(self.component)
        if token in self.pools:
            raise PoolExists(self.component)
        check_base_fee(self.component, base_fee)

        address = create2_address(self.address, generate_hash(token), POOL_CODE_HASH)
        pool = Pool(self.chain, self.address, token, is_stablecoin, base_fee, address=address)
        self.pools[token] = pool.address
        self.all_pools.append(pool.address)
        logger.info(f"Created pool {pool.symbol} at {pool.address.hex()}")
        return pool.address

    # Admin

    @atomic
    def set_router(self, caller: bytes, router: bytes):
        self._only_admin(caller)
        if router == ZERO_ADDRESS:
            raise ZeroAddress(self.component)
        self.router = router
        logger.info(f"Router set to {router.hex()}")

    @atomic
    def set_admin(self, caller: bytes, admin: bytes):
        self._only_admin(caller)
        if admin == ZERO_ADDRESS:
            raise ZeroAddress(self.component)
        self.admin = admin
        logger.info(f"Admin set to {admin.hex()}")

    @atomic
    def set_oracle(self, caller: bytes, oracle: bytes):
        self._only_admin(caller)
        if oracle == ZERO_ADDRESS:
            raise ZeroAddress(self.component)
        self.oracle = oracle
        logger.info(f"Oracle set to {oracle.hex()}")

    @atomic
    def set_fee_to(self, caller: bytes, fee_to: bytes):
        self._only_admin(caller)
        if fee_to == ZERO_ADDRESS:
            raise ZeroAddress(self.component)
        self.fee_to = fee_to
        logger.info(f"Fee beneficiary set to {fee_to.hex()}")

    @atomic
    def set_deposit_caps(self, caller: bytes, tokens: list, caps: list):
        self._only_admin(caller)
        if len(tokens) != len(caps):
            raise NotSameLength(self.component)
        for token, cap in zip(tokens, caps):
            self.get_pool_contract(token).set_deposit_cap(self.address, cap)
        logger.info(f"Deposit caps updated for {len(tokens)} pools")

    @atomic
    def set_base_fees(self, caller: bytes, tokens: list, base_fees: list):
        self._only_admin(caller)
        if len(tokens) != len(base_fees):
            raise NotSameLength(self.component)
        for token, base_fee in zip(tokens, base_fees):
            check_base_fee(self.component, base_fee)
            self.get_pool_contract(token).set_base_fee(self.address, base_fee)
        logger.info(f"Base fees updated for {len(tokens)} pools")

    @atomic
    def set_paused_for_all(self, caller: bytes, paused: bool):
        self._only_admin(caller)
        for pool in self.iter_pools():
            pool.set_paused(self.address, paused)
        logger.info(f"All pools paused={paused}")

    @atomic
    def collect_fees(self, caller: bytes) -> dict:
        """
        Sweep every pool's admin fees to ``fee_to``.

        Returns:
            Mapping of token -> amount swept
        """
        self._only_admin(caller)
        collected = {}
        for pool in self.iter_pools():
            collected[pool.token] = pool.collect_fees(self.address)
        logger.info(f"Collected fees: { {t.hex()[:10]: a for t, a in collected.items()} }")
        return collected

    def _only_admin(self, caller: bytes):
        if caller != self.admin:
            raise NotAdmin(self.component)

# singularity/oracle.py
"""
Push-based USD price oracle.

Authorized pushers write the last USD price (WAD per whole token) for each
asset. Readers go through ``get_price``, which refuses zero, missing or
stale prices; there is never a fallback price.
"""
import logging

from singularity.chain import Contract, atomic
from singularity.errors import (
    InvalidOraclePrice, StaleOraclePrice, NotAdmin, NotPusher, NotSameLength, ZeroAddress,
)
from singularity.fixed_point import ZERO_ADDRESS

logger = logging.getLogger(__name__)


class PriceOracle(Contract):
    component = "SingularityOracle"

    def __init__(self, chain, admin: bytes, address: bytes = None):
        if admin == ZERO_ADDRESS:
            raise ZeroAddress(self.component)
        super().__init__(chain, address)
        self.admin = admin
        self.pushers = set()
        self.rounds = {}  # token -> (price, updated_at)

    def to_dict(self) -> dict:
        return {
            'admin': self.admin,
            'pushers': sorted(self.pushers),
            'rounds': {
                token.hex(): [str(price), updated_at]
                for token, (price, updated_at) in self.rounds.items()
            },
        }

    def load_state(self, data: dict):
        self.admin = data['admin']
        self.pushers = set(data['pushers'])
        self.rounds = {
            bytes.fromhex(token): (int(price), updated_at)
            for token, (price, updated_at) in data['rounds'].items()
        }

    @property
    def max_price_age(self) -> int:
        return self.chain.config.oracle.max_price_age

    # Views

    def is_pusher(self, address: bytes) -> bool:
        return address in self.pushers

    def get_latest_round(self, token: bytes) -> tuple[int, int]:
        """Raw (price, updated_at); (0, 0) if nothing was ever pushed."""
        return self.rounds.get(token, (0, 0))

    def get_price(self, token: bytes) -> tuple[int, int]:
        """
        Validated (price, updated_at) for a token.

        Raises:
            InvalidOraclePrice: price is zero or was never pushed
            StaleOraclePrice: price is older than the configured max age
        """
        price, updated_at = self.get_latest_round(token)
        if price == 0:
            raise InvalidOraclePrice(self.component, f"no price for {token.hex()}")
        if self.max_price_age and self.chain.timestamp - updated_at > self.max_price_age:
            raise StaleOraclePrice(
                self.component,
                f"{token.hex()} updated {self.chain.timestamp - updated_at}s ago"
            )
        return price, updated_at

    get_oracle_data = get_price

    # Mutations

    @atomic
    def push_prices(self, caller: bytes, tokens: list, prices: list):
        if not self.is_pusher(caller):
            raise NotPusher(self.component)
        if len(tokens) != len(prices):
            raise NotSameLength(self.component)
        for token, price in zip(tokens, prices):
            self.rounds[token] = (price, self.chain.timestamp)
            logger.debug(f"Price pushed for {token.hex()[:10]}: {price}")

    @atomic
    def set_pusher(self, caller: bytes, pusher: bytes, allowed: bool):
        self._only_admin(caller)
        if allowed:
            self.pushers.add(pusher)
        else:
            self.pushers.discard(pusher)
        logger.info(f"Oracle pusher {pusher.hex()[:10]} allowed={allowed}")

    @atomic
    def set_admin(self, caller: bytes, admin: bytes):
        self._only_admin(caller)
        if admin == ZERO_ADDRESS:
            raise ZeroAddress(self.component)
        self.admin = admin
        logger.info(f"Oracle admin changed to {admin.hex()[:10]}")

    def _only_admin(self, caller: bytes):
        if caller != self.admin:
            raise NotAdmin(self.component)

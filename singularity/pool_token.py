"""
Claim token issued by every pool: an ERC20 ledger plus signed permits.
"""
import logging

from singularity.chain import atomic, pack_balances, unpack_balances
from singularity.errors import Expired, InvalidSignature
from singularity.permit import (
    PermitSignature, domain_separator, permit_digest, permit_message, recover_signer,
)
from singularity.erc20 import ERC20

logger = logging.getLogger(__name__)


class PoolToken(ERC20):
    component = "SingularityPoolToken"

    def __init__(self, chain, name: str, symbol: str, decimals: int, address: bytes = None):
        super().__init__(chain, name, symbol, decimals, address)
        self._nonces = {}

    def to_dict(self) -> dict:
        data = super().to_dict()
        data['nonces'] = pack_balances(self._nonces)
        return data

    def load_state(self, data: dict):
        super().load_state(data)
        self._nonces = unpack_balances(data['nonces'])

    def nonces(self, owner: bytes) -> int:
        return self._nonces.get(owner, 0)

    @property
    def DOMAIN_SEPARATOR(self) -> bytes:
        # Recomputed so a chain id change is honored
        return domain_separator(self.name, self.chain.chain_id, self.address)

    def permit_digest(self, owner: bytes, spender: bytes, value: int, deadline: int,
                      nonce: int = None) -> bytes:
        if nonce is None:
            nonce = self.nonces(owner)
        return permit_digest(self.DOMAIN_SEPARATOR, owner, spender, value, nonce, deadline)

    def permit_message(self, owner: bytes, spender: bytes, value: int, deadline: int,
                       nonce: int = None):
        """Structured message an owner signs to approve ``spender``."""
        if nonce is None:
            nonce = self.nonces(owner)
        return permit_message(self.DOMAIN_SEPARATOR, owner, spender, value, nonce, deadline)

    @atomic
    def permit(self, caller: bytes, owner: bytes, spender: bytes, value: int, deadline: int,
               signature: PermitSignature):
        if deadline < self.chain.timestamp:
            raise Expired(self.component)
        self._check_amount(value)
        signer = recover_signer(self.permit_message(owner, spender, value, deadline), signature)
        if signer is None or signer != owner:
            raise InvalidSignature(self.component)
        self._nonces[owner] = self.nonces(owner) + 1
        self._approve(owner, spender, value)
        logger.debug(f"Permit {owner.hex()[:8]} -> {spender.hex()[:8]} on {self.symbol}")

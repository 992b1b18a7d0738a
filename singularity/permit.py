"""
Signature-based allowances (EIP-2612 style permits).

Permits are EIP-712 structured messages signed with a recoverable secp256k1
signature. Recovery is a pure function of the message and ``(v, r, s)``, so
it can be checked without touching any ledger state:

    message = permit_message(domain, owner, spender, value, nonce, deadline)
    signer = recover_signer(message, signature)
"""
from dataclasses import dataclass
from typing import Optional

from eth_abi import encode
from eth_account import Account
from eth_account.messages import SignableMessage
from eth_keys.exceptions import BadSignature, ValidationError as KeyValidationError

from singularity.crypto import generate_hash, to_address

EIP712_DOMAIN_TYPEHASH = generate_hash(
    b"EIP712Domain(string name,string version,uint256 chainId,address verifyingContract)"
)
PERMIT_TYPEHASH = generate_hash(
    b"Permit(address owner,address spender,uint256 value,uint256 nonce,uint256 deadline)"
)
DOMAIN_VERSION = "1"


@dataclass(frozen=True)
class PermitSignature:
    v: int
    r: int
    s: int

    @classmethod
    def from_bytes(cls, signature: bytes) -> 'PermitSignature':
        """Split a 65-byte ``r || s || v`` signature."""
        if len(signature) != 65:
            raise ValueError(f"Expected 65 signature bytes, got {len(signature)}")
        return cls(
            v=signature[64],
            r=int.from_bytes(signature[:32], 'big'),
            s=int.from_bytes(signature[32:64], 'big'),
        )

    def to_bytes(self) -> bytes:
        return self.r.to_bytes(32, 'big') + self.s.to_bytes(32, 'big') + bytes([self.v])


def domain_separator(name: str, chain_id: int, verifying_contract: bytes) -> bytes:
    return generate_hash(encode(
        ['bytes32', 'bytes32', 'bytes32', 'uint256', 'address'],
        [
            EIP712_DOMAIN_TYPEHASH,
            generate_hash(name.encode('utf-8')),
            generate_hash(DOMAIN_VERSION.encode('utf-8')),
            chain_id,
            verifying_contract,
        ],
    ))


def permit_struct_hash(owner: bytes, spender: bytes, value: int, nonce: int, deadline: int) -> bytes:
    return generate_hash(encode(
        ['bytes32', 'address', 'address', 'uint256', 'uint256', 'uint256'],
        [PERMIT_TYPEHASH, owner, spender, value, nonce, deadline],
    ))


def permit_message(domain: bytes, owner: bytes, spender: bytes, value: int,
                   nonce: int, deadline: int) -> SignableMessage:
    """EIP-712 message (version 0x01) over the permit struct."""
    return SignableMessage(
        version=b'\x01',
        header=domain,
        body=permit_struct_hash(owner, spender, value, nonce, deadline),
    )


def permit_digest(domain: bytes, owner: bytes, spender: bytes, value: int,
                  nonce: int, deadline: int) -> bytes:
    """The hash actually signed: keccak(0x19 0x01 || domain || struct hash)."""
    message = permit_message(domain, owner, spender, value, nonce, deadline)
    return generate_hash(b'\x19' + message.version + message.header + message.body)


def sign_permit(private_key, message: SignableMessage) -> PermitSignature:
    signed = Account.sign_message(message, private_key=private_key)
    return PermitSignature(v=signed.v, r=signed.r, s=signed.s)


def recover_signer(message: SignableMessage, signature: PermitSignature) -> Optional[bytes]:
    """Address that signed ``message``, or None for a malformed signature."""
    try:
        recovered = Account.recover_message(message, vrs=(signature.v, signature.r, signature.s))
    except (BadSignature, KeyValidationError, ValueError):
        return None
    return to_address(recovered)

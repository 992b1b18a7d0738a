"""
Core cryptographic functions for the engine.
"""
from Crypto.Hash import keccak
from eth_account import Account
from eth_account.signers.local import LocalAccount


def generate_hash(data: bytes) -> bytes:
    """Generates a Keccak-256 hash."""
    return keccak.new(digest_bits=256, data=data).digest()


def generate_account() -> LocalAccount:
    """Generates a fresh secp256k1 account (private key and checksummed address)."""
    return Account.create()


def to_address(checksum_address: str) -> bytes:
    """20-byte address from its 0x-prefixed hex form."""
    return bytes.fromhex(checksum_address[2:])


def account_address(account: LocalAccount) -> bytes:
    """Keccak-derived 20-byte address of an account's public key."""
    return to_address(account.address)


def contract_address(deployer: bytes, nonce: int) -> bytes:
    """Address of the contract created by ``deployer`` at ``nonce``."""
    return generate_hash(deployer + nonce.to_bytes(32, 'big'))[12:]


def create2_address(deployer: bytes, salt: bytes, code_hash: bytes) -> bytes:
    """Deterministic address derived from deployer, salt and init code hash."""
    return generate_hash(b'\xff' + deployer + salt + code_hash)[12:]


def address_from_label(label: str) -> bytes:
    """Stable placeholder address for named accounts (scenarios, tests)."""
    return generate_hash(label.encode('utf-8'))[12:]

"""
Fixed-point helpers shared by the pricing engine.

Prices, fee rates and ratios are WAD numbers (1e18 == 1.0). Token amounts
are raw integer units of the token's own decimals.
"""

from decimal import Decimal

WAD = 10 ** 18
BPS = 10_000
MAX_UINT256 = 2 ** 256 - 1

ZERO_ADDRESS = b'\x00' * 20


def wdiv(x: int, y: int) -> int:
    """Divide two WAD numbers, rounding down."""
    return x * WAD // y


def bps_to_wad(bps: int) -> int:
    return bps * WAD // BPS


def to_wad(value, decimals: int = 18) -> int:
    """Scale a human readable number into raw units (like parseUnits)."""
    return int(Decimal(str(value)) * (Decimal(10) ** decimals))

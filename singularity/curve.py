"""
Coverage-ratio pricing curve.

A pool's coverage (collateralization) ratio is c = assets / liabilities.
Paying out of a pool lowers c; the marginal penalty charged on every unit
paid out is

    g(c) = A * (1 - c)^2    for c < 1
    g(c) = 0                for c >= 1

with amplitude 0 <= A <= 1. A swap-out that moves coverage from c0 down
to c1 pays the average of g over [c1, c0]. With d = 1 - c that average
has the closed form

    A * (d1^2 + d1*d0 + d0^2) / 3

so the charge is path independent: splitting a trade in two costs the same
as doing it at once. g is continuous, non-increasing in c and never
exceeds A, so a payout can never go negative.
"""
from singularity.fixed_point import WAD, BPS, MAX_UINT256, wdiv


def collateralization_ratio(assets: int, liabilities: int) -> int:
    """assets / liabilities in WAD, MAX_UINT256 when nothing is owed."""
    if liabilities == 0:
        return MAX_UINT256
    return wdiv(assets, liabilities)


def _shortfall(ratio: int) -> int:
    """1 - c, clipped to [0, 1]."""
    return WAD - min(max(ratio, 0), WAD)


def marginal_penalty(ratio: int, amplitude: int) -> int:
    """g(c) in WAD."""
    d = _shortfall(ratio)
    return amplitude * d * d // (WAD * WAD)


def average_penalty(ratio_after: int, ratio_before: int, amplitude: int) -> int:
    """Average of g over [ratio_after, ratio_before], in WAD."""
    d1 = _shortfall(ratio_after)
    d0 = _shortfall(ratio_before)
    return amplitude * (d1 * d1 + d1 * d0 + d0 * d0) // (3 * WAD * WAD)


def slippage_out(amount: int, assets: int, liabilities: int, amplitude: int) -> int:
    """Units withheld from a payout of ``amount``, rounded up in the pool's favor."""
    if amount == 0 or liabilities == 0:
        return 0
    ratio_before = assets * WAD // liabilities
    ratio_after = max(assets - amount, 0) * WAD // liabilities
    rate = average_penalty(ratio_after, ratio_before, amplitude)
    return -(-amount * rate // WAD)


def withdrawal_payout(owed: int, assets: int, liabilities: int) -> int:
    """
    Underlying paid for ``owed`` liabilities.

    Paid at par while the pool is fully covered; otherwise haircut pro rata
    so the remaining holders keep the same coverage.
    """
    if liabilities == 0 or assets >= liabilities:
        return owed
    return owed * assets // liabilities


def split_fee(fee: int, admin_share_bps: int, locked_share_bps: int) -> tuple[int, int, int]:
    """Split a trading fee into (lp, admin, locked) portions."""
    admin = fee * admin_share_bps // BPS
    locked = fee * locked_share_bps // BPS
    return fee - admin - locked, admin, locked

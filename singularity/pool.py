"""
Single-sided liquidity pool, one per asset.

Liquidity providers deposit the pool's asset and receive pool shares (the
claim token). Swaps never pair reserves: the router pushes the input asset
into the source pool (``swap_in``), which prices it in USD through the
oracle, and pulls the output out of the destination pool (``swap_out``),
which converts USD back to its asset and charges slippage according to its
own coverage ratio.

Accounting:
    assets       all underlying held, fee accumulators included
    liabilities  underlying owed to shareholders at par
    admin_fees   part of assets sweepable by the factory's fee beneficiary
    locked_fees  part of assets that never leaves the pool
"""
import functools
import logging
from dataclasses import dataclass

from singularity.chain import atomic
from singularity.crypto import generate_hash
from singularity.curve import collateralization_ratio, slippage_out, split_fee, withdrawal_payout
from singularity.errors import (
    AmountIsZero, BaseFeeIsZero, BaseFeeTooHigh, DepositExceedsCap, InsufficientLiquidity,
    InvalidOraclePrice, Locked, NegativeAmount, NotFactory, NotRouter, Paused,
)
from singularity.fixed_point import WAD, bps_to_wad, wdiv
from singularity.pool_token import PoolToken

logger = logging.getLogger(__name__)

POOL = "SingularityPool"

# Stands in for the keccak of the pool's creation code in address derivation
POOL_CODE_HASH = generate_hash(b"SingularityPool:v1")


@dataclass(frozen=True)
class SwapInQuote:
    amount_in: int
    fee: int
    lp_fee: int
    admin_fee: int
    locked_fee: int
    usd_value: int


@dataclass(frozen=True)
class SwapOutQuote:
    usd_value: int
    gross_amount: int
    slippage: int
    fee: int
    lp_fee: int
    admin_fee: int
    locked_fee: int
    amount_out: int


def check_base_fee(component: str, base_fee: int):
    """A base fee is a WAD rate strictly between 0 and 100%."""
    if base_fee <= 0:
        raise BaseFeeIsZero(component, str(base_fee))
    if base_fee >= WAD:
        raise BaseFeeTooHigh(component, str(base_fee))


def check_positive(component: str, amount: int):
    if amount <= 0:
        raise AmountIsZero(component, str(amount))


def lock(method):
    """Reject re-entrant calls into the same pool."""
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        if self._locked:
            raise Locked(POOL)
        self._locked = True
        try:
            return method(self, *args, **kwargs)
        finally:
            self._locked = False
    return wrapper


class Pool(PoolToken):
    """
    Per-asset pool. Created by the Factory, which is the only address allowed
    to change its parameters; only the factory's router may move liquidity.
    """

    def __init__(self, chain, factory: bytes, token: bytes, is_stablecoin: bool,
                 base_fee: int, address: bytes = None):
        check_base_fee(POOL, base_fee)
        underlying = chain.get_contract(token)
        tranche = chain.get_contract(factory).tranche
        super().__init__(
            chain,
            name=f"Singularity {underlying.symbol} Pool ({tranche})",
            symbol=f"SPT-{underlying.symbol} ({tranche})",
            decimals=underlying.decimals,
            address=address,
        )
        self.factory = factory
        self.token = token
        self.is_stablecoin = is_stablecoin
        self.base_fee = base_fee
        self.deposit_cap = 0
        self.paused = False
        self.assets = 0
        self.liabilities = 0
        self.admin_fees = 0
        self.locked_fees = 0
        self._locked = False

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({
            'base_fee': str(self.base_fee),
            'deposit_cap': str(self.deposit_cap),
            'paused': self.paused,
            'assets': str(self.assets),
            'liabilities': str(self.liabilities),
            'admin_fees': str(self.admin_fees),
            'locked_fees': str(self.locked_fees),
        })
        return data

    def load_state(self, data: dict):
        super().load_state(data)
        self.base_fee = int(data['base_fee'])
        self.deposit_cap = int(data['deposit_cap'])
        self.paused = data['paused']
        self.assets = int(data['assets'])
        self.liabilities = int(data['liabilities'])
        self.admin_fees = int(data['admin_fees'])
        self.locked_fees = int(data['locked_fees'])

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------

    @property
    def router(self) -> bytes:
        return self.chain.get_contract(self.factory).router

    def _underlying(self):
        return self.chain.get_contract(self.token)

    def _oracle(self):
        return self.chain.get_contract(self.chain.get_contract(self.factory).oracle)

    @property
    def _config(self):
        return self.chain.config.pool

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def get_oracle_data(self) -> tuple[int, int]:
        """(price, updated_at) for the pool's asset; raises InvalidOraclePrice."""
        try:
            return self._oracle().get_price(self.token)
        except InvalidOraclePrice as e:
            raise type(e)(POOL, e.detail) from e

    def get_amount_to_usd(self, amount: int) -> int:
        """USD value (WAD) of a raw amount of the pool's asset."""
        price, _ = self.get_oracle_data()
        return amount * price // 10 ** self.decimals

    def get_usd_to_amount(self, usd_value: int) -> int:
        """Raw amount of the pool's asset worth ``usd_value`` (WAD)."""
        price, _ = self.get_oracle_data()
        return usd_value * 10 ** self.decimals // price

    def get_collateralization_ratio(self) -> int:
        return collateralization_ratio(self.assets, self.liabilities)

    def get_price_per_share(self) -> int:
        if self.total_supply == 0:
            return WAD
        return wdiv(self.liabilities, self.total_supply)

    @property
    def available_liquidity(self) -> int:
        """Assets not reserved for fee accumulators."""
        return self.assets - self.admin_fees - self.locked_fees

    def get_deposit_shares(self, amount: int) -> int:
        if self.total_supply == 0 or self.liabilities == 0:
            return amount
        return amount * self.total_supply // self.liabilities

    def get_withdraw_amount(self, shares: int) -> int:
        return self._withdraw_amounts(shares)[1]

    def _withdraw_amounts(self, shares: int) -> tuple[int, int]:
        if self.total_supply == 0:
            return 0, 0
        owed = shares * self.liabilities // self.total_supply
        # Fee accumulators are not backing for shareholders
        return owed, withdrawal_payout(owed, self.available_liquidity, self.liabilities)

    def get_slippage_out(self, amount: int) -> int:
        return slippage_out(
            amount, self.assets, self.liabilities, bps_to_wad(self._config.slippage_amplitude_bps)
        )

    def get_trading_fees(self, amount: int) -> tuple[int, int, int, int]:
        """(total, lp, admin, locked) fee on ``amount``, rounded up."""
        fee = -(-amount * self.base_fee // WAD)
        lp_fee, admin_fee, locked_fee = split_fee(
            fee, self._config.admin_fee_share_bps, self._config.locked_fee_share_bps
        )
        if self.total_supply == 0:
            # Nobody to credit, keep it in the pool
            locked_fee += lp_fee
            lp_fee = 0
        return fee, lp_fee, admin_fee, locked_fee

    def get_swap_in_quote(self, amount_in: int) -> SwapInQuote:
        fee, lp_fee, admin_fee, locked_fee = self.get_trading_fees(amount_in)
        return SwapInQuote(
            amount_in=amount_in,
            fee=fee,
            lp_fee=lp_fee,
            admin_fee=admin_fee,
            locked_fee=locked_fee,
            usd_value=self.get_amount_to_usd(amount_in - fee),
        )

    def get_swap_out_quote(self, usd_value: int) -> SwapOutQuote:
        """
        Amount paid out for ``usd_value``.

        Raises:
            InsufficientLiquidity: the payout would eat into fee accumulators
                or push coverage under the configured floor
        """
        gross = self.get_usd_to_amount(usd_value)
        slippage = min(self.get_slippage_out(gross), gross)
        post_slippage = gross - slippage
        fee, lp_fee, admin_fee, locked_fee = self.get_trading_fees(post_slippage)
        amount_out = post_slippage - fee

        reserved = self.admin_fees + admin_fee + self.locked_fees + locked_fee
        if amount_out > self.assets - reserved:
            raise InsufficientLiquidity(POOL, f"{amount_out} out, {self.assets - reserved} available")
        liabilities_after = self.liabilities + lp_fee
        floor = bps_to_wad(self._config.min_collateralization_bps)
        if liabilities_after and collateralization_ratio(self.assets - amount_out, liabilities_after) < floor:
            raise InsufficientLiquidity(POOL, "coverage below floor")

        return SwapOutQuote(
            usd_value=usd_value,
            gross_amount=gross,
            slippage=slippage,
            fee=fee,
            lp_fee=lp_fee,
            admin_fee=admin_fee,
            locked_fee=locked_fee,
            amount_out=amount_out,
        )

    # ------------------------------------------------------------------
    # Router-only liquidity and swaps
    # ------------------------------------------------------------------

    @atomic
    @lock
    def deposit(self, caller: bytes, amount: int, to: bytes) -> int:
        """
        Deposit ``amount`` of the asset held by the router and mint shares to ``to``.

        Returns:
            Shares minted
        """
        self._only_router(caller)
        self._when_not_paused()
        check_positive(POOL, amount)
        if self.assets + amount > self.deposit_cap:
            raise DepositExceedsCap(POOL)
        shares = self.get_deposit_shares(amount)
        if shares == 0:
            raise AmountIsZero(POOL, "no shares minted")

        self.assets += amount
        self.liabilities += amount
        self._mint(to, shares)
        self._check_reserves()

        self._underlying().transfer_from(self.address, caller, self.address, amount)
        logger.info(f"Deposit {amount} into {self.symbol}: {shares} shares to {to.hex()[:8]}")
        return shares

    @atomic
    @lock
    def withdraw(self, caller: bytes, shares: int, to: bytes) -> int:
        """
        Burn ``shares`` held by the router and send the underlying to ``to``.

        Returns:
            Underlying paid out
        """
        self._only_router(caller)
        self._when_not_paused()
        check_positive(POOL, shares)
        owed, payout = self._withdraw_amounts(shares)
        if payout > self.available_liquidity:
            raise InsufficientLiquidity(POOL, f"{payout} requested, {self.available_liquidity} available")

        self._burn(caller, shares)
        self.liabilities -= owed
        self.assets -= payout
        self._check_reserves()

        self._underlying().transfer(self.address, to, payout)
        logger.info(f"Withdraw {shares} shares from {self.symbol}: {payout} to {to.hex()[:8]}")
        return payout

    @atomic
    @lock
    def swap_in(self, caller: bytes, amount_in: int) -> int:
        """
        First leg of a swap: take ``amount_in`` from the router.

        Returns:
            USD value (WAD) carried to the destination pool
        """
        self._only_router(caller)
        self._when_not_paused()
        check_positive(POOL, amount_in)
        quote = self.get_swap_in_quote(amount_in)

        self.assets += amount_in
        self._accrue_fees(quote.lp_fee, quote.admin_fee, quote.locked_fee)
        self._check_reserves()

        self._underlying().transfer_from(self.address, caller, self.address, amount_in)
        logger.debug(f"Swap in {amount_in} {self.symbol} -> ${quote.usd_value} (fee {quote.fee})")
        return quote.usd_value

    @atomic
    @lock
    def swap_out(self, caller: bytes, usd_value: int, to: bytes) -> int:
        """
        Second leg of a swap: pay ``usd_value`` worth of the asset to ``to``.

        Returns:
            Amount of the asset sent
        """
        self._only_router(caller)
        self._when_not_paused()
        check_positive(POOL, usd_value)
        quote = self.get_swap_out_quote(usd_value)

        self.assets -= quote.amount_out
        self._accrue_fees(quote.lp_fee, quote.admin_fee, quote.locked_fee)
        self._check_reserves()

        self._underlying().transfer(self.address, to, quote.amount_out)
        logger.debug(
            f"Swap out ${usd_value} -> {quote.amount_out} {self.symbol} "
            f"(slippage {quote.slippage}, fee {quote.fee})"
        )
        return quote.amount_out

    # ------------------------------------------------------------------
    # Factory-only administration
    # ------------------------------------------------------------------

    @atomic
    def set_deposit_cap(self, caller: bytes, cap: int):
        self._only_factory(caller)
        if cap < 0:
            raise NegativeAmount(POOL, "deposit cap")
        self.deposit_cap = cap

    @atomic
    def set_base_fee(self, caller: bytes, base_fee: int):
        self._only_factory(caller)
        check_base_fee(POOL, base_fee)
        self.base_fee = base_fee

    @atomic
    def set_paused(self, caller: bytes, paused: bool):
        self._only_factory(caller)
        self.paused = paused

    @atomic
    @lock
    def collect_fees(self, caller: bytes) -> int:
        """Send accrued admin fees to the factory's fee beneficiary."""
        self._only_factory(caller)
        amount = self.admin_fees
        self.admin_fees = 0
        self.assets -= amount
        if amount:
            fee_to = self.chain.get_contract(self.factory).fee_to
            self._underlying().transfer(self.address, fee_to, amount)
        return amount

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _accrue_fees(self, lp_fee: int, admin_fee: int, locked_fee: int):
        self.liabilities += lp_fee
        self.admin_fees += admin_fee
        self.locked_fees += locked_fee

    def _check_reserves(self):
        if self.assets < 0 or self.admin_fees + self.locked_fees > self.assets:
            raise InsufficientLiquidity(POOL, "fee reserves exceed assets")

    def _only_router(self, caller: bytes):
        if caller != self.router:
            raise NotRouter(POOL)

    def _only_factory(self, caller: bytes):
        if caller != self.factory:
            raise NotFactory(POOL)

    def _when_not_paused(self):
        if self.paused:
            raise Paused(POOL)

    def ensure_not_paused(self):
        self._when_not_paused()

    def __repr__(self) -> str:
        return (
            f"Pool("
            f"symbol={self.symbol}, "
            f"assets={self.assets}, "
            f"liabilities={self.liabilities}, "
            f"admin_fees={self.admin_fees}, "
            f"locked_fees={self.locked_fees}, "
            f"supply={self.total_supply})"
        )

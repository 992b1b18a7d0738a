# singularity/test_chain.py
import pytest

from singularity.chain import Chain, DEPLOYER_ADDRESS
from singularity.erc20 import ERC20, WrappedNative
from singularity.errors import (
    InsufficientAllowance, InsufficientBalance, Locked, NegativeAmount, ValidationError,
    ZeroAddress,
)
from singularity.fixed_point import MAX_UINT256, ZERO_ADDRESS, to_wad


class ReentrantToken(ERC20):
    """Calls back into its pool while the pool is pulling funds."""

    def __init__(self, chain):
        super().__init__(chain, "Evil", "EVIL", 18)
        self.pool = None

    def transfer_from(self, caller, owner, to, amount):
        if self.pool is not None and caller == self.pool:
            self.chain.get_contract(self.pool).deposit(owner, 1, owner)
        return super().transfer_from(caller, owner, to, amount)


def test_transfer_and_allowance(chain, alice, bob):
    token = ERC20(chain, "Token", "TKN")
    token.mint(alice, alice, 100)

    token.transfer(alice, bob, 40)
    assert token.balance_of(alice) == 60
    assert token.balance_of(bob) == 40

    with pytest.raises(InsufficientAllowance):
        token.transfer_from(bob, alice, bob, 10)
    token.approve(alice, bob, 25)
    token.transfer_from(bob, alice, bob, 10)
    assert token.allowance(alice, bob) == 15

    with pytest.raises(InsufficientBalance):
        token.transfer(bob, alice, 51)
    with pytest.raises(ZeroAddress):
        token.transfer(alice, ZERO_ADDRESS, 1)


def test_negative_amounts_never_move_balances(chain, alice, bob):
    token = ERC20(chain, "Token", "TKN")
    token.mint(alice, alice, 100)
    token.approve(alice, bob, 10)

    with pytest.raises(NegativeAmount):
        token.transfer(bob, alice, -100)
    with pytest.raises(NegativeAmount):
        token.transfer_from(bob, alice, bob, -5)
    with pytest.raises(NegativeAmount):
        token.approve(alice, bob, -1)
    with pytest.raises(NegativeAmount):
        token.increase_allowance(alice, bob, -10)
    with pytest.raises(NegativeAmount):
        token.mint(bob, bob, -1)

    assert token.balance_of(alice) == 100
    assert token.balance_of(bob) == 0
    assert token.allowance(alice, bob) == 10
    assert token.total_supply == 100


def test_negative_native_value_rejected(chain, alice, bob):
    chain.mint_native(alice, 5)
    with pytest.raises(NegativeAmount):
        chain.transfer_native(bob, alice, -5)
    with pytest.raises(NegativeAmount):
        chain.mint_native(bob, -1)
    weth = WrappedNative(chain)
    with pytest.raises(NegativeAmount):
        weth.withdraw(bob, -5)
    assert chain.native_balance(alice) == 5
    assert chain.native_balance(bob) == 0


def test_max_allowance_is_not_spent(chain, alice, bob):
    token = ERC20(chain, "Token", "TKN")
    token.mint(alice, alice, 100)
    token.approve(alice, bob, MAX_UINT256)
    token.transfer_from(bob, alice, bob, 100)
    assert token.allowance(alice, bob) == MAX_UINT256


def test_transaction_rolls_back_everything(chain, alice, bob):
    token = ERC20(chain, "Token", "TKN")
    token.mint(alice, alice, 100)
    chain.mint_native(alice, 5)

    with pytest.raises(InsufficientBalance):
        with chain.transaction():
            token.transfer(alice, bob, 60)
            chain.transfer_native(alice, bob, 5)
            token.transfer(alice, bob, 60)

    assert token.balance_of(alice) == 100
    assert token.balance_of(bob) == 0
    assert chain.native_balance(alice) == 5
    assert chain.native_balance(bob) == 0


def test_contracts_deployed_in_failed_transaction_are_dropped(chain):
    before = set(chain.contracts)
    nonce = chain.deploy_nonce

    with pytest.raises(ValidationError):
        with chain.transaction():
            ERC20(chain, "Temp", "TMP")
            raise ValidationError("Test", "boom")

    assert set(chain.contracts) == before
    assert chain.deploy_nonce == nonce


def test_nested_transactions_join_the_outer_one(chain, alice, bob):
    token = ERC20(chain, "Token", "TKN")
    token.mint(alice, alice, 10)

    with pytest.raises(RuntimeError):
        with chain.transaction():
            with chain.transaction():
                token.transfer(alice, bob, 10)
            assert token.balance_of(bob) == 10
            raise RuntimeError("outer fails")

    assert token.balance_of(bob) == 0
    assert chain.total_transactions == 1  # only the mint committed


def test_big_balances_survive_snapshot(chain, alice):
    token = ERC20(chain, "Token", "TKN", 21)
    token.mint(alice, alice, MAX_UINT256 - 1)
    chain.restore(chain.snapshot())
    assert token.balance_of(alice) == MAX_UINT256 - 1


def test_register_rejects_reserved_and_duplicate_addresses(chain):
    token = ERC20(chain, "Token", "TKN")
    with pytest.raises(ValidationError):
        ERC20(chain, "Clash", "CLS", address=token.address)
    with pytest.raises(ZeroAddress):
        ERC20(chain, "Zero", "ZRO", address=ZERO_ADDRESS)
    with pytest.raises(ValidationError):
        chain.get_contract(DEPLOYER_ADDRESS)


def test_wrapped_native_round_trip(chain, alice):
    weth = WrappedNative(chain)
    chain.mint_native(alice, 1_000)

    weth.deposit(alice, 600)
    assert weth.balance_of(alice) == 600
    assert chain.native_balance(alice) == 400
    assert chain.native_balance(weth.address) == 600

    weth.withdraw(alice, 600)
    assert weth.balance_of(alice) == 0
    assert chain.native_balance(alice) == 1_000

    with pytest.raises(InsufficientBalance):
        weth.deposit(alice, 1_001)


def test_reentrant_call_into_pool_is_locked(chain, factory, oracle, admin, pusher, router, alice, deadline):
    evil = ReentrantToken(chain)
    oracle.push_prices(pusher, [evil.address], [to_wad("1")])
    factory.create_pool(admin, evil.address, False, to_wad("0.0015"))
    factory.set_deposit_caps(admin, [evil.address], [MAX_UINT256])
    pool = factory.get_pool_contract(evil.address)

    evil.mint(alice, alice, to_wad("10"))
    evil.approve(alice, router.address, MAX_UINT256)
    evil.pool = pool.address

    with pytest.raises(Locked):
        router.add_liquidity(alice, evil.address, to_wad("10"), 0, alice, deadline)

    assert evil.balance_of(alice) == to_wad("10")
    assert pool.total_supply == 0
    assert pool.assets == 0
    assert not pool._locked


def test_failures_are_counted_by_monitor(alice, bob):
    from singularity.monitoring import Monitor

    monitor = Monitor()
    chain = Chain(monitor=monitor)
    token = ERC20(chain, "Token", "TKN")
    with pytest.raises(InsufficientBalance):
        token.transfer(alice, bob, 1)

    value = monitor.registry.get_sample_value(
        'singularity_failed_transactions_total', {'reason': 'INSUFFICIENT_BALANCE'}
    )
    assert value == 1.0


def test_error_messages_carry_component_and_reason():
    from singularity.errors import AmountIsZero, StaleOraclePrice, InvalidOraclePrice

    assert str(AmountIsZero("SingularityPool")) == "SingularityPool: AMOUNT_IS_0"
    assert str(ZeroAddress("ERC20", "to")) == "ERC20: ZERO_ADDRESS (to)"
    assert issubclass(StaleOraclePrice, InvalidOraclePrice)

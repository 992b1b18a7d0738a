"""
Test Suite: Factory

Pool creation, registry lookups and the admin-only controls.
"""
import pytest

from singularity.crypto import address_from_label
from singularity.errors import (
    BaseFeeIsZero, BaseFeeTooHigh, NotAdmin, NotSameLength, PoolExists, PoolNotFound, ZeroAddress,
)
from singularity.factory import Factory
from singularity.fixed_point import WAD, ZERO_ADDRESS, to_wad
from singularity.conftest import BASE_FEE


def test_create_pool_registers(factory, admin, priced):
    eth = priced["ETH"]
    address = factory.create_pool(admin, eth.address, False, BASE_FEE)

    assert factory.get_pool(eth.address) == address
    assert factory.all_pools == [address]
    assert factory.all_pools_length() == 1
    pool = factory.get_pool_contract(eth.address)
    assert pool.factory == factory.address
    assert pool.token == eth.address


def test_create_pool_rejections(factory, admin, alice, priced):
    eth = priced["ETH"]
    with pytest.raises(NotAdmin):
        factory.create_pool(alice, eth.address, False, BASE_FEE)
    with pytest.raises(ZeroAddress):
        factory.create_pool(admin, ZERO_ADDRESS, False, BASE_FEE)
    with pytest.raises(BaseFeeIsZero):
        factory.create_pool(admin, eth.address, False, 0)
    with pytest.raises(BaseFeeTooHigh):
        factory.create_pool(admin, eth.address, False, WAD)
    assert factory.all_pools_length() == 0

    factory.create_pool(admin, eth.address, False, BASE_FEE)
    with pytest.raises(PoolExists):
        factory.create_pool(admin, eth.address, False, BASE_FEE)
    assert factory.all_pools_length() == 1


def test_unknown_pool(factory, priced):
    assert factory.get_pool(priced["ETH"].address) == ZERO_ADDRESS
    with pytest.raises(PoolNotFound):
        factory.get_pool_contract(priced["ETH"].address)


def test_zero_address_constructor_args(chain, admin):
    oracle = address_from_label("oracle")
    with pytest.raises(ZeroAddress):
        Factory(chain, "Tranche A", ZERO_ADDRESS, oracle, admin)
    with pytest.raises(ZeroAddress):
        Factory(chain, "Tranche A", admin, ZERO_ADDRESS, admin)
    with pytest.raises(ZeroAddress):
        Factory(chain, "Tranche A", admin, oracle, ZERO_ADDRESS)


def test_admin_setters(factory, admin, alice, bob):
    for setter in (factory.set_router, factory.set_admin, factory.set_oracle, factory.set_fee_to):
        with pytest.raises(NotAdmin):
            setter(alice, bob)
        with pytest.raises(ZeroAddress):
            setter(admin, ZERO_ADDRESS)

    factory.set_fee_to(admin, bob)
    assert factory.fee_to == bob
    factory.set_admin(admin, alice)
    assert factory.admin == alice
    with pytest.raises(NotAdmin):
        factory.set_fee_to(admin, admin)


def test_set_base_fees(factory, admin, alice, pools, priced):
    eth, usdc = priced["ETH"].address, priced["USDC"].address
    with pytest.raises(NotAdmin):
        factory.set_base_fees(alice, [eth], [1])
    with pytest.raises(NotSameLength):
        factory.set_base_fees(admin, [eth, usdc], [1])
    with pytest.raises(BaseFeeIsZero):
        factory.set_base_fees(admin, [eth, usdc], [to_wad("0.002"), 0])
    # All or nothing
    assert pools["ETH"].base_fee == BASE_FEE
    with pytest.raises(BaseFeeTooHigh):
        factory.set_base_fees(admin, [eth, usdc], [to_wad("0.002"), 2 * WAD])
    assert pools["ETH"].base_fee == BASE_FEE

    factory.set_base_fees(admin, [eth, usdc], [to_wad("0.002"), to_wad("0.0005")])
    assert pools["ETH"].base_fee == to_wad("0.002")
    assert pools["USDC"].base_fee == to_wad("0.0005")


def test_set_deposit_caps(factory, admin, alice, pools, priced):
    eth = priced["ETH"].address
    with pytest.raises(NotAdmin):
        factory.set_deposit_caps(alice, [eth], [1])
    with pytest.raises(NotSameLength):
        factory.set_deposit_caps(admin, [eth], [])
    factory.set_deposit_caps(admin, [eth], [to_wad("5")])
    assert pools["ETH"].deposit_cap == to_wad("5")


def test_set_paused_for_all(factory, admin, alice, pools):
    with pytest.raises(NotAdmin):
        factory.set_paused_for_all(alice, True)
    factory.set_paused_for_all(admin, True)
    assert all(pool.paused for pool in pools.values())
    factory.set_paused_for_all(admin, False)
    assert not any(pool.paused for pool in pools.values())


def test_collect_fees(seeded, factory, admin, alice, fee_to, priced, router, fund, bob, deadline):
    eth, usdc = priced["ETH"], priced["USDC"]
    fund(eth, bob, to_wad("0.5"))
    router.swap_exact_tokens_for_tokens(bob, eth.address, usdc.address, to_wad("0.5"), 0, bob, deadline)
    eth_fees = seeded["ETH"].admin_fees
    usdc_fees = seeded["USDC"].admin_fees
    assert eth_fees > 0 and usdc_fees > 0

    with pytest.raises(NotAdmin):
        factory.collect_fees(alice)

    collected = factory.collect_fees(admin)
    assert collected[eth.address] == eth_fees
    assert collected[usdc.address] == usdc_fees
    assert seeded["ETH"].admin_fees == 0
    assert seeded["USDC"].admin_fees == 0
    assert eth.balance_of(fee_to) == eth_fees
    assert usdc.balance_of(fee_to) == usdc_fees

    # Nothing left to sweep the second time
    again = factory.collect_fees(admin)
    assert all(amount == 0 for amount in again.values())
    assert eth.balance_of(fee_to) == eth_fees
    assert seeded["ETH"].locked_fees > 0

# singularity/test_monitoring.py
import pytest

from prometheus_client import generate_latest

from singularity.errors import InsufficientOutputAmount
from singularity.fixed_point import to_wad
from singularity.monitoring import Monitor


@pytest.fixture
def monitor(chain):
    monitor = Monitor(port=0)
    chain.monitor = monitor
    yield monitor
    monitor.stop_server()


def sample(monitor, name, labels=None):
    return monitor.registry.get_sample_value(name, labels or {})


def test_swap_and_liquidity_events_recorded(monitor, seeded, priced, router, fund, bob, deadline):
    eth, usdc = priced["ETH"], priced["USDC"]
    fund(eth, bob, to_wad("0.5"))
    router.swap_exact_tokens_for_tokens(bob, eth.address, usdc.address, to_wad("0.5"), 0, bob, deadline)

    labels = {'token_in': seeded["ETH"].symbol, 'token_out': seeded["USDC"].symbol}
    assert sample(monitor, 'singularity_swaps_total', labels) == 1.0
    assert sample(monitor, 'singularity_swap_volume_usd_count') == 1.0
    assert sample(monitor, 'singularity_swap_volume_usd_sum') == pytest.approx(998.5)


def test_failures_recorded_by_reason(monitor, seeded, priced, router, fund, bob, deadline):
    eth, usdc = priced["ETH"], priced["USDC"]
    fund(eth, bob, to_wad("0.5"))
    with pytest.raises(InsufficientOutputAmount):
        router.swap_exact_tokens_for_tokens(bob, eth.address, usdc.address, to_wad("0.5"), to_wad("10000", 6), bob, deadline)
    assert sample(monitor, 'singularity_failed_transactions_total', {'reason': 'INSUFFICIENT_OUTPUT_AMOUNT'}) == 1.0


def test_update_sets_pool_gauges(monitor, seeded, factory):
    monitor.update(factory)

    symbol = seeded["ETH"].symbol
    assert sample(monitor, 'singularity_pools') == 4
    assert sample(monitor, 'singularity_pool_assets', {'pool': symbol}) == 10.0
    assert sample(monitor, 'singularity_pool_collateralization_ratio', {'pool': symbol}) == 1.0
    assert sample(monitor, 'singularity_pool_price_per_share', {'pool': symbol}) == 1.0
    # Empty pools have nothing owed
    assert sample(monitor, 'singularity_pool_collateralization_ratio', {'pool': seeded["DAI"].symbol}) == float('inf')
    assert sample(monitor, 'system_memory_percent') is not None


def test_metrics_exposition(monitor, seeded, factory):
    monitor.update(factory)
    text = generate_latest(monitor.registry).decode('utf-8')
    assert 'singularity_pool_liabilities' in text


def test_server_start_stop(monitor):
    monitor.start_server()
    assert monitor.thread.is_alive()
    monitor.stop_server()
    assert monitor.server is None

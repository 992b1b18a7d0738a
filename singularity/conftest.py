"""Shared fixtures: a deployed protocol with WFTM, ETH, USDC and DAI pools."""
import pytest

from singularity.chain import Chain
from singularity.crypto import address_from_label
from singularity.deploy import deploy_protocol
from singularity.erc20 import ERC20
from singularity.fixed_point import MAX_UINT256, to_wad

START_TIME = 1_700_000_000
BASE_FEE = to_wad("0.0015")
PRICES = {"wFTM": "2", "ETH": "2000", "USDC": "1", "DAI": "1"}


@pytest.fixture
def chain():
    return Chain(timestamp=START_TIME)


@pytest.fixture
def admin():
    return address_from_label("admin")


@pytest.fixture
def pusher():
    return address_from_label("pusher")


@pytest.fixture
def fee_to():
    return address_from_label("fee-to")


@pytest.fixture
def alice():
    return address_from_label("alice")


@pytest.fixture
def bob():
    return address_from_label("bob")


@pytest.fixture
def deployment(chain, admin, pusher, fee_to):
    return deploy_protocol(chain, admin, fee_to, pushers=[pusher])


@pytest.fixture
def oracle(deployment):
    return deployment.oracle


@pytest.fixture
def factory(deployment):
    return deployment.factory


@pytest.fixture
def router(deployment):
    return deployment.router


@pytest.fixture
def tokens(chain, deployment):
    return {
        "wFTM": deployment.wrapped_native,
        "ETH": ERC20(chain, "Ethereum", "ETH", 18),
        "USDC": ERC20(chain, "USD Coin", "USDC", 6),
        "DAI": ERC20(chain, "Dai Stablecoin", "DAI", 21),
    }


@pytest.fixture
def priced(oracle, pusher, tokens):
    """Oracle prices pushed for every test token."""
    symbols = list(PRICES)
    oracle.push_prices(
        pusher,
        [tokens[s].address for s in symbols],
        [to_wad(PRICES[s]) for s in symbols],
    )
    return tokens


@pytest.fixture
def pools(factory, admin, priced):
    """One pool per token, uncapped."""
    result = {}
    for symbol, token in priced.items():
        factory.create_pool(admin, token.address, symbol in ("USDC", "DAI"), BASE_FEE)
        result[symbol] = factory.get_pool_contract(token.address)
    factory.set_deposit_caps(admin, [t.address for t in priced.values()], [MAX_UINT256] * len(priced))
    return result


@pytest.fixture
def fund(chain, router):
    """Mint ``amount`` of ``token`` to ``owner`` and approve the router for it."""
    def _fund(token, owner, amount):
        token.mint(owner, owner, amount)
        token.approve(owner, router.address, MAX_UINT256)
        return amount
    return _fund


@pytest.fixture
def deadline(chain):
    return chain.timestamp + 3600


@pytest.fixture
def seeded(pools, priced, router, fund, alice, deadline):
    """10 ETH and 20000 USDC of liquidity provided by alice."""
    eth, usdc = priced["ETH"], priced["USDC"]
    fund(eth, alice, to_wad("10"))
    fund(usdc, alice, to_wad("20000", 6))
    router.add_liquidity(alice, eth.address, to_wad("10"), 0, alice, deadline)
    router.add_liquidity(alice, usdc.address, to_wad("20000", 6), 0, alice, deadline)
    return pools

# singularity/deploy.py
"""
Deploy:
1. Oracle, with the admin and any price pushers
2. Factory for the configured tranche
3. Wrapped native token (unless one is supplied)
4. Router, registered with the factory
"""
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from singularity.chain import Chain
from singularity.erc20 import WrappedNative
from singularity.factory import Factory
from singularity.oracle import PriceOracle
from singularity.router import Router

logger = logging.getLogger(__name__)


@dataclass
class Deployment:
    chain: Chain
    admin: bytes
    oracle: PriceOracle
    factory: Factory
    router: Router
    wrapped_native: WrappedNative


def deploy_protocol(chain: Chain, admin: bytes, fee_to: bytes, pushers: Iterable[bytes] = (),
                    wrapped_native: Optional[bytes] = None, tranche: Optional[str] = None) -> Deployment:
    """Deploy and wire oracle, factory and router as a single transaction."""
    with chain.transaction():
        oracle = PriceOracle(chain, admin)
        for pusher in pushers:
            oracle.set_pusher(admin, pusher, True)

        factory = Factory(chain, tranche or chain.config.chain.tranche, admin, oracle.address, fee_to)

        if wrapped_native is None:
            weth = WrappedNative(chain)
        else:
            weth = chain.get_contract(wrapped_native)

        router = Router(chain, factory.address, weth.address)
        factory.set_router(admin, router.address)

    logger.info(
        f"Protocol deployed: oracle={oracle.address.hex()} factory={factory.address.hex()} "
        f"router={router.address.hex()} tranche={factory.tranche}"
    )
    return Deployment(chain, admin, oracle, factory, router, weth)

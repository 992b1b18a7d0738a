"""
Deployment simulation tool

Builds a complete deployment from a scenario file (tokens, oracle prices,
base fees, seed liquidity), runs the scenario's swaps through the router and
prints the resulting pool state. Useful for eyeballing fee and slippage
parameters before they are set on a live deployment.
"""
import argparse
import json
import logging
import sys
from decimal import Decimal

from prometheus_client import generate_latest

from singularity.chain import Chain
from singularity.config import Config
from singularity.crypto import address_from_label
from singularity.deploy import deploy_protocol
from singularity.erc20 import ERC20
from singularity.errors import ValidationError
from singularity.fixed_point import MAX_UINT256, WAD, to_wad
from singularity.monitoring import Monitor

logger = logging.getLogger(__name__)

DEADLINE_WINDOW = 3600


class Simulation:
    """A deployment plus the scenario's tokens, funded LP and trader accounts."""

    def __init__(self, scenario: dict, monitor: Monitor = None):
        self.chain = Chain(Config.from_dict(scenario.get('config', {})), monitor=monitor)
        self.admin = address_from_label("admin")
        self.pusher = address_from_label("pusher")
        self.provider = address_from_label("liquidity-provider")
        self.trader = address_from_label("trader")
        self.deployment = deploy_protocol(
            self.chain, self.admin, address_from_label("fee-to"), pushers=[self.pusher]
        )
        self.router = self.deployment.router
        self.tokens = {}
        self.native = set()

        for spec in scenario.get('tokens', []):
            self._add_token(spec)

    @property
    def deadline(self) -> int:
        return self.chain.timestamp + DEADLINE_WINDOW

    def _add_token(self, spec: dict):
        symbol = spec['symbol']
        if spec.get('native'):
            token = self.deployment.wrapped_native
            self.native.add(symbol)
        else:
            token = ERC20(self.chain, spec.get('name', symbol), symbol, spec.get('decimals', 18))
        self.tokens[symbol] = token

        factory = self.deployment.factory
        self.deployment.oracle.push_prices(self.pusher, [token.address], [to_wad(spec['price'])])
        factory.create_pool(self.admin, token.address, spec.get('is_stablecoin', False), to_wad(spec['base_fee']))
        factory.set_deposit_caps(self.admin, [token.address], [MAX_UINT256])

        liquidity = spec.get('liquidity')
        if liquidity:
            amount = to_wad(liquidity, token.decimals)
            if symbol in self.native:
                self.chain.mint_native(self.provider, amount)
                self.router.add_liquidity_eth(self.provider, amount, 0, self.provider, self.deadline)
            else:
                token.mint(self.provider, self.provider, amount)
                token.approve(self.provider, self.router.address, MAX_UINT256)
                self.router.add_liquidity(self.provider, token.address, amount, 0, self.provider, self.deadline)

    def quote(self, token_in: str, token_out: str, amount: str) -> int:
        raw = to_wad(amount, self.tokens[token_in].decimals)
        return self.router.get_amount_out(raw, self.tokens[token_in].address, self.tokens[token_out].address)

    def swap(self, token_in: str, token_out: str, amount: str, min_amount_out: int = 0) -> int:
        """Fund the trader with ``amount`` of ``token_in`` and swap it through the router."""
        source = self.tokens[token_in]
        target = self.tokens[token_out]
        raw = to_wad(amount, source.decimals)

        if token_in in self.native:
            self.chain.mint_native(self.trader, raw)
            return self.router.swap_exact_eth_for_tokens(
                self.trader, raw, source.address, target.address, min_amount_out, self.trader, self.deadline
            )

        source.mint(self.trader, self.trader, raw)
        source.approve(self.trader, self.router.address, raw)
        if token_out in self.native:
            return self.router.swap_exact_tokens_for_eth(
                self.trader, source.address, target.address, raw, min_amount_out, self.trader, self.deadline
            )
        return self.router.swap_exact_tokens_for_tokens(
            self.trader, source.address, target.address, raw, min_amount_out, self.trader, self.deadline
        )

    def pool_rows(self) -> list:
        rows = []
        for symbol, token in self.tokens.items():
            pool = self.deployment.factory.get_pool_contract(token.address)
            scale = Decimal(10) ** pool.decimals
            ratio = pool.get_collateralization_ratio()
            rows.append({
                'symbol': symbol,
                'assets': str(Decimal(pool.assets) / scale),
                'liabilities': str(Decimal(pool.liabilities) / scale),
                'admin_fees': str(Decimal(pool.admin_fees) / scale),
                'locked_fees': str(Decimal(pool.locked_fees) / scale),
                'collateralization': None if ratio == MAX_UINT256 else str(Decimal(ratio) / WAD),
                'price_per_share': str(Decimal(pool.get_price_per_share()) / WAD),
            })
        return rows


def load_scenario(path: str) -> dict:
    with open(path, 'r') as f:
        return json.load(f)


def sample_scenario() -> dict:
    return {
        "config": Config.default().to_dict(),
        "tokens": [
            {"symbol": "wFTM", "native": True, "price": "2", "base_fee": "0.0015", "liquidity": "10000"},
            {"symbol": "ETH", "name": "Ethereum", "decimals": 18, "price": "2000",
             "base_fee": "0.0015", "liquidity": "10"},
            {"symbol": "USDC", "name": "USD Coin", "decimals": 6, "price": "1",
             "base_fee": "0.0015", "is_stablecoin": True, "liquidity": "20000"},
        ],
        "swaps": [
            {"from": "ETH", "to": "USDC", "amount": "0.5"},
            {"from": "USDC", "to": "wFTM", "amount": "100"},
        ],
    }


def generate_sample_config(output_path: str):
    """Writes a sample scenario file."""
    with open(output_path, 'w') as f:
        json.dump(sample_scenario(), f, indent=2)
    print(f"Generated sample scenario at: {output_path}")
    print("Edit tokens, prices and swaps, then run: singularity simulate --scenario", output_path)


def run_simulation(scenario_path: str, show_metrics: bool = False):
    scenario = load_scenario(scenario_path)
    monitor = Monitor()
    sim = Simulation(scenario, monitor=monitor)

    for swap in scenario.get('swaps', []):
        amount_out = sim.swap(swap['from'], swap['to'], swap['amount'], int(swap.get('min_amount_out', 0)))
        decimals = sim.tokens[swap['to']].decimals
        print(f"Swapped {swap['amount']} {swap['from']} -> {Decimal(amount_out) / Decimal(10) ** decimals} {swap['to']}")

    print(json.dumps(sim.pool_rows(), indent=2))

    if show_metrics:
        monitor.update(sim.deployment.factory)
        print(generate_latest(monitor.registry).decode('utf-8'))


def run_quote(scenario_path: str, token_in: str, token_out: str, amount: str):
    sim = Simulation(load_scenario(scenario_path))
    amount_out = sim.quote(token_in, token_out, amount)
    decimals = sim.tokens[token_out].decimals
    print(f"{amount} {token_in} -> {Decimal(amount_out) / Decimal(10) ** decimals} {token_out}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Singularity deployment simulation tool")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    subparsers = parser.add_subparsers(dest="command", required=True)

    parser_sample = subparsers.add_parser("sample-config", help="Generate a sample scenario.json")
    parser_sample.add_argument("--output", type=str, default="scenario.json", help="Output file path")

    parser_sim = subparsers.add_parser("simulate", help="Deploy a scenario and run its swaps")
    parser_sim.add_argument("--scenario", type=str, default="scenario.json", help="Path to scenario file")
    parser_sim.add_argument("--metrics", action="store_true", help="Print Prometheus metrics afterwards")

    parser_quote = subparsers.add_parser("quote", help="Quote a swap against a scenario's pools")
    parser_quote.add_argument("--scenario", type=str, default="scenario.json", help="Path to scenario file")
    parser_quote.add_argument("--from", dest="token_in", required=True, help="Input token symbol")
    parser_quote.add_argument("--to", dest="token_out", required=True, help="Output token symbol")
    parser_quote.add_argument("--amount", required=True, help="Input amount in whole tokens")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        if args.command == "sample-config":
            generate_sample_config(args.output)
        elif args.command == "simulate":
            run_simulation(args.scenario, args.metrics)
        elif args.command == "quote":
            run_quote(args.scenario, args.token_in, args.token_out, args.amount)
    except (ValidationError, KeyError, OSError) as e:
        logger.error(f"{args.command} failed: {e}")
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())

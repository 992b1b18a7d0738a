"""
Configuration management for the engine.
"""
import json
import os
from dataclasses import dataclass, asdict


@dataclass
class ChainConfig:
    """Ledger configuration."""
    chain_id: int = 1
    tranche: str = "Tranche A"


@dataclass
class OracleConfig:
    """Oracle configuration."""
    max_price_age: int = 0  # seconds, 0 disables the staleness check


@dataclass
class PoolConfig:
    """Pool fee split and slippage curve parameters, in basis points."""
    lp_fee_share_bps: int = 5_000
    admin_fee_share_bps: int = 2_500
    locked_fee_share_bps: int = 2_500
    slippage_amplitude_bps: int = 10_000
    min_collateralization_bps: int = 1_000

    def __post_init__(self):
        total = self.lp_fee_share_bps + self.admin_fee_share_bps + self.locked_fee_share_bps
        if total != 10_000:
            raise ValueError(f"Fee shares must add up to 10000 bps, got {total}")
        if not 0 <= self.slippage_amplitude_bps <= 10_000:
            raise ValueError("Slippage amplitude must be within [0, 10000] bps")
        if self.min_collateralization_bps < 0:
            raise ValueError("Collateralization floor cannot be negative")


@dataclass
class MonitoringConfig:
    """Monitoring configuration."""
    host: str = "127.0.0.1"
    port: int = 9090


@dataclass
class Config:
    """Main configuration."""
    chain: ChainConfig
    oracle: OracleConfig
    pool: PoolConfig
    monitoring: MonitoringConfig

    @classmethod
    def default(cls) -> 'Config':
        """Create default configuration."""
        return cls(
            chain=ChainConfig(),
            oracle=OracleConfig(),
            pool=PoolConfig(),
            monitoring=MonitoringConfig()
        )

    @classmethod
    def from_dict(cls, data: dict) -> 'Config':
        return cls(
            chain=ChainConfig(**data.get('chain', {})),
            oracle=OracleConfig(**data.get('oracle', {})),
            pool=PoolConfig(**data.get('pool', {})),
            monitoring=MonitoringConfig(**data.get('monitoring', {}))
        )

    @classmethod
    def from_file(cls, path: str) -> 'Config':
        """Load configuration from JSON file."""
        with open(path, 'r') as f:
            data = json.load(f)
        return cls.from_dict(data)

    def to_file(self, path: str):
        """Save configuration to JSON file."""
        os.makedirs(os.path.dirname(path) or '.', exist_ok=True)
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            'chain': asdict(self.chain),
            'oracle': asdict(self.oracle),
            'pool': asdict(self.pool),
            'monitoring': asdict(self.monitoring)
        }

# setup.py
from setuptools import setup, find_packages

setup(
    name="singularity",
    version="0.1.0",
    packages=find_packages(),
    install_requires=[
        "eth-account",       # recoverable secp256k1 permit signatures
        "eth-keys",          # signature validation errors
        "eth-abi",           # EIP-712 struct encoding
        "pycryptodome",      # keccak-256
        "msgpack",           # ledger snapshots
        "prometheus_client", # metrics
        "psutil",            # monitoring
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "singularity=singularity.cli:main",
        ],
    },
)

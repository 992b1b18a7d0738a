"""
Singularity: single-sided, oracle-priced liquidity pools with a router,
a factory/registry and a push-based price oracle, on an in-process ledger.
"""
__version__ = "0.1.0"

# singularity/monitoring.py
import time
import socket
import threading
import logging
from socketserver import ThreadingMixIn
from wsgiref.simple_server import make_server, WSGIServer

import psutil
from prometheus_client import Counter, Gauge, Histogram, CollectorRegistry
from prometheus_client.exposition import make_wsgi_app

from singularity.fixed_point import WAD, MAX_UINT256

logger = logging.getLogger(__name__)


class ThreadingWSGIServer(ThreadingMixIn, WSGIServer):
    """A WSGI server that handles scrapes off the main thread."""
    allow_reuse_address = True


class Monitor:
    """
    Prometheus metrics for a deployment.

    Swap, liquidity and failure counters are fed by the Router and the Chain;
    pool gauges are refreshed from the Factory by ``update``. The HTTP
    exporter only runs after ``start_server``.
    """

    def __init__(self, host="127.0.0.1", port=9090):
        self.host = host
        self.port = port
        self.server = None
        self.thread = None

        # Isolated registry so several deployments can live in one process
        self.registry = CollectorRegistry()

        self.swap_counter = Counter('singularity_swaps_total', 'Swaps executed', ['token_in', 'token_out'], registry=self.registry)
        self.swap_volume = Histogram(
            'singularity_swap_volume_usd', 'USD value carried per swap',
            buckets=(1, 10, 100, 1_000, 10_000, 100_000, 1_000_000), registry=self.registry
        )
        self.liquidity_counter = Counter('singularity_liquidity_events_total', 'Deposits and withdrawals', ['action', 'pool'], registry=self.registry)
        self.failure_counter = Counter('singularity_failed_transactions_total', 'Rolled back transactions', ['reason'], registry=self.registry)
        self.transactions = Gauge('singularity_transactions_committed', 'Committed transactions', registry=self.registry)
        self.pool_count = Gauge('singularity_pools', 'Number of pools', registry=self.registry)
        self.pool_assets = Gauge('singularity_pool_assets', 'Pool assets in whole tokens', ['pool'], registry=self.registry)
        self.pool_liabilities = Gauge('singularity_pool_liabilities', 'Pool liabilities in whole tokens', ['pool'], registry=self.registry)
        self.pool_coverage = Gauge('singularity_pool_collateralization_ratio', 'Assets over liabilities', ['pool'], registry=self.registry)
        self.pool_price_per_share = Gauge('singularity_pool_price_per_share', 'Liabilities per share', ['pool'], registry=self.registry)
        self.pool_paused = Gauge('singularity_pool_paused', '1 if the pool is paused', ['pool'], registry=self.registry)
        self.cpu_usage = Gauge('system_cpu_percent', 'Current CPU usage percent', registry=self.registry)
        self.memory_usage = Gauge('system_memory_percent', 'Current memory usage percent', registry=self.registry)

    def start_server(self, max_retries=5, retry_delay=2):
        """Start the Prometheus HTTP exporter in a daemon thread, retrying a busy port."""
        app = make_wsgi_app(self.registry)

        for attempt in range(max_retries):
            try:
                self.server = make_server(self.host, self.port, app, ThreadingWSGIServer)
                self.server.socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

                self.thread = threading.Thread(target=self.server.serve_forever)
                self.thread.daemon = True
                self.thread.start()
                logger.info(f"Prometheus server started on http://{self.host}:{self.server.server_port}")
                return
            except OSError as e:
                if e.errno == 98:  # Address already in use
                    if attempt < max_retries - 1:
                        logger.warning(f"Port {self.port} in use, retrying in {retry_delay}s (attempt {attempt+1}/{max_retries})...")
                        time.sleep(retry_delay)
                    else:
                        logger.error(f"Failed to bind to port {self.port} after {max_retries} attempts")
                        raise
                else:
                    raise

    def stop_server(self):
        if self.server:
            self.server.shutdown()
            self.server.server_close()
            self.server = None
            logger.info("Prometheus server stopped.")

    def update(self, factory):
        """Refresh pool and process gauges from ``factory``."""
        self.transactions.set(factory.chain.total_transactions)
        self.pool_count.set(factory.all_pools_length())

        for pool in factory.iter_pools():
            scale = 10 ** pool.decimals
            self.pool_assets.labels(pool=pool.symbol).set(pool.assets / scale)
            self.pool_liabilities.labels(pool=pool.symbol).set(pool.liabilities / scale)
            ratio = pool.get_collateralization_ratio()
            # Nothing owed reads as +Inf rather than a 78-digit number
            self.pool_coverage.labels(pool=pool.symbol).set(float('inf') if ratio == MAX_UINT256 else ratio / WAD)
            self.pool_price_per_share.labels(pool=pool.symbol).set(pool.get_price_per_share() / WAD)
            self.pool_paused.labels(pool=pool.symbol).set(1 if pool.paused else 0)

        self.cpu_usage.set(psutil.cpu_percent())
        self.memory_usage.set(psutil.virtual_memory().percent)

    def record_swap(self, pool_in, pool_out, usd_value: int):
        self.swap_counter.labels(token_in=pool_in.symbol, token_out=pool_out.symbol).inc()
        self.swap_volume.observe(usd_value / WAD)

    def record_liquidity(self, action: str, pool):
        self.liquidity_counter.labels(action=action, pool=pool.symbol).inc()

    def record_failure(self, reason: str):
        self.failure_counter.labels(reason=reason).inc()

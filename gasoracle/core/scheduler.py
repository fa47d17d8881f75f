# /gasoracle/core/scheduler.py
# Starts and stops every sampling loop of the engine as one unit.

import asyncio
from typing import Awaitable, Callable, Dict, List, Optional

from gasoracle.adapters.connection import ConnectionManager
from gasoracle.adapters.oracle import PriceOracle
from gasoracle.core.config import settings, Settings
from gasoracle.core.gas_sampler import GasSampler
from gasoracle.core.logger import get_logger, bind_network
from gasoracle.core.networks import NetworkKey, PRIMARY_NETWORK
from gasoracle.core.state import StateStore, StoreSnapshot

log = get_logger(__name__)

class Scheduler:
    """
    Owns the lifecycle of all periodic tasks.

    `start()` launches both price channels and one task per network. Each
    network task opens its own connection, takes an immediate fee sample and
    then runs the fee poll and history loops, so a slow or failing endpoint
    only holds up its own network. `start()` returns once every network has
    finished its first sample or STARTUP_TIMEOUT_SECONDS has passed.
    `stop()` cancels and awaits every task before closing connections
    and releases a pending `start()`. Nothing writes to the store once it returns.
    """
    def __init__(self, store: Optional[StateStore] = None,
                 connections: Optional[ConnectionManager] = None,
                 config: Optional[Settings] = None,
                 networks: Optional[List[NetworkKey]] = None):
        self.config = config or settings
        self.store = store or StateStore()
        self.connections = connections or ConnectionManager()
        self.networks = list(networks or NetworkKey)
        self.samplers: Dict[NetworkKey, GasSampler] = {}
        self.oracle = PriceOracle(
            self.connections, self.store,
            pool_address=self.config.UNISWAP_POOL_ADDRESS,
            network=PRIMARY_NETWORK,
            scan_blocks=self.config.PRICE_SCAN_BLOCKS,
            reconnect_delay=self.config.RECONNECT_DELAY_SECONDS,
        )
        self._tasks: List[asyncio.Task] = []
        self._ready: List[asyncio.Event] = []
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def snapshot(self) -> StoreSnapshot:
        return self.store.snapshot()

    def _spawn(self, coro: Awaitable, name: str) -> None:
        self._tasks.append(asyncio.create_task(coro, name=name))

    async def _every(self, interval: float, tick: Callable[[], Awaitable], label: str,
                     network: Optional[NetworkKey] = None, immediate: bool = True) -> None:
        if network is not None:
            bind_network(network.value)
        if not immediate:
            await asyncio.sleep(interval)
        while True:
            try:
                await tick()
            except Exception as e:
                log.error("PERIODIC_TASK_ERROR", task=label, error=str(e), exc_info=True)
            await asyncio.sleep(interval)

    async def _run_network(self, network: NetworkKey, ready: asyncio.Event) -> None:
        """Connects one network, takes the immediate sample, then runs its fee and history loops."""
        bind_network(network.value)
        try:
            try:
                await self.connections.open(network)
            except Exception as e:
                log.error("NETWORK_START_FAILED", network=network.value, error=str(e))
                return
            sampler = GasSampler(network, self.connections, self.store)
            self.samplers[network] = sampler
            await sampler.sample()
        finally:
            ready.set()

        await asyncio.gather(
            self._every(self.config.FEE_POLL_INTERVAL_SECONDS, sampler.sample, "fee_poll", network, immediate=False),
            self._every(self.config.HISTORY_INTERVAL_SECONDS, sampler.collect_history, "history", network, immediate=False),
        )

    async def start(self) -> None:
        if self._running:
            log.warning("SCHEDULER_ALREADY_RUNNING")
            return
        self._running = True
        log.info("SCHEDULER_STARTING", networks=[n.value for n in self.networks])

        # Every task exists before the first await, so stop() always sees all of them
        self._spawn(self.oracle.listen(), name="price:events")
        self._spawn(self._every(self.config.PRICE_POLL_INTERVAL_SECONDS, self.oracle.scan_logs, "price_scan"),
                    name="price:scan")
        ready = self._ready = []
        for network in self.networks:
            event = asyncio.Event()
            ready.append(event)
            self._spawn(self._run_network(network, event), name=f"network:{network.value}")

        try:
            await asyncio.wait_for(asyncio.gather(*(event.wait() for event in ready)),
                                   timeout=self.config.STARTUP_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            pending = [n.value for n, event in zip(self.networks, ready) if not event.is_set()]
            log.warning("NETWORK_STARTUP_SLOW", pending=pending)
        if not self._running:
            return
        log.info("SCHEDULER_STARTED", live_networks=[n.value for n in self.samplers], tasks=len(self._tasks))

    async def stop(self) -> None:
        if not self._running and not self._tasks:
            await self.connections.close_all()
            return
        self._running = False
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        # A task cancelled before its first step never reaches its finally block
        for event in self._ready:
            event.set()
        await asyncio.gather(*tasks, return_exceptions=True)
        await self.connections.close_all()
        self.samplers.clear()
        log.warning("SCHEDULER_STOPPED", cancelled_tasks=len(tasks))

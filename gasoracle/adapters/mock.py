# /gasoracle/adapters/mock.py
# In-memory stand-ins for the websocket connections, used by the test suite
# and for running the engine without RPC access.

import asyncio
from typing import Any, Dict, List, Optional

from gasoracle.core.logger import get_logger
from gasoracle.core.networks import NetworkKey

log = get_logger(__name__)

class MockChainConnection:
    """
    Mirrors the Web3Connection interface. Every RPC answer is programmable;
    setting a `*_error` attribute makes that call raise instead.
    """
    def __init__(self, network: NetworkKey = NetworkKey.ETHEREUM, base_fee_wei: Optional[int] = 20 * 10**9):
        self.network = network
        self.block: Optional[Dict[str, Any]] = {"number": 1000} if base_fee_wei is None else {"number": 1000, "baseFeePerGas": base_fee_wei}
        self.priority_fee_wei: int = 2 * 10**9
        self.fee_history_result: Dict[str, Any] = {"reward": [[3 * 10**9]]}
        self.block_number_value: int = 1000
        self.logs: List[Dict[str, Any]] = []
        self.block_error: Optional[Exception] = None
        self.priority_fee_error: Optional[Exception] = None
        self.fee_history_error: Optional[Exception] = None
        self.logs_error: Optional[Exception] = None
        self.connected = True
        self.closed = False
        self.calls: List[str] = []
        self.log_queries: List[Dict[str, Any]] = []
        self._events: asyncio.Queue = asyncio.Queue()
        log.debug("MOCK_CONNECTION_CREATED", network=network.value)

    def set_block(self, block: Optional[Dict[str, Any]]):
        self.block = block

    def push_event(self, log_entry: Optional[Dict[str, Any]]):
        """Delivers a log to the live subscription. None ends the subscription."""
        self._events.put_nowait(log_entry)

    async def is_connected(self) -> bool:
        return self.connected and not self.closed

    async def get_latest_block(self):
        self.calls.append("get_latest_block")
        if self.block_error:
            raise self.block_error
        return self.block

    async def max_priority_fee(self) -> int:
        self.calls.append("max_priority_fee")
        if self.priority_fee_error:
            raise self.priority_fee_error
        return self.priority_fee_wei

    async def fee_history(self, block_count, newest_block, reward_percentiles):
        self.calls.append("fee_history")
        if self.fee_history_error:
            raise self.fee_history_error
        return self.fee_history_result

    async def block_number(self) -> int:
        self.calls.append("block_number")
        return self.block_number_value

    async def get_logs(self, filter_params):
        self.calls.append("get_logs")
        self.log_queries.append(filter_params)
        if self.logs_error:
            raise self.logs_error
        return list(self.logs)

    async def subscribe_logs(self, address, topics):
        self.calls.append("subscribe_logs")
        while True:
            log_entry = await self._events.get()
            if log_entry is None:
                return
            yield log_entry

    async def close(self) -> None:
        self.closed = True

class MockConnectionFactory:
    """
    Drop-in ConnectionManager factory. Hands out one MockChainConnection per
    network (fresh on every reconnect) and can be told to refuse networks.
    """
    def __init__(self, failing: tuple = ()):
        self.failing = set(failing)
        self.opened: Dict[NetworkKey, List[MockChainConnection]] = {}
        self.templates: Dict[NetworkKey, MockChainConnection] = {}

    def prepare(self, network: NetworkKey, connection: MockChainConnection):
        """Pre-configures the connection handed out on the next open of *network*."""
        self.templates[network] = connection

    def latest(self, network: NetworkKey) -> MockChainConnection:
        return self.opened[network][-1]

    async def __call__(self, network: NetworkKey, url: str) -> MockChainConnection:
        if network in self.failing:
            raise ConnectionError(f"mock refused connection to {network.value}")
        connection = self.templates.pop(network, None) or MockChainConnection(network)
        self.opened.setdefault(network, []).append(connection)
        return connection

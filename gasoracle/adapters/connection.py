# /gasoracle/adapters/connection.py
# One persistent websocket connection per tracked network, with reconnect.

from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional

from web3 import AsyncWeb3, WebSocketProvider
from web3.exceptions import BlockNotFound

from gasoracle.core.config import settings
from gasoracle.core.decorators import retriable_network_call
from gasoracle.core.logger import get_logger, RECONNECTS
from gasoracle.core.networks import NetworkKey

log = get_logger(__name__)

class MissingEndpointError(ConnectionError):
    """No websocket URL is configured for the requested network."""

class Web3Connection:
    """Thin async handle over an AsyncWeb3 websocket provider for a single network."""

    def __init__(self, network: NetworkKey, w3: AsyncWeb3):
        self.network = network
        self.w3 = w3

    @classmethod
    async def open(cls, network: NetworkKey, url: str, timeout: float = 10.0) -> "Web3Connection":
        w3 = AsyncWeb3(WebSocketProvider(url, request_timeout=timeout))
        await w3.provider.connect()
        return cls(network, w3)

    async def is_connected(self) -> bool:
        return await self.w3.is_connected()

    async def get_latest_block(self) -> Optional[Any]:
        try:
            return await self.w3.eth.get_block("latest")
        except BlockNotFound:
            return None

    async def max_priority_fee(self) -> int:
        return await self.w3.eth.max_priority_fee

    async def fee_history(self, block_count: int, newest_block: str, reward_percentiles: List[float]) -> Any:
        return await self.w3.eth.fee_history(block_count, newest_block, reward_percentiles)

    async def block_number(self) -> int:
        return await self.w3.eth.block_number

    async def get_logs(self, filter_params: Dict[str, Any]) -> List[Any]:
        return await self.w3.eth.get_logs(filter_params)

    async def subscribe_logs(self, address: str, topics: List[str]) -> AsyncIterator[Any]:
        """Yields every log pushed for *address*/*topics* until the socket drops."""
        subscription_id = await self.w3.eth.subscribe("logs", {"address": address, "topics": topics})
        log.info("LOG_SUBSCRIPTION_OPENED", network=self.network.value, subscription_id=str(subscription_id))
        try:
            async for payload in self.w3.socket.process_subscriptions():
                if payload.get("subscription") == subscription_id:
                    yield payload["result"]
        finally:
            try:
                await self.w3.eth.unsubscribe(subscription_id)
            except Exception as e:
                log.debug("LOG_UNSUBSCRIBE_FAILED", network=self.network.value, error=str(e))

    async def close(self) -> None:
        await self.w3.provider.disconnect()

ConnectionFactory = Callable[[NetworkKey, str], Awaitable[Any]]

async def _default_factory(network: NetworkKey, url: str) -> Web3Connection:
    return await Web3Connection.open(network, url, timeout=settings.RPC_TIMEOUT_SECONDS)

class ConnectionManager:
    """
    Owns the live connection of every network.

    Opening retries with exponential backoff; `ensure` re-opens a connection
    that reports itself as dropped. Consumers never keep handles across
    ticks, they ask the manager each time.
    """
    def __init__(self, urls: Optional[Dict[NetworkKey, str]] = None,
                 factory: ConnectionFactory = _default_factory,
                 connect_attempts: Optional[int] = None):
        if urls is None:
            urls = {n: url for n in NetworkKey if (url := settings.rpc_url_for(n))}
        self.urls = urls
        self._factory = factory
        self._connections: Dict[NetworkKey, Any] = {}
        attempts = connect_attempts if connect_attempts is not None else settings.CONNECT_ATTEMPTS
        self._open_with_retry = retriable_network_call(attempts)(self._open_once)

    async def _open_once(self, network: NetworkKey, url: str):
        return await self._factory(network, url)

    async def open(self, network: NetworkKey):
        url = self.urls.get(network)
        if not url:
            # Configuration error, retrying cannot fix it
            raise MissingEndpointError(f"No RPC endpoint configured for {network.value}")
        log.info("CONNECTING", network=network.value)
        connection = await self._open_with_retry(network, url)
        self._connections[network] = connection
        log.info("CONNECTED", network=network.value)
        return connection

    def is_open(self, network: NetworkKey) -> bool:
        return network in self._connections

    async def ensure(self, network: NetworkKey):
        """Returns a live handle for *network*, reconnecting if it has dropped."""
        connection = self._connections.get(network)
        if connection is not None:
            try:
                if await connection.is_connected():
                    return connection
            except Exception as e:
                log.warning("CONNECTION_HEALTHCHECK_FAILED", network=network.value, error=str(e))
            log.warning("CONNECTION_LOST_RECONNECTING", network=network.value)
            await self.close(network)
            RECONNECTS.labels(network.value).inc()
        return await self.open(network)

    async def close(self, network: NetworkKey) -> None:
        connection = self._connections.pop(network, None)
        if connection is None:
            return
        try:
            await connection.close()
        except Exception as e:
            log.error("CONNECTION_CLOSE_FAILED", network=network.value, error=str(e))

    async def close_all(self) -> None:
        for network in list(self._connections):
            await self.close(network)
        log.info("ALL_CONNECTIONS_CLOSED")

# /gasoracle/adapters/oracle.py
# Keeps the ETH/USD reference price fresh from Uniswap V3 Swap events.
import asyncio
from typing import Any, Mapping, Optional

from eth_abi import decode as abi_decode
from hexbytes import HexBytes
from web3 import AsyncWeb3
from websockets.exceptions import ConnectionClosed

from gasoracle.abis import SWAP_EVENT_TOPIC, SWAP_DATA_TYPES
from gasoracle.adapters.connection import ConnectionManager
from gasoracle.core.config import settings
from gasoracle.core.logger import get_logger, PRICE_UPDATES, FETCH_ERRORS
from gasoracle.core.networks import NetworkKey, PRIMARY_NETWORK
from gasoracle.core.pricing import derive_eth_usd_price, FALLBACK_ETH_USD_PRICE
from gasoracle.core.state import StateStore

log = get_logger(__name__)

CHANNEL_EVENTS = "events"
CHANNEL_SCAN = "scan"

def decode_swap_sqrt_price(log_entry: Mapping[str, Any]) -> int:
    """Extracts the post-swap sqrtPriceX96 from a raw Swap log."""
    topics = log_entry.get("topics") or []
    if not topics or HexBytes(topics[0]) != HexBytes(SWAP_EVENT_TOPIC):
        raise ValueError("Log is not a Uniswap V3 Swap event")
    _amount0, _amount1, sqrt_price_x96, _liquidity, _tick = abi_decode(SWAP_DATA_TYPES, HexBytes(log_entry["data"]))
    return sqrt_price_x96

class PriceOracle:
    """
    Two independent channels feeding the same store field:

    * `listen()` follows the pool's live Swap subscription;
    * `scan_logs()` reads the last PRICE_SCAN_BLOCKS blocks of Swap logs.

    Writes are last-write-wins; neither channel knows about the other.
    """
    def __init__(self, connections: ConnectionManager, store: StateStore,
                 pool_address: Optional[str] = None,
                 network: NetworkKey = PRIMARY_NETWORK,
                 scan_blocks: Optional[int] = None,
                 reconnect_delay: Optional[float] = None):
        self.connections = connections
        self.store = store
        self.network = network
        self.pool_address = AsyncWeb3.to_checksum_address(pool_address or settings.UNISWAP_POOL_ADDRESS)
        self.scan_blocks = scan_blocks if scan_blocks is not None else settings.PRICE_SCAN_BLOCKS
        self.reconnect_delay = reconnect_delay if reconnect_delay is not None else settings.RECONNECT_DELAY_SECONDS

    def _write_price(self, price: float, channel: str) -> None:
        self.store.set_price(price)
        PRICE_UPDATES.labels(channel).inc()
        log.info("ETH_PRICE_UPDATED", channel=channel, price=round(price, 2))

    def _write_fallback_if_unknown(self, reason: str) -> None:
        if self.store.set_price_if_unknown(FALLBACK_ETH_USD_PRICE):
            PRICE_UPDATES.labels(CHANNEL_SCAN).inc()
            log.warning("ETH_PRICE_FALLBACK", reason=reason, price=FALLBACK_ETH_USD_PRICE)

    def handle_swap_log(self, log_entry: Mapping[str, Any], channel: str = CHANNEL_EVENTS) -> Optional[float]:
        """Decodes one Swap log and writes the derived price. Returns None if the log is unusable."""
        try:
            sqrt_price_x96 = decode_swap_sqrt_price(log_entry)
        except Exception as e:
            FETCH_ERRORS.labels("swap_decode").inc()
            log.error("SWAP_LOG_DECODE_FAILED", channel=channel, error=str(e))
            return None
        price = derive_eth_usd_price(sqrt_price_x96)
        self._write_price(price, channel)
        return price

    async def scan_logs(self) -> Optional[float]:
        """One periodic scan over the most recent blocks."""
        try:
            connection = await self.connections.ensure(self.network)
            current_block = await connection.block_number()
            from_block = max(current_block - self.scan_blocks, 0)
            logs = await connection.get_logs({
                "address": self.pool_address,
                "topics": [SWAP_EVENT_TOPIC],
                "fromBlock": from_block,
                "toBlock": "latest",
            })
        except Exception as e:
            FETCH_ERRORS.labels("price_scan").inc()
            log.error("SWAP_LOG_QUERY_FAILED", error=str(e), exc_info=True)
            self._write_fallback_if_unknown("query_failed")
            return None

        if not logs:
            log.info("NO_RECENT_SWAPS", from_block=from_block)
            self._write_fallback_if_unknown("no_recent_swaps")
            return None

        log.debug("SWAP_LOGS_FOUND", count=len(logs))
        return self.handle_swap_log(logs[-1], channel=CHANNEL_SCAN)

    async def listen(self) -> None:
        """Follows the live Swap stream until cancelled, resubscribing after every drop."""
        while True:
            try:
                connection = await self.connections.ensure(self.network)
                async for log_entry in connection.subscribe_logs(self.pool_address, [SWAP_EVENT_TOPIC]):
                    log.debug("SWAP_EVENT_RECEIVED")
                    self.handle_swap_log(log_entry, channel=CHANNEL_EVENTS)
                log.warning("SWAP_SUBSCRIPTION_ENDED_RESUBSCRIBING")
            except ConnectionClosed:
                log.warning("SWAP_SUBSCRIPTION_CONNECTION_CLOSED_RECONNECTING")
            except Exception as e:
                FETCH_ERRORS.labels("price_subscription").inc()
                log.error("SWAP_SUBSCRIPTION_ERROR", error=str(e), exc_info=True)
            await asyncio.sleep(self.reconnect_delay)

# /gasoracle/core/gas_sampler.py
# Per-network fee sampling with a cascading priority-fee fallback.

from typing import Optional, Tuple

from gasoracle.adapters.connection import ConnectionManager
from gasoracle.core.logger import get_logger, GAS_SAMPLES_WRITTEN, PRIORITY_FEE_SOURCE, HISTORY_POINTS_APPENDED, FETCH_ERRORS
from gasoracle.core.networks import NetworkKey, NetworkPolicy, policy_for, HISTORY_PRIORITY_FEE_GWEI, WEI_PER_GWEI
from gasoracle.core.state import StateStore, GasSample, HistoryPoint

log = get_logger(__name__)

FEE_HISTORY_PERCENTILE = 50

def _to_gwei(wei) -> float:
    return int(wei) / WEI_PER_GWEI

class GasSampler:
    """
    Samples base and priority fees for one network and writes them to the store.

    Failures never escape `sample()` or `collect_history()`: the store simply
    keeps whatever it held before.
    """
    def __init__(self, network: NetworkKey, connections: ConnectionManager, store: StateStore,
                 policy: Optional[NetworkPolicy] = None):
        self.network = network
        self.connections = connections
        self.store = store
        self.policy = policy or policy_for(network)

    async def _latest_base_fee(self, connection) -> Optional[float]:
        """Base fee of the latest block in Gwei, or None when there is no usable header."""
        block = await connection.get_latest_block()
        if not block:
            log.info("NO_BLOCK_DATA", network=self.network.value)
            return None
        base_fee = block.get("baseFeePerGas")
        if base_fee is None:
            log.info("NO_BASE_FEE_FIELD", network=self.network.value)
            return None
        return _to_gwei(base_fee)

    async def priority_fee(self, connection) -> Tuple[float, str]:
        """
        Resolves the priority fee in Gwei, first success wins:

        1. ``eth_maxPriorityFeePerGas``
        2. ``eth_feeHistory`` median reward of the latest block
        3. the network's policy default, which cannot fail

        Returns the fee together with the name of the tier that produced it.
        """
        try:
            return _to_gwei(await connection.max_priority_fee()), "rpc"
        except Exception as e:
            log.info("PRIORITY_FEE_RPC_FAILED", network=self.network.value, error=str(e))

        try:
            history = await connection.fee_history(1, "latest", [FEE_HISTORY_PERCENTILE])
            rewards = history.get("reward") if history else None
            if rewards and rewards[0]:
                return _to_gwei(rewards[0][0]), "fee_history"
            log.info("FEE_HISTORY_EMPTY", network=self.network.value)
        except Exception as e:
            log.info("FEE_HISTORY_FAILED", network=self.network.value, error=str(e))

        log.warning("PRIORITY_FEE_FALLBACK", network=self.network.value, default=self.policy.default_priority_fee_gwei)
        return self.policy.default_priority_fee_gwei, "default"

    async def sample(self) -> Optional[GasSample]:
        """One fee-poll tick. Returns the merged sample, or None when nothing was written."""
        try:
            connection = await self.connections.ensure(self.network)
            base_fee = await self._latest_base_fee(connection)
            if base_fee is None:
                return None
            priority_fee, source = await self.priority_fee(connection)
            PRIORITY_FEE_SOURCE.labels(self.network.value, source).inc()

            merged = self.store.merge_chain_data(self.network, {"base_fee": base_fee, "priority_fee": priority_fee})
            GAS_SAMPLES_WRITTEN.labels(self.network.value).inc()
            log.info("GAS_SAMPLE_UPDATED", network=self.network.value, base_fee=round(base_fee, 4),
                     priority_fee=round(priority_fee, 4), source=source)
            return merged
        except Exception as e:
            FETCH_ERRORS.labels("gas_sampler").inc()
            log.error("GAS_SAMPLE_FAILED", network=self.network.value, error=str(e), exc_info=True)
            return None

    async def collect_history(self) -> Optional[HistoryPoint]:
        """One history tick: base fee from the latest header plus the nominal tip."""
        try:
            connection = await self.connections.ensure(self.network)
            base_fee = await self._latest_base_fee(connection)
            if base_fee is None:
                return None
            point = HistoryPoint(base_fee=base_fee, priority_fee=HISTORY_PRIORITY_FEE_GWEI)
            length = self.store.append_history(self.network, point)
            HISTORY_POINTS_APPENDED.labels(self.network.value).inc()
            log.info("HISTORY_POINT_ADDED", network=self.network.value, base_fee=round(base_fee, 4), length=length)
            return point
        except Exception as e:
            FETCH_ERRORS.labels("history").inc()
            log.error("HISTORY_COLLECTION_FAILED", network=self.network.value, error=str(e), exc_info=True)
            return None

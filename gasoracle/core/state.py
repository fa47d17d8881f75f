# /gasoracle/core/state.py - the single shared snapshot of fee and price data
import threading
from datetime import datetime, timezone
from typing import Dict, Mapping, Tuple

from pydantic import BaseModel, ConfigDict, Field

from gasoracle.core.logger import get_logger
from gasoracle.core.networks import NetworkKey

log = get_logger(__name__)

MAX_HISTORY_POINTS = 100  # ~25 hours at 15-minute intervals

class GasSample(BaseModel):
    """Most recent fee pair for a network, in Gwei. base_fee == 0 means no data yet."""
    model_config = ConfigDict(frozen=True)

    base_fee: float = Field(default=0.0, ge=0)
    priority_fee: float = Field(default=0.0, ge=0)

class HistoryPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    base_fee: float = Field(ge=0)
    priority_fee: float = Field(ge=0)

class ChainState(BaseModel):
    model_config = ConfigDict(frozen=True)

    latest: GasSample = Field(default_factory=GasSample)
    history: Tuple[HistoryPoint, ...] = ()

class StoreSnapshot(BaseModel):
    """
    Read-only view handed to consumers. Every ChainState in here is frozen,
    so holding on to a snapshot never observes later writes.
    """
    model_config = ConfigDict(frozen=True)

    per_network: Dict[NetworkKey, ChainState]
    eth_usd_price: float = Field(default=0.0, ge=0)
    taken_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def has_price(self) -> bool:
        return self.eth_usd_price > 0

    def live_networks(self) -> list[NetworkKey]:
        return [key for key, chain in self.per_network.items() if chain.latest.base_fee > 0]

class StateStore:
    """
    Concurrency-safe owner of every ChainState plus the reference price.

    Writers replace frozen models under a lock (copy-on-write), so a reader
    either sees a network before or after a merge, never half of one. Every
    mutation is synchronous; no caller can hold the lock across an await.
    """
    def __init__(self, networks=tuple(NetworkKey)):
        self._lock = threading.Lock()
        self._chains: Dict[NetworkKey, ChainState] = {NetworkKey(n): ChainState() for n in networks}
        self._eth_usd_price = 0.0

    def merge_chain_data(self, network: NetworkKey, patch: Mapping[str, float]) -> GasSample:
        """Updates only the fields present in *patch*; the rest keep their prior values."""
        unknown = set(patch) - set(GasSample.model_fields)
        if unknown:
            raise ValueError(f"Unknown GasSample fields: {sorted(unknown)}")
        with self._lock:
            chain = self._chains[network]
            merged = GasSample.model_validate({**chain.latest.model_dump(), **patch})
            self._chains[network] = chain.model_copy(update={"latest": merged})
        log.debug("CHAIN_DATA_MERGED", network=network.value, **merged.model_dump())
        return merged

    def append_history(self, network: NetworkKey, point: HistoryPoint) -> int:
        """Appends *point*, evicting the oldest entries beyond MAX_HISTORY_POINTS. Returns the new length."""
        with self._lock:
            chain = self._chains[network]
            history = (chain.history + (point,))[-MAX_HISTORY_POINTS:]
            self._chains[network] = chain.model_copy(update={"history": history})
        return len(history)

    def set_price(self, value: float) -> None:
        if value < 0:
            raise ValueError(f"Price must be non-negative, got {value}")
        with self._lock:
            self._eth_usd_price = float(value)

    def set_price_if_unknown(self, value: float) -> bool:
        """Writes *value* only while no price has been recorded. Returns True if it was written."""
        if value < 0:
            raise ValueError(f"Price must be non-negative, got {value}")
        with self._lock:
            if self._eth_usd_price > 0:
                return False
            self._eth_usd_price = float(value)
            return True

    @property
    def eth_usd_price(self) -> float:
        with self._lock:
            return self._eth_usd_price

    def chain(self, network: NetworkKey) -> ChainState:
        with self._lock:
            return self._chains[network]

    def snapshot(self) -> StoreSnapshot:
        with self._lock:
            return StoreSnapshot(per_network=dict(self._chains), eth_usd_price=self._eth_usd_price)

"""Uniswap V3 event layouts used to decode pool logs."""

from gasoracle.abis.uniswap_v3 import SWAP_DATA_TYPES, SWAP_EVENT_TOPIC

__all__ = ["SWAP_EVENT_TOPIC", "SWAP_DATA_TYPES"]

# /gasoracle/core/networks.py
# Tracked networks and the per-network fallback policy consulted by the
# priority-fee cascade. Adding a network means adding a NetworkKey member,
# a policy row below and a <NAME>_WSS_URL setting.
from enum import Enum
from typing import Dict

from pydantic import BaseModel, ConfigDict, Field

class NetworkKey(str, Enum):
    ETHEREUM = "ethereum"
    POLYGON = "polygon"
    ARBITRUM = "arbitrum"

class NetworkPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: NetworkKey
    name: str
    chain_id: int
    default_priority_fee_gwei: float = Field(ge=0)

NETWORK_POLICIES: Dict[NetworkKey, NetworkPolicy] = {
    NetworkKey.ETHEREUM: NetworkPolicy(key=NetworkKey.ETHEREUM, name="Ethereum", chain_id=1, default_priority_fee_gwei=1.5),
    # Polygon validators expect structurally higher tips
    NetworkKey.POLYGON: NetworkPolicy(key=NetworkKey.POLYGON, name="Polygon", chain_id=137, default_priority_fee_gwei=30.0),
    NetworkKey.ARBITRUM: NetworkPolicy(key=NetworkKey.ARBITRUM, name="Arbitrum", chain_id=42161, default_priority_fee_gwei=0.1),
}

# The network whose pool feeds the reference price.
PRIMARY_NETWORK = NetworkKey.ETHEREUM

# History points carry a nominal tip; they are a coarse trend signal only.
HISTORY_PRIORITY_FEE_GWEI = 2.0

WEI_PER_GWEI = 10**9

def policy_for(network: NetworkKey) -> NetworkPolicy:
    return NETWORK_POLICIES[network]

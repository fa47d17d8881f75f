# /gasoracle/core/pricing.py
# Pure price and cost math. Nothing in here touches the network or the store.

from decimal import Decimal
from typing import Dict

from pydantic import BaseModel, ConfigDict

from gasoracle.core.logger import get_logger, PRICE_ANOMALIES
from gasoracle.core.networks import NetworkKey
from gasoracle.core.state import StoreSnapshot

log = get_logger(__name__)

FALLBACK_ETH_USD_PRICE = 2000.0
PRICE_SANITY_MIN = 100.0
PRICE_SANITY_MAX = 10000.0

Q192 = 2**192
# USDC has 6 decimals, WETH 18
DECIMALS_ADJUSTMENT = 10**12

STANDARD_TRANSFER_GAS = 21000
DEFAULT_MAX_FEE_GWEI = Decimal("20")
DEFAULT_PRIORITY_FEE_GWEI = Decimal("2")
GWEI_PER_ETH = Decimal(10**9)

def derive_eth_usd_price(sqrt_price_x96: int) -> float:
    """
    Converts a pool's sqrtPriceX96 into the USD price of ETH.

    ``(sqrtPriceX96**2 * 10**12) / 2**192`` is the price of USDC in ETH,
    which is inverted to get ETH in USD. Results outside
    [PRICE_SANITY_MIN, PRICE_SANITY_MAX] are replaced by
    FALLBACK_ETH_USD_PRICE.
    """
    raw_price = (int(sqrt_price_x96) ** 2 * DECIMALS_ADJUSTMENT) / Q192
    if raw_price <= 0:
        log.warning("PRICE_NOT_DERIVABLE", sqrt_price_x96=str(sqrt_price_x96), fallback=FALLBACK_ETH_USD_PRICE)
        PRICE_ANOMALIES.inc()
        return FALLBACK_ETH_USD_PRICE

    eth_price = 1 / raw_price
    if not PRICE_SANITY_MIN <= eth_price <= PRICE_SANITY_MAX:
        log.warning("PRICE_OUT_OF_BAND", derived=eth_price, fallback=FALLBACK_ETH_USD_PRICE)
        PRICE_ANOMALIES.inc()
        return FALLBACK_ETH_USD_PRICE
    return eth_price

def estimate_cost_usd(base_fee: float, priority_fee: float, gas_units: int, eth_usd_price: float) -> float:
    """USD cost of *gas_units* at the given Gwei fees. Returns 0 if any input is non-positive."""
    if base_fee <= 0 or priority_fee <= 0 or gas_units <= 0 or eth_usd_price <= 0:
        log.debug("COST_ESTIMATE_MISSING_INPUT", base_fee=base_fee, priority_fee=priority_fee,
                  gas_units=gas_units, eth_usd_price=eth_usd_price)
        return 0.0
    gas_cost_eth = (base_fee + priority_fee) * gas_units / 1e9
    return gas_cost_eth * eth_usd_price

class TransactionEstimate(BaseModel):
    model_config = ConfigDict(frozen=True)

    amount_eth: Decimal
    gas_limit: int
    max_fee_per_gas_gwei: Decimal
    max_priority_fee_per_gas_gwei: Decimal
    gas_cost_eth: Decimal
    gas_cost_usd: float
    total_cost_eth: Decimal
    balance_eth: Decimal
    can_execute: bool

def simulate_transaction(
    amount_eth: Decimal,
    balance_eth: Decimal,
    eth_usd_price: float,
    max_fee_per_gas_gwei: Decimal | None = None,
    max_priority_fee_per_gas_gwei: Decimal | None = None,
    gas_limit: int = STANDARD_TRANSFER_GAS,
) -> TransactionEstimate:
    """
    Prices a plain value transfer the way a wallet would before signing.

    The gas budget is ``gas_limit * max_fee``; missing fee inputs fall back to
    20 Gwei max fee and 2 Gwei tip. USD cost stays 0 while the price is unknown.
    """
    if amount_eth < 0:
        raise ValueError("amount_eth must be non-negative")
    max_fee = Decimal(max_fee_per_gas_gwei) if max_fee_per_gas_gwei else DEFAULT_MAX_FEE_GWEI
    priority_fee = Decimal(max_priority_fee_per_gas_gwei) if max_priority_fee_per_gas_gwei else DEFAULT_PRIORITY_FEE_GWEI

    gas_cost_eth = Decimal(gas_limit) * max_fee / GWEI_PER_ETH
    gas_cost_usd = float(gas_cost_eth) * eth_usd_price if eth_usd_price > 0 else 0.0
    total_cost_eth = Decimal(amount_eth) + gas_cost_eth

    estimate = TransactionEstimate(
        amount_eth=Decimal(amount_eth),
        gas_limit=gas_limit,
        max_fee_per_gas_gwei=max_fee,
        max_priority_fee_per_gas_gwei=priority_fee,
        gas_cost_eth=gas_cost_eth,
        gas_cost_usd=gas_cost_usd,
        total_cost_eth=total_cost_eth,
        balance_eth=Decimal(balance_eth),
        can_execute=Decimal(balance_eth) >= total_cost_eth,
    )
    log.info("TRANSACTION_SIMULATED", gas_cost_eth=str(gas_cost_eth), gas_cost_usd=round(gas_cost_usd, 4),
             can_execute=estimate.can_execute)
    return estimate

class ChainCostComparison(BaseModel):
    model_config = ConfigDict(frozen=True)

    network: NetworkKey
    cost_usd: float
    share_of_value_pct: float

def compare_chain_costs(snapshot: StoreSnapshot, tx_value_eth: float, gas_units: int = STANDARD_TRANSFER_GAS) -> Dict[NetworkKey, ChainCostComparison]:
    """Per-network USD cost of sending *tx_value_eth*. Networks without fee data are left out."""
    if not snapshot.has_price():
        log.warning("COST_COMPARISON_PRICE_UNKNOWN")
        return {}

    tx_value_usd = tx_value_eth * snapshot.eth_usd_price
    results: Dict[NetworkKey, ChainCostComparison] = {}
    for network, chain in snapshot.per_network.items():
        if chain.latest.base_fee == 0:
            log.debug("COST_COMPARISON_NO_FEE_DATA", network=network.value)
            continue
        cost = estimate_cost_usd(chain.latest.base_fee, chain.latest.priority_fee, gas_units, snapshot.eth_usd_price)
        share = (cost / tx_value_usd) * 100 if tx_value_usd > 0 else 0.0
        results[network] = ChainCostComparison(network=network, cost_usd=cost, share_of_value_pct=share)
    return results

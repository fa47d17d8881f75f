# /test/test_gas_sampler.py
import pytest

from gasoracle.adapters.connection import ConnectionManager
from gasoracle.adapters.mock import MockChainConnection, MockConnectionFactory
from gasoracle.core.gas_sampler import GasSampler
from gasoracle.core.logger import PRIORITY_FEE_SOURCE
from gasoracle.core.networks import NetworkKey, NetworkPolicy, HISTORY_PRIORITY_FEE_GWEI
from gasoracle.core.state import StateStore, GasSample

MOCK_URLS = {n: f"wss://mock.local/{n.value}" for n in NetworkKey}

@pytest.fixture
def env():
    """A store, a mock connection factory and a manager wired together."""
    factory = MockConnectionFactory()
    manager = ConnectionManager(urls=MOCK_URLS, factory=factory, connect_attempts=1)
    return StateStore(), factory, manager

def sampler_for(env, network, connection=None, policy=None):
    store, factory, manager = env
    if connection is not None:
        factory.prepare(network, connection)
    return GasSampler(network, manager, store, policy=policy)

@pytest.mark.asyncio
async def test_sample_uses_rpc_priority_fee(env):
    store, factory, _ = env
    sampler = sampler_for(env, NetworkKey.ETHEREUM)

    result = await sampler.sample()

    assert result == GasSample(base_fee=20.0, priority_fee=2.0)
    assert store.chain(NetworkKey.ETHEREUM).latest == result
    # Tier 1 succeeded, tier 2 never queried
    assert "fee_history" not in factory.latest(NetworkKey.ETHEREUM).calls

@pytest.mark.asyncio
async def test_sample_falls_back_to_fee_history(env):
    store, _, _ = env
    connection = MockChainConnection(NetworkKey.ETHEREUM, base_fee_wei=15 * 10**9)
    connection.priority_fee_error = ValueError("method not found")
    connection.fee_history_result = {"reward": [[1_250_000_000]]}
    sampler = sampler_for(env, NetworkKey.ETHEREUM, connection)

    result = await sampler.sample()

    assert result == GasSample(base_fee=15.0, priority_fee=1.25)

@pytest.mark.asyncio
async def test_both_fee_queries_failing_uses_primary_default(env):
    """
    GIVEN the priority-fee RPC and the fee-history query both fail on ethereum
    WHEN the sampler ticks
    THEN the policy default of 1.5 Gwei is written.
    """
    store, _, _ = env
    connection = MockChainConnection(NetworkKey.ETHEREUM)
    connection.priority_fee_error = TimeoutError("rpc timeout")
    connection.fee_history_error = ValueError("unsupported")
    sampler = sampler_for(env, NetworkKey.ETHEREUM, connection)
    before = PRIORITY_FEE_SOURCE.labels("ethereum", "default")._value.get()

    await sampler.sample()

    assert store.chain(NetworkKey.ETHEREUM).latest.priority_fee == 1.5
    assert PRIORITY_FEE_SOURCE.labels("ethereum", "default")._value.get() == before + 1

@pytest.mark.asyncio
async def test_same_failures_on_high_tip_network_use_its_default(env):
    store, _, _ = env
    connection = MockChainConnection(NetworkKey.POLYGON, base_fee_wei=40 * 10**9)
    connection.priority_fee_error = TimeoutError("rpc timeout")
    connection.fee_history_error = ValueError("unsupported")
    sampler = sampler_for(env, NetworkKey.POLYGON, connection)

    await sampler.sample()

    assert store.chain(NetworkKey.POLYGON).latest == GasSample(base_fee=40.0, priority_fee=30.0)

@pytest.mark.asyncio
async def test_empty_fee_history_falls_through_to_custom_policy(env):
    store, _, _ = env
    connection = MockChainConnection(NetworkKey.ARBITRUM, base_fee_wei=10_000_000)
    connection.priority_fee_error = ValueError("method not found")
    connection.fee_history_result = {"reward": []}
    policy = NetworkPolicy(key=NetworkKey.ARBITRUM, name="Arbitrum", chain_id=42161, default_priority_fee_gwei=30.0)
    sampler = sampler_for(env, NetworkKey.ARBITRUM, connection, policy=policy)

    await sampler.sample()

    assert store.chain(NetworkKey.ARBITRUM).latest == GasSample(base_fee=0.01, priority_fee=30.0)

@pytest.mark.asyncio
async def test_missing_header_is_a_noop(env):
    store, _, _ = env
    store.merge_chain_data(NetworkKey.ETHEREUM, {"base_fee": 12, "priority_fee": 1})
    connection = MockChainConnection(NetworkKey.ETHEREUM)
    connection.set_block(None)
    sampler = sampler_for(env, NetworkKey.ETHEREUM, connection)

    assert await sampler.sample() is None
    assert store.chain(NetworkKey.ETHEREUM).latest == GasSample(base_fee=12, priority_fee=1)
    assert "max_priority_fee" not in connection.calls

@pytest.mark.asyncio
async def test_header_without_base_fee_aborts_tick(env):
    store, _, _ = env
    connection = MockChainConnection(NetworkKey.POLYGON, base_fee_wei=None)
    sampler = sampler_for(env, NetworkKey.POLYGON, connection)

    assert await sampler.sample() is None
    assert store.chain(NetworkKey.POLYGON).latest.base_fee == 0

@pytest.mark.asyncio
async def test_block_fetch_error_keeps_previous_value(env):
    store, _, _ = env
    store.merge_chain_data(NetworkKey.ETHEREUM, {"base_fee": 9, "priority_fee": 1})
    connection = MockChainConnection(NetworkKey.ETHEREUM)
    connection.block_error = ConnectionResetError("socket dropped")
    sampler = sampler_for(env, NetworkKey.ETHEREUM, connection)

    assert await sampler.sample() is None
    assert store.chain(NetworkKey.ETHEREUM).latest == GasSample(base_fee=9, priority_fee=1)

@pytest.mark.asyncio
async def test_unreachable_network_does_not_raise():
    store = StateStore()
    factory = MockConnectionFactory(failing=(NetworkKey.POLYGON,))
    manager = ConnectionManager(urls=MOCK_URLS, factory=factory, connect_attempts=1)
    sampler = GasSampler(NetworkKey.POLYGON, manager, store)

    assert await sampler.sample() is None
    assert await sampler.collect_history() is None

@pytest.mark.asyncio
async def test_collect_history_uses_nominal_tip(env):
    store, _, _ = env
    connection = MockChainConnection(NetworkKey.ETHEREUM, base_fee_wei=25 * 10**9)
    connection.priority_fee_error = AssertionError("history must not query the tip")
    sampler = sampler_for(env, NetworkKey.ETHEREUM, connection)

    point = await sampler.collect_history()

    assert point.base_fee == 25.0
    assert point.priority_fee == HISTORY_PRIORITY_FEE_GWEI
    assert store.chain(NetworkKey.ETHEREUM).history == (point,)
    # History does not touch the latest sample
    assert store.chain(NetworkKey.ETHEREUM).latest.base_fee == 0
    assert "max_priority_fee" not in connection.calls

@pytest.mark.asyncio
async def test_collect_history_skips_headers_without_base_fee(env):
    store, _, _ = env
    connection = MockChainConnection(NetworkKey.ARBITRUM, base_fee_wei=None)
    sampler = sampler_for(env, NetworkKey.ARBITRUM, connection)

    assert await sampler.collect_history() is None
    assert store.chain(NetworkKey.ARBITRUM).history == ()

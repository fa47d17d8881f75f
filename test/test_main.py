# /test/test_main.py
import json

import pytest
from aiohttp.test_utils import make_mocked_request

from gasoracle.core.networks import NetworkKey
from gasoracle.core.state import StateStore
from main import make_app, healthz, snapshot_view

@pytest.fixture
def store():
    store = StateStore()
    store.merge_chain_data(NetworkKey.ETHEREUM, {"base_fee": 20, "priority_fee": 2})
    return store

@pytest.mark.asyncio
async def test_healthz_reports_live_networks(store):
    app = make_app(store)
    response = await healthz(make_mocked_request("GET", "/healthz", app=app))
    body = json.loads(response.text)
    assert response.status == 200
    assert body == {"status": "ok", "live_networks": ["ethereum"], "price_known": False}

@pytest.mark.asyncio
async def test_snapshot_view_serializes_store(store):
    store.set_price(2100.5)
    app = make_app(store)
    response = await snapshot_view(make_mocked_request("GET", "/snapshot", app=app))
    body = json.loads(response.text)
    assert body["eth_usd_price"] == 2100.5
    assert body["per_network"]["ethereum"]["latest"] == {"base_fee": 20.0, "priority_fee": 2.0}
    assert body["per_network"]["polygon"]["latest"]["base_fee"] == 0.0

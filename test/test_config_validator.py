import pytest

from gasoracle.core.config import Settings
from gasoracle.core.config_validator import validate
from gasoracle.core.networks import NetworkKey


def test_rpc_url_lookup():
    config = Settings(ETHEREUM_WSS_URL="wss://eth.example", POLYGON_WSS_URL=None, ARBITRUM_WSS_URL=None)
    assert config.rpc_url_for(NetworkKey.ETHEREUM) == "wss://eth.example"
    assert config.rpc_url_for(NetworkKey.POLYGON) is None


def test_partial_configuration_passes():
    config = Settings(ETHEREUM_WSS_URL="wss://eth.example", ARBITRUM_WSS_URL="wss://arb.example", POLYGON_WSS_URL=None)
    assert validate(config) == ["ethereum", "arbitrum"]


def test_no_endpoints_halts():
    config = Settings(ETHEREUM_WSS_URL=None, POLYGON_WSS_URL=None, ARBITRUM_WSS_URL=None)
    with pytest.raises(ValueError):
        validate(config)


def test_non_positive_interval_halts():
    config = Settings(ETHEREUM_WSS_URL="wss://eth.example", FEE_POLL_INTERVAL_SECONDS=0)
    with pytest.raises(ValueError):
        validate(config)

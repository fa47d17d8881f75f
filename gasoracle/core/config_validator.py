# /gasoracle/core/config_validator.py
# Run at startup to make sure at least one network can be sampled.
from gasoracle.core.config import settings
from gasoracle.core.logger import log
from gasoracle.core.networks import NetworkKey

def validate(config=settings):
    log.info("--- CONFIG VALIDATION START ---")
    configured = []
    for network in NetworkKey:
        if config.rpc_url_for(network):
            configured.append(network.value)
        else:
            log.warning("MISSING_NETWORK_ENDPOINT", network=network.value, setting=f"{network.value.upper()}_WSS_URL")

    errors = []
    if not configured:
        errors.append("No websocket RPC endpoint configured for any network")
    if config.FEE_POLL_INTERVAL_SECONDS <= 0 or config.HISTORY_INTERVAL_SECONDS <= 0 or config.PRICE_POLL_INTERVAL_SECONDS <= 0 or config.STARTUP_TIMEOUT_SECONDS <= 0:
        errors.append("Polling intervals must be positive")

    if errors:
        for error in errors:
            log.critical(error)
        raise ValueError("System configuration is incomplete. Halting.")

    log.info("--- CONFIG VALIDATION PASSED ---", networks=configured)
    return configured

if __name__ == "__main__":
    validate()

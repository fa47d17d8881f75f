# /gasoracle/core/config.py
import sys
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import SecretStr

# Single settings object for the whole engine. Every tunable interval lives
# here so tests can shrink them instead of patching module constants.
class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Websocket RPC endpoints, one per tracked network
    ETHEREUM_WSS_URL: SecretStr | None = None
    POLYGON_WSS_URL: SecretStr | None = None
    ARBITRUM_WSS_URL: SecretStr | None = None

    # Sampling cadence
    FEE_POLL_INTERVAL_SECONDS: float = 6.0
    HISTORY_INTERVAL_SECONDS: float = 900.0  # 15 minutes
    PRICE_POLL_INTERVAL_SECONDS: float = 30.0
    PRICE_SCAN_BLOCKS: int = 100

    # Connection handling
    CONNECT_ATTEMPTS: int = 3
    RECONNECT_DELAY_SECONDS: float = 5.0
    RPC_TIMEOUT_SECONDS: float = 10.0
    STARTUP_TIMEOUT_SECONDS: float = 30.0

    # Uniswap V3 ETH/USDC 0.05% pool on mainnet
    UNISWAP_POOL_ADDRESS: str = "0x88e6A0c2dDD26FEEb64F039a2c41296FcB3f5640"

    # Operational Settings
    LOG_LEVEL: str = "INFO"
    SENTRY_DSN: str | None = None
    HEALTH_PORT: int = 8080

    def rpc_url_for(self, network) -> str | None:
        """Returns the plain websocket URL configured for *network*, if any.

        *network* is a ``NetworkKey``; its value picks the ``<NAME>_WSS_URL``
        field, so adding a network means adding a field here as well.
        """
        secret = getattr(self, f"{network.value.upper()}_WSS_URL", None)
        if secret is None:
            return None
        return secret.get_secret_value() if isinstance(secret, SecretStr) else str(secret)

try:
    settings = Settings()
except Exception as e:
    # Late import to avoid circular dependency only for logging the failure
    try:
        from gasoracle.core.logger import get_logger, configure_logging
        configure_logging()
        log = get_logger("GasOracle.Config")
        log.critical("FAILED_TO_LOAD_SETTINGS", error=str(e))
    except Exception:
        print("FAILED_TO_LOAD_SETTINGS", e)
    sys.exit(1)

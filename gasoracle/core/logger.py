# /gasoracle/core/logger.py
import logging
import structlog
from structlog.contextvars import bind_contextvars
import sentry_sdk
from prometheus_client import Counter
from gasoracle.core.config import settings

# --- Prometheus Metrics ---
GAS_SAMPLES_WRITTEN = Counter("gas_oracle_gas_samples_written_total", "Fee samples merged into the store", ["network"])
PRIORITY_FEE_SOURCE = Counter("gas_oracle_priority_fee_source_total", "Which cascade tier produced the priority fee", ["network", "source"])
HISTORY_POINTS_APPENDED = Counter("gas_oracle_history_points_appended_total", "History points appended", ["network"])
PRICE_UPDATES = Counter("gas_oracle_price_updates_total", "Reference price writes", ["channel"])
PRICE_ANOMALIES = Counter("gas_oracle_price_anomalies_total", "Derived prices rejected by the sanity band")
FETCH_ERRORS = Counter("gas_oracle_fetch_errors_total", "Swallowed fetch failures", ["component"])
RECONNECTS = Counter("gas_oracle_reconnects_total", "Connection re-establishments", ["network"])

def configure_logging():
    if settings.SENTRY_DSN:
        sentry_sdk.init(dsn=settings.SENTRY_DSN, traces_sample_rate=1.0)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.format_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(settings.LOG_LEVEL)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

def get_logger(name: str):
    return structlog.get_logger(name)

def bind_network(network: str):
    bind_contextvars(network=network)

configure_logging()
log = get_logger("GasOracle.System")

# /gasoracle/core/decorators.py
# Reusable decorators for operational resilience.
from tenacity import retry, stop_after_attempt, wait_exponential, before_sleep_log
from gasoracle.core.logger import get_logger
import logging

log = get_logger(__name__)

def retriable_network_call(attempts: int = 3):
    """Generic retry decorator for network calls, re-raising the last exception."""
    return retry(
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        before_sleep=before_sleep_log(log, logging.WARNING),
        reraise=True,
    )

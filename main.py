# /main.py
# Runs the sampling engine and a small status server in front of it.
import asyncio
from aiohttp import web

from gasoracle.core.config import settings
from gasoracle.core.config_validator import validate as validate_config
from gasoracle.core.logger import configure_logging, get_logger
from gasoracle.core.scheduler import Scheduler
from gasoracle.core.state import StateStore

STORE_KEY = web.AppKey("store", StateStore)

async def healthz(request):
    """Provides a JSON health status for the service."""
    snapshot = request.app[STORE_KEY].snapshot()
    return web.json_response({
        "status": "ok",
        "live_networks": [n.value for n in snapshot.live_networks()],
        "price_known": snapshot.has_price(),
    })

async def snapshot_view(request):
    """Full store snapshot; a base_fee or price of 0 means the value is still loading."""
    snapshot = request.app[STORE_KEY].snapshot()
    return web.json_response(snapshot.model_dump(mode="json"))

def make_app(store: StateStore) -> web.Application:
    app = web.Application()
    app[STORE_KEY] = store
    app.add_routes([web.get("/healthz", healthz), web.get("/snapshot", snapshot_view)])
    return app

async def main():
    configure_logging()
    log = get_logger("GasOracle.System")
    validate_config()
    log.info("GAS_ORACLE_ENGINE_STARTING")

    store = StateStore()
    scheduler = Scheduler(store=store)

    runner = web.AppRunner(make_app(store))
    await runner.setup()
    site = web.TCPSite(runner, "0.0.0.0", settings.HEALTH_PORT)
    await site.start()
    log.info(f"HEALTHCHECK_SERVER_STARTED on port {settings.HEALTH_PORT}")

    try:
        await scheduler.start()
        await asyncio.Event().wait()
    finally:
        await scheduler.stop()
        await runner.cleanup()
        log.warning("SYSTEM_SHUTDOWN_COMPLETE")

if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass

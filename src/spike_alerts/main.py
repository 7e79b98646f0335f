"""Main module for the price spike alert service (foreground context)."""
import logging
from collections.abc import Callable
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from spike_alerts import __version__
from spike_alerts.config import AppConfig, configure_logging
from spike_alerts.routers import (alerts_router, background_router,
                                  quotes_router, settings_router,
                                  status_router)
from spike_alerts.services import EngineContext, ForegroundRunner, create_context

logger = logging.getLogger(__name__)

ContextFactory = Callable[[], EngineContext]


def create_app(context_factory: ContextFactory | None = None) -> FastAPI:
    """Build the API; ``context_factory`` replaces the env-configured context (tests)."""

    @asynccontextmanager
    async def lifespan(fastapi_app: FastAPI):
        """Create the context and start the foreground loop; tear both down on shutdown."""
        if context_factory is None:
            config = AppConfig()
            configure_logging(config.log_level)
            context = create_context(config)
        else:
            context = context_factory()
        runner = ForegroundRunner(context)
        fastapi_app.state.context = context
        fastapi_app.state.runner = runner
        await runner.start()
        logger.info("Foreground loop started (%s)", runner.settings.transport_mode.value)

        yield

        try:
            await runner.stop()
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("Error stopping foreground loop: %s", exc)
        await context.aclose()

    fastapi_app = FastAPI(
        title="Price Spike Alerts",
        description="Windowed price-change detection with deduplicated alerts",
        version=__version__,
        lifespan=lifespan,
    )
    fastapi_app.include_router(quotes_router)
    fastapi_app.include_router(alerts_router)
    fastapi_app.include_router(status_router)
    fastapi_app.include_router(settings_router)
    fastapi_app.include_router(background_router)

    @fastapi_app.get("/")
    def health():
        """Return health check status."""
        return {"status": "ok"}

    return fastapi_app


app = create_app()


def run():
    """Run the server (uvicorn). Use for `spike-alerts`."""
    uvicorn.run("spike_alerts.main:app", host="127.0.0.1", port=8001)


def run_dev():
    """Run the development server with auto-reload and debug logging."""
    configure_logging("DEBUG")
    uvicorn.run("spike_alerts.main:app", host="0.0.0.0", port=8000, reload=True)

"""FastAPI application factory with lifespan hook."""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from fastapi_app.routes import router, shutdown
from helpers.constants import EXPORTER_VERSION


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log configuration on startup; close API clients on shutdown."""
    from helpers.constants import APP_CONFIG, APP_LOGGER

    APP_LOGGER.info(msg="Cloudflare exporter config", **APP_CONFIG)
    yield
    shutdown()


app = FastAPI(
    title="Cloudflare Exporter",
    description="Prometheus exporter for Cloudflare zone analytics and platform status",
    version=EXPORTER_VERSION,
    lifespan=lifespan,
)
app.include_router(router)


# Health-check that responds instantly (no API calls)
@app.get("/")
@app.get("/health")
def health():
    """Lightweight liveness check."""
    return {"status": "healthy", "service": "cloudflare-exporter"}

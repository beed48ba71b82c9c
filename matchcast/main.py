"""MatchCast FastAPI application.

Serves forecasts and calibration state; grading and recalibration run in
the Celery workers (``matchcast.tasks``).
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from matchcast import __version__
from matchcast.api.dependencies import get_registry
from matchcast.api.routes import calibration, health, predictions
from matchcast.config import get_settings
from matchcast.config.log import configure_logging

settings = get_settings()
configure_logging(settings.log_level)

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Raises on a malformed defaults.yaml
    registry = get_registry()
    logger.info("starting_matchcast", version=__version__, algorithms=registry.ids)
    yield
    logger.info("shutting_down_matchcast")


app = FastAPI(
    title="MatchCast",
    description="Multi-algorithm match forecasting and calibration",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(predictions.router)
app.include_router(calibration.router)


@app.exception_handler(500)
async def server_error_handler(request: Request, exc):
    logger.error("server_error", path=request.url.path, error=str(exc))
    return JSONResponse({"detail": "Internal server error"}, status_code=500)

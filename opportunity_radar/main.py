from contextlib import asynccontextmanager
import logging
import time

from fastapi import FastAPI
from starlette.requests import Request

from opportunity_radar.api.router import api_router
from opportunity_radar.core.config import get_settings
from opportunity_radar.core.telemetry import TelemetryRuntime, configure_logging, setup_telemetry, shutdown_telemetry
from opportunity_radar.jobs.scheduler import AggregationScheduler
from opportunity_radar.services.aggregation import get_coordinator
from opportunity_radar.services.repository import RepositoryUnavailableError, get_repository

settings = get_settings()
configure_logging(settings.log_level)
_telemetry_runtime: TelemetryRuntime | None = None
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    repository = get_repository()
    try:
        await repository.ensure_schema()
    except RepositoryUnavailableError as exc:
        logger.warning("opportunity store unavailable at startup: %s", exc)

    scheduler = AggregationScheduler(
        get_coordinator(),
        repository,
        enabled=settings.scheduler_enabled,
        startup_delay_seconds=settings.startup_delay_seconds,
        interval_seconds=settings.aggregation_interval_seconds,
    )
    app.state.scheduler = scheduler
    scheduler.start()
    try:
        yield
    finally:
        await scheduler.stop()
        if _telemetry_runtime is not None:
            shutdown_telemetry(_telemetry_runtime)
        await repository.close()
        get_repository.cache_clear()


app = FastAPI(title=settings.app_name, lifespan=lifespan)
_telemetry_runtime = setup_telemetry(settings)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    started_at = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started_at) * 1000.0
    logger.info(
        "http request method=%s path=%s status=%s duration_ms=%.2f",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
    )
    return response


app.include_router(api_router)

"""
ImpactLens API - FastAPI application and lifespan management.
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from impactlens.config import settings
from impactlens.infrastructure.observability.logging import get_logger, log_request, setup_logging
from impactlens.middleware.cors import CORSMiddleware
from impactlens.middleware.request_context import RequestContextMiddleware
from impactlens.repositories.project_store import create_project_store
from impactlens.routes import analytics, health, projects
from impactlens.routes.health import SERVICE_VERSION
from impactlens.services.project_service import ProjectService

# Setup logging before creating the app
setup_logging(log_level=settings.LOG_LEVEL)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Select the project store once, build the services, and close the store on shutdown."""

    logger.info("Application starting", environment=settings.environment, debug=settings.debug)

    store = await create_project_store(settings)
    service = ProjectService(store, settings=settings)
    app.state.project_service = service

    if settings.SEED_DEMO_PROJECTS:
        seeded = await service.seed_demo_projects()
        logger.info("Demo seeding finished", seeded=seeded)

    logger.info("All services initialized successfully", storage_mode=store.mode.value)

    yield

    logger.info("Application shutting down")
    try:
        await store.close()
    except Exception as e:
        logger.error("Error closing project store", error=str(e))
    app.state.project_service = None


app = FastAPI(
    title="ImpactLens API",
    description="Team analytics: visibility vs. impact per contributor",
    version=SERVICE_VERSION,
    lifespan=lifespan,
)

app.add_middleware(RequestContextMiddleware)
app.add_middleware(CORSMiddleware, allowed_origins=settings.CORS_ALLOWED_ORIGINS)

# Include routers
app.include_router(health.router)
app.include_router(projects.router)
app.include_router(analytics.router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log HTTP requests with timing."""
    start_time = time.time()
    response = await call_next(request)
    process_time = (time.time() - start_time) * 1000

    log_request(
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round(process_time, 2),
        request_id=getattr(request.state, "request_id", None),
    )
    return response


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)

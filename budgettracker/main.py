"""
FastAPI application entry point
"""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from budgettracker.api.v1.api import api_router
from budgettracker.core.settings import settings
from budgettracker.services.scheduler.scheduler import RecommendationScheduler
from budgettracker.utils import setup_logger

logger = setup_logger(__name__)

API_V1_STR = "/api/v1"

scheduler: Optional[RecommendationScheduler] = None


def _initialize_database():
    from budgettracker.db import get_db

    db = get_db()
    logger.info("Database initialized")
    return db


def _start_scheduler() -> Optional[RecommendationScheduler]:
    """Start the recommendation scheduler

    Returns:
        the scheduler, or None when disabled or AI is not configured
    """
    from budgettracker.services.scheduler.scheduler import create_scheduler
    from budgettracker.utils.factories import get_intelligence_services

    if not settings.SCHEDULER_ENABLED:
        logger.info("Scheduler disabled by SCHEDULER_ENABLED")
        return None

    services = get_intelligence_services()
    if services is None:
        logger.warning("Scheduler not started: AI features are not configured")
        return None

    scheduler_instance = create_scheduler(services.processor)
    for job in scheduler_instance.get_jobs():
        logger.info(f"   - {job.name} (ID: {job.id}, Next: {job.next_run_time})")
    return scheduler_instance


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: database and scheduler startup and shutdown"""
    global scheduler

    logger.info("Application starting")
    _initialize_database()

    try:
        scheduler = _start_scheduler()
    except Exception as e:
        logger.error(f"Failed to start scheduler: {e}", exc_info=True)

    yield

    logger.info("Application shutting down")
    if scheduler:
        try:
            scheduler.shutdown()
        except Exception as e:
            logger.error(f"Failed to stop scheduler: {e}", exc_info=True)


app = FastAPI(
    title="Budget Tracker Intelligence API",
    version=settings.VERSION,
    openapi_url=f"{API_V1_STR}/openapi.json",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.include_router(api_router, prefix=API_V1_STR)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Log request validation errors and return them to the client"""
    logger.error(f"Request validation failed: URL={request.url}, method={request.method}")
    logger.error(f"Validation errors: {exc.errors()}")
    return JSONResponse(status_code=422, content={"detail": exc.errors()})


@app.get("/")
async def root() -> JSONResponse:
    return JSONResponse({
        "message": "Budget Tracker Intelligence API",
        "version": settings.VERSION,
        "docs": "/docs",
    })


@app.get("/health")
async def health_check() -> JSONResponse:
    return JSONResponse({"status": "healthy"})


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "budgettracker.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
    )

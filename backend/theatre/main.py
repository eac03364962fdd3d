"""
Theatre Seat Reservation API - Main Application Entry Point

Invite-only seat booking for a single venue:
- One seat per person, decided atomically against the database
- Admin-only provisioning, booking release and reassignment
- Seat grid regeneration when the venue geometry changes
- Structured logging with request correlation and Prometheus metrics
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from theatre.core.config import get_settings
from theatre.core.logging import setup_logging, get_logger
from theatre.core.metrics import metrics_endpoint
from theatre.api.errors import register_exception_handlers
from theatre.api.router import api_router
from theatre.api.middleware import RequestLoggingMiddleware
from theatre.services.cache_service import get_redis, close_redis, get_cache_stats

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger = get_logger(__name__)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
    )

    if await get_redis():
        logger.info("seat_map_cache_ready")
    else:
        logger.warning("seat_map_cache_unavailable", message="Serving seat maps from the database")

    yield

    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Invite-only theatre seat reservation with race-free booking",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

register_exception_handlers(app)
app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check():
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "cache": await get_cache_stats(),
    }


@app.get("/metrics", include_in_schema=False)
async def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }

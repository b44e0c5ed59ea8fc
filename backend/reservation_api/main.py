"""
LINE Event Reservations API - Main Application Entry Point

An event reservation and ticket checkout service demonstrating:
- Capacity-safe reservations serialized per event with optimistic locking
- A database-enforced "one active reservation per user and event" rule
- Stripe Checkout with signed, idempotent webhook confirmation
- Refund-then-cancel with no partial state on refund failure
- Structured logging with request correlation
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from reservation_api.core.config import get_settings
from reservation_api.core.errors import ReservationAPIError, reservation_error_handler
from reservation_api.core.logging import setup_logging, get_logger
from reservation_api.core.metrics import metrics_endpoint
from reservation_api.api.deps import get_dispatcher
from reservation_api.api.router import api_router
from reservation_api.api.middleware import RequestLoggingMiddleware
from reservation_api.infrastructure.redis_client import get_redis, close_redis
from reservation_api.services.cache_service import get_cache_stats

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()
    logger = get_logger(__name__)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
    )

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without cache")

    if not settings.STRIPE_WEBHOOK_SECRET:
        logger.warning("stripe_webhook_secret_missing", message="Payment webhooks will be rejected")

    yield

    # Let in-flight notification emails finish
    await get_dispatcher().drain()
    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="LINE-authenticated event reservations with Stripe checkout",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Custom middleware
app.add_middleware(RequestLoggingMiddleware)

app.add_exception_handler(ReservationAPIError, reservation_error_handler)

# Routes
app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    cache_stats = await get_cache_stats()
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "cache": cache_stats,
    }


@app.get("/metrics", tags=["Health"], include_in_schema=False)
async def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }

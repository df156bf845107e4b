"""
Campus RSVP API.

Attendees RSVP 'going' or 'interested' to approved campus events. 'going' is
bounded by capacity + rsvp_buffer; beyond that it lands on a FIFO waitlist
(when the event has one) and cancellations promote the head of the line.
"""

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from campusrsvp.api.middleware import RequestLoggingMiddleware
from campusrsvp.api.router import api_router
from campusrsvp.core.config import get_settings
from campusrsvp.core.exceptions import RsvpError, rsvp_error_handler
from campusrsvp.core.logging import get_logger, setup_logging
from campusrsvp.core.metrics import metrics_endpoint
from campusrsvp.db.session import get_db
from campusrsvp.services.cache_service import close_redis, get_cache_stats, get_redis

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info("api_starting", version=settings.APP_VERSION)

    # Listing cache is optional; RSVPs never depend on it
    if await get_redis() is None:
        logger.warning("listing_cache_off", redis_enabled=settings.REDIS_ENABLED)

    yield

    await close_redis()
    logger.info("api_stopped")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Campus event RSVPs with capacity, overbooking buffer and waitlist promotion",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
)
app.add_middleware(RequestLoggingMiddleware)
app.add_exception_handler(RsvpError, rsvp_error_handler)
app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check(db: AsyncSession = Depends(get_db)):
    """Liveness plus a database round trip. The cache is reported, never required."""
    try:
        await db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as e:
        logger.error("health_database_unreachable", error=str(e))
        database = "unreachable"

    return {
        "status": "healthy" if database == "ok" else "degraded",
        "version": settings.APP_VERSION,
        "database": database,
        "cache": await get_cache_stats(),
    }


@app.get("/metrics", tags=["Health"], include_in_schema=False)
async def metrics():
    return metrics_endpoint()

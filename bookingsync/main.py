import logging
import time
from contextlib import asynccontextmanager

import redis
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from . import models  # noqa: F401
from .config import ALLOWED_ORIGINS, SECURITY_HEADERS_ENABLED
from .database import Base, engine
from .domain.availability import router as availability_router
from .domain.bookings import router as bookings_router
from .domain.sync import router as sync_router
from .domain.sync import webhook_router
from .errors import BookingSyncError, ValidationError
from .rate_limiter import get_redis_client
from .security_headers import SecurityHeadersMiddleware

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except SQLAlchemyError as e:
        # Ignore "already exists" errors from race conditions between workers
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")
            raise

    if get_redis_client() is None:
        logger.warning("Redis not reachable - rate limiting will count in memory only")

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="BookingSync API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(BookingSyncError)
async def booking_sync_exception_handler(request: Request, exc: BookingSyncError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} - {exc.error_type}: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} - {exc.error_type}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_response())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Request validation failures use the same 400 envelope as ValidationError"""
    errors = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "message": err.get("msg"),
        }
        for err in exc.errors()
    ]
    logger.warning(f"Validation error for {request.url.path}: {errors}")
    error = ValidationError("Validation failed", code="VALIDATION_ERROR", details=errors)
    return JSONResponse(status_code=error.status_code, content=error.to_response())


app.add_middleware(
    SecurityHeadersMiddleware,
    exclude_paths=["/health", "/docs", "/openapi.json"],
    security_headers=SECURITY_HEADERS_ENABLED,
)
if not SECURITY_HEADERS_ENABLED:
    logger.warning("Security headers DISABLED - only use in development!")

logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

# Routes
app.include_router(availability_router)
app.include_router(bookings_router)
app.include_router(webhook_router)
app.include_router(sync_router)


@app.get("/health")
def health():
    return {"status": "healthy"}


@app.get("/health/redis")
def redis_health_check():
    """Check Redis connectivity for monitoring"""
    client = get_redis_client()
    if client is None:
        return {"status": "degraded", "redis": {"connected": False}}

    start_time = time.time()
    try:
        client.ping()
    except redis.RedisError as e:
        return {"status": "unhealthy", "redis": {"connected": False, "error": str(e)}}
    response_time = (time.time() - start_time) * 1000
    return {
        "status": "healthy",
        "redis": {"connected": True, "response_time_ms": round(response_time, 2)},
    }

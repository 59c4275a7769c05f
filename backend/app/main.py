from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.core.database import get_engine, get_session_local, Base, close_db
from app.core.exceptions import SupplierError, ServiceUnavailableError, error_response
from app.core.logging_config import logger
from app.core.middleware import (
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
    RequestSizeLimitMiddleware,
)
from app.core.rate_limiter import limiter, rate_limit_exceeded_handler
from app.core.redis_client import redis_client
from app.api.v1.router import api_router
from app.modules.quotes.dependencies import get_quote_service
from slowapi.errors import RateLimitExceeded
import app.models  # Import models so metadata knows about them


NOTIFIER_SHUTDOWN_TIMEOUT_SECONDS = 15


async def validate_critical_config():
    """Validate critical configuration at startup - fail fast if missing"""
    errors = []
    warnings = []

    if not settings.DATABASE_URL:
        errors.append("DATABASE_URL is not set")

    if not settings.JWT_SECRET_KEY or settings.JWT_SECRET_KEY == "CHANGE_ME":
        errors.append("JWT_SECRET_KEY is not set or using default value")

    if not settings.REDIS_URL:
        warnings.append("REDIS_URL not set - quote rate limiting is per-process only")

    if not settings.email_configured:
        warnings.append("SMTP not configured - quote notifications will be skipped")
    elif not settings.ADMIN_EMAIL:
        warnings.append("ADMIN_EMAIL not set - staff will not be notified of new quotes")

    if errors:
        for err in errors:
            logger.critical(f"[Startup] CRITICAL: {err}")
        raise RuntimeError(f"Missing critical configuration: {', '.join(errors)}")

    for warn in warnings:
        logger.warning(f"[Startup] WARNING: {warn}")

    logger.info("[Startup] Critical configuration validated")
    return True


async def ensure_database_ready():
    """Create tables on first run (Alembic owns schema changes after that)"""
    try:
        session_factory = get_session_local()
        async with session_factory() as session:
            try:
                await session.execute(text("SELECT 1 FROM quote_requests LIMIT 1"))
                logger.info("[Startup] Database tables already exist")
                return True
            except SQLAlchemyError:
                logger.warning("[Startup] Database tables not found, creating...")

        engine = get_engine()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        logger.info("[Startup] Database tables created successfully")
        return True

    except (SQLAlchemyError, OSError) as e:
        logger.error(f"[Startup] Failed to ensure database ready: {e}")
        logger.error("[Startup] Quote submissions will be refused until the database is reachable")
        return False


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown"""
    logger.info("=" * 60)
    logger.info(f"Starting {settings.APP_NAME}...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"API Version: {settings.API_VERSION}")
    logger.info("=" * 60)

    await validate_critical_config()

    db_ready = await ensure_database_ready()
    if not db_ready:
        logger.warning("[Startup] Database not ready - some features may fail")

    if settings.REDIS_URL:
        try:
            await redis_client.connect()
        except Exception as e:
            # Quote gate fails closed until Redis comes back
            logger.error(f"[Startup] Redis unavailable at startup: {e}")

    yield

    logger.info(f"Shutting down {settings.APP_NAME}...")

    await get_quote_service().notifier.drain(timeout=NOTIFIER_SHUTDOWN_TIMEOUT_SECONDS)
    if redis_client.is_connected:
        await redis_client.disconnect()
    await close_db()


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description="Quote request intake and admin inbox for an electrical supplier",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
    redirect_slashes=False  # Prevent 307 redirects that break CORS
)

# Add rate limiter state and exception handler
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# Add middleware (order matters - last added runs first)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestSizeLimitMiddleware, max_size=64 * 1024)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-Response-Time", "Retry-After"],
)


# Exception handlers
@app.exception_handler(SupplierError)
async def supplier_error_handler(request: Request, exc: SupplierError):
    if isinstance(exc, ServiceUnavailableError):
        # Dependency detail stays in the logs
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "success": False,
                "error": {"code": "SERVICE_UNAVAILABLE", "message": exc.public_message},
            },
            headers={"Retry-After": "30"},
        )
    return JSONResponse(status_code=exc.status_code, content=error_response(exc))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Global exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "message": str(exc) if settings.DEBUG else "An error occurred"
        }
    )


# Root endpoint
@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/v1/health"
    }


# Include API router
app.include_router(api_router, prefix=f"/api/{settings.API_VERSION}")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.SERVER_HOST,
        port=settings.SERVER_PORT,
        reload=settings.DEBUG
    )

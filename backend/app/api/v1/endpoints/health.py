"""
Health Check Endpoints

- /health/live  - Basic liveness (process is running)
- /health/ready - Readiness (database reachable, Redis reachable when configured)
- /health/deep  - Detailed diagnostics including mail and captcha configuration
"""

from fastapi import APIRouter, HTTPException, status
from datetime import datetime
from typing import Dict, Any
import asyncio
import time

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.core.database import get_session_local
from app.core.logging_config import logger
from app.core.redis_client import redis_client


router = APIRouter(prefix="/health", tags=["Health Checks"])


async def check_database() -> Dict[str, Any]:
    """Check database connectivity and that the quote table exists"""
    start = time.time()
    try:
        session_factory = get_session_local()
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
            try:
                await session.execute(text("SELECT COUNT(*) FROM quote_requests"))
                tables_ok = True
            except SQLAlchemyError:
                tables_ok = False

        return {
            "status": "healthy",
            "latency_ms": round((time.time() - start) * 1000, 2),
            "connection": "ok",
            "tables_ready": tables_ok,
            "message": "Database connection successful"
        }
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"[HealthCheck] Database check failed: {e}")
        return {
            "status": "unhealthy",
            "latency_ms": round((time.time() - start) * 1000, 2),
            "connection": "failed",
            "tables_ready": False,
            "error": str(e),
            "message": "Database connection failed - quote submissions will be refused"
        }


async def check_redis() -> Dict[str, Any]:
    """Check the Redis counter store (only required when REDIS_URL is set)"""
    if not settings.REDIS_URL:
        return {
            "status": "healthy",
            "configured": False,
            "message": "Redis not configured - using in-process rate limit counters"
        }

    start = time.time()
    ok = await redis_client.ping()
    latency = round((time.time() - start) * 1000, 2)
    if ok:
        return {"status": "healthy", "configured": True, "latency_ms": latency,
                "message": "Redis connection successful"}

    logger.warning("[HealthCheck] Redis check failed")
    return {
        "status": "unhealthy",
        "configured": True,
        "latency_ms": latency,
        "message": "Redis unreachable - quote submissions will be refused"
    }


def check_email_config() -> Dict[str, Any]:
    """Check mail configuration (not actual connectivity)"""
    if settings.email_configured:
        return {
            "status": "healthy",
            "provider": "smtp",
            "configured": True,
            "host": settings.SMTP_HOST,
            "admin_email_set": bool(settings.ADMIN_EMAIL),
            "message": "SMTP credentials configured"
        }
    return {
        "status": "degraded",
        "provider": "none",
        "configured": False,
        "message": "Email not configured - quote notifications will be skipped"
    }


def check_captcha_config() -> Dict[str, Any]:
    """Captcha is optional; an unconfigured captcha is not a degradation"""
    if not settings.captcha_configured:
        return {"status": "healthy", "configured": False, "message": "Captcha disabled"}
    return {
        "status": "healthy",
        "configured": True,
        "provider": "turnstile" if settings.CAPTCHA_SITE_KEY.startswith("0x") else "hcaptcha",
    }


@router.get("/live")
async def liveness_check():
    """Liveness probe - 200 while the process is alive"""
    return {
        "status": "alive",
        "timestamp": datetime.utcnow().isoformat(),
        "app": settings.APP_NAME,
        "version": settings.API_VERSION
    }


@router.get("/ready")
async def readiness_check():
    """
    Readiness probe - 200 only if quote submissions can be evaluated and stored.

    Load balancers should use this endpoint rather than /health.
    """
    db_check, redis_check = await asyncio.gather(check_database(), check_redis())

    is_ready = (
        db_check.get("status") == "healthy"
        and db_check.get("tables_ready", False)
        and redis_check.get("status") == "healthy"
    )

    response = {
        "status": "ready" if is_ready else "not_ready",
        "timestamp": datetime.utcnow().isoformat(),
        "checks": {
            "database": db_check,
            "redis": redis_check,
        }
    }

    if not is_ready:
        logger.warning(f"[HealthCheck] Readiness check failed: {response}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=response
        )

    return response


@router.get("/deep")
async def deep_health_check():
    """Full diagnostics for debugging and monitoring dashboards"""
    start_time = time.time()

    db_check, redis_check = await asyncio.gather(check_database(), check_redis())
    checks = {
        "database": db_check,
        "redis": redis_check,
        "email": check_email_config(),
        "captcha": check_captcha_config(),
    }

    statuses = [c.get("status", "unknown") for c in checks.values()]
    if "unhealthy" in statuses:
        overall = "unhealthy"
    elif "degraded" in statuses:
        overall = "degraded"
    else:
        overall = "healthy"

    return {
        "status": overall,
        "timestamp": datetime.utcnow().isoformat(),
        "environment": settings.ENVIRONMENT,
        "version": settings.API_VERSION,
        "total_check_time_ms": round((time.time() - start_time) * 1000, 2),
        "checks": checks
    }

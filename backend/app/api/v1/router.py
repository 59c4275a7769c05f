from fastapi import APIRouter
from app.api.v1.endpoints import auth, quotes, health

api_router = APIRouter()

# Liveness / readiness probes (use /health/ready for the load balancer)
api_router.include_router(health.router)


@api_router.get("/health", tags=["Health"])
async def health_check():
    """Simple health check endpoint"""
    return {"status": "healthy", "service": "electrical-supplier-backend"}


api_router.include_router(auth.router)
api_router.include_router(quotes.router)

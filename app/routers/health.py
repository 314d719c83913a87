# =============================================================================
# app/routers/health.py - Health Check Endpoints
# =============================================================================
# Provides health check endpoints for monitoring and load balancers.
# =============================================================================

from fastapi import APIRouter
from pydantic import BaseModel
from redis.exceptions import RedisError

from app.config import settings
from app.dependencies import get_limiter
from app.exceptions import LogbookException
from lib.supabase_client import SupabaseClient
from lib.utils import utc_now

router = APIRouter()


# =============================================================================
# Response Models
# =============================================================================

class HealthResponse(BaseModel):
    """Basic health check response."""
    status: str
    timestamp: str
    environment: str
    version: str


class ChecksResponse(BaseModel):
    """Individual service checks."""
    database: str
    auth: str
    redis: str


class ReadinessResponse(BaseModel):
    """Readiness check response."""
    status: str
    checks: ChecksResponse
    timestamp: str


class LivenessResponse(BaseModel):
    """Liveness check response."""
    status: str
    timestamp: str


# =============================================================================
# Endpoints
# =============================================================================

@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Health check endpoint.

    Returns basic health status for load balancers and monitoring.
    """
    return HealthResponse(
        status="healthy",
        timestamp=utc_now().isoformat(),
        environment=settings.ENVIRONMENT,
        version="1.0.0",
    )


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness_check():
    """
    Readiness check endpoint.

    Returns whether the service is ready to accept requests.
    Checks the profiles table, the Auth admin API and Redis.
    """
    checks = ChecksResponse(database="unknown", auth="unknown", redis="unknown")

    # Check database
    try:
        client = await SupabaseClient.get_client()
        await SupabaseClient.execute(
            client.table("profiles").select("id").limit(1),
            action="check database",
        )
        checks.database = "healthy"
    except LogbookException as e:
        checks.database = f"unhealthy: {e.message[:50]}"

    # Check auth admin API
    try:
        client = await SupabaseClient.get_client()
        await SupabaseClient.run(client.auth.admin.list_users(page=1, per_page=1), action="check auth")
        checks.auth = "healthy"
    except LogbookException as e:
        checks.auth = f"unhealthy: {e.message[:50]}"

    # Check Redis (rate limiter degrades to fail-open without it)
    try:
        await get_limiter().redis.ping()
        checks.redis = "healthy"
    except RedisError as e:
        checks.redis = f"unhealthy: {str(e)[:50]}"

    all_healthy = checks.database == "healthy" and checks.auth == "healthy" and checks.redis == "healthy"

    return ReadinessResponse(
        status="ready" if all_healthy else "degraded",
        checks=checks,
        timestamp=utc_now().isoformat(),
    )


@router.get("/health/live", response_model=LivenessResponse)
async def liveness_check():
    """
    Liveness check endpoint.

    Returns whether the service process is alive.
    Used by Kubernetes/Docker for restart decisions.
    """
    return LivenessResponse(
        status="alive",
        timestamp=utc_now().isoformat(),
    )

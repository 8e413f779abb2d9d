from fastapi import APIRouter, Depends, Response, status

from src.modules.health.schemas import HealthCheckResponse, LivenessResponse, ReadinessResponse
from src.modules.health.service import HealthCheckService

router = APIRouter(prefix="/api/v1/health", tags=["Health"])


def get_health_service() -> HealthCheckService:
    return HealthCheckService()


@router.get(
    "/",
    response_model=HealthCheckResponse,
    status_code=status.HTTP_200_OK,
    summary="Complete Health Check",
    description="Check health status of the database, redis and the moderation backend configuration.",
)
async def health_check(service: HealthCheckService = Depends(get_health_service)):
    """
    Comprehensive health check endpoint.

    Returns detailed status for:
    - Database (moderation records)
    - Redis (decision cache, retry locks, quota flag)
    - Moderation API (key configured, plan quota not exhausted)

    Status values:
    - healthy: All services operational
    - degraded: Some services down
    - unhealthy: All services down
    """
    return await service.get_health_status()


@router.get(
    "/live",
    response_model=LivenessResponse,
    status_code=status.HTTP_200_OK,
    summary="Liveness Probe",
    description="Simple liveness check for Kubernetes/container orchestration.",
)
async def liveness():
    """
    Kubernetes liveness probe endpoint.

    Returns 200 if application is alive and running.
    Does not check external dependencies.
    """
    return LivenessResponse(status="ok")


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    status_code=status.HTTP_200_OK,
    summary="Readiness Probe",
    description="Check if application is ready to serve requests.",
)
async def readiness(response: Response, service: HealthCheckService = Depends(get_health_service)):
    """
    Kubernetes readiness probe endpoint.

    Checks critical dependencies (database, redis).
    Returns 200 if ready, 503 if not ready.
    """
    db_status = await service.check_database()
    redis_status = await service.check_redis()

    ready = db_status.status == "healthy" and redis_status.status == "healthy"

    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return ReadinessResponse(
            status="not_ready",
            ready=False,
        )

    return ReadinessResponse(
        status="ready",
        ready=True,
    )

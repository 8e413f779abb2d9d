import time
from datetime import UTC, datetime

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.core.config import Settings, settings
from src.core.database import AsyncSessionLocal
from src.core.logging import get_logger
from src.core.services.redis_service import RedisService, redis_service
from src.modules.health.schemas import HealthCheckResponse, ServiceStatus
from src.modules.moderation.services.quota import QuotaFlag

logger = get_logger(__name__)


class HealthCheckService:
    """Checks the gateway's backing stores and moderation backend configuration."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
        redis: RedisService = redis_service,
        config: Settings = settings,
    ):
        self.session_factory = session_factory
        self.redis = redis
        self.config = config

    async def check_database(self) -> ServiceStatus:
        """Check the moderation store connectivity."""
        start = time.time()
        try:
            async with self.session_factory() as session:
                result = await session.execute(text("SELECT 1"))
                result.scalar()
            response_time = (time.time() - start) * 1000
            return ServiceStatus(
                name="database",
                status="healthy",
                message="Database connection successful",
                response_time_ms=round(response_time, 2),
            )
        except Exception as e:
            response_time = (time.time() - start) * 1000
            logger.error(f"Database health check failed: {e}")
            return ServiceStatus(
                name="database",
                status="unhealthy",
                message=f"Database connection failed: {e!s}",
                response_time_ms=round(response_time, 2),
            )

    async def check_redis(self) -> ServiceStatus:
        """Check Redis connectivity (decision cache, locks, quota flag)."""
        start = time.time()
        try:
            await self.redis.ping()
            response_time = (time.time() - start) * 1000
            return ServiceStatus(
                name="redis",
                status="healthy",
                message="Redis connection successful",
                response_time_ms=round(response_time, 2),
            )
        except Exception as e:
            response_time = (time.time() - start) * 1000
            logger.error(f"Redis health check failed: {e}")
            return ServiceStatus(
                name="redis",
                status="unhealthy",
                message=f"Redis connection failed: {e!s}",
                response_time_ms=round(response_time, 2),
            )

    async def check_moderation_backend(self) -> ServiceStatus:
        """Report the moderation API configuration without spending quota on a request."""
        if not self.config.MODERATION_API_KEY:
            return ServiceStatus(name="moderation_api", status="unhealthy", message="API key is not configured")
        try:
            quota_exceeded = await QuotaFlag(self.redis).is_set()
        except Exception as e:
            logger.error(f"Quota flag lookup failed: {e}")
            return ServiceStatus(name="moderation_api", status="degraded", message="Quota state unknown")
        if quota_exceeded:
            return ServiceStatus(
                name="moderation_api", status="degraded", message="Plan quota exceeded; scans fail until reset"
            )
        return ServiceStatus(name="moderation_api", status="healthy", message="API key configured")

    async def get_health_status(self) -> HealthCheckResponse:
        """
        Get health status of the database, Redis and the moderation backend.

        Returns:
            HealthCheckResponse with overall status and individual service statuses.
        """
        services = {
            "database": await self.check_database(),
            "redis": await self.check_redis(),
            "moderation_api": await self.check_moderation_backend(),
        }

        unhealthy_count = sum(1 for s in services.values() if s.status == "unhealthy")
        degraded = any(s.status == "degraded" for s in services.values())
        if unhealthy_count == 0 and not degraded:
            overall_status = "healthy"
        elif unhealthy_count == len(services):
            overall_status = "unhealthy"
        else:
            overall_status = "degraded"

        return HealthCheckResponse(
            status=overall_status,
            version="1.0.0",
            environment=self.config.ENVIRONMENT,
            services=services,
            timestamp=datetime.now(tz=UTC).isoformat(),
        )

from pydantic import BaseModel, Field


class ServiceStatus(BaseModel):
    """Individual dependency health status."""

    name: str = Field(..., description="Dependency name")
    status: str = Field(..., description="Dependency status: healthy, unhealthy, degraded")
    message: str | None = Field(None, description="Additional status information")
    response_time_ms: float | None = Field(None, description="Response time in milliseconds")


class HealthCheckResponse(BaseModel):
    """Gateway health: backing stores plus the moderation backend configuration."""

    status: str = Field(..., description="Overall status: healthy, unhealthy, degraded")
    version: str = Field(..., description="Application version")
    environment: str = Field(..., description="Environment: development, staging, production")
    services: dict[str, ServiceStatus] = Field(..., description="Per-dependency statuses")
    timestamp: str = Field(..., description="ISO 8601 timestamp")


class LivenessResponse(BaseModel):
    status: str = Field(default="ok", description="Application is alive")


class ReadinessResponse(BaseModel):
    status: str = Field(..., description="Application readiness: ready, not_ready")
    ready: bool = Field(..., description="Whether the gateway can accept submissions")

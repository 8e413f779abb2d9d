from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import APIRouter, Depends, FastAPI
from fastapi.middleware import Middleware
from fastapi.openapi.docs import get_redoc_html, get_swagger_ui_html
from fastapi.openapi.utils import get_openapi

from src.core.config import settings
from src.core.database import engine, init_models
from src.core.handler import init as init_exception_handlers
from src.core.logging import configure_logging, get_logger
from src.core.middlewares.logging import LoggingMiddleware
from src.core.middlewares.security import MaxRequestSizeMiddleware
from src.core.security import basic_auth_guard
from src.core.services.redis_service import redis_service
from src.modules.health.router import router as health_router
from src.modules.moderation.dependencies import get_moderation_client
from src.modules.moderation.models import ModerationRecord  # noqa: F401  registers the table on Base.metadata
from src.modules.moderation.router import router as moderation_router

configure_logging()
logger = get_logger(__name__)

environment: str = settings.ENVIRONMENT

check_docs_auth = basic_auth_guard("Swagger UI")


middleware_list: list[Middleware] = [
    Middleware(MaxRequestSizeMiddleware, max_body_size=1024 * 1024),  # ty:ignore[invalid-argument-type]
    Middleware(LoggingMiddleware),  # ty:ignore[invalid-argument-type]
]

openapi_tags = [
    {
        "name": "Moderation",
        "description": (
            "Content moderation gateway: live scans for posts, comments, usernames and custom triggers, "
            "stored decisions and operator actions. All endpoints require HTTP Basic admin credentials."
        ),
    },
    {"name": "Health", "description": "Health Check Endpoint"},
]


SWAGGER_UI_PARAMETERS = {
    "persistAuthorization": True,
    "showExtensions": True,
    "showCommonExtensions": True,
    "filter": True,
    "displayRequestDuration": True,
    "operationsSorter": "method",
    "tagsSorter": "alpha",
}


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None]:
    """
    Application lifespan events.

    Startup:
        - Create the moderation records table if missing

    Shutdown:
        - Close the moderation API connection pool, Redis and the database engine
    """
    logger.info("Application startup: Initializing resources...")

    await init_models()
    logger.info("Moderation store initialized")

    yield

    logger.info("Application shutdown: Cleaning up resources...")
    await get_moderation_client().aclose()
    await redis_service.close()
    await engine.dispose()


def custom_openapi() -> dict[str, Any]:
    """Custom OpenAPI schema advertising HTTP Basic authentication."""
    if app.openapi_schema:
        return app.openapi_schema

    openapi_schema = get_openapi(
        title=app.title,
        version=app.version,
        openapi_version=app.openapi_version,
        description=app.description,
        routes=app.routes,
        tags=app.openapi_tags,
    )

    openapi_schema["components"]["securitySchemes"] = {
        "BasicAuth": {
            "type": "http",
            "scheme": "basic",
            "description": "ADMIN_USER / ADMIN_PASSWORD from the service configuration",
        }
    }

    app.openapi_schema = openapi_schema
    return app.openapi_schema


docs_public: bool = settings.ENABLE_DOCS and not settings.is_production

app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Content moderation gateway",
    version="1.0",
    middleware=middleware_list,
    openapi_tags=openapi_tags,
    swagger_ui_parameters=SWAGGER_UI_PARAMETERS,
    lifespan=lifespan,
    docs_url="/api/docs" if docs_public else None,
    redoc_url="/api/redoc" if docs_public else None,
    openapi_url="/api/openapi.json" if docs_public else None,
)

app.openapi = custom_openapi

init_exception_handlers(app)

if settings.ENABLE_DOCS and settings.is_production:

    @app.get(path="/api/docs", include_in_schema=False)
    async def get_swagger_documentation(
        is_authenticated: bool = Depends(dependency=check_docs_auth),  # noqa: ARG001
    ):
        """
        Only authenticated operators can access Swagger UI.
        """
        return get_swagger_ui_html(
            openapi_url="/api/openapi.json",
            title=f"{app.title} - Swagger UI",
            oauth2_redirect_url=app.swagger_ui_oauth2_redirect_url,
            swagger_ui_parameters=app.swagger_ui_parameters,
        )

    @app.get(path="/api/redoc", include_in_schema=False)
    async def get_redoc_documentation(
        is_authenticated: bool = Depends(dependency=check_docs_auth),  # noqa: ARG001
    ):
        """
        Only authenticated operators can access Redoc.
        """
        return get_redoc_html(
            openapi_url="/api/openapi.json",
            title=f"{app.title} - ReDoc",
        )

    @app.get(path="/api/openapi.json", include_in_schema=False)
    async def openapi(
        is_authenticated: bool = Depends(dependency=check_docs_auth),  # noqa: ARG001
    ):
        """
        Only authenticated operators can access the OpenAPI schema.
        """
        return custom_openapi()


# API v1 router
api_v1_router = APIRouter(prefix=settings.API_V1_STR)
api_v1_router.include_router(router=moderation_router, prefix="/moderation", tags=["Moderation"])

app.include_router(api_v1_router)
app.include_router(router=health_router)


if __name__ == "__main__":
    uvicorn.run(app, host="127.0.0.1", port=8000)

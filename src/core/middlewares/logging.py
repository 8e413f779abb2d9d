import logging
import time
import uuid

from fastapi import Request, Response
from starlette.middleware.base import (
    BaseHTTPMiddleware,
    RequestResponseEndpoint,
)

logger = logging.getLogger("api_logger")

REQUEST_ID_HEADER = "X-Request-ID"


class LoggingMiddleware(BaseHTTPMiddleware):
    """Access log line per request. Bodies are never logged since they carry user content."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start_time: int | float = time.time()
        request_id: str = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id

        try:
            response = await call_next(request)
            process_time = time.time() - start_time

            logger.info(
                f"RID={request_id} | {request.method} {request.url.path} | "
                f"Status={response.status_code} | Time={process_time:.3f}s",
                extra={"request_id": request_id, "status_code": response.status_code},
            )

            response.headers["X-Process-Time"] = f"{process_time:.3f}"
            response.headers[REQUEST_ID_HEADER] = request_id

            return response
        except Exception as e:
            process_time = time.time() - start_time
            logger.error(
                f"RID={request_id} | {request.method} {request.url.path} | "
                f"Failed | Time={process_time:.3f}s | Error={type(e).__name__}",
                extra={"request_id": request_id},
            )
            raise

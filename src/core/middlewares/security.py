from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import (
    BaseHTTPMiddleware,
    RequestResponseEndpoint,
)


class MaxRequestSizeMiddleware(BaseHTTPMiddleware):
    """Reject submissions whose declared body size exceeds the limit before they reach a scan."""

    def __init__(self, app, max_body_size: int = 1024 * 1024):
        super().__init__(app)
        self.max_body_size: int = max_body_size

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.method in ("POST", "PUT"):
            content_length: str | None = request.headers.get("content-length")
            if content_length and content_length.isdigit() and int(content_length) > self.max_body_size:
                return JSONResponse(
                    status_code=status.HTTP_413_CONTENT_TOO_LARGE,
                    content={
                        "type": "PayloadTooLarge",
                        "error": f"Request body exceeds the maximum of {self.max_body_size} bytes.",
                    },
                )

        return await call_next(request)

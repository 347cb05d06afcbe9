"""
CORS Middleware - lets the dashboard frontend call the API from a browser.

Only origins listed in CORS_ALLOWED_ORIGINS (or "*") receive CORS headers.
Preflight requests from any other origin are answered with 403.

Usage:
    from impactlens.middleware.cors import CORSMiddleware

    app.add_middleware(CORSMiddleware, allowed_origins=["http://localhost:5173"])
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from impactlens.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS")
DEFAULT_HEADERS = ("Accept", "Content-Type", "Authorization", "X-Request-ID", "X-Requested-With")


class CORSMiddleware(BaseHTTPMiddleware):
    """Answers preflight requests and tags responses for allowed origins."""

    def __init__(
        self,
        app,
        allowed_origins: list[str] | None = None,
        allow_credentials: bool = False,
        allow_methods: list[str] | None = None,
        allow_headers: list[str] | None = None,
        max_age: int = 600,
    ):
        super().__init__(app)
        self.allowed_origins = set(allowed_origins or [])
        self.allow_any = "*" in self.allowed_origins
        self.allow_credentials = allow_credentials
        self.allow_methods = ", ".join(allow_methods or DEFAULT_METHODS)
        self.allow_headers = ", ".join(allow_headers or DEFAULT_HEADERS)
        self.max_age = str(max_age)

        logger.info(
            "CORS middleware initialized",
            allowed_origins=sorted(self.allowed_origins),
            allow_credentials=allow_credentials,
        )

    def is_allowed(self, origin: str | None) -> bool:
        return bool(origin) and (self.allow_any or origin in self.allowed_origins)

    def _origin_headers(self, origin: str) -> dict[str, str]:
        headers = {"Access-Control-Allow-Origin": origin, "Vary": "Origin"}
        if self.allow_credentials:
            headers["Access-Control-Allow-Credentials"] = "true"
        return headers

    async def dispatch(self, request, call_next):
        origin = request.headers.get("origin")
        allowed = self.is_allowed(origin)
        is_preflight = request.method == "OPTIONS" and "access-control-request-method" in request.headers

        if is_preflight:
            if not allowed:
                logger.warning("CORS preflight rejected", origin=origin, path=request.url.path)
                return Response(status_code=403, content="Origin not allowed")
            return Response(
                status_code=204,
                headers={
                    **self._origin_headers(origin),
                    "Access-Control-Allow-Methods": self.allow_methods,
                    "Access-Control-Allow-Headers": self.allow_headers,
                    "Access-Control-Max-Age": self.max_age,
                },
            )

        response = await call_next(request)

        if allowed:
            response.headers.update(self._origin_headers(origin))
        elif origin:
            logger.warning("CORS request from disallowed origin", origin=origin, path=request.url.path)

        return response

"""
RequestContext Middleware - request id and client address for every request.

The request id is taken from an incoming X-Request-ID header or generated,
stored on request.state together with the client IP, bound into structlog's
context variables for the duration of the request, and echoed back in the
response headers.
"""

import uuid

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from impactlens.config import settings
from impactlens.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def client_ip(request: Request) -> str | None:
    """
    Direct peer address, or the first X-Forwarded-For entry when forwarding
    is trusted and the peer is one of TRUSTED_PROXY_IPS.
    """
    peer = request.client.host if request.client else None
    if not settings.TRUST_X_FORWARDED_FOR or peer not in settings.TRUSTED_PROXY_IPS:
        return peer

    forwarded_for = request.headers.get("x-forwarded-for", "")
    original = forwarded_for.split(",")[0].strip()
    return original or peer


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        request.state.ip_address = client_ip(request)

        with structlog.contextvars.bound_contextvars(request_id=request_id):
            logger.debug(
                "Request started",
                method=request.method,
                path=request.url.path,
                ip_address=request.state.ip_address,
            )
            response = await call_next(request)

        response.headers[REQUEST_ID_HEADER] = request_id
        return response

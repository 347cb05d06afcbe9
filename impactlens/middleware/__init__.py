"""
Middleware components for request processing.

This package contains middleware for:
- Request context (request ID, client IP, structlog context binding)
- CORS for the dashboard frontend
"""

from impactlens.middleware.cors import CORSMiddleware
from impactlens.middleware.request_context import RequestContextMiddleware

__all__ = [
    "RequestContextMiddleware",
    "CORSMiddleware",
]

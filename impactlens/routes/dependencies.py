"""
Request-scoped dependencies.

The project service is built once during application startup and stored on
app.state. Tests replace it through app.dependency_overrides.
"""

from fastapi import HTTPException, Request, status

from impactlens.services.project_service import ProjectService


def get_project_service(request: Request) -> ProjectService:
    service = getattr(request.app.state, "project_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Project storage not initialized",
        )
    return service

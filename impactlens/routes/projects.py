"""
projects.py
-----------
Purpose:
    CRUD endpoints for projects and their member lists.

Usage:
    1. GET    /api/projects                       - List projects, newest first
    2. POST   /api/projects                       - Create a project
    3. GET    /api/projects/{id}                  - Get one project
    4. PUT    /api/projects/{id}                  - Rename / relink repository
    5. DELETE /api/projects/{id}                  - Delete a project
    6. PUT    /api/projects/{id}/members          - Replace the member list
    7. PATCH  /api/projects/{id}/status           - Set active/completed
    8. POST   /api/projects/{id}/status/toggle    - Flip active <-> completed
"""

from fastapi import APIRouter, Depends, HTTPException, Response, status

from impactlens.infrastructure.observability.logging import get_logger
from impactlens.models.api.project_request import (
    MembersUpdateRequest,
    ProjectCreateRequest,
    ProjectUpdateRequest,
    StatusUpdateRequest,
)
from impactlens.models.api.project_response import ProjectResponse
from impactlens.repositories.project_store import StorageError
from impactlens.routes.dependencies import get_project_service
from impactlens.services.project_service import (
    MemberNotFoundError,
    ProjectNotFoundError,
    ProjectService,
    ProjectServiceError,
    ProjectValidationError,
)

router = APIRouter(prefix="/api/projects", tags=["projects"])
logger = get_logger(__name__)


def to_http_error(error: Exception) -> HTTPException:
    """Map service and storage errors onto HTTP errors."""
    if isinstance(error, ProjectNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
    if isinstance(error, ProjectValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))
    if isinstance(error, StorageError):
        logger.error("Project storage failure", error=str(error), operation=error.operation)
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Project storage unavailable",
        )
    if isinstance(error, MemberNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Member not found")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(error))


@router.get("", response_model=list[ProjectResponse])
async def list_projects(service: ProjectService = Depends(get_project_service)):
    try:
        projects = await service.list_projects()
    except StorageError as e:
        raise to_http_error(e) from e
    return [ProjectResponse.from_domain(project) for project in projects]


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    request: ProjectCreateRequest,
    service: ProjectService = Depends(get_project_service),
):
    """
    Create a project.

    Raises:
        422: Missing name or invalid member entries
        400: Repository could not be verified (when verification is enabled)
    """
    try:
        project = await service.create_project(request)
    except (ProjectServiceError, StorageError) as e:
        raise to_http_error(e) from e
    return ProjectResponse.from_domain(project)


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(project_id: str, service: ProjectService = Depends(get_project_service)):
    try:
        project = await service.get_project(project_id)
    except (ProjectServiceError, StorageError) as e:
        raise to_http_error(e) from e
    return ProjectResponse.from_domain(project)


@router.put("/{project_id}", response_model=ProjectResponse)
async def update_project(
    project_id: str,
    request: ProjectUpdateRequest,
    service: ProjectService = Depends(get_project_service),
):
    try:
        project = await service.update_project(project_id, request)
    except (ProjectServiceError, StorageError) as e:
        raise to_http_error(e) from e
    return ProjectResponse.from_domain(project)


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(project_id: str, service: ProjectService = Depends(get_project_service)):
    try:
        await service.delete_project(project_id)
    except (ProjectServiceError, StorageError) as e:
        raise to_http_error(e) from e
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{project_id}/members", response_model=ProjectResponse)
async def replace_members(
    project_id: str,
    request: MembersUpdateRequest,
    service: ProjectService = Depends(get_project_service),
):
    try:
        project = await service.replace_members(project_id, request.members)
    except (ProjectServiceError, StorageError) as e:
        raise to_http_error(e) from e
    return ProjectResponse.from_domain(project)


@router.patch("/{project_id}/status", response_model=ProjectResponse)
async def set_status(
    project_id: str,
    request: StatusUpdateRequest,
    service: ProjectService = Depends(get_project_service),
):
    try:
        project = await service.set_status(project_id, request.status)
    except (ProjectServiceError, StorageError) as e:
        raise to_http_error(e) from e
    return ProjectResponse.from_domain(project)


@router.post("/{project_id}/status/toggle", response_model=ProjectResponse)
async def toggle_status(project_id: str, service: ProjectService = Depends(get_project_service)):
    try:
        project = await service.toggle_status(project_id)
    except (ProjectServiceError, StorageError) as e:
        raise to_http_error(e) from e
    return ProjectResponse.from_domain(project)

"""
analytics.py
------------
Purpose:
    Visibility vs. impact analytics for a project's members.

Usage:
    1. GET  /api/analytics/{project_id}                          - Analyze (or ?cached=true)
    2. POST /api/analytics/{project_id}/members/{github}/summary - Developer summary
"""

from fastapi import APIRouter, Depends, Query

from impactlens.infrastructure.observability.logging import get_logger
from impactlens.models.api.project_response import AnalysisResponse, DeveloperSummaryResponse
from impactlens.repositories.project_store import StorageError
from impactlens.routes.dependencies import get_project_service
from impactlens.routes.projects import to_http_error
from impactlens.services.project_service import ProjectService, ProjectServiceError

router = APIRouter(prefix="/api/analytics", tags=["analytics"])
logger = get_logger(__name__)


@router.get("/{project_id}", response_model=AnalysisResponse)
async def analyze_project(
    project_id: str,
    cached: bool = Query(default=False, description="Serve the last stored analysis if present"),
    service: ProjectService = Depends(get_project_service),
):
    """
    Per-member visibility/impact classification plus repository summary.

    Provider outages never fail this endpoint; affected members fall back
    to zero stats or visibility-based impact.

    Raises:
        404: Unknown project
    """
    try:
        analysis, from_cache = await service.analyze_project(project_id, use_cache=cached)
    except (ProjectServiceError, StorageError) as e:
        raise to_http_error(e) from e

    logger.info(
        "Analytics served",
        project_id=project_id,
        members=len(analysis.members),
        cached=from_cache,
        repo_stats=analysis.repo_stats is not None,
    )

    return AnalysisResponse(
        project_id=project_id,
        cached=from_cache,
        members=analysis.members,
        repo_stats=analysis.repo_stats,
        analyzed_at=analysis.analyzed_at,
    )


@router.post("/{project_id}/members/{github}/summary", response_model=DeveloperSummaryResponse)
async def member_summary(
    project_id: str,
    github: str,
    service: ProjectService = Depends(get_project_service),
):
    """
    Natural-language summary for one member. Falls back to a template summary
    when the text-generation provider is unavailable.

    Raises:
        404: Unknown project or member
    """
    try:
        summary = await service.summarize_member(project_id, github)
    except (ProjectServiceError, StorageError) as e:
        raise to_http_error(e) from e

    return DeveloperSummaryResponse(github=summary.github, summary=summary.summary, source=summary.source)

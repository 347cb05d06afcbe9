# impactlens/models/api/project_response.py
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from impactlens.models.domain.project_domain import (
    AnalysisResult,
    Member,
    Project,
    ProjectStatus,
)


class ProjectResponse(BaseModel):
    """Project as returned by the CRUD endpoints."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    repository: str | None
    members: list[Member]
    status: ProjectStatus
    created_at: datetime = Field(alias="createdAt")
    last_sync: str = Field(alias="lastSync")
    last_analyzed_at: datetime | None = Field(default=None, alias="lastAnalyzedAt")

    @classmethod
    def from_domain(cls, project: Project) -> "ProjectResponse":
        return cls(
            id=project.id,
            name=project.name,
            repository=project.repository,
            members=project.members,
            status=project.status,
            created_at=project.created_at,
            last_sync=project.last_sync,
            last_analyzed_at=project.last_analyzed_at,
        )


class AnalysisResponse(AnalysisResult):
    """Response for GET /api/analytics/{project_id}"""

    project_id: str = Field(alias="projectId")
    cached: bool = False


class DeveloperSummaryResponse(BaseModel):
    """Response for POST /api/analytics/{project_id}/members/{github}/summary"""

    github: str
    summary: str
    source: Literal["model", "fallback"]


class ServiceBannerResponse(BaseModel):
    """Response for GET /"""

    model_config = ConfigDict(populate_by_name=True)

    status: str
    version: str
    storage_mode: str = Field(alias="storageMode")

# impactlens/models/api/project_request.py
from pydantic import BaseModel, Field, field_validator

from impactlens.models.domain.project_domain import ProjectStatus

MEMBER_NAME_PATTERN = r"^[A-Za-z\s]+$"


class MemberRequest(BaseModel):
    """One team member as submitted by the dashboard."""

    name: str = Field(..., min_length=1, max_length=100, pattern=MEMBER_NAME_PATTERN)
    github: str = Field(..., min_length=1, max_length=100, description="GitHub username")
    slack: str | None = Field(default=None, max_length=100)
    role: str | None = Field(default=None, max_length=100)

    @field_validator("name", "github")
    @classmethod
    def strip_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class ProjectCreateRequest(BaseModel):
    """Request body for POST /api/projects."""

    name: str = Field(..., min_length=1, max_length=200)
    repository: str | None = Field(
        default=None,
        max_length=300,
        description="GitHub repository as owner/repo or full URL",
    )
    members: list[MemberRequest] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class ProjectUpdateRequest(BaseModel):
    """Request body for PUT /api/projects/{id}. Omitted fields stay unchanged."""

    name: str | None = Field(default=None, min_length=1, max_length=200)
    repository: str | None = Field(default=None, max_length=300)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str | None) -> str:
        if value is None:
            raise ValueError("name cannot be removed")
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class MembersUpdateRequest(BaseModel):
    """Request body for PUT /api/projects/{id}/members."""

    members: list[MemberRequest]


class StatusUpdateRequest(BaseModel):
    """Request body for PATCH /api/projects/{id}/status."""

    status: ProjectStatus

from datetime import UTC, datetime
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

ProjectStatus = Literal["active", "completed"]
ContributorType = Literal["Silent Architect", "High Visibility", "Core Contributor", "Contributor"]


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _new_project_id() -> str:
    return uuid4().hex


class Member(BaseModel):
    """Project member. Has no identity outside its project."""

    name: str
    github: str
    slack: str | None = None
    role: str | None = None

    @property
    def handle(self) -> str:
        """Normalized code-host handle used for matching."""
        return self.github.strip().lower()


class RawContributionStats(BaseModel):
    """Per-member signals pulled from the code-hosting provider."""

    model_config = ConfigDict(populate_by_name=True)

    username: str = ""
    commits: int = 0
    prs: int = 0
    merged_prs: int = Field(default=0, alias="merged")
    additions: int = 0
    deletions: int = 0

    @classmethod
    def zero(cls, username: str = "") -> "RawContributionStats":
        return cls(username=username)


class MlFeatures(BaseModel):
    """Feature vector submitted to the prediction provider."""

    daily_coding_hours: float = 0.0
    commits_per_day: float = 0.0
    pull_requests_per_week: float = 0.0
    issues_closed_per_week: float = 0.0
    active_repos: int = 0
    code_reviews_per_week: float = 0.0


class ImpactResult(BaseModel):
    """Visibility/impact classification for one member."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    github: str
    role: str
    visibility: int = Field(ge=0, le=100)
    impact: int = Field(ge=0, le=100)
    type: ContributorType
    raw: RawContributionStats
    ml_features: MlFeatures = Field(default_factory=MlFeatures, alias="mlFeatures")
    indicators: dict[str, Any] | None = None
    impact_source: Literal["model", "fallback"] = Field(default="fallback", alias="impactSource")


class AnalysisResult(BaseModel):
    """Combined member results plus the optional repository summary."""

    model_config = ConfigDict(populate_by_name=True)

    members: list[ImpactResult] = Field(default_factory=list)
    repo_stats: dict[str, Any] | None = Field(default=None, alias="repoStats")
    analyzed_at: datetime = Field(default_factory=_utcnow, alias="analyzedAt")


class Project(BaseModel):
    """Project document as held by the project store."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(default_factory=_new_project_id)
    name: str
    repository: str | None = None
    members: list[Member] = Field(default_factory=list)
    status: ProjectStatus = "active"
    created_at: datetime = Field(default_factory=_utcnow)
    last_sync: str = "Recently"

    # Opportunistic cache of the last successful analysis
    last_analysis: AnalysisResult | None = None
    last_analyzed_at: datetime | None = None

    def find_member(self, github: str) -> Member | None:
        handle = github.strip().lower()
        for member in self.members:
            if member.handle == handle:
                return member
        return None

"""
project_service.py
------------------
Purpose:
    Business logic for projects: CRUD, member-list edits, status changes,
    and running analytics with a cached snapshot on the project.

Architecture:
    - Routes validate HTTP input and translate ProjectServiceError subclasses
    - This layer works with domain models (Project, Member, AnalysisResult)
    - Storage goes through the ProjectStore interface only
"""

from impactlens.config import Settings, settings as default_settings
from impactlens.infrastructure.observability.logging import get_logger
from impactlens.models.api.project_request import (
    MemberRequest,
    ProjectCreateRequest,
    ProjectUpdateRequest,
)
from impactlens.models.domain.project_domain import (
    AnalysisResult,
    ImpactResult,
    Member,
    Project,
    ProjectStatus,
)
from impactlens.repositories.project_store import ProjectStore, StorageError
from impactlens.services.github_stats_service import (
    GitHubStatsService,
    RepositoryFormatError,
    normalize_repository,
)
from impactlens.services.impact_service import ImpactService
from impactlens.services.summary_service import DeveloperSummary, SummaryService

logger = get_logger(__name__)

DEMO_PROJECTS = [
    {
        "name": "FinTech Dashboard",
        "repository": "facebook/react",
        "members": [
            {"name": "Alice Chen", "github": "acdlite", "slack": "U12345"},
            {"name": "Bob Smith", "github": "gaearon", "slack": "U67890"},
            {"name": "Charlie Kim", "github": "sophiebits", "slack": "U54321"},
            {"name": "David Lee", "github": "bvaughn", "slack": "U98765"},
        ],
    },
    {
        "name": "HealthCare AI",
        "repository": "tensorflow/tensorflow",
        "members": [
            {"name": "Eve Polastri", "github": "fchollet", "slack": "U11223"},
            {"name": "Villanelle Astankova", "github": "martinwicke", "slack": "U33445"},
            {"name": "Carolyn Martens", "github": "yifeif", "slack": "U55667"},
        ],
    },
]


class ProjectServiceError(Exception):
    """Base exception for project service errors."""


class ProjectNotFoundError(ProjectServiceError):
    def __init__(self, project_id: str):
        super().__init__(f"Project not found: {project_id}")
        self.project_id = project_id


class MemberNotFoundError(ProjectServiceError):
    def __init__(self, project_id: str, github: str):
        super().__init__(f"Member {github} not found in project {project_id}")
        self.project_id = project_id
        self.github = github


class ProjectValidationError(ProjectServiceError):
    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


def clean_repository(value: str | None) -> str | None:
    """
    Store repositories as owner/repo when they parse.

    Unparseable values are kept as typed; analytics treats them as having
    no stats rather than rejecting the project.
    """
    if value is None or not value.strip():
        return None
    try:
        owner, name = normalize_repository(value)
    except RepositoryFormatError:
        logger.warning("Storing repository that does not parse as owner/repo", repository=value)
        return value.strip()
    return f"{owner}/{name}"


def _to_members(requests: list[MemberRequest]) -> list[Member]:
    return [Member(**request.model_dump()) for request in requests]


class ProjectService:
    def __init__(
        self,
        store: ProjectStore,
        impact: ImpactService | None = None,
        summaries: SummaryService | None = None,
        github: GitHubStatsService | None = None,
        settings: Settings | None = None,
    ):
        self.store = store
        self.settings = settings or default_settings
        self.github = github or GitHubStatsService(self.settings)
        self.impact = impact or ImpactService(github=self.github, settings=self.settings)
        self.summaries = summaries or SummaryService(self.settings)

    async def list_projects(self) -> list[Project]:
        return await self.store.find()

    async def get_project(self, project_id: str) -> Project:
        """
        Raises:
            ProjectNotFoundError: Unknown project id
        """
        project = await self.store.find_by_id(project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)
        return project

    async def create_project(self, request: ProjectCreateRequest) -> Project:
        repository = clean_repository(request.repository)

        if repository and self.settings.GITHUB_VERIFY_ON_CREATE:
            if not await self.github.verify_repository(repository):
                raise ProjectValidationError(
                    f"Repository {repository} was not found or is not accessible",
                    field="repository",
                )

        project = Project(
            name=request.name,
            repository=repository,
            members=_to_members(request.members),
        )
        await self.store.insert(project)

        logger.info(
            "Project created",
            project_id=project.id,
            repository=project.repository,
            members=len(project.members),
        )
        return project

    async def update_project(self, project_id: str, request: ProjectUpdateRequest) -> Project:
        project = await self.get_project(project_id)
        changes = request.model_fields_set

        if "name" in changes:
            project.name = request.name
        if "repository" in changes:
            repository = clean_repository(request.repository)
            if repository != project.repository:
                project.repository = repository
                # Cached analysis belongs to the old repository
                project.last_analysis = None
                project.last_analyzed_at = None

        return await self._save(project, changed=sorted(changes))

    async def replace_members(self, project_id: str, members: list[MemberRequest]) -> Project:
        project = await self.get_project(project_id)
        project.members = _to_members(members)
        # Cached results describe the previous member list
        project.last_analysis = None
        project.last_analyzed_at = None
        return await self._save(project, changed=["members"])

    async def set_status(self, project_id: str, status: ProjectStatus) -> Project:
        project = await self.get_project(project_id)
        project.status = status
        return await self._save(project, changed=["status"])

    async def toggle_status(self, project_id: str) -> Project:
        project = await self.get_project(project_id)
        project.status = "active" if project.status == "completed" else "completed"
        return await self._save(project, changed=["status"])

    async def delete_project(self, project_id: str) -> None:
        if not await self.store.delete(project_id):
            raise ProjectNotFoundError(project_id)
        logger.info("Project deleted", project_id=project_id)

    async def _save(self, project: Project, changed: list[str]) -> Project:
        saved = await self.store.update(project)
        if saved is None:
            # Deleted between read and write
            raise ProjectNotFoundError(project.id)
        logger.info("Project updated", project_id=project.id, changed=changed)
        return saved

    async def analyze_project(self, project_id: str, use_cache: bool = False) -> tuple[AnalysisResult, bool]:
        """
        Run analytics for a project.

        Args:
            project_id: Project to analyze
            use_cache: Return the stored snapshot instead of recomputing when one exists

        Returns:
            (analysis, cached) where cached tells whether the snapshot was reused
        """
        project = await self.get_project(project_id)

        if use_cache and project.last_analysis is not None:
            logger.info("Serving cached analysis", project_id=project_id)
            return project.last_analysis, True

        analysis = await self.impact.analyze(project)
        await self._cache_analysis(project, analysis)
        return analysis, False

    async def _cache_analysis(self, analyzed: Project, analysis: AnalysisResult) -> None:
        """
        Store the snapshot on a fresh copy of the project so edits made while
        the analysis ran are kept. Skipped when the members or repository
        changed in the meantime.
        """
        try:
            current = await self.store.find_by_id(analyzed.id)
            if current is None:
                logger.info("Project deleted during analysis, not caching", project_id=analyzed.id)
                return
            if current.members != analyzed.members or current.repository != analyzed.repository:
                logger.info("Project changed during analysis, not caching", project_id=analyzed.id)
                return

            current.last_analysis = analysis
            current.last_analyzed_at = analysis.analyzed_at
            current.last_sync = analysis.analyzed_at.strftime("%Y-%m-%d %H:%M UTC")
            await self.store.update(current)
        except StorageError as e:
            logger.warning("Failed to cache analysis", project_id=analyzed.id, error=str(e))

    async def summarize_member(self, project_id: str, github: str) -> DeveloperSummary:
        """
        Raises:
            ProjectNotFoundError: Unknown project id
            MemberNotFoundError: No member with that handle in the project
        """
        project = await self.get_project(project_id)
        if project.find_member(github) is None:
            raise MemberNotFoundError(project_id, github)

        result = self._find_result(project.last_analysis, github)
        if result is None:
            analysis, _ = await self.analyze_project(project_id)
            result = self._find_result(analysis, github)
        if result is None:
            raise MemberNotFoundError(project_id, github)

        return await self.summaries.generate_developer_summary(result)

    @staticmethod
    def _find_result(analysis: AnalysisResult | None, github: str) -> ImpactResult | None:
        if analysis is None:
            return None
        handle = github.strip().lower()
        for result in analysis.members:
            if result.github.lower() == handle:
                return result
        return None

    async def seed_demo_projects(self) -> int:
        """Insert the demo projects into an empty store. Returns how many were added."""
        if await self.store.find():
            return 0

        for data in DEMO_PROJECTS:
            project = Project(
                name=data["name"],
                repository=data["repository"],
                members=[Member(**member) for member in data["members"]],
            )
            await self.store.insert(project)
            logger.info("Seeded demo project", project_id=project.id, name=project.name)

        return len(DEMO_PROJECTS)

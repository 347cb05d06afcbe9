"""
Impact scoring - turns raw contribution stats into visibility/impact scores.

Scoring policy:
    visibility = min(100, commits * 3 + prs * 5)
    impact     = model score for the member's feature vector,
                 or visibility when the model is unavailable

Both scores are clamped to 0..100 and floored before classification.
"""

from __future__ import annotations

import asyncio
import math

import httpx

from impactlens.config import Settings, settings as default_settings
from impactlens.infrastructure.observability.logging import get_logger
from impactlens.models.domain.project_domain import (
    AnalysisResult,
    ContributorType,
    ImpactResult,
    Member,
    MlFeatures,
    Project,
    RawContributionStats,
)
from impactlens.services.github_stats_service import GitHubStatsService, repository_url
from impactlens.services.prediction_service import PredictionService

logger = get_logger(__name__)

COMMIT_WEIGHT = 3
PR_WEIGHT = 5
MAX_SCORE = 100
MAX_DAILY_CODING_HOURS = 12.0
LINES_PER_CODING_HOUR = 100

LEAD_ROLE = "Lead Engineer"
DEFAULT_ROLE = "Developer"


def clamp_score(value: float) -> int:
    """Floor a score and clamp it to 0..100."""
    if value is None or math.isnan(value):
        return 0
    return int(min(MAX_SCORE, max(0, math.floor(value))))


def compute_visibility(stats: RawContributionStats) -> int:
    return clamp_score(min(MAX_SCORE, stats.commits * COMMIT_WEIGHT + stats.prs * PR_WEIGHT))


def classify(visibility: int, impact: int) -> ContributorType:
    """First matching rule wins."""
    if impact > 60 and visibility < 40:
        return "Silent Architect"
    if visibility > 70 and impact < 50:
        return "High Visibility"
    if impact > 60 and visibility > 60:
        return "Core Contributor"
    return "Contributor"


def derive_features(stats: RawContributionStats, settings: Settings = default_settings) -> MlFeatures:
    """Feature vector for the prediction model, linear in the raw stats."""
    window_days = max(1, settings.ANALYSIS_WINDOW_DAYS)
    weeks = window_days / 7

    commits_per_day = stats.commits / window_days
    prs_per_week = stats.prs / weeks
    churn_per_day = (stats.additions + stats.deletions) / window_days
    coding_hours = min(MAX_DAILY_CODING_HOURS, 1.5 * commits_per_day + churn_per_day / LINES_PER_CODING_HOUR)

    return MlFeatures(
        daily_coding_hours=round(coding_hours, 2),
        commits_per_day=round(commits_per_day, 2),
        pull_requests_per_week=round(prs_per_week, 2),
        issues_closed_per_week=round(stats.merged_prs / weeks, 2),
        active_repos=settings.FEATURE_ACTIVE_REPOS,
        code_reviews_per_week=round(settings.FEATURE_REVIEW_RATIO * prs_per_week, 2),
    )


def default_role(member: Member, position: int) -> str:
    if member.role:
        return member.role
    return LEAD_ROLE if position == 0 else DEFAULT_ROLE


class ImpactService:
    """Computes per-member impact results and the combined project analysis."""

    def __init__(
        self,
        github: GitHubStatsService | None = None,
        predictions: PredictionService | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or default_settings
        self.github = github or GitHubStatsService(self.settings)
        self.predictions = predictions or PredictionService(self.settings)

    async def compute_impact(self, project: Project) -> list[ImpactResult]:
        """
        Score every member of a project.

        Members are scored concurrently; a failing model call only affects
        the member it was made for.
        """
        members = project.members
        if not members:
            return []

        if project.repository:
            raw_stats = await self.github.fetch_stats(project.repository, members)
        else:
            logger.info("Project has no repository, using zero stats", project_id=project.id)
            raw_stats = [RawContributionStats.zero(member.handle) for member in members]

        async with self.predictions.open_client() as client:
            results = await asyncio.gather(
                *(
                    self._score_member(client, member, position, raw)
                    for position, (member, raw) in enumerate(zip(members, raw_stats))
                )
            )

        logger.info(
            "Computed member impact",
            project_id=project.id,
            members=len(results),
            model_scored=sum(1 for r in results if r.impact_source == "model"),
        )
        return list(results)

    async def _score_member(
        self,
        client: httpx.AsyncClient,
        member: Member,
        position: int,
        raw: RawContributionStats,
    ) -> ImpactResult:
        visibility = compute_visibility(raw)
        features = derive_features(raw, self.settings)

        prediction = None
        if member.handle:
            try:
                prediction = await self.predictions.predict_member(client, features, member.handle)
            except Exception as e:
                logger.warning(
                    "Unexpected model error, using fallback impact",
                    github=member.handle,
                    error=str(e),
                    error_type=type(e).__name__,
                )

        if prediction is not None:
            impact = clamp_score(prediction.score)
            source = "model"
        else:
            impact = visibility
            source = "fallback"

        return ImpactResult(
            name=member.name,
            github=member.github.strip(),
            role=default_role(member, position),
            visibility=visibility,
            impact=impact,
            type=classify(visibility, impact),
            raw=raw,
            ml_features=features,
            indicators=prediction.indicators if prediction else None,
            impact_source=source,
        )

    async def _repo_stats(self, project: Project) -> dict | None:
        url = repository_url(project.repository)
        if url is None:
            return None
        try:
            return await self.predictions.analyze_repository(url)
        except Exception as e:
            logger.warning(
                "Repository analytics unavailable",
                project_id=project.id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

    async def analyze(self, project: Project) -> AnalysisResult:
        """Member results plus the optional repository summary."""
        members, repo_stats = await asyncio.gather(
            self.compute_impact(project),
            self._repo_stats(project),
        )
        return AnalysisResult(members=members, repo_stats=repo_stats)

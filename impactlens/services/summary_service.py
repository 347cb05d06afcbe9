# impactlens/services/summary_service.py
"""
Developer summary generation.

Asks an OpenAI-compatible chat model for a short manager-facing summary of
one member's metrics. When no API key is configured, or the call fails or
returns nothing, a deterministic template summary is produced instead so
the feature never hard-fails.
"""

from dataclasses import dataclass
from typing import Literal

from openai import AsyncOpenAI

from impactlens.config import Settings, settings as default_settings
from impactlens.infrastructure.observability.logging import get_logger
from impactlens.models.domain.project_domain import ImpactResult

logger = get_logger(__name__)


@dataclass(slots=True)
class DeveloperSummary:
    github: str
    summary: str
    source: Literal["model", "fallback"]


def _indicator(result: ImpactResult, key: str) -> bool:
    return bool((result.indicators or {}).get(key))


def build_fallback_summary(result: ImpactResult) -> str:
    """Template summary built only from local metrics."""
    impact = result.impact
    raw = result.raw

    if impact > 70:
        text = (
            f"{result.name} demonstrates exceptional productivity with a {impact}% AI score. "
            f"Strong performance across {raw.commits} commits and {raw.prs} PRs. "
        )
    elif impact > 50:
        text = (
            f"{result.name} demonstrates solid productivity with a {impact}% AI score. "
            f"Consistent contributions with {raw.commits} commits. "
        )
    else:
        text = (
            f"{result.name} demonstrates developing productivity patterns with a {impact}% AI score. "
            f"Building momentum with {raw.commits} commits. "
        )

    if _indicator(result, "high_commit_frequency") and _indicator(result, "active_pr_process"):
        text += "Excels in both commit frequency and PR collaboration. "
    elif not _indicator(result, "good_issue_resolution"):
        text += "Opportunity to improve issue resolution efficiency through focused sprint planning. "

    if impact > 70:
        text += "Recommended action: Mentor junior developers to scale impact."
    else:
        text += "Recommended action: Pair programming sessions to accelerate growth."

    return text


class SummaryService:
    """Text-generation client with a local fallback."""

    def __init__(self, settings: Settings | None = None, client: AsyncOpenAI | None = None):
        self.settings = settings or default_settings
        self.client = client or self._initialize_client()

    def _initialize_client(self) -> AsyncOpenAI | None:
        if not self.settings.OPENAI_API_KEY:
            logger.info("OPENAI_API_KEY not configured, summaries will use the template")
            return None

        return AsyncOpenAI(
            api_key=self.settings.OPENAI_API_KEY,
            base_url=self.settings.OPENAI_BASE_URL or None,
            timeout=self.settings.SUMMARY_TIMEOUT_SECONDS,
            max_retries=1,
        )

    def _get_system_message(self) -> str:
        return (
            "You are an expert engineering manager analyzing developer productivity "
            "using DORA metrics and the SPACE framework. Use a professional, supportive "
            "tone and focus on data-driven insights."
        )

    def _build_user_message(self, result: ImpactResult) -> str:
        raw = result.raw
        features = result.ml_features

        def flag(key: str, on: str, off: str) -> str:
            return on if _indicator(result, key) else off

        return f"""### Developer
- Name: {result.name}
- GitHub: @{result.github}
- Role: {result.role}
- Classification: {result.type}
- Productivity score: {result.impact}%
- Visibility score: {result.visibility}%

### Activity
- {raw.commits} commits, {raw.prs} PRs ({raw.merged_prs} merged)
- {raw.additions} lines added, {raw.deletions} lines removed
- {features.commits_per_day} commits/day, {features.pull_requests_per_week} PRs/week
- {features.daily_coding_hours} coding hours/day, {features.code_reviews_per_week} reviews/week
- {features.issues_closed_per_week} issues closed/week

### Indicators
- Commit frequency: {flag("high_commit_frequency", "High", "Standard")}
- PR process: {flag("active_pr_process", "Active", "Developing")}
- Issue resolution: {flag("good_issue_resolution", "Efficient", "Under review")}

Write a concise 3-paragraph summary (max 150 words) that:
1. Highlights this developer's key strengths
2. Identifies one area for growth
3. Gives one specific, actionable recommendation for the engineering manager"""

    async def generate_developer_summary(self, result: ImpactResult) -> DeveloperSummary:
        if self.client is None:
            return DeveloperSummary(result.github, build_fallback_summary(result), "fallback")

        try:
            response = await self.client.chat.completions.create(
                model=self.settings.OPENAI_MODEL,
                messages=[
                    {"role": "system", "content": self._get_system_message()},
                    {"role": "user", "content": self._build_user_message(result)},
                ],
                max_tokens=self.settings.OPENAI_MAX_TOKENS,
                temperature=self.settings.OPENAI_TEMPERATURE,
            )
            content = (response.choices[0].message.content or "").strip() if response.choices else ""
            usage_tokens = response.usage.total_tokens if response.usage else 0
        except Exception as e:
            logger.warning(
                "Summary generation failed, using template",
                github=result.github,
                error=str(e),
                error_type=type(e).__name__,
            )
            return DeveloperSummary(result.github, build_fallback_summary(result), "fallback")

        if not content:
            logger.warning("Empty summary from model, using template", github=result.github)
            return DeveloperSummary(result.github, build_fallback_summary(result), "fallback")

        logger.info(
            "Developer summary generated",
            github=result.github,
            model=self.settings.OPENAI_MODEL,
            usage_tokens=usage_tokens,
        )
        return DeveloperSummary(result.github, content, "model")

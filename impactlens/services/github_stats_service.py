"""
GitHub REST client for per-member contribution statistics.

fetch_stats() is the only entry point the analytics pipeline uses. It never
raises: bad repository identifiers, network errors and provider errors all
degrade to zero-valued stats for the affected members.
"""

import asyncio
import re
from typing import Any

import httpx

from impactlens.config import Settings, settings as default_settings
from impactlens.infrastructure.observability.logging import get_logger, log_provider_failure
from impactlens.models.domain.project_domain import Member, RawContributionStats

logger = get_logger(__name__)

GITHUB_WEB_HOST = "github.com"
STATS_COMPUTING_STATUS = 202

_SEGMENT = re.compile(r"^[A-Za-z0-9_.-]+$")
_SCHEME = re.compile(r"^https?://", re.IGNORECASE)


class RepositoryFormatError(ValueError):
    """Raised when a repository identifier cannot be reduced to owner/name."""


def normalize_repository(repo_id: str | None) -> tuple[str, str]:
    """
    Reduce a repository identifier to an (owner, name) pair.

    Accepts "owner/name", "github.com/owner/name" and full http(s) URLs,
    with or without a trailing slash or ".git" suffix.

    Raises:
        RepositoryFormatError: If the identifier is empty or malformed
    """
    if not repo_id or not repo_id.strip():
        raise RepositoryFormatError("Repository identifier is empty")

    value = repo_id.strip()
    had_host = False

    if _SCHEME.match(value):
        value = _SCHEME.sub("", value)
        had_host = True
    if value.lower().startswith("www."):
        value = value[4:]
    if value.lower().startswith(GITHUB_WEB_HOST + "/"):
        value = value[len(GITHUB_WEB_HOST) + 1 :]
        had_host = True
    elif had_host:
        raise RepositoryFormatError(f"Not a GitHub repository URL: {repo_id}")

    value = value.rstrip("/")
    if value.lower().endswith(".git"):
        value = value[:-4]

    parts = value.split("/")
    # URLs may point below the repository root (e.g. /tree/main)
    if had_host and len(parts) > 2:
        parts = parts[:2]

    if len(parts) != 2 or not all(_SEGMENT.match(part) for part in parts):
        raise RepositoryFormatError(f"Invalid repository format, use owner/repo: {repo_id}")

    return parts[0], parts[1]


def repository_url(repo_id: str | None) -> str | None:
    """Canonical https URL for a repository identifier, or None if it does not parse."""
    try:
        owner, name = normalize_repository(repo_id)
    except RepositoryFormatError:
        return None
    return f"https://{GITHUB_WEB_HOST}/{owner}/{name}"


def _login(entry: dict[str, Any] | None, field: str) -> str | None:
    if not isinstance(entry, dict):
        return None
    account = entry.get(field)
    if not isinstance(account, dict) or not account.get("login"):
        return None
    return str(account["login"]).strip().lower()


class GitHubStatsService:
    """
    Fetches contributor statistics and pull requests for a repository.

    Requests run through a short-lived httpx.AsyncClient per call; pass a
    transport to route requests somewhere other than the network.
    """

    def __init__(self, settings: Settings | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings or default_settings
        self._transport = transport

    def _client(self, timeout: float | None = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.settings.GITHUB_API_URL,
            headers=self.settings.github_headers(),
            timeout=timeout or self.settings.GITHUB_TIMEOUT_SECONDS,
            transport=self._transport,
        )

    async def fetch_stats(self, repo_id: str | None, members: list[Member]) -> list[RawContributionStats]:
        """
        Raw contribution stats for each member, in the order given.

        Args:
            repo_id: Repository as owner/repo or URL
            members: Project members to look up

        Returns:
            One RawContributionStats per member; zero-valued on any failure
        """
        if not members:
            return []

        try:
            owner, repo = normalize_repository(repo_id)
        except RepositoryFormatError as e:
            logger.warning("Repository identifier rejected, using zero stats", repository=repo_id, error=str(e))
            return [RawContributionStats.zero(member.handle) for member in members]

        repository = f"{owner}/{repo}"
        try:
            async with self._client() as client:
                contributors, pulls = await asyncio.gather(
                    self._fetch_contributor_stats(client, owner, repo),
                    self._fetch_pull_requests(client, owner, repo),
                )

            by_login: dict[str, dict[str, Any]] = {}
            for entry in contributors:
                login = _login(entry, "author")
                if login:
                    by_login[login] = entry

            logger.info(
                "Fetched repository activity",
                repository=repository,
                contributors=len(by_login),
                pull_requests=len(pulls),
            )

            return [self._member_stats(member, by_login, pulls, repository) for member in members]

        except Exception as e:
            log_provider_failure("github", "fetch_stats", e, repository=repository)
            return [RawContributionStats.zero(member.handle) for member in members]

    def _member_stats(
        self,
        member: Member,
        by_login: dict[str, dict[str, Any]],
        pulls: list[dict[str, Any]],
        repository: str,
    ) -> RawContributionStats:
        handle = member.handle
        if not handle:
            return RawContributionStats.zero()

        entry = by_login.get(handle)
        if entry is None:
            logger.warning(
                "No contributor match for member",
                github=handle,
                repository=repository,
                contributors_searched=len(by_login),
            )

        weeks = (entry.get("weeks") or []) if entry else []
        user_pulls = [pr for pr in pulls if _login(pr, "user") == handle]

        return RawContributionStats(
            username=handle,
            commits=int(entry.get("total") or 0) if entry else 0,
            prs=len(user_pulls),
            merged_prs=sum(1 for pr in user_pulls if pr.get("merged_at")),
            additions=sum(int(week.get("a") or 0) for week in weeks if isinstance(week, dict)),
            deletions=sum(int(week.get("d") or 0) for week in weeks if isinstance(week, dict)),
        )

    async def _fetch_contributor_stats(self, client: httpx.AsyncClient, owner: str, repo: str) -> list[dict]:
        """GET /stats/contributors, polling while GitHub is still computing."""
        path = f"/repos/{owner}/{repo}/stats/contributors"
        max_attempts = max(1, self.settings.GITHUB_STATS_MAX_ATTEMPTS)
        delay = self.settings.GITHUB_STATS_RETRY_DELAY_SECONDS

        for attempt in range(1, max_attempts + 1):
            try:
                response = await client.get(path)
            except httpx.HTTPError as e:
                log_provider_failure("github", "contributor_stats", e, repository=f"{owner}/{repo}")
                return []

            if response.status_code == STATS_COMPUTING_STATUS:
                if attempt < max_attempts:
                    logger.info(
                        "GitHub is computing contributor stats, waiting",
                        repository=f"{owner}/{repo}",
                        attempt=attempt,
                        max_attempts=max_attempts,
                        wait_time=delay,
                    )
                    await asyncio.sleep(delay)
                    continue
                logger.warning(
                    "GitHub contributor stats still computing, giving up",
                    repository=f"{owner}/{repo}",
                    attempts=attempt,
                )
                return []

            return self._json_list(response, "contributor_stats", f"{owner}/{repo}")

        return []

    async def _fetch_pull_requests(self, client: httpx.AsyncClient, owner: str, repo: str) -> list[dict]:
        try:
            response = await client.get(
                f"/repos/{owner}/{repo}/pulls",
                params={"state": "all", "per_page": self.settings.GITHUB_PULLS_PAGE_SIZE},
            )
        except httpx.HTTPError as e:
            log_provider_failure("github", "pull_requests", e, repository=f"{owner}/{repo}")
            return []
        return self._json_list(response, "pull_requests", f"{owner}/{repo}")

    def _json_list(self, response: httpx.Response, operation: str, repository: str) -> list[dict]:
        if response.status_code == 204:
            return []
        if not response.is_success:
            logger.warning(
                "GitHub request failed",
                operation=operation,
                repository=repository,
                status_code=response.status_code,
            )
            return []
        try:
            data = response.json()
        except ValueError as e:
            log_provider_failure("github", operation, e, repository=repository)
            return []
        return [item for item in data if isinstance(item, dict)] if isinstance(data, list) else []

    async def verify_repository(self, repo_id: str | None) -> bool:
        """True when the repository exists and is visible with the configured token."""
        try:
            owner, repo = normalize_repository(repo_id)
        except RepositoryFormatError:
            return False

        try:
            async with self._client() as client:
                response = await client.get(f"/repos/{owner}/{repo}")
        except httpx.HTTPError as e:
            log_provider_failure("github", "verify_repository", e, repository=f"{owner}/{repo}")
            return False

        if not response.is_success:
            logger.warning(
                "Repository verification failed",
                repository=f"{owner}/{repo}",
                status_code=response.status_code,
            )
        return response.is_success

    async def probe(self) -> dict:
        """Connectivity check for the readiness endpoint."""
        try:
            async with self._client(timeout=self.settings.PROBE_TIMEOUT_SECONDS) as client:
                response = await client.get("/rate_limit")
            return {"ok": response.is_success, "status_code": response.status_code}
        except httpx.HTTPError as e:
            return {"ok": False, "error": f"{type(e).__name__}: {e}"}

import re

import httpx
import pytest
from fastapi.testclient import TestClient

from impactlens.config import Settings
from impactlens.main import app
from impactlens.models.domain.project_domain import Member, Project
from impactlens.repositories.project_store import InMemoryProjectStore
from impactlens.routes.dependencies import get_project_service
from impactlens.services.github_stats_service import GitHubStatsService
from impactlens.services.impact_service import ImpactService
from impactlens.services.prediction_service import ModelPrediction, PredictionService
from impactlens.services.project_service import ProjectService
from impactlens.services.summary_service import SummaryService


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        STORAGE_BACKEND="memory",
        GITHUB_TOKEN="ghp_test",
        GITHUB_STATS_RETRY_DELAY_SECONDS=0,
        ML_SCORE_SCALE="unit",
        OPENAI_API_KEY=None,
    )


class FakeRedis:
    """Hash subset of redis.asyncio.Redis used by RedisProjectStore."""

    def __init__(self):
        self.hashes: dict[str, dict[str, str]] = {}
        self.fail = False

    def _check(self):
        if self.fail:
            raise ConnectionError("redis down")

    async def ping(self) -> bool:
        self._check()
        return True

    async def hget(self, key: str, field: str) -> str | None:
        self._check()
        return self.hashes.get(key, {}).get(field)

    async def hgetall(self, key: str) -> dict[str, str]:
        self._check()
        return dict(self.hashes.get(key, {}))

    async def hset(self, key: str, field: str, value: str) -> int:
        self._check()
        bucket = self.hashes.setdefault(key, {})
        created = field not in bucket
        bucket[field] = value
        return int(created)

    async def hsetnx(self, key: str, field: str, value: str) -> bool:
        self._check()
        bucket = self.hashes.setdefault(key, {})
        if field in bucket:
            return False
        bucket[field] = value
        return True

    async def hexists(self, key: str, field: str) -> bool:
        self._check()
        return field in self.hashes.get(key, {})

    async def hdel(self, key: str, field: str) -> int:
        self._check()
        return 1 if self.hashes.get(key, {}).pop(field, None) is not None else 0


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def memory_store():
    return InMemoryProjectStore()


class FakeGitHubAPI:
    """httpx handler standing in for the GitHub REST API."""

    def __init__(self, contributors=None, pulls=None, computing_responses: int = 0, repo_exists: bool = True):
        self.contributors = contributors or []
        self.pulls = pulls or []
        self.computing_responses = computing_responses
        self.repo_exists = repo_exists
        self.fail_contributors = False
        self.fail_pulls = False
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path.endswith("/stats/contributors"):
            if self.fail_contributors:
                raise httpx.ConnectError("connection refused", request=request)
            if self.computing_responses > 0:
                self.computing_responses -= 1
                return httpx.Response(202, json={})
            return httpx.Response(200, json=self.contributors)

        if path.endswith("/pulls"):
            if self.fail_pulls:
                return httpx.Response(500, json={"message": "boom"})
            return httpx.Response(200, json=self.pulls)

        if path == "/rate_limit":
            return httpx.Response(200, json={"resources": {}})

        if re.fullmatch(r"/repos/[^/]+/[^/]+", path):
            if self.repo_exists:
                return httpx.Response(200, json={"full_name": path[len("/repos/") :]})
            return httpx.Response(404, json={"message": "Not Found"})

        return httpx.Response(404, json={"message": "Not Found"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def paths(self) -> list[str]:
        return [request.url.path for request in self.requests]


def contributor(login: str, total: int, weeks: list[tuple[int, int]] = ()) -> dict:
    return {
        "author": {"login": login},
        "total": total,
        "weeks": [{"w": 0, "a": a, "d": d, "c": 0} for a, d in weeks],
    }


def pull_request(login: str, merged: bool = False) -> dict:
    return {
        "number": 1,
        "user": {"login": login},
        "state": "closed" if merged else "open",
        "merged_at": "2026-01-02T10:00:00Z" if merged else None,
    }


class FakePredictionService(PredictionService):
    """Returns fixed scores per GitHub handle without any network calls."""

    def __init__(self, settings: Settings, scores=None, failing=(), repo_stats=None):
        super().__init__(settings, transport=httpx.MockTransport(lambda request: httpx.Response(405)))
        self.scores = scores or {}
        self.failing = set(failing)
        self.repo_stats = repo_stats
        self.calls: list[str] = []

    async def predict_member(self, client, features, username=None):
        self.calls.append(username)
        if username in self.failing:
            return None
        if username not in self.scores:
            return None
        return ModelPrediction(score=self.scores[username], indicators={"active_pr_process": True})

    async def analyze_repository(self, repo_url):
        return self.repo_stats


def build_project(*handles: str, repository: str | None = "acme/widget", **overrides) -> Project:
    members = [Member(name=f"Member {chr(65 + i)}", github=handle) for i, handle in enumerate(handles)]
    return Project(name="Widget", repository=repository, members=members, **overrides)


def build_service(settings, store=None, github_api=None, predictions=None, ml_transport=None):
    """ProjectService wired to in-process fakes for every provider."""
    github_api = github_api or FakeGitHubAPI()
    github = GitHubStatsService(settings, transport=github_api.transport)
    if predictions is None:
        predictions = PredictionService(
            settings,
            transport=ml_transport or httpx.MockTransport(lambda request: httpx.Response(405)),
        )
    impact = ImpactService(github=github, predictions=predictions, settings=settings)
    return ProjectService(
        store or InMemoryProjectStore(),
        impact=impact,
        summaries=SummaryService(settings),
        github=github,
        settings=settings,
    )


@pytest.fixture
def github_api():
    return FakeGitHubAPI(
        contributors=[
            contributor("Alice", 30, weeks=[(400, 100), (200, 50)]),
            contributor("bob", 4, weeks=[(20, 5)]),
        ],
        pulls=[
            pull_request("alice", merged=True),
            pull_request("alice", merged=True),
            pull_request("alice"),
            pull_request("BOB", merged=True),
        ],
    )


@pytest.fixture
def project_service(test_settings, memory_store, github_api):
    predictions = FakePredictionService(
        test_settings,
        scores={"alice": 90.0},
        repo_stats={"predicted_score": 0.71, "total_commits": 34},
    )
    return build_service(test_settings, store=memory_store, github_api=github_api, predictions=predictions)


@pytest.fixture
def client(project_service):
    app.dependency_overrides[get_project_service] = lambda: project_service
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()

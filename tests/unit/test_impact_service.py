import asyncio
from unittest.mock import AsyncMock

import pytest

from conftest import FakeGitHubAPI, FakePredictionService, build_project, contributor, pull_request
from impactlens.models.domain.project_domain import Member, Project
from impactlens.services.github_stats_service import GitHubStatsService
from impactlens.services.impact_service import ImpactService


def _impact_service(settings, api=None, predictions=None):
    api = api or FakeGitHubAPI()
    return ImpactService(
        github=GitHubStatsService(settings, transport=api.transport),
        predictions=predictions or FakePredictionService(settings),
        settings=settings,
    )


@pytest.fixture
def team_api():
    return FakeGitHubAPI(
        contributors=[
            contributor("alice", 5),
            contributor("bob", 20),
            contributor("carol", 25),
        ],
        pulls=[pull_request("bob"), pull_request("bob"), pull_request("carol", merged=True)],
    )


@pytest.mark.asyncio
async def test_one_failed_prediction_only_affects_that_member(test_settings, team_api):
    predictions = FakePredictionService(test_settings, scores={"alice": 85.0, "carol": 40.0}, failing={"bob"})
    service = _impact_service(test_settings, team_api, predictions)

    alice, bob, carol = await service.compute_impact(build_project("alice", "bob", "carol"))

    assert (alice.visibility, alice.impact, alice.type) == (15, 85, "Silent Architect")
    assert alice.impact_source == "model"
    assert alice.indicators == {"active_pr_process": True}

    # visibility = 20 * 3 + 2 * 5
    assert (bob.visibility, bob.impact) == (70, 70)
    assert bob.impact_source == "fallback"
    assert bob.indicators is None
    assert bob.type == "Core Contributor"

    assert (carol.visibility, carol.impact, carol.type) == (80, 40, "High Visibility")
    assert sorted(predictions.calls) == ["alice", "bob", "carol"]


@pytest.mark.asyncio
async def test_results_keep_member_order_and_roles(test_settings, team_api):
    project = Project(
        name="Widget",
        repository="octo/widget",
        members=[
            Member(name="Carol", github="carol"),
            Member(name="Alice", github="alice", role="Staff Engineer"),
            Member(name="Bob", github="bob"),
        ],
    )
    results = await _impact_service(test_settings, team_api).compute_impact(project)

    assert [r.github for r in results] == ["carol", "alice", "bob"]
    assert [r.role for r in results] == ["Lead Engineer", "Staff Engineer", "Developer"]


@pytest.mark.asyncio
async def test_project_without_repository_uses_zero_stats(test_settings):
    api = FakeGitHubAPI()
    service = _impact_service(test_settings, api)

    results = await service.compute_impact(build_project("alice", "bob", repository=None))

    assert api.requests == []
    assert all(r.raw.commits == 0 and r.visibility == 0 and r.impact == 0 for r in results)
    assert all(r.type == "Contributor" for r in results)


@pytest.mark.asyncio
async def test_project_without_members_returns_empty(test_settings):
    api = FakeGitHubAPI()
    assert await _impact_service(test_settings, api).compute_impact(build_project()) == []
    assert api.requests == []


@pytest.mark.asyncio
async def test_blank_handle_skips_model_call(test_settings):
    predictions = FakePredictionService(test_settings, scores={"alice": 90.0})
    service = _impact_service(test_settings, predictions=predictions)

    project = Project(name="Widget", repository="octo/widget", members=[Member(name="Ghost", github="   ")])
    (result,) = await service.compute_impact(project)

    assert predictions.calls == []
    assert result.impact_source == "fallback"
    assert result.impact == result.visibility == 0


@pytest.mark.asyncio
async def test_unexpected_prediction_error_falls_back(test_settings, team_api):
    predictions = FakePredictionService(test_settings)
    predictions.predict_member = AsyncMock(side_effect=RuntimeError("boom"))
    service = _impact_service(test_settings, team_api, predictions)

    results = await service.compute_impact(build_project("alice", "bob"))

    assert [r.impact_source for r in results] == ["fallback", "fallback"]
    assert [r.impact for r in results] == [r.visibility for r in results]


@pytest.mark.asyncio
async def test_features_attached_to_results(test_settings, team_api):
    (bob,) = await _impact_service(test_settings, team_api).compute_impact(build_project("bob"))

    assert bob.ml_features.commits_per_day == round(20 / 90, 2)
    assert bob.ml_features.active_repos == 1


@pytest.mark.asyncio
async def test_analyze_combines_members_and_repo_stats(test_settings, team_api):
    predictions = FakePredictionService(test_settings, repo_stats={"predicted_score": 0.5, "merge_rate": 0.9})
    service = _impact_service(test_settings, team_api, predictions)

    analysis = await service.analyze(build_project("alice", "bob"))

    assert len(analysis.members) == 2
    assert analysis.repo_stats == {"predicted_score": 0.5, "merge_rate": 0.9}
    assert analysis.analyzed_at is not None


@pytest.mark.asyncio
async def test_analyze_survives_repo_stats_failure(test_settings, team_api):
    predictions = FakePredictionService(test_settings)
    predictions.analyze_repository = AsyncMock(side_effect=RuntimeError("provider down"))
    service = _impact_service(test_settings, team_api, predictions)

    analysis = await service.analyze(build_project("alice"))

    assert analysis.repo_stats is None
    assert len(analysis.members) == 1


@pytest.mark.asyncio
async def test_analyze_skips_repo_stats_for_unparseable_repository(test_settings):
    predictions = FakePredictionService(test_settings, repo_stats={"predicted_score": 0.5})
    predictions.analyze_repository = AsyncMock(return_value={"predicted_score": 0.5})
    service = _impact_service(test_settings, predictions=predictions)

    analysis = await service.analyze(build_project("alice", repository="not a repository"))

    predictions.analyze_repository.assert_not_awaited()
    assert analysis.repo_stats is None
    assert analysis.members[0].raw.commits == 0


class _HeldPredictions(FakePredictionService):
    """Holds the model call for one handle until released."""

    def __init__(self, settings, held, **kwargs):
        super().__init__(settings, **kwargs)
        self.held = held
        self.release = asyncio.Event()
        self.finished = asyncio.Event()

    async def predict_member(self, client, features, username=None):
        if username == self.held:
            await self.release.wait()
        prediction = await super().predict_member(client, features, username)
        if username != self.held:
            self.finished.set()
        return prediction


@pytest.mark.asyncio
async def test_slow_member_does_not_block_others(test_settings, team_api):
    predictions = _HeldPredictions(test_settings, held="bob", scores={"alice": 85.0, "bob": 60.0})
    service = _impact_service(test_settings, team_api, predictions)

    task = asyncio.create_task(service.compute_impact(build_project("bob", "alice")))
    await asyncio.wait_for(predictions.finished.wait(), timeout=1)

    assert not task.done()
    assert predictions.calls == ["alice"]

    predictions.release.set()
    bob, alice = await asyncio.wait_for(task, timeout=1)

    assert (bob.impact, bob.impact_source) == (60, "model")
    assert (alice.impact, alice.impact_source) == (85, "model")

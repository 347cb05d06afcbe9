import json

import httpx
import pytest

from impactlens.models.domain.project_domain import MlFeatures
from impactlens.services.prediction_service import PredictionError, PredictionService


def _service(settings, handler):
    return PredictionService(settings, transport=httpx.MockTransport(handler))


def _features():
    return MlFeatures(
        daily_coding_hours=2.5,
        commits_per_day=1.0,
        pull_requests_per_week=1.4,
        issues_closed_per_week=0.7,
        active_repos=1,
        code_reviews_per_week=0.7,
    )


def test_normalize_score_unit_scale(test_settings):
    service = PredictionService(test_settings)

    assert service.normalize_score(0.73) == pytest.approx(73.0)
    assert service.normalize_score(1.5) == 100.0
    assert service.normalize_score(-0.2) == 0.0


def test_normalize_score_percent_scale(test_settings):
    settings = test_settings.model_copy(update={"ML_SCORE_SCALE": "percent"})
    service = PredictionService(settings)

    assert service.normalize_score(73) == 73.0
    assert service.normalize_score(0.73) == pytest.approx(0.73)


@pytest.mark.parametrize("value", [None, "0.8", True, [0.5]])
def test_normalize_score_rejects_non_numbers(test_settings, value):
    with pytest.raises(PredictionError):
        PredictionService(test_settings).normalize_score(value)


@pytest.mark.asyncio
async def test_predict_member_posts_features(test_settings):
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "predicted_score": 0.82,
                "productivity_indicators": {"high_commit_frequency": True, "active_pr_process": False},
            },
        )

    service = _service(test_settings, handler)

    async with service.open_client() as client:
        prediction = await service.predict_member(client, _features(), "alice")

    assert prediction.score == pytest.approx(82.0)
    assert prediction.indicators == {"high_commit_frequency": True, "active_pr_process": False}

    body = json.loads(seen[0].content)
    assert str(seen[0].url) == test_settings.ML_PREDICT_URL
    assert set(body) == {
        "daily_coding_hours",
        "commits_per_day",
        "pull_requests_per_week",
        "issues_closed_per_week",
        "active_repos",
        "code_reviews_per_week",
    }
    assert body["commits_per_day"] == 1.0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, json={"detail": "model crashed"}),
        httpx.Response(200, json={"productivity_indicators": {}}),
        httpx.Response(200, json={"predicted_score": "high"}),
        httpx.Response(200, content=b"<html>not json</html>"),
        httpx.Response(200, json=[0.5]),
    ],
)
async def test_predict_member_failures_return_none(test_settings, response):
    service = _service(test_settings, lambda request: response)

    async with service.open_client() as client:
        assert await service.predict_member(client, _features(), "alice") is None


@pytest.mark.asyncio
async def test_predict_member_network_error_returns_none(test_settings):
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    service = _service(test_settings, handler)

    async with service.open_client() as client:
        assert await service.predict_member(client, _features(), "alice") is None


@pytest.mark.asyncio
async def test_genuine_zero_score_is_kept(test_settings):
    service = _service(test_settings, lambda request: httpx.Response(200, json={"predicted_score": 0}))

    async with service.open_client() as client:
        prediction = await service.predict_member(client, _features(), "alice")

    assert prediction is not None
    assert prediction.score == 0.0
    assert prediction.indicators is None


@pytest.mark.asyncio
async def test_analyze_repository_payload(test_settings):
    seen = []

    def handler(request):
        seen.append(json.loads(request.content))
        return httpx.Response(200, json={"predicted_score": 0.64, "merge_rate": 0.8})

    service = _service(test_settings, handler)

    data = await service.analyze_repository("https://github.com/octo/widget")

    assert data == {"predicted_score": 0.64, "merge_rate": 0.8}
    assert seen[0] == {
        "repo_url": "https://github.com/octo/widget",
        "github_token": "ghp_test",
    }


@pytest.mark.asyncio
async def test_analyze_repository_failure_returns_none(test_settings):
    service = _service(test_settings, lambda request: httpx.Response(502))

    assert await service.analyze_repository("https://github.com/octo/widget") is None


@pytest.mark.asyncio
async def test_probe_treats_client_errors_as_reachable(test_settings):
    reachable = _service(test_settings, lambda request: httpx.Response(405))
    down = _service(test_settings, lambda request: httpx.Response(503))

    assert (await reachable.probe())["ok"] is True
    assert (await down.probe())["ok"] is False

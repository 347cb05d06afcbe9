"""
Client for the hosted ML prediction provider.

Two endpoints are used:
    - ML_PREDICT_URL: scores a per-member feature vector
    - ML_ANALYZE_URL: summarizes a whole repository (optionally one user)

Both calls are best-effort. Failures are logged and reported as None so the
caller can fall back.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

import httpx

from impactlens.config import Settings, settings as default_settings
from impactlens.infrastructure.observability.logging import get_logger, log_provider_failure
from impactlens.models.domain.project_domain import MlFeatures

logger = get_logger(__name__)


class PredictionError(Exception):
    """Raised internally when the provider response cannot be used."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass(slots=True)
class ModelPrediction:
    score: float  # already normalized to 0..100
    indicators: dict[str, Any] | None


class PredictionService:
    def __init__(self, settings: Settings | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings or default_settings
        self._transport = transport

    @asynccontextmanager
    async def open_client(self, timeout: float | None = None):
        """Shared client for a batch of prediction calls."""
        async with httpx.AsyncClient(
            timeout=timeout or self.settings.ML_TIMEOUT_SECONDS,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            transport=self._transport,
        ) as client:
            yield client

    def normalize_score(self, value: Any) -> float:
        """
        Map the provider's predicted_score onto 0..100 using ML_SCORE_SCALE.

        Raises:
            PredictionError: If the value is not a number
        """
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise PredictionError(f"predicted_score is not numeric: {value!r}")
        score = float(value) * self.settings.ml_score_multiplier()
        return min(100.0, max(0.0, score))

    async def _post_json(self, client: httpx.AsyncClient, url: str, payload: dict) -> dict[str, Any]:
        response = await asyncio.wait_for(
            client.post(url, json=payload),
            timeout=self.settings.ML_TIMEOUT_SECONDS,
        )
        if not response.is_success:
            raise PredictionError(
                f"Prediction provider returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        try:
            data = response.json()
        except ValueError as e:
            raise PredictionError("Prediction provider returned invalid JSON") from e
        if not isinstance(data, dict):
            raise PredictionError("Prediction provider returned a non-object body")
        return data

    async def predict_member(
        self, client: httpx.AsyncClient, features: MlFeatures, username: str | None = None
    ) -> ModelPrediction | None:
        """
        Score one member's feature vector.

        Returns:
            ModelPrediction, or None when the provider fails or times out
        """
        try:
            data = await self._post_json(client, self.settings.ML_PREDICT_URL, features.model_dump())
            score = self.normalize_score(data.get("predicted_score"))
        except (httpx.HTTPError, asyncio.TimeoutError, PredictionError) as e:
            log_provider_failure("ml", "predict_member", e, github=username)
            return None

        indicators = data.get("productivity_indicators")
        logger.debug("Model prediction received", github=username, score=score)
        return ModelPrediction(
            score=score,
            indicators=indicators if isinstance(indicators, dict) else None,
        )

    async def analyze_repository(self, repo_url: str) -> dict[str, Any] | None:
        """
        Repository-wide analytics (predicted score, totals, merge rate, cycle time).

        Returns:
            The provider's JSON object as-is, or None on failure
        """
        payload = {"repo_url": repo_url, "github_token": self.settings.GITHUB_TOKEN}

        try:
            async with self.open_client() as client:
                data = await self._post_json(client, self.settings.ML_ANALYZE_URL, payload)
        except (httpx.HTTPError, asyncio.TimeoutError, PredictionError) as e:
            log_provider_failure("ml", "analyze_repository", e, repo_url=repo_url)
            return None

        logger.info("Repository analytics received", repo_url=repo_url, fields=sorted(data.keys()))
        return data

    async def probe(self) -> dict:
        """Connectivity check for the readiness endpoint."""
        try:
            async with self.open_client(timeout=self.settings.PROBE_TIMEOUT_SECONDS) as client:
                response = await client.get(self.settings.ML_PREDICT_URL)
            # Any HTTP answer means the host is reachable; predict only accepts POST
            return {"ok": response.status_code < 500, "status_code": response.status_code}
        except httpx.HTTPError as e:
            return {"ok": False, "error": f"{type(e).__name__}: {e}"}

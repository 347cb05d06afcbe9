from pathlib import Path
from typing import Literal
from urllib.parse import urlparse

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # HTTP surface
    CORS_ALLOWED_ORIGINS: list[str] = ["http://localhost:5173", "http://localhost:3000"]
    TRUST_X_FORWARDED_FOR: bool = False
    TRUSTED_PROXY_IPS: list[str] = []

    # =================================================================
    # STORAGE - "auto" tries Redis and falls back to process memory
    # =================================================================
    STORAGE_BACKEND: Literal["auto", "redis", "memory"] = "auto"
    REDIS_URL: str | None = None
    REDIS_PROJECTS_KEY: str = "impactlens:projects"
    SEED_DEMO_PROJECTS: bool = False

    # GitHub REST API
    GITHUB_API_URL: str = "https://api.github.com"
    GITHUB_TOKEN: str | None = None
    GITHUB_TIMEOUT_SECONDS: float = 30.0
    GITHUB_STATS_MAX_ATTEMPTS: int = 5
    GITHUB_STATS_RETRY_DELAY_SECONDS: float = 2.0
    GITHUB_PULLS_PAGE_SIZE: int = 100
    GITHUB_VERIFY_ON_CREATE: bool = False

    # ML prediction provider
    ML_PREDICT_URL: str = "https://abinivas8-devpro.hf.space/predict"
    ML_ANALYZE_URL: str = "https://abinivas8-venusync.hf.space/analyze-github"
    ML_TIMEOUT_SECONDS: float = 15.0
    ML_SCORE_SCALE: Literal["unit", "percent"] = "unit"

    # Feature vector derivation
    ANALYSIS_WINDOW_DAYS: int = 90
    FEATURE_ACTIVE_REPOS: int = 1
    FEATURE_REVIEW_RATIO: float = 0.5

    PROBE_TIMEOUT_SECONDS: float = 5.0

    # Text generation (OpenAI-compatible)
    OPENAI_API_KEY: str | None = None
    OPENAI_BASE_URL: str | None = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_MAX_TOKENS: int = 250
    OPENAI_TEMPERATURE: float = 0.7
    SUMMARY_TIMEOUT_SECONDS: float = 30.0

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def redis_host(self) -> str | None:
        """Host part of REDIS_URL, safe to log."""
        if not self.REDIS_URL:
            return None
        try:
            return urlparse(self.REDIS_URL).hostname
        except Exception:
            return None

    def github_headers(self) -> dict:
        """Default headers for GitHub REST requests."""
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": "impactlens-backend/0.1.0",
        }
        if self.GITHUB_TOKEN:
            headers["Authorization"] = f"Bearer {self.GITHUB_TOKEN}"
        return headers

    def ml_score_multiplier(self) -> float:
        """Factor that maps the provider's predicted_score onto 0..100."""
        return 100.0 if self.ML_SCORE_SCALE == "unit" else 1.0


settings = Settings()

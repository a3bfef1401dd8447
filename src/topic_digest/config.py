"""Configuration loading from config.yaml + .env."""

from pathlib import Path

import yaml
from pydantic import BaseModel
from pydantic_settings import BaseSettings


# ---------------------------------------------------------------------------
# Config sub-models (loaded from config.yaml)
# ---------------------------------------------------------------------------

class ProviderConfig(BaseModel):
    enabled: bool = True
    base_url: str
    daily_quota: int = 100
    page_size: int = 20
    language: str = "en"
    timeout: float = 30.0


class ProvidersConfig(BaseModel):
    primary: str = "currents"
    secondary: str = "newsapi"
    currents: ProviderConfig = ProviderConfig(
        base_url="https://api.currentsapi.services/v1",
        daily_quota=600,
    )
    newsapi: ProviderConfig = ProviderConfig(
        base_url="https://newsapi.org/v2",
        daily_quota=100,
    )


class ScoringConfig(BaseModel):
    """Ranking weights. Tuned empirically, so kept configurable."""

    relevance_weight: float = 0.45
    recency_weight: float = 0.30
    source_quality_weight: float = 0.25
    preferred_source_boost: float = 0.15
    recency_half_life_hours: float = 24.0
    high_relevance_threshold: float = 0.3


class EditorialConfig(BaseModel):
    model: str = "gpt-4o-mini"
    timeout: float = 30.0
    temperature: float = 0.2
    max_tokens: int = 2000
    shortlist_size: int = 25
    final_count: int = 7


class RetryConfig(BaseModel):
    max_rate_limit_attempts: int = 3
    max_parse_attempts: int = 2
    base_delay: float = 2.0
    max_jitter: float = 0.5


class SummarizerConfig(BaseModel):
    model: str = "gpt-4o-mini"
    temperature: float = 0.3
    max_tokens: int = 2000
    max_candidates: int = 7
    fallback_count: int = 3
    fallback_chars: int = 200
    retry: RetryConfig = RetryConfig()


class FetchConfig(BaseModel):
    min_articles: int = 3  # below this, widen the window / fall back
    min_required: int = 25  # below this, also ask the secondary provider
    cached_return_count: int = 10
    # seconds a provider that answered "rate limited" is skipped before being retried
    rate_limit_cooldown: float = 900.0


class BatchConfig(BaseModel):
    default_size: int = 5
    min_size: int = 2
    max_size: int = 10
    estimated_requests_per_topic: int = 3
    stagger_seconds: float = 0.1
    inter_batch_delay: float = 1.0


class CacheConfig(BaseModel):
    backend: str = "memory"  # memory | sqlite
    path: str = "data/digest_cache.db"
    ttl_hours: int = 24
    shared_quota: bool = False  # keep rate-limit counters in the cache store


class OpenAIConfig(BaseModel):
    base_url: str | None = None
    max_retries: int = 0  # retries are handled by the summarizer


class AppConfig(BaseModel):
    """Application config loaded from config.yaml."""

    providers: ProvidersConfig = ProvidersConfig()
    scoring: ScoringConfig = ScoringConfig()
    editorial: EditorialConfig = EditorialConfig()
    summarizer: SummarizerConfig = SummarizerConfig()
    fetch: FetchConfig = FetchConfig()
    batch: BatchConfig = BatchConfig()
    cache: CacheConfig = CacheConfig()
    openai: OpenAIConfig = OpenAIConfig()
    topics: list[str] = []


# ---------------------------------------------------------------------------
# Secrets (loaded from .env / environment variables)
# ---------------------------------------------------------------------------

class Settings(BaseSettings):
    """Secret settings loaded from environment / .env file."""

    currents_api_key: str = ""
    currents_api_tier: str = "free"  # "pro" raises the Currents quota to 50k/day
    news_api_key: str = ""
    openai_api_key: str = ""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

def load_config(config_path: str = "config.yaml") -> tuple[AppConfig, Settings]:
    """Load app config from YAML and secrets from .env."""
    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        app_config = AppConfig(**data)
    else:
        app_config = AppConfig()

    settings = Settings()
    return app_config, settings

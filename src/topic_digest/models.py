"""Data models for Topic Digest."""

import datetime as dt
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

Tier = Literal["free", "paid"]
SummaryFormat = Literal["bullets", "paragraph"]


class Article(BaseModel):
    """A single article returned by a news provider (description already cleaned)."""

    model_config = ConfigDict(frozen=True)

    title: str
    description: str
    url: str
    published_at: str = ""  # provider ISO-8601 string, kept verbatim
    source_name: str = ""


class ScoredArticle(Article):
    """Article plus the deterministic ranking components."""

    relevance_score: float = 0.0
    recency_score: float = 0.0
    source_quality_score: float = 0.0
    preferred_source_boost: float = 0.0
    total_score: float = 0.0

    def to_article(self) -> Article:
        return Article(
            title=self.title,
            description=self.description,
            url=self.url,
            published_at=self.published_at,
            source_name=self.source_name,
        )


class EditorialRanking(BaseModel):
    url: str
    importance_score: int = Field(ge=1, le=10)
    reasoning: str = ""


class EditorialRankingResult(BaseModel):
    """One ranking set per (topic, day)."""

    rankings: list[EditorialRanking] = []
    model: str
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    fallback: bool = False


class CacheEntry(BaseModel):
    """Daily snapshot keyed by (topic, date, provider_label)."""

    topic: str
    date: dt.date
    provider_label: str
    articles: list[Article] = []
    payload: dict[str, Any] | None = None  # rankings, summaries, quota counters
    fetch_duration_ms: int | None = None
    expires_at: datetime | None = None


class StyleRules(BaseModel):
    instructions: str
    count: int = Field(ge=1, le=5)
    format: SummaryFormat = "paragraph"


class TopicStyleProfile(BaseModel):
    """Tone/format rules for one content category."""

    category: str
    keywords: list[str] = []
    free: StyleRules
    paid: StyleRules

    def for_tier(self, tier: Tier) -> StyleRules:
        return self.paid if tier == "paid" else self.free


class DigestEntry(BaseModel):
    title: str
    url: str = ""
    source_name: str = ""
    summary: str | None = None
    bullets: list[str] | None = None


class DigestSummary(BaseModel):
    """Final per-topic digest payload."""

    topic: str
    summaries: list[DigestEntry] = []
    fallback: bool = False  # extractive summaries instead of LLM output


class BatchResult(BaseModel):
    """Outcome of a cross-topic fetch run."""

    articles: dict[str, list[Article]] = {}
    errors: list[str] = []
    successful: int = 0
    failed: int = 0

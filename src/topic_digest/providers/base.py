"""Base news provider.

每个 provider 继承此基类，统一接口：fetch_articles(topic, days_back) -> list[Article]。
Subclasses only describe the request and how to map one raw record; the
base class owns quota accounting, HTTP error mapping, cleaning, source
prioritization, intra-provider dedup and recency ordering.
"""

import functools
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any
from urllib.parse import urlparse

import httpx

from ..cleaning import clean
from ..config import ProviderConfig
from ..dedup import dedupe_within_provider
from ..errors import (
    ConfigurationError,
    MalformedProviderResponse,
    ProviderRateLimited,
    ProviderUnavailable,
)
from ..models import Article
from ..quota import InMemoryQuotaTracker, QuotaTracker
from ..scoring import parse_published
from ..sources import get_sources_for_topic

logger = logging.getLogger(__name__)

MIN_DESCRIPTION_LENGTH = 50
# Articles published within this many seconds of each other count as equally fresh
_SAME_TIME_WINDOW = 3600


class BaseProvider(ABC):
    """Abstract base class for news-search API adapters."""

    name: str = ""

    def __init__(
        self,
        api_key: str,
        config: ProviderConfig,
        quota: QuotaTracker | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not api_key:
            raise ConfigurationError(f"{self.name} API key is not configured")
        self.api_key = api_key
        self.config = config
        self.quota = quota or InMemoryQuotaTracker()
        self._client = client

    @property
    def daily_quota(self) -> int:
        return self.config.daily_quota

    async def remaining_quota(self) -> int:
        return await self.quota.remaining(self.name, self.daily_quota)

    # ── Subclass hooks ─────────────────────────────────────────────────

    @abstractmethod
    def build_request(self, topic: str, from_date: str) -> tuple[str, dict[str, Any]]:
        """Return (url, query params) for a search."""
        ...

    @abstractmethod
    def extract_records(self, data: dict[str, Any]) -> list[dict[str, Any]]:
        """Pull the raw article list out of a decoded response body."""
        ...

    @abstractmethod
    def to_article(self, record: dict[str, Any]) -> Article | None:
        """Map one raw record to an Article, or None if unusable."""
        ...

    # ── Fetch ──────────────────────────────────────────────────────────

    async def fetch_articles(self, topic: str, days_back: int = 1) -> list[Article]:
        """Search articles for a topic published in the last ``days_back`` days."""
        if not await self.quota.acquire(self.name, self.daily_quota):
            raise ProviderRateLimited(self.name, "daily quota exhausted")

        from_date = (datetime.now(timezone.utc) - timedelta(days=days_back)).date().isoformat()
        url, params = self.build_request(topic, from_date)
        data = await self._get_json(url, params)

        records = self.extract_records(data)
        if not records:
            return []

        articles = [a for r in self._prioritize(records, topic) if (a := self.to_article(r))]
        articles = [
            a for a in articles
            if a.title and a.url and len(a.description) > MIN_DESCRIPTION_LENGTH
        ]
        articles = dedupe_within_provider(articles)
        articles = sort_by_recency(articles)

        logger.info(
            "[%s] %d articles for '%s' (last %d day(s))",
            self.name, len(articles), topic, days_back,
        )
        return articles

    async def _get_json(self, url: str, params: dict[str, Any]) -> dict[str, Any]:
        try:
            if self._client is not None:
                resp = await self._client.get(url, params=params)
            else:
                async with httpx.AsyncClient(timeout=self.config.timeout, follow_redirects=True) as client:
                    resp = await client.get(url, params=params)
        except httpx.HTTPError as exc:
            raise ProviderUnavailable(self.name, f"request failed: {exc}") from exc

        if resp.status_code == 429:
            raise ProviderRateLimited(self.name, "HTTP 429")
        if resp.is_error:
            raise ProviderUnavailable(self.name, f"HTTP {resp.status_code}: {resp.text[:200]}")

        try:
            data = resp.json()
        except ValueError as exc:
            raise MalformedProviderResponse(self.name, "body is not JSON") from exc
        if not isinstance(data, dict):
            raise MalformedProviderResponse(self.name, "body is not a JSON object")
        if data.get("status") != "ok":
            raise MalformedProviderResponse(
                self.name, f"status={data.get('status')!r}: {data.get('message', 'unknown error')}"
            )
        return data

    def _prioritize(self, records: list[dict[str, Any]], topic: str) -> list[dict[str, Any]]:
        """Preferred sources first, everything else after (stable)."""
        preferred = get_sources_for_topic(topic)
        first: list[dict[str, Any]] = []
        rest: list[dict[str, Any]] = []
        for record in records:
            host = urlparse(str(record.get("url") or "")).hostname or ""
            (first if any(s in host for s in preferred) else rest).append(record)
        if first:
            logger.debug("[%s] %d/%d records from preferred sources", self.name, len(first), len(records))
        return first + rest

    @staticmethod
    def clean_text(text: str | None) -> str:
        return clean(text or "")

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r} quota={self.daily_quota}>"


def _timestamp(article: Article) -> float:
    published = parse_published(article.published_at)
    return published.timestamp() if published else 0.0


def _compare_recency(a: Article, b: Article) -> float:
    diff = _timestamp(b) - _timestamp(a)
    if abs(diff) > _SAME_TIME_WINDOW:
        return diff
    return len(b.description) - len(a.description)


def sort_by_recency(articles: list[Article]) -> list[Article]:
    """Newest first; within an hour of each other, longer description first."""
    return sorted(articles, key=functools.cmp_to_key(_compare_recency))

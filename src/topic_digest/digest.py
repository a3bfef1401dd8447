"""Digest service: the library entry point.

    digest = await get_digest("nba", "free")

Builds the providers, cache, ranker, orchestrator and summarizer from
configuration. Missing API keys raise ConfigurationError here, at startup;
everything after that degrades instead of raising.
"""

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from .cache import ArticleCache, build_store
from .config import AppConfig, Settings, load_config
from .editorial import EditorialRanker
from .llm import CompletionClient
from .models import Article, DigestSummary, Tier
from .orchestrator import FetchOrchestrator
from .providers import build_providers
from .quota import InMemoryQuotaTracker, QuotaTracker, StoreQuotaTracker
from .summarizer import Summarizer

logger = logging.getLogger(__name__)

TIERS: tuple[Tier, ...] = ("free", "paid")


def summary_label(tier: Tier) -> str:
    return f"summary-{tier}"


class DigestService:
    def __init__(
        self,
        orchestrator: FetchOrchestrator,
        summarizer: Summarizer,
        cache: ArticleCache,
    ) -> None:
        self.orchestrator = orchestrator
        self.summarizer = summarizer
        self.cache = cache

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
        completion_client: CompletionClient | None = None,
    ) -> "DigestService":
        store = build_store(config.cache)
        cache = ArticleCache(store, ttl_hours=config.cache.ttl_hours)
        quota: QuotaTracker = (
            StoreQuotaTracker(store) if config.cache.shared_quota else InMemoryQuotaTracker()
        )
        providers = build_providers(config, settings, quota, client=http_client)
        client = completion_client or CompletionClient.from_settings(settings, config.openai)

        ranker = EditorialRanker(client, cache, config.editorial)
        orchestrator = FetchOrchestrator.from_config(config, providers, cache, ranker)
        summarizer = Summarizer(client, config.summarizer)
        return cls(orchestrator, summarizer, cache)

    async def get_digest(self, topic: str, tier: Tier = "free", use_cache: bool = True) -> DigestSummary:
        """Digest for one topic and tier; empty summaries when nothing is found."""
        if use_cache:
            cached = await self._cached_digest(topic, tier)
            if cached is not None:
                logger.info("Summary cache hit for '%s' (%s)", topic, tier)
                return cached

        articles = await self.orchestrator.fetch_topic(topic, use_cache=use_cache)
        return await self.summarize(topic, articles, tier)

    async def summarize(self, topic: str, articles: list[Article], tier: Tier) -> DigestSummary:
        digest = await self.summarizer.summarize(topic, articles, tier)
        # Extractive fallbacks are not cached, so a later run can retry the LLM
        if digest.summaries and not digest.fallback:
            await self.cache.put_document(topic, summary_label(tier), digest.model_dump(mode="json"))
        return digest

    async def warm(self, topics: list[str]) -> dict[str, Any]:
        """Fetch every topic and build both tiers, like the nightly cache job."""
        batch = await self.orchestrator.fetch_topics(topics)
        stats: dict[str, Any] = {
            "total": len(topics),
            "successful": 0,
            "failed": batch.failed,
            "cached": 0,
            "errors": list(batch.errors),
        }

        for topic, articles in batch.articles.items():
            if not articles:
                continue
            for tier in TIERS:
                digest = await self.summarize(topic, articles, tier)
                if digest.summaries and not digest.fallback:
                    stats["cached"] += 1
            stats["successful"] += 1

        logger.info(
            "Warmed %d/%d topics, %d summary entries cached",
            stats["successful"], stats["total"], stats["cached"],
        )
        return stats

    async def close(self) -> None:
        await self.cache.store.close()

    async def _cached_digest(self, topic: str, tier: Tier) -> DigestSummary | None:
        document = await self.cache.get_document(topic, summary_label(tier))
        if not document:
            return None
        try:
            return DigestSummary.model_validate(document)
        except ValidationError:
            logger.warning("Ignoring malformed cached digest for '%s' (%s)", topic, tier)
            return None


_default_service: DigestService | None = None


async def get_digest(topic: str, tier: Tier = "free") -> DigestSummary:
    """Module-level convenience using config.yaml + environment."""
    global _default_service
    if _default_service is None:
        config, settings = load_config()
        _default_service = DigestService.from_config(config, settings)
    return await _default_service.get_digest(topic, tier)

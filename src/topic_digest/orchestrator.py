"""Fetch orchestration.

Per topic, an ordered chain of strategies runs over a shared FetchContext
until one resolves the topic:

    cached → primary (24h, widened to 48h) → secondary → rank → stale-cache

Strategies either resolve the topic (return a list of articles) or return
None and leave what they gathered in ``ctx.pool``. fetch_topic() never
raises: a topic nothing can resolve gets an empty list.

Across topics, fetch_topics() fans out in batches sized from the remaining
provider quota, staggering starts inside a batch and pausing between batches.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from .cache import DETERMINISTIC_LABEL, EDITORIAL_LABEL, ArticleCache
from .config import AppConfig, BatchConfig, FetchConfig, ScoringConfig
from .dedup import dedupe_across_providers
from .editorial import EditorialRanker, reconcile_order
from .errors import ProviderError, ProviderRateLimited
from .models import Article, BatchResult
from .providers import BaseProvider
from .providers.base import sort_by_recency
from .scoring import score_articles, select_top_articles

logger = logging.getLogger(__name__)


@dataclass
class FetchContext:
    """State threaded through the strategy chain for one topic."""

    topic: str
    use_cache: bool = True
    write_cache: bool = True
    pool: list[Article] = field(default_factory=list)
    label: str | None = None  # which strategy resolved the topic
    started: float = field(default_factory=time.monotonic)

    def merge(self, articles: list[Article]) -> int:
        """Add articles with unseen URLs; returns how many were new."""
        seen = {a.url for a in self.pool}
        new = [a for a in articles if a.url not in seen]
        self.pool.extend(new)
        return len(new)

    @property
    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started) * 1000)


Strategy = Callable[[FetchContext], Awaitable[list[Article] | None]]


class FetchOrchestrator:
    def __init__(
        self,
        primary: BaseProvider | None,
        secondary: BaseProvider | None,
        cache: ArticleCache,
        ranker: EditorialRanker,
        fetch_config: FetchConfig | None = None,
        scoring_config: ScoringConfig | None = None,
        batch_config: BatchConfig | None = None,
        shortlist_size: int = 25,
        final_count: int = 7,
        strategies: list[Strategy] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.primary = primary
        self.secondary = secondary
        self.cache = cache
        self.ranker = ranker
        self.fetch_config = fetch_config or FetchConfig()
        self.scoring_config = scoring_config or ScoringConfig()
        self.batch_config = batch_config or BatchConfig()
        self.shortlist_size = shortlist_size
        self.final_count = final_count
        self._clock = clock
        # Provider name -> clock time until which it is skipped after "rate limited"
        self.exhausted: dict[str, float] = {}
        self.strategies: list[Strategy] = strategies if strategies is not None else [
            self.from_cache,
            self.from_primary,
            self.from_secondary,
            self.rank_pool,
            self.from_stale_cache,
        ]

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        providers: dict[str, BaseProvider],
        cache: ArticleCache,
        ranker: EditorialRanker,
    ) -> "FetchOrchestrator":
        return cls(
            primary=providers.get(config.providers.primary),
            secondary=providers.get(config.providers.secondary),
            cache=cache,
            ranker=ranker,
            fetch_config=config.fetch,
            scoring_config=config.scoring,
            batch_config=config.batch,
            shortlist_size=config.editorial.shortlist_size,
            final_count=config.editorial.final_count,
        )

    # ── Per-topic chain ────────────────────────────────────────────────

    async def fetch_topic(
        self, topic: str, use_cache: bool = True, write_cache: bool = True
    ) -> list[Article]:
        """Resolve one topic to its final ordered articles. Never raises."""
        ctx = FetchContext(topic=topic, use_cache=use_cache, write_cache=write_cache)

        for strategy in self.strategies:
            name = getattr(strategy, "__name__", repr(strategy))
            try:
                articles = await strategy(ctx)
            except Exception:
                logger.exception("Strategy %s failed for '%s'", name, topic)
                continue
            if articles is not None:
                logger.info(
                    "'%s' resolved by %s: %d articles (%dms)",
                    topic, ctx.label or name, len(articles), ctx.elapsed_ms,
                )
                return articles

        logger.warning("No articles for '%s' from any source", topic)
        return []

    async def from_cache(self, ctx: FetchContext) -> list[Article] | None:
        if not ctx.use_cache:
            return None
        entry = await self.cache.get_fresh(ctx.topic)
        if entry is None or len(entry.articles) < self.fetch_config.min_articles:
            return None
        ctx.label = f"cache:{entry.provider_label}"
        return entry.articles[: self.fetch_config.cached_return_count]

    async def from_primary(self, ctx: FetchContext) -> list[Article] | None:
        articles = await self._call(self.primary, ctx.topic, days_back=1)
        if articles is None:
            return None
        ctx.merge(articles)

        if len(articles) < self.fetch_config.min_articles:
            logger.info(
                "Only %d articles for '%s' in 24h, expanding to 48h", len(articles), ctx.topic
            )
            wider = await self._call(self.primary, ctx.topic, days_back=2)
            if wider:
                added = ctx.merge(wider)
                logger.info("48h window added %d new articles for '%s'", added, ctx.topic)
        return None

    async def from_secondary(self, ctx: FetchContext) -> list[Article] | None:
        if len(ctx.pool) >= self.fetch_config.min_required:
            return None
        articles = await self._call(self.secondary, ctx.topic, days_back=1)
        if articles:
            added = ctx.merge(articles)
            logger.info("Secondary provider added %d articles for '%s'", added, ctx.topic)
        return None

    async def rank_pool(self, ctx: FetchContext) -> list[Article] | None:
        """Dedup, score, editorial-rank and cache the merged pool."""
        merged = dedupe_across_providers(sort_by_recency(ctx.pool))
        if len(merged) < self.fetch_config.min_articles:
            logger.info("Only %d live articles for '%s'", len(merged), ctx.topic)
            return None

        scored = score_articles(merged, ctx.topic, self.scoring_config)
        shortlist = select_top_articles(
            scored, self.shortlist_size, self.scoring_config.high_relevance_threshold
        )
        ranking = await self.ranker.rank(shortlist, ctx.topic)
        final = [a.to_article() for a in reconcile_order(ranking, shortlist, self.final_count)]

        ctx.label = DETERMINISTIC_LABEL if ranking.fallback else EDITORIAL_LABEL
        if ctx.write_cache:
            await self.cache.put_articles(ctx.topic, ctx.label, final, ctx.elapsed_ms)
        return final

    async def from_stale_cache(self, ctx: FetchContext) -> list[Article] | None:
        entry = await self.cache.get_stale(ctx.topic)
        if entry is None or not entry.articles:
            return None
        logger.warning("Using stale cache from %s for '%s'", entry.date, ctx.topic)
        ctx.label = f"stale-cache:{entry.date}"
        return entry.articles

    async def _call(
        self, provider: BaseProvider | None, topic: str, days_back: int
    ) -> list[Article] | None:
        """Provider call with failures recovered; None when it produced nothing."""
        if provider is None:
            return None
        if self._rate_limited(provider.name):
            logger.info("[%s] Skipping, rate limited recently", provider.name)
            return None
        try:
            return await provider.fetch_articles(topic, days_back)
        except ProviderRateLimited as exc:
            cooldown = self.fetch_config.rate_limit_cooldown
            logger.warning("%s; skipping provider for %.0fs", exc, cooldown)
            self.exhausted[provider.name] = self._clock() + cooldown
        except ProviderError as exc:
            logger.warning("Provider error for '%s': %s", topic, exc)
        return None

    def _rate_limited(self, name: str) -> bool:
        deadline = self.exhausted.get(name)
        if deadline is None:
            return False
        if self._clock() < deadline:
            return True
        logger.info("[%s] Rate-limit cooldown over, trying again", name)
        del self.exhausted[name]
        return False

    # ── Cross-topic driver ─────────────────────────────────────────────

    async def batch_size(self) -> int:
        cfg = self.batch_config
        if self.primary is None:
            return cfg.default_size
        try:
            remaining = await self.primary.remaining_quota()
        except Exception:
            logger.exception("Could not read remaining quota, using default batch size")
            return cfg.default_size
        size = remaining // max(1, cfg.estimated_requests_per_topic)
        return max(cfg.min_size, min(cfg.max_size, size))

    async def fetch_topics(
        self, topics: list[str], use_cache: bool = True, write_cache: bool = True
    ) -> BatchResult:
        """Fetch many topics in quota-sized concurrent batches.

        One topic failing never cancels its siblings; it is reported in
        ``errors`` and gets an empty article list.
        """
        result = BatchResult()
        if not topics:
            return result

        self.exhausted.clear()
        size = await self.batch_size()
        batches = [topics[i:i + size] for i in range(0, len(topics), size)]
        logger.info("Fetching %d topics in %d batch(es) of up to %d", len(topics), len(batches), size)

        for n, batch in enumerate(batches, 1):
            tasks = [
                self._staggered(topic, i * self.batch_config.stagger_seconds, use_cache, write_cache)
                for i, topic in enumerate(batch)
            ]
            outcomes = await asyncio.gather(*tasks, return_exceptions=True)

            for topic, outcome in zip(batch, outcomes):
                if isinstance(outcome, BaseException):
                    logger.error("✗ %s: fetch failed: %s", topic, outcome)
                    result.articles[topic] = []
                    result.errors.append(f"Failed to fetch '{topic}': {outcome}")
                    result.failed += 1
                    continue
                result.articles[topic] = outcome
                if outcome:
                    result.successful += 1
                    logger.info("✓ %s: %d articles", topic, len(outcome))
                else:
                    result.failed += 1
                    result.errors.append(f"No articles found for '{topic}'")

            if n < len(batches):
                await asyncio.sleep(self.batch_config.inter_batch_delay)

        return result

    async def _staggered(
        self, topic: str, delay: float, use_cache: bool, write_cache: bool
    ) -> list[Article]:
        if delay:
            await asyncio.sleep(delay)
        return await self.fetch_topic(topic, use_cache=use_cache, write_cache=write_cache)

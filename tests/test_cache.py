"""Tests for the daily article cache (memory and SQLite stores)."""

import asyncio
from datetime import timedelta

from topic_digest.cache import (
    DETERMINISTIC_LABEL,
    EDITORIAL_LABEL,
    RANKING_LABEL,
    ArticleCache,
    CacheStore,
    MemoryCacheStore,
    SqliteCacheStore,
    build_store,
    utc_today,
)
from topic_digest.config import CacheConfig
from topic_digest.models import Article, CacheEntry


# ── Helpers ──────────────────────────────────────────────────────────────


def _make_articles(n: int = 3, prefix: str = "Story") -> list[Article]:
    return [
        Article(
            title=f"{prefix} {i}: Überraschung beim Gipfel — “quotes” included",
            description=f"Description {i} with unicode ✓ and a trailing space ",
            url=f"https://example.com/{prefix.lower()}/{i}",
            published_at="2025-01-01 12:00:00 +0000",
            source_name="example.com",
        )
        for i in range(n)
    ]


def _entry(topic: str, days_ago: int, label: str, articles: list[Article]) -> CacheEntry:
    return CacheEntry(
        topic=topic,
        date=utc_today() - timedelta(days=days_ago),
        provider_label=label,
        articles=articles,
    )


class BrokenStore(CacheStore):
    async def upsert(self, entry):
        raise OSError("disk full")

    async def get(self, topic, day, provider_label):
        raise OSError("database is locked")

    async def get_latest(self, topic, labels=None):
        raise OSError("database is locked")


# ── SQLite store ─────────────────────────────────────────────────────────


class TestSqliteCacheStore:
    """SQLite 持久化测试"""

    def test_round_trip_is_byte_identical(self, tmp_path):
        """写入后读出的文章序列化结果完全一致"""
        articles = _make_articles()

        async def run():
            store = SqliteCacheStore(str(tmp_path / "cache.db"))
            await store.upsert(_entry("nba", 0, EDITORIAL_LABEL, articles))
            return await store.get("nba", utc_today(), EDITORIAL_LABEL)

        entry = asyncio.run(run())
        assert entry is not None
        assert [a.model_dump_json() for a in entry.articles] == [a.model_dump_json() for a in articles]

    def test_upsert_replaces_same_key(self, tmp_path):
        async def run():
            store = SqliteCacheStore(str(tmp_path / "cache.db"))
            await store.upsert(_entry("nba", 0, EDITORIAL_LABEL, _make_articles(3)))
            await store.upsert(_entry("nba", 0, EDITORIAL_LABEL, _make_articles(1)))
            return await store.get("nba", utc_today(), EDITORIAL_LABEL)

        assert len(asyncio.run(run()).articles) == 1

    def test_get_latest_newest_date(self, tmp_path):
        async def run():
            store = SqliteCacheStore(str(tmp_path / "cache.db"))
            await store.upsert(_entry("nba", 3, EDITORIAL_LABEL, _make_articles(1, "Old")))
            await store.upsert(_entry("nba", 1, DETERMINISTIC_LABEL, _make_articles(1, "Newer")))
            await store.upsert(_entry("nba", 0, RANKING_LABEL, []))
            latest = await store.get_latest("nba", [EDITORIAL_LABEL, DETERMINISTIC_LABEL])
            missing = await store.get_latest("nfl")
            return latest, missing

        latest, missing = asyncio.run(run())
        assert latest.provider_label == DETERMINISTIC_LABEL
        assert latest.articles[0].title.startswith("Newer")
        assert missing is None

    def test_payload_round_trip(self, tmp_path):
        async def run():
            store = SqliteCacheStore(str(tmp_path / "nested" / "cache.db"))
            await store.upsert(CacheEntry(
                topic="nba", date=utc_today(), provider_label=RANKING_LABEL,
                payload={"rankings": [{"url": "https://a", "importance_score": 9}]},
            ))
            return await store.get("nba", utc_today(), RANKING_LABEL)

        entry = asyncio.run(run())
        assert entry.payload == {"rankings": [{"url": "https://a", "importance_score": 9}]}
        assert entry.articles == []


# ── Memory store ─────────────────────────────────────────────────────────


class TestMemoryCacheStore:
    def test_get_returns_copy(self):
        async def run():
            store = MemoryCacheStore()
            await store.upsert(_entry("nba", 0, EDITORIAL_LABEL, _make_articles(2)))
            first = await store.get("nba", utc_today(), EDITORIAL_LABEL)
            first.articles.clear()
            return await store.get("nba", utc_today(), EDITORIAL_LABEL)

        assert len(asyncio.run(run()).articles) == 2

    def test_get_latest_prefers_most_recent_write_on_same_day(self):
        async def run():
            store = MemoryCacheStore()
            await store.upsert(_entry("nba", 0, DETERMINISTIC_LABEL, _make_articles(1, "First")))
            await store.upsert(_entry("nba", 0, EDITORIAL_LABEL, _make_articles(1, "Second")))
            return await store.get_latest("nba")

        assert asyncio.run(run()).provider_label == EDITORIAL_LABEL

    def test_build_store(self, tmp_path):
        assert isinstance(build_store(CacheConfig()), MemoryCacheStore)
        sqlite = build_store(CacheConfig(backend="sqlite", path=str(tmp_path / "c.db")))
        assert isinstance(sqlite, SqliteCacheStore)


# ── ArticleCache facade ──────────────────────────────────────────────────


class TestArticleCache:
    """读写穿透 + 故障降级"""

    def test_fresh_and_stale(self):
        async def run():
            store = MemoryCacheStore()
            cache = ArticleCache(store)
            await store.upsert(_entry("nba", 2, EDITORIAL_LABEL, _make_articles(4)))
            fresh = await cache.get_fresh("nba")
            stale = await cache.get_stale("nba")
            return fresh, stale

        fresh, stale = asyncio.run(run())
        assert fresh is None
        assert len(stale.articles) == 4

    def test_put_articles_sets_expiry(self):
        async def run():
            cache = ArticleCache(MemoryCacheStore(), ttl_hours=6)
            await cache.put_articles("nba", EDITORIAL_LABEL, _make_articles(3), fetch_duration_ms=120)
            return await cache.get_fresh("nba")

        entry = asyncio.run(run())
        assert entry.fetch_duration_ms == 120
        assert entry.expires_at is not None
        assert entry.provider_label == EDITORIAL_LABEL

    def test_editorial_entry_preferred_over_deterministic(self):
        async def run():
            cache = ArticleCache(MemoryCacheStore())
            await cache.put_articles("nba", DETERMINISTIC_LABEL, _make_articles(3, "Det"))
            await cache.put_articles("nba", EDITORIAL_LABEL, _make_articles(3, "Ed"))
            return await cache.get_fresh("nba")

        assert asyncio.run(run()).provider_label == EDITORIAL_LABEL

    def test_documents(self):
        async def run():
            cache = ArticleCache(MemoryCacheStore())
            await cache.put_document("nba", "summary-free", {"topic": "nba", "summaries": []})
            return (
                await cache.get_document("nba", "summary-free"),
                await cache.get_document("nba", "summary-paid"),
            )

        found, missing = asyncio.run(run())
        assert found == {"topic": "nba", "summaries": []}
        assert missing is None

    def test_store_failures_are_misses(self):
        """存储故障视为未命中，不抛异常"""
        async def run():
            cache = ArticleCache(BrokenStore())
            await cache.put_articles("nba", EDITORIAL_LABEL, _make_articles(3))
            return (
                await cache.get_fresh("nba"),
                await cache.get_stale("nba"),
                await cache.get_document("nba", RANKING_LABEL),
            )

        assert asyncio.run(run()) == (None, None, None)

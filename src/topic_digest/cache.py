"""Daily article cache.

Entries are keyed by (topic, date, provider_label). A same-day entry
short-circuits provider calls; the newest entry of any date is the stale
fallback when every live source fails. The same store also carries
editorial rankings, per-tier summaries and shared quota counters through
CacheEntry.payload.
"""

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import aiosqlite

from .config import CacheConfig
from .models import Article, CacheEntry

logger = logging.getLogger(__name__)

# Labels of entries that hold article lists (as opposed to payload documents)
EDITORIAL_LABEL = "multi-source-editorial"
DETERMINISTIC_LABEL = "multi-source-deterministic"
ARTICLE_LABELS = (EDITORIAL_LABEL, DETERMINISTIC_LABEL)
RANKING_LABEL = "editorial-ranking"


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


# ---------------------------------------------------------------------------
# Store interface
# ---------------------------------------------------------------------------

class CacheStore(ABC):
    """Keyed document table: upsert / point lookup / latest-by-topic."""

    @abstractmethod
    async def upsert(self, entry: CacheEntry) -> None:
        ...

    @abstractmethod
    async def get(self, topic: str, day: date, provider_label: str) -> CacheEntry | None:
        ...

    @abstractmethod
    async def get_latest(
        self, topic: str, labels: Sequence[str] | None = None
    ) -> CacheEntry | None:
        """Most recent entry for a topic regardless of date."""
        ...

    async def close(self) -> None:
        return None


class MemoryCacheStore(CacheStore):
    """In-process store. Fine for tests and single-instance runs."""

    def __init__(self) -> None:
        self._entries: dict[tuple[str, date, str], CacheEntry] = {}
        self._written: dict[tuple[str, date, str], int] = {}
        self._seq = 0

    async def upsert(self, entry: CacheEntry) -> None:
        key = (entry.topic, entry.date, entry.provider_label)
        self._seq += 1
        self._entries[key] = entry.model_copy(deep=True)
        self._written[key] = self._seq

    async def get(self, topic: str, day: date, provider_label: str) -> CacheEntry | None:
        entry = self._entries.get((topic, day, provider_label))
        return entry.model_copy(deep=True) if entry else None

    async def get_latest(
        self, topic: str, labels: Sequence[str] | None = None
    ) -> CacheEntry | None:
        candidates = [
            key for key in self._entries
            if key[0] == topic and (labels is None or key[2] in labels)
        ]
        if not candidates:
            return None
        # Newest day first, then most recently written
        key = max(candidates, key=lambda k: (k[1], self._written[k]))
        return self._entries[key].model_copy(deep=True)


_SCHEMA = """
CREATE TABLE IF NOT EXISTS article_cache (
    topic TEXT NOT NULL,
    date TEXT NOT NULL,
    provider_label TEXT NOT NULL,
    articles TEXT NOT NULL,
    payload TEXT,
    fetch_duration_ms INTEGER,
    expires_at TEXT,
    updated_at TEXT NOT NULL,
    UNIQUE(topic, date, provider_label)
);
CREATE INDEX IF NOT EXISTS idx_article_cache_topic_date ON article_cache(topic, date);
"""

_COLUMNS = "topic, date, provider_label, articles, payload, fetch_duration_ms, expires_at"


class SqliteCacheStore(CacheStore):
    """aiosqlite-backed store with a unique (topic, date, provider_label) key."""

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        self._initialized = False

    async def initialize_db(self) -> None:
        if self._initialized:
            return
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(self.db_path) as db:
            await db.executescript(_SCHEMA)
            await db.commit()
        self._initialized = True

    async def upsert(self, entry: CacheEntry) -> None:
        await self.initialize_db()
        articles = json.dumps([a.model_dump(mode="json") for a in entry.articles], ensure_ascii=False)
        payload = json.dumps(entry.payload, ensure_ascii=False, default=str) if entry.payload is not None else None
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                f"""
                INSERT INTO article_cache ({_COLUMNS}, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(topic, date, provider_label) DO UPDATE SET
                    articles = excluded.articles,
                    payload = excluded.payload,
                    fetch_duration_ms = excluded.fetch_duration_ms,
                    expires_at = excluded.expires_at,
                    updated_at = excluded.updated_at
                """,
                (
                    entry.topic,
                    entry.date.isoformat(),
                    entry.provider_label,
                    articles,
                    payload,
                    entry.fetch_duration_ms,
                    entry.expires_at.isoformat() if entry.expires_at else None,
                    datetime.now(timezone.utc).isoformat(),
                ),
            )
            await db.commit()

    async def get(self, topic: str, day: date, provider_label: str) -> CacheEntry | None:
        await self.initialize_db()
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                f"SELECT {_COLUMNS} FROM article_cache "
                "WHERE topic = ? AND date = ? AND provider_label = ?",
                (topic, day.isoformat(), provider_label),
            ) as cursor:
                row = await cursor.fetchone()
        return self._row_to_entry(row) if row else None

    async def get_latest(
        self, topic: str, labels: Sequence[str] | None = None
    ) -> CacheEntry | None:
        await self.initialize_db()
        query = f"SELECT {_COLUMNS} FROM article_cache WHERE topic = ?"
        params: list[Any] = [topic]
        if labels is not None:
            if not labels:
                return None
            query += f" AND provider_label IN ({', '.join('?' for _ in labels)})"
            params.extend(labels)
        query += " ORDER BY date DESC, updated_at DESC LIMIT 1"

        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(query, params) as cursor:
                row = await cursor.fetchone()
        return self._row_to_entry(row) if row else None

    @staticmethod
    def _row_to_entry(row: aiosqlite.Row) -> CacheEntry:
        return CacheEntry(
            topic=row["topic"],
            date=date.fromisoformat(row["date"]),
            provider_label=row["provider_label"],
            articles=[Article(**a) for a in json.loads(row["articles"])],
            payload=json.loads(row["payload"]) if row["payload"] else None,
            fetch_duration_ms=row["fetch_duration_ms"],
            expires_at=datetime.fromisoformat(row["expires_at"]) if row["expires_at"] else None,
        )


def build_store(config: CacheConfig) -> CacheStore:
    if config.backend == "sqlite":
        return SqliteCacheStore(config.path)
    if config.backend != "memory":
        logger.warning("Unknown cache backend %r, using in-memory store", config.backend)
    return MemoryCacheStore()


# ---------------------------------------------------------------------------
# Article cache facade
# ---------------------------------------------------------------------------

class ArticleCache:
    """Read-through / write-through layer used by the orchestrator.

    Store failures are logged and treated as cache misses.
    """

    def __init__(self, store: CacheStore, ttl_hours: int = 24) -> None:
        self.store = store
        self.ttl = timedelta(hours=ttl_hours)

    async def get_fresh(
        self, topic: str, labels: Sequence[str] = ARTICLE_LABELS
    ) -> CacheEntry | None:
        """Best same-day article entry for a topic (first label wins)."""
        today = utc_today()
        for label in labels:
            try:
                entry = await self.store.get(topic, today, label)
            except Exception:
                logger.exception("Cache read failed for '%s' (%s)", topic, label)
                return None
            if entry is not None:
                return entry
        return None

    async def get_stale(self, topic: str) -> CacheEntry | None:
        try:
            return await self.store.get_latest(topic, ARTICLE_LABELS)
        except Exception:
            logger.exception("Stale cache read failed for '%s'", topic)
            return None

    async def put_articles(
        self,
        topic: str,
        label: str,
        articles: list[Article],
        fetch_duration_ms: int | None = None,
    ) -> None:
        entry = CacheEntry(
            topic=topic,
            date=utc_today(),
            provider_label=label,
            articles=articles,
            fetch_duration_ms=fetch_duration_ms,
            expires_at=datetime.now(timezone.utc) + self.ttl,
        )
        await self._upsert(entry)

    async def get_document(self, topic: str, label: str) -> dict[str, Any] | None:
        """Same-day payload document (rankings, summaries)."""
        try:
            entry = await self.store.get(topic, utc_today(), label)
        except Exception:
            logger.exception("Cache read failed for '%s' (%s)", topic, label)
            return None
        return entry.payload if entry else None

    async def put_document(self, topic: str, label: str, payload: dict[str, Any]) -> None:
        entry = CacheEntry(
            topic=topic,
            date=utc_today(),
            provider_label=label,
            payload=payload,
            expires_at=datetime.now(timezone.utc) + self.ttl,
        )
        await self._upsert(entry)

    async def _upsert(self, entry: CacheEntry) -> None:
        try:
            await self.store.upsert(entry)
            logger.info(
                "Cached '%s' (%s, %d articles)",
                entry.topic, entry.provider_label, len(entry.articles),
            )
        except Exception:
            logger.exception("Cache write failed for '%s' (%s)", entry.topic, entry.provider_label)

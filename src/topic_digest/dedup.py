"""Deduplication logic, two-stage strategy.

两阶段去重：
1. Intra-provider: one provider often returns the same story under several
   syndicated URLs, collapsed by normalized-title equality / prefix overlap.
2. Cross-provider: dual key (title prefix, host + path) across merged
   provider results. First-seen wins, so callers feed articles pre-sorted
   by desirability (newest first).
"""

import logging
import re
from collections.abc import Iterable
from urllib.parse import urlparse

from .models import Article

logger = logging.getLogger(__name__)

# Title prefix length used as the near-duplicate key
TITLE_PREFIX_LENGTH = 20


# ── Normalization / 标准化 ────────────────────────────────────────────────


def normalize_title(title: str) -> str:
    """Normalize title for fuzzy matching.

    标题标准化：小写、去标点、合并空格。
    """
    title = title.lower().strip()
    title = re.sub(r"[^\w\s]", "", title)
    title = re.sub(r"\s+", " ", title).strip()
    return title


def title_prefix(title: str) -> str:
    return normalize_title(title)[:TITLE_PREFIX_LENGTH]


def url_key(url: str) -> str:
    """Hostname + path, without scheme, www, query or trailing slash."""
    parsed = urlparse(url.strip())
    host = (parsed.hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    return f"{host}{parsed.path.rstrip('/')}"


def titles_overlap(a: str, b: str) -> bool:
    """Equal normalized titles, or one contains the other's 20-char prefix."""
    if a == b:
        return True
    if len(a) > TITLE_PREFIX_LENGTH and a[:TITLE_PREFIX_LENGTH] in b:
        return True
    if len(b) > TITLE_PREFIX_LENGTH and b[:TITLE_PREFIX_LENGTH] in a:
        return True
    return False


# ── Core Dedup Logic / 核心去重逻辑 ──────────────────────────────────────


def dedupe_within_provider(articles: Iterable[Article]) -> list[Article]:
    """Drop articles whose title matches or prefix-overlaps an earlier one."""
    result: list[Article] = []
    seen_titles: list[str] = []

    for article in articles:
        norm_title = normalize_title(article.title)
        if any(titles_overlap(norm_title, seen) for seen in seen_titles):
            logger.debug("Title dedup: dropped '%s'", article.title[:60])
            continue
        seen_titles.append(norm_title)
        result.append(article)

    return result


def dedupe_across_providers(articles: Iterable[Article]) -> list[Article]:
    """Merge-safe dedup across providers.

    An article is dropped if its full (title prefix, url key) pair or its
    title prefix alone was already accepted.
    """
    items = list(articles)
    seen_pairs: set[tuple[str, str]] = set()
    seen_prefixes: set[str] = set()
    result: list[Article] = []

    stats = {"pair": 0, "title": 0}

    for article in items:
        prefix = title_prefix(article.title)
        pair = (prefix, url_key(article.url))

        if pair in seen_pairs:
            stats["pair"] += 1
            continue
        if prefix in seen_prefixes:
            stats["title"] += 1
            continue

        seen_pairs.add(pair)
        seen_prefixes.add(prefix)
        result.append(article)

    logger.info(
        "Cross-provider dedup: %d → %d items (-%d: %d exact, %d title)",
        len(items),
        len(result),
        stats["pair"] + stats["title"],
        stats["pair"],
        stats["title"],
    )
    return result

"""Deterministic article scoring.

total = w_rel * relevance + w_rec * recency + w_q * source_quality + boost

Every component is in [0, 1]; the preferred-source boost is additive, so
total may exceed 1.
"""

import logging
import math
import re
from collections.abc import Iterable
from datetime import datetime, timezone

from .config import ScoringConfig
from .models import Article, ScoredArticle
from .sources import is_preferred_source, source_quality

logger = logging.getLogger(__name__)

# Short tokens that still carry meaning in a topic string
SHORT_KEYWORDS = frozenset({
    "ai", "us", "uk", "eu", "un", "nba", "nfl", "mlb", "nhl", "f1", "vr", "ar", "tv", "ev",
})

NEUTRAL_SCORE = 0.5


def topic_keywords(topic: str) -> list[str]:
    """Split a topic into scoring keywords."""
    words = re.split(r"\s+", topic.lower().strip())
    return [w for w in words if w and (len(w) > 2 or w in SHORT_KEYWORDS)]


def relevance_score(article: Article, topic: str) -> float:
    """Weighted keyword hits in title and description, normalized to [0, 1]."""
    keywords = topic_keywords(topic)
    if not keywords:
        return NEUTRAL_SCORE

    title = article.title.lower()
    description = article.description.lower()
    title_words = title.split()
    description_words = description.split()

    total = 0.0
    for keyword in keywords:
        if keyword in title:
            total += 3.0
        total += 2.0 * sum(1 for w in title_words if keyword in w)
        if keyword in description:
            total += 1.0
        total += 0.5 * sum(1 for w in description_words if keyword in w)

    return min(1.0, total / (len(keywords) * 3))


def parse_published(value: str) -> datetime | None:
    """Parse a provider timestamp; naive values are taken as UTC."""
    if not value:
        return None
    text = value.strip().replace("Z", "+00:00")
    # Currents uses "2024-05-01 12:00:00 +0000"
    text = re.sub(r" ([+-]\d{2})(\d{2})$", r"\1:\2", text)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def recency_score(
    article: Article,
    half_life_hours: float = 24.0,
    now: datetime | None = None,
) -> float:
    """Exponential decay halving every ``half_life_hours``, clamped to [0, 1].

    Unknown dates are neutral.
    """
    published = parse_published(article.published_at)
    if published is None:
        return NEUTRAL_SCORE
    now = now or datetime.now(timezone.utc)
    age_hours = (now - published).total_seconds() / 3600
    return max(0.0, min(1.0, math.exp(-age_hours * math.log(2) / half_life_hours)))


def score_article(
    article: Article,
    topic: str,
    config: ScoringConfig | None = None,
    now: datetime | None = None,
) -> ScoredArticle:
    config = config or ScoringConfig()

    relevance = relevance_score(article, topic)
    recency = recency_score(article, config.recency_half_life_hours, now)
    quality = source_quality(article.url, article.source_name)
    boost = (
        config.preferred_source_boost
        if is_preferred_source(article.url, article.source_name, topic)
        else 0.0
    )
    total = (
        config.relevance_weight * relevance
        + config.recency_weight * recency
        + config.source_quality_weight * quality
        + boost
    )

    return ScoredArticle(
        title=article.title,
        description=article.description,
        url=article.url,
        published_at=article.published_at,
        source_name=article.source_name,
        relevance_score=relevance,
        recency_score=recency,
        source_quality_score=quality,
        preferred_source_boost=boost,
        total_score=total,
    )


def score_articles(
    articles: Iterable[Article],
    topic: str,
    config: ScoringConfig | None = None,
    now: datetime | None = None,
) -> list[ScoredArticle]:
    """Score each article independently and sort by total score, highest first."""
    scored = [score_article(a, topic, config, now) for a in articles]
    scored.sort(key=lambda s: s.total_score, reverse=True)
    return scored


def select_top_articles(
    scored: list[ScoredArticle],
    count: int,
    threshold: float = 0.3,
) -> list[ScoredArticle]:
    """Take up to ``count`` articles, highly relevant ones first.

    At least min(count, #relevance > threshold) slots go to the highly
    relevant subset; remaining slots are filled from the rest. The result
    keeps descending total-score order.
    """
    high = [s for s in scored if s.relevance_score > threshold]
    low = [s for s in scored if s.relevance_score <= threshold]

    picked = high[:count]
    picked += low[: count - len(picked)]

    picked_ids = {id(s) for s in picked}
    selected = [s for s in scored if id(s) in picked_ids]

    logger.debug(
        "Selected %d/%d articles (%d highly relevant)",
        len(selected), len(scored), min(count, len(high)),
    )
    return selected

"""Editorial re-ranking.

A shortlist of scored articles goes to the completion service, which
assigns each a 1-10 importance score with a one-sentence reason. Any
failure (timeout, empty or malformed answer, thrown error) falls back to
the deterministic score scaled to 1-10, flagged fallback=True.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from .cache import RANKING_LABEL, ArticleCache
from .config import EditorialConfig
from .errors import CompletionServiceTimeout, MalformedCompletionResponse
from .llm import CompletionClient, extract_json_object
from .models import EditorialRanking, EditorialRankingResult, ScoredArticle

logger = logging.getLogger(__name__)

FALLBACK_MODEL = "deterministic-fallback"

_SYSTEM_PROMPT = """\
You are a senior news editor with 20+ years of experience at a major international newsroom. \
Your job is to rank news articles by genuine editorial importance for the topic "{topic}".

Exercise independent editorial judgment; do NOT simply mirror the deterministic scores provided. Consider:
- Significance: major announcements, breaking developments and paradigm shifts outrank routine updates
- Impact breadth: stories affecting millions outrank niche developments
- Novelty: genuinely new information outranks rehashed or incremental updates
- Diversity: the top results should cover different sub-stories within the topic
- Source credibility: authoritative primary sources outrank aggregators or opinion pieces

Return a JSON object with a "rankings" array. Each entry must have:
- "url": the article URL (must match exactly from input)
- "importanceScore": integer 1-10 (10 = must-read, 1 = filler)
- "reasoning": one sentence explaining why

Rank ALL provided articles. Output ONLY valid JSON, no markdown fences."""


def _clamp_importance(value: float) -> int:
    return max(1, min(10, round(value)))


def deterministic_fallback(
    candidates: list[ScoredArticle], model: str = FALLBACK_MODEL
) -> EditorialRankingResult:
    """importance = round(clamp(total * 10, 1, 10)), highest first."""
    rankings = [
        EditorialRanking(
            url=a.url,
            importance_score=_clamp_importance(a.total_score * 10),
            reasoning="Deterministic score (editorial ranking unavailable)",
        )
        for a in candidates
    ]
    rankings.sort(key=lambda r: r.importance_score, reverse=True)
    return EditorialRankingResult(rankings=rankings, model=model, fallback=True)


def build_payload(candidates: list[ScoredArticle]) -> list[dict[str, Any]]:
    """Compact per-article payload to keep the prompt small."""
    return [
        {
            "index": i,
            "title": a.title,
            "description": a.description[:200],
            "source": a.source_name,
            "publishedAt": a.published_at,
            "url": a.url,
            "deterministicScore": round(a.total_score, 2),
        }
        for i, a in enumerate(candidates)
    ]


def parse_rankings(raw: str, candidates: list[ScoredArticle]) -> list[EditorialRanking]:
    """Validate the model's ranking array.

    Entries need a known url and a numeric importanceScore; scores are
    rounded and clamped to 1-10. Raises MalformedCompletionResponse when
    nothing usable is left.
    """
    data = extract_json_object(raw)
    entries = data.get("rankings")
    if not isinstance(entries, list) or not entries:
        raise MalformedCompletionResponse("missing or empty 'rankings' array")

    known_urls = {a.url for a in candidates}
    seen: set[str] = set()
    rankings: list[EditorialRanking] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        url = entry.get("url")
        score = entry.get("importanceScore")
        if not url or url not in known_urls or url in seen:
            continue
        if isinstance(score, bool) or not isinstance(score, (int, float)):
            continue
        seen.add(url)
        rankings.append(EditorialRanking(
            url=url,
            importance_score=_clamp_importance(score),
            reasoning=str(entry.get("reasoning") or ""),
        ))

    if not rankings:
        raise MalformedCompletionResponse("no valid rankings")
    rankings.sort(key=lambda r: r.importance_score, reverse=True)
    return rankings


def reconcile_order(
    result: EditorialRankingResult,
    candidates: list[ScoredArticle],
    limit: int = 7,
) -> list[ScoredArticle]:
    """Ranking order mapped back to articles, missing inputs appended, truncated."""
    by_url = {a.url: a for a in candidates}
    ordered: list[ScoredArticle] = []
    used: set[str] = set()

    for ranking in result.rankings:
        article = by_url.get(ranking.url)
        if article is not None and ranking.url not in used:
            ordered.append(article)
            used.add(ranking.url)

    for article in candidates:
        if article.url not in used:
            ordered.append(article)
            used.add(article.url)

    return ordered[:limit]


class EditorialRanker:
    """LLM importance ranking with a deterministic fallback."""

    def __init__(
        self,
        client: CompletionClient | None,
        cache: ArticleCache | None = None,
        config: EditorialConfig | None = None,
    ) -> None:
        self.client = client
        self.cache = cache
        self.config = config or EditorialConfig()

    async def rank(self, candidates: list[ScoredArticle], topic: str) -> EditorialRankingResult:
        if not candidates:
            return EditorialRankingResult(model="none", fallback=True)
        candidates = candidates[: self.config.shortlist_size]

        cached = await self._load_cached(topic)
        if cached is not None:
            urls = {a.url for a in candidates}
            if any(r.url in urls for r in cached.rankings):
                logger.info("[Editorial] Cache hit for '%s'", topic)
                return cached
            logger.info("[Editorial] Cached ranking for '%s' matches no current article, re-ranking", topic)

        if self.client is None:
            return deterministic_fallback(candidates)

        try:
            rankings = await asyncio.wait_for(
                self._request(candidates, topic), timeout=self.config.timeout
            )
        except asyncio.TimeoutError:
            logger.warning(
                "[Editorial] Timed out after %.0fs for '%s', using deterministic fallback",
                self.config.timeout, topic,
            )
            return deterministic_fallback(candidates)
        except CompletionServiceTimeout:
            logger.warning("[Editorial] Completion timeout for '%s', using deterministic fallback", topic)
            return deterministic_fallback(candidates)
        except MalformedCompletionResponse as exc:
            logger.warning("[Editorial] %s for '%s', using deterministic fallback", exc, topic)
            return deterministic_fallback(candidates)
        except Exception as exc:
            logger.warning(
                "[Editorial] LLM call failed for '%s' (%s), using deterministic fallback", topic, exc
            )
            return deterministic_fallback(candidates)

        result = EditorialRankingResult(
            rankings=rankings,
            model=self.config.model,
            timestamp=datetime.now(timezone.utc),
            fallback=False,
        )
        logger.info("[Editorial] Ranked %d articles for '%s' via %s", len(rankings), topic, self.config.model)

        if self.cache is not None:
            await self.cache.put_document(topic, RANKING_LABEL, result.model_dump(mode="json"))
        return result

    async def _request(self, candidates: list[ScoredArticle], topic: str) -> list[EditorialRanking]:
        payload = build_payload(candidates)
        user = f'Rank these {len(payload)} articles for the topic "{topic}":\n\n{json.dumps(payload, indent=2)}'
        raw = await self.client.complete(
            model=self.config.model,
            system=_SYSTEM_PROMPT.format(topic=topic),
            user=user,
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
        )
        return parse_rankings(raw, candidates)

    async def _load_cached(self, topic: str) -> EditorialRankingResult | None:
        if self.cache is None:
            return None
        document = await self.cache.get_document(topic, RANKING_LABEL)
        if not document:
            return None
        try:
            return EditorialRankingResult.model_validate(document)
        except ValidationError:
            logger.warning("[Editorial] Ignoring malformed cached ranking for '%s'", topic)
            return None

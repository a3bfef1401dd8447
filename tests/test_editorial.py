"""Tests for editorial re-ranking and its deterministic fallback."""

import asyncio
import json

import pytest

from topic_digest.cache import RANKING_LABEL, ArticleCache, MemoryCacheStore
from topic_digest.config import EditorialConfig
from topic_digest.editorial import (
    FALLBACK_MODEL,
    EditorialRanker,
    deterministic_fallback,
    parse_rankings,
    reconcile_order,
)
from topic_digest.errors import CompletionServiceTimeout, MalformedCompletionResponse
from topic_digest.models import EditorialRanking, EditorialRankingResult, ScoredArticle


# ── Helpers ──────────────────────────────────────────────────────────────


def _scored(i: int, total: float) -> ScoredArticle:
    return ScoredArticle(
        title=f"Story {i}",
        description=f"Description for story {i}.",
        url=f"https://example.com/{i}",
        source_name="example.com",
        total_score=total,
    )


class FakeClient:
    """Stands in for CompletionClient; replays scripted responses."""

    def __init__(self, *outcomes, delay: float = 0.0):
        self.outcomes = list(outcomes)
        self.delay = delay
        self.calls = 0

    async def complete(self, **kwargs):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        outcome = self.outcomes.pop(0) if self.outcomes else ""
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _rankings_json(*pairs) -> str:
    return json.dumps({
        "rankings": [
            {"url": url, "importanceScore": score, "reasoning": "why"} for url, score in pairs
        ]
    })


CANDIDATES = [_scored(0, 0.82), _scored(1, 0.5), _scored(2, 0.05)]


# ── Fallback ─────────────────────────────────────────────────────────────


class TestDeterministicFallback:
    """确定性兜底排序"""

    def test_scaled_scores(self):
        result = deterministic_fallback(CANDIDATES)
        assert result.fallback is True
        assert result.model == FALLBACK_MODEL
        assert [r.importance_score for r in result.rankings] == [8, 5, 1]

    def test_clamped_to_ten(self):
        result = deterministic_fallback([_scored(0, 1.15)])
        assert result.rankings[0].importance_score == 10

    def test_sorted_desc(self):
        result = deterministic_fallback([_scored(0, 0.2), _scored(1, 0.9)])
        assert [r.url for r in result.rankings] == ["https://example.com/1", "https://example.com/0"]


# ── Parsing ──────────────────────────────────────────────────────────────


class TestParseRankings:
    def test_valid(self):
        raw = _rankings_json(("https://example.com/1", 9), ("https://example.com/0", 4))
        rankings = parse_rankings(raw, CANDIDATES)
        assert [(r.url, r.importance_score) for r in rankings] == [
            ("https://example.com/1", 9),
            ("https://example.com/0", 4),
        ]

    def test_unknown_urls_and_bad_scores_dropped(self):
        raw = json.dumps({"rankings": [
            {"url": "https://elsewhere.com/x", "importanceScore": 9},
            {"url": "https://example.com/0", "importanceScore": "high"},
            {"url": "https://example.com/1", "importanceScore": True},
            {"url": "https://example.com/2", "importanceScore": 12.4},
            {"url": "https://example.com/2", "importanceScore": 3},
        ]})
        rankings = parse_rankings(raw, CANDIDATES)
        assert [(r.url, r.importance_score) for r in rankings] == [("https://example.com/2", 10)]

    def test_empty_rankings(self):
        with pytest.raises(MalformedCompletionResponse):
            parse_rankings('{"rankings": []}', CANDIDATES)

    def test_nothing_usable(self):
        with pytest.raises(MalformedCompletionResponse):
            parse_rankings(_rankings_json(("https://elsewhere.com/x", 5)), CANDIDATES)


# ── Reconcile ────────────────────────────────────────────────────────────


class TestReconcileOrder:
    """排序结果映射回文章"""

    def test_missing_inputs_appended_in_original_order(self):
        result = EditorialRankingResult(
            rankings=[EditorialRanking(url="https://example.com/2", importance_score=9)],
            model="gpt-4o-mini",
        )
        ordered = reconcile_order(result, CANDIDATES)
        assert [a.url for a in ordered] == [
            "https://example.com/2",
            "https://example.com/0",
            "https://example.com/1",
        ]

    def test_truncated_to_limit(self):
        candidates = [_scored(i, 1 - i / 20) for i in range(10)]
        ordered = reconcile_order(deterministic_fallback(candidates), candidates)
        assert len(ordered) == 7
        assert len({a.url for a in ordered}) == 7


# ── Ranker ───────────────────────────────────────────────────────────────


class TestEditorialRanker:
    """LLM 排序 + 兜底"""

    def test_llm_ranking(self):
        client = FakeClient(_rankings_json(("https://example.com/2", 9), ("https://example.com/0", 6)))
        result = asyncio.run(EditorialRanker(client).rank(CANDIDATES, "nba"))
        assert result.fallback is False
        assert result.model == "gpt-4o-mini"
        assert result.rankings[0].url == "https://example.com/2"

    @pytest.mark.parametrize("outcome", [
        RuntimeError("connection reset"),
        CompletionServiceTimeout("timed out"),
        "not json at all",
        '{"rankings": []}',
        "",
    ])
    def test_failures_fall_back(self, outcome):
        """任何失败都回退到确定性排序"""
        result = asyncio.run(EditorialRanker(FakeClient(outcome)).rank(CANDIDATES, "nba"))
        assert result.fallback is True
        assert [r.importance_score for r in result.rankings] == [8, 5, 1]

    def test_timeout_falls_back(self):
        client = FakeClient(_rankings_json(("https://example.com/2", 9)), delay=1.0)
        ranker = EditorialRanker(client, config=EditorialConfig(timeout=0.05))
        result = asyncio.run(ranker.rank(CANDIDATES, "nba"))
        assert result.fallback is True
        assert result.model == FALLBACK_MODEL

    def test_no_client(self):
        assert asyncio.run(EditorialRanker(None).rank(CANDIDATES, "nba")).fallback is True

    def test_empty_candidates(self):
        client = FakeClient()
        result = asyncio.run(EditorialRanker(client).rank([], "nba"))
        assert result.rankings == []
        assert client.calls == 0

    def test_success_cached_per_topic_and_day(self):
        """同一天同一主题只调用一次 LLM"""
        async def run():
            cache = ArticleCache(MemoryCacheStore())
            client = FakeClient(_rankings_json(("https://example.com/1", 7)))
            ranker = EditorialRanker(client, cache)
            first = await ranker.rank(CANDIDATES, "nba")
            second = await ranker.rank(CANDIDATES, "nba")
            stored = await cache.get_document("nba", RANKING_LABEL)
            return client.calls, first, second, stored

        calls, first, second, stored = asyncio.run(run())
        assert calls == 1
        assert second.rankings == first.rankings
        assert second.fallback is False
        assert stored["model"] == "gpt-4o-mini"

    def test_cached_ranking_for_other_articles_is_a_miss(self):
        """缓存排序与当前候选无交集时重新排序"""
        async def run():
            cache = ArticleCache(MemoryCacheStore())
            client = FakeClient(
                _rankings_json(("https://example.com/1", 7)),
                _rankings_json(("https://example.com/11", 9)),
            )
            ranker = EditorialRanker(client, cache)
            await ranker.rank(CANDIDATES, "nba")
            fresh = [_scored(10, 0.6), _scored(11, 0.4)]
            second = await ranker.rank(fresh, "nba")
            return client.calls, second, fresh

        calls, second, fresh = asyncio.run(run())
        assert calls == 2
        assert second.fallback is False
        assert [r.url for r in second.rankings] == ["https://example.com/11"]
        assert reconcile_order(second, fresh)[0].url == "https://example.com/11"

    def test_fallback_not_cached(self):
        async def run():
            cache = ArticleCache(MemoryCacheStore())
            client = FakeClient("garbage", _rankings_json(("https://example.com/1", 7)))
            ranker = EditorialRanker(client, cache)
            first = await ranker.rank(CANDIDATES, "nba")
            second = await ranker.rank(CANDIDATES, "nba")
            return first, second

        first, second = asyncio.run(run())
        assert first.fallback is True
        assert second.fallback is False

    def test_shortlist_capped(self):
        candidates = [_scored(i, 0.5) for i in range(30)]
        result = asyncio.run(EditorialRanker(None).rank(candidates, "nba"))
        assert len(result.rankings) == 25

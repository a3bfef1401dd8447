"""Per-topic digest summarization.

One completion request per topic:
  1. Keep articles that actually mention the topic
  2. Pick up to 7 candidates with the most context (longest descriptions)
  3. Ask for strict JSON in the tier/category format (bullets or paragraph)
  4. Validate, dedup, and accept any non-zero number of entries

Rate limits and unusable responses are retried through with_retry();
when retries run out the digest is built extractively from the cleaned
article descriptions.
"""

import json
import logging
import re

from .classifier import get_style_rules
from .cleaning import clean, is_garbage
from .config import SummarizerConfig
from .dedup import normalize_title, titles_overlap
from .errors import MalformedCompletionResponse, NoRelevantArticles
from .llm import CompletionClient, extract_json_object
from .models import Article, DigestEntry, DigestSummary, StyleRules, Tier
from .retry import Ok, RetryPolicy, with_retry
from .scoring import SHORT_KEYWORDS

logger = logging.getLogger(__name__)

# Words that say nothing about what an article covers
_STOPWORDS = frozenset({
    "the", "and", "for", "with", "news", "latest", "update", "updates", "from", "about",
})

CONTENT_PREFIX_LENGTH = 100

_JSON_CONTRACT = {
    "bullets": (
        '{"summaries": [{"title": "...", "url": "...", "source": "...", '
        '"bullets": ["...", "..."]}]}'
    ),
    "paragraph": (
        '{"summaries": [{"title": "...", "url": "...", "source": "...", '
        '"summary": "..."}]}'
    ),
}


# ---------------------------------------------------------------------------
# Relevance filter
# ---------------------------------------------------------------------------

def significant_keywords(topic: str) -> list[str]:
    words = re.findall(r"[a-z0-9]+", topic.lower())
    return [
        w for w in words
        if w not in _STOPWORDS and (len(w) > 2 or w in SHORT_KEYWORDS)
    ]


def filter_relevant(articles: list[Article], topic: str) -> list[Article]:
    """Articles mentioning at least one significant topic keyword.

    Single-word topics must match as a whole word, so "ai" does not match
    "said". Multi-word topics match at a word start ("election" matches
    "elections").
    """
    keywords = significant_keywords(topic)
    if not keywords:
        return list(articles)

    if len(keywords) == 1:
        patterns = [re.compile(rf"\b{re.escape(keywords[0])}\b", re.IGNORECASE)]
    else:
        patterns = [re.compile(rf"\b{re.escape(kw)}", re.IGNORECASE) for kw in keywords]

    return [
        a for a in articles
        if any(p.search(f"{a.title} {a.description}") for p in patterns)
    ]


def select_candidates(articles: list[Article], limit: int = 7) -> list[Article]:
    """Up to ``limit`` articles, longest descriptions first."""
    return sorted(articles, key=lambda a: len(a.description), reverse=True)[:limit]


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------

def build_prompts(
    topic: str, candidates: list[Article], rules: StyleRules
) -> tuple[str, str]:
    unit = "3-4 bullet points" if rules.format == "bullets" else "a 2-3 sentence paragraph"
    system = (
        f"{rules.instructions}\n\n"
        f"Write up to {rules.count} summaries, one per distinct story, each as {unit}. "
        "Never summarize the same story twice. Use only facts from the articles.\n"
        "Respond with valid JSON only, no markdown, in exactly this shape:\n"
        f"{_JSON_CONTRACT[rules.format]}"
    )
    payload = [
        {
            "title": a.title,
            "description": a.description[:500],
            "url": a.url,
            "source": a.source_name,
            "publishedAt": a.published_at,
        }
        for a in candidates
    ]
    user = f"Topic: {topic}\n\nArticles:\n{json.dumps(payload, indent=2, ensure_ascii=False)}"
    return system, user


# ---------------------------------------------------------------------------
# Response handling
# ---------------------------------------------------------------------------

def _normalize_content(text: str) -> str:
    return normalize_title(text)[:CONTENT_PREFIX_LENGTH]


def _entry_content(entry: DigestEntry) -> str:
    return entry.summary if entry.summary else " ".join(entry.bullets or [])


def is_duplicate_entry(entry: DigestEntry, kept: list[DigestEntry]) -> bool:
    """True when entry repeats the title or leading content of a kept entry."""
    title = normalize_title(entry.title)
    if any(titles_overlap(title, normalize_title(other.title)) for other in kept):
        logger.debug("Dropped duplicate summary title '%s'", entry.title[:60])
        return True
    content = _normalize_content(_entry_content(entry))
    if content and any(content == _normalize_content(_entry_content(other)) for other in kept):
        logger.debug("Dropped duplicate summary content for '%s'", entry.title[:60])
        return True
    return False


def dedupe_entries(entries: list[DigestEntry]) -> list[DigestEntry]:
    """Drop entries repeating an earlier title or leading content."""
    result: list[DigestEntry] = []
    for entry in entries:
        if not is_duplicate_entry(entry, result):
            result.append(entry)
    return result


def parse_summaries(
    raw: str, rules: StyleRules, candidates: list[Article]
) -> list[DigestEntry]:
    """Structurally validate the model's summaries.

    Raises MalformedCompletionResponse when no entry survives.
    """
    data = extract_json_object(raw)
    items = data.get("summaries")
    if not isinstance(items, list):
        raise MalformedCompletionResponse("missing 'summaries' array")

    by_url = {a.url: a for a in candidates}
    entries: list[DigestEntry] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        title = str(item.get("title") or "").strip()
        if not title:
            continue
        url = str(item.get("url") or "")
        source = by_url[url].source_name if url in by_url else str(item.get("source") or "")

        if rules.format == "bullets":
            bullets = item.get("bullets")
            if not isinstance(bullets, list):
                continue
            bullets = [str(b).strip() for b in bullets if str(b).strip()]
            if not bullets:
                continue
            entries.append(DigestEntry(title=title, url=url, source_name=source, bullets=bullets))
        else:
            summary = item.get("summary")
            if not isinstance(summary, str) or not summary.strip():
                continue
            entries.append(DigestEntry(title=title, url=url, source_name=source, summary=summary.strip()))

    entries = dedupe_entries(entries)
    if not entries:
        raise MalformedCompletionResponse("no usable summaries")
    return entries[: rules.count]


def extractive_summaries(
    articles: list[Article], rules: StyleRules, count: int = 3, max_chars: int = 200
) -> list[DigestEntry]:
    """Fallback entries straight from the cleaned descriptions."""
    entries: list[DigestEntry] = []
    for article in articles:
        text = clean(article.description)
        if is_garbage(text):
            continue
        text = text[:max_chars].rstrip()
        if rules.format == "bullets":
            entry = DigestEntry(title=article.title, url=article.url, source_name=article.source_name, bullets=[text])
        else:
            entry = DigestEntry(title=article.title, url=article.url, source_name=article.source_name, summary=text)
        if is_duplicate_entry(entry, entries):
            continue
        entries.append(entry)
        if len(entries) >= count:
            break
    return entries


# ---------------------------------------------------------------------------
# Summarizer
# ---------------------------------------------------------------------------

class Summarizer:
    def __init__(
        self,
        client: CompletionClient | None,
        config: SummarizerConfig | None = None,
        policy: RetryPolicy | None = None,
    ) -> None:
        self.client = client
        self.config = config or SummarizerConfig()
        self.policy = policy or RetryPolicy.from_config(self.config.retry)

    async def summarize(self, topic: str, articles: list[Article], tier: Tier) -> DigestSummary:
        """Build the digest for one topic. Never raises for service failures."""
        try:
            relevant = self._relevant(topic, articles)
        except NoRelevantArticles:
            logger.warning("No articles mention '%s', returning empty digest", topic)
            return DigestSummary(topic=topic)

        category, rules = get_style_rules(topic, tier)
        candidates = select_candidates(relevant, self.config.max_candidates)
        logger.info(
            "Summarizing '%s' (%s/%s, %s): %d candidates",
            topic, category, tier, rules.format, len(candidates),
        )

        if self.client is not None:
            system, user = build_prompts(topic, candidates, rules)

            async def attempt() -> list[DigestEntry]:
                raw = await self.client.complete(
                    model=self.config.model,
                    system=system,
                    user=user,
                    temperature=self.config.temperature,
                    max_tokens=self.config.max_tokens,
                )
                return parse_summaries(raw, rules, candidates)

            outcome = await with_retry(attempt, self.policy)
            if isinstance(outcome, Ok):
                logger.info("Summarized '%s': %d entries", topic, len(outcome.value))
                return DigestSummary(topic=topic, summaries=outcome.value)
            logger.warning(
                "Summarization for '%s' exhausted after %d attempt(s) (%s), using extractive fallback",
                topic, outcome.attempts, outcome.error,
            )

        entries = extractive_summaries(
            candidates, rules, self.config.fallback_count, self.config.fallback_chars
        )
        return DigestSummary(topic=topic, summaries=entries, fallback=True)

    @staticmethod
    def _relevant(topic: str, articles: list[Article]) -> list[Article]:
        relevant = filter_relevant(articles, topic)
        if not relevant:
            raise NoRelevantArticles(topic)
        return relevant

"""Source quality model.

Static reputation tiers for news domains, plus per-topic preferred
sources. Matching is by substring against both the article URL and the
provider-reported source name.
"""

# ── Reputation tiers / 来源信誉分级 ──────────────────────────────────────

SOURCE_QUALITY_TIERS: list[tuple[float, tuple[str, ...]]] = [
    # Wire services and papers of record
    (1.0, (
        "reuters.com", "apnews.com", "bbc.com", "bbc.co.uk", "npr.org",
        "theguardian.com", "wsj.com", "nytimes.com", "washingtonpost.com",
        "economist.com", "bloomberg.com", "ft.com",
    )),
    (0.8, (
        "cnn.com", "axios.com", "politico.com", "theatlantic.com", "forbes.com",
        "cnbc.com", "techcrunch.com", "theverge.com", "arstechnica.com",
        "wired.com", "espn.com", "cbssports.com", "si.com", "nature.com",
        "sciencedaily.com",
    )),
    (0.6, (
        "usatoday.com", "latimes.com", "chicagotribune.com", "huffpost.com",
        "businessinsider.com", "marketwatch.com", "engadget.com",
        "mashable.com", "bleacherreport.com",
    )),
]

DEFAULT_SOURCE_QUALITY = 0.4

# ── Preferred sources per topic / 主题优选来源 ─────────────────────────────
# Ordered: more specific keys first, the first key contained in the topic wins.

TOPIC_SOURCES: dict[str, list[str]] = {
    # Sports
    "nba": ["espn.com", "nba.com", "sports.yahoo.com", "bleacherreport.com", "theathletic.com"],
    "nfl": ["espn.com", "nfl.com", "sports.yahoo.com", "bleacherreport.com", "theathletic.com"],
    "soccer": ["espn.com", "theguardian.com", "goal.com", "skysports.com", "fifa.com"],
    "tennis": ["espn.com", "atptour.com", "wta.com", "tennis.com", "sports.yahoo.com"],
    # Technology
    "artificial intelligence": ["wired.com", "technologyreview.com", "arstechnica.com", "techcrunch.com", "theverge.com"],
    "cybersecurity": ["wired.com", "krebsonsecurity.com", "darkreading.com", "zdnet.com", "thehackernews.com"],
    "space exploration": ["nasa.gov", "space.com", "scientificamerican.com", "nature.com", "science.org"],
    "tech": ["techcrunch.com", "theverge.com", "wired.com", "arstechnica.com", "reuters.com"],
    # Business and finance
    "stock market": ["bloomberg.com", "wsj.com", "reuters.com", "cnbc.com", "ft.com"],
    "cryptocurrency": ["coindesk.com", "cointelegraph.com", "bloomberg.com", "wsj.com", "reuters.com"],
    "crypto": ["coindesk.com", "cointelegraph.com", "bloomberg.com", "wsj.com", "reuters.com"],
    "startups": ["techcrunch.com", "venturebeat.com", "bloomberg.com", "wsj.com", "reuters.com"],
    "business": ["bloomberg.com", "wsj.com", "reuters.com", "cnbc.com", "ft.com"],
    # Politics
    "us politics": ["politico.com", "reuters.com", "apnews.com", "washingtonpost.com", "nytimes.com"],
    "global politics": ["reuters.com", "apnews.com", "bbc.com", "theguardian.com", "foreignpolicy.com"],
    "politics": ["politico.com", "reuters.com", "apnews.com", "washingtonpost.com", "nytimes.com"],
    # Science and health
    "medical research": ["nature.com", "science.org", "scientificamerican.com", "statnews.com", "reuters.com"],
    "climate": ["nature.com", "science.org", "scientificamerican.com", "reuters.com", "theguardian.com"],
    "mental health": ["reuters.com", "apnews.com", "statnews.com", "scientificamerican.com", "psychologytoday.com"],
    "fitness": ["reuters.com", "apnews.com", "menshealth.com", "womenshealthmag.com", "shape.com"],
    # Entertainment and culture
    "movies": ["variety.com", "hollywoodreporter.com", "deadline.com", "indiewire.com", "reuters.com"],
    "music": ["billboard.com", "pitchfork.com", "rollingstone.com", "reuters.com", "apnews.com"],
    "video games": ["polygon.com", "kotaku.com", "ign.com", "gamespot.com", "reuters.com"],
    "esports": ["espn.com", "polygon.com", "kotaku.com", "ign.com", "gamespot.com"],
    "art": ["artnews.com", "artforum.com", "reuters.com", "apnews.com", "nytimes.com"],
    "literature": ["nytimes.com", "theguardian.com", "reuters.com", "apnews.com", "publishersweekly.com"],
    # World
    "europe": ["reuters.com", "apnews.com", "bbc.com", "theguardian.com", "politico.eu"],
    "asia": ["reuters.com", "apnews.com", "scmp.com", "japantimes.co.jp", "straitstimes.com"],
    "world news": ["reuters.com", "apnews.com", "bbc.com", "theguardian.com", "nytimes.com"],
}

DEFAULT_SOURCES = ["reuters.com", "apnews.com", "bloomberg.com", "wsj.com", "nytimes.com"]


def get_sources_for_topic(topic: str) -> list[str]:
    """Return the preferred source domains for a topic."""
    normalized = topic.lower().strip()
    for key, sources in TOPIC_SOURCES.items():
        if key in normalized:
            return sources
    return DEFAULT_SOURCES


def _matches(domain: str, url: str, source_name: str) -> bool:
    return domain in url or domain in source_name


def source_quality(url: str, source_name: str) -> float:
    """Tier score for an article's domain or source name."""
    url = url.lower()
    source_name = source_name.lower()
    for score, domains in SOURCE_QUALITY_TIERS:
        if any(_matches(d, url, source_name) for d in domains):
            return score
    return DEFAULT_SOURCE_QUALITY


def is_preferred_source(url: str, source_name: str, topic: str) -> bool:
    url = url.lower()
    source_name = source_name.lower()
    return any(_matches(d, url, source_name) for d in get_sources_for_topic(topic))

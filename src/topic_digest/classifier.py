"""Topic classification and style profile lookup."""

import logging
import re
from functools import lru_cache
from pathlib import Path

import yaml

from .models import StyleRules, Tier, TopicStyleProfile

logger = logging.getLogger(__name__)

STYLES_PATH = Path(__file__).with_name("styles.yaml")
DEFAULT_CATEGORY = "default"

# Keywords this short must match a whole word ("ai" must not match "mountain")
_SHORT_KEYWORD_LENGTH = 3


@lru_cache(maxsize=None)
def load_style_profiles(path: Path = STYLES_PATH) -> dict[str, TopicStyleProfile]:
    """Load the ordered category → profile table."""
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    profiles = {
        category: TopicStyleProfile(category=category, **body)
        for category, body in data.items()
    }
    if DEFAULT_CATEGORY not in profiles:
        raise ValueError(f"{path} has no '{DEFAULT_CATEGORY}' profile")
    return profiles


def _keyword_in(keyword: str, topic: str) -> bool:
    if len(keyword) <= _SHORT_KEYWORD_LENGTH:
        return re.search(rf"\b{re.escape(keyword)}\b", topic) is not None
    return keyword in topic


def classify_topic(topic: str, profiles: dict[str, TopicStyleProfile] | None = None) -> str:
    """First category with a keyword contained in the topic, else 'default'."""
    profiles = profiles or load_style_profiles()
    normalized = topic.lower().strip()
    for category, profile in profiles.items():
        if any(_keyword_in(kw.lower(), normalized) for kw in profile.keywords):
            return category
    return DEFAULT_CATEGORY


def get_style_profile(topic: str) -> TopicStyleProfile:
    profiles = load_style_profiles()
    category = classify_topic(topic, profiles)
    logger.debug("Topic '%s' classified as %s", topic, category)
    return profiles[category]


def get_style_rules(topic: str, tier: Tier) -> tuple[str, StyleRules]:
    """(category, tier-specific rules) for a topic."""
    profile = get_style_profile(topic)
    return profile.category, profile.for_tier(tier)

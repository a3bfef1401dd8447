"""NewsAPI provider.

Developer plan: 100 requests/day.
API docs: https://newsapi.org/docs/endpoints/everything
"""

import logging
from typing import Any

from ..models import Article
from .base import BaseProvider

logger = logging.getLogger(__name__)


class NewsApiProvider(BaseProvider):
    """NewsAPI `/everything` adapter (secondary provider by default)."""

    name = "newsapi"

    def build_request(self, topic: str, from_date: str) -> tuple[str, dict[str, Any]]:
        return f"{self.config.base_url}/everything", {
            "q": topic,
            "from": from_date,
            "sortBy": "publishedAt",
            "language": self.config.language,
            "pageSize": self.config.page_size,
            "apiKey": self.api_key,
        }

    def extract_records(self, data: dict[str, Any]) -> list[dict[str, Any]]:
        return data.get("articles") or []

    def to_article(self, record: dict[str, Any]) -> Article | None:
        url = record.get("url") or ""
        title = (record.get("title") or "").strip()
        # NewsAPI marks takedowns with a "[Removed]" title
        if not url or not title or title == "[Removed]":
            return None
        # content is usually longer than description
        text = record.get("content") or record.get("description") or ""
        source = record.get("source") or {}
        return Article(
            title=title,
            description=self.clean_text(text),
            url=url,
            published_at=record.get("publishedAt") or "",
            source_name=source.get("name") or "Unknown source",
        )

"""Currents API provider.

Free tier 600 requests/day, pro tier 50,000/day.
API docs: https://currentsapi.services/en/docs/
"""

import logging
from typing import Any

from ..models import Article
from .base import BaseProvider

logger = logging.getLogger(__name__)

PRO_DAILY_QUOTA = 50_000


class CurrentsProvider(BaseProvider):
    """Currents API `/search` adapter (primary provider by default)."""

    name = "currents"

    def build_request(self, topic: str, from_date: str) -> tuple[str, dict[str, Any]]:
        # Periods break Currents' keyword matching ("U.S." -> "US")
        keywords = topic.replace(".", "")
        return f"{self.config.base_url}/search", {
            "keywords": keywords,
            "start_date": from_date,
            "language": self.config.language,
            "page_size": self.config.page_size,
            "apiKey": self.api_key,
        }

    def extract_records(self, data: dict[str, Any]) -> list[dict[str, Any]]:
        return data.get("news") or []

    def to_article(self, record: dict[str, Any]) -> Article | None:
        url = record.get("url") or ""
        title = (record.get("title") or "").strip()
        if not url or not title:
            return None
        return Article(
            title=title,
            description=self.clean_text(record.get("description")),
            url=url,
            published_at=record.get("published") or "",
            source_name=record.get("domain_url") or "Unknown source",
        )

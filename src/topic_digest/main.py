"""Scheduled job entry point.

Warms the article and summary caches for the configured topics:
  1. Load config → 2. Fetch all topics in batches → 3. Summarize both tiers
"""

import asyncio
import logging
import sys

from .config import load_config
from .digest import DigestService
from .errors import ConfigurationError

logger = logging.getLogger(__name__)


def _setup_logging() -> None:
    """Configure logging to stdout."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


async def _warm(service: DigestService, topics: list[str]) -> dict:
    try:
        return await service.warm(topics)
    finally:
        await service.close()


def run(config_path: str = "config.yaml", topics: list[str] | None = None) -> None:
    """Execute the cache-warming job."""
    _setup_logging()
    logger.info("=" * 60)
    logger.info("Topic Digest - Cache Warming")
    logger.info("=" * 60)

    config, settings = load_config(config_path)
    topics = topics or config.topics
    if not topics:
        logger.warning("No topics configured. Exiting.")
        return

    logger.info(
        "Config loaded: providers=%s→%s, editorial=%s, %d topics",
        config.providers.primary, config.providers.secondary,
        config.editorial.model, len(topics),
    )

    try:
        service = DigestService.from_config(config, settings)
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        sys.exit(2)

    stats = asyncio.run(_warm(service, topics))

    for error in stats["errors"]:
        logger.warning("  - %s", error)
    logger.info("=" * 60)
    logger.info(
        "Done! %d/%d topics warmed, %d summaries cached",
        stats["successful"], stats["total"], stats["cached"],
    )
    logger.info("=" * 60)

    if stats["successful"] == 0:
        sys.exit(1)


def cli() -> None:
    """CLI entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="Topic Digest - warm article and summary caches")
    parser.add_argument(
        "-c", "--config",
        default="config.yaml",
        help="Path to config.yaml (default: config.yaml)",
    )
    parser.add_argument(
        "topics",
        nargs="*",
        help="Topics to warm (default: topics from config.yaml)",
    )
    args = parser.parse_args()
    run(config_path=args.config, topics=args.topics)


if __name__ == "__main__":
    cli()

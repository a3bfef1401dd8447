"""News-search provider adapters.

Provider registry: maps provider names to their classes.
新增 provider 只需：1) 写 provider 文件  2) 在此注册  3) 在 config.yaml 配置。
"""

import httpx

from ..config import AppConfig, Settings
from ..errors import ConfigurationError
from ..quota import QuotaTracker
from .base import BaseProvider
from .currents import PRO_DAILY_QUOTA, CurrentsProvider
from .newsapi import NewsApiProvider

# Provider registry: name -> class
REGISTRY: dict[str, type[BaseProvider]] = {
    "currents": CurrentsProvider,
    "newsapi": NewsApiProvider,
}


def build_providers(
    config: AppConfig,
    settings: Settings,
    quota: QuotaTracker,
    client: httpx.AsyncClient | None = None,
) -> dict[str, BaseProvider]:
    """Instantiate the configured primary and secondary providers.

    Raises ConfigurationError for an unknown provider or a missing API key.
    """
    api_keys = {
        "currents": settings.currents_api_key,
        "newsapi": settings.news_api_key,
    }
    providers: dict[str, BaseProvider] = {}

    for name in (config.providers.primary, config.providers.secondary):
        if name in providers:
            continue
        cls = REGISTRY.get(name)
        provider_config = getattr(config.providers, name, None)
        if cls is None or provider_config is None:
            raise ConfigurationError(f"Unknown provider: {name}")
        if not provider_config.enabled:
            continue
        if name == "currents" and settings.currents_api_tier == "pro":
            provider_config = provider_config.model_copy(update={"daily_quota": PRO_DAILY_QUOTA})
        providers[name] = cls(
            api_key=api_keys.get(name, ""),
            config=provider_config,
            quota=quota,
            client=client,
        )

    return providers


__all__ = [
    "BaseProvider",
    "REGISTRY",
    "CurrentsProvider",
    "NewsApiProvider",
    "build_providers",
]

"""Factory for creating topic providers."""

import logging
from collections.abc import Callable

from config.settings import AppConfig
from models.providers import OpenRouterProvider

from .ai_topic_provider import AITopicProvider
from .base import TopicProvider
from .static_provider import StaticTopicProvider

logger = logging.getLogger(__name__)


def create_topic_provider(
    config: AppConfig,
    recent_titles: Callable[[int], list[str]] | None = None,
) -> TopicProvider:
    """Build the configured topic provider."""
    settings = config.topics

    if settings.provider == "static":
        logger.info("Using curated static topic provider")
        return StaticTopicProvider(
            recent_titles=recent_titles,
            recent_battle_window=settings.recent_battle_window,
            similarity_threshold=settings.similarity_threshold,
        )

    if settings.provider == "openrouter":
        logger.info(f"Using AI topic provider with model: {settings.model}")
        return AITopicProvider(
            provider=OpenRouterProvider(config.system),
            settings=settings,
            recent_titles=recent_titles,
        )

    raise ValueError(f"Unknown topic provider: {settings.provider}")

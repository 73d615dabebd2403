"""Debate topic providers."""

from .ai_topic_provider import AITopicProvider
from .base import TopicGenerationError, TopicProvider, is_rate_limit_message
from .factory import create_topic_provider
from .static_provider import StaticTopicProvider

__all__ = [
    "AITopicProvider",
    "StaticTopicProvider",
    "TopicGenerationError",
    "TopicProvider",
    "create_topic_provider",
    "is_rate_limit_message",
]

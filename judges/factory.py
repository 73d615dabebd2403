"""Factory for creating the configured judge."""

import logging

from config.settings import AppConfig
from models.providers import BaseModelProvider, OpenRouterProvider

from .ai_judge import AIJudge
from .base import BaseJudge
from .engagement_judge import EngagementJudge
from .remote_judge import RemoteJudge

logger = logging.getLogger(__name__)


def create_judge(config: AppConfig, provider: BaseModelProvider | None = None) -> BaseJudge:
    """Factory function to create the judge named in the judging settings."""
    settings = config.judging

    if settings.provider == "engagement":
        logger.info("Creating engagement judge")
        return EngagementJudge()

    if settings.provider == "ai":
        logger.info(f"Creating AI judge with model: {settings.model}")
        return AIJudge(
            provider=provider or OpenRouterProvider(config.system),
            judge_model_name=settings.model,
        )

    if settings.provider == "remote":
        if not settings.remote_url:
            raise ValueError("Remote judging requires judging.remote_url")
        logger.info(f"Creating remote judge at {settings.remote_url}")
        return RemoteJudge(
            base_url=settings.remote_url,
            api_key=settings.remote_api_key or config.system.worker_api_key,
            timeout=settings.timeout,
            max_retries=settings.max_retries,
        )

    raise ValueError(f"Unknown judge provider: {settings.provider}")

"""AI-generated debate topics via an OpenRouter chat model."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from pydantic import ValidationError

from battles.models import DebatePoints, Topic
from config.settings import TopicSettings
from models.json_response import parse_json_object
from models.providers import BaseModelProvider, ProviderRateLimitError

from .base import (
    TopicGenerationError,
    TopicProvider,
    is_rate_limit_message,
    jaccard_similarity,
    validate_topic,
)

logger = logging.getLogger(__name__)

# Prompt variation per attempt so retries don't keep producing the same topic
ATTEMPT_STRATEGIES = [
    "Pick the single most debated current-affairs story of the day.",
    "Pick a story from a different category than politics, such as technology, health or economics.",
    "Pick a broader, evergreen question that is still tied to recent news.",
]

SYSTEM_PROMPT = """You curate daily debate battles. Each battle is one clear, arguable
proposition drawn from current news that reasonable people can argue both for and against.
Respond with a single JSON object and nothing else."""


class AITopicProvider(TopicProvider):
    """Generates novel debate topics with an LLM, retrying with backoff."""

    def __init__(
        self,
        provider: BaseModelProvider,
        settings: TopicSettings,
        recent_titles: Callable[[int], list[str]] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.provider = provider
        self.settings = settings
        self.recent_titles = recent_titles
        self._sleep = sleep

    @property
    def name(self) -> str:
        return f"AI Topics ({self.settings.model})"

    async def get_daily_topic(self) -> Topic:
        max_attempts = self.settings.max_attempts
        last_error: Exception | None = None

        for attempt in range(1, max_attempts + 1):
            logger.info(f"Attempt {attempt}/{max_attempts}: generating battle topic")
            try:
                topic = await self._generate_topic(attempt)

                problems = validate_topic(topic)
                if problems:
                    raise ValueError(f"Generated topic failed validation: {'; '.join(problems)}")

                similarity = self._max_similarity(topic.title)
                if similarity >= self.settings.similarity_threshold:
                    raise ValueError(
                        f"Topic too similar to a recent battle ({similarity:.2f}): {topic.title}"
                    )

                logger.info(f"Generated unique topic on attempt {attempt}: {topic.title}")
                return topic

            except ProviderRateLimitError as e:
                # Stop retrying immediately to avoid further API abuse
                logger.warning(f"Topic generation rate limited: {e}")
                raise TopicGenerationError(f"429 rate limit while generating topic: {e}") from e

            except (ValueError, RuntimeError) as e:
                last_error = e
                logger.warning(f"Topic attempt {attempt}/{max_attempts} failed: {e}")
                if is_rate_limit_message(str(e)):
                    break

            if attempt < max_attempts:
                delay = self.settings.retry_base_delay * (2 ** (attempt - 1))
                logger.info(f"Waiting {delay:.1f}s before next topic attempt")
                await self._sleep(delay)

        raise TopicGenerationError(
            f"Failed to generate battle topic after {max_attempts} attempts: {last_error}"
        )

    async def _generate_topic(self, attempt: int) -> Topic:
        strategy = ATTEMPT_STRATEGIES[min(attempt, len(ATTEMPT_STRATEGIES)) - 1]
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": self._create_topic_prompt(strategy)},
        ]
        response = await self.provider.generate_response(
            self.settings.model, messages, max_tokens=800, temperature=0.8
        )

        data = parse_json_object(response)
        points = data.get("debate_points") or data.get("debatePoints") or {}
        try:
            return Topic(
                title=str(data["title"]).strip(),
                description=str(data["description"]).strip(),
                category=str(data.get("category", "general")).strip().lower(),
                source=str(data.get("source") or "AI Generated"),
                source_url=data.get("source_url") or data.get("sourceUrl"),
                debate_points=DebatePoints(
                    support=points.get("support") or points.get("Support") or [],
                    oppose=points.get("oppose") or points.get("Oppose") or [],
                ),
            )
        except (KeyError, ValidationError) as e:
            raise ValueError(f"Topic response missing fields: {e}") from e

    def _create_topic_prompt(self, strategy: str) -> str:
        recent = self._recent_titles()
        avoid = "\n".join(f"- {title}" for title in recent) or "- (none)"
        return f"""Create today's debate battle topic.

STRATEGY: {strategy}

AVOID TOPICS SIMILAR TO THESE RECENT BATTLES:
{avoid}

Return JSON in exactly this shape:
{{
  "title": "10-200 character debate proposition",
  "description": "20-1000 character neutral summary of the news context",
  "category": "politics | technology | economics | society | environment | health | education | sports | crypto",
  "source": "publication or outlet name",
  "source_url": "https://... or null",
  "debate_points": {{
    "support": ["at least two arguments in favour"],
    "oppose": ["at least two arguments against"]
  }}
}}"""

    def _recent_titles(self) -> list[str]:
        if self.recent_titles is None:
            return []
        return self.recent_titles(self.settings.recent_battle_window)

    def _max_similarity(self, title: str) -> float:
        scores = [jaccard_similarity(title, recent) for recent in self._recent_titles()]
        return max(scores, default=0.0)

"""Base classes and helpers for debate topic providers."""

import logging
import re
from abc import ABC, abstractmethod

from battles.models import Topic

logger = logging.getLogger(__name__)

RATE_LIMIT_MARKERS = ("429", "rate limit", "failed to generate battle topic after")

VALID_CATEGORIES = frozenset(
    {
        "politics",
        "technology",
        "economics",
        "economy",
        "society",
        "environment",
        "health",
        "education",
        "sports",
        "crypto",
        "general",
    }
)


def is_rate_limit_message(message: str) -> bool:
    """Whether an error message signals that topic generation should back off."""
    lowered = message.lower()
    return any(marker in lowered for marker in RATE_LIMIT_MARKERS)


class TopicGenerationError(RuntimeError):
    """Topic provider could not produce a topic."""

    @property
    def is_rate_limited(self) -> bool:
        return is_rate_limit_message(str(self))


def jaccard_similarity(first: str, second: str) -> float:
    """Word-set Jaccard similarity of two titles, 0.0 to 1.0."""
    words1 = set(re.findall(r"\w+", first.lower()))
    words2 = set(re.findall(r"\w+", second.lower()))
    union = words1 | words2
    if not union:
        return 0.0
    return len(words1 & words2) / len(union)


def validate_topic(topic: Topic) -> list[str]:
    """Return a list of quality problems; empty means the topic is usable."""
    problems = []
    if not 10 <= len(topic.title) <= 200:
        problems.append(f"title length {len(topic.title)} outside 10-200")
    if not 20 <= len(topic.description) <= 1000:
        problems.append(f"description length {len(topic.description)} outside 20-1000")
    if topic.category.lower() not in VALID_CATEGORIES:
        problems.append(f"invalid category '{topic.category}'")

    points = topic.debate_points
    if len(points.support) < 2 or len(points.oppose) < 2:
        problems.append("needs at least two debate points per side")
    elif any(len(point) < 10 for point in points.support + points.oppose):
        problems.append("debate points too short")

    return problems


class TopicProvider(ABC):
    """Source of debate topics for new battles."""

    @abstractmethod
    async def get_daily_topic(self) -> Topic:
        """Return a validated topic or raise TopicGenerationError."""
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        pass

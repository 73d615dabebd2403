"""Curated offline topic list for development and tests."""

import logging
import random
from collections.abc import Callable

from battles.models import DebatePoints, Topic

from .base import TopicGenerationError, TopicProvider, jaccard_similarity

logger = logging.getLogger(__name__)

# Curated debate topics with opposing prompts
CURATED_TOPICS = [
    Topic(
        title="Technology companies should be broken up to prevent monopolies",
        description="Regulators on several continents are weighing structural remedies against the largest platform companies.",
        category="technology",
        source="Curated",
        debate_points=DebatePoints(
            support=[
                "Concentrated market power suppresses competing startups",
                "Platform owners compete unfairly against their own sellers",
            ],
            oppose=[
                "Scale lets companies fund research smaller firms cannot afford",
                "Breakups would fragment services consumers rely on",
            ],
        ),
    ),
    Topic(
        title="Universal basic income should be implemented nationally",
        description="Pilot programmes have reported mixed results on employment, wellbeing and cost.",
        category="economics",
        source="Curated",
        debate_points=DebatePoints(
            support=[
                "A guaranteed floor reduces poverty and administrative overhead",
                "Automation is shrinking the number of stable jobs",
            ],
            oppose=[
                "The fiscal cost would require large tax increases",
                "Targeted benefits help those in need more efficiently",
            ],
        ),
    ),
    Topic(
        title="Artificial intelligence development should be regulated by government",
        description="Lawmakers are drafting rules for frontier AI models covering safety testing and disclosure.",
        category="technology",
        source="Curated",
        debate_points=DebatePoints(
            support=[
                "Powerful systems carry risks markets will not price in",
                "Clear rules build public trust in new technology",
            ],
            oppose=[
                "Regulation entrenches incumbents who can afford compliance",
                "Lawmakers cannot keep pace with fast-moving research",
            ],
        ),
    ),
    Topic(
        title="Nuclear energy is essential for achieving carbon neutrality",
        description="Several countries are extending reactor lifetimes while others continue phase-out plans.",
        category="environment",
        source="Curated",
        debate_points=DebatePoints(
            support=[
                "Reactors provide reliable low-carbon baseload power",
                "Modern designs have strong safety records",
            ],
            oppose=[
                "Renewables plus storage are now cheaper and faster to build",
                "Long-term waste storage remains unsolved",
            ],
        ),
    ),
    Topic(
        title="Social media platforms should be treated as public utilities",
        description="Debates over content moderation have revived proposals to regulate platforms like utilities.",
        category="society",
        source="Curated",
        debate_points=DebatePoints(
            support=[
                "Platforms have become essential public communication infrastructure",
                "Utility rules would guarantee fair and equal access",
            ],
            oppose=[
                "Utility regulation would freeze innovation in place",
                "Government oversight of speech platforms invites abuse",
            ],
        ),
    ),
    Topic(
        title="Remote work will fundamentally improve society",
        description="Employers are split between return-to-office mandates and permanently distributed teams.",
        category="society",
        source="Curated",
        debate_points=DebatePoints(
            support=[
                "Eliminating commutes returns hours to workers every week",
                "Talent outside expensive cities gains access to good jobs",
            ],
            oppose=[
                "Junior employees lose mentorship and informal learning",
                "City centres and local businesses suffer from empty offices",
            ],
        ),
    ),
    Topic(
        title="Cryptocurrency will replace traditional banking systems",
        description="Stablecoin adoption and central bank digital currencies are reshaping payments.",
        category="crypto",
        source="Curated",
        debate_points=DebatePoints(
            support=[
                "Open networks settle payments globally without intermediaries",
                "Self-custody protects savers from bank failures",
            ],
            oppose=[
                "Price volatility makes crypto unsuitable as everyday money",
                "Banks provide credit and consumer protections crypto lacks",
            ],
        ),
    ),
    Topic(
        title="Healthcare should be a human right regardless of cost",
        description="Rising treatment costs are renewing arguments over universal coverage models.",
        category="health",
        source="Curated",
        debate_points=DebatePoints(
            support=[
                "Access to care should not depend on income",
                "Preventive care lowers long-term public spending",
            ],
            oppose=[
                "Unlimited entitlement leads to rationing and waiting lists",
                "Market incentives drive medical innovation",
            ],
        ),
    ),
    Topic(
        title="Education should be completely personalized using AI",
        description="Schools are piloting AI tutors that adapt lessons to each student's pace.",
        category="education",
        source="Curated",
        debate_points=DebatePoints(
            support=[
                "Adaptive tutoring lets every student learn at their own pace",
                "Teachers are freed to focus on mentoring and discussion",
            ],
            oppose=[
                "Learning is social and cannot be reduced to software",
                "Student data collection raises serious privacy concerns",
            ],
        ),
    ),
    Topic(
        title="Professional athletes should be allowed to use performance enhancers",
        description="Sports bodies are reconsidering testing regimes as medical monitoring improves.",
        category="sports",
        source="Curated",
        debate_points=DebatePoints(
            support=[
                "Supervised use is safer than the current hidden doping",
                "Athletes already use many legal performance technologies",
            ],
            oppose=[
                "Fair competition depends on a level biological playing field",
                "Young athletes would feel pressure to risk their health",
            ],
        ),
    ),
]


class StaticTopicProvider(TopicProvider):
    """Picks a curated topic not used by a recent battle."""

    def __init__(
        self,
        topics: list[Topic] | None = None,
        recent_titles: Callable[[int], list[str]] | None = None,
        recent_battle_window: int = 10,
        similarity_threshold: float = 0.6,
        rng: random.Random | None = None,
    ):
        self.topics = topics if topics is not None else CURATED_TOPICS
        self.recent_titles = recent_titles
        self.recent_battle_window = recent_battle_window
        self.similarity_threshold = similarity_threshold
        self._rng = rng or random.Random()

    @property
    def name(self) -> str:
        return "Curated Topics"

    async def get_daily_topic(self) -> Topic:
        if not self.topics:
            raise TopicGenerationError("No curated topics configured")

        recent = self.recent_titles(self.recent_battle_window) if self.recent_titles else []
        candidates = [
            topic
            for topic in self.topics
            if all(jaccard_similarity(topic.title, title) < self.similarity_threshold for title in recent)
        ]
        if not candidates:
            logger.info("All curated topics used recently, reusing the full list")
            candidates = self.topics

        topic = self._rng.choice(candidates)
        logger.info(f"Selected curated topic: {topic.title}")
        return topic.model_copy(deep=True)

"""AI-powered battle judge using language models."""

import logging
import time

from battles.models import Battle, Cast
from models.json_response import parse_json_object
from models.providers import BaseModelProvider

from .base import BaseJudge, JudgeResult, JudgingError, WinnerSelection

logger = logging.getLogger(__name__)

SCORING_WEIGHTS = {"quality": 0.4, "engagement": 0.3, "relevance": 0.3}


class AIJudge(BaseJudge):
    """AI judge scoring casts on quality, engagement and relevance."""

    def __init__(self, provider: BaseModelProvider, judge_model_name: str):
        self.provider = provider
        self.judge_model_name = judge_model_name

    @property
    def name(self) -> str:
        return f"AI Judge ({self.judge_model_name})"

    async def judge(self, battle: Battle, casts: list[Cast]) -> JudgeResult:
        """Evaluate the battle using the AI judge model."""
        if not casts:
            return JudgeResult(winner=None, metadata={"reason": "no casts"})

        logger.info(f"AI judge evaluating battle {battle.id}: {battle.title}")

        messages = [
            {"role": "system", "content": self._get_judge_system_prompt()},
            {"role": "user", "content": self._create_evaluation_prompt(battle, casts)},
        ]

        start_time = time.time()
        try:
            evaluation = await self.provider.generate_response(
                self.judge_model_name, messages, max_tokens=1500, temperature=0.3
            )
        except Exception as e:
            logger.error(f"AI judge evaluation failed: {e}")
            raise JudgingError(f"Judge evaluation failed: {e}") from e
        generation_time_ms = int((time.time() - start_time) * 1000)

        return self._parse_evaluation(evaluation, casts, generation_time_ms)

    def _get_judge_system_prompt(self) -> str:
        return """You are an impartial judge for a public debate battle. Participants submit short
arguments supporting or opposing a proposition, and the community can like arguments.

JUDGING PRINCIPLES:
1. Quality: logic, evidence and clarity of the argument
2. Engagement: community likes, as a signal of persuasiveness
3. Relevance: how directly the argument addresses the proposition
4. Judge the argument, not the author

You must respond with a single JSON object that can be parsed programmatically."""

    def _create_evaluation_prompt(self, battle: Battle, casts: list[Cast]) -> str:
        cast_lines = []
        for cast in casts:
            cast_lines.append(
                f"[{cast.id}] side={cast.side.value} likes={cast.like_count}\n{cast.content}"
            )
        available_ids = ", ".join(cast.id for cast in casts)
        weights = ", ".join(f"{name} {weight}" for name, weight in SCORING_WEIGHTS.items())

        return f"""BATTLE TOPIC: {battle.title}
CONTEXT: {battle.description}

SCORING WEIGHTS: {weights}

ARGUMENTS:
{chr(10).join(cast_lines)}

Available cast IDs: {available_ids}

Respond with valid JSON in exactly this format:
{{
  "winner": {{
    "cast_id": "MUST be one of: {available_ids}",
    "total_score": 8.5,
    "reasoning": "why this argument won"
  }},
  "analysis": "short overall analysis"
}}"""

    def _parse_evaluation(
        self, evaluation: str, casts: list[Cast], generation_time_ms: int
    ) -> JudgeResult:
        try:
            data = parse_json_object(evaluation)
            winner_data = data["winner"]
            cast_id = str(winner_data.get("cast_id") or winner_data.get("castId"))
            reasoning = winner_data.get("reasoning", "")
            if not isinstance(reasoning, str):
                logger.warning(f"Converting non-string reasoning: {type(reasoning)}")
                reasoning = str(reasoning)
            score = winner_data.get("total_score")
            score = float(score) if score is not None else None
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.error(f"Failed to parse AI judge evaluation: {e}")
            logger.debug(f"Raw evaluation: {evaluation}")
            raise JudgingError(f"Failed to parse judge evaluation: {e}") from e

        winning_cast = self._find_cast(casts, cast_id)
        logger.info(f"AI judge picked cast {winning_cast.id} ({winning_cast.side.value})")

        return JudgeResult(
            winner=WinnerSelection(
                user_id=winning_cast.user_id,
                cast_id=winning_cast.id,
                side=winning_cast.side,
                selection_method="hybrid",
                selection_reason=reasoning,
                score=score,
            ),
            metadata={
                "judge_model": self.judge_model_name,
                "analysis": data.get("analysis", ""),
                "generation_time_ms": generation_time_ms,
            },
        )

"""Deterministic judge that rewards community engagement."""

import logging
from datetime import datetime, timezone

from battles.models import Battle, Cast, CastSide

from .base import BaseJudge, JudgeResult, WinnerSelection

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class EngagementJudge(BaseJudge):
    """Picks the most-liked cast.

    Ties go to the longer argument, then to whoever submitted first.
    """

    @property
    def name(self) -> str:
        return "Engagement Judge"

    async def judge(self, battle: Battle, casts: list[Cast]) -> JudgeResult:
        if not casts:
            return JudgeResult(winner=None, metadata={"reason": "no casts"})

        ranked = sorted(
            casts,
            key=lambda cast: (
                -cast.like_count,
                -len(cast.content),
                cast.created_at or _EPOCH,
            ),
        )
        best = ranked[0]

        side_likes = {side: 0 for side in CastSide}
        for cast in casts:
            side_likes[cast.side] += cast.like_count
        leading_side = max(side_likes, key=lambda side: side_likes[side])

        logger.info(
            f"Engagement judge picked cast {best.id} with {best.like_count} likes "
            f"for battle {battle.id}"
        )

        return JudgeResult(
            winner=WinnerSelection(
                user_id=best.user_id,
                cast_id=best.id,
                side=best.side,
                selection_method="engagement",
                selection_reason=f"Most liked argument ({best.like_count} likes)",
                score=float(best.like_count),
            ),
            metadata={
                "side_likes": {side.value: likes for side, likes in side_likes.items()},
                "leading_side": leading_side.value,
                "cast_count": len(casts),
            },
        )

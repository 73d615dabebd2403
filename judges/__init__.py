"""Judging system implementations."""

from .ai_judge import AIJudge
from .base import BaseJudge, JudgeResult, JudgingError, WinnerSelection
from .engagement_judge import EngagementJudge
from .factory import create_judge
from .remote_judge import RemoteJudge

__all__ = [
    "AIJudge",
    "BaseJudge",
    "EngagementJudge",
    "JudgeResult",
    "JudgingError",
    "RemoteJudge",
    "WinnerSelection",
    "create_judge",
]

"""Base classes and interfaces for judging systems."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from battles.models import Battle, Cast, CastSide


class JudgingError(RuntimeError):
    """Judge could not reach a decision."""


@dataclass
class WinnerSelection:
    """Winning cast chosen by a judge."""

    user_id: str
    cast_id: str
    side: CastSide
    selection_method: str
    selection_reason: str
    score: float | None = None


@dataclass
class JudgeResult:
    """Complete judge outcome; winner is None when no cast could win."""

    winner: WinnerSelection | None
    metadata: dict[str, Any] = field(default_factory=dict)


class BaseJudge(ABC):
    """Abstract base class for all judges."""

    @abstractmethod
    async def judge(self, battle: Battle, casts: list[Cast]) -> JudgeResult:
        """Evaluate a finished battle's casts and pick a winner."""
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Judge name/identifier."""
        pass

    def _find_cast(self, casts: list[Cast], cast_id: str) -> Cast:
        for cast in casts:
            if cast.id == cast_id:
                return cast
        raise JudgingError(
            f"Judge selected unknown cast id '{cast_id}'. "
            f"Available: {[cast.id for cast in casts]}"
        )

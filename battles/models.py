"""Battle system data models."""

from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class BattleStatus(Enum):
    """Battle lifecycle status."""

    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"


class CastSide(Enum):
    """Side a cast argues for."""

    SUPPORT = "SUPPORT"
    OPPOSE = "OPPOSE"


class DebatePoints(BaseModel):
    """Opposing prompt lists shown with a battle topic."""

    support: list[str] = Field(default_factory=list)
    oppose: list[str] = Field(default_factory=list)


class Topic(BaseModel):
    """Debate topic returned by a topic provider."""

    title: str
    description: str
    category: str = "general"
    source: str = "unknown"
    source_url: str | None = None
    debate_points: DebatePoints = Field(default_factory=DebatePoints)


class BattleCreate(BaseModel):
    """Fields required to persist a new battle."""

    title: str
    description: str
    category: str
    source: str
    source_url: str | None = None
    debate_points: DebatePoints = Field(default_factory=DebatePoints)
    start_time: datetime
    end_time: datetime
    duration_hours: float
    max_participants: int

    @classmethod
    def from_topic(
        cls,
        topic: Topic,
        start_time: datetime,
        duration_hours: float,
        max_participants: int,
    ) -> "BattleCreate":
        """Anchor a topic to a battle window starting at start_time."""
        return cls(
            title=topic.title,
            description=topic.description,
            category=topic.category,
            source=topic.source,
            source_url=topic.source_url,
            debate_points=topic.debate_points,
            start_time=start_time,
            end_time=start_time + timedelta(hours=duration_hours),
            duration_hours=duration_hours,
            max_participants=max_participants,
        )


class Battle(BaseModel):
    """Persisted battle."""

    id: str
    title: str
    description: str
    category: str
    source: str
    source_url: str | None = None
    debate_points: DebatePoints = Field(default_factory=DebatePoints)
    status: BattleStatus
    start_time: datetime
    end_time: datetime
    duration_hours: float
    max_participants: int
    created_at: datetime | None = None
    participant_count: int = 0
    cast_count: int = 0

    def is_expired(self, now: datetime) -> bool:
        """True once the submission window has closed."""
        return now >= self.end_time

    def remaining_seconds(self, now: datetime) -> float:
        return max(0.0, (self.end_time - now).total_seconds())

    def public_fields(self) -> dict[str, Any]:
        """Fields broadcast to live subscribers when the battle starts."""
        return {
            "battleId": self.id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "source": self.source,
            "sourceUrl": self.source_url,
            "endTime": self.end_time.isoformat(),
        }


class User(BaseModel):
    """Participant identified by wallet address."""

    id: str
    address: str
    username: str | None = None
    points: int = 0
    created_at: datetime | None = None


class Participation(BaseModel):
    """Record that a user joined a battle."""

    id: str
    user_id: str
    battle_id: str
    joined_at: datetime | None = None


class Cast(BaseModel):
    """A participant's argument for one side of a battle."""

    id: str
    user_id: str
    battle_id: str
    content: str
    side: CastSide
    created_at: datetime | None = None
    user_address: str | None = None
    like_count: int = 0


class Sentiment(BaseModel):
    """Cast counts per side with whole-number percentages."""

    support: int = 0
    oppose: int = 0
    support_percent: int = 0
    oppose_percent: int = 0

    @property
    def total(self) -> int:
        return self.support + self.oppose

    @classmethod
    def from_casts(cls, casts: list[Cast]) -> "Sentiment":
        support = sum(1 for cast in casts if cast.side == CastSide.SUPPORT)
        oppose = sum(1 for cast in casts if cast.side == CastSide.OPPOSE)
        total = support + oppose
        if total == 0:
            return cls()
        # Halves round up
        return cls(
            support=support,
            oppose=oppose,
            support_percent=int(support * 100 / total + 0.5),
            oppose_percent=int(oppose * 100 / total + 0.5),
        )

    def to_message(self) -> dict[str, int]:
        return {
            "support": self.support,
            "oppose": self.oppose,
            "supportPercent": self.support_percent,
            "opposePercent": self.oppose_percent,
        }


class BattleWinner(BaseModel):
    """Winner record attached to a completed battle."""

    user_id: str
    position: int = 1
    prize: str | None = None


class WinnerAwarded(BaseModel):
    """Ledger event: points granted to a user for a battle.

    Applied at most once per (battle_id, user_id, reason).
    """

    battle_id: str
    user_id: str
    points: int
    reason: str = "winner"


class LikeResult(BaseModel):
    """Outcome of toggling a like on a cast."""

    action: str  # 'liked' or 'unliked'
    like_count: int


class BattleHistoryEntry(BaseModel):
    """Completed battle summary."""

    battle: Battle
    completed_at: datetime | None = None
    total_participants: int
    total_casts: int
    winner_address: str | None = None
    winners: list[dict[str, Any]] = Field(default_factory=list)
    winner_side: CastSide | None = None


class LeaderboardEntry(BaseModel):
    """Leaderboard row."""

    rank: int
    address: str
    username: str | None = None
    points: int
    participation_count: int
    win_count: int


class BattleStats(BaseModel):
    """Aggregate counters."""

    total_battles: int
    active_battles: int
    completed_battles: int
    total_users: int
    total_casts: int
    total_points_awarded: int

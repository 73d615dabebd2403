"""Deterministic stand-ins for the battle manager's collaborators."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from battles import BattleEvent, BattleEventType, DebatePoints, Topic
from battles.models import Battle, Cast
from config.settings import SystemConfig
from judges import BaseJudge, JudgeResult, WinnerSelection
from models.providers import BaseModelProvider
from topics import TopicProvider

START_TIME = datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock injected into the battle manager."""

    def __init__(self, start: datetime = START_TIME):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current += timedelta(**kwargs)


def make_topic(index: int) -> Topic:
    return Topic(
        title=f"Debate number {index}: should remote work become the default?",
        description="Employers and workers disagree on whether distributed teams are here to stay.",
        category="society",
        source="Test Wire",
        debate_points=DebatePoints(
            support=["Commutes waste hours every week", "Talent pools become global"],
            oppose=["Mentoring suffers without proximity", "Culture erodes over video calls"],
        ),
    )


class ScriptedTopicProvider(TopicProvider):
    """Returns scripted topics or raises scripted errors, then numbered topics."""

    def __init__(self, *responses: Topic | Exception):
        self.responses = list(responses)
        self.calls = 0

    @property
    def name(self) -> str:
        return "Scripted Topics"

    async def get_daily_topic(self) -> Topic:
        self.calls += 1
        # Yield so concurrent triggers interleave like real network calls
        await asyncio.sleep(0)
        if self.responses:
            item = self.responses.pop(0)
            if isinstance(item, Exception):
                raise item
            return item
        return make_topic(self.calls)


def oldest_cast(casts: list[Cast]) -> Cast | None:
    return min(casts, key=lambda cast: cast.created_at) if casts else None


class ScriptedJudge(BaseJudge):
    """Picks a cast with a callable, or raises a fixed error."""

    def __init__(
        self,
        pick: Callable[[list[Cast]], Cast | None] = oldest_cast,
        error: Exception | None = None,
    ):
        self.pick = pick
        self.error = error
        self.judged: list[str] = []

    @property
    def name(self) -> str:
        return "Scripted Judge"

    async def judge(self, battle: Battle, casts: list[Cast]) -> JudgeResult:
        self.judged.append(battle.id)
        await asyncio.sleep(0)
        if self.error:
            raise self.error

        cast = self.pick(casts)
        if cast is None:
            return JudgeResult(winner=None)
        return JudgeResult(
            winner=WinnerSelection(
                user_id=cast.user_id,
                cast_id=cast.id,
                side=cast.side,
                selection_method="scripted",
                selection_reason="picked by test",
            )
        )


class EventRecorder:
    """Broadcaster subscriber that keeps every event it receives."""

    def __init__(self):
        self.events: list[BattleEvent] = []

    def __call__(self, event: BattleEvent) -> None:
        self.events.append(event)

    @property
    def types(self) -> list[BattleEventType]:
        return [event.type for event in self.events]

    def of_type(self, event_type: BattleEventType) -> list[BattleEvent]:
        return [event for event in self.events if event.type == event_type]


class FakeModelProvider(BaseModelProvider):
    """Replays canned chat responses (or raises canned errors)."""

    def __init__(self, *responses: str | Exception):
        super().__init__(SystemConfig())
        self.responses = list(responses)
        self.requests: list[dict] = []

    @property
    def provider_name(self) -> str:
        return "fake"

    @property
    def is_configured(self) -> bool:
        return True

    async def generate_response(self, model, messages, max_tokens=1000, temperature=0.7) -> str:
        self.requests.append({"model": model, "messages": messages})
        if not self.responses:
            raise AssertionError("No fake responses left")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

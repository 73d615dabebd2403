"""Battle lifecycle events and the in-process broadcaster."""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from .models import Battle, Sentiment

logger = logging.getLogger(__name__)


class BattleEventType(Enum):
    CONNECTION_ESTABLISHED = "CONNECTION_ESTABLISHED"
    BATTLE_STARTED = "BATTLE_STARTED"
    BATTLE_ENDED = "BATTLE_ENDED"
    STATUS_UPDATE = "STATUS_UPDATE"
    LEADERBOARD_UPDATE = "LEADERBOARD_UPDATE"
    SENTIMENT_UPDATE = "SENTIMENT_UPDATE"
    TIMER_UPDATE = "TIMER_UPDATE"


class BattleEvent(BaseModel):
    """Typed event pushed to live subscribers."""

    type: BattleEventType
    data: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_message(self) -> dict[str, Any]:
        """JSON-ready payload for SSE and WebSocket clients."""
        return {
            "type": self.type.value,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def connection_established(cls) -> "BattleEvent":
        return cls(
            type=BattleEventType.CONNECTION_ESTABLISHED,
            data={"message": "Connected to battle updates"},
        )

    @classmethod
    def battle_started(cls, battle: Battle) -> "BattleEvent":
        return cls(type=BattleEventType.BATTLE_STARTED, data=battle.public_fields())

    @classmethod
    def battle_ended(cls, battle: Battle, reason: str | None = None) -> "BattleEvent":
        data: dict[str, Any] = {"battleId": battle.id, "title": battle.title}
        if reason:
            data["reason"] = reason
        return cls(type=BattleEventType.BATTLE_ENDED, data=data)

    @classmethod
    def status_update(cls, message: str, status_type: str = "info") -> "BattleEvent":
        return cls(
            type=BattleEventType.STATUS_UPDATE,
            data={"message": message, "type": status_type},
        )

    @classmethod
    def leaderboard_update(cls, winner: str, new_total_points: int) -> "BattleEvent":
        return cls(
            type=BattleEventType.LEADERBOARD_UPDATE,
            data={"winner": winner, "newTotalPoints": new_total_points},
        )

    @classmethod
    def sentiment_update(cls, battle_id: str | None, sentiment: Sentiment) -> "BattleEvent":
        return cls(
            type=BattleEventType.SENTIMENT_UPDATE,
            data={"battleId": battle_id, "sentiment": sentiment.to_message()},
        )

    @classmethod
    def timer_update(cls, battle: Battle | None, now: datetime) -> "BattleEvent":
        """Remaining time of the current battle; all nulls when there is none."""
        if battle is None:
            data: dict[str, Any] = {
                "battleId": None,
                "title": None,
                "status": None,
                "endTime": None,
                "timeRemaining": 0,
            }
        else:
            data = {
                "battleId": battle.id,
                "title": battle.title,
                "status": battle.status.value,
                "endTime": battle.end_time.isoformat(),
                "timeRemaining": int(battle.remaining_seconds(now)),
            }
        return cls(type=BattleEventType.TIMER_UPDATE, data=data)


Subscriber = Callable[[BattleEvent], Awaitable[None] | None]


@dataclass
class QueueSubscription:
    """Bounded event queue registered with a broadcaster.

    `dropped` is set once the broadcaster gives up on a consumer that
    stopped reading, so the stream feeding that consumer can end.
    """

    queue: asyncio.Queue
    unsubscribe: Callable[[], None] = field(default=lambda: None)
    dropped: bool = False

    def push(self, event: BattleEvent) -> None:
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped = True
            raise


class BattleEventBroadcaster:
    """Fan-out publisher of battle events.

    Delivery is best effort: no acknowledgement, no replay for late
    subscribers. A subscriber whose push raises is dropped.
    """

    def __init__(self):
        self._subscribers: dict[int, Subscriber] = {}
        self._next_id = 0

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback; returns a handle that unsubscribes it."""
        subscriber_id = self._next_id
        self._next_id += 1
        self._subscribers[subscriber_id] = callback
        logger.debug(f"Subscriber {subscriber_id} registered ({self.subscriber_count} total)")

        def unsubscribe() -> None:
            if self._subscribers.pop(subscriber_id, None) is not None:
                logger.debug(f"Subscriber {subscriber_id} removed")

        return unsubscribe

    def subscribe_queue(self, maxsize: int = 100) -> QueueSubscription:
        """Register a bounded queue subscriber for stream endpoints.

        A full queue means the consumer stopped reading; the push raises
        QueueFull and the subscriber is dropped like any other failure.
        """
        subscription = QueueSubscription(queue=asyncio.Queue(maxsize=maxsize))
        subscription.unsubscribe = self.subscribe(subscription.push)
        return subscription

    async def publish(self, event: BattleEvent) -> None:
        """Push an event to every current subscriber."""
        dead_subscribers = []
        for subscriber_id, callback in list(self._subscribers.items()):
            try:
                result = callback(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.debug(f"Subscriber {subscriber_id} push failed: {e}")
                dead_subscribers.append(subscriber_id)

        for subscriber_id in dead_subscribers:
            self._subscribers.pop(subscriber_id, None)

        logger.debug(
            f"Published {event.type.value} to {self.subscriber_count} subscriber(s)"
        )

"""Tests for battle events and the broadcaster."""

from __future__ import annotations

import asyncio
from datetime import timedelta

from battles import (
    Battle,
    BattleEvent,
    BattleEventBroadcaster,
    BattleEventType,
    BattleStatus,
    Cast,
    CastSide,
    Sentiment,
)
from fakes import START_TIME, EventRecorder


def test_messages_are_json_ready() -> None:
    message = BattleEvent.status_update("Judging in progress...", "judging").to_message()
    assert message["type"] == "STATUS_UPDATE"
    assert message["data"] == {"message": "Judging in progress...", "type": "judging"}
    assert isinstance(message["timestamp"], str)

    leaderboard = BattleEvent.leaderboard_update("0xalice", 110)
    assert leaderboard.data == {"winner": "0xalice", "newTotalPoints": 110}


def test_publish_reaches_sync_and_async_subscribers() -> None:
    broadcaster = BattleEventBroadcaster()
    recorder = EventRecorder()
    received = []

    async def async_subscriber(event):
        received.append(event.type)

    broadcaster.subscribe(recorder)
    broadcaster.subscribe(async_subscriber)

    asyncio.run(broadcaster.publish(BattleEvent.connection_established()))

    assert recorder.types == [BattleEventType.CONNECTION_ESTABLISHED]
    assert received == [BattleEventType.CONNECTION_ESTABLISHED]


def test_failing_subscriber_is_dropped() -> None:
    broadcaster = BattleEventBroadcaster()
    recorder = EventRecorder()

    def broken(event):
        raise ConnectionError("client went away")

    broadcaster.subscribe(broken)
    broadcaster.subscribe(recorder)

    async def scenario():
        await broadcaster.publish(BattleEvent.status_update("one"))
        await broadcaster.publish(BattleEvent.status_update("two"))

    asyncio.run(scenario())

    assert broadcaster.subscriber_count == 1
    assert len(recorder.events) == 2


def test_unsubscribe_stops_delivery() -> None:
    broadcaster = BattleEventBroadcaster()
    recorder = EventRecorder()
    unsubscribe = broadcaster.subscribe(recorder)
    unsubscribe()
    unsubscribe()

    asyncio.run(broadcaster.publish(BattleEvent.status_update("ignored")))

    assert recorder.events == []
    assert broadcaster.subscriber_count == 0


def test_queue_subscriber_dropped_when_full() -> None:
    broadcaster = BattleEventBroadcaster()

    async def scenario():
        subscription = broadcaster.subscribe_queue(maxsize=1)
        await broadcaster.publish(BattleEvent.status_update("first"))
        assert subscription.dropped is False
        await broadcaster.publish(BattleEvent.status_update("overflow"))
        return subscription

    subscription = asyncio.run(scenario())

    assert subscription.queue.qsize() == 1
    assert subscription.dropped is True
    assert broadcaster.subscriber_count == 0


def make_cast(index: int, side: CastSide) -> Cast:
    return Cast(
        id=f"cast-{index}",
        user_id=f"user-{index}",
        battle_id="battle-1",
        content="An argument long enough to count.",
        side=side,
    )


def test_sentiment_counts_and_percentages() -> None:
    casts = [make_cast(1, CastSide.SUPPORT), make_cast(2, CastSide.OPPOSE), make_cast(3, CastSide.OPPOSE)]

    sentiment = Sentiment.from_casts(casts)

    assert sentiment.total == 3
    assert sentiment.to_message() == {
        "support": 1,
        "oppose": 2,
        "supportPercent": 33,
        "opposePercent": 67,
    }

    sides = [CastSide.SUPPORT] + [CastSide.OPPOSE] * 7
    eighth = Sentiment.from_casts([make_cast(i, side) for i, side in enumerate(sides)])
    assert (eighth.support_percent, eighth.oppose_percent) == (13, 88)

    assert Sentiment.from_casts([]) == Sentiment()


def test_sentiment_and_timer_events() -> None:
    sentiment = Sentiment.from_casts([make_cast(1, CastSide.SUPPORT)])
    event = BattleEvent.sentiment_update("battle-1", sentiment)
    assert event.type == BattleEventType.SENTIMENT_UPDATE
    assert event.data == {
        "battleId": "battle-1",
        "sentiment": {"support": 1, "oppose": 0, "supportPercent": 100, "opposePercent": 0},
    }

    battle = Battle(
        id="battle-1",
        title="Should cities ban cars?",
        description="Car-free centres are spreading.",
        category="environment",
        source="Test Wire",
        status=BattleStatus.ACTIVE,
        start_time=START_TIME,
        end_time=START_TIME + timedelta(hours=1),
        duration_hours=1.0,
        max_participants=1000,
    )
    timer = BattleEvent.timer_update(battle, START_TIME + timedelta(minutes=45, seconds=30))
    assert timer.type == BattleEventType.TIMER_UPDATE
    assert timer.data["battleId"] == "battle-1"
    assert timer.data["status"] == "ACTIVE"
    assert timer.data["timeRemaining"] == 870

    idle = BattleEvent.timer_update(None, START_TIME)
    assert idle.data["battleId"] is None
    assert idle.data["timeRemaining"] == 0

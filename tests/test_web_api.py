"""Tests for the FastAPI battle endpoints."""

from __future__ import annotations

import asyncio

import pytest
from fastapi.testclient import TestClient

from battles import BattleEvent, BattleEventBroadcaster, BattleEventType
from config.settings import AppConfig
from fakes import EventRecorder, FakeClock
from topics.static_provider import CURATED_TOPICS
from web.api import create_app
from web.endpoints.streams import SENTIMENT_EVENTS, battle_event_stream, format_sse

ADMIN = {"Authorization": "Bearer cron-secret"}
TITLES = {topic.title for topic in CURATED_TOPICS}
ARGUMENT = "Remote work saves everyone hours of commuting."


@pytest.fixture
def client(app_config: AppConfig):
    with TestClient(create_app(app_config)) as test_client:
        yield test_client


def test_health(client: TestClient) -> None:
    response = client.get("/v1/api/health")
    assert response.status_code == 200
    assert response.json() == {"isAlive": True, "battleManagerRunning": True}


def test_current_battle(client: TestClient) -> None:
    body = client.get("/v1/api/battle/current").json()

    assert body["success"] is True
    battle = body["battle"]
    assert battle["title"] in TITLES
    assert battle["status"] == "ACTIVE"
    assert battle["durationHours"] == 1.0
    assert 0 < battle["remainingSeconds"] <= 3600
    assert len(battle["debatePoints"]["support"]) >= 2


def test_participation_flow(client: TestClient) -> None:
    joined = client.post("/v1/api/battle/join", json={"userAddress": " 0xalice "})
    assert joined.status_code == 200
    assert joined.json()["points"] == 10

    again = client.post("/v1/api/battle/join", json={"userAddress": "0xalice"})
    assert again.status_code == 400
    assert again.json()["detail"] == "User already joined this battle"

    assert client.get("/v1/api/battle/join", params={"userAddress": "0xalice"}).json() == {
        "hasJoined": True
    }
    assert client.get("/v1/api/battle/join", params={"userAddress": "0xbob"}).json() == {
        "hasJoined": False
    }

    cast = client.post(
        "/v1/api/battle/casts",
        json={"userAddress": "0xalice", "content": ARGUMENT, "side": "support"},
    )
    assert cast.status_code == 200
    cast_body = cast.json()["cast"]
    assert cast_body["side"] == "SUPPORT"

    outsider = client.post(
        "/v1/api/battle/casts",
        json={"userAddress": "0xbob", "content": ARGUMENT, "side": "OPPOSE"},
    )
    assert outsider.status_code == 403

    too_short = client.post(
        "/v1/api/battle/casts",
        json={"userAddress": "0xalice", "content": "meh", "side": "OPPOSE"},
    )
    assert too_short.status_code == 400

    casts = client.get("/v1/api/battle/casts").json()
    assert casts["count"] == 1
    assert casts["casts"][0]["userAddress"] == "0xalice"

    like = client.post("/v1/api/cast/like", json={"userAddress": "0xbob", "castId": cast_body["id"]})
    assert like.json() == {"success": True, "action": "liked", "likeCount": 1}

    missing = client.post("/v1/api/cast/like", json={"userAddress": "0xbob", "castId": "nope"})
    assert missing.status_code == 400

    points = client.get("/v1/api/user/points", params={"userAddress": "0xalice"}).json()
    assert points["points"] == 10

    leaderboard = client.get("/v1/api/user/leaderboard").json()["leaderboard"]
    assert leaderboard[0]["address"] == "0xalice"
    assert leaderboard[0]["participations"] == 1

    stats = client.get("/v1/api/battle/stats").json()["stats"]
    assert stats["total_battles"] == 1
    assert stats["total_casts"] == 1


def test_request_validation(client: TestClient) -> None:
    assert client.post("/v1/api/battle/join", json={}).status_code == 422
    assert client.post("/v1/api/battle/join", json={"userAddress": "   "}).status_code == 422
    assert client.get("/v1/api/battle/history", params={"limit": 0}).status_code == 422


def test_admin_endpoints_require_secret(client: TestClient) -> None:
    assert client.get("/v1/api/battle/manage").status_code == 401
    assert client.get("/v1/api/battle/manage", headers={"Authorization": "Bearer wrong"}).status_code == 401
    assert client.get("/v1/api/cron/battle-completion").status_code == 401

    status = client.get("/v1/api/battle/manage", headers=ADMIN).json()["status"]
    assert status["isRunning"] is True
    assert status["currentBattle"]["title"] in TITLES


def test_admin_config_and_generation(client: TestClient) -> None:
    updated = client.put("/v1/api/battle/manage", headers=ADMIN, json={"maxParticipants": 5})
    assert updated.status_code == 200
    assert updated.json()["config"]["max_participants"] == 5

    invalid = client.put("/v1/api/battle/manage", headers=ADMIN, json={"battleDurationHours": -1})
    assert invalid.status_code == 400

    # A battle is already running, so nothing new is generated
    triggered = client.delete("/v1/api/battle/manage", headers=ADMIN).json()
    assert triggered["success"] is False

    cron = client.get("/v1/api/cron/battle-completion", headers=ADMIN).json()
    assert cron["success"] is True
    assert cron["currentBattle"]["title"] in TITLES


def test_expired_battle_completes_on_request(app_config: AppConfig) -> None:
    clock = FakeClock()
    with TestClient(create_app(app_config, clock=clock)) as client:
        first = client.get("/v1/api/battle/current").json()["battle"]
        client.post("/v1/api/battle/join", json={"userAddress": "0xalice"})
        client.post(
            "/v1/api/battle/casts",
            json={"userAddress": "0xalice", "content": ARGUMENT, "side": "SUPPORT"},
        )

        clock.advance(hours=1, seconds=1)
        second = client.get("/v1/api/battle/current").json()["battle"]
        history = client.get("/v1/api/battle/history").json()

    assert second["id"] != first["id"]
    assert history["count"] == 1
    entry = history["history"][0]
    assert entry["battle"]["id"] == first["id"]
    assert entry["winnerAddress"] == "0xalice"
    assert entry["winnerSide"] == "SUPPORT"
    assert entry["winners"][0]["pointsAwarded"] == 100


def test_disabled_generation_has_no_battle(app_config: AppConfig) -> None:
    app_config.battle.enabled = False
    with TestClient(create_app(app_config)) as client:
        assert client.get("/v1/api/battle/current").json() == {
            "success": False,
            "error": "No active battle available",
        }
        joined = client.post("/v1/api/battle/join", json={"userAddress": "0xalice"})
        assert joined.status_code == 404

        triggered = client.delete("/v1/api/battle/manage", headers=ADMIN)
        assert triggered.status_code == 400


def test_websocket_greets_client(client: TestClient) -> None:
    with client.websocket_connect("/v1/ws/battle") as websocket:
        message = websocket.receive_json()
    assert message["type"] == "CONNECTION_ESTABLISHED"


class ConnectedRequest:
    async def is_disconnected(self) -> bool:
        return False


def test_sse_stream_forwards_events() -> None:
    broadcaster = BattleEventBroadcaster()
    event = BattleEvent.status_update("Judging in progress...", "judging")

    async def scenario():
        stream = battle_event_stream(ConnectedRequest(), broadcaster)
        greeting = await stream.__anext__()
        await broadcaster.publish(event)
        update = await stream.__anext__()
        subscribed = broadcaster.subscriber_count
        await stream.aclose()
        return greeting, update, subscribed

    greeting, update, subscribed = asyncio.run(scenario())

    assert greeting.startswith("data: ") and greeting.endswith("\n\n")
    assert '"CONNECTION_ESTABLISHED"' in greeting
    assert update == format_sse(event)
    assert subscribed == 1
    assert broadcaster.subscriber_count == 0


def test_sse_stream_closes_when_subscriber_is_dropped() -> None:
    broadcaster = BattleEventBroadcaster()

    async def scenario():
        stream = battle_event_stream(ConnectedRequest(), broadcaster)
        await stream.__anext__()
        # Nobody reads, so the bounded queue overflows
        for index in range(101):
            await broadcaster.publish(BattleEvent.status_update(f"update {index}"))
        remaining = [frame async for frame in stream]
        return remaining

    remaining = asyncio.run(scenario())

    assert remaining == []
    assert broadcaster.subscriber_count == 0


def test_sentiment_stream_sends_snapshot_and_filters() -> None:
    broadcaster = BattleEventBroadcaster()
    snapshot = BattleEvent.status_update("snapshot stand-in")
    sentiment = BattleEvent(
        type=BattleEventType.SENTIMENT_UPDATE,
        data={"battleId": "b1", "sentiment": {"support": 1, "oppose": 0}},
    )

    async def scenario():
        stream = battle_event_stream(
            ConnectedRequest(), broadcaster, SENTIMENT_EVENTS, initial=lambda: snapshot
        )
        frames = [await stream.__anext__(), await stream.__anext__()]
        await broadcaster.publish(BattleEvent.status_update("not forwarded"))
        await broadcaster.publish(sentiment)
        frames.append(await stream.__anext__())
        await stream.aclose()
        return frames

    frames = asyncio.run(scenario())

    assert '"CONNECTION_ESTABLISHED"' in frames[0]
    assert frames[1] == format_sse(snapshot)
    assert frames[2] == format_sse(sentiment)


def test_timer_stream_ticks_while_idle() -> None:
    broadcaster = BattleEventBroadcaster()
    clock = FakeClock()

    async def scenario():
        stream = battle_event_stream(
            ConnectedRequest(),
            broadcaster,
            tick=lambda: BattleEvent.timer_update(None, clock()),
            interval=0.01,
        )
        await stream.__anext__()
        tick = await stream.__anext__()
        await stream.aclose()
        return tick

    tick = asyncio.run(scenario())

    assert '"TIMER_UPDATE"' in tick
    assert '"timeRemaining": 0' in tick


def test_cast_submission_pushes_sentiment(client: TestClient) -> None:
    recorder = EventRecorder()
    client.app.state.broadcaster.subscribe(recorder)

    client.post("/v1/api/battle/join", json={"userAddress": "0xalice"})
    client.post("/v1/api/battle/join", json={"userAddress": "0xbob"})
    client.post(
        "/v1/api/battle/casts",
        json={"userAddress": "0xalice", "content": ARGUMENT, "side": "SUPPORT"},
    )
    client.post(
        "/v1/api/battle/casts",
        json={"userAddress": "0xbob", "content": ARGUMENT, "side": "OPPOSE"},
    )

    updates = recorder.of_type(BattleEventType.SENTIMENT_UPDATE)
    assert [update.data["sentiment"]["support"] for update in updates] == [1, 1]
    assert updates[-1].data["sentiment"] == {
        "support": 1,
        "oppose": 1,
        "supportPercent": 50,
        "opposePercent": 50,
    }

    body = client.get("/v1/api/battle/sentiment").json()
    assert body["success"] is True
    assert body["sentiment"]["oppose"] == 1
    assert body["battleId"] == updates[-1].data["battleId"]

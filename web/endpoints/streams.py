"""Live battle event streams (SSE and WebSocket)."""

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Callable

from fastapi import APIRouter, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import StreamingResponse

from battles import BattleEvent, BattleEventBroadcaster, BattleEventType, BattleManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")
ws_router = APIRouter()

KEEPALIVE_SECONDS = 15.0
TIMER_INTERVAL_SECONDS = 5.0

SENTIMENT_EVENTS = frozenset({BattleEventType.SENTIMENT_UPDATE})
TIMER_EVENTS = frozenset(
    {BattleEventType.TIMER_UPDATE, BattleEventType.BATTLE_STARTED, BattleEventType.BATTLE_ENDED}
)

SSE_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive", "X-Accel-Buffering": "no"}


def format_sse(event: BattleEvent) -> str:
    """Encode an event as a server-sent events frame."""
    return f"data: {json.dumps(event.to_message())}\n\n"


async def battle_event_stream(
    request: Request,
    broadcaster: BattleEventBroadcaster,
    event_types: frozenset[BattleEventType] | None = None,
    initial: Callable[[], BattleEvent] | None = None,
    tick: Callable[[], BattleEvent] | None = None,
    interval: float = KEEPALIVE_SECONDS,
) -> AsyncIterator[str]:
    """Yield SSE frames for broadcaster events until the client goes away.

    `event_types` filters what is forwarded. `initial` supplies a snapshot
    sent right after the greeting, and `tick` replaces the idle keepalive
    comment with a fresh event every `interval` seconds.
    """
    subscription = broadcaster.subscribe_queue()
    try:
        yield format_sse(BattleEvent.connection_established())
        if initial is not None:
            yield format_sse(initial())

        while not subscription.dropped and not await request.is_disconnected():
            try:
                event = await asyncio.wait_for(subscription.queue.get(), timeout=interval)
            except asyncio.TimeoutError:
                if tick is not None:
                    yield format_sse(tick())
                else:
                    yield ": keepalive\n\n"
                continue
            if event_types is None or event.type in event_types:
                yield format_sse(event)

        if subscription.dropped:
            logger.warning("SSE client fell behind and was dropped, closing stream")
    finally:
        subscription.unsubscribe()
        logger.debug("SSE client disconnected")


def _get_stream_services(request: Request) -> tuple[BattleEventBroadcaster, BattleManager]:
    broadcaster = getattr(request.app.state, "broadcaster", None)
    manager = getattr(request.app.state, "battle_manager", None)
    if broadcaster is None or manager is None:
        raise HTTPException(status_code=503, detail="Battle service not initialized")
    return broadcaster, manager


@router.get("/battle/state-stream")
async def battle_state_stream(request: Request):
    """Server-sent events stream of battle lifecycle events."""
    broadcaster, _ = _get_stream_services(request)

    return StreamingResponse(
        battle_event_stream(request, broadcaster),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.get("/battle/sentiment-stream")
async def battle_sentiment_stream(request: Request):
    """Support/oppose counts, pushed whenever a cast is submitted."""
    broadcaster, manager = _get_stream_services(request)

    def snapshot() -> BattleEvent:
        battle = manager.get_current_battle()
        return BattleEvent.sentiment_update(battle.id if battle else None, manager.get_sentiment())

    return StreamingResponse(
        battle_event_stream(request, broadcaster, SENTIMENT_EVENTS, initial=snapshot),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.get("/battle/timer-stream")
async def battle_timer_stream(request: Request):
    """Remaining time of the current battle plus battle transitions."""
    broadcaster, manager = _get_stream_services(request)

    return StreamingResponse(
        battle_event_stream(
            request,
            broadcaster,
            TIMER_EVENTS,
            initial=manager.get_timer_event,
            tick=manager.get_timer_event,
            interval=TIMER_INTERVAL_SECONDS,
        ),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@ws_router.websocket("/ws/battle")
async def battle_websocket(websocket: WebSocket):
    """WebSocket endpoint for real-time battle updates."""
    await websocket.accept()
    broadcaster: BattleEventBroadcaster = websocket.app.state.broadcaster

    async def push(event: BattleEvent) -> None:
        await websocket.send_json(event.to_message())

    await websocket.send_json(BattleEvent.connection_established().to_message())
    unsubscribe = broadcaster.subscribe(push)

    try:
        # Keep connection alive; client messages are ignored
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("Battle WebSocket disconnected")
    finally:
        unsubscribe()

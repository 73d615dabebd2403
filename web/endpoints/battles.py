"""Battle participation and administration endpoints."""

import logging

from fastapi import APIRouter, Depends, Query

from battles import BattleAPI
from web.battle_requests import (
    BattleConfigUpdateRequest,
    LikeCastRequest,
    SubmitCastRequest,
    UserAddressRequest,
)
from web.dependencies import get_battle_api, verify_admin_secret

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


@router.get("/battle/current")
async def get_current_battle(battle_api: BattleAPI = Depends(get_battle_api)):
    """Get the active battle, creating or completing battles as needed."""
    return await battle_api.get_current_battle()


@router.post("/battle/join")
async def join_battle(
    request: UserAddressRequest, battle_api: BattleAPI = Depends(get_battle_api)
):
    """Join the active battle."""
    return await battle_api.join_battle(request.user_address)


@router.get("/battle/join")
async def has_joined_battle(
    user_address: str = Query(alias="userAddress"),
    battle_api: BattleAPI = Depends(get_battle_api),
):
    """Check whether a user has joined the active battle."""
    return await battle_api.has_joined(user_address)


@router.post("/battle/casts")
async def submit_cast(
    request: SubmitCastRequest, battle_api: BattleAPI = Depends(get_battle_api)
):
    """Submit an argument to the active battle."""
    return await battle_api.submit_cast(request.user_address, request.content, request.side)


@router.get("/battle/casts")
async def get_casts(battle_api: BattleAPI = Depends(get_battle_api)):
    """List arguments in the active battle."""
    return await battle_api.get_casts()


@router.get("/battle/sentiment")
async def get_sentiment(battle_api: BattleAPI = Depends(get_battle_api)):
    """Support and oppose counts for the active battle."""
    return await battle_api.get_sentiment()


@router.post("/cast/like")
async def like_cast(request: LikeCastRequest, battle_api: BattleAPI = Depends(get_battle_api)):
    """Toggle a like on an argument."""
    return await battle_api.like_cast(request.user_address, request.cast_id)


@router.get("/battle/history")
async def get_battle_history(
    limit: int = Query(default=10, ge=1, le=100),
    battle_api: BattleAPI = Depends(get_battle_api),
):
    """List completed battles, most recent first."""
    return await battle_api.get_battle_history(limit)


@router.get("/battle/stats")
async def get_battle_stats(battle_api: BattleAPI = Depends(get_battle_api)):
    """Aggregate battle counters."""
    return await battle_api.get_stats()


@router.get("/battle/manage", dependencies=[Depends(verify_admin_secret)])
async def get_manager_status(battle_api: BattleAPI = Depends(get_battle_api)):
    """Battle manager status: current battle, config, cooldown and timers."""
    return await battle_api.get_manager_status()


@router.put("/battle/manage", dependencies=[Depends(verify_admin_secret)])
async def update_battle_config(
    request: BattleConfigUpdateRequest, battle_api: BattleAPI = Depends(get_battle_api)
):
    """Update battle settings."""
    return await battle_api.update_config(request.to_settings_changes())


@router.delete("/battle/manage", dependencies=[Depends(verify_admin_secret)])
async def trigger_battle_generation(battle_api: BattleAPI = Depends(get_battle_api)):
    """Manually trigger battle generation."""
    return await battle_api.trigger_generation()

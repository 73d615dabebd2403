"""User points and leaderboard endpoints."""

from fastapi import APIRouter, Depends, Query

from battles import BattleAPI
from web.dependencies import get_battle_api

router = APIRouter(prefix="/api")


@router.get("/user/points")
async def get_user_points(
    user_address: str = Query(alias="userAddress", min_length=1),
    battle_api: BattleAPI = Depends(get_battle_api),
):
    """Get a user's points balance."""
    return await battle_api.get_user_points(user_address)


@router.get("/user/leaderboard")
async def get_leaderboard(
    limit: int = Query(default=10, ge=1, le=100),
    battle_api: BattleAPI = Depends(get_battle_api),
):
    """Top users by points."""
    return await battle_api.get_leaderboard(limit)

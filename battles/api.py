"""Battle API endpoint handlers."""

import logging
from typing import Any

from fastapi import HTTPException

from .exceptions import BattleError, NoActiveBattleError, NotParticipantError
from .manager import BattleManager
from .models import Battle, BattleHistoryEntry, Cast

logger = logging.getLogger(__name__)


def battle_to_dict(battle: Battle, remaining_seconds: float | None = None) -> dict[str, Any]:
    data = {
        "id": battle.id,
        "title": battle.title,
        "description": battle.description,
        "category": battle.category,
        "source": battle.source,
        "sourceUrl": battle.source_url,
        "debatePoints": battle.debate_points.model_dump(),
        "status": battle.status.value,
        "startTime": battle.start_time.isoformat(),
        "endTime": battle.end_time.isoformat(),
        "durationHours": battle.duration_hours,
        "maxParticipants": battle.max_participants,
        "participants": battle.participant_count,
        "casts": battle.cast_count,
        "createdAt": battle.created_at.isoformat() if battle.created_at else None,
    }
    if remaining_seconds is not None:
        data["remainingSeconds"] = remaining_seconds
    return data


def cast_to_dict(cast: Cast) -> dict[str, Any]:
    return {
        "id": cast.id,
        "battleId": cast.battle_id,
        "userAddress": cast.user_address,
        "content": cast.content,
        "side": cast.side.value,
        "likeCount": cast.like_count,
        "createdAt": cast.created_at.isoformat() if cast.created_at else None,
    }


class BattleAPI:
    """FastAPI endpoint handlers for battle operations."""

    def __init__(self, battle_manager: BattleManager):
        self.manager = battle_manager

    def _domain_error(self, error: BattleError) -> HTTPException:
        if isinstance(error, NoActiveBattleError):
            return HTTPException(status_code=404, detail=str(error))
        if isinstance(error, NotParticipantError):
            return HTTPException(status_code=403, detail=str(error))
        return HTTPException(status_code=400, detail=str(error))

    async def get_current_battle(self) -> dict[str, Any]:
        """Get the battle accepting casts; absence is a normal response."""
        try:
            await self.manager.ensure_consistent_state()
            battle = self.manager.get_current_battle()
            if battle is None:
                return {"success": False, "error": "No active battle available"}

            remaining = battle.remaining_seconds(self.manager.now())
            return {"success": True, "battle": battle_to_dict(battle, remaining)}

        except Exception as e:
            logger.error(f"Failed to fetch current battle: {e}")
            raise HTTPException(status_code=500, detail="Failed to fetch current battle")

    async def join_battle(self, user_address: str) -> dict[str, Any]:
        try:
            self.manager.join_battle(user_address)
            return {
                "success": True,
                "message": "Successfully joined battle",
                "points": self.manager.get_user_points(user_address),
            }

        except BattleError as e:
            logger.info(f"User {user_address} could not join battle: {e}")
            raise self._domain_error(e)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except Exception as e:
            logger.error(f"Failed to join battle for {user_address}: {e}")
            raise HTTPException(status_code=500, detail="Internal server error")

    async def has_joined(self, user_address: str) -> dict[str, Any]:
        try:
            return {"hasJoined": self.manager.has_user_joined_battle(user_address)}
        except Exception as e:
            logger.error(f"Failed to check participation for {user_address}: {e}")
            raise HTTPException(status_code=500, detail="Internal server error")

    async def submit_cast(self, user_address: str, content: str, side: str) -> dict[str, Any]:
        try:
            cast = await self.manager.submit_cast(user_address, content, side)
            return {
                "success": True,
                "message": "Argument submitted successfully",
                "cast": cast_to_dict(cast),
            }

        except BattleError as e:
            logger.info(f"Cast from {user_address} rejected: {e}")
            raise self._domain_error(e)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except Exception as e:
            logger.error(f"Failed to submit cast for {user_address}: {e}")
            raise HTTPException(status_code=500, detail="Internal server error")

    async def get_casts(self) -> dict[str, Any]:
        try:
            casts = self.manager.get_current_battle_casts()
            return {
                "success": True,
                "casts": [cast_to_dict(cast) for cast in casts],
                "count": len(casts),
            }
        except Exception as e:
            logger.error(f"Failed to fetch casts: {e}")
            raise HTTPException(status_code=500, detail="Internal server error")

    async def get_sentiment(self) -> dict[str, Any]:
        try:
            battle = self.manager.get_current_battle()
            return {
                "success": True,
                "battleId": battle.id if battle else None,
                "sentiment": self.manager.get_sentiment().to_message(),
            }
        except Exception as e:
            logger.error(f"Failed to fetch sentiment: {e}")
            raise HTTPException(status_code=500, detail="Internal server error")

    async def like_cast(self, user_address: str, cast_id: str) -> dict[str, Any]:
        try:
            result = self.manager.like_cast(user_address, cast_id)
            return {"success": True, "action": result.action, "likeCount": result.like_count}

        except BattleError as e:
            raise self._domain_error(e)
        except Exception as e:
            logger.error(f"Failed to like cast {cast_id}: {e}")
            raise HTTPException(status_code=500, detail="Internal server error")

    async def get_battle_history(self, limit: int = 10) -> dict[str, Any]:
        try:
            history = self.manager.get_battle_history(limit)
            return {
                "success": True,
                "history": [self._history_to_dict(entry) for entry in history],
                "count": len(history),
            }
        except Exception as e:
            logger.error(f"Failed to fetch battle history: {e}")
            raise HTTPException(status_code=500, detail="Internal server error")

    def _history_to_dict(self, entry: BattleHistoryEntry) -> dict[str, Any]:
        winner_points = self.manager.get_config().winner_points
        return {
            "battle": battle_to_dict(entry.battle),
            "completedAt": entry.completed_at.isoformat() if entry.completed_at else None,
            "participants": entry.total_participants,
            "casts": entry.total_casts,
            "winners": [
                {
                    "address": winner["address"],
                    "username": winner["username"],
                    "position": winner["position"],
                    "prize": winner["prize"],
                    "pointsAwarded": winner_points,
                }
                for winner in entry.winners
            ],
            "winnerAddress": entry.winner_address,
            "winnerSide": entry.winner_side.value if entry.winner_side else None,
        }

    async def get_stats(self) -> dict[str, Any]:
        try:
            stats = self.manager.get_stats()
            return {"success": True, "stats": stats.model_dump()}
        except Exception as e:
            logger.error(f"Failed to fetch battle stats: {e}")
            raise HTTPException(status_code=500, detail="Internal server error")

    async def get_leaderboard(self, limit: int = 10) -> dict[str, Any]:
        try:
            entries = self.manager.get_leaderboard(limit)
            return {
                "success": True,
                "leaderboard": [
                    {
                        "rank": entry.rank,
                        "address": entry.address,
                        "username": entry.username,
                        "points": entry.points,
                        "participations": entry.participation_count,
                        "wins": entry.win_count,
                    }
                    for entry in entries
                ],
            }
        except Exception as e:
            logger.error(f"Failed to fetch leaderboard: {e}")
            raise HTTPException(status_code=500, detail="Internal server error")

    async def get_user_points(self, user_address: str) -> dict[str, Any]:
        try:
            return {
                "success": True,
                "address": user_address,
                "points": self.manager.get_user_points(user_address),
            }
        except Exception as e:
            logger.error(f"Failed to fetch points for {user_address}: {e}")
            raise HTTPException(status_code=500, detail="Internal server error")

    # Administration

    async def get_manager_status(self) -> dict[str, Any]:
        try:
            return {"success": True, "status": self.manager.get_status()}
        except Exception as e:
            logger.error(f"Failed to get battle manager status: {e}")
            raise HTTPException(status_code=500, detail="Internal server error")

    async def update_config(self, changes: dict[str, Any]) -> dict[str, Any]:
        try:
            settings = self.manager.update_config(changes)
            return {
                "success": True,
                "message": "Configuration updated",
                "config": settings.model_dump(),
            }
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except Exception as e:
            logger.error(f"Failed to update battle config: {e}")
            raise HTTPException(status_code=500, detail="Internal server error")

    async def trigger_generation(self) -> dict[str, Any]:
        try:
            battle = await self.manager.trigger_battle_generation()
            if battle is None:
                return {
                    "success": False,
                    "message": "No battle created (one is active, generation is cooling down, or the topic provider failed)",
                }
            return {
                "success": True,
                "message": "New battle generated",
                "battle": battle_to_dict(battle),
            }
        except BattleError as e:
            raise self._domain_error(e)
        except Exception as e:
            logger.error(f"Failed to trigger battle generation: {e}")
            raise HTTPException(status_code=500, detail="Internal server error")

    async def run_completion_check(self) -> dict[str, Any]:
        """Reconcile battle state on behalf of an external scheduler."""
        try:
            await self.manager.ensure_consistent_state()
            battle = self.manager.get_current_battle()
            return {
                "success": True,
                "message": "Battle completion check finished",
                "currentBattle": battle_to_dict(battle) if battle else None,
            }
        except Exception as e:
            logger.error(f"Battle completion check failed: {e}")
            raise HTTPException(status_code=500, detail="Internal server error")

"""Endpoints called by external schedulers."""

import logging

from fastapi import APIRouter, Depends

from battles import BattleAPI
from web.dependencies import get_battle_api, verify_admin_secret

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


@router.get("/cron/battle-completion", dependencies=[Depends(verify_admin_secret)])
async def battle_completion_cron(battle_api: BattleAPI = Depends(get_battle_api)):
    """Complete expired battles and make sure a battle is running."""
    logger.info("Cron battle completion check triggered")
    return await battle_api.run_completion_check()

"""Shared FastAPI dependencies for battle endpoints."""

import logging
import secrets

from fastapi import Header, HTTPException, Request
from starlette.status import HTTP_401_UNAUTHORIZED, HTTP_503_SERVICE_UNAVAILABLE

from battles import BattleAPI

logger = logging.getLogger(__name__)


def get_battle_api(request: Request) -> BattleAPI:
    """Battle API handlers built during application startup."""
    battle_api = getattr(request.app.state, "battle_api", None)
    if battle_api is None:
        raise HTTPException(
            status_code=HTTP_503_SERVICE_UNAVAILABLE, detail="Battle service not initialized"
        )
    return battle_api


def verify_admin_secret(request: Request, authorization: str | None = Header(default=None)) -> None:
    """Require `Authorization: Bearer <CRON_SECRET>` when a secret is configured."""
    config = getattr(request.app.state, "config", None)
    expected = config.system.cron_secret if config else None
    if not expected:
        return

    if not authorization or not secrets.compare_digest(authorization, f"Bearer {expected}"):
        logger.warning(f"Rejected unauthorized admin request to {request.url.path}")
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail="Unauthorized")

"""System health endpoint."""

from fastapi import APIRouter, Request

router = APIRouter(prefix="/api")


@router.get("/health")
async def health_check(request: Request):
    """Health check endpoint to verify API is running."""
    manager = getattr(request.app.state, "battle_manager", None)
    return {
        "isAlive": True,
        "battleManagerRunning": bool(manager and manager.is_running),
    }

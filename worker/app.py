"""FastAPI service that hosts the battle completion worker."""

import logging
import os
import secrets
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from starlette.status import HTTP_401_UNAUTHORIZED

from battles.factory import build_battle_manager
from config.settings import AppConfig, get_default_config
from judges import BaseJudge
from topics import TopicProvider

from .completion_worker import BattleCompletionWorker

logger = logging.getLogger(__name__)


def get_worker(request: Request) -> BattleCompletionWorker:
    worker = getattr(request.app.state, "worker", None)
    if worker is None:
        raise HTTPException(status_code=503, detail="Worker not initialized")
    return worker


def verify_api_key(request: Request, x_api_key: str | None = Header(default=None)) -> None:
    """Require the configured worker API key in the X-API-Key header."""
    expected = request.app.state.config.system.worker_api_key
    if not expected:
        return
    if not x_api_key or not secrets.compare_digest(x_api_key, expected):
        logger.warning(f"Rejected worker request to {request.url.path}: invalid API key")
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail="Invalid API key")


def create_worker_app(
    config: AppConfig | None = None,
    topic_provider: TopicProvider | None = None,
    judge: BaseJudge | None = None,
    clock: Callable[[], datetime] | None = None,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        app_config = config or get_default_config()
        manager = build_battle_manager(app_config, topic_provider, judge, clock)
        worker = BattleCompletionWorker(
            manager, interval_seconds=app_config.system.worker_check_interval_seconds
        )

        app.state.config = app_config
        app.state.battle_manager = manager
        app.state.worker = worker

        await manager.start()
        worker.start()
        logger.info("Battle completion worker service started")

        yield

        await worker.stop()
        await manager.stop()
        logger.info("Battle completion worker service stopped")

    app = FastAPI(
        title="Battle Completion Worker",
        description="Completes expired debate battles on a schedule",
        version="1.0.0",
        lifespan=lifespan,
    )

    @app.get("/health")
    async def health(worker: BattleCompletionWorker = Depends(get_worker)):
        status = worker.get_status()
        return {
            "status": "healthy",
            "isRunning": status["isRunning"],
            "battleManagerInitialized": status["battleManagerInitialized"],
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/status", dependencies=[Depends(verify_api_key)])
    async def status(worker: BattleCompletionWorker = Depends(get_worker)):
        return {"success": True, "status": worker.get_status()}

    @app.post("/trigger", dependencies=[Depends(verify_api_key)])
    async def trigger(worker: BattleCompletionWorker = Depends(get_worker)):
        succeeded = await worker.trigger_manual_check()
        return {
            "success": succeeded,
            "message": "Manual check completed" if succeeded else "Manual check failed",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    return app


def main() -> None:
    """Run the worker service with uvicorn."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    import uvicorn

    port = int(os.environ.get("WORKER_PORT", 3001))
    uvicorn.run(create_worker_app(), host="0.0.0.0", port=port, log_level="info")


if __name__ == "__main__":
    main()

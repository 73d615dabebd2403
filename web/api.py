"""FastAPI web application for the Debate Battles service."""

import logging
import os
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from battles import BattleAPI
from battles.factory import build_battle_manager
from config.settings import AppConfig, get_default_config
from judges import BaseJudge
from topics import TopicProvider
from web.endpoints.battles import router as battles_router
from web.endpoints.cron import router as cron_router
from web.endpoints.streams import router as streams_router, ws_router as streams_ws_router
from web.endpoints.system import router as system_router
from web.endpoints.users import router as users_router
from worker.client import WorkerServiceClient

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()],
)

logger: logging.Logger = logging.getLogger(__name__)


async def check_worker_health(config: AppConfig) -> None:
    """Log whether the external completion worker is reachable."""
    if not config.system.worker_base_url:
        return

    client = WorkerServiceClient(config.system.worker_base_url, config.system.worker_api_key)
    if await client.is_healthy():
        logger.info(f"Battle completion worker healthy at {config.system.worker_base_url}")
    else:
        logger.warning(
            f"Battle completion worker unreachable at {config.system.worker_base_url}; "
            "relying on in-process timers and request-triggered checks"
        )


def get_allowed_origins() -> list[str] | None:
    """Get CORS origins from environment or use development defaults."""
    env_origins: str | None = os.environ.get("ALLOWED_ORIGINS")
    if env_origins:
        return [origin.strip() for origin in env_origins.split(",")]
    return None


def create_app(
    config: AppConfig | None = None,
    topic_provider: TopicProvider | None = None,
    judge: BaseJudge | None = None,
    clock: Callable[[], datetime] | None = None,
) -> FastAPI:
    """Create the application; services are built when the app starts."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Manage application lifespan - startup and shutdown."""
        app_config = config or get_default_config()
        manager = build_battle_manager(app_config, topic_provider, judge, clock)

        app.state.config = app_config
        app.state.battle_manager = manager
        app.state.broadcaster = manager.broadcaster
        app.state.battle_api = BattleAPI(manager)

        await manager.start()
        await check_worker_health(app_config)

        yield

        await manager.stop()

    app = FastAPI(
        title="Debate Battles",
        description="Timed debate battles with AI topics and judging",
        version="1.0.0",
        lifespan=lifespan,
    )

    allowed_origins = get_allowed_origins()
    if allowed_origins:
        logging.info(f"Setting CORS allowed origins: {allowed_origins}")
        app.add_middleware(
            CORSMiddleware,
            allow_origins=allowed_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
    else:
        logging.info("No ALLOWED_ORIGINS set, using development CORS settings")
        app.add_middleware(
            CORSMiddleware,
            allow_origin_regex=r"https?://(localhost|127\.0\.0\.1)(:\d+)?",
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(system_router, prefix="/v1")
    app.include_router(battles_router, prefix="/v1")
    app.include_router(users_router, prefix="/v1")
    app.include_router(cron_router, prefix="/v1")
    app.include_router(streams_router, prefix="/v1")
    app.include_router(streams_ws_router, prefix="/v1")

    return app


app: FastAPI = create_app()

"""Periodic battle completion checks for a standalone worker process."""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any

from battles.manager import BattleManager

logger = logging.getLogger(__name__)


class BattleCompletionWorker:
    """Pokes the battle manager on a fixed interval.

    The manager's own expiry timer is lost on restart; this loop is the
    durable fallback that guarantees expired battles get completed.
    """

    def __init__(self, manager: BattleManager, interval_seconds: float = 300, max_retries: int = 3):
        self.manager = manager
        self.interval_seconds = interval_seconds
        self.max_retries = max_retries

        self.retry_count = 0
        self.last_successful_check: datetime | None = None
        self._running = False
        self._task: asyncio.Task | None = None
        self._started_at = time.monotonic()

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Start the check loop; the first check runs immediately."""
        if self._running:
            logger.warning("Worker is already running")
            return

        self._running = True
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info(f"Battle completion worker started (checking every {self.interval_seconds:.0f}s)")

    async def stop(self) -> None:
        if not self._running:
            logger.warning("Worker is not running")
            return

        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                logger.info("Battle completion worker task cancelled")
            self._task = None
        logger.info("Battle completion worker stopped")

    async def _run(self) -> None:
        while self._running:
            await self.perform_battle_check()
            await asyncio.sleep(self.interval_seconds)

    async def perform_battle_check(self) -> bool:
        """Run one reconciliation; returns whether it succeeded."""
        started = time.monotonic()
        try:
            await self.manager.ensure_consistent_state()
            # Reading status proves the database is reachable
            self.manager.get_status()
        except Exception as e:
            self.retry_count += 1
            logger.error(
                f"Battle check failed (attempt {self.retry_count}/{self.max_retries}): {e}"
            )
            if self.retry_count >= self.max_retries:
                await self._reinitialize()
            return False

        self.retry_count = 0
        self.last_successful_check = datetime.now(timezone.utc)
        logger.info(f"Battle check completed in {(time.monotonic() - started) * 1000:.0f}ms")
        return True

    async def _reinitialize(self) -> None:
        logger.info("Max retries exceeded, reinitializing battle manager")
        try:
            await self.manager.stop()
            await self.manager.start()
            self.retry_count = 0
        except Exception as e:
            logger.error(f"Failed to reinitialize battle manager: {e}")

    async def trigger_manual_check(self) -> bool:
        logger.info("Manual battle check triggered")
        return await self.perform_battle_check()

    def get_status(self) -> dict[str, Any]:
        return {
            "isRunning": self._running,
            "battleManagerInitialized": self.manager.is_running,
            "lastSuccessfulCheck": (
                self.last_successful_check.isoformat() if self.last_successful_check else None
            ),
            "retryCount": self.retry_count,
            "uptime": time.monotonic() - self._started_at,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

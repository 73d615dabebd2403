"""Cross-process shared state backed by the battle database."""

import logging
import math
import sqlite3
from datetime import datetime, timezone
from typing import Any

from .database import BattleDatabaseManager

logger = logging.getLogger(__name__)

STATE_KEY = "battle_manager_state"


class SharedStateStore:
    """Rate-limit cooldown shared by every process using the same database.

    Writes are last-write-wins. Read failures are treated as "no cooldown"
    so a flaky store never blocks battle generation outright.
    """

    def __init__(self, db: BattleDatabaseManager, key: str = STATE_KEY):
        self.db = db
        self.key = key

    def get_rate_limit_cooldown(self) -> datetime | None:
        try:
            state = self.db.get_state(self.key)
        except sqlite3.Error as e:
            logger.error(f"Failed to read rate limit cooldown: {e}")
            return None
        return state["rate_limit_cooldown"] if state else None

    def set_rate_limit_cooldown(self, cooldown: datetime | None) -> None:
        self.db.set_state(self.key, cooldown)
        if cooldown:
            logger.info(f"Rate limit cooldown set until {cooldown.isoformat()}")
        else:
            logger.info("Rate limit cooldown cleared")

    def is_cooldown_active(self, now: datetime | None = None) -> bool:
        cooldown = self.get_rate_limit_cooldown()
        if cooldown is None:
            return False
        return (now or datetime.now(timezone.utc)) < cooldown

    def get_remaining_minutes(self, now: datetime | None = None) -> int:
        """Whole minutes left on the cooldown, rounded up."""
        cooldown = self.get_rate_limit_cooldown()
        if cooldown is None:
            return 0
        remaining = (cooldown - (now or datetime.now(timezone.utc))).total_seconds()
        return max(0, math.ceil(remaining / 60))

    def get_state_info(self, now: datetime | None = None) -> dict[str, Any]:
        cooldown = self.get_rate_limit_cooldown()
        return {
            "rateLimitCooldown": cooldown.isoformat() if cooldown else None,
            "isCooldownActive": self.is_cooldown_active(now),
            "remainingMinutes": self.get_remaining_minutes(now),
        }

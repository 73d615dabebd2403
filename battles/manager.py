"""Battle lifecycle orchestration."""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

from config.settings import BattleSettings
from judges.base import BaseJudge
from topics.base import TopicProvider, is_rate_limit_message

from .database import BattleDatabaseManager
from .events import BattleEvent, BattleEventBroadcaster
from .exceptions import (
    ActiveBattleExistsError,
    BattleGenerationDisabledError,
    InvalidCastError,
    NoActiveBattleError,
    NotParticipantError,
)
from .models import (
    Battle,
    BattleCreate,
    BattleHistoryEntry,
    BattleStats,
    BattleStatus,
    BattleWinner,
    Cast,
    CastSide,
    LeaderboardEntry,
    LikeResult,
    Participation,
    Sentiment,
    WinnerAwarded,
)
from .shared_state import SharedStateStore

logger = logging.getLogger(__name__)

WINNER_PRIZE = "Winner of the battle"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BattleManager:
    """Keeps exactly one battle running and drives it through its lifecycle.

    Every trigger (expiry timer, retry timer, HTTP requests, cron, external
    worker) funnels into ensure_consistent_state(). Two in-process guards stop
    overlapping creation and completion; the database's single-active-battle
    index and the points ledger cover concurrent processes.
    """

    def __init__(
        self,
        db: BattleDatabaseManager,
        topic_provider: TopicProvider,
        judge: BaseJudge,
        broadcaster: BattleEventBroadcaster,
        settings: BattleSettings,
        shared_state: SharedStateStore | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.db = db
        self.topic_provider = topic_provider
        self.judge = judge
        self.broadcaster = broadcaster
        self.shared_state = shared_state or SharedStateStore(db)
        self._settings = settings.model_copy()
        self._clock = clock or _utcnow

        self._generating = False
        self._completing = False
        self._timers: set[asyncio.TimerHandle] = set()
        self._scheduled_battle_id: str | None = None
        self._tasks: set[asyncio.Task] = set()
        self._started = False

    def now(self) -> datetime:
        return self._clock()

    # Lifecycle

    async def start(self) -> None:
        """Reconcile persisted state and arm the expiry timer."""
        if self._started:
            return
        self._started = True
        logger.info(
            f"Starting battle manager (duration {self._settings.duration_hours}h, "
            f"generation {'enabled' if self._settings.enabled else 'disabled'})"
        )
        await self.ensure_consistent_state()

    async def stop(self) -> None:
        """Cancel pending timers and in-flight scheduled checks."""
        self._clear_timers()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        self._started = False
        logger.info("Battle manager stopped")

    @property
    def is_running(self) -> bool:
        return self._started

    # Reconciliation

    async def ensure_consistent_state(self) -> None:
        """Bring persisted battle state in line with the clock.

        Safe to call concurrently and as often as needed. Never raises.
        """
        if not self._settings.enabled:
            logger.debug("Battle generation disabled, skipping state check")
            return

        try:
            for battle in self.db.get_expired_battles(self.now()):
                logger.info(f"Battle {battle.id} expired at {battle.end_time.isoformat()}")
                await self.handle_battle_completion(battle.id)

            if not self._completing:
                await self._settle_unawarded_wins()

            active = self.db.get_active_battle()
            if active and not active.is_expired(self.now()) and self._has_duration_drift(active):
                await self._complete_for_duration_change(active)
                active = self.db.get_active_battle()

            if active is None:
                await self.create_new_battle()
            elif not active.is_expired(self.now()) and self._scheduled_battle_id != active.id:
                self._schedule_expiry(active)

        except Exception as e:
            logger.error(f"Error ensuring consistent battle state: {e}")
            self._schedule_retry()

    def _has_duration_drift(self, battle: Battle) -> bool:
        drift = abs(battle.duration_hours - self._settings.duration_hours)
        return drift > self._settings.duration_tolerance_hours

    async def _complete_for_duration_change(self, battle: Battle) -> None:
        """End a battle started under a different configured duration.

        Its casts stay stored but are not judged.
        """
        if self._completing:
            logger.info("Completion already in progress, skipping duration change")
            return

        self._completing = True
        try:
            logger.info(
                f"Battle {battle.id} duration {battle.duration_hours}h differs from configured "
                f"{self._settings.duration_hours}h, completing it without winners"
            )
            await self.broadcaster.publish(
                BattleEvent.battle_ended(battle, reason="duration_change")
            )
            self.db.complete_battle(battle.id, [])
            if self._scheduled_battle_id == battle.id:
                self._clear_timers()
        finally:
            self._completing = False

    # Creation

    async def create_new_battle(self) -> Battle | None:
        """Create the next battle unless one exists or generation must wait.

        Returns the created battle, or None when nothing was created.
        """
        if self._generating:
            logger.info("Battle generation already in progress, skipping")
            return None

        self._generating = True
        try:
            return await self._create_new_battle()
        finally:
            self._generating = False

    async def _create_new_battle(self) -> Battle | None:
        if self.shared_state.is_cooldown_active(self.now()):
            remaining = self.shared_state.get_remaining_minutes(self.now())
            logger.info(f"Rate limit cooldown active ({remaining} min left), skipping generation")
            self._schedule_after_cooldown()
            return None

        # Another process may have created one since the caller looked
        existing = self.db.get_active_battle()
        if existing is not None:
            logger.info("Active battle already exists, skipping generation")
            self._follow_battle(existing)
            return None

        try:
            topic = await self.topic_provider.get_daily_topic()
        except Exception as e:
            if is_rate_limit_message(str(e)):
                logger.warning(f"Topic provider rate limited: {e}")
                self._start_cooldown()
                self._schedule_after_cooldown()
            else:
                logger.error(f"Failed to get battle topic: {e}")
                self._schedule_retry()
            return None

        # Anchor the window to when the topic actually arrived
        start_time = self.now()
        battle_create = BattleCreate.from_topic(
            topic,
            start_time=start_time,
            duration_hours=self._settings.duration_hours,
            max_participants=self._settings.max_participants,
        )

        try:
            battle = self.db.create_battle(battle_create)
        except ActiveBattleExistsError:
            logger.info("Another instance created the active battle first, skipping")
            existing = self.db.get_active_battle()
            if existing is not None:
                self._follow_battle(existing)
            return None

        logger.info(
            f"Battle {battle.id} started: '{battle.title}' until {battle.end_time.isoformat()}"
        )
        await self.broadcaster.publish(BattleEvent.battle_started(battle))
        self._schedule_expiry(battle)
        return battle

    def _start_cooldown(self) -> None:
        now = self.now()
        existing = self.shared_state.get_rate_limit_cooldown()
        if existing and existing > now:
            logger.info(f"Cooldown already active until {existing.isoformat()}, keeping it")
            return

        cooldown = now + timedelta(seconds=self._settings.rate_limit_cooldown_seconds)
        self.shared_state.set_rate_limit_cooldown(cooldown)

    async def trigger_battle_generation(self) -> Battle | None:
        """Manually request a new battle."""
        if not self._settings.enabled:
            raise BattleGenerationDisabledError()
        logger.info("Manual battle generation triggered")
        return await self.create_new_battle()

    # Completion

    async def handle_battle_completion(self, battle_id: str) -> None:
        """Judge, close and replace a finished battle.

        Never raises; a failure arms a short retry and leaves the battle for
        the next reconciliation.
        """
        if self._completing:
            logger.info(f"Completion already in progress, skipping battle {battle_id}")
            return

        self._completing = True
        try:
            battle = self.db.get_battle(battle_id)
            if battle is None or battle.status != BattleStatus.ACTIVE:
                logger.info(f"Battle {battle_id} missing or already completed, nothing to do")
                return

            logger.info(f"Completing battle {battle.id}: {battle.title}")
            await self.broadcaster.publish(BattleEvent.battle_ended(battle))
            await self.broadcaster.publish(
                BattleEvent.status_update("Judging in progress...", "judging")
            )

            await self._judge_and_complete(battle)

            if self._scheduled_battle_id == battle.id:
                self._clear_timers()

            await self.broadcaster.publish(
                BattleEvent.status_update("Generating new battle...", "generating")
            )
            await self.create_new_battle()

        except Exception as e:
            logger.error(f"Battle completion failed for {battle_id}: {e}")
            self._schedule_retry()
        finally:
            self._completing = False

    async def _judge_and_complete(self, battle: Battle) -> None:
        casts = self.db.get_casts_for_battle(battle.id)
        if not casts:
            logger.info(f"No casts in battle {battle.id}, completing without winners")
            self.db.complete_battle(battle.id, [])
            return

        winner = None
        try:
            result = await self.judge.judge(battle, casts)
            winner = result.winner
        except Exception as e:
            logger.warning(f"Judging failed for battle {battle.id}, no winner: {e}")

        if winner and not any(cast.user_id == winner.user_id for cast in casts):
            logger.warning(f"Judge picked user {winner.user_id} who has no cast, ignoring")
            winner = None

        if winner is None:
            logger.info(f"Battle {battle.id} has no winner")
            self.db.complete_battle(battle.id, [])
            return

        try:
            completed = self.db.complete_battle(
                battle.id,
                [BattleWinner(user_id=winner.user_id, position=1, prize=WINNER_PRIZE)],
            )
        except sqlite3.Error as e:
            logger.warning(
                f"Failed to record winner for battle {battle.id}, "
                f"falling back to completion without winners: {e}"
            )
            self.db.complete_battle(battle.id, [])
            return

        if not completed:
            return

        try:
            await self._award_winner(battle.id, winner.user_id)
        except sqlite3.Error as e:
            # Winner is recorded; the next state check pays the points
            logger.error(
                f"Battle {battle.id} completed with winner {winner.user_id} "
                f"but awarding points failed: {e}"
            )

    async def _settle_unawarded_wins(self) -> None:
        for win in self.db.get_unawarded_wins():
            logger.info(f"Paying outstanding winner award for battle {win['battle_id']}")
            await self._award_winner(win["battle_id"], win["user_id"])

    async def _award_winner(self, battle_id: str, user_id: str) -> None:
        new_total = self.db.apply_award(
            WinnerAwarded(
                battle_id=battle_id,
                user_id=user_id,
                points=self._settings.winner_points,
                reason="winner",
            )
        )
        if new_total is None:
            return

        user = self.db.get_user_by_id(user_id)
        winner_address = user.address if user else user_id
        logger.info(f"Awarded {self._settings.winner_points} points to {winner_address}")
        await self.broadcaster.publish(BattleEvent.leaderboard_update(winner_address, new_total))

    # Scheduling

    def _schedule_expiry(self, battle: Battle) -> None:
        delay = battle.remaining_seconds(self.now())
        self._arm_timer(delay)
        self._scheduled_battle_id = battle.id
        logger.info(f"Battle {battle.id} expiry check scheduled in {delay:.0f}s")

    def _schedule_retry(self) -> None:
        delay = self._settings.completion_retry_seconds
        self._arm_timer(delay)
        logger.info(f"Retrying battle state check in {delay:.0f}s")

    def _schedule_after_cooldown(self) -> None:
        cooldown = self.shared_state.get_rate_limit_cooldown()
        if cooldown is None:
            self._schedule_retry()
            return
        delay = (cooldown - self.now()).total_seconds()
        self._arm_timer(delay)
        logger.info(f"Next battle generation attempt after cooldown in {max(0.0, delay):.0f}s")

    def _follow_battle(self, battle: Battle) -> None:
        if self._scheduled_battle_id != battle.id:
            self._schedule_expiry(battle)

    def _arm_timer(self, delay: float) -> None:
        self._clear_timers()
        loop = asyncio.get_running_loop()
        self._timers.add(loop.call_later(max(0.0, delay), self._on_timer))

    def _clear_timers(self) -> None:
        for handle in self._timers:
            handle.cancel()
        self._timers.clear()
        self._scheduled_battle_id = None

    def _on_timer(self) -> None:
        self._timers.clear()
        self._scheduled_battle_id = None
        task = asyncio.get_running_loop().create_task(self.ensure_consistent_state())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # Participation

    def get_current_battle(self) -> Battle | None:
        """Battle currently accepting casts, if any."""
        return self.db.get_current_battle(self.now())

    def _require_current_battle(self) -> Battle:
        battle = self.get_current_battle()
        if battle is None:
            raise NoActiveBattleError()
        return battle

    def join_battle(self, address: str) -> Participation:
        battle = self._require_current_battle()
        user = self.db.get_or_create_user(address)
        participation = self.db.join_battle(user.id, battle.id)

        if self._settings.participation_points > 0:
            self.db.apply_award(
                WinnerAwarded(
                    battle_id=battle.id,
                    user_id=user.id,
                    points=self._settings.participation_points,
                    reason="participation",
                )
            )

        logger.info(f"User {address} joined battle {battle.id}")
        return participation

    def has_user_joined_battle(self, address: str) -> bool:
        battle = self.get_current_battle()
        user = self.db.get_user_by_address(address)
        if battle is None or user is None:
            return False
        return self.db.has_user_joined_battle(user.id, battle.id)

    def create_cast(self, address: str, content: str, side: CastSide | str) -> Cast:
        content = content.strip()
        if len(content) < self._settings.min_cast_length:
            raise InvalidCastError(
                f"Argument must be at least {self._settings.min_cast_length} characters"
            )
        try:
            cast_side = side if isinstance(side, CastSide) else CastSide(str(side).upper())
        except ValueError as e:
            raise InvalidCastError("Side must be SUPPORT or OPPOSE") from e

        battle = self._require_current_battle()
        user = self.db.get_user_by_address(address)
        if user is None:
            raise NotParticipantError()

        cast = self.db.create_cast(user.id, battle.id, content, cast_side)
        logger.info(f"User {address} cast {cast_side.value} in battle {battle.id}")
        return cast

    async def submit_cast(self, address: str, content: str, side: CastSide | str) -> Cast:
        """Create a cast and push the updated side counts to live subscribers."""
        cast = self.create_cast(address, content, side)
        sentiment = Sentiment.from_casts(self.db.get_casts_for_battle(cast.battle_id))
        await self.broadcaster.publish(BattleEvent.sentiment_update(cast.battle_id, sentiment))
        return cast

    def get_sentiment(self) -> Sentiment:
        return Sentiment.from_casts(self.get_current_battle_casts())

    def get_timer_event(self) -> BattleEvent:
        now = self.now()
        return BattleEvent.timer_update(self.db.get_current_battle(now), now)

    def get_current_battle_casts(self) -> list[Cast]:
        battle = self.get_current_battle()
        if battle is None:
            return []
        return self.db.get_casts_for_battle(battle.id)

    def like_cast(self, address: str, cast_id: str) -> LikeResult:
        user = self.db.get_or_create_user(address)
        return self.db.like_cast(user.id, cast_id)

    # Read side

    def get_battle_history(self, limit: int = 10) -> list[BattleHistoryEntry]:
        return self.db.get_battle_history(limit)

    def get_stats(self) -> BattleStats:
        return self.db.get_battle_stats()

    def get_leaderboard(self, limit: int = 10) -> list[LeaderboardEntry]:
        return self.db.get_leaderboard(limit)

    def get_user_points(self, address: str) -> int:
        return self.db.get_user_points(address)

    # Configuration

    def get_config(self) -> BattleSettings:
        return self._settings.model_copy()

    def update_config(self, changes: dict[str, Any]) -> BattleSettings:
        """Apply a partial settings update.

        Raises:
            ValueError: unknown keys or values that fail validation
        """
        unknown = set(changes) - set(BattleSettings.model_fields)
        if unknown:
            raise ValueError(f"Unknown battle settings: {sorted(unknown)}")

        merged = {**self._settings.model_dump(), **changes}
        self._settings = BattleSettings.model_validate(merged)
        logger.info(f"Battle settings updated: {changes}")
        return self.get_config()

    def get_status(self) -> dict[str, Any]:
        now = self.now()
        battle = self.db.get_current_battle(now)
        return {
            "isRunning": self._started,
            "currentBattle": (
                {
                    "id": battle.id,
                    "title": battle.title,
                    "status": battle.status.value,
                    "participants": battle.participant_count,
                    "casts": battle.cast_count,
                    "endTime": battle.end_time.isoformat(),
                    "remainingSeconds": battle.remaining_seconds(now),
                }
                if battle
                else None
            ),
            "config": self._settings.model_dump(),
            "cooldown": self.shared_state.get_state_info(now),
            "isGenerating": self._generating,
            "isCompleting": self._completing,
            "pendingTimers": len(self._timers),
            "scheduledBattleId": self._scheduled_battle_id,
            "subscribers": self.broadcaster.subscriber_count,
        }

"""Battle database operations."""

import json
import logging
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .exceptions import (
    ActiveBattleExistsError,
    AlreadyJoinedError,
    BattleFullError,
    BattleNotActiveError,
    CastNotFoundError,
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
    DebatePoints,
    LeaderboardEntry,
    LikeResult,
    Participation,
    User,
    WinnerAwarded,
)
from .schema import SchemaManager

logger = logging.getLogger(__name__)

BATTLE_SELECT = """
    SELECT b.*,
           (SELECT COUNT(*) FROM battle_participations p WHERE p.battle_id = b.id)
               AS participant_count,
           (SELECT COUNT(*) FROM casts c WHERE c.battle_id = b.id) AS cast_count
    FROM battles b
"""


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_db_time(value: datetime) -> str:
    """Serialize a datetime as fixed-width UTC ISO text (sorts lexicographically)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_db_time(value: str | None) -> datetime | None:
    if value is None:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class BattleDatabaseManager:
    """Manages SQLite database operations for battles, users and casts."""

    def __init__(self, db_path: str = "battles.db"):
        self.db_path = Path(db_path)
        self.schema_manager = SchemaManager()
        self._init_database()

    def _init_database(self) -> None:
        """Initialize the database with required tables using schema manager."""
        if not self.schema_manager.validate_schema_files():
            raise RuntimeError("Database schema validation failed - missing schema files")

        with self._get_connection() as conn:
            cursor = conn.cursor()
            self.schema_manager.initialize_database_schema(cursor)
            conn.commit()
            logger.info(f"Battle database initialized at {self.db_path}")

    @contextmanager
    def _get_connection(self):
        """Get a database connection with proper error handling."""
        conn = None
        try:
            conn = sqlite3.connect(self.db_path, timeout=30.0)
            conn.row_factory = sqlite3.Row  # Enable column access by name
            conn.execute("PRAGMA foreign_keys = ON")
            yield conn
        except sqlite3.Error as e:
            if conn:
                conn.rollback()
            logger.error(f"Battle database error: {e}")
            raise
        finally:
            if conn:
                conn.close()

    # Row conversion

    def _row_to_battle(self, row: sqlite3.Row) -> Battle:
        keys = row.keys()
        return Battle(
            id=row["id"],
            title=row["title"],
            description=row["description"],
            category=row["category"],
            source=row["source"],
            source_url=row["source_url"],
            debate_points=DebatePoints.model_validate(json.loads(row["debate_points"] or "{}")),
            status=BattleStatus(row["status"]),
            start_time=from_db_time(row["start_time"]),
            end_time=from_db_time(row["end_time"]),
            duration_hours=row["duration_hours"],
            max_participants=row["max_participants"],
            created_at=from_db_time(row["created_at"]),
            participant_count=row["participant_count"] if "participant_count" in keys else 0,
            cast_count=row["cast_count"] if "cast_count" in keys else 0,
        )

    def _row_to_user(self, row: sqlite3.Row) -> User:
        return User(
            id=row["id"],
            address=row["address"],
            username=row["username"],
            points=row["points"],
            created_at=from_db_time(row["created_at"]),
        )

    def _row_to_cast(self, row: sqlite3.Row) -> Cast:
        keys = row.keys()
        return Cast(
            id=row["id"],
            user_id=row["user_id"],
            battle_id=row["battle_id"],
            content=row["content"],
            side=CastSide(row["side"]),
            created_at=from_db_time(row["created_at"]),
            user_address=row["user_address"] if "user_address" in keys else None,
            like_count=row["like_count"] if "like_count" in keys else 0,
        )

    # Battle management

    def create_battle(self, battle: BattleCreate) -> Battle:
        """Persist a new ACTIVE battle.

        Raises:
            ActiveBattleExistsError: another ACTIVE battle already exists
        """
        battle_id = _new_id()
        now = to_db_time(_utcnow())

        with self._get_connection() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(
                    """
                    INSERT INTO battles (
                        id, title, description, category, source, source_url,
                        debate_points, status, start_time, end_time, duration_hours,
                        max_participants, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        battle_id,
                        battle.title,
                        battle.description,
                        battle.category,
                        battle.source,
                        battle.source_url,
                        json.dumps(battle.debate_points.model_dump()),
                        BattleStatus.ACTIVE.value,
                        to_db_time(battle.start_time),
                        to_db_time(battle.end_time),
                        battle.duration_hours,
                        battle.max_participants,
                        now,
                        now,
                    ),
                )
            except sqlite3.IntegrityError as e:
                conn.rollback()
                if "idx_battles_single_active" in str(e) or "battles.status" in str(e):
                    raise ActiveBattleExistsError() from e
                raise

            conn.commit()

        logger.info(f"Created battle {battle_id}: {battle.title}")
        created = self.get_battle(battle_id)
        if created is None:
            raise RuntimeError(f"Battle {battle_id} missing right after insert")
        return created

    def get_battle(self, battle_id: str) -> Battle | None:
        """Get battle by ID."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f"{BATTLE_SELECT} WHERE b.id = ?", (battle_id,))
            row = cursor.fetchone()
            return self._row_to_battle(row) if row else None

    def get_active_battle(self) -> Battle | None:
        """Get the ACTIVE battle whether or not its window has closed."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"{BATTLE_SELECT} WHERE b.status = ? ORDER BY b.created_at DESC LIMIT 1",
                (BattleStatus.ACTIVE.value,),
            )
            row = cursor.fetchone()
            return self._row_to_battle(row) if row else None

    def get_current_battle(self, now: datetime | None = None) -> Battle | None:
        """Get the ACTIVE battle still accepting submissions."""
        now = now or _utcnow()
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                {BATTLE_SELECT}
                WHERE b.status = ? AND b.end_time > ?
                ORDER BY b.created_at DESC LIMIT 1
                """,
                (BattleStatus.ACTIVE.value, to_db_time(now)),
            )
            row = cursor.fetchone()
            return self._row_to_battle(row) if row else None

    def get_expired_battles(self, now: datetime | None = None) -> list[Battle]:
        """Get ACTIVE battles whose end time has passed."""
        now = now or _utcnow()
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                {BATTLE_SELECT}
                WHERE b.status = ? AND b.end_time <= ?
                ORDER BY b.end_time
                """,
                (BattleStatus.ACTIVE.value, to_db_time(now)),
            )
            return [self._row_to_battle(row) for row in cursor.fetchall()]

    def complete_battle(self, battle_id: str, winners: list[BattleWinner]) -> bool:
        """Transition a battle ACTIVE -> COMPLETED and attach winners.

        Returns False when the battle was missing or already completed, in
        which case nothing is written.
        """
        now = to_db_time(_utcnow())

        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("BEGIN IMMEDIATE")

            cursor.execute(
                """
                UPDATE battles SET status = ?, updated_at = ?
                WHERE id = ? AND status = ?
                """,
                (BattleStatus.COMPLETED.value, now, battle_id, BattleStatus.ACTIVE.value),
            )
            if cursor.rowcount == 0:
                conn.rollback()
                logger.info(f"Battle {battle_id} already completed or missing, skipping")
                return False

            for winner in winners:
                cursor.execute(
                    """
                    INSERT INTO battle_wins (id, battle_id, user_id, position, prize)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (_new_id(), battle_id, winner.user_id, winner.position, winner.prize),
                )

            cursor.execute(
                "SELECT COUNT(*) FROM battle_participations WHERE battle_id = ?",
                (battle_id,),
            )
            total_participants = cursor.fetchone()[0]
            cursor.execute("SELECT COUNT(*) FROM casts WHERE battle_id = ?", (battle_id,))
            total_casts = cursor.fetchone()[0]
            cursor.execute(
                """
                SELECT u.address FROM battle_wins w JOIN users u ON u.id = w.user_id
                WHERE w.battle_id = ? ORDER BY w.position LIMIT 1
                """,
                (battle_id,),
            )
            winner_row = cursor.fetchone()

            cursor.execute(
                """
                INSERT INTO battle_history (
                    id, battle_id, completed_at, total_participants, total_casts, winner_address
                ) VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(battle_id) DO UPDATE SET
                    completed_at = excluded.completed_at,
                    total_participants = excluded.total_participants,
                    total_casts = excluded.total_casts,
                    winner_address = excluded.winner_address
                """,
                (
                    _new_id(),
                    battle_id,
                    now,
                    total_participants,
                    total_casts,
                    winner_row["address"] if winner_row else None,
                ),
            )

            conn.commit()

        logger.info(f"Completed battle {battle_id} with {len(winners)} winner(s)")
        return True

    def get_battle_winners(self, battle_id: str) -> list[dict[str, Any]]:
        """Get winner records with user details."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT w.user_id, w.position, w.prize, u.address, u.username
                FROM battle_wins w JOIN users u ON u.id = w.user_id
                WHERE w.battle_id = ?
                ORDER BY w.position
                """,
                (battle_id,),
            )
            return [dict(row) for row in cursor.fetchall()]

    def get_unawarded_wins(self, reason: str = "winner") -> list[dict[str, Any]]:
        """First-place winner records with no matching points award yet."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT w.battle_id, w.user_id
                FROM battle_wins w
                LEFT JOIN point_awards p
                    ON p.battle_id = w.battle_id AND p.user_id = w.user_id AND p.reason = ?
                WHERE w.position = 1 AND p.id IS NULL
                ORDER BY w.battle_id
                """,
                (reason,),
            )
            return [dict(row) for row in cursor.fetchall()]

    def get_battle_history(self, limit: int = 10) -> list[BattleHistoryEntry]:
        """Get completed battles, most recent first."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT h.battle_id, h.completed_at, h.total_participants,
                       h.total_casts, h.winner_address
                FROM battle_history h
                ORDER BY h.completed_at DESC
                LIMIT ?
                """,
                (limit,),
            )
            history_rows = cursor.fetchall()

        entries = []
        for row in history_rows:
            battle = self.get_battle(row["battle_id"])
            if battle is None:
                continue

            winners = self.get_battle_winners(battle.id)
            winner_side = None
            if winners:
                winner_side = self._get_user_side(battle.id, winners[0]["user_id"])

            entries.append(
                BattleHistoryEntry(
                    battle=battle,
                    completed_at=from_db_time(row["completed_at"]),
                    total_participants=row["total_participants"],
                    total_casts=row["total_casts"],
                    winner_address=row["winner_address"],
                    winners=winners,
                    winner_side=winner_side,
                )
            )

        return entries

    def _get_user_side(self, battle_id: str, user_id: str) -> CastSide | None:
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT side FROM casts WHERE battle_id = ? AND user_id = ?
                ORDER BY created_at LIMIT 1
                """,
                (battle_id, user_id),
            )
            row = cursor.fetchone()
            return CastSide(row["side"]) if row else None

    def get_recent_battle_titles(self, count: int) -> list[str]:
        """Titles of the most recently created battles."""
        if count <= 0:
            return []
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT title FROM battles ORDER BY created_at DESC LIMIT ?", (count,)
            )
            return [row["title"] for row in cursor.fetchall()]

    # Users

    def get_or_create_user(self, address: str) -> User:
        """Upsert a user by address."""
        now = to_db_time(_utcnow())
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO users (id, address, points, created_at, updated_at)
                VALUES (?, ?, 0, ?, ?)
                ON CONFLICT(address) DO UPDATE SET updated_at = excluded.updated_at
                """,
                (_new_id(), address, now, now),
            )
            conn.commit()
            cursor.execute("SELECT * FROM users WHERE address = ?", (address,))
            return self._row_to_user(cursor.fetchone())

    def get_user_by_address(self, address: str) -> User | None:
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM users WHERE address = ?", (address,))
            row = cursor.fetchone()
            return self._row_to_user(row) if row else None

    def get_user_by_id(self, user_id: str) -> User | None:
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM users WHERE id = ?", (user_id,))
            row = cursor.fetchone()
            return self._row_to_user(row) if row else None

    # Participation

    def join_battle(self, user_id: str, battle_id: str) -> Participation:
        """Add a participant, enforcing uniqueness, capacity and status."""
        participation_id = _new_id()
        joined_at = to_db_time(_utcnow())

        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("BEGIN IMMEDIATE")

            cursor.execute(
                "SELECT 1 FROM battle_participations WHERE user_id = ? AND battle_id = ?",
                (user_id, battle_id),
            )
            if cursor.fetchone():
                conn.rollback()
                raise AlreadyJoinedError()

            cursor.execute(
                f"{BATTLE_SELECT} WHERE b.id = ?",
                (battle_id,),
            )
            row = cursor.fetchone()
            if not row:
                conn.rollback()
                raise BattleNotActiveError("Battle not found")

            battle = self._row_to_battle(row)
            if battle.participant_count >= battle.max_participants:
                conn.rollback()
                raise BattleFullError()
            if battle.status != BattleStatus.ACTIVE:
                conn.rollback()
                raise BattleNotActiveError()

            cursor.execute(
                """
                INSERT INTO battle_participations (id, user_id, battle_id, joined_at)
                VALUES (?, ?, ?, ?)
                """,
                (participation_id, user_id, battle_id, joined_at),
            )
            conn.commit()

        return Participation(
            id=participation_id,
            user_id=user_id,
            battle_id=battle_id,
            joined_at=from_db_time(joined_at),
        )

    def has_user_joined_battle(self, user_id: str, battle_id: str) -> bool:
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT 1 FROM battle_participations WHERE user_id = ? AND battle_id = ?",
                (user_id, battle_id),
            )
            return cursor.fetchone() is not None

    # Casts

    def create_cast(self, user_id: str, battle_id: str, content: str, side: CastSide) -> Cast:
        """Create a cast; the user must already participate in the battle."""
        cast_id = _new_id()
        created_at = to_db_time(_utcnow())

        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT 1 FROM battle_participations WHERE user_id = ? AND battle_id = ?",
                (user_id, battle_id),
            )
            if not cursor.fetchone():
                raise NotParticipantError()

            cursor.execute(
                """
                INSERT INTO casts (id, user_id, battle_id, content, side, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (cast_id, user_id, battle_id, content, side.value, created_at),
            )
            conn.commit()

        return Cast(
            id=cast_id,
            user_id=user_id,
            battle_id=battle_id,
            content=content,
            side=side,
            created_at=from_db_time(created_at),
        )

    def get_casts_for_battle(self, battle_id: str) -> list[Cast]:
        """Get all casts for a battle with author address and like counts."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT c.*, u.address AS user_address,
                       (SELECT COUNT(*) FROM cast_likes l WHERE l.cast_id = c.id) AS like_count
                FROM casts c JOIN users u ON u.id = c.user_id
                WHERE c.battle_id = ?
                ORDER BY c.created_at DESC
                """,
                (battle_id,),
            )
            return [self._row_to_cast(row) for row in cursor.fetchall()]

    def like_cast(self, user_id: str, cast_id: str) -> LikeResult:
        """Toggle a like on a cast."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT battle_id FROM casts WHERE id = ?", (cast_id,))
            cast_row = cursor.fetchone()
            if not cast_row:
                raise CastNotFoundError()

            cursor.execute(
                "SELECT id FROM cast_likes WHERE user_id = ? AND cast_id = ?",
                (user_id, cast_id),
            )
            existing = cursor.fetchone()
            if existing:
                cursor.execute("DELETE FROM cast_likes WHERE id = ?", (existing["id"],))
                action = "unliked"
            else:
                cursor.execute(
                    """
                    INSERT INTO cast_likes (id, user_id, cast_id, battle_id, created_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (_new_id(), user_id, cast_id, cast_row["battle_id"], to_db_time(_utcnow())),
                )
                action = "liked"

            cursor.execute("SELECT COUNT(*) FROM cast_likes WHERE cast_id = ?", (cast_id,))
            like_count = cursor.fetchone()[0]
            conn.commit()

        return LikeResult(action=action, like_count=like_count)

    # Points ledger

    def apply_award(self, award: WinnerAwarded) -> int | None:
        """Apply a points award once.

        Returns the user's new total, or None if this award was already
        recorded for the same battle, user and reason.
        """
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("BEGIN IMMEDIATE")
            try:
                cursor.execute(
                    """
                    INSERT INTO point_awards (id, battle_id, user_id, points, reason, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        _new_id(),
                        award.battle_id,
                        award.user_id,
                        award.points,
                        award.reason,
                        to_db_time(_utcnow()),
                    ),
                )
            except sqlite3.IntegrityError:
                conn.rollback()
                logger.info(
                    f"Award already applied: {award.reason} for user {award.user_id} "
                    f"in battle {award.battle_id}"
                )
                return None

            cursor.execute(
                "UPDATE users SET points = points + ?, updated_at = ? WHERE id = ?",
                (award.points, to_db_time(_utcnow()), award.user_id),
            )
            cursor.execute("SELECT points FROM users WHERE id = ?", (award.user_id,))
            row = cursor.fetchone()
            conn.commit()

        return row["points"] if row else None

    def get_user_points(self, address: str) -> int:
        user = self.get_user_by_address(address)
        return user.points if user else 0

    def get_leaderboard(self, limit: int = 10) -> list[LeaderboardEntry]:
        """Users ranked by points."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT u.address, u.username, u.points,
                       (SELECT COUNT(*) FROM battle_participations p WHERE p.user_id = u.id)
                           AS participation_count,
                       (SELECT COUNT(*) FROM battle_wins w WHERE w.user_id = u.id) AS win_count
                FROM users u
                ORDER BY u.points DESC, u.created_at
                LIMIT ?
                """,
                (limit,),
            )
            return [
                LeaderboardEntry(
                    rank=index + 1,
                    address=row["address"],
                    username=row["username"],
                    points=row["points"],
                    participation_count=row["participation_count"],
                    win_count=row["win_count"],
                )
                for index, row in enumerate(cursor.fetchall())
            ]

    def get_battle_stats(self) -> BattleStats:
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT
                    (SELECT COUNT(*) FROM battles) AS total_battles,
                    (SELECT COUNT(*) FROM battles WHERE status = 'ACTIVE') AS active_battles,
                    (SELECT COUNT(*) FROM battles WHERE status = 'COMPLETED') AS completed_battles,
                    (SELECT COUNT(*) FROM users) AS total_users,
                    (SELECT COUNT(*) FROM casts) AS total_casts,
                    (SELECT COALESCE(SUM(points), 0) FROM users) AS total_points_awarded
                """
            )
            row = cursor.fetchone()
            return BattleStats(**dict(row))

    # Shared state

    def get_state(self, key: str) -> dict[str, Any] | None:
        """Read a shared-state row."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM shared_state WHERE key = ?", (key,))
            row = cursor.fetchone()
            if not row:
                return None
            return {
                "id": row["id"],
                "rate_limit_cooldown": from_db_time(row["rate_limit_cooldown"]),
                "last_updated": from_db_time(row["last_updated"]),
                "created_at": from_db_time(row["created_at"]),
            }

    def set_state(self, key: str, rate_limit_cooldown: datetime | None) -> None:
        """Upsert a shared-state row (last write wins)."""
        now = to_db_time(_utcnow())
        cooldown = to_db_time(rate_limit_cooldown) if rate_limit_cooldown else None
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO shared_state (id, key, rate_limit_cooldown, last_updated, created_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    rate_limit_cooldown = excluded.rate_limit_cooldown,
                    last_updated = excluded.last_updated
                """,
                (_new_id(), key, cooldown, now, now),
            )
            conn.commit()

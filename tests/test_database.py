"""Tests for SQLite battle persistence."""

from __future__ import annotations

from datetime import timedelta

import pytest

from battles import (
    ActiveBattleExistsError,
    AlreadyJoinedError,
    BattleCreate,
    BattleFullError,
    BattleNotActiveError,
    BattleStatus,
    BattleWinner,
    CastNotFoundError,
    CastSide,
    NotParticipantError,
    WinnerAwarded,
)
from battles.database import from_db_time, to_db_time
from fakes import START_TIME, make_topic


def create(db, index: int = 1, max_participants: int = 100):
    return db.create_battle(
        BattleCreate.from_topic(
            make_topic(index),
            start_time=START_TIME,
            duration_hours=1.0,
            max_participants=max_participants,
        )
    )


def test_db_time_round_trip_is_utc() -> None:
    text = to_db_time(START_TIME)
    assert text.endswith("+00:00")
    assert from_db_time(text) == START_TIME


def test_only_one_active_battle_allowed(db) -> None:
    battle = create(db)
    assert battle.status == BattleStatus.ACTIVE
    assert battle.debate_points.support

    with pytest.raises(ActiveBattleExistsError):
        create(db, index=2)

    assert db.complete_battle(battle.id, [])
    replacement = create(db, index=2)
    assert db.get_active_battle().id == replacement.id


def test_current_and_expired_battles_follow_the_clock(db) -> None:
    battle = create(db)

    assert db.get_current_battle(START_TIME).id == battle.id
    assert db.get_expired_battles(START_TIME) == []

    end = battle.end_time
    assert db.get_current_battle(end) is None
    assert [b.id for b in db.get_expired_battles(end)] == [battle.id]
    # Expired but still ACTIVE until completed
    assert db.get_active_battle().id == battle.id


def test_join_enforces_uniqueness_and_capacity(db) -> None:
    battle = create(db, max_participants=1)
    alice = db.get_or_create_user("0xalice")
    bob = db.get_or_create_user("0xbob")

    db.join_battle(alice.id, battle.id)
    with pytest.raises(AlreadyJoinedError):
        db.join_battle(alice.id, battle.id)
    with pytest.raises(BattleFullError):
        db.join_battle(bob.id, battle.id)
    with pytest.raises(BattleNotActiveError, match="not found"):
        db.join_battle(bob.id, "missing")

    db.complete_battle(battle.id, [])
    other = create(db, index=2)
    db.complete_battle(other.id, [])
    with pytest.raises(BattleNotActiveError):
        db.join_battle(bob.id, other.id)


def test_user_upsert_keeps_identity(db) -> None:
    first = db.get_or_create_user("0xalice")
    second = db.get_or_create_user("0xalice")
    assert first.id == second.id
    assert db.get_user_by_id(first.id).address == "0xalice"
    assert db.get_user_by_address("0xnobody") is None


def test_casts_require_participation(db) -> None:
    battle = create(db)
    alice = db.get_or_create_user("0xalice")

    with pytest.raises(NotParticipantError):
        db.create_cast(alice.id, battle.id, "I have not joined yet, sadly.", CastSide.SUPPORT)

    db.join_battle(alice.id, battle.id)
    cast = db.create_cast(alice.id, battle.id, "Now I have joined the battle.", CastSide.OPPOSE)

    casts = db.get_casts_for_battle(battle.id)
    assert [c.id for c in casts] == [cast.id]
    assert casts[0].user_address == "0xalice"
    assert db.get_battle(battle.id).cast_count == 1
    assert db.get_battle(battle.id).participant_count == 1


def test_like_toggle_and_missing_cast(db) -> None:
    battle = create(db)
    alice = db.get_or_create_user("0xalice")
    bob = db.get_or_create_user("0xbob")
    db.join_battle(alice.id, battle.id)
    cast = db.create_cast(alice.id, battle.id, "Remote work saves commuting time.", CastSide.SUPPORT)

    assert db.like_cast(bob.id, cast.id).like_count == 1
    assert db.like_cast(alice.id, cast.id).like_count == 2
    result = db.like_cast(bob.id, cast.id)
    assert (result.action, result.like_count) == ("unliked", 1)

    with pytest.raises(CastNotFoundError):
        db.like_cast(bob.id, "missing")


def test_complete_battle_is_conditional(db) -> None:
    battle = create(db)
    alice = db.get_or_create_user("0xalice")
    db.join_battle(alice.id, battle.id)
    db.create_cast(alice.id, battle.id, "Remote work saves commuting time.", CastSide.SUPPORT)

    winners = [BattleWinner(user_id=alice.id, position=1, prize="Winner of the battle")]
    assert db.complete_battle(battle.id, winners) is True
    assert db.complete_battle(battle.id, winners) is False
    assert db.complete_battle("missing", []) is False

    history = db.get_battle_history()
    assert len(history) == 1
    entry = history[0]
    assert entry.battle.status == BattleStatus.COMPLETED
    assert entry.winner_address == "0xalice"
    assert entry.winner_side == CastSide.SUPPORT
    assert entry.total_participants == 1
    assert [w["address"] for w in entry.winners] == ["0xalice"]


def test_awards_apply_once_per_reason(db) -> None:
    battle = create(db)
    alice = db.get_or_create_user("0xalice")

    winner = WinnerAwarded(battle_id=battle.id, user_id=alice.id, points=100)
    participation = WinnerAwarded(
        battle_id=battle.id, user_id=alice.id, points=10, reason="participation"
    )

    assert db.apply_award(winner) == 100
    assert db.apply_award(winner) is None
    assert db.apply_award(participation) == 110
    assert db.get_user_points("0xalice") == 110
    assert db.get_user_points("0xnobody") == 0


def test_leaderboard_and_stats(db) -> None:
    battle = create(db)
    alice = db.get_or_create_user("0xalice")
    bob = db.get_or_create_user("0xbob")
    db.apply_award(WinnerAwarded(battle_id=battle.id, user_id=bob.id, points=50))
    db.apply_award(WinnerAwarded(battle_id=battle.id, user_id=alice.id, points=10, reason="participation"))

    leaderboard = db.get_leaderboard(limit=5)
    assert [(e.rank, e.address, e.points) for e in leaderboard] == [
        (1, "0xbob", 50),
        (2, "0xalice", 10),
    ]

    stats = db.get_battle_stats()
    assert stats.total_battles == 1
    assert stats.active_battles == 1
    assert stats.total_users == 2
    assert stats.total_points_awarded == 60


def test_recent_titles_newest_first(db) -> None:
    first = create(db, index=1)
    db.complete_battle(first.id, [])
    second = create(db, index=2)

    assert db.get_recent_battle_titles(5) == [second.title, first.title]
    assert db.get_recent_battle_titles(0) == []


def test_shared_state_upsert(db) -> None:
    assert db.get_state("battle_manager_state") is None

    cooldown = START_TIME + timedelta(minutes=5)
    db.set_state("battle_manager_state", cooldown)
    assert db.get_state("battle_manager_state")["rate_limit_cooldown"] == cooldown

    db.set_state("battle_manager_state", None)
    assert db.get_state("battle_manager_state")["rate_limit_cooldown"] is None

"""Pytest configuration and shared fixtures.

Helper fakes live in fakes.py; fixtures here wire them into managers
backed by a throwaway SQLite database.
"""

from collections.abc import Callable
from pathlib import Path

import pytest

from battles import BattleDatabaseManager, BattleEventBroadcaster, BattleManager
from config.settings import (
    AppConfig,
    BattleSettings,
    JudgingSettings,
    SystemConfig,
    TopicSettings,
)
from fakes import EventRecorder, FakeClock, ScriptedJudge, ScriptedTopicProvider


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    return str(tmp_path / "battles.db")


@pytest.fixture
def db(db_path: str) -> BattleDatabaseManager:
    return BattleDatabaseManager(db_path)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def battle_settings() -> BattleSettings:
    """One-hour battles with the default point values."""
    return BattleSettings(duration_hours=1.0, rate_limit_cooldown_seconds=60)


@pytest.fixture
def make_manager(
    db_path: str, clock: FakeClock, battle_settings: BattleSettings
) -> Callable[..., tuple[BattleManager, EventRecorder]]:
    """Build a manager plus a recorder subscribed to its events.

    Every manager gets its own database handle on the shared file, the way
    separate processes would.
    """

    def factory(
        topic_provider: ScriptedTopicProvider | None = None,
        judge: ScriptedJudge | None = None,
        settings: BattleSettings | None = None,
    ) -> tuple[BattleManager, EventRecorder]:
        broadcaster = BattleEventBroadcaster()
        recorder = EventRecorder()
        broadcaster.subscribe(recorder)
        manager = BattleManager(
            db=BattleDatabaseManager(db_path),
            topic_provider=topic_provider or ScriptedTopicProvider(),
            judge=judge or ScriptedJudge(),
            broadcaster=broadcaster,
            settings=settings or battle_settings,
            clock=clock,
        )
        return manager, recorder

    return factory


@pytest.fixture
def app_config(db_path: str) -> AppConfig:
    """Offline configuration: curated topics and engagement judging."""
    return AppConfig(
        battle=BattleSettings(duration_hours=1.0),
        topics=TopicSettings(provider="static"),
        judging=JudgingSettings(provider="engagement"),
        system=SystemConfig(
            database_path=db_path,
            cron_secret="cron-secret",
            worker_api_key="worker-key",
        ),
    )


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )

"""Construction of a fully wired battle manager."""

from collections.abc import Callable
from datetime import datetime

from config.settings import AppConfig
from judges import BaseJudge, create_judge
from topics import TopicProvider, create_topic_provider

from .database import BattleDatabaseManager
from .events import BattleEventBroadcaster
from .manager import BattleManager


def build_battle_manager(
    config: AppConfig,
    topic_provider: TopicProvider | None = None,
    judge: BaseJudge | None = None,
    clock: Callable[[], datetime] | None = None,
) -> BattleManager:
    """Wire the database, providers and broadcaster into a battle manager."""
    db = BattleDatabaseManager(config.system.database_path)
    return BattleManager(
        db=db,
        topic_provider=topic_provider
        or create_topic_provider(config, recent_titles=db.get_recent_battle_titles),
        judge=judge or create_judge(config),
        broadcaster=BattleEventBroadcaster(),
        settings=config.battle,
        clock=clock,
    )

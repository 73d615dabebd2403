"""Recurring debate battle system."""

from .api import BattleAPI
from .database import BattleDatabaseManager
from .events import BattleEvent, BattleEventBroadcaster, BattleEventType, QueueSubscription
from .exceptions import (
    ActiveBattleExistsError,
    AlreadyJoinedError,
    BattleError,
    BattleFullError,
    BattleGenerationDisabledError,
    BattleNotActiveError,
    CastNotFoundError,
    InvalidCastError,
    NoActiveBattleError,
    NotParticipantError,
)
from .manager import BattleManager
from .models import (
    Battle,
    BattleCreate,
    BattleStatus,
    BattleWinner,
    Cast,
    CastSide,
    DebatePoints,
    Sentiment,
    Topic,
    WinnerAwarded,
)
from .shared_state import SharedStateStore

__all__ = [
    "BattleAPI",
    "BattleDatabaseManager",
    "BattleEvent",
    "BattleEventBroadcaster",
    "BattleEventType",
    "BattleManager",
    "QueueSubscription",
    "SharedStateStore",
    "Battle",
    "BattleCreate",
    "BattleStatus",
    "BattleWinner",
    "Cast",
    "CastSide",
    "DebatePoints",
    "Sentiment",
    "Topic",
    "WinnerAwarded",
    "ActiveBattleExistsError",
    "AlreadyJoinedError",
    "BattleError",
    "BattleFullError",
    "BattleGenerationDisabledError",
    "BattleNotActiveError",
    "CastNotFoundError",
    "InvalidCastError",
    "NoActiveBattleError",
    "NotParticipantError",
]

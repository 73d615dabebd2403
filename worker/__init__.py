"""Standalone battle completion worker."""

from .client import WorkerServiceClient, WorkerServiceError
from .completion_worker import BattleCompletionWorker

__all__ = ["BattleCompletionWorker", "WorkerServiceClient", "WorkerServiceError"]

"""bizsignal 服务层"""

from .change_feed import ChangeFeedSource, ChangeSubscription, InMemoryChangeFeed, QueueSubscription
from .event_service import EventService
from .integration import (
    ModuleIntegrationListener,
    PendingCandidate,
    PendingSweepResult,
    SubscriptionHandle,
    TriggerContext,
    TriggerResult,
)
from .pending_hub import PendingEventHub
from .shadow_cache import ShadowCache
from .task_generator import TaskGenerator
from .task_service import TaskService

__all__ = [
    "ChangeFeedSource",
    "ChangeSubscription",
    "EventService",
    "InMemoryChangeFeed",
    "ModuleIntegrationListener",
    "PendingCandidate",
    "PendingEventHub",
    "PendingSweepResult",
    "QueueSubscription",
    "ShadowCache",
    "SubscriptionHandle",
    "TaskGenerator",
    "TaskService",
    "TriggerContext",
    "TriggerResult",
]

"""
Core engine components for the Lifecycle Engine.
"""

from .aggregator import calculate_progress, recompute_status
from .checklist import complete_checklist_item
from .completion import CompletionHandler
from .events import DomainEvent, EventBus, LifecycleCompleted
from .factory import LifecycleFactory
from .queries import LifecycleQueryService, VisibilityPolicy
from .repository import LifecycleRepository, SaveResult
from .state_machine import TaskStateMachine
from .template_catalog import TemplateCatalog

__all__ = [
    "calculate_progress",
    "recompute_status",
    "complete_checklist_item",
    "CompletionHandler",
    "DomainEvent",
    "EventBus",
    "LifecycleCompleted",
    "LifecycleFactory",
    "LifecycleQueryService",
    "VisibilityPolicy",
    "LifecycleRepository",
    "SaveResult",
    "TaskStateMachine",
    "TemplateCatalog",
]

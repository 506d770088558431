"""
Lifecycle Status Aggregator.

Derives the lifecycle status from its tasks. Runs on every save.
"""

import logging
from datetime import datetime
from typing import List, Optional

from ..models import Lifecycle, LifecycleStatus, TaskStatus, calculate_progress, utcnow
from .events import DomainEvent, LifecycleCompleted

logger = logging.getLogger(__name__)

__all__ = ["calculate_progress", "recompute_status"]


def recompute_status(lifecycle: Lifecycle, now: Optional[datetime] = None) -> List[DomainEvent]:
    """
    Recompute ``lifecycle.status`` from its tasks.

    - all tasks Completed and status not yet Completed: status becomes
      Completed, ``actual_completion_date`` is stamped and a
      LifecycleCompleted event is returned
    - some tasks Completed and status Initiated: status becomes In Progress
    - otherwise the status is left alone

    Re-running on an already Completed lifecycle returns no events, and so
    does re-completing a lifecycle whose completion event was already raised
    (``completion_handled``). Manual status overrides never set that flag.
    Checklist items never take part.

    Args:
        lifecycle: Lifecycle to update in place
        now: Completion timestamp, defaults to now

    Returns:
        Events raised by the recomputation
    """
    if not lifecycle.tasks:
        return []

    total = len(lifecycle.tasks)
    completed = len([t for t in lifecycle.tasks if t.status == TaskStatus.COMPLETED])

    if completed == total and lifecycle.status != LifecycleStatus.COMPLETED:
        lifecycle.status = LifecycleStatus.COMPLETED
        lifecycle.actual_completion_date = now or utcnow()
        if lifecycle.completion_handled:
            # Completed before and moved away by a manual status update
            logger.warning(f"Lifecycle {lifecycle.id} re-completed; completion already handled")
            return []
        lifecycle.completion_handled = True
        logger.info(f"Lifecycle {lifecycle.id} completed: all {total} tasks done")
        return [
            LifecycleCompleted(
                lifecycle_id=lifecycle.id,
                employee_id=lifecycle.employee_id,
                lifecycle_type=lifecycle.type,
                version=lifecycle.version,
            )
        ]

    if completed > 0 and lifecycle.status == LifecycleStatus.INITIATED:
        lifecycle.status = LifecycleStatus.IN_PROGRESS
        logger.info(f"Lifecycle {lifecycle.id} in progress: {completed}/{total} tasks done")

    return []

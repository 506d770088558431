"""
Checklist Tracker for the Lifecycle Engine.

Checklist items are supplementary documentation of the process. Their
completion is tracked independently and never changes the lifecycle status.
"""

import logging
from typing import Optional

from ..audit.timeline import add_timeline_entry
from ..exceptions import LifecycleNotFoundError, LifecycleValidationError
from ..models import ChecklistItem, Lifecycle, utcnow

logger = logging.getLogger(__name__)


def complete_checklist_item(
    lifecycle: Lifecycle,
    index: int,
    completed_by: str,
    notes: Optional[str] = "",
) -> ChecklistItem:
    """
    Mark the checklist item at ``index`` as completed.

    Args:
        lifecycle: Lifecycle holding the checklist
        index: Position of the item in the checklist
        completed_by: User id of the actor
        notes: Completion notes

    Returns:
        The completed item

    Raises:
        LifecycleNotFoundError: if ``index`` is out of range; nothing is changed
    """
    if not isinstance(index, int) or isinstance(index, bool):
        raise LifecycleValidationError("Checklist item index must be an integer")
    if index < 0 or index >= len(lifecycle.checklist):
        raise LifecycleNotFoundError("Checklist item not found")

    item = lifecycle.checklist[index]
    item.is_completed = True
    item.completed_by = completed_by
    item.completed_at = utcnow()
    item.notes = notes

    add_timeline_entry(
        lifecycle,
        "Checklist Item Completed",
        f"Completed: {item.item}",
        completed_by,
    )

    logger.info(f"Checklist item {index} of lifecycle {lifecycle.id} completed by {completed_by}")
    return item


def checklist_progress(lifecycle: Lifecycle) -> int:
    """Percentage of completed checklist items, 0 for an empty checklist."""
    if not lifecycle.checklist:
        return 0
    completed = len([i for i in lifecycle.checklist if i.is_completed])
    return round(completed / len(lifecycle.checklist) * 100)

"""
Task State Machine for the Lifecycle Engine.

Drives individual task transitions inside a lifecycle:

    Pending ──► In Progress ──► Completed
       │             │
       └─────────────┴────────► Cancelled

Overdue is a label applied to Pending/In Progress tasks whose due date
has passed; an Overdue task can still be started or completed.
"""

import logging
from datetime import datetime
from typing import List, Optional

from ..audit.timeline import add_timeline_entry
from ..exceptions import (
    InvalidTaskTransitionError,
    LifecycleNotFoundError,
    LifecycleValidationError,
)
from ..models import Lifecycle, Task, TaskStatus, TimelineStatus, utcnow

logger = logging.getLogger(__name__)

TASK_ACTIONS = ("start", "complete", "cancel")


class TaskStateMachine:
    """Applies task transitions to a loaded lifecycle. Does not persist."""

    def start_task(self, lifecycle: Lifecycle, task_id: str, actor: str) -> Task:
        """
        Move a task to In Progress, stamping ``started_at`` on first start.

        Raises:
            LifecycleNotFoundError: if the task does not exist
            InvalidTaskTransitionError: if the task is Completed or Cancelled
        """
        task = self._get_task(lifecycle, task_id)
        self._ensure_not_terminal(task)

        task.status = TaskStatus.IN_PROGRESS
        if task.started_at is None:
            task.started_at = utcnow()

        self._record(lifecycle, task, "started", actor)
        return task

    def complete_task(
        self,
        lifecycle: Lifecycle,
        task_id: str,
        completed_by: str,
        notes: Optional[str] = None,
    ) -> Task:
        """
        Move a non-terminal task to Completed.

        Raises:
            LifecycleNotFoundError: if the task does not exist
            LifecycleValidationError: if no completing actor is given
            InvalidTaskTransitionError: if the task is Completed or Cancelled
        """
        task = self._get_task(lifecycle, task_id)
        if not completed_by:
            raise LifecycleValidationError("completed_by is required to complete a task")
        self._ensure_not_terminal(task)

        task.status = TaskStatus.COMPLETED
        task.completed_by = completed_by
        task.completed_at = utcnow()
        if notes:
            task.notes = notes

        self._record(lifecycle, task, "completed", completed_by)
        return task

    def cancel_task(self, lifecycle: Lifecycle, task_id: str, actor: str, notes: Optional[str] = None) -> Task:
        """Move a non-terminal task to Cancelled."""
        task = self._get_task(lifecycle, task_id)
        self._ensure_not_terminal(task)

        task.status = TaskStatus.CANCELLED
        if notes:
            task.notes = notes

        self._record(lifecycle, task, "cancelled", actor)
        return task

    def apply_action(
        self,
        lifecycle: Lifecycle,
        task_id: str,
        action: str,
        actor: str,
        notes: Optional[str] = None,
    ) -> Task:
        """
        Apply a named action ("start", "complete" or "cancel") to a task.

        Raises:
            LifecycleValidationError: for an unknown action
        """
        if action == "start":
            return self.start_task(lifecycle, task_id, actor)
        elif action == "complete":
            return self.complete_task(lifecycle, task_id, actor, notes)
        elif action == "cancel":
            return self.cancel_task(lifecycle, task_id, actor, notes)
        raise LifecycleValidationError("Invalid action. Use 'start', 'complete' or 'cancel'")

    def mark_overdue(self, lifecycle: Lifecycle, now: Optional[datetime] = None) -> List[Task]:
        """
        Label open tasks whose due date has passed as Overdue.

        Returns:
            The tasks relabelled by this call
        """
        now = now or utcnow()
        relabelled = []
        for task in lifecycle.tasks:
            if task.status in (TaskStatus.PENDING, TaskStatus.IN_PROGRESS) and task.due_date < now:
                task.status = TaskStatus.OVERDUE
                relabelled.append(task)
                add_timeline_entry(
                    lifecycle,
                    "Task Updated",
                    f'Task "{task.title}" is overdue',
                    "system",
                    TimelineStatus.WARNING,
                )

        if relabelled:
            logger.info(f"Marked {len(relabelled)} tasks overdue in lifecycle {lifecycle.id}")
        return relabelled

    def _get_task(self, lifecycle: Lifecycle, task_id: str) -> Task:
        task = lifecycle.get_task(task_id)
        if task is None:
            raise LifecycleNotFoundError("Task not found")
        return task

    def _ensure_not_terminal(self, task: Task):
        if task.status == TaskStatus.COMPLETED:
            raise InvalidTaskTransitionError("Task is already completed")
        if task.status == TaskStatus.CANCELLED:
            raise InvalidTaskTransitionError("Task is cancelled")

    def _record(self, lifecycle: Lifecycle, task: Task, verb: str, actor: str):
        add_timeline_entry(lifecycle, "Task Updated", f'Task "{task.title}" {verb}', actor)
        logger.info(f"Task {task.id} in lifecycle {lifecycle.id} {verb} by {actor}")

"""
Lifecycle Factory for the Lifecycle Engine.

Builds new lifecycles with the fixed five-task plan for their type.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from ..audit.timeline import add_timeline_entry
from ..models import Lifecycle, LifecycleStatus, LifecycleType, Task, utcnow
from .task_plans import get_task_plan
from .template_catalog import TemplateCatalog

logger = logging.getLogger(__name__)

DEFAULT_TARGET_COMPLETION_DAYS = 30


class LifecycleFactory:
    """Creates standard lifecycles; does not persist them."""

    def __init__(
        self,
        template_catalog: Optional[TemplateCatalog] = None,
        target_completion_days: int = DEFAULT_TARGET_COMPLETION_DAYS,
    ):
        self.template_catalog = template_catalog or TemplateCatalog()
        self.target_completion_days = target_completion_days

    def create_standard_lifecycle(
        self,
        employee_id: str,
        lifecycle_type: LifecycleType,
        department_id: str,
        role_id: Optional[str],
        initiated_by: str,
        assigned_hr: str,
        start_date: Optional[datetime] = None,
    ) -> Lifecycle:
        """
        Build a lifecycle with exactly five tasks for the given type.

        All tasks are assigned to ``assigned_hr`` and start Pending. The target
        completion date is a fixed number of days after the start, independent
        of the task due dates. The lifecycle starts Initiated with a
        "Lifecycle Created" timeline entry.

        Args:
            employee_id: Employee the process is for
            lifecycle_type: Onboarding or Offboarding
            department_id: Department of the employee
            role_id: Role of the employee (informational)
            initiated_by: User starting the process
            assigned_hr: HR user responsible for every task
            start_date: Process start, defaults to now

        Returns:
            The new, unsaved Lifecycle

        Raises:
            LifecycleValidationError: if the type has no standard plan
        """
        start = start_date or utcnow()
        tasks = self.build_tasks(lifecycle_type, assigned_hr, start)

        lifecycle = Lifecycle(
            employee_id=employee_id,
            type=lifecycle_type,
            status=LifecycleStatus.INITIATED,
            start_date=start,
            target_completion_date=start + timedelta(days=self.target_completion_days),
            initiated_by=initiated_by,
            assigned_hr=assigned_hr,
            department_id=department_id,
            role_id=role_id,
            tasks=tasks,
            checklist=self.template_catalog.get_checklist(department_id, lifecycle_type),
            documents=self.template_catalog.get_documents(department_id, lifecycle_type),
        )

        add_timeline_entry(
            lifecycle,
            "Lifecycle Created",
            f"{lifecycle_type.value} lifecycle initiated for employee",
            initiated_by,
        )

        logger.info(
            f"Built {lifecycle_type.value} lifecycle {lifecycle.id} for employee {employee_id} "
            f"with {len(tasks)} tasks"
        )
        return lifecycle

    def build_tasks(self, lifecycle_type: LifecycleType, assigned_hr: str, start: datetime) -> List[Task]:
        """Fresh Pending tasks from the standard plan, due relative to ``start``."""
        tasks = []
        for planned in get_task_plan(lifecycle_type):
            tasks.append(
                Task(
                    title=planned.title,
                    description=planned.description,
                    task_type=planned.task_type,
                    priority=planned.priority,
                    assigned_to=assigned_hr,
                    due_date=start + timedelta(days=planned.due_in_days),
                )
            )
        return tasks

    def restart(self, lifecycle: Lifecycle, start_date: Optional[datetime] = None) -> Lifecycle:
        """
        Reset a finished or paused lifecycle so the process can run again.

        Tasks are rebuilt from the plan and checklist completion is cleared.
        The completion date and payroll result are dropped along with the
        completion flag. The timeline is kept.
        """
        start = start_date or utcnow()
        lifecycle.status = LifecycleStatus.INITIATED
        lifecycle.start_date = start
        lifecycle.target_completion_date = start + timedelta(days=self.target_completion_days)
        lifecycle.actual_completion_date = None
        lifecycle.completion_handled = False
        lifecycle.final_payroll_data = None
        lifecycle.tasks = self.build_tasks(lifecycle.type, lifecycle.assigned_hr, start)
        for item in lifecycle.checklist:
            item.is_completed = False
            item.completed_by = None
            item.completed_at = None
        return lifecycle

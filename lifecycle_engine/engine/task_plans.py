"""
Standard task plans for the Lifecycle Engine.

Each lifecycle type with a standard plan produces exactly five tasks,
due a fixed number of days after the lifecycle start.
"""

from typing import Dict, List, NamedTuple

from ..exceptions import LifecycleValidationError
from ..models import LifecycleType, TaskPriority, TaskType


class PlannedTask(NamedTuple):
    task_type: TaskType
    title: str
    description: str
    due_in_days: int
    priority: TaskPriority


STANDARD_TASK_PLANS: Dict[LifecycleType, List[PlannedTask]] = {
    LifecycleType.ONBOARDING: [
        PlannedTask(
            TaskType.DOCUMENTATION,
            "Complete Employment Documentation",
            "Collect signed contract, identification and tax forms",
            2,
            TaskPriority.HIGH,
        ),
        PlannedTask(
            TaskType.SYSTEM_ACCESS,
            "Set Up System Access",
            "Create accounts and grant access to required systems",
            5,
            TaskPriority.HIGH,
        ),
        PlannedTask(
            TaskType.ORIENTATION,
            "Conduct Orientation",
            "Company introduction, policies and team introductions",
            7,
            TaskPriority.MEDIUM,
        ),
        PlannedTask(
            TaskType.TRAINING,
            "Complete Role Training",
            "Mandatory and role-specific training programme",
            14,
            TaskPriority.HIGH,
        ),
        PlannedTask(
            TaskType.FINAL_REVIEW,
            "Onboarding Final Review",
            "Review onboarding outcomes with the employee and manager",
            21,
            TaskPriority.CRITICAL,
        ),
    ],
    LifecycleType.OFFBOARDING: [
        PlannedTask(
            TaskType.EXIT_DOCUMENTATION,
            "Complete Exit Documentation",
            "Resignation acceptance, exit forms and final declarations",
            2,
            TaskPriority.HIGH,
        ),
        PlannedTask(
            TaskType.ACCESS_EQUIPMENT_RETURN,
            "Revoke Access and Return Equipment",
            "Collect company equipment and revoke system access",
            5,
            TaskPriority.CRITICAL,
        ),
        PlannedTask(
            TaskType.EXIT_INTERVIEW,
            "Conduct Exit Interview",
            "Gather feedback on the employee's experience",
            7,
            TaskPriority.MEDIUM,
        ),
        PlannedTask(
            TaskType.KNOWLEDGE_TRANSFER,
            "Complete Knowledge Transfer",
            "Hand over responsibilities and documentation to the team",
            14,
            TaskPriority.HIGH,
        ),
        PlannedTask(
            TaskType.FINAL_CLEARANCE,
            "Final Clearance",
            "Confirm all obligations are settled before release",
            21,
            TaskPriority.CRITICAL,
        ),
    ],
}


def get_task_plan(lifecycle_type: LifecycleType) -> List[PlannedTask]:
    """
    Get the standard task plan for a lifecycle type.

    Raises:
        LifecycleValidationError: if the type has no standard plan
    """
    plan = STANDARD_TASK_PLANS.get(lifecycle_type)
    if plan is None:
        raise LifecycleValidationError(
            f"No standard task plan for {lifecycle_type.value} lifecycles"
        )
    return plan

"""
Lifecycle Service for the Lifecycle Engine.

Application facade used by the API server and the CLI. Every mutating
operation follows the same load, modify, version-guarded save cycle, then
mirrors new timeline entries to the audit journal and publishes the domain
events raised by the save.
"""

import logging
from datetime import datetime
from typing import Callable, Optional, Tuple

from .audit.audit_logger import AuditLogger
from .audit.timeline import add_timeline_entry
from .config import EngineConfig
from .connectors import (
    MockUserDirectoryConnector,
    PayrollConnector,
    UserDirectoryConnector,
    get_payroll_connector,
)
from .engine.checklist import complete_checklist_item
from .engine.completion import CompletionHandler
from .engine.events import EventBus, LifecycleCompleted
from .engine.factory import LifecycleFactory
from .engine.queries import LifecycleQueryService, VisibilityPolicy
from .engine.repository import LifecycleRepository, SaveResult
from .engine.state_machine import TaskStateMachine
from .engine.template_catalog import TemplateCatalog
from .exceptions import LifecycleConflictError, LifecycleNotFoundError, LifecycleValidationError
from .models import (
    Lifecycle,
    LifecycleStatus,
    LifecycleType,
    RequesterContext,
    TaskStatus,
    TimelineEntry,
    TimelineStatus,
    utcnow,
)

logger = logging.getLogger(__name__)


def _parse_enum(enum_cls, value, field_name: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError as e:
        allowed = ", ".join(member.value for member in enum_cls)
        raise LifecycleValidationError(f"Invalid {field_name} '{value}'. Expected one of: {allowed}") from e


class LifecycleService:
    """Coordinates lifecycle creation, task and checklist updates, and completion."""

    def __init__(
        self,
        repository: LifecycleRepository,
        user_directory: UserDirectoryConnector,
        payroll: PayrollConnector,
        factory: Optional[LifecycleFactory] = None,
        audit_logger: Optional[AuditLogger] = None,
        event_bus: Optional[EventBus] = None,
        visibility: Optional[VisibilityPolicy] = None,
        max_save_retries: int = 3,
        payroll_timeout: float = 10.0,
        payroll_workers: int = 4,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repository = repository
        self.user_directory = user_directory
        self.payroll = payroll
        self.factory = factory or LifecycleFactory()
        self.audit_logger = audit_logger
        self.event_bus = event_bus or EventBus()
        self.max_save_retries = max_save_retries
        self.clock = clock
        self.state_machine = TaskStateMachine()

        self.completion_handler = CompletionHandler(
            repository,
            user_directory,
            payroll,
            payroll_timeout=payroll_timeout,
            payroll_workers=payroll_workers,
            audit_logger=audit_logger,
            clock=clock,
            max_save_retries=max_save_retries,
        )
        self.event_bus.subscribe(LifecycleCompleted, self.completion_handler)

        self.queries = LifecycleQueryService(repository, user_directory, visibility, clock)

    @classmethod
    def from_config(
        cls,
        config: EngineConfig,
        user_directory: Optional[UserDirectoryConnector] = None,
        payroll: Optional[PayrollConnector] = None,
    ) -> "LifecycleService":
        """Build a service and its collaborators from configuration."""
        if user_directory is None:
            user_directory = MockUserDirectoryConnector({"employees": config.employees})
        if payroll is None:
            payroll = get_payroll_connector(config.payroll.model_dump(), mock=config.mock_mode)

        access = config.access
        return cls(
            repository=LifecycleRepository(config.state_file),
            user_directory=user_directory,
            payroll=payroll,
            factory=LifecycleFactory(TemplateCatalog(config.templates_file), config.target_completion_days),
            audit_logger=AuditLogger(config.audit_dir),
            visibility=VisibilityPolicy(
                access.unrestricted_role_level, access.hr_role_level, access.hr_department_name
            ),
            max_save_retries=config.max_save_retries,
            payroll_timeout=config.payroll.timeout_seconds,
            payroll_workers=config.payroll.max_workers,
        )

    def get_lifecycle(self, lifecycle_id: str) -> Lifecycle:
        """
        Get a lifecycle by ID.

        Raises:
            LifecycleNotFoundError: if it does not exist
        """
        return self.repository.load(lifecycle_id)

    def create_lifecycle(
        self,
        employee_id: str,
        lifecycle_type,
        department_id: str,
        assigned_hr: str,
        initiated_by: str,
        role_id: Optional[str] = None,
        target_completion_date: Optional[datetime] = None,
        notes: Optional[str] = None,
    ) -> Lifecycle:
        """
        Create and persist a standard lifecycle.

        Args:
            employee_id: Employee the process is for
            lifecycle_type: LifecycleType or its value ("Onboarding", ...)
            department_id: Department of the employee
            assigned_hr: HR user responsible for the tasks
            initiated_by: User starting the process
            role_id: Role of the employee
            target_completion_date: Replaces the default target date
            notes: Free-form notes

        Returns:
            The stored lifecycle

        Raises:
            LifecycleValidationError: on missing required fields or unknown type
            LifecycleConflictError: if an active lifecycle of the type exists
        """
        missing = [
            name for name, value in (
                ("employee_id", employee_id),
                ("type", lifecycle_type),
                ("department_id", department_id),
                ("assigned_hr", assigned_hr),
            ) if not value
        ]
        if missing:
            raise LifecycleValidationError(f"Missing required fields: {', '.join(missing)}")

        lifecycle_type = _parse_enum(LifecycleType, lifecycle_type, "type")

        existing = self.repository.find_active(employee_id, lifecycle_type)
        if existing:
            logger.warning(f"Rejected {lifecycle_type.value} creation for {employee_id}: "
                           f"lifecycle {existing.id} is active")
            raise LifecycleConflictError(
                "Employee already has an active lifecycle of this type", existing.id
            )

        lifecycle = self.factory.create_standard_lifecycle(
            employee_id, lifecycle_type, department_id, role_id, initiated_by, assigned_hr,
            start_date=self.clock(),
        )
        if target_completion_date:
            lifecycle.target_completion_date = target_completion_date
        if notes:
            lifecycle.notes = notes

        saved = self.repository.add(lifecycle)
        self._after_save(saved)
        return saved.lifecycle

    def provision_employee_lifecycles(
        self,
        employee_id: str,
        department_id: str,
        role_id: Optional[str],
        initiated_by: str,
    ) -> Tuple[Lifecycle, Lifecycle]:
        """
        Create the lifecycles for a newly registered employee.

        An Onboarding lifecycle starts immediately; an Offboarding lifecycle is
        created On Hold for future use.

        Returns:
            Tuple of (onboarding, offboarding)
        """
        onboarding = self.create_lifecycle(
            employee_id, LifecycleType.ONBOARDING, department_id, initiated_by, initiated_by, role_id
        )

        offboarding = self.factory.create_standard_lifecycle(
            employee_id, LifecycleType.OFFBOARDING, department_id, role_id, initiated_by, initiated_by,
            start_date=self.clock(),
        )
        offboarding.status = LifecycleStatus.ON_HOLD
        offboarding.notes = "Offboarding lifecycle created for future use when employee leaves the company"
        saved = self.repository.add(offboarding)
        self._after_save(saved)

        logger.info(f"Provisioned onboarding {onboarding.id} and offboarding {saved.lifecycle.id} "
                    f"for employee {employee_id}")
        return onboarding, saved.lifecycle

    def initiate_offboarding(self, employee_id: str, requester: RequesterContext) -> Tuple[Lifecycle, bool]:
        """
        Start offboarding for an employee.

        Re-initiates an existing On Hold, Completed or Cancelled Offboarding
        lifecycle, or creates a new one with the requester as initiator and HR.

        Returns:
            Tuple of (lifecycle, re_initiated)

        Raises:
            LifecycleValidationError: if no employee id is given
            LifecycleNotFoundError: if the employee is unknown
            LifecycleConflictError: if offboarding is already active
        """
        if not employee_id:
            raise LifecycleValidationError("Employee ID is required")

        employee = self.user_directory.find_employee(employee_id)
        if employee is None:
            raise LifecycleNotFoundError("Employee not found")

        existing = self.repository.find_by_employee_and_type(employee_id, LifecycleType.OFFBOARDING)
        if existing is None:
            lifecycle = self.create_lifecycle(
                employee_id,
                LifecycleType.OFFBOARDING,
                employee.department_id,
                requester.user_id,
                requester.user_id,
                employee.role_id,
            )
            logger.info(f"Offboarding initiated for {employee.email} with lifecycle {lifecycle.id}")
            return lifecycle, False

        if existing.is_active:
            raise LifecycleConflictError("Offboarding is already active for this employee", existing.id)

        actor_name = requester.display_name or requester.user_id

        def reinitiate(lifecycle: Lifecycle):
            self.factory.restart(lifecycle, self.clock())
            lifecycle.notes = f"Offboarding re-initiated by {actor_name}"
            add_timeline_entry(
                lifecycle,
                "Offboarding Re-initiated",
                f"Offboarding process re-started by {actor_name}",
                requester.user_id,
            )

        lifecycle = self._update(existing.id, reinitiate)
        logger.info(f"Offboarding re-initiated for {employee.email} on lifecycle {lifecycle.id}")
        return lifecycle, True

    def update_task_status(
        self,
        lifecycle_id: str,
        task_id: str,
        action: str,
        actor: str,
        notes: Optional[str] = None,
    ) -> Lifecycle:
        """
        Start, complete or cancel a task.

        The save re-runs the status aggregator; completing the last task of an
        Offboarding lifecycle fires the completion trigger exactly once.

        Raises:
            LifecycleNotFoundError: for an unknown lifecycle or task
            LifecycleValidationError: for an unknown action
            InvalidTaskTransitionError: if the task is already finished
        """
        return self._update(
            lifecycle_id,
            lambda lc: self.state_machine.apply_action(lc, task_id, action, actor, notes),
        )

    def complete_checklist_item(
        self,
        lifecycle_id: str,
        index: int,
        completed_by: str,
        notes: Optional[str] = "",
    ) -> Lifecycle:
        """
        Complete a checklist item; the lifecycle status is unaffected.

        Raises:
            LifecycleNotFoundError: for an unknown lifecycle or index
        """
        return self._update(
            lifecycle_id,
            lambda lc: complete_checklist_item(lc, index, completed_by, notes),
        )

    def update_lifecycle_status(
        self,
        lifecycle_id: str,
        status,
        actor: str,
        notes: Optional[str] = None,
    ) -> Lifecycle:
        """
        Set the lifecycle status directly (administrative override).

        The override does not consult the tasks and never fires the completion
        trigger. When it contradicts task state the timeline entry is recorded
        with status Warning.
        """
        status = _parse_enum(LifecycleStatus, status, "status")

        def override(lifecycle: Lifecycle):
            old_status = lifecycle.status
            lifecycle.status = status
            if status == LifecycleStatus.COMPLETED:
                lifecycle.actual_completion_date = self.clock()
            if notes:
                lifecycle.notes = notes

            all_done = bool(lifecycle.tasks) and all(
                t.status == TaskStatus.COMPLETED for t in lifecycle.tasks
            )
            contradicts = (status == LifecycleStatus.COMPLETED) != all_done
            add_timeline_entry(
                lifecycle,
                "Status Updated",
                f"Status changed from {old_status.value} to {status.value}",
                actor,
                TimelineStatus.WARNING if contradicts else TimelineStatus.SUCCESS,
            )
            if contradicts:
                logger.warning(f"Manual status {status.value} on lifecycle {lifecycle.id} "
                               f"disagrees with task state")

        return self._update(lifecycle_id, override)

    def add_timeline_entry(
        self,
        lifecycle_id: str,
        action: str,
        description: Optional[str],
        performed_by: str,
        status: TimelineStatus = TimelineStatus.SUCCESS,
    ) -> TimelineEntry:
        """Append a free-form timeline entry to a lifecycle."""
        lifecycle = self._update(
            lifecycle_id,
            lambda lc: add_timeline_entry(lc, action, description, performed_by, status),
        )
        return lifecycle.timeline[-1]

    def mark_overdue_tasks(self, now: Optional[datetime] = None) -> int:
        """
        Label overdue tasks across all active lifecycles.

        Returns:
            Number of tasks relabelled
        """
        now = now or self.clock()
        relabelled = 0
        for lifecycle in self.queries.find_active():
            if not any(t.status in (TaskStatus.PENDING, TaskStatus.IN_PROGRESS) and t.due_date < now
                       for t in lifecycle.tasks):
                continue
            saved, tasks = self.repository.update(
                lifecycle.id,
                lambda lc: self.state_machine.mark_overdue(lc, now),
                self.max_save_retries,
            )
            self._after_save(saved)
            relabelled += len(tasks)
        return relabelled

    def _update(self, lifecycle_id: str, mutate: Callable[[Lifecycle], object]) -> Lifecycle:
        saved, _ = self.repository.update(lifecycle_id, mutate, self.max_save_retries)
        self._after_save(saved)
        # Reload so completion side effects (payroll data) are visible
        if saved.events:
            return self.repository.load(lifecycle_id)
        return saved.lifecycle

    def _after_save(self, saved: SaveResult):
        if self.audit_logger:
            for entry in saved.new_entries:
                self.audit_logger.log_entry(saved.lifecycle.id, saved.lifecycle.employee_id, entry)
        self.event_bus.publish_all(saved.events)

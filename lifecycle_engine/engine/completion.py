"""
Completion Trigger for the Lifecycle Engine.

Handles LifecycleCompleted events for Offboarding lifecycles: deactivates
the employee account and requests the final payroll calculation, storing
the result on the lifecycle for HR review.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from ..audit.audit_logger import AuditLogger
from ..audit.timeline import add_timeline_entry
from ..connectors.base_connector import ConnectorResult, PayrollConnector, UserDirectoryConnector
from ..exceptions import ExternalDependencyError, LifecycleEngineError
from ..models import Lifecycle, LifecycleType, TimelineStatus, utcnow
from .events import DomainEvent, LifecycleCompleted
from .repository import LifecycleRepository

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"


class CompletionHandler:
    """
    Side effects of a completed Offboarding lifecycle.

    Subscribed to LifecycleCompleted. Events are raised only by the save that
    committed the transition to Completed, so each lifecycle is handled once.
    Payroll failures are logged and recorded on the timeline; they never undo
    the completion or the account deactivation.

    Payroll calls run on a pool of ``payroll_workers`` threads. A call that
    times out keeps its worker until the payroll backend returns, so the pool
    should be sized for the number of hung calls to tolerate.
    """

    def __init__(
        self,
        repository: LifecycleRepository,
        user_directory: UserDirectoryConnector,
        payroll: PayrollConnector,
        payroll_timeout: float = 10.0,
        payroll_workers: int = 4,
        audit_logger: Optional[AuditLogger] = None,
        clock: Callable[[], datetime] = utcnow,
        max_save_retries: int = 3,
    ):
        self.repository = repository
        self.user_directory = user_directory
        self.payroll = payroll
        self.payroll_timeout = payroll_timeout
        self.payroll_workers = payroll_workers
        self.audit_logger = audit_logger
        self.clock = clock
        self.max_save_retries = max_save_retries
        self._executor = ThreadPoolExecutor(max_workers=payroll_workers, thread_name_prefix="payroll")

    def __call__(self, event: DomainEvent):
        if isinstance(event, LifecycleCompleted):
            self.handle(event)

    def handle(self, event: LifecycleCompleted) -> Optional[Dict[str, Any]]:
        """
        Run the offboarding completion side effects.

        Args:
            event: The completion event

        Returns:
            The stored payroll breakdown, or None if not applicable or failed
        """
        if event.lifecycle_type != LifecycleType.OFFBOARDING:
            return None

        logger.info(f"Offboarding lifecycle {event.lifecycle_id} completed for employee {event.employee_id}")

        try:
            self._deactivate_employee(event)
        except (LifecycleEngineError, OSError) as e:
            logger.error(f"Could not record deactivation of employee {event.employee_id}: {e}")

        now = self.clock()
        try:
            payroll_data = self._calculate_final_payroll(event.employee_id, now.month, now.year)
        except ExternalDependencyError as e:
            logger.error(f"Final payroll for employee {event.employee_id} failed: {e}")
            self._record(
                event.lifecycle_id,
                "Final Payroll Failed",
                f"Final payroll calculation failed: {e.message}. Manual follow-up required",
                TimelineStatus.ERROR,
            )
            return None

        def store(lifecycle: Lifecycle):
            lifecycle.final_payroll_data = payroll_data
            add_timeline_entry(
                lifecycle,
                "Final Payroll Calculated",
                f"Final payroll calculated for {now.month:02d}/{now.year}",
                SYSTEM_ACTOR,
            )

        self._update(event.lifecycle_id, store)
        return payroll_data

    def _deactivate_employee(self, event: LifecycleCompleted):
        try:
            result = self.user_directory.mark_pending_offboarding(event.employee_id)
        except Exception as e:
            result = ConnectorResult(False, "Account deactivation failed", error=str(e))
        if result.success:
            self._record(
                event.lifecycle_id,
                "Employee Deactivated",
                "Account set to PENDING_OFFBOARDING and deactivated",
            )
        else:
            logger.error(f"Failed to deactivate employee {event.employee_id}: {result.error or result.message}")
            self._record(
                event.lifecycle_id,
                "Employee Deactivation Failed",
                result.error or result.message,
                TimelineStatus.ERROR,
            )

    def _calculate_final_payroll(self, employee_id: str, month: int, year: int) -> Dict[str, Any]:
        future = self._executor.submit(self.payroll.calculate_final_payroll, employee_id, month, year)
        try:
            result = future.result(timeout=self.payroll_timeout)
        except FutureTimeoutError as e:
            future.cancel()
            raise ExternalDependencyError(
                "payroll", f"timed out after {self.payroll_timeout}s"
            ) from e
        except Exception as e:
            raise ExternalDependencyError("payroll", str(e)) from e

        if not result.success:
            raise ExternalDependencyError("payroll", result.error or result.message)
        return result.data

    def _record(self, lifecycle_id: str, action: str, description: str,
                status: TimelineStatus = TimelineStatus.SUCCESS):
        self._update(
            lifecycle_id,
            lambda lc: add_timeline_entry(lc, action, description, SYSTEM_ACTOR, status),
        )

    def _update(self, lifecycle_id: str, mutate: Callable[[Lifecycle], Any]):
        saved, _ = self.repository.update(lifecycle_id, mutate, self.max_save_retries)
        if self.audit_logger:
            for entry in saved.new_entries:
                self.audit_logger.log_entry(saved.lifecycle.id, saved.lifecycle.employee_id, entry)

    def shutdown(self):
        self._executor.shutdown(wait=False)

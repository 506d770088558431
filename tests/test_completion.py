"""
Tests for the offboarding Completion Trigger.
"""

import threading
from unittest.mock import Mock

import pytest

from lifecycle_engine.connectors import ConnectorResult, MockPayrollConnector
from lifecycle_engine.engine import CompletionHandler, EventBus, LifecycleCompleted
from lifecycle_engine.models import EmployeeStatus, LifecycleStatus, LifecycleType, TimelineStatus
from lifecycle_engine.service import LifecycleService


def actions(lifecycle):
    return [entry.action for entry in lifecycle.timeline]


class TestOffboardingCompletion:
    """Completing the last offboarding task deactivates the employee and runs payroll."""

    def test_offboarding_completion_side_effects(self, service, user_directory, payroll,
                                                 complete_all_but_last):
        lifecycle = service.create_lifecycle(
            "EMP001", "Offboarding", "DEPT-ENG", "hr-001", "hr-admin"
        )
        lifecycle = complete_all_but_last(lifecycle)
        assert lifecycle.status == LifecycleStatus.IN_PROGRESS
        assert payroll.calls == []

        lifecycle = service.update_task_status(lifecycle.id, lifecycle.tasks[-1].id, "complete", "hr-001")

        assert lifecycle.status == LifecycleStatus.COMPLETED
        assert lifecycle.actual_completion_date is not None
        assert lifecycle.progress == 100

        employee = user_directory.find_employee("EMP001")
        assert employee.status == EmployeeStatus.PENDING_OFFBOARDING
        assert employee.is_active is False

        assert len(payroll.calls) == 1
        employee_id, month, year = payroll.calls[0]
        assert employee_id == "EMP001"
        assert (month, year) == (lifecycle.actual_completion_date.month, lifecycle.actual_completion_date.year)

        assert lifecycle.final_payroll_data["summary"]["finalNetPay"] == 5000.0
        assert actions(lifecycle)[-2:] == ["Employee Deactivated", "Final Payroll Calculated"]

    def test_onboarding_completion_has_no_side_effects(self, service, user_directory, payroll,
                                                       complete_all_but_last):
        lifecycle = service.create_lifecycle(
            "EMP001", "Onboarding", "DEPT-ENG", "hr-001", "hr-admin"
        )
        lifecycle = complete_all_but_last(lifecycle)

        lifecycle = service.update_task_status(lifecycle.id, lifecycle.tasks[-1].id, "complete", "hr-001")

        assert lifecycle.status == LifecycleStatus.COMPLETED
        assert lifecycle.final_payroll_data is None
        assert payroll.calls == []
        assert user_directory.find_employee("EMP001").status == EmployeeStatus.ACTIVE

    def test_trigger_fires_once(self, service, payroll, complete_all_but_last):
        lifecycle = service.create_lifecycle(
            "EMP001", "Offboarding", "DEPT-ENG", "hr-001", "hr-admin"
        )
        lifecycle = complete_all_but_last(lifecycle)
        lifecycle = service.update_task_status(lifecycle.id, lifecycle.tasks[-1].id, "complete", "hr-001")

        service.add_timeline_entry(lifecycle.id, "Note", "Exit pack sent", "hr-001")
        service.update_lifecycle_status(lifecycle.id, "Completed", "hr-admin")

        assert len(payroll.calls) == 1

    def test_trigger_fires_after_reverted_manual_completion(self, service, user_directory, payroll,
                                                            complete_all_but_last):
        lifecycle = service.create_lifecycle(
            "EMP001", "Offboarding", "DEPT-ENG", "hr-001", "hr-admin"
        )
        service.update_lifecycle_status(lifecycle.id, "Completed", "hr-admin")
        service.update_lifecycle_status(lifecycle.id, "In Progress", "hr-admin")
        assert payroll.calls == []

        lifecycle = complete_all_but_last(lifecycle)
        lifecycle = service.update_task_status(lifecycle.id, lifecycle.tasks[-1].id, "complete", "hr-001")

        assert lifecycle.status == LifecycleStatus.COMPLETED
        assert lifecycle.completion_handled is True
        assert len(payroll.calls) == 1
        assert user_directory.find_employee("EMP001").status == EmployeeStatus.PENDING_OFFBOARDING
        assert lifecycle.final_payroll_data is not None


class TestPayrollFailures:
    """Payroll failures are soft: the lifecycle stays Completed."""

    @pytest.fixture
    def failing_service(self, repository, user_directory, audit_logger):
        svc = LifecycleService(
            repository=repository,
            user_directory=user_directory,
            payroll=MockPayrollConnector(fail=True),
            audit_logger=audit_logger,
        )
        yield svc
        svc.completion_handler.shutdown()

    def _complete_offboarding(self, svc):
        lifecycle = svc.create_lifecycle("EMP001", "Offboarding", "DEPT-ENG", "hr-001", "hr-admin")
        for task in lifecycle.tasks:
            lifecycle = svc.update_task_status(lifecycle.id, task.id, "complete", "hr-001")
        return lifecycle

    def test_unsuccessful_result(self, failing_service, user_directory):
        lifecycle = self._complete_offboarding(failing_service)

        assert lifecycle.status == LifecycleStatus.COMPLETED
        assert lifecycle.final_payroll_data is None
        assert user_directory.find_employee("EMP001").is_active is False

        failure = lifecycle.timeline[-1]
        assert failure.action == "Final Payroll Failed"
        assert failure.status == TimelineStatus.ERROR
        assert "payroll service unavailable" in failure.description

    def test_raised_exception(self, repository, user_directory):
        payroll = Mock()
        payroll.calculate_final_payroll.side_effect = ConnectionError("connection refused")
        svc = LifecycleService(repository, user_directory, payroll)
        try:
            lifecycle = self._complete_offboarding(svc)
        finally:
            svc.completion_handler.shutdown()

        assert lifecycle.status == LifecycleStatus.COMPLETED
        assert lifecycle.timeline[-1].action == "Final Payroll Failed"
        assert "connection refused" in lifecycle.timeline[-1].description

    def test_timeout(self, repository, user_directory):
        release = threading.Event()
        payroll = Mock()

        def slow_payroll(employee_id, month, year):
            release.wait(5)
            return ConnectorResult(True, "late", {"summary": {"finalNetPay": 1.0}})

        payroll.calculate_final_payroll.side_effect = slow_payroll
        svc = LifecycleService(repository, user_directory, payroll, payroll_timeout=0.1)
        try:
            lifecycle = self._complete_offboarding(svc)
        finally:
            release.set()
            svc.completion_handler.shutdown()

        assert lifecycle.status == LifecycleStatus.COMPLETED
        assert lifecycle.final_payroll_data is None
        assert lifecycle.timeline[-1].action == "Final Payroll Failed"
        assert "timed out" in lifecycle.timeline[-1].description

    def test_unknown_employee_is_recorded(self, service, payroll):
        lifecycle = service.create_lifecycle("EMP404", "Offboarding", "DEPT-ENG", "hr-001", "hr-admin")
        for task in lifecycle.tasks:
            lifecycle = service.update_task_status(lifecycle.id, task.id, "complete", "hr-001")

        assert "Employee Deactivation Failed" in actions(lifecycle)
        assert len(payroll.calls) == 1

    def test_directory_error_does_not_skip_payroll(self, service, user_directory, payroll, monkeypatch):
        monkeypatch.setattr(
            user_directory, "mark_pending_offboarding", Mock(side_effect=RuntimeError("directory offline"))
        )
        lifecycle = service.create_lifecycle("EMP001", "Offboarding", "DEPT-ENG", "hr-001", "hr-admin")
        for task in lifecycle.tasks:
            lifecycle = service.update_task_status(lifecycle.id, task.id, "complete", "hr-001")

        failure = next(e for e in lifecycle.timeline if e.action == "Employee Deactivation Failed")
        assert failure.status == TimelineStatus.ERROR
        assert "directory offline" in failure.description
        assert len(payroll.calls) == 1
        assert lifecycle.final_payroll_data is not None

    def test_hung_payroll_calls_do_not_starve_later_completions(self, repository, user_directory):
        release = threading.Event()
        calls = []

        def payroll_call(employee_id, month, year):
            calls.append(employee_id)
            if len(calls) <= 2:
                release.wait(5)
            return ConnectorResult(True, "ok", {"summary": {"finalNetPay": 1.0}})

        payroll = Mock()
        payroll.calculate_final_payroll.side_effect = payroll_call
        svc = LifecycleService(repository, user_directory, payroll, payroll_timeout=0.2, payroll_workers=3)
        try:
            results = []
            for employee_id in ("EMP001", "EMP002", "EMP003"):
                lifecycle = svc.create_lifecycle(employee_id, "Offboarding", "DEPT-ENG", "hr-001", "hr-admin")
                for task in lifecycle.tasks:
                    lifecycle = svc.update_task_status(lifecycle.id, task.id, "complete", "hr-001")
                results.append(lifecycle)
        finally:
            release.set()
            svc.completion_handler.shutdown()

        assert [lc.final_payroll_data is None for lc in results] == [True, True, False]
        assert calls == ["EMP001", "EMP002", "EMP003"]


class TestCompletionHandler:
    """Direct tests of the event handler."""

    def test_ignores_other_events(self, repository, user_directory):
        payroll = Mock()
        handler = CompletionHandler(repository, user_directory, payroll)
        try:
            handler(Mock())
        finally:
            handler.shutdown()
        payroll.calculate_final_payroll.assert_not_called()

    def test_bus_delivers_completion(self, repository, user_directory, payroll, offboarding):
        repository.add(offboarding)
        handler = CompletionHandler(repository, user_directory, payroll)
        bus = EventBus()
        bus.subscribe(LifecycleCompleted, handler)
        try:
            bus.publish(LifecycleCompleted(
                lifecycle_id=offboarding.id,
                employee_id="EMP001",
                lifecycle_type=LifecycleType.OFFBOARDING,
                version=1,
            ))
        finally:
            handler.shutdown()

        stored = repository.load(offboarding.id)
        assert stored.final_payroll_data is not None
        assert payroll.calls[0][0] == "EMP001"

    def test_journal_failure_after_deactivation_still_runs_payroll(self, repository, user_directory,
                                                                  payroll, offboarding):
        repository.add(offboarding)
        journal = Mock()
        journal.log_entry.side_effect = [OSError("disk full"), None]
        handler = CompletionHandler(repository, user_directory, payroll, audit_logger=journal)
        try:
            handler.handle(LifecycleCompleted(
                lifecycle_id=offboarding.id,
                employee_id="EMP001",
                lifecycle_type=LifecycleType.OFFBOARDING,
                version=1,
            ))
        finally:
            handler.shutdown()

        assert user_directory.find_employee("EMP001").is_active is False
        assert len(payroll.calls) == 1
        assert repository.load(offboarding.id).final_payroll_data is not None

    def test_failing_subscriber_does_not_stop_others(self):
        bus = EventBus()
        received = []

        def broken(event):
            raise RuntimeError("boom")

        bus.subscribe(LifecycleCompleted, broken)
        bus.subscribe(LifecycleCompleted, received.append)
        event = LifecycleCompleted(
            lifecycle_id="LC1", employee_id="EMP001",
            lifecycle_type=LifecycleType.ONBOARDING, version=2,
        )

        bus.publish(event)

        assert received == [event]

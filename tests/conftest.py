"""
Shared fixtures for the Lifecycle Engine tests.
"""

import pytest

from lifecycle_engine.audit import AuditLogger
from lifecycle_engine.connectors import MockPayrollConnector, MockUserDirectoryConnector
from lifecycle_engine.engine import LifecycleFactory, LifecycleRepository
from lifecycle_engine.models import EmployeeRecord, Lifecycle, LifecycleType, TaskStatus
from lifecycle_engine.service import LifecycleService


@pytest.fixture
def employees():
    """Employee records known to the mock user directory."""
    return [
        EmployeeRecord(
            employee_id="EMP001",
            first_name="Jane",
            last_name="Smith",
            email="jane.smith@company.com",
            department_id="DEPT-ENG",
            department_name="Engineering",
            role_id="ROLE-DEV",
            role_level=300,
        ),
        EmployeeRecord(
            employee_id="EMP002",
            first_name="Omar",
            last_name="Haddad",
            email="omar.haddad@company.com",
            department_id="DEPT-FIN",
            department_name="Finance",
            role_id="ROLE-ACC",
            role_level=300,
        ),
    ]


@pytest.fixture
def user_directory(employees):
    """Mock user directory seeded with the test employees."""
    directory = MockUserDirectoryConnector()
    for employee in employees:
        directory.add_employee(employee.model_copy())
    return directory


@pytest.fixture
def payroll():
    """Mock payroll backend."""
    return MockPayrollConnector({"monthly_salary": 5000.0})


@pytest.fixture
def repository():
    """In-memory lifecycle repository."""
    return LifecycleRepository()


@pytest.fixture
def audit_logger(tmp_path):
    return AuditLogger(str(tmp_path / "audit"))


@pytest.fixture
def service(repository, user_directory, payroll, audit_logger):
    """Lifecycle service wired to mock collaborators."""
    svc = LifecycleService(
        repository=repository,
        user_directory=user_directory,
        payroll=payroll,
        audit_logger=audit_logger,
        payroll_timeout=2.0,
    )
    yield svc
    svc.completion_handler.shutdown()


@pytest.fixture
def factory():
    return LifecycleFactory()


@pytest.fixture
def onboarding(factory):
    """Unsaved onboarding lifecycle for EMP001."""
    return factory.create_standard_lifecycle(
        "EMP001", LifecycleType.ONBOARDING, "DEPT-ENG", "ROLE-DEV", "hr-admin", "hr-001"
    )


@pytest.fixture
def offboarding(factory):
    """Unsaved offboarding lifecycle for EMP001."""
    return factory.create_standard_lifecycle(
        "EMP001", LifecycleType.OFFBOARDING, "DEPT-ENG", "ROLE-DEV", "hr-admin", "hr-001"
    )


@pytest.fixture
def complete_all_but_last(service):
    """Complete every task except the last one through the service."""
    def complete(lifecycle: Lifecycle, actor: str = "hr-001") -> Lifecycle:
        for task in lifecycle.tasks[:-1]:
            lifecycle = service.update_task_status(lifecycle.id, task.id, "complete", actor)
        completed = [t for t in lifecycle.tasks if t.status == TaskStatus.COMPLETED]
        assert len(completed) == len(lifecycle.tasks) - 1
        return lifecycle
    return complete

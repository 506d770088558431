"""
Mock connectors for the Lifecycle Engine.

In-memory user directory and payroll backends for testing and
development without access to the real systems.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from ..models import EmployeeRecord, EmployeeStatus
from .base_connector import ConnectorResult, PayrollConnector, UserDirectoryConnector

logger = logging.getLogger(__name__)


class MockUserDirectoryConnector(UserDirectoryConnector):
    """In-memory user directory."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config, mock_mode=True)
        self.employees: Dict[str, EmployeeRecord] = {}

        for employee in self.config.get("employees", []):
            self.add_employee(EmployeeRecord(**employee))

    def add_employee(self, employee: EmployeeRecord) -> EmployeeRecord:
        self.employees[employee.employee_id] = employee
        return employee

    def get_employee(self, employee_id: str) -> ConnectorResult:
        """Mock employee lookup."""
        employee = self.employees.get(employee_id)
        if employee is None:
            return ConnectorResult(False, f"Employee {employee_id} not found",
                                   error="not found")
        return ConnectorResult(True, f"Found employee {employee_id}", employee)

    def mark_pending_offboarding(self, employee_id: str) -> ConnectorResult:
        """Mock account deactivation."""
        employee = self.employees.get(employee_id)
        if employee is None:
            return ConnectorResult(False, f"Employee {employee_id} not found",
                                   error="not found")

        employee.status = EmployeeStatus.PENDING_OFFBOARDING
        employee.is_active = False

        logger.info(f"Mock deactivated employee {employee_id} pending offboarding")
        return ConnectorResult(True, f"Deactivated employee {employee_id}")


class MockPayrollConnector(PayrollConnector):
    """
    Simulated payroll backend.

    Returns a fixed-shape final payroll breakdown and records every call.
    Set ``fail`` to make every calculation unsuccessful.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None, fail: bool = False):
        super().__init__(config, mock_mode=True)
        self.fail = fail
        self.calls: List[Tuple[str, int, int]] = []

    def calculate_final_payroll(self, employee_id: str, month: int, year: int) -> ConnectorResult:
        """Mock final payroll calculation."""
        self.calls.append((employee_id, month, year))

        if self.fail:
            return ConnectorResult(False, "Final payroll calculation failed",
                                   error="payroll service unavailable")

        monthly_salary = float(self.config.get("monthly_salary", 0.0))
        breakdown = {
            "employee": {"id": employee_id},
            "period": {"month": month, "year": year},
            "finalPayments": {
                "gratuity": {"gratuityAmount": 0.0},
                "leavePayout": {"leavePayout": 0.0},
            },
            "summary": {"finalNetPay": monthly_salary},
        }

        logger.info(f"Mock calculated final payroll for {employee_id} ({month}/{year})")
        return ConnectorResult(True, f"Final payroll calculated for {employee_id}", breakdown)

"""
Base Connector Classes for the Lifecycle Engine.

This module defines the collaborator interfaces the engine depends on:
the user directory (employee accounts) and the payroll system. Both are
injected into the engine, with in-memory mock backends for development.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from ..models import EmployeeRecord

logger = logging.getLogger(__name__)


class ConnectorResult:
    """Result of a connector operation."""

    def __init__(self, success: bool, message: str = "", data: Optional[Any] = None,
                 error: Optional[str] = None):
        self.success = success
        self.message = message
        self.data = data
        self.error = error

    def __bool__(self):
        return self.success

    def __str__(self):
        return f"{'✓' if self.success else '✗'} {self.message}"


class BaseConnector(ABC):
    """Common configuration handling for all connectors."""

    def __init__(self, config: Optional[Dict[str, Any]] = None, mock_mode: bool = False):
        """
        Initialize the connector.

        Args:
            config: Configuration dictionary with endpoints, credentials, etc.
            mock_mode: If True, the connector is a simulated backend
        """
        self.config = config or {}
        self.mock_mode = mock_mode

        logger.info(f"Initialized {self.__class__.__name__} (mock_mode={mock_mode})")


class UserDirectoryConnector(BaseConnector):
    """Access to employee accounts."""

    @abstractmethod
    def get_employee(self, employee_id: str) -> ConnectorResult:
        """
        Look up an employee.

        Args:
            employee_id: Employee identifier

        Returns:
            ConnectorResult with an EmployeeRecord as data if found
        """
        pass

    @abstractmethod
    def mark_pending_offboarding(self, employee_id: str) -> ConnectorResult:
        """
        Set the account status to PENDING_OFFBOARDING and deactivate it.

        Args:
            employee_id: Employee identifier

        Returns:
            ConnectorResult with success status
        """
        pass

    def find_employee(self, employee_id: str) -> Optional[EmployeeRecord]:
        """Convenience wrapper returning the record or None."""
        result = self.get_employee(employee_id)
        return result.data if result.success else None


class PayrollConnector(BaseConnector):
    """Access to the payroll system."""

    @abstractmethod
    def calculate_final_payroll(self, employee_id: str, month: int, year: int) -> ConnectorResult:
        """
        Request the final payroll computation for a leaving employee.

        Args:
            employee_id: Employee identifier
            month: Payroll month (1-12)
            year: Payroll year

        Returns:
            ConnectorResult with the payroll breakdown as data
        """
        pass

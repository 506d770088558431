"""
Connectors Package for the Lifecycle Engine.

This package provides the user directory and payroll collaborator
interfaces along with mock and HTTP implementations.
"""

from .base_connector import BaseConnector, ConnectorResult, PayrollConnector, UserDirectoryConnector
from .mock_connectors import MockPayrollConnector, MockUserDirectoryConnector
from .payroll_connector import HTTPPayrollConnector


def get_payroll_connector(config, mock: bool = False) -> PayrollConnector:
    """Get the payroll connector for the configured mode."""
    if mock:
        return MockPayrollConnector(config)
    return HTTPPayrollConnector(config)


__all__ = [
    "BaseConnector",
    "ConnectorResult",
    "UserDirectoryConnector",
    "PayrollConnector",
    "MockUserDirectoryConnector",
    "MockPayrollConnector",
    "HTTPPayrollConnector",
    "get_payroll_connector",
]

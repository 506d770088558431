"""
HTTP Payroll Connector for the Lifecycle Engine.

Requests final payroll computations from the payroll service API.
"""

import logging
from typing import Any, Dict, Optional

import requests

from .base_connector import ConnectorResult, PayrollConnector

logger = logging.getLogger(__name__)


class HTTPPayrollConnector(PayrollConnector):
    """Payroll connector calling ``POST {base_url}/api/payroll/final``."""

    def __init__(self, config: Optional[Dict[str, Any]] = None, session: Optional[requests.Session] = None):
        super().__init__(config, mock_mode=False)
        self.base_url = (self.config.get("base_url") or "").rstrip("/")
        self.timeout = float(self.config.get("timeout_seconds") or 10)
        self.session = session or requests.Session()

        api_token = self.config.get("api_token")
        if api_token:
            self.session.headers["Authorization"] = f"Bearer {api_token}"

    def validate_config(self) -> bool:
        """Check that a payroll API base URL is configured."""
        return bool(self.base_url)

    def calculate_final_payroll(self, employee_id: str, month: int, year: int) -> ConnectorResult:
        """Call the payroll service and return its breakdown."""
        if not self.validate_config():
            return ConnectorResult(False, "Payroll base_url is not configured", error="missing base_url")

        url = f"{self.base_url}/api/payroll/final"
        try:
            response = self.session.post(
                url,
                json={"employeeId": employee_id, "month": month, "year": year},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Payroll request for {employee_id} failed: {e}")
            return ConnectorResult(False, "Payroll request failed", error=str(e))

        if response.status_code != 200:
            logger.error(f"Payroll service returned {response.status_code} for {employee_id}")
            return ConnectorResult(False, f"Payroll service returned {response.status_code}",
                                   error=response.text[:500])

        try:
            body = response.json()
        except ValueError as e:
            return ConnectorResult(False, "Payroll service returned invalid JSON", error=str(e))

        if not body.get("success", False):
            return ConnectorResult(False, body.get("message", "Payroll calculation failed"),
                                   error=body.get("message"))

        logger.info(f"Final payroll calculated for {employee_id} ({month}/{year})")
        return ConnectorResult(True, body.get("message", "Final payroll calculated"), body.get("data"))

"""
Audit Logging Module.

This module mirrors lifecycle timeline entries into an append-only
JSONL journal so they can be reviewed outside the lifecycle store.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..models import TimelineEntry

logger = logging.getLogger(__name__)


class AuditLogger:
    """
    Journal for lifecycle audit events.

    Writes one JSON line per timeline entry into a daily file under
    ``audit_dir``. Existing lines are never rewritten.
    """

    def __init__(self, audit_dir: str = "audit"):
        """
        Initialize the audit logger.

        Args:
            audit_dir: Directory to store audit logs
        """
        self.audit_dir = Path(audit_dir)
        self.audit_dir.mkdir(parents=True, exist_ok=True)

    def log_entry(self, lifecycle_id: str, employee_id: str, entry: TimelineEntry) -> Dict[str, Any]:
        """
        Append a timeline entry to today's journal file.

        Args:
            lifecycle_id: Lifecycle the entry belongs to
            employee_id: Employee the lifecycle is for
            entry: The timeline entry

        Returns:
            The record as written
        """
        date_str = datetime.now(timezone.utc).strftime("%Y-%m-%d")
        log_file = self.audit_dir / f"audit_{date_str}.jsonl"

        record = {
            "lifecycle_id": lifecycle_id,
            "employee_id": employee_id,
            **entry.model_dump(mode="json"),
        }

        with open(log_file, "a", encoding="utf-8") as f:
            f.write(json.dumps(record) + "\n")

        logger.debug(f"Logged audit entry '{entry.action}' for lifecycle {lifecycle_id}")
        return record

    def get_entries(
        self,
        lifecycle_id: Optional[str] = None,
        employee_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[Dict[str, Any]]:
        """
        Retrieve journal records, most recent first.

        Args:
            lifecycle_id: Filter by lifecycle
            employee_id: Filter by employee
            limit: Maximum number of records to return

        Returns:
            List of matching records
        """
        results = []

        log_files = sorted(self.audit_dir.glob("audit_*.jsonl"), reverse=True)

        for log_file in log_files:
            if len(results) >= limit:
                break

            with open(log_file, encoding="utf-8") as f:
                lines = f.readlines()

            for line in reversed(lines):
                if len(results) >= limit:
                    break

                try:
                    record = json.loads(line)
                except json.JSONDecodeError as e:
                    logger.warning(f"Skipping unreadable audit line in {log_file}: {e}")
                    continue

                if lifecycle_id and record.get("lifecycle_id") != lifecycle_id:
                    continue
                if employee_id and record.get("employee_id") != employee_id:
                    continue

                results.append(record)

        return results

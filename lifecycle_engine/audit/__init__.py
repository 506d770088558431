"""
Audit Package.

Exports the lifecycle timeline helpers and the AuditLogger journal.
"""

from .audit_logger import AuditLogger
from .timeline import add_timeline_entry

__all__ = ["AuditLogger", "add_timeline_entry"]

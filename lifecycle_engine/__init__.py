"""
Employee Lifecycle Engine

Tracks onboarding and offboarding processes for employees: a fixed set of
HR tasks per lifecycle, a checklist, required documents and an audit
timeline. Completing every task of an offboarding deactivates the employee
account and requests the final payroll calculation.
"""

__version__ = "1.0.0"
__author__ = "Lifecycle Engine Team"
__email__ = "team@example.com"

from .engine.factory import LifecycleFactory
from .engine.repository import LifecycleRepository
from .engine.state_machine import TaskStateMachine
from .service import LifecycleService

__all__ = [
    "LifecycleFactory",
    "LifecycleRepository",
    "TaskStateMachine",
    "LifecycleService",
]

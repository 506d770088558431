"""
Core data models for the Lifecycle Engine.

This module defines the Pydantic models used throughout the system
for employee lifecycles, their tasks, checklist items, documents,
timeline entries and reporting projections.
"""

import math
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


def utcnow() -> datetime:
    """Timezone-aware current time used for every server-assigned timestamp."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def calculate_progress(completed: int, total: int) -> int:
    """Rounded completion percentage, 0 when there is nothing to complete."""
    if total == 0:
        return 0
    return round(completed / total * 100)


class LifecycleType(str, Enum):
    """Kinds of employee lifecycle processes."""
    ONBOARDING = "Onboarding"
    OFFBOARDING = "Offboarding"
    TRANSFER = "Transfer"
    PROMOTION = "Promotion"


class LifecycleStatus(str, Enum):
    """Status of a lifecycle as a whole."""
    INITIATED = "Initiated"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    ON_HOLD = "On Hold"


ACTIVE_STATUSES = (LifecycleStatus.INITIATED, LifecycleStatus.IN_PROGRESS)
TERMINAL_STATUSES = (LifecycleStatus.COMPLETED, LifecycleStatus.CANCELLED)


class TaskStatus(str, Enum):
    """Status of a single lifecycle task."""
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    OVERDUE = "Overdue"
    CANCELLED = "Cancelled"


TERMINAL_TASK_STATUSES = (TaskStatus.COMPLETED, TaskStatus.CANCELLED)


class TaskPriority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


class TaskType(str, Enum):
    """Closed set of task categories produced by the standard task plans."""
    # Onboarding
    DOCUMENTATION = "DOCUMENTATION"
    SYSTEM_ACCESS = "SYSTEM_ACCESS"
    ORIENTATION = "ORIENTATION"
    TRAINING = "TRAINING"
    FINAL_REVIEW = "FINAL_REVIEW"
    # Offboarding
    EXIT_DOCUMENTATION = "EXIT_DOCUMENTATION"
    ACCESS_EQUIPMENT_RETURN = "ACCESS_EQUIPMENT_RETURN"
    EXIT_INTERVIEW = "EXIT_INTERVIEW"
    KNOWLEDGE_TRANSFER = "KNOWLEDGE_TRANSFER"
    FINAL_CLEARANCE = "FINAL_CLEARANCE"


# Task categories a lifecycle of each type may hold; other types hold no tasks
LIFECYCLE_TASK_TYPES: Dict[LifecycleType, frozenset] = {
    LifecycleType.ONBOARDING: frozenset({
        TaskType.DOCUMENTATION,
        TaskType.SYSTEM_ACCESS,
        TaskType.ORIENTATION,
        TaskType.TRAINING,
        TaskType.FINAL_REVIEW,
    }),
    LifecycleType.OFFBOARDING: frozenset({
        TaskType.EXIT_DOCUMENTATION,
        TaskType.ACCESS_EQUIPMENT_RETURN,
        TaskType.EXIT_INTERVIEW,
        TaskType.KNOWLEDGE_TRANSFER,
        TaskType.FINAL_CLEARANCE,
    }),
}


class TimelineStatus(str, Enum):
    SUCCESS = "Success"
    WARNING = "Warning"
    ERROR = "Error"


class DocumentStatus(str, Enum):
    REQUIRED = "Required"
    SUBMITTED = "Submitted"
    VERIFIED = "Verified"
    MISSING = "Missing"


class EmployeeStatus(str, Enum):
    """Account status held by the user directory."""
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    PENDING_OFFBOARDING = "PENDING_OFFBOARDING"


class Task(BaseModel):
    """A unit of work inside a lifecycle, driven by the task state machine."""
    id: str = Field(default_factory=new_id)
    title: str = Field(..., description="Human readable task title")
    description: Optional[str] = None
    task_type: TaskType
    priority: TaskPriority = TaskPriority.MEDIUM
    assigned_to: str = Field(..., description="User id of the assignee")
    status: TaskStatus = TaskStatus.PENDING
    due_date: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    completed_by: Optional[str] = None
    notes: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_TASK_STATUSES


class ChecklistItem(BaseModel):
    """Supplementary requirement tracked independently from tasks."""
    item: str
    is_required: bool = True
    is_completed: bool = False
    completed_by: Optional[str] = None
    completed_at: Optional[datetime] = None
    notes: Optional[str] = None

    @field_validator('item')
    @classmethod
    def validate_item(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError('Checklist item text is required')
        return v


class DocumentRequirement(BaseModel):
    """A document the employee must provide during the process."""
    name: str
    status: DocumentStatus = DocumentStatus.REQUIRED
    uploaded_by: Optional[str] = None
    uploaded_at: Optional[datetime] = None
    file_path: Optional[str] = None
    notes: Optional[str] = None


class TimelineEntry(BaseModel):
    """Append-only audit record of an action taken against a lifecycle."""
    action: str
    description: Optional[str] = None
    performed_by: str
    performed_at: datetime = Field(default_factory=utcnow)
    status: TimelineStatus = TimelineStatus.SUCCESS

    model_config = {"frozen": True}


class Lifecycle(BaseModel):
    """Aggregate tracking one onboarding/offboarding process for one employee."""
    id: str = Field(default_factory=new_id)
    employee_id: str
    type: LifecycleType
    status: LifecycleStatus = LifecycleStatus.INITIATED
    start_date: datetime
    target_completion_date: datetime
    actual_completion_date: Optional[datetime] = None
    initiated_by: str
    assigned_hr: str
    department_id: str
    role_id: Optional[str] = None
    position: Optional[str] = None
    notes: Optional[str] = None
    tasks: List[Task] = Field(default_factory=list)
    checklist: List[ChecklistItem] = Field(default_factory=list)
    documents: List[DocumentRequirement] = Field(default_factory=list)
    timeline: List[TimelineEntry] = Field(default_factory=list)
    final_payroll_data: Optional[Dict[str, Any]] = None
    completion_handled: bool = Field(
        False, description="Set once the task-driven completion has raised its event"
    )
    version: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode='after')
    def validate_task_types(self) -> 'Lifecycle':
        """Every task must belong to the plan of the lifecycle's type."""
        allowed = LIFECYCLE_TASK_TYPES.get(self.type, frozenset())
        for task in self.tasks:
            if task.task_type not in allowed:
                raise ValueError(
                    f"Task type {task.task_type.value} is not valid for {self.type.value} lifecycles"
                )
        return self

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def progress(self) -> int:
        """Percentage of completed tasks, 0 for an empty task list."""
        completed = len([t for t in self.tasks if t.status == TaskStatus.COMPLETED])
        return calculate_progress(completed, len(self.tasks))

    def get_task(self, task_id: str) -> Optional[Task]:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        return self.is_active and self.target_completion_date < now

    def days_remaining(self, now: Optional[datetime] = None) -> int:
        if self.status in TERMINAL_STATUSES:
            return 0
        now = now or utcnow()
        seconds = (self.target_completion_date - now).total_seconds()
        return math.ceil(seconds / 86400)

    def summary(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """JSON-ready representation including derived values."""
        data = self.model_dump(mode="json")
        data["progress"] = self.progress
        data["is_overdue"] = self.is_overdue(now)
        data["days_remaining"] = self.days_remaining(now)
        return data


class EmployeeRecord(BaseModel):
    """Employee account as exposed by the user directory."""
    employee_id: str
    first_name: str
    last_name: str
    email: str
    department_id: str
    department_name: Optional[str] = None
    role_id: Optional[str] = None
    role_level: int = 0
    status: EmployeeStatus = EmployeeStatus.ACTIVE
    is_active: bool = True

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @field_validator('email')
    @classmethod
    def validate_email(cls, v: str) -> str:
        """Basic email validation."""
        if '@' not in v:
            raise ValueError('Invalid email format')
        return v


class RequesterContext(BaseModel):
    """Identity of the caller, as resolved by the authorization layer."""
    user_id: str
    role_level: int = 0
    department_id: Optional[str] = None
    department_name: Optional[str] = None
    display_name: Optional[str] = None


class LifecycleFilters(BaseModel):
    """Filters accepted by the listing queries."""
    status: Optional[LifecycleStatus] = None
    type: Optional[LifecycleType] = None
    department_id: Optional[str] = None
    search: Optional[str] = None


class PaginatedLifecycles(BaseModel):
    """One page of lifecycles with paging metadata."""
    docs: List[Lifecycle] = Field(default_factory=list)
    totalDocs: int = 0
    limit: int = 10
    page: int = 1
    totalPages: int = 0
    hasNextPage: bool = False
    hasPrevPage: bool = False
    nextPage: Optional[int] = None
    prevPage: Optional[int] = None


class LifecycleStats(BaseModel):
    total: int = 0
    active: int = 0
    completed: int = 0
    overdue: int = 0
    onboarding: int = 0
    offboarding: int = 0
    completionRate: int = 0

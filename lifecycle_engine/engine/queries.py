"""
Query and reporting surface for the Lifecycle Engine.

Read-only projections over stored lifecycles: filtered and paginated
listings scoped to the caller's visibility, statistics, active and
overdue lookups.
"""

import logging
import math
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from ..connectors.base_connector import UserDirectoryConnector
from ..exceptions import LifecycleNotFoundError, LifecycleValidationError
from ..models import (
    ACTIVE_STATUSES,
    Lifecycle,
    LifecycleFilters,
    LifecycleStats,
    LifecycleStatus,
    LifecycleType,
    PaginatedLifecycles,
    RequesterContext,
    utcnow,
)
from .repository import LifecycleRepository

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = (
    "created_at",
    "updated_at",
    "start_date",
    "target_completion_date",
    "actual_completion_date",
    "status",
    "type",
    "employee_id",
    "department_id",
)


class VisibilityPolicy:
    """
    Decides which departments a caller may see.

    Callers at or above ``unrestricted_role_level`` see everything; callers at
    or above ``hr_role_level`` in the HR department see everything; everyone
    else sees only their own department.
    """

    def __init__(self, unrestricted_role_level: int = 1000, hr_role_level: int = 700,
                 hr_department_name: str = "Human Resources"):
        self.unrestricted_role_level = unrestricted_role_level
        self.hr_role_level = hr_role_level
        self.hr_department_name = hr_department_name

    def department_scope(self, requester: RequesterContext) -> Optional[str]:
        """Department the caller is restricted to, or None for no restriction."""
        if requester.role_level >= self.unrestricted_role_level:
            return None
        if requester.role_level >= self.hr_role_level and requester.department_name == self.hr_department_name:
            return None
        return requester.department_id or ""


class LifecycleQueryService:
    """Read-only lifecycle queries."""

    def __init__(
        self,
        repository: LifecycleRepository,
        user_directory: Optional[UserDirectoryConnector] = None,
        visibility: Optional[VisibilityPolicy] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repository = repository
        self.user_directory = user_directory
        self.visibility = visibility or VisibilityPolicy()
        self.clock = clock

    def list_lifecycles(
        self,
        requester: RequesterContext,
        filters: Optional[LifecycleFilters] = None,
        page: int = 1,
        limit: int = 10,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> PaginatedLifecycles:
        """
        List lifecycles visible to the requester.

        Args:
            requester: Caller identity used for department scoping
            filters: Status, type, department and free-text search filters
            page: 1-based page number
            limit: Page size
            sort_by: Lifecycle field to sort on
            sort_order: "asc" or "desc"

        Returns:
            PaginatedLifecycles page
        """
        lifecycles = self._visible(requester, filters or LifecycleFilters())
        return self._paginate(lifecycles, page, limit, sort_by, sort_order)

    def list_offboarding(
        self,
        requester: RequesterContext,
        filters: Optional[LifecycleFilters] = None,
        page: int = 1,
        limit: int = 10,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> PaginatedLifecycles:
        """List Offboarding lifecycles that are Initiated, In Progress or Completed."""
        filters = (filters or LifecycleFilters()).model_copy(update={"type": LifecycleType.OFFBOARDING})
        shown = (LifecycleStatus.INITIATED, LifecycleStatus.IN_PROGRESS, LifecycleStatus.COMPLETED)
        lifecycles = [lc for lc in self._visible(requester, filters) if lc.status in shown]
        return self._paginate(lifecycles, page, limit, sort_by, sort_order)

    def get_stats(self, requester: RequesterContext) -> LifecycleStats:
        """Counts over the lifecycles visible to the requester."""
        now = self.clock()
        lifecycles = self._visible(requester, LifecycleFilters())

        total = len(lifecycles)
        completed = len([lc for lc in lifecycles if lc.status == LifecycleStatus.COMPLETED])

        return LifecycleStats(
            total=total,
            active=len([lc for lc in lifecycles if lc.status in ACTIVE_STATUSES]),
            completed=completed,
            overdue=len([lc for lc in lifecycles if lc.is_overdue(now)]),
            onboarding=len([lc for lc in lifecycles if lc.type == LifecycleType.ONBOARDING]),
            offboarding=len([lc for lc in lifecycles if lc.type == LifecycleType.OFFBOARDING]),
            completionRate=round(completed / total * 100) if total > 0 else 0,
        )

    def find_active(self) -> List[Lifecycle]:
        """All Initiated or In Progress lifecycles."""
        return [lc for lc in self.repository.all() if lc.status in ACTIVE_STATUSES]

    def find_overdue(self, now: Optional[datetime] = None) -> List[Lifecycle]:
        """Active lifecycles whose target completion date has passed."""
        now = now or self.clock()
        return [lc for lc in self.repository.all() if lc.is_overdue(now)]

    def find_by_employee_and_type(self, employee_id: str, lifecycle_type: LifecycleType) -> Optional[Lifecycle]:
        return self.repository.find_by_employee_and_type(employee_id, lifecycle_type)

    def get_final_payroll_data(self, employee_id: str) -> Dict[str, Any]:
        """
        Final payroll stored by a completed Offboarding lifecycle.

        Raises:
            LifecycleNotFoundError: if no completed offboarding holds payroll data
        """
        for lc in self.repository.all():
            if (lc.employee_id == employee_id
                    and lc.type == LifecycleType.OFFBOARDING
                    and lc.status == LifecycleStatus.COMPLETED
                    and lc.final_payroll_data is not None):
                return {
                    "employee_id": employee_id,
                    "final_payroll_data": lc.final_payroll_data,
                    "offboarding_completed_at": lc.actual_completion_date,
                }
        raise LifecycleNotFoundError("Final payroll data not found for this employee")

    def _visible(self, requester: RequesterContext, filters: LifecycleFilters) -> List[Lifecycle]:
        scope = self.visibility.department_scope(requester)
        search = filters.search.strip().lower() if filters.search else None

        results = []
        for lc in self.repository.all():
            if scope is not None and lc.department_id != scope:
                continue
            if filters.status and lc.status != filters.status:
                continue
            if filters.type and lc.type != filters.type:
                continue
            if filters.department_id and lc.department_id != filters.department_id:
                continue
            if search and not self._matches_search(lc, search):
                continue
            results.append(lc)
        return results

    def _matches_search(self, lifecycle: Lifecycle, search: str) -> bool:
        if self.user_directory is None:
            return False
        employee = self.user_directory.find_employee(lifecycle.employee_id)
        if employee is None:
            return False
        haystacks = (employee.first_name, employee.last_name, employee.email)
        return any(search in value.lower() for value in haystacks)

    def _paginate(self, lifecycles: List[Lifecycle], page: int, limit: int,
                  sort_by: str, sort_order: str) -> PaginatedLifecycles:
        if page < 1 or limit < 1:
            raise LifecycleValidationError("page and limit must be positive integers")
        if sort_by not in SORTABLE_FIELDS:
            raise LifecycleValidationError(f"Cannot sort by '{sort_by}'")
        if sort_order not in ("asc", "desc"):
            raise LifecycleValidationError("sortOrder must be 'asc' or 'desc'")

        # None sorts first ascending, last descending
        def sort_key(lc: Lifecycle):
            value = getattr(lc, sort_by)
            if value is None:
                return (0, 0)
            if hasattr(value, "value"):
                value = value.value
            return (1, value)

        ordered = sorted(lifecycles, key=sort_key, reverse=(sort_order == "desc"))

        total = len(ordered)
        total_pages = math.ceil(total / limit)
        skip = (page - 1) * limit
        has_next = page < total_pages
        has_prev = page > 1

        return PaginatedLifecycles(
            docs=ordered[skip:skip + limit],
            totalDocs=total,
            limit=limit,
            page=page,
            totalPages=total_pages,
            hasNextPage=has_next,
            hasPrevPage=has_prev,
            nextPage=page + 1 if has_next else None,
            prevPage=page - 1 if has_prev else None,
        )

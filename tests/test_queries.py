"""
Tests for the Query and Reporting surface.
"""

from datetime import timedelta

import pytest

from lifecycle_engine.engine import LifecycleQueryService, VisibilityPolicy
from lifecycle_engine.exceptions import LifecycleNotFoundError, LifecycleValidationError
from lifecycle_engine.models import (
    LifecycleFilters,
    LifecycleStatus,
    LifecycleType,
    RequesterContext,
)

ADMIN = RequesterContext(user_id="admin", role_level=1000, department_id="DEPT-EXEC")
HR_MANAGER = RequesterContext(
    user_id="hr-010", role_level=700, department_id="DEPT-HR", department_name="Human Resources"
)
ENG_MANAGER = RequesterContext(
    user_id="mgr-eng", role_level=700, department_id="DEPT-ENG", department_name="Engineering"
)


@pytest.fixture
def populated(service):
    """Lifecycles across two departments in different states."""
    eng_onboarding = service.create_lifecycle("EMP001", "Onboarding", "DEPT-ENG", "hr-001", "hr-admin")
    fin_onboarding = service.create_lifecycle("EMP002", "Onboarding", "DEPT-FIN", "hr-001", "hr-admin")
    fin_offboarding = service.create_lifecycle("EMP002", "Offboarding", "DEPT-FIN", "hr-001", "hr-admin")
    for task in fin_offboarding.tasks:
        fin_offboarding = service.update_task_status(fin_offboarding.id, task.id, "complete", "hr-001")
    held = service.create_lifecycle("EMP001", "Offboarding", "DEPT-ENG", "hr-001", "hr-admin")
    held = service.update_lifecycle_status(held.id, "On Hold", "hr-admin")
    return {
        "eng_onboarding": eng_onboarding,
        "fin_onboarding": fin_onboarding,
        "fin_offboarding": fin_offboarding,
        "held": held,
    }


class TestVisibility:
    """Department scoping of listings."""

    def test_policy(self):
        policy = VisibilityPolicy()
        assert policy.department_scope(ADMIN) is None
        assert policy.department_scope(HR_MANAGER) is None
        assert policy.department_scope(ENG_MANAGER) == "DEPT-ENG"

    def test_junior_hr_is_scoped(self):
        junior = RequesterContext(
            user_id="hr-020", role_level=500, department_id="DEPT-HR", department_name="Human Resources"
        )
        assert VisibilityPolicy().department_scope(junior) == "DEPT-HR"

    def test_admin_sees_everything(self, service, populated):
        page = service.queries.list_lifecycles(ADMIN)
        assert page.totalDocs == 4

    def test_department_manager_sees_own_department(self, service, populated):
        page = service.queries.list_lifecycles(ENG_MANAGER)

        assert page.totalDocs == 2
        assert {lc.department_id for lc in page.docs} == {"DEPT-ENG"}

    def test_stats_are_scoped(self, service, populated):
        stats = service.queries.get_stats(ENG_MANAGER)

        assert stats.total == 2
        assert stats.active == 1
        assert stats.completed == 0
        assert stats.onboarding == 1
        assert stats.offboarding == 1


class TestListing:
    """Filtering, search and pagination."""

    def test_filters(self, service, populated):
        page = service.queries.list_lifecycles(
            ADMIN, LifecycleFilters(type=LifecycleType.ONBOARDING, department_id="DEPT-FIN")
        )
        assert [lc.id for lc in page.docs] == [populated["fin_onboarding"].id]

        page = service.queries.list_lifecycles(ADMIN, LifecycleFilters(status=LifecycleStatus.COMPLETED))
        assert [lc.id for lc in page.docs] == [populated["fin_offboarding"].id]

    def test_search_matches_employee_name_and_email(self, service, populated):
        by_name = service.queries.list_lifecycles(ADMIN, LifecycleFilters(search="omar"))
        by_email = service.queries.list_lifecycles(ADMIN, LifecycleFilters(search="JANE.SMITH@"))

        assert {lc.employee_id for lc in by_name.docs} == {"EMP002"}
        assert {lc.employee_id for lc in by_email.docs} == {"EMP001"}

    def test_pagination_envelope(self, service, populated):
        first = service.queries.list_lifecycles(ADMIN, page=1, limit=3)
        second = service.queries.list_lifecycles(ADMIN, page=2, limit=3)

        assert first.totalDocs == 4
        assert first.totalPages == 2
        assert first.hasNextPage is True
        assert first.hasPrevPage is False
        assert first.nextPage == 2
        assert first.prevPage is None
        assert len(first.docs) == 3

        assert len(second.docs) == 1
        assert second.hasNextPage is False
        assert second.prevPage == 1

    def test_default_sort_is_newest_first(self, service, populated):
        page = service.queries.list_lifecycles(ADMIN)
        created = [lc.created_at for lc in page.docs]
        assert created == sorted(created, reverse=True)

    def test_sort_by_employee_ascending(self, service, populated):
        page = service.queries.list_lifecycles(ADMIN, sort_by="employee_id", sort_order="asc")
        assert [lc.employee_id for lc in page.docs] == ["EMP001", "EMP001", "EMP002", "EMP002"]

    @pytest.mark.parametrize("kwargs", [
        {"page": 0},
        {"limit": 0},
        {"sort_by": "tasks"},
        {"sort_order": "sideways"},
    ])
    def test_invalid_paging(self, service, kwargs):
        with pytest.raises(LifecycleValidationError):
            service.queries.list_lifecycles(ADMIN, **kwargs)

    def test_offboarding_listing_excludes_on_hold(self, service, populated):
        page = service.queries.list_offboarding(ADMIN)
        assert [lc.id for lc in page.docs] == [populated["fin_offboarding"].id]


class TestReporting:
    """Stats, overdue and payroll lookups."""

    def test_stats(self, service, populated):
        stats = service.queries.get_stats(ADMIN)

        assert stats.total == 4
        assert stats.active == 2
        assert stats.completed == 1
        assert stats.overdue == 0
        assert stats.onboarding == 2
        assert stats.offboarding == 2
        assert stats.completionRate == 25

    def test_empty_stats(self, service):
        stats = service.queries.get_stats(ADMIN)
        assert stats.total == 0
        assert stats.completionRate == 0

    def test_find_active(self, service, populated):
        active = {lc.id for lc in service.queries.find_active()}
        assert active == {populated["eng_onboarding"].id, populated["fin_onboarding"].id}

    def test_find_overdue(self, service, populated):
        later = populated["eng_onboarding"].target_completion_date + timedelta(days=1)

        overdue = service.queries.find_overdue(later)

        assert {lc.id for lc in overdue} == {populated["eng_onboarding"].id, populated["fin_onboarding"].id}
        assert service.queries.find_overdue(later - timedelta(days=5)) == []

    def test_derived_values(self, service, populated):
        lifecycle = populated["eng_onboarding"]
        now = lifecycle.target_completion_date - timedelta(days=3, hours=2)

        summary = lifecycle.summary(now)

        assert summary["progress"] == 0
        assert summary["is_overdue"] is False
        assert summary["days_remaining"] == 4
        assert populated["fin_offboarding"].days_remaining(now) == 0

    def test_final_payroll_data(self, service, populated):
        data = service.queries.get_final_payroll_data("EMP002")

        assert data["employee_id"] == "EMP002"
        assert data["final_payroll_data"]["summary"]["finalNetPay"] == 5000.0
        assert data["offboarding_completed_at"] == populated["fin_offboarding"].actual_completion_date

    def test_final_payroll_data_missing(self, service, populated):
        with pytest.raises(LifecycleNotFoundError, match="Final payroll data not found"):
            service.queries.get_final_payroll_data("EMP001")

    def test_search_without_directory_matches_nothing(self, repository, populated):
        queries = LifecycleQueryService(repository)
        page = queries.list_lifecycles(ADMIN, LifecycleFilters(search="jane"))
        assert page.totalDocs == 0

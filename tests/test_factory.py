"""
Tests for the Lifecycle Factory and the standard task plans.
"""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from lifecycle_engine.engine import LifecycleFactory, TemplateCatalog
from lifecycle_engine.engine.task_plans import STANDARD_TASK_PLANS
from lifecycle_engine.exceptions import LifecycleValidationError
from lifecycle_engine.models import (
    LIFECYCLE_TASK_TYPES,
    DocumentStatus,
    Lifecycle,
    LifecycleStatus,
    LifecycleType,
    Task,
    TaskPriority,
    TaskStatus,
    TaskType,
)

START = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


class TestStandardLifecycle:
    """Test cases for create_standard_lifecycle."""

    def test_onboarding_has_five_planned_tasks(self, factory):
        """Onboarding gets the fixed plan with due offsets and priorities."""
        lifecycle = factory.create_standard_lifecycle(
            "EMP001", LifecycleType.ONBOARDING, "DEPT-ENG", "ROLE-DEV", "hr-admin", "hr-001",
            start_date=START,
        )

        assert len(lifecycle.tasks) == 5
        assert [t.task_type for t in lifecycle.tasks] == [
            TaskType.DOCUMENTATION,
            TaskType.SYSTEM_ACCESS,
            TaskType.ORIENTATION,
            TaskType.TRAINING,
            TaskType.FINAL_REVIEW,
        ]
        assert [(t.due_date - START).days for t in lifecycle.tasks] == [2, 5, 7, 14, 21]
        assert [t.priority for t in lifecycle.tasks] == [
            TaskPriority.HIGH,
            TaskPriority.HIGH,
            TaskPriority.MEDIUM,
            TaskPriority.HIGH,
            TaskPriority.CRITICAL,
        ]

    def test_offboarding_has_five_planned_tasks(self, factory):
        lifecycle = factory.create_standard_lifecycle(
            "EMP001", LifecycleType.OFFBOARDING, "DEPT-ENG", None, "hr-admin", "hr-001",
            start_date=START,
        )

        assert [t.task_type for t in lifecycle.tasks] == [
            TaskType.EXIT_DOCUMENTATION,
            TaskType.ACCESS_EQUIPMENT_RETURN,
            TaskType.EXIT_INTERVIEW,
            TaskType.KNOWLEDGE_TRANSFER,
            TaskType.FINAL_CLEARANCE,
        ]
        assert lifecycle.tasks[1].priority == TaskPriority.CRITICAL
        assert lifecycle.tasks[4].priority == TaskPriority.CRITICAL

    def test_initial_state(self, factory):
        """New lifecycles start Initiated with pending tasks and a creation entry."""
        lifecycle = factory.create_standard_lifecycle(
            "EMP001", LifecycleType.ONBOARDING, "DEPT-ENG", "ROLE-DEV", "hr-admin", "hr-001",
            start_date=START,
        )

        assert lifecycle.status == LifecycleStatus.INITIATED
        assert lifecycle.start_date == START
        assert lifecycle.target_completion_date == START + timedelta(days=30)
        assert lifecycle.actual_completion_date is None
        assert lifecycle.progress == 0
        assert all(t.status == TaskStatus.PENDING for t in lifecycle.tasks)
        assert all(t.assigned_to == "hr-001" for t in lifecycle.tasks)
        assert len({t.id for t in lifecycle.tasks}) == 5

        assert len(lifecycle.timeline) == 1
        entry = lifecycle.timeline[0]
        assert entry.action == "Lifecycle Created"
        assert entry.description == "Onboarding lifecycle initiated for employee"
        assert entry.performed_by == "hr-admin"

    def test_target_is_independent_of_task_due_dates(self):
        factory = LifecycleFactory(target_completion_days=10)
        lifecycle = factory.create_standard_lifecycle(
            "EMP001", LifecycleType.ONBOARDING, "DEPT-ENG", None, "hr-admin", "hr-001",
            start_date=START,
        )

        assert lifecycle.target_completion_date == START + timedelta(days=10)
        assert max(t.due_date for t in lifecycle.tasks) > lifecycle.target_completion_date

    @pytest.mark.parametrize("lifecycle_type", [LifecycleType.TRANSFER, LifecycleType.PROMOTION])
    def test_types_without_plan_are_rejected(self, factory, lifecycle_type):
        with pytest.raises(LifecycleValidationError, match="No standard task plan"):
            factory.create_standard_lifecycle(
                "EMP001", lifecycle_type, "DEPT-ENG", None, "hr-admin", "hr-001"
            )

    def test_task_type_must_belong_to_lifecycle_type(self):
        stray = Task(
            title="Conduct Exit Interview",
            task_type=TaskType.EXIT_INTERVIEW,
            assigned_to="hr-001",
            due_date=START,
        )

        with pytest.raises(ValidationError, match="EXIT_INTERVIEW is not valid for Onboarding"):
            Lifecycle(
                employee_id="EMP001",
                type=LifecycleType.ONBOARDING,
                start_date=START,
                target_completion_date=START + timedelta(days=30),
                initiated_by="hr-admin",
                assigned_hr="hr-001",
                department_id="DEPT-ENG",
                tasks=[stray],
            )

    def test_stored_lifecycle_with_foreign_task_is_rejected(self, onboarding):
        data = onboarding.model_dump(mode="json")
        data["tasks"][0]["task_type"] = TaskType.FINAL_CLEARANCE.value

        with pytest.raises(ValidationError):
            Lifecycle.model_validate(data)

    def test_plans_match_allowed_task_types(self):
        for lifecycle_type, plan in STANDARD_TASK_PLANS.items():
            assert {p.task_type for p in plan} == LIFECYCLE_TASK_TYPES[lifecycle_type]

    def test_plans_do_not_share_task_types(self):
        onboarding = {p.task_type for p in STANDARD_TASK_PLANS[LifecycleType.ONBOARDING]}
        offboarding = {p.task_type for p in STANDARD_TASK_PLANS[LifecycleType.OFFBOARDING]}
        assert not onboarding & offboarding
        assert len(onboarding | offboarding) == len(TaskType)


class TestRestart:
    """Test cases for restarting a finished lifecycle."""

    def test_restart_rebuilds_tasks_and_keeps_timeline(self, factory, offboarding):
        for task in offboarding.tasks:
            task.status = TaskStatus.COMPLETED
        offboarding.status = LifecycleStatus.COMPLETED
        offboarding.actual_completion_date = START
        offboarding.completion_handled = True
        offboarding.final_payroll_data = {"summary": {"finalNetPay": 100.0}}
        old_task_ids = {t.id for t in offboarding.tasks}

        restarted_at = START + timedelta(days=60)
        factory.restart(offboarding, restarted_at)

        assert offboarding.status == LifecycleStatus.INITIATED
        assert offboarding.start_date == restarted_at
        assert offboarding.actual_completion_date is None
        assert offboarding.completion_handled is False
        assert offboarding.final_payroll_data is None
        assert all(t.status == TaskStatus.PENDING for t in offboarding.tasks)
        assert not old_task_ids & {t.id for t in offboarding.tasks}
        assert len(offboarding.timeline) == 1


class TestTemplateCatalog:
    """Test cases for checklist and document templates."""

    @pytest.fixture
    def templates_file(self, tmp_path):
        path = tmp_path / "templates.yaml"
        path.write_text(
            "default:\n"
            "  Onboarding:\n"
            "    checklist:\n"
            "      - Sign code of conduct\n"
            "      - item: Complete security awareness module\n"
            "        required: false\n"
            "    documents:\n"
            "      - Signed contract\n"
            "departments:\n"
            "  DEPT-ENG:\n"
            "    Onboarding:\n"
            "      checklist:\n"
            "        - Request repository access\n"
            "      documents:\n"
            "        - name: NDA\n"
            "          required: false\n"
            "          instructions: Only for contractors\n",
            encoding="utf-8",
        )
        return path

    def test_department_entries_extend_defaults(self, templates_file):
        catalog = TemplateCatalog(templates_file)

        checklist = catalog.get_checklist("DEPT-ENG", LifecycleType.ONBOARDING)
        assert [i.item for i in checklist] == [
            "Sign code of conduct",
            "Complete security awareness module",
            "Request repository access",
        ]
        assert checklist[1].is_required is False
        assert not any(i.is_completed for i in checklist)

        documents = catalog.get_documents("DEPT-ENG", LifecycleType.ONBOARDING)
        assert [d.name for d in documents] == ["Signed contract", "NDA"]
        assert documents[1].status == DocumentStatus.MISSING
        assert documents[1].notes == "Only for contractors"

    def test_other_department_gets_defaults_only(self, templates_file):
        catalog = TemplateCatalog(templates_file)
        assert len(catalog.get_checklist("DEPT-FIN", LifecycleType.ONBOARDING)) == 2
        assert catalog.get_checklist("DEPT-FIN", LifecycleType.OFFBOARDING) == []

    def test_missing_file_gives_empty_catalog(self, tmp_path):
        catalog = TemplateCatalog(tmp_path / "missing.yaml")
        assert catalog.get_checklist("DEPT-ENG", LifecycleType.ONBOARDING) == []

    def test_factory_attaches_templates_but_not_tasks(self, templates_file):
        factory = LifecycleFactory(TemplateCatalog(templates_file))
        lifecycle = factory.create_standard_lifecycle(
            "EMP001", LifecycleType.ONBOARDING, "DEPT-ENG", None, "hr-admin", "hr-001"
        )

        assert len(lifecycle.checklist) == 3
        assert len(lifecycle.documents) == 2
        assert len(lifecycle.tasks) == 5

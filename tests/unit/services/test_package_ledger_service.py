from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from tests.factories import FIXED_NOW_UTC, add_package, add_template, new_id
from vrumi.core.enums import RoleName
from vrumi.core.exceptions import (
    ActivePackageExistsException,
    BusinessRuleException,
    InsufficientBalanceException,
    InvalidPackageTransitionException,
    PackageNotActiveException,
    PackageNotFoundException,
    RepositoryException,
    ValidationException,
)
from vrumi.models.booking import VehicleType
from vrumi.models.lesson_package import PurchaseMode, StudentPackageStatus
from vrumi.monitoring.prometheus_metrics import REGISTRY
from vrumi.repositories.audit_repository import AuditRepository
from vrumi.services.package_ledger_service import PackageLedgerService


@pytest.fixture
def ledger(db, clock) -> PackageLedgerService:
    return PackageLedgerService(db, clock=clock)


def reconciliation_count(mode: str, outcome: str) -> float:
    value = REGISTRY.get_sample_value(
        "vrumi_package_reconciliations_total", {"mode": mode, "outcome": outcome}
    )
    return value or 0.0


class TestConsumeOneLesson:
    def test_increments_lessons_used(self, db, ledger, student_id, instructor_id) -> None:
        package = add_package(db, student_id, instructor_id, lessons_total=5, lessons_used=2)

        updated = ledger.consume_one_lesson(package.id)

        assert updated.lessons_used == 3
        assert updated.lessons_remaining == 2
        assert updated.status == StudentPackageStatus.ACTIVE.value

    def test_exhausted_package_is_rejected_without_mutation(
        self, db, ledger, student_id, instructor_id
    ) -> None:
        package = add_package(db, student_id, instructor_id, lessons_total=4, lessons_used=4)

        with pytest.raises(InsufficientBalanceException) as exc_info:
            ledger.consume_one_lesson(package.id)

        assert exc_info.value.details["lessons_used"] == 4
        assert ledger.get_package(package.id).lessons_used == 4

    def test_last_lesson_does_not_complete_package(
        self, db, ledger, student_id, instructor_id
    ) -> None:
        package = add_package(db, student_id, instructor_id, lessons_total=1, lessons_used=0)

        updated = ledger.consume_one_lesson(package.id)

        assert updated.lessons_remaining == 0
        assert updated.status == StudentPackageStatus.ACTIVE.value

    @pytest.mark.parametrize(
        "status", [StudentPackageStatus.PENDING, StudentPackageStatus.COMPLETED]
    )
    def test_inactive_package_is_rejected(
        self, db, ledger, student_id, instructor_id, status
    ) -> None:
        package = add_package(db, student_id, instructor_id, status=status)

        with pytest.raises(PackageNotActiveException):
            ledger.consume_one_lesson(package.id)

        assert ledger.get_package(package.id).lessons_used == 0

    def test_unknown_package(self, ledger) -> None:
        with pytest.raises(PackageNotFoundException):
            ledger.consume_one_lesson(new_id())


class TestReconcileSum:
    def test_completed_old_package_absorbs_new_lessons(
        self, db, ledger, student_id, instructor_id
    ) -> None:
        old = add_package(
            db,
            student_id,
            instructor_id,
            lessons_total=5,
            lessons_used=3,
            status=StudentPackageStatus.COMPLETED,
        )
        new = add_package(
            db,
            student_id,
            instructor_id,
            lessons_total=10,
            status=StudentPackageStatus.PENDING,
            purchase_mode=PurchaseMode.SUM,
            replaces_package_id=old.id,
        )

        result = ledger.reconcile_purchase(new.id, PurchaseMode.SUM, old.id)

        assert result.old_package.lessons_total == 15
        assert result.old_package.lessons_used == 3
        assert result.old_package.status == StudentPackageStatus.ACTIVE.value
        assert result.old_package.completed_at is None
        assert result.new_package.status == StudentPackageStatus.COMPLETED.value

    def test_active_old_package_stays_active(self, db, ledger, student_id, instructor_id) -> None:
        old = add_package(db, student_id, instructor_id, lessons_total=5, lessons_used=1)
        new = add_package(
            db, student_id, instructor_id, lessons_total=5, status=StudentPackageStatus.PENDING
        )

        result = ledger.reconcile_purchase(new.id, "sum", old.id)

        assert result.old_package.lessons_total == 10
        assert ledger.get_active_package(student_id, instructor_id).id == old.id

    def test_cannot_run_twice(self, db, ledger, student_id, instructor_id) -> None:
        old = add_package(db, student_id, instructor_id, lessons_total=5)
        new = add_package(
            db, student_id, instructor_id, lessons_total=5, status=StudentPackageStatus.PENDING
        )
        ledger.reconcile_purchase(new.id, PurchaseMode.SUM, old.id)

        with pytest.raises(InvalidPackageTransitionException):
            ledger.reconcile_purchase(new.id, PurchaseMode.SUM, old.id)

        assert ledger.get_package(old.id).lessons_total == 10


class TestReconcileSwitch:
    def test_old_completed_and_new_activated(self, db, ledger, student_id, instructor_id) -> None:
        old = add_package(db, student_id, instructor_id, lessons_total=5, lessons_used=2)
        new = add_package(
            db, student_id, instructor_id, lessons_total=8, status=StudentPackageStatus.PENDING
        )

        result = ledger.reconcile_purchase(new.id, PurchaseMode.SWITCH, old.id)

        assert result.old_package.status == StudentPackageStatus.COMPLETED.value
        assert result.old_package.completed_at is not None
        assert result.old_package.lessons_used == 2
        assert result.new_package.status == StudentPackageStatus.ACTIVE.value
        assert result.old_package.completed_at.replace(tzinfo=None) == FIXED_NOW_UTC
        assert result.new_package.activated_at is not None
        assert ledger.get_active_package(student_id, instructor_id).id == new.id

    def test_old_package_must_be_active(self, db, ledger, student_id, instructor_id) -> None:
        old = add_package(db, student_id, instructor_id, status=StudentPackageStatus.COMPLETED)
        new = add_package(db, student_id, instructor_id, status=StudentPackageStatus.PENDING)
        failures_before = reconciliation_count("switch", "failed")

        with pytest.raises(InvalidPackageTransitionException):
            ledger.reconcile_purchase(new.id, PurchaseMode.SWITCH, old.id)

        assert ledger.get_package(new.id).status == StudentPackageStatus.PENDING.value
        assert reconciliation_count("switch", "failed") == failures_before + 1

    def test_failure_is_logged_as_error(self, db, ledger, student_id, instructor_id) -> None:
        old = add_package(db, student_id, instructor_id, status=StudentPackageStatus.COMPLETED)
        new = add_package(db, student_id, instructor_id, status=StudentPackageStatus.PENDING)

        with patch.object(ledger.logger, "error") as mock_error:
            with pytest.raises(InvalidPackageTransitionException):
                ledger.reconcile_purchase(new.id, PurchaseMode.SWITCH, old.id)

        mock_error.assert_called_once()

    @pytest.mark.parametrize(
        "error",
        [
            RepositoryException("disk I/O error"),
            OperationalError("UPDATE student_packages", {}, Exception("database is locked")),
        ],
    )
    def test_database_failure_is_counted_and_logged(
        self, db, ledger, student_id, instructor_id, monkeypatch, error
    ) -> None:
        old = add_package(db, student_id, instructor_id)
        new = add_package(db, student_id, instructor_id, status=StudentPackageStatus.PENDING)
        failures_before = reconciliation_count("switch", "failed")

        def broken_transition(*args, **kwargs):
            raise error

        monkeypatch.setattr(ledger.package_repository, "try_transition", broken_transition)

        with patch.object(ledger.logger, "error") as mock_error:
            with pytest.raises(type(error)):
                ledger.reconcile_purchase(new.id, PurchaseMode.SWITCH, old.id)

        mock_error.assert_called_once()
        assert reconciliation_count("switch", "failed") == failures_before + 1
        assert ledger.get_package(new.id).status == StudentPackageStatus.PENDING.value
        assert ledger.get_package(old.id).status == StudentPackageStatus.ACTIVE.value

    def test_new_package_failure_rolls_back_old(
        self, db, ledger, student_id, instructor_id
    ) -> None:
        old = add_package(db, student_id, instructor_id)
        new = add_package(db, student_id, instructor_id, status=StudentPackageStatus.COMPLETED)

        with pytest.raises(InvalidPackageTransitionException):
            ledger.reconcile_purchase(new.id, PurchaseMode.SWITCH, old.id)

        assert ledger.get_package(old.id).status == StudentPackageStatus.ACTIVE.value


class TestReconcileStandard:
    def test_activates_pending_package(self, db, ledger, student_id, instructor_id) -> None:
        new = add_package(db, student_id, instructor_id, status=StudentPackageStatus.PENDING)
        applied_before = reconciliation_count("standard", "applied")

        result = ledger.reconcile_purchase(new.id, PurchaseMode.STANDARD)

        assert result.old_package is None
        assert result.new_package.status == StudentPackageStatus.ACTIVE.value
        assert reconciliation_count("standard", "applied") == applied_before + 1

    def test_second_active_package_for_pair_is_rejected(
        self, db, ledger, student_id, instructor_id
    ) -> None:
        existing = add_package(db, student_id, instructor_id)
        new = add_package(db, student_id, instructor_id, status=StudentPackageStatus.PENDING)

        with pytest.raises(ActivePackageExistsException) as exc_info:
            ledger.reconcile_purchase(new.id, PurchaseMode.STANDARD)

        assert exc_info.value.details["existing_package_id"] == existing.id
        assert ledger.get_package(new.id).status == StudentPackageStatus.PENDING.value

    def test_writes_audit_row(self, db, ledger, student_id, instructor_id) -> None:
        new = add_package(db, student_id, instructor_id, status=StudentPackageStatus.PENDING)

        ledger.reconcile_purchase(new.id, PurchaseMode.STANDARD)

        rows = AuditRepository(db).list_for_entity("student_package", new.id)
        assert [row.action for row in rows] == ["reconcile_standard"]
        assert rows[0].before["status"] == "pending"
        assert rows[0].after["status"] == "active"


class TestReconcileArguments:
    def test_sum_requires_old_package(self, db, ledger, student_id, instructor_id) -> None:
        new = add_package(db, student_id, instructor_id, status=StudentPackageStatus.PENDING)

        with pytest.raises(ValidationException):
            ledger.reconcile_purchase(new.id, PurchaseMode.SUM)

    def test_standard_rejects_old_package(self, db, ledger, student_id, instructor_id) -> None:
        new = add_package(db, student_id, instructor_id, status=StudentPackageStatus.PENDING)

        with pytest.raises(ValidationException):
            ledger.reconcile_purchase(new.id, PurchaseMode.STANDARD, new_id())

    def test_old_package_of_other_pair_is_rejected(
        self, db, ledger, student_id, instructor_id
    ) -> None:
        old = add_package(db, new_id(), instructor_id)
        new = add_package(db, student_id, instructor_id, status=StudentPackageStatus.PENDING)

        with pytest.raises(ValidationException) as exc_info:
            ledger.reconcile_purchase(new.id, PurchaseMode.SWITCH, old.id)

        assert exc_info.value.code == "PACKAGE_PAIR_MISMATCH"

    def test_unknown_new_package(self, ledger) -> None:
        with pytest.raises(PackageNotFoundException):
            ledger.reconcile_purchase(new_id(), PurchaseMode.STANDARD)

    def test_recorded_purchase_uses_stored_mode(
        self, db, ledger, student_id, instructor_id
    ) -> None:
        old = add_package(db, student_id, instructor_id, lessons_total=4)
        new = add_package(
            db,
            student_id,
            instructor_id,
            lessons_total=6,
            status=StudentPackageStatus.PENDING,
            purchase_mode=PurchaseMode.SUM,
            replaces_package_id=old.id,
        )

        result = ledger.reconcile_recorded_purchase(new.id)

        assert result.mode is PurchaseMode.SUM
        assert result.old_package.lessons_total == 10


class TestStartPurchase:
    def test_standard_creates_pending_copy_of_template(
        self, db, ledger, student_id, instructor_id
    ) -> None:
        template = add_template(
            db, instructor_id, total_lessons=12, vehicle_type=VehicleType.STUDENT
        )

        package = ledger.start_purchase(student_id, template.id)

        assert package.status == StudentPackageStatus.PENDING.value
        assert package.instructor_id == instructor_id
        assert package.lessons_total == 12
        assert package.lessons_used == 0
        assert package.vehicle_type == VehicleType.STUDENT.value
        assert package.purchase_mode == PurchaseMode.STANDARD.value

    def test_standard_with_active_package_is_refused(
        self, db, ledger, student_id, instructor_id
    ) -> None:
        existing = add_package(db, student_id, instructor_id)
        template = add_template(db, instructor_id)

        with pytest.raises(ActivePackageExistsException) as exc_info:
            ledger.start_purchase(student_id, template.id)

        assert exc_info.value.details["existing_package_id"] == existing.id

    def test_switch_records_replaced_package(
        self, db, ledger, student_id, instructor_id
    ) -> None:
        existing = add_package(db, student_id, instructor_id)
        template = add_template(db, instructor_id)

        package = ledger.start_purchase(student_id, template.id, PurchaseMode.SWITCH, existing.id)

        assert package.purchase_mode == PurchaseMode.SWITCH.value
        assert package.replaces_package_id == existing.id

    def test_switch_from_completed_package_is_refused(
        self, db, ledger, student_id, instructor_id
    ) -> None:
        existing = add_package(db, student_id, instructor_id, status=StudentPackageStatus.COMPLETED)
        template = add_template(db, instructor_id)

        with pytest.raises(PackageNotActiveException):
            ledger.start_purchase(student_id, template.id, PurchaseMode.SWITCH, existing.id)

    def test_inactive_template_is_not_found(self, db, ledger, student_id, instructor_id) -> None:
        template = add_template(db, instructor_id, is_active=False)

        with pytest.raises(PackageNotFoundException):
            ledger.start_purchase(student_id, template.id)


class TestAdjustBalance:
    def test_overrides_balance_and_audits(self, db, ledger, student_id, instructor_id) -> None:
        package = add_package(db, student_id, instructor_id, lessons_total=10, lessons_used=7)

        updated = ledger.adjust_balance(
            package.id,
            actor_id=instructor_id,
            actor_role=RoleName.INSTRUCTOR,
            lessons_used=5,
            reason="Two lessons were rained out",
        )

        assert updated.lessons_used == 5
        assert updated.lessons_total == 10
        rows = AuditRepository(db).list_for_entity("student_package", package.id)
        assert len(rows) == 1
        assert rows[0].action == "adjust_balance"
        assert rows[0].actor_role == "instructor"
        assert rows[0].before["lessons_used"] == 7
        assert rows[0].after["lessons_used"] == 5
        assert rows[0].after["reason"] == "Two lessons were rained out"

    def test_used_above_total_is_rejected(self, db, ledger, student_id, instructor_id) -> None:
        package = add_package(db, student_id, instructor_id, lessons_total=10, lessons_used=2)

        with pytest.raises(ValidationException):
            ledger.adjust_balance(
                package.id, actor_id=instructor_id, actor_role="admin", lessons_total=1
            )

        assert ledger.get_package(package.id).lessons_total == 10

    def test_requires_a_change(self, db, ledger, student_id, instructor_id) -> None:
        package = add_package(db, student_id, instructor_id)

        with pytest.raises(ValidationException):
            ledger.adjust_balance(package.id, actor_id=instructor_id, actor_role="admin")

    def test_completed_package_cannot_be_adjusted(
        self, db, ledger, student_id, instructor_id
    ) -> None:
        package = add_package(db, student_id, instructor_id, status=StudentPackageStatus.COMPLETED)

        with pytest.raises(BusinessRuleException) as exc_info:
            ledger.adjust_balance(
                package.id, actor_id=instructor_id, actor_role="admin", lessons_used=1
            )

        assert exc_info.value.code == "PACKAGE_COMPLETED"


class TestCompletePackage:
    def test_completes_active_package(self, db, ledger, student_id, instructor_id) -> None:
        package = add_package(db, student_id, instructor_id)

        completed = ledger.complete_package(package.id, actor_id=instructor_id)

        assert completed.status == StudentPackageStatus.COMPLETED.value
        assert completed.completed_at.replace(tzinfo=None) == FIXED_NOW_UTC
        assert ledger.get_active_package(student_id, instructor_id) is None

    def test_pending_package_cannot_be_completed(
        self, db, ledger, student_id, instructor_id
    ) -> None:
        package = add_package(db, student_id, instructor_id, status=StudentPackageStatus.PENDING)

        with pytest.raises(InvalidPackageTransitionException):
            ledger.complete_package(package.id)


class TestQueries:
    def test_list_and_remaining(self, db, ledger, student_id, instructor_id) -> None:
        active = add_package(db, student_id, instructor_id, lessons_total=6, lessons_used=2)
        add_package(db, student_id, new_id(), status=StudentPackageStatus.COMPLETED)
        add_package(db, new_id(), instructor_id)

        assert len(ledger.list_packages_for_student(student_id)) == 2
        active_only = ledger.list_packages_for_student(student_id, StudentPackageStatus.ACTIVE)
        assert [package.id for package in active_only] == [active.id]
        assert ledger.get_remaining_lessons(active.id) == 4

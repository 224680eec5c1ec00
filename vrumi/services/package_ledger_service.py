# vrumi/services/package_ledger_service.py
"""
Package ledger: lesson balances per (student, instructor).

Every balance or status change is a compare-and-set in the repository, so
two bookings racing for the last lesson, or two checkouts racing to
reconcile the same purchase, cannot both succeed.

Reconciliation runs once, after payment capture. It is not retried: a
failure here leaves a captured payment without its lessons and needs an
operator, so it is logged at error level and counted before re-raising.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Dict, List, Optional, assert_never

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import RoleName
from ..core.exceptions import (
    ActivePackageExistsException,
    BusinessRuleException,
    ConflictException,
    DomainException,
    InsufficientBalanceException,
    InvalidPackageTransitionException,
    PackageNotActiveException,
    PackageNotFoundException,
    RepositoryException,
    ValidationException,
)
from ..core.timezone_utils import Clock
from ..models.audit_log import AuditLog
from ..models.lesson_package import PurchaseMode, StudentPackage, StudentPackageStatus
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.audit_repository import AuditRepository
from ..repositories.factory import RepositoryFactory
from ..repositories.package_repository import LessonPackageRepository, StudentPackageRepository
from .base import BaseService

logger = logging.getLogger(__name__)

AUDIT_ENTITY = "student_package"


@dataclass(frozen=True)
class ReconciliationResult:
    """Packages touched by a checkout reconciliation, as re-read after commit."""

    mode: PurchaseMode
    new_package: StudentPackage
    old_package: Optional[StudentPackage] = None


class PackageLedgerService(BaseService):
    """Consumes lessons, opens purchases and reconciles paid checkouts."""

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        package_repository: Optional[StudentPackageRepository] = None,
        template_repository: Optional[LessonPackageRepository] = None,
        audit_repository: Optional[AuditRepository] = None,
    ):
        super().__init__(db, clock)
        self.package_repository = (
            package_repository or RepositoryFactory.create_student_package_repository(db)
        )
        self.template_repository = (
            template_repository or RepositoryFactory.create_lesson_package_repository(db)
        )
        self.audit_repository = audit_repository or RepositoryFactory.create_audit_repository(db)

    # Queries

    def get_package(self, student_package_id: str) -> StudentPackage:
        package = self.package_repository.get_by_id(student_package_id, fresh=True)
        if package is None:
            raise PackageNotFoundException(student_package_id)
        return package

    def get_active_package(self, student_id: str, instructor_id: str) -> Optional[StudentPackage]:
        return self.package_repository.get_active_for_pair(student_id, instructor_id)

    def list_packages_for_student(
        self, student_id: str, status: Optional[StudentPackageStatus] = None
    ) -> List[StudentPackage]:
        return self.package_repository.get_packages_for_student(student_id, status=status)

    def get_remaining_lessons(self, student_package_id: str) -> int:
        return self.get_package(student_package_id).lessons_remaining

    # Consumption

    @BaseService.measure_operation("consume_one_lesson")
    def consume_one_lesson(
        self, student_package_id: str, *, use_transaction: bool = True
    ) -> StudentPackage:
        """
        Use one lesson from an active package.

        Raises:
            PackageNotFoundException: id does not resolve
            PackageNotActiveException: package is pending or completed
            InsufficientBalanceException: lessons_used already equals lessons_total
        """

        def _consume() -> StudentPackage:
            if not self.package_repository.try_consume_lesson(student_package_id):
                raise self._consumption_error(student_package_id)
            package = self.get_package(student_package_id)
            self.logger.info(
                "Consumed lesson from package %s (%s/%s used)",
                package.id,
                package.lessons_used,
                package.lessons_total,
            )
            return package

        if use_transaction:
            with self.transaction():
                package = _consume()
        else:
            package = _consume()
        prometheus_metrics.record_lesson_consumed()
        return package

    def _consumption_error(self, student_package_id: str) -> DomainException:
        package = self.package_repository.get_by_id(student_package_id, fresh=True)
        if package is None:
            return PackageNotFoundException(student_package_id)
        if package.package_status is not StudentPackageStatus.ACTIVE:
            return PackageNotActiveException(package.id, package.status)
        return InsufficientBalanceException(
            package.id, int(package.lessons_total), int(package.lessons_used)
        )

    # Purchases

    @BaseService.measure_operation("start_purchase")
    def start_purchase(
        self,
        student_id: str,
        package_template_id: str,
        mode: PurchaseMode | str = PurchaseMode.STANDARD,
        old_package_id: Optional[str] = None,
    ) -> StudentPackage:
        """
        Open a pending Student Package for a template, ahead of checkout.

        A standard purchase is refused while the pair already has an active
        package; the caller must then choose sum or switch against it.
        """
        mode = PurchaseMode(mode)
        template = self.template_repository.get_by_id(package_template_id)
        if template is None or not template.is_active:
            raise PackageNotFoundException(package_template_id, kind="lesson_package")

        instructor_id = template.instructor_id
        self._validate_mode_arguments(mode, None, old_package_id)

        if mode is PurchaseMode.STANDARD:
            active = self.package_repository.get_active_for_pair(student_id, instructor_id)
            if active is not None:
                raise ActivePackageExistsException(active.id)
        else:
            old_package = self.get_package(old_package_id)  # type: ignore[arg-type]
            self.ensure_same_pair(old_package, student_id, instructor_id)
            if (
                mode is PurchaseMode.SWITCH
                and old_package.package_status is not StudentPackageStatus.ACTIVE
            ):
                raise PackageNotActiveException(old_package.id, old_package.status)

        self.log_operation(
            "start_purchase",
            student_id=student_id,
            instructor_id=instructor_id,
            template_id=template.id,
            mode=mode.value,
        )
        with self.transaction():
            package = self.package_repository.create(
                student_id=student_id,
                instructor_id=instructor_id,
                package_id=template.id,
                lessons_total=template.total_lessons,
                lessons_used=0,
                vehicle_type=template.vehicle_type,
                total_paid=template.total_price,
                status=StudentPackageStatus.PENDING.value,
                purchase_mode=mode.value,
                replaces_package_id=old_package_id,
            )
        return package

    @BaseService.measure_operation("reconcile_purchase")
    def reconcile_purchase(
        self,
        new_package_id: str,
        mode: PurchaseMode | str,
        old_package_id: Optional[str] = None,
        *,
        actor_id: Optional[str] = None,
    ) -> ReconciliationResult:
        """
        Apply a paid checkout to the ledger. Call exactly once per captured payment.

        standard: new pending -> active
        sum:      new pending -> completed; old.lessons_total += new.lessons_total, old -> active
        switch:   old active -> completed (remainder abandoned); new pending -> active
        """
        mode = PurchaseMode(mode)
        self._validate_mode_arguments(mode, new_package_id, old_package_id)
        self.log_operation(
            "reconcile_purchase",
            new_package_id=new_package_id,
            mode=mode.value,
            old_package_id=old_package_id,
        )

        try:
            new_package = self.get_package(new_package_id)
            old_package = self.get_package(old_package_id) if old_package_id else None
            if old_package is not None:
                self.ensure_same_pair(
                    old_package, new_package.student_id, new_package.instructor_id
                )

            before = self._snapshot(new_package, old_package)
            try:
                with self.package_repository.transaction():
                    self._apply_reconciliation(mode, new_package, old_package)
                    new_package = self.get_package(new_package_id)
                    old_package = self.get_package(old_package_id) if old_package_id else None
                    self.audit_repository.write(
                        AuditLog.from_change(
                            AUDIT_ENTITY,
                            new_package_id,
                            f"reconcile_{mode.value}",
                            actor_id=actor_id,
                            actor_role=RoleName.SYSTEM.value if actor_id is None else None,
                            before=before,
                            after=self._snapshot(new_package, old_package),
                        )
                    )
            except IntegrityError as exc:
                active = self.package_repository.get_active_for_pair(
                    new_package.student_id, new_package.instructor_id
                )
                if active is not None:
                    raise ActivePackageExistsException(active.id) from exc
                raise ConflictException(
                    "Package reconciliation violated a ledger constraint",
                    code="RECONCILIATION_CONSTRAINT",
                    details={"new_package_id": new_package_id},
                ) from exc
        except (DomainException, RepositoryException, SQLAlchemyError) as exc:
            prometheus_metrics.record_reconciliation(mode.value, "failed")
            self.logger.error(
                "Reconciliation failed after payment; manual intervention required "
                "(new=%s mode=%s old=%s): %s",
                new_package_id,
                mode.value,
                old_package_id,
                exc,
                extra={
                    "code": getattr(exc, "code", type(exc).__name__),
                    "details": getattr(exc, "details", None),
                },
            )
            raise

        prometheus_metrics.record_reconciliation(mode.value, "applied")
        return ReconciliationResult(mode=mode, new_package=new_package, old_package=old_package)

    def reconcile_recorded_purchase(
        self, new_package_id: str, *, actor_id: Optional[str] = None
    ) -> ReconciliationResult:
        """Reconcile using the mode and old package recorded by start_purchase."""
        package = self.get_package(new_package_id)
        return self.reconcile_purchase(
            new_package_id,
            PurchaseMode(package.purchase_mode),
            package.replaces_package_id,
            actor_id=actor_id,
        )

    def _apply_reconciliation(
        self,
        mode: PurchaseMode,
        new_package: StudentPackage,
        old_package: Optional[StudentPackage],
    ) -> None:
        at = self.now_utc()
        repo = self.package_repository

        if mode is PurchaseMode.STANDARD:
            self._require(
                repo.try_transition(
                    new_package.id,
                    from_statuses=[StudentPackageStatus.PENDING],
                    to_status=StudentPackageStatus.ACTIVE,
                    at=at,
                ),
                new_package,
                StudentPackageStatus.ACTIVE,
            )
        elif mode is PurchaseMode.SUM:
            assert old_package is not None
            # Claim the new record first so a second reconcile of it fails
            # before touching the old balance.
            self._require(
                repo.try_transition(
                    new_package.id,
                    from_statuses=[StudentPackageStatus.PENDING],
                    to_status=StudentPackageStatus.COMPLETED,
                    at=at,
                ),
                new_package,
                StudentPackageStatus.COMPLETED,
            )
            if not repo.try_merge_lessons(
                old_package.id, int(new_package.lessons_total), at=at
            ):
                raise PackageNotFoundException(old_package.id)
        elif mode is PurchaseMode.SWITCH:
            assert old_package is not None
            # Retire the old package before activating the new one so the
            # one-active-per-pair index never sees two active rows.
            self._require(
                repo.try_transition(
                    old_package.id,
                    from_statuses=[StudentPackageStatus.ACTIVE],
                    to_status=StudentPackageStatus.COMPLETED,
                    at=at,
                ),
                old_package,
                StudentPackageStatus.COMPLETED,
            )
            self._require(
                repo.try_transition(
                    new_package.id,
                    from_statuses=[StudentPackageStatus.PENDING],
                    to_status=StudentPackageStatus.ACTIVE,
                    at=at,
                ),
                new_package,
                StudentPackageStatus.ACTIVE,
            )
        else:
            assert_never(mode)

    def _require(
        self, changed: bool, package: StudentPackage, requested: StudentPackageStatus
    ) -> None:
        if changed:
            return
        current = self.package_repository.get_by_id(package.id, fresh=True)
        if current is None:
            raise PackageNotFoundException(package.id)
        raise InvalidPackageTransitionException(current.id, current.status, requested.value)

    # Manual overrides

    @BaseService.measure_operation("adjust_balance")
    def adjust_balance(
        self,
        student_package_id: str,
        *,
        actor_id: str,
        actor_role: RoleName | str,
        lessons_total: Optional[int] = None,
        lessons_used: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> StudentPackage:
        """
        Correct a package balance by hand. Audited; not a consumption path.

        Skips the active/remaining-balance checks of consume_one_lesson but
        still keeps 0 <= lessons_used <= lessons_total.
        """
        if lessons_total is None and lessons_used is None:
            raise ValidationException(
                "Provide lessons_total and/or lessons_used", code="EMPTY_ADJUSTMENT"
            )

        package = self.get_package(student_package_id)
        if package.package_status is StudentPackageStatus.COMPLETED:
            raise BusinessRuleException(
                f"Package {package.id} is completed and can no longer be adjusted",
                code="PACKAGE_COMPLETED",
                details={"package_id": package.id},
            )

        expected_total = int(package.lessons_total)
        expected_used = int(package.lessons_used)
        new_total = expected_total if lessons_total is None else int(lessons_total)
        new_used = expected_used if lessons_used is None else int(lessons_used)
        if new_used < 0 or new_total < 0 or new_used > new_total:
            raise ValidationException(
                "Balance must satisfy 0 <= lessons_used <= lessons_total",
                code="INVALID_BALANCE",
                details={"lessons_total": new_total, "lessons_used": new_used},
            )

        role = RoleName(actor_role).value
        before = self._snapshot(package)
        with self.transaction():
            if not self.package_repository.try_set_balance(
                package.id,
                lessons_total=new_total,
                lessons_used=new_used,
                expected_total=expected_total,
                expected_used=expected_used,
            ):
                raise ConflictException(
                    "Package balance changed while it was being adjusted; reload and retry",
                    code="PACKAGE_BALANCE_CHANGED",
                    details={"package_id": package.id},
                )
            package = self.get_package(student_package_id)
            after = self._snapshot(package)
            after["reason"] = reason
            self.audit_repository.write(
                AuditLog.from_change(
                    AUDIT_ENTITY,
                    package.id,
                    "adjust_balance",
                    actor_id=actor_id,
                    actor_role=role,
                    before=before,
                    after=after,
                )
            )
        self.logger.warning(
            "Manual balance adjustment on package %s by %s (%s): %s/%s -> %s/%s",
            package.id,
            actor_id,
            role,
            expected_used,
            expected_total,
            new_used,
            new_total,
        )
        return package

    @BaseService.measure_operation("complete_package")
    def complete_package(
        self,
        student_package_id: str,
        *,
        actor_id: Optional[str] = None,
        actor_role: RoleName | str = RoleName.INSTRUCTOR,
    ) -> StudentPackage:
        """Retire an active package by hand (e.g. all lessons taken)."""
        package = self.get_package(student_package_id)
        before = self._snapshot(package)
        with self.transaction():
            self._require(
                self.package_repository.try_transition(
                    package.id,
                    from_statuses=[StudentPackageStatus.ACTIVE],
                    to_status=StudentPackageStatus.COMPLETED,
                    at=self.now_utc(),
                ),
                package,
                StudentPackageStatus.COMPLETED,
            )
            package = self.get_package(student_package_id)
            self.audit_repository.write(
                AuditLog.from_change(
                    AUDIT_ENTITY,
                    package.id,
                    "complete",
                    actor_id=actor_id,
                    actor_role=RoleName(actor_role).value,
                    before=before,
                    after=self._snapshot(package),
                )
            )
        return package

    # Helpers

    @staticmethod
    def _validate_mode_arguments(
        mode: PurchaseMode, new_package_id: Optional[str], old_package_id: Optional[str]
    ) -> None:
        if mode is PurchaseMode.STANDARD:
            if old_package_id is not None:
                raise ValidationException(
                    "A standard purchase does not reference an existing package",
                    code="UNEXPECTED_OLD_PACKAGE",
                    details={"old_package_id": old_package_id},
                )
            return
        if not old_package_id:
            raise ValidationException(
                f"A {mode.value} purchase requires old_package_id",
                code="OLD_PACKAGE_REQUIRED",
                details={"mode": mode.value},
            )
        if new_package_id is not None and old_package_id == new_package_id:
            raise ValidationException(
                "old_package_id must differ from the new package",
                code="OLD_PACKAGE_IS_NEW_PACKAGE",
                details={"package_id": new_package_id},
            )

    @staticmethod
    def ensure_same_pair(package: StudentPackage, student_id: str, instructor_id: str) -> None:
        if package.student_id != student_id or package.instructor_id != instructor_id:
            raise ValidationException(
                "Package belongs to a different student or instructor",
                code="PACKAGE_PAIR_MISMATCH",
                details={
                    "package_id": package.id,
                    "student_id": student_id,
                    "instructor_id": instructor_id,
                },
            )

    @staticmethod
    def _snapshot(
        package: StudentPackage, other: Optional[StudentPackage] = None
    ) -> Dict[str, Any]:
        snapshot: Dict[str, Any] = {
            "status": package.status,
            "lessons_total": package.lessons_total,
            "lessons_used": package.lessons_used,
        }
        if other is not None:
            snapshot["old_package"] = {
                "id": other.id,
                "status": other.status,
                "lessons_total": other.lessons_total,
                "lessons_used": other.lessons_used,
            }
        return snapshot

# vrumi/models/lesson_package.py
"""
Lesson package models.

LessonPackage is an instructor's purchasable offer ("10 lessons, 10% off").
StudentPackage is the ledger entry created when a student buys one: a
consumable balance of lessons tied to one (student, instructor) pair.

Ledger invariants enforced by the database:
- 0 <= lessons_used <= lessons_total
- at most one active StudentPackage per (student, instructor)
"""

from decimal import Decimal
from enum import Enum
import logging
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base
from .booking import VehicleType

logger = logging.getLogger(__name__)


class StudentPackageStatus(str, Enum):
    """Ledger entry lifecycle."""

    PENDING = "pending"  # Purchase intent, waiting for payment
    ACTIVE = "active"  # Paid, lessons may be consumed
    COMPLETED = "completed"  # Retired (exhausted, switched away, or folded into another)


class PurchaseMode(str, Enum):
    """How a paid purchase is reconciled with the pair's existing package."""

    STANDARD = "standard"
    SUM = "sum"
    SWITCH = "switch"


class LessonPackage(Base):
    """Purchasable package offer published by an instructor."""

    __tablename__ = "lesson_packages"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    instructor_id = Column(String(26), nullable=False, index=True)
    name = Column(String(120), nullable=False)
    total_lessons = Column(Integer, nullable=False)
    vehicle_type = Column(String(20), nullable=False, default=VehicleType.INSTRUCTOR.value)
    total_price = Column(Numeric(10, 2), nullable=False)
    discount_percent = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("total_lessons > 0", name="ck_lesson_packages_total_positive"),
        CheckConstraint("total_price >= 0", name="ck_lesson_packages_price_non_negative"),
        CheckConstraint(
            "discount_percent BETWEEN 0 AND 100", name="ck_lesson_packages_discount_range"
        ),
        CheckConstraint(
            "vehicle_type IN ('instructor', 'student')", name="ck_lesson_packages_vehicle_type"
        ),
    )

    @property
    def price_per_lesson(self) -> Decimal:
        return (Decimal(self.total_price) / self.total_lessons).quantize(Decimal("0.01"))

    def __repr__(self) -> str:
        return f"<LessonPackage {self.id} '{self.name}' {self.total_lessons} lessons>"


class StudentPackage(Base):
    """Consumable lesson balance owned by one student for one instructor."""

    __tablename__ = "student_packages"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    student_id = Column(String(26), nullable=False, index=True)
    instructor_id = Column(String(26), nullable=False, index=True)
    package_id = Column(String(26), ForeignKey("lesson_packages.id"), nullable=True)

    lessons_total = Column(Integer, nullable=False)
    lessons_used = Column(Integer, nullable=False, default=0)
    vehicle_type = Column(String(20), nullable=False, default=VehicleType.INSTRUCTOR.value)
    total_paid = Column(Numeric(10, 2), nullable=False, default=0)

    status = Column(String(20), nullable=False, default=StudentPackageStatus.PENDING.value)
    purchase_mode = Column(String(20), nullable=False, default=PurchaseMode.STANDARD.value)
    replaces_package_id = Column(String(26), ForeignKey("student_packages.id"), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    activated_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    template = relationship("LessonPackage")
    bookings = relationship("Booking", back_populates="package")

    __table_args__ = (
        CheckConstraint("lessons_total >= 0", name="ck_student_packages_total_non_negative"),
        CheckConstraint("lessons_used >= 0", name="ck_student_packages_used_non_negative"),
        CheckConstraint(
            "lessons_used <= lessons_total", name="ck_student_packages_used_within_total"
        ),
        CheckConstraint(
            "status IN ('pending', 'active', 'completed')", name="ck_student_packages_status"
        ),
        CheckConstraint(
            "purchase_mode IN ('standard', 'sum', 'switch')",
            name="ck_student_packages_purchase_mode",
        ),
        Index(
            "uq_student_packages_one_active_per_pair",
            "student_id",
            "instructor_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        if self.lessons_used is None:
            self.lessons_used = 0
        if not self.status:
            self.status = StudentPackageStatus.PENDING.value
        if not self.purchase_mode:
            self.purchase_mode = PurchaseMode.STANDARD.value

    @property
    def package_status(self) -> StudentPackageStatus:
        return StudentPackageStatus(self.status)

    @property
    def lessons_remaining(self) -> int:
        return max(0, int(self.lessons_total) - int(self.lessons_used))

    @property
    def is_active(self) -> bool:
        return self.package_status is StudentPackageStatus.ACTIVE

    def __repr__(self) -> str:
        return (
            f"<StudentPackage {self.id}: student={self.student_id}, "
            f"instructor={self.instructor_id}, {self.lessons_used}/{self.lessons_total}, "
            f"status={self.status}>"
        )

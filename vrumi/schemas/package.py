# vrumi/schemas/package.py
"""
Lesson package schemas: catalogue templates and student ledger entries.
"""

import datetime
from decimal import Decimal
from typing import Optional

from pydantic import Field, model_validator

from ..core.enums import RoleName
from ..models.booking import VehicleType
from ..models.lesson_package import PurchaseMode, StudentPackageStatus
from ._strict_base import StrictRequestModel
from .base import Money, StandardizedModel

DateTimeType = datetime.datetime


class LessonPackageCreate(StrictRequestModel):
    instructor_id: str
    name: str = Field(..., min_length=1, max_length=120)
    total_lessons: int = Field(..., gt=0, le=200)
    total_price: Decimal = Field(..., ge=0, decimal_places=2)
    vehicle_type: VehicleType = VehicleType.INSTRUCTOR
    discount_percent: int = Field(default=0, ge=0, le=100)


class LessonPackageDeactivate(StrictRequestModel):
    instructor_id: str


class LessonPackageResponse(StandardizedModel):
    id: str
    instructor_id: str
    name: str
    total_lessons: int
    vehicle_type: VehicleType
    total_price: Money
    discount_percent: int
    is_active: bool
    price_per_lesson: Money


class PurchaseStart(StrictRequestModel):
    """Open a pending package before checkout."""

    student_id: str
    package_template_id: str
    mode: PurchaseMode = PurchaseMode.STANDARD
    old_package_id: Optional[str] = None

    @model_validator(mode="after")
    def validate_old_package(self) -> "PurchaseStart":
        if self.mode is PurchaseMode.STANDARD and self.old_package_id:
            raise ValueError("old_package_id is only used with sum or switch")
        if self.mode is not PurchaseMode.STANDARD and not self.old_package_id:
            raise ValueError(f"old_package_id is required for {self.mode.value}")
        return self


class PurchaseReconcile(StrictRequestModel):
    """
    Payment captured for a pending package.

    Without ``mode`` the mode and old package recorded at purchase start are used.
    """

    mode: Optional[PurchaseMode] = None
    old_package_id: Optional[str] = None
    actor_id: Optional[str] = None


class BalanceAdjustment(StrictRequestModel):
    actor_id: str
    actor_role: RoleName = RoleName.INSTRUCTOR
    lessons_total: Optional[int] = Field(default=None, ge=0)
    lessons_used: Optional[int] = Field(default=None, ge=0)
    reason: Optional[str] = Field(default=None, max_length=500)

    @model_validator(mode="after")
    def validate_has_change(self) -> "BalanceAdjustment":
        if self.lessons_total is None and self.lessons_used is None:
            raise ValueError("Provide lessons_total and/or lessons_used")
        return self


class PackageCompletion(StrictRequestModel):
    actor_id: Optional[str] = None
    actor_role: RoleName = RoleName.INSTRUCTOR


class StudentPackageResponse(StandardizedModel):
    id: str
    student_id: str
    instructor_id: str
    package_id: Optional[str] = None
    lessons_total: int
    lessons_used: int
    lessons_remaining: int
    vehicle_type: VehicleType
    total_paid: Money
    status: StudentPackageStatus
    purchase_mode: PurchaseMode
    replaces_package_id: Optional[str] = None
    created_at: Optional[DateTimeType] = None
    activated_at: Optional[DateTimeType] = None
    completed_at: Optional[DateTimeType] = None


class ReconciliationResponse(StandardizedModel):
    mode: PurchaseMode
    new_package: StudentPackageResponse
    old_package: Optional[StudentPackageResponse] = None

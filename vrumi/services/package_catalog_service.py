# vrumi/services/package_catalog_service.py
"""
Package catalogue: the lesson bundles an instructor offers for sale.
"""

from decimal import Decimal
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.exceptions import PackageNotFoundException, ValidationException
from ..core.timezone_utils import Clock
from ..models.booking import VehicleType
from ..models.lesson_package import LessonPackage
from ..repositories.factory import RepositoryFactory
from ..repositories.package_repository import LessonPackageRepository
from .base import BaseService

logger = logging.getLogger(__name__)


class PackageCatalogService(BaseService):
    """Create, list and retire package templates."""

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        repository: Optional[LessonPackageRepository] = None,
    ):
        super().__init__(db, clock)
        self.repository = repository or RepositoryFactory.create_lesson_package_repository(db)

    @BaseService.measure_operation("create_template")
    def create_template(
        self,
        instructor_id: str,
        name: str,
        total_lessons: int,
        total_price: Decimal,
        *,
        vehicle_type: VehicleType | str = VehicleType.INSTRUCTOR,
        discount_percent: int = 0,
    ) -> LessonPackage:
        if total_lessons <= 0:
            raise ValidationException(
                "A package must contain at least one lesson",
                code="INVALID_TOTAL_LESSONS",
                details={"total_lessons": total_lessons},
            )
        if Decimal(total_price) < 0:
            raise ValidationException(
                "Package price must be zero or positive",
                code="INVALID_PRICE",
                details={"total_price": str(total_price)},
            )
        if not 0 <= discount_percent <= 100:
            raise ValidationException(
                "discount_percent must be between 0 and 100",
                code="INVALID_DISCOUNT",
                details={"discount_percent": discount_percent},
            )

        with self.transaction():
            template = self.repository.create(
                instructor_id=instructor_id,
                name=name.strip(),
                total_lessons=total_lessons,
                total_price=Decimal(total_price),
                vehicle_type=VehicleType(vehicle_type).value,
                discount_percent=discount_percent,
                is_active=True,
            )
        self.logger.info(
            "Instructor %s published package %s (%s lessons)",
            instructor_id,
            template.id,
            total_lessons,
        )
        return template

    def get_template(self, template_id: str) -> LessonPackage:
        template = self.repository.get_by_id(template_id)
        if template is None:
            raise PackageNotFoundException(template_id, kind="lesson_package")
        return template

    @BaseService.measure_operation("list_templates")
    def list_templates(
        self, instructor_id: str, *, include_inactive: bool = False
    ) -> List[LessonPackage]:
        return self.repository.get_templates_for_instructor(
            instructor_id, active_only=not include_inactive
        )

    @BaseService.measure_operation("deactivate_template")
    def deactivate_template(self, instructor_id: str, template_id: str) -> LessonPackage:
        """Stop selling a template. Packages already bought from it are unaffected."""
        template = self.get_template(template_id)
        if template.instructor_id != instructor_id:
            raise PackageNotFoundException(template_id, kind="lesson_package")
        with self.transaction():
            template = self.repository.update(template_id, is_active=False)
        return template

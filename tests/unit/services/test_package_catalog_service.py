from decimal import Decimal

import pytest

from tests.factories import add_package, add_template, new_id
from vrumi.core.exceptions import PackageNotFoundException, ValidationException
from vrumi.models.booking import VehicleType
from vrumi.services.package_catalog_service import PackageCatalogService


@pytest.fixture
def service(db, clock) -> PackageCatalogService:
    return PackageCatalogService(db, clock=clock)


class TestCreateTemplate:
    def test_publishes_active_template(self, service, instructor_id) -> None:
        template = service.create_template(
            instructor_id,
            "  10 aulas  ",
            10,
            Decimal("850.00"),
            vehicle_type=VehicleType.STUDENT,
            discount_percent=10,
        )

        assert template.id
        assert template.name == "10 aulas"
        assert template.is_active is True
        assert template.vehicle_type == VehicleType.STUDENT.value
        assert template.price_per_lesson == Decimal("85.00")

    @pytest.mark.parametrize(
        "total_lessons,total_price,discount,code",
        [
            (0, Decimal("100"), 0, "INVALID_TOTAL_LESSONS"),
            (5, Decimal("-1"), 0, "INVALID_PRICE"),
            (5, Decimal("100"), 101, "INVALID_DISCOUNT"),
        ],
    )
    def test_rejects_invalid_offers(
        self, service, instructor_id, total_lessons, total_price, discount, code
    ) -> None:
        with pytest.raises(ValidationException) as exc_info:
            service.create_template(
                instructor_id, "Bad", total_lessons, total_price, discount_percent=discount
            )

        assert exc_info.value.code == code
        assert service.list_templates(instructor_id, include_inactive=True) == []


class TestListAndDeactivate:
    def test_lists_only_active_by_default(self, db, service, instructor_id) -> None:
        active = add_template(db, instructor_id, total_lessons=5)
        retired = add_template(db, instructor_id, total_lessons=20, is_active=False)
        add_template(db, new_id(), total_lessons=8)

        assert [t.id for t in service.list_templates(instructor_id)] == [active.id]
        assert {t.id for t in service.list_templates(instructor_id, include_inactive=True)} == {
            active.id,
            retired.id,
        }

    def test_deactivate_keeps_bought_packages(
        self, db, service, student_id, instructor_id
    ) -> None:
        template = add_template(db, instructor_id)
        package = add_package(db, student_id, instructor_id)
        package.package_id = template.id
        db.commit()

        deactivated = service.deactivate_template(instructor_id, template.id)

        assert deactivated.is_active is False
        assert service.list_templates(instructor_id) == []
        db.refresh(package)
        assert package.status == "active"
        assert package.package_id == template.id

    def test_other_instructor_cannot_deactivate(self, db, service, instructor_id) -> None:
        template = add_template(db, instructor_id)

        with pytest.raises(PackageNotFoundException):
            service.deactivate_template(new_id(), template.id)

        assert service.get_template(template.id).is_active is True

    def test_unknown_template(self, service) -> None:
        with pytest.raises(PackageNotFoundException) as exc_info:
            service.get_template(new_id())

        assert exc_info.value.details["kind"] == "lesson_package"

# vrumi/routes/v1/packages.py
"""
Lesson package routes - API v1

Versioned endpoints under /api/v1/packages.
Catalogue operations go to PackageCatalogService, balances and
purchases to PackageLedgerService.

Endpoints:
    POST /templates - Publish a package template
    GET /templates - List an instructor's templates
    POST /templates/{template_id}/deactivate - Stop selling a template
    POST /purchases - Open a pending package before checkout
    POST /{package_id}/reconcile - Apply a captured payment
    GET / - List a student's packages
    GET /active - Active package for a (student, instructor) pair
    GET /{package_id} - Package details
    POST /{package_id}/consume - Use one lesson
    POST /{package_id}/adjust - Manual balance correction (audited)
    POST /{package_id}/complete - Retire an active package (audited)
"""

import asyncio
import logging
from typing import List, NoReturn, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Path, Query, status

from ...api.dependencies import get_package_catalog_service, get_package_ledger_service
from ...core.exceptions import DomainException
from ...models.lesson_package import StudentPackageStatus
from ...schemas.package import (
    BalanceAdjustment,
    LessonPackageCreate,
    LessonPackageDeactivate,
    LessonPackageResponse,
    PackageCompletion,
    PurchaseReconcile,
    PurchaseStart,
    ReconciliationResponse,
    StudentPackageResponse,
)
from ...services.package_catalog_service import PackageCatalogService
from ...services.package_ledger_service import PackageLedgerService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["packages-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


# =============================================================================
# Static routes first (before dynamic routes with path parameters)
# =============================================================================


@router.post(
    "/templates", response_model=LessonPackageResponse, status_code=status.HTTP_201_CREATED
)
async def create_template(
    payload: LessonPackageCreate = Body(...),
    service: PackageCatalogService = Depends(get_package_catalog_service),
) -> LessonPackageResponse:
    try:
        template = await asyncio.to_thread(
            service.create_template,
            payload.instructor_id,
            payload.name,
            payload.total_lessons,
            payload.total_price,
            vehicle_type=payload.vehicle_type,
            discount_percent=payload.discount_percent,
        )
        return LessonPackageResponse.model_validate(template)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/templates", response_model=List[LessonPackageResponse])
async def list_templates(
    instructor_id: str = Query(...),
    include_inactive: bool = Query(False),
    service: PackageCatalogService = Depends(get_package_catalog_service),
) -> List[LessonPackageResponse]:
    try:
        templates = await asyncio.to_thread(
            service.list_templates, instructor_id, include_inactive=include_inactive
        )
        return [LessonPackageResponse.model_validate(template) for template in templates]
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/templates/{template_id}/deactivate", response_model=LessonPackageResponse)
async def deactivate_template(
    template_id: str = Path(...),
    payload: LessonPackageDeactivate = Body(...),
    service: PackageCatalogService = Depends(get_package_catalog_service),
) -> LessonPackageResponse:
    try:
        template = await asyncio.to_thread(
            service.deactivate_template, payload.instructor_id, template_id
        )
        return LessonPackageResponse.model_validate(template)
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/purchases", response_model=StudentPackageResponse, status_code=status.HTTP_201_CREATED
)
async def start_purchase(
    payload: PurchaseStart = Body(...),
    service: PackageLedgerService = Depends(get_package_ledger_service),
) -> StudentPackageResponse:
    """
    Open a pending package. A standard purchase returns 409 when the pair
    already has an active package; retry with mode sum or switch.
    """
    try:
        package = await asyncio.to_thread(
            service.start_purchase,
            payload.student_id,
            payload.package_template_id,
            payload.mode,
            payload.old_package_id,
        )
        return StudentPackageResponse.model_validate(package)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("", response_model=List[StudentPackageResponse])
async def list_packages(
    student_id: str = Query(...),
    status_filter: Optional[StudentPackageStatus] = Query(None, alias="status"),
    service: PackageLedgerService = Depends(get_package_ledger_service),
) -> List[StudentPackageResponse]:
    try:
        packages = await asyncio.to_thread(
            service.list_packages_for_student, student_id, status_filter
        )
        return [StudentPackageResponse.model_validate(package) for package in packages]
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/active", response_model=Optional[StudentPackageResponse])
async def get_active_package(
    student_id: str = Query(...),
    instructor_id: str = Query(...),
    service: PackageLedgerService = Depends(get_package_ledger_service),
) -> Optional[StudentPackageResponse]:
    try:
        package = await asyncio.to_thread(service.get_active_package, student_id, instructor_id)
        return StudentPackageResponse.model_validate(package) if package else None
    except DomainException as e:
        handle_domain_exception(e)


# =============================================================================
# Dynamic routes
# =============================================================================


@router.get("/{package_id}", response_model=StudentPackageResponse)
async def get_package(
    package_id: str = Path(...),
    service: PackageLedgerService = Depends(get_package_ledger_service),
) -> StudentPackageResponse:
    try:
        package = await asyncio.to_thread(service.get_package, package_id)
        return StudentPackageResponse.model_validate(package)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{package_id}/reconcile", response_model=ReconciliationResponse)
async def reconcile_purchase(
    package_id: str = Path(...),
    payload: Optional[PurchaseReconcile] = Body(None),
    service: PackageLedgerService = Depends(get_package_ledger_service),
) -> ReconciliationResponse:
    """Apply a captured payment. Calling it twice for the same package returns 409."""
    try:
        if payload is None or payload.mode is None:
            result = await asyncio.to_thread(
                service.reconcile_recorded_purchase,
                package_id,
                actor_id=payload.actor_id if payload else None,
            )
        else:
            result = await asyncio.to_thread(
                service.reconcile_purchase,
                package_id,
                payload.mode,
                payload.old_package_id,
                actor_id=payload.actor_id,
            )
        return ReconciliationResponse.model_validate(result)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{package_id}/consume", response_model=StudentPackageResponse)
async def consume_lesson(
    package_id: str = Path(...),
    service: PackageLedgerService = Depends(get_package_ledger_service),
) -> StudentPackageResponse:
    try:
        package = await asyncio.to_thread(service.consume_one_lesson, package_id)
        return StudentPackageResponse.model_validate(package)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{package_id}/adjust", response_model=StudentPackageResponse)
async def adjust_balance(
    package_id: str = Path(...),
    adjustment: BalanceAdjustment = Body(...),
    service: PackageLedgerService = Depends(get_package_ledger_service),
) -> StudentPackageResponse:
    try:
        package = await asyncio.to_thread(
            service.adjust_balance,
            package_id,
            actor_id=adjustment.actor_id,
            actor_role=adjustment.actor_role,
            lessons_total=adjustment.lessons_total,
            lessons_used=adjustment.lessons_used,
            reason=adjustment.reason,
        )
        return StudentPackageResponse.model_validate(package)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{package_id}/complete", response_model=StudentPackageResponse)
async def complete_package(
    package_id: str = Path(...),
    payload: Optional[PackageCompletion] = Body(None),
    service: PackageLedgerService = Depends(get_package_ledger_service),
) -> StudentPackageResponse:
    completion = payload or PackageCompletion()
    try:
        package = await asyncio.to_thread(
            service.complete_package,
            package_id,
            actor_id=completion.actor_id,
            actor_role=completion.actor_role,
        )
        return StudentPackageResponse.model_validate(package)
    except DomainException as e:
        handle_domain_exception(e)

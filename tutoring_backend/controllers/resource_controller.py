"""HTTP controller layer for resource management."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import Field, field_validator

from tutoring_backend.controllers.dependencies import (
    get_change_applier,
    get_resource_service,
    require_management,
)
from tutoring_backend.controllers.responses import (
    ApprovalRequestResponse,
    CamelModel,
    InefficiencyListResponse,
    OptimizationChangeResponse,
    OptimizationPlanResponse,
    PlanPageResponse,
    ResourceOverviewResponse,
    SuccessResponse,
)
from tutoring_backend.domain.constraints import PlanConstraints
from tutoring_backend.domain.models import ChangeType, InefficiencyType, PlanStatus, Severity
from tutoring_backend.repository.document_store import StoreError
from tutoring_backend.services.change_service import ChangeApplier
from tutoring_backend.services.errors import ResourceNotFoundError, ResourceValidationError
from tutoring_backend.services.resource_service import ResourceWorkflowService
from tutoring_backend.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(prefix="/api/management/resources", tags=["resources"])


class PlanConstraintsRequest(CamelModel):
    max_changes: Optional[int] = Field(default=None, gt=0)
    excluded_tutor_ids: list[str] = Field(default_factory=list)
    max_workload_per_tutor: Optional[float] = Field(default=None, gt=0.0)
    max_group_size: Optional[int] = Field(default=None, gt=0)

    def to_domain(self) -> PlanConstraints:
        return PlanConstraints(
            max_changes=self.max_changes,
            excluded_tutor_ids=frozenset(item.strip() for item in self.excluded_tutor_ids if item.strip()),
            max_workload_per_tutor=self.max_workload_per_tutor,
            max_group_size=self.max_group_size,
        )


class OptimizeRequest(CamelModel):
    focus_areas: Optional[list[str]] = None
    constraints: Optional[PlanConstraintsRequest] = None

    @field_validator("focus_areas")
    @classmethod
    def strip_focus_areas(cls, value: Optional[list[str]]) -> Optional[list[str]]:
        if value is None:
            return None
        cleaned = [item.strip() for item in value if item.strip()]
        return cleaned or None


class ApplyRequest(CamelModel):
    plan_id: str = Field(min_length=1)
    selected_changes: list[str]
    description: Optional[str] = None

    @field_validator("plan_id")
    @classmethod
    def validate_plan_id(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("planId must be non-empty")
        return value.strip()


class ManualOverrideRequest(CamelModel):
    type: ChangeType
    from_: str = Field(default="", alias="from")
    to: str = Field(min_length=1)
    resource_id: str = Field(min_length=1)
    reason: str = Field(min_length=1)

    @field_validator("to", "resource_id", "reason")
    @classmethod
    def validate_non_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must be non-empty")
        return value.strip()


def _internal_error(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=message,
    )


@router.get(
    "/overview",
    response_model=SuccessResponse[ResourceOverviewResponse],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_management)],
)
async def get_overview(
    service: ResourceWorkflowService = Depends(get_resource_service),
) -> SuccessResponse[ResourceOverviewResponse]:
    """Per-tutor workloads with platform-wide totals."""
    try:
        result = service.get_overview()
        return SuccessResponse[ResourceOverviewResponse](
            data=ResourceOverviewResponse.model_validate(result)
        )
    except StoreError as exc:
        logger.exception("Store failure while building resource overview")
        raise _internal_error("Failed to load resource overview") from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected resource overview failure")
        raise _internal_error("Failed to load resource overview") from exc


@router.get(
    "/inefficiencies",
    response_model=SuccessResponse[InefficiencyListResponse],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_management)],
)
async def get_inefficiencies(
    severity: Optional[Severity] = Query(default=None),
    type: Optional[InefficiencyType] = Query(default=None),
    service: ResourceWorkflowService = Depends(get_resource_service),
) -> SuccessResponse[InefficiencyListResponse]:
    try:
        result = service.list_inefficiencies(severity=severity, type=type)
        return SuccessResponse[InefficiencyListResponse](
            data=InefficiencyListResponse.model_validate(result)
        )
    except StoreError as exc:
        logger.exception("Store failure while listing inefficiencies")
        raise _internal_error("Failed to list inefficiencies") from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected inefficiency listing failure")
        raise _internal_error("Failed to list inefficiencies") from exc


@router.post(
    "/optimize",
    response_model=SuccessResponse[OptimizationPlanResponse],
    status_code=status.HTTP_201_CREATED,
)
async def optimize(
    payload: Optional[OptimizeRequest] = None,
    user: dict[str, Any] = Depends(require_management),
    service: ResourceWorkflowService = Depends(get_resource_service),
) -> SuccessResponse[OptimizationPlanResponse]:
    """Generate and store a draft optimization plan."""
    request = payload or OptimizeRequest()
    try:
        plan = service.create_plan(
            created_by=str(user["id"]),
            focus_areas=request.focus_areas,
            constraints=request.constraints.to_domain() if request.constraints else None,
        )
        return SuccessResponse[OptimizationPlanResponse](
            data=OptimizationPlanResponse.model_validate(plan.to_document()),
            message="Optimization plan created",
        )
    except ResourceValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except StoreError as exc:
        logger.exception("Store failure while creating optimization plan")
        raise _internal_error("Failed to create optimization plan") from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected optimization plan failure")
        raise _internal_error("Failed to create optimization plan") from exc


@router.post(
    "/apply",
    response_model=SuccessResponse[ApprovalRequestResponse],
    status_code=status.HTTP_201_CREATED,
)
async def apply_optimization(
    payload: ApplyRequest,
    user: dict[str, Any] = Depends(require_management),
    applier: ChangeApplier = Depends(get_change_applier),
) -> SuccessResponse[ApprovalRequestResponse]:
    """File the selected plan changes as an approval request."""
    try:
        approval = applier.apply_optimization(
            requester_id=str(user["id"]),
            plan_id=payload.plan_id,
            selected_changes=payload.selected_changes,
            description=payload.description,
        )
        return SuccessResponse[ApprovalRequestResponse](
            data=ApprovalRequestResponse.model_validate(approval.to_document()),
            message="Approval request created",
        )
    except ResourceNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except ResourceValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except StoreError as exc:
        logger.exception("Store failure while applying optimization")
        raise _internal_error("Failed to apply optimization") from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected apply failure")
        raise _internal_error("Failed to apply optimization") from exc


@router.post(
    "/manual-override",
    response_model=SuccessResponse[OptimizationChangeResponse],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_management)],
)
async def manual_override(
    payload: ManualOverrideRequest,
    applier: ChangeApplier = Depends(get_change_applier),
) -> SuccessResponse[OptimizationChangeResponse]:
    """Apply a single allocation change immediately, bypassing approval."""
    try:
        change = applier.manual_override(
            type=payload.type,
            from_id=payload.from_,
            to_id=payload.to,
            resource_id=payload.resource_id,
            reason=payload.reason,
        )
        return SuccessResponse[OptimizationChangeResponse](
            data=OptimizationChangeResponse.model_validate(change.to_document()),
            message="Manual override applied",
        )
    except ResourceNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except ResourceValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except StoreError as exc:
        logger.exception("Store failure during manual override")
        raise _internal_error("Failed to apply manual override") from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected manual override failure")
        raise _internal_error("Failed to apply manual override") from exc


@router.get(
    "/plans",
    response_model=SuccessResponse[PlanPageResponse],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_management)],
)
async def list_plans(
    page: int = Query(default=1, ge=1),
    limit: Optional[int] = Query(default=None, ge=1),
    plan_status: Optional[PlanStatus] = Query(default=None, alias="status"),
    service: ResourceWorkflowService = Depends(get_resource_service),
) -> SuccessResponse[PlanPageResponse]:
    try:
        result = service.list_plans(page=page, limit=limit, status=plan_status)
        return SuccessResponse[PlanPageResponse](
            data=PlanPageResponse(
                plans=[OptimizationPlanResponse.model_validate(item) for item in result.items],
                total=result.total,
                page=result.page,
                limit=result.limit,
                total_pages=result.total_pages,
            )
        )
    except ResourceValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except StoreError as exc:
        logger.exception("Store failure while listing plans")
        raise _internal_error("Failed to list optimization plans") from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected plan listing failure")
        raise _internal_error("Failed to list optimization plans") from exc


@router.get(
    "/plans/{plan_id}",
    response_model=SuccessResponse[OptimizationPlanResponse],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_management)],
)
async def get_plan(
    plan_id: str,
    service: ResourceWorkflowService = Depends(get_resource_service),
) -> SuccessResponse[OptimizationPlanResponse]:
    try:
        plan = service.get_plan(plan_id)
        return SuccessResponse[OptimizationPlanResponse](
            data=OptimizationPlanResponse.model_validate(plan.to_document())
        )
    except ResourceNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except StoreError as exc:
        logger.exception("Store failure while loading plan")
        raise _internal_error("Failed to load optimization plan") from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected plan lookup failure")
        raise _internal_error("Failed to load optimization plan") from exc

"""Response envelopes, wire DTOs and application-level error handlers."""

from __future__ import annotations

from typing import Any, Generic, Optional, TypeVar

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from starlette.exceptions import HTTPException as StarletteHTTPException

from tutoring_backend.utils.logger import get_logger


logger = get_logger(__name__)

DataT = TypeVar("DataT")


class CamelModel(BaseModel):
    """Base DTO exposing camelCase keys on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SuccessResponse(BaseModel, Generic[DataT]):
    success: bool = True
    data: DataT
    message: Optional[str] = None


class ErrorResponse(BaseModel):
    success: bool = False
    error: str


class TutorProfileResponse(CamelModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    avatar: Optional[str] = None
    subjects: Optional[list[str]] = None
    rating: Optional[float] = None


class TutorWorkloadResponse(CamelModel):
    tutor_id: str
    session_ids: list[str]
    class_ids: list[str]
    total_hours: float = Field(ge=0.0)
    student_count: int = Field(ge=0)
    workload: str
    tutor: Optional[TutorProfileResponse] = None


class WorkloadDistributionResponse(CamelModel):
    overloaded: int = Field(ge=0)
    high: int = Field(ge=0)
    medium: int = Field(ge=0)
    low: int = Field(ge=0)


class OverviewSummaryResponse(CamelModel):
    total_tutors: int = Field(ge=0)
    total_hours: float = Field(ge=0.0)
    total_students: int = Field(ge=0)
    workload_distribution: WorkloadDistributionResponse


class ResourceOverviewResponse(CamelModel):
    overview: OverviewSummaryResponse
    workloads: list[TutorWorkloadResponse]


class InefficiencyResponse(CamelModel):
    id: str
    type: str
    severity: str
    description: str
    resource_id: str
    affected_resource_ids: list[str]
    suggested_actions: list[str]
    created_at: str


class SeverityCountsResponse(CamelModel):
    high: int = Field(ge=0)
    medium: int = Field(ge=0)
    low: int = Field(ge=0)


class InefficiencyListResponse(CamelModel):
    inefficiencies: list[InefficiencyResponse]
    total: int = Field(ge=0)
    by_severity: SeverityCountsResponse


class OptimizationChangeResponse(CamelModel):
    type: str
    resource_id: str
    from_: str = Field(alias="from")
    to: str
    reason: str


class EstimatedImpactResponse(CamelModel):
    workload_reduction: float = Field(ge=0.0, le=100.0)
    balance_improvement: float = Field(ge=0.0, le=100.0)
    resource_utilization: float = Field(ge=0.0, le=100.0)


class OptimizationPlanResponse(CamelModel):
    id: str
    name: str
    description: str
    status: str
    changes: list[OptimizationChangeResponse]
    estimated_impact: EstimatedImpactResponse
    created_by: str
    created_at: str
    updated_at: str
    applied_at: Optional[str] = None


class PlanPageResponse(CamelModel):
    plans: list[OptimizationPlanResponse]
    total: int = Field(ge=0)
    page: int = Field(ge=1)
    limit: int = Field(ge=1)
    total_pages: int = Field(ge=0)


class AllocationChangeResponse(CamelModel):
    type: str
    resource_id: str
    from_value: Any = None
    to_value: Any = None
    reason: str


class ResourceAllocationDataResponse(CamelModel):
    optimization_plan_id: str
    changes: list[AllocationChangeResponse]
    affected_tutor_ids: list[str]
    affected_session_ids: list[str]
    affected_student_ids: list[str]


class ApprovalRequestResponse(CamelModel):
    id: str
    type: str
    requester_id: str
    target_id: str
    title: str
    description: str
    status: str
    priority: str
    deadline: str
    resource_allocation_data: ResourceAllocationDataResponse
    created_at: str
    updated_at: str
    reviewer_id: Optional[str] = None
    review_notes: Optional[str] = None


def _error_body(message: str) -> dict[str, Any]:
    return ErrorResponse(error=message).model_dump()


def _validation_message(exc: RequestValidationError) -> str:
    parts: list[str] = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()) if item != "body")
        message = error.get("msg", "Invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or "Invalid request"


def register_exception_handlers(app: FastAPI) -> None:
    """Render every HTTP and validation error as ``{success: false, error}``."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(detail),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        message = _validation_message(exc)
        logger.info("Request validation failed | path=%s | error=%s", request.url.path, message)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=jsonable_encoder(_error_body(message)),
        )

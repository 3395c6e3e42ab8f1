"""HTTP controller layer for resource-allocation approval review."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, status

from tutoring_backend.controllers.dependencies import get_approval_executor, require_management
from tutoring_backend.controllers.responses import (
    ApprovalRequestResponse,
    CamelModel,
    SuccessResponse,
)
from tutoring_backend.repository.document_store import StoreError
from tutoring_backend.services.approval_service import ApprovalExecutor
from tutoring_backend.services.errors import ResourceNotFoundError, ResourceValidationError
from tutoring_backend.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(prefix="/api/management/approvals", tags=["approvals"])


class ReviewRequest(CamelModel):
    review_notes: Optional[str] = None


@router.put(
    "/{approval_id}/approve",
    response_model=SuccessResponse[ApprovalRequestResponse],
    status_code=status.HTTP_200_OK,
)
async def approve(
    approval_id: str,
    payload: Optional[ReviewRequest] = None,
    user: dict[str, Any] = Depends(require_management),
    executor: ApprovalExecutor = Depends(get_approval_executor),
) -> SuccessResponse[ApprovalRequestResponse]:
    """Approve the request and commit its allocation changes."""
    try:
        approval = executor.approve(
            reviewer_id=str(user["id"]),
            approval_id=approval_id,
            review_notes=payload.review_notes if payload else None,
        )
        return SuccessResponse[ApprovalRequestResponse](
            data=ApprovalRequestResponse.model_validate(approval.to_document()),
            message="Approval request approved",
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
        logger.exception("Store failure while approving request")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to approve request",
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected approval failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to approve request",
        ) from exc


@router.put(
    "/{approval_id}/reject",
    response_model=SuccessResponse[ApprovalRequestResponse],
    status_code=status.HTTP_200_OK,
)
async def reject(
    approval_id: str,
    payload: ReviewRequest,
    user: dict[str, Any] = Depends(require_management),
    executor: ApprovalExecutor = Depends(get_approval_executor),
) -> SuccessResponse[ApprovalRequestResponse]:
    try:
        approval = executor.reject(
            reviewer_id=str(user["id"]),
            approval_id=approval_id,
            review_notes=payload.review_notes,
        )
        return SuccessResponse[ApprovalRequestResponse](
            data=ApprovalRequestResponse.model_validate(approval.to_document()),
            message="Approval request rejected",
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
        logger.exception("Store failure while rejecting request")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to reject request",
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected rejection failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to reject request",
        ) from exc

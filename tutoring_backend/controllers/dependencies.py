"""Shared FastAPI dependency providers for controller layer."""

from __future__ import annotations

from typing import Any, Optional

from fastapi import Depends, Header, HTTPException, Request, status

from tutoring_backend.services.approval_service import ApprovalExecutor
from tutoring_backend.services.auth_service import (
    AuthService,
    CallerNotAuthenticatedError,
    PermissionDeniedError,
)
from tutoring_backend.services.change_service import ChangeApplier
from tutoring_backend.services.resource_service import ResourceWorkflowService


def _service_from_state(request: Request, attribute: str, label: str) -> Any:
    service = getattr(request.app.state, attribute, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{label} is not initialized",
        )
    return service


def get_auth_service(request: Request) -> AuthService:
    return _service_from_state(request, "auth_service", "Auth service")


def get_resource_service(request: Request) -> ResourceWorkflowService:
    return _service_from_state(request, "resource_service", "Resource service")


def get_change_applier(request: Request) -> ChangeApplier:
    return _service_from_state(request, "change_applier", "Change applier")


def get_approval_executor(request: Request) -> ApprovalExecutor:
    return _service_from_state(request, "approval_executor", "Approval executor")


async def get_current_user(
    x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
    auth_service: AuthService = Depends(get_auth_service),
) -> dict[str, Any]:
    try:
        return auth_service.resolve_caller(x_user_id)
    except CallerNotAuthenticatedError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc


async def require_management(
    user: dict[str, Any] = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
) -> dict[str, Any]:
    try:
        auth_service.require_role(user)
    except PermissionDeniedError as exc:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=str(exc),
        ) from exc
    return user

"""Caller resolution for identities forwarded by the upstream gateway."""

from __future__ import annotations

from typing import Any, Optional

from tutoring_backend.domain.models import UserRole
from tutoring_backend.repository.document_store import Collections, DocumentStore


class AuthenticationError(Exception):
    """Base authentication failure."""


class CallerNotAuthenticatedError(AuthenticationError):
    """Raised when no caller id is supplied or it matches no user."""


class PermissionDeniedError(AuthenticationError):
    """Raised when the caller lacks the management role."""


class AuthService:
    """Resolves the calling user and checks role requirements."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def resolve_caller(self, user_id: Optional[str]) -> dict[str, Any]:
        if not user_id or not user_id.strip():
            raise CallerNotAuthenticatedError("X-User-Id header is required")
        user = self._store.find_by_id(Collections.USERS, user_id.strip())
        if user is None:
            raise CallerNotAuthenticatedError("Unknown caller")
        return user

    def require_role(self, user: dict[str, Any], role: UserRole = UserRole.MANAGEMENT) -> None:
        if user.get("role") != role.value:
            raise PermissionDeniedError(f"Only {role.value} users can access this resource")

"""Exceptions shared by the resource management services."""

from __future__ import annotations


class ResourceServiceError(Exception):
    """Base failure raised by resource management services."""


class ResourceNotFoundError(ResourceServiceError):
    """Raised when a referenced plan, approval, session, class or user is missing."""


class ResourceValidationError(ResourceServiceError):
    """Raised when request inputs cannot be acted on."""


class PlanStateError(ResourceValidationError):
    """Raised when a plan or approval is not in a state that allows the operation."""

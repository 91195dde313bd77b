"""
Domain Exceptions.

Custom exceptions for domain-level errors.
These exceptions represent business rule violations.

Errors (ValidationException, AuthorizationException, EntityNotFoundException,
ConflictException) abort the surrounding transaction and reach the caller.
Warnings (RecalculationWarning, DeliveryWarning) are logged where they occur
and never fail a mutation that already succeeded.
"""

from typing import Optional, Any, Dict


class DomainException(Exception):
    """Base exception for all domain errors."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code or "DOMAIN_ERROR"
        self.details = details or {}


class EntityNotFoundException(DomainException):
    """Raised when an entity is not found."""

    def __init__(self, entity_type: str, entity_id: Any):
        super().__init__(
            message=f"{entity_type} with id '{entity_id}' not found",
            code="ENTITY_NOT_FOUND",
            details={"entity_type": entity_type, "entity_id": str(entity_id)}
        )


class ValidationException(DomainException):
    """Raised when validation fails."""

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            details={"field": field, "value": str(value) if value is not None else None}
        )


class AuthorizationException(DomainException):
    """Raised when user is not authorized to perform an operation."""

    def __init__(self, operation: str, resource: Optional[str] = None):
        super().__init__(
            message=f"Not authorized to perform '{operation}'" +
                    (f" on '{resource}'" if resource else ""),
            code="AUTHORIZATION_ERROR",
            details={"operation": operation, "resource": resource}
        )


class ConflictException(DomainException):
    """
    Raised when a write cannot be reconciled with existing rows.

    Covers identifier collisions that survive every allocation retry and
    attempts to remove a node that is still referenced elsewhere.
    """

    def __init__(self, message: str, resource: Optional[str] = None, **details):
        super().__init__(
            message=message,
            code="CONFLICT",
            details={"resource": resource, **details}
        )


class RecalculationWarning(DomainException):
    """A price or designation recompute failed after the mutation succeeded."""

    def __init__(self, scope: str, project_id: Any, reason: Any):
        super().__init__(
            message=f"{scope} recalculation failed for project '{project_id}': {reason}",
            code="RECALCULATION_WARNING",
            details={"scope": scope, "project_id": str(project_id)}
        )


class DeliveryWarning(DomainException):
    """Notification or push delivery failed. Never rolled back."""

    def __init__(self, channel: str, recipient: Any, reason: Any):
        super().__init__(
            message=f"{channel} delivery to '{recipient}' failed: {reason}",
            code="DELIVERY_WARNING",
            details={"channel": channel, "recipient": str(recipient)}
        )

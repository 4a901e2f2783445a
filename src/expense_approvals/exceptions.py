"""Typed errors raised by the approval workflow.

Every error carries a machine-readable ``code`` and an HTTP-like
``status_code`` so transport layers can map them without parsing messages.
"""

from __future__ import annotations

from typing import Any


class ExpenseApprovalError(Exception):
    """Base class for all approval workflow errors."""

    code = "EXPENSE_APPROVAL_ERROR"
    status_code = 500

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error for API responses."""

        payload: dict[str, Any] = {
            "code": self.code,
            "status_code": self.status_code,
            "message": self.message,
        }
        if self.details:
            payload["details"] = dict(self.details)
        return payload


class NotFoundError(ExpenseApprovalError):
    """A referenced expense, rule, company, or user does not exist."""

    code = "NOT_FOUND"
    status_code = 404

    @classmethod
    def for_resource(cls, resource: str, resource_id: str) -> NotFoundError:
        return cls(f"{resource} not found", resource=resource, resource_id=resource_id)


class ForbiddenError(ExpenseApprovalError):
    """The actor may not perform the operation."""

    code = "FORBIDDEN"
    status_code = 403


class InvalidStateError(ExpenseApprovalError):
    """The expense or rule is in the wrong state for the operation."""

    code = "INVALID_STATE"
    status_code = 400


class ConfigurationError(ExpenseApprovalError):
    """Company configuration leaves an expense without any approver."""

    code = "CONFIGURATION_ERROR"
    status_code = 400


class ConflictError(ExpenseApprovalError):
    """A concurrent write changed the document; retry with fresh data."""

    code = "CONFLICT"
    status_code = 409


class RequestValidationError(ExpenseApprovalError):
    """Caller-supplied input is invalid."""

    code = "VALIDATION_ERROR"
    status_code = 400

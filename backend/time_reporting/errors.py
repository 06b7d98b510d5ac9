"""Typed errors raised by the authorization and workflow core.

Every error carries a stable ``code`` so the transport layer can translate it
without parsing messages. None of them are retried internally.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class TimeReportingError(Exception):
    code = "TIME_REPORTING_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, "code": self.code}


class NotFoundError(TimeReportingError):
    """A referenced entry, project, task or tag value does not exist."""

    code = "NOT_FOUND"


class ValidationError(TimeReportingError):
    """The payload is malformed: bad date range, negative hours, disallowed tag."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.field:
            data["field"] = self.field
        return data


class AuthorizationError(TimeReportingError):
    """The principal lacks a permission grant or ownership for the action.

    ``permission`` is the letter of the missing grant, or ``None`` when the
    failure is an ownership rule rather than an ACL grant.
    """

    code = "FORBIDDEN"

    def __init__(self, message: str, resource: str, permission: Optional[str] = None) -> None:
        super().__init__(message)
        self.resource = resource
        self.permission = permission

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["resource"] = self.resource
        data["permission"] = self.permission
        return data


class BusinessRuleError(TimeReportingError):
    """The action is not allowed in the entry's current lifecycle status."""

    code = "BUSINESS_RULE_VIOLATION"


class ConflictError(TimeReportingError):
    """The persisted entry changed between load and write."""

    code = "CONFLICT"


class AclParseError(TimeReportingError):
    code = "INVALID_ACL"

"""
Domain error taxonomy for the order ledger and confirmation engine.

Every error carries a stable machine-readable ``code`` (see
``canteen.error_catalog``) and a human message naming the offending ids.
"""

from __future__ import annotations

from http import HTTPStatus
from typing import Any


class DiningError(Exception):
    """Base exception for controlled errors raised by the dining services."""

    http_status = HTTPStatus.INTERNAL_SERVER_ERROR
    default_code = "SYSTEM_001"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.message,
            "code": self.code,
            "details": self.details,
        }


class ValidationError(DiningError):
    """Malformed input: empty member list, bad date format, unsupported meal type."""

    http_status = HTTPStatus.UNPROCESSABLE_ENTITY
    default_code = "VALIDATION_ERROR"


class AuthorizationError(DiningError):
    """Role or membership mismatch."""

    http_status = HTTPStatus.FORBIDDEN
    default_code = "AUTHORIZATION_ERROR"


class NotFoundError(DiningError):
    http_status = HTTPStatus.NOT_FOUND
    default_code = "NOT_FOUND"


class BusinessError(DiningError):
    """Cross-department membership, menu or time-window violations."""

    http_status = HTTPStatus.BAD_REQUEST
    default_code = "BUSINESS_ERROR"


class ConflictError(DiningError):
    """Double confirmation or double booking."""

    http_status = HTTPStatus.CONFLICT
    default_code = "CONFLICT"

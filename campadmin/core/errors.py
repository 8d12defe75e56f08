from __future__ import annotations

from typing import Any


class AdminError(Exception):
    """Base class for every failure surfaced to list views and forms."""

    code = "admin_error"

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class GatewayError(AdminError):
    """Transport or query failure while talking to the backend."""

    code = "gateway_error"


class ValidationError(AdminError):
    """Rejected by backend constraints or by client-side pre-submit checks."""

    code = "validation_error"

    def __init__(
        self,
        message: str,
        *,
        field_errors: dict[str, str] | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details=details)
        self.field_errors = dict(field_errors or {})


class NotFoundError(AdminError):
    """Target record was absent at mutation time."""

    code = "not_found"


class ProcedureError(AdminError):
    """A remote procedure answered at transport level but flagged a failure in its payload."""

    code = "procedure_error"

    def __init__(self, procedure: str, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, details=details)
        self.procedure = procedure


def user_message(exc: Exception, fallback: str = "An unexpected error occurred.") -> str:
    if isinstance(exc, AdminError):
        return exc.message or fallback
    return str(exc) or fallback

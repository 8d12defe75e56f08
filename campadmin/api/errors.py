from fastapi import HTTPException, status

from campadmin.core.errors import AdminError, NotFoundError, ProcedureError, ValidationError

_STATUS_BY_ERROR: tuple[tuple[type[AdminError], int], ...] = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (ProcedureError, status.HTTP_502_BAD_GATEWAY),
)


def status_for(exc: AdminError) -> int:
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_503_SERVICE_UNAVAILABLE


def http_error(exc: AdminError) -> HTTPException:
    if isinstance(exc, ValidationError) and exc.field_errors:
        detail: object = {"message": exc.message, "field_errors": exc.field_errors}
    else:
        detail = exc.message
    return HTTPException(status_code=status_for(exc), detail=detail)


def status_for_code(code: str | None) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if error_type.code == code:
            return status_code
    return status.HTTP_503_SERVICE_UNAVAILABLE

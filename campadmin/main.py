import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from campadmin.api.errors import status_for
from campadmin.api.router import router as v1_router
from campadmin.core.config import settings
from campadmin.core.errors import AdminError, ValidationError
from campadmin.entities.registry import ENTITIES
from campadmin.middleware.correlation import CorrelationIdMiddleware
from campadmin.middleware.performance import ApiPerformanceMiddleware
from campadmin.schemas.errors import ErrorBody, ErrorEnvelope

app = FastAPI(title=settings.app_name, version="0.1.0")
app.add_middleware(CorrelationIdMiddleware)
app.add_middleware(ApiPerformanceMiddleware)
logger = logging.getLogger(__name__)

cors_origins = [
    origin.strip()
    for origin in settings.api_cors_allowed_origins.split(",")
    if origin.strip()
]
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins or ["http://localhost:5173"],
    allow_credentials=settings.api_cors_allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(GZipMiddleware, minimum_size=1024)

app.include_router(v1_router)


@app.get("/health")
def health():
    return {
        "ok": True,
        "service": settings.app_name,
        "env": settings.app_env,
        "api_version": settings.api_version,
        "supabase_configured": bool(
            settings.supabase_url and settings.supabase_service_role_key
        ),
        "list_page_size": settings.list_page_size,
        "stage_image_bucket": settings.stage_image_bucket,
        "csv_import_bucket": settings.csv_import_bucket,
        "entities": sorted(ENTITIES),
    }


def _error_response(
    request: Request,
    status_code: int,
    *,
    code: str,
    message: str,
    details: dict | None = None,
    field_errors: dict[str, str] | None = None,
) -> JSONResponse:
    body = ErrorBody(
        code=code,
        message=message,
        details=details or {},
        field_errors=field_errors or {},
        correlation_id=getattr(request.state, "correlation_id", "n/a"),
    )
    return JSONResponse(status_code=status_code, content=ErrorEnvelope(error=body).model_dump(mode="json"))


@app.exception_handler(AdminError)
async def admin_error_handler(request: Request, exc: AdminError):
    return _error_response(
        request,
        status_for(exc),
        code=exc.code,
        message=exc.message,
        details=exc.details,
        field_errors=exc.field_errors if isinstance(exc, ValidationError) else None,
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(
        "Unhandled error on %s %s (correlation_id=%s)",
        request.method,
        request.url.path,
        getattr(request.state, "correlation_id", "n/a"),
    )
    return _error_response(request, 500, code="internal_error", message="Internal server error.")

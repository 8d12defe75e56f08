from time import perf_counter

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from campadmin.observability.perf_metrics import perf_metrics

MONITORED_PREFIX = "/v1/"
# The entity slug stays literal so each table gets its own series.
ENTITY_PARAM = "entity"


def metric_key(request: Request) -> str:
    placeholders = {
        str(value): f"{{{name}}}"
        for name, value in request.path_params.items()
        if name != ENTITY_PARAM
    }
    segments = [placeholders.get(segment, segment) for segment in request.url.path.split("/")]
    return f"{request.method.upper()} {'/'.join(segments)}"


class ApiPerformanceMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        if not request.url.path.startswith(MONITORED_PREFIX):
            return await call_next(request)

        start = perf_counter()
        response: Response = await call_next(request)
        latency_ms = (perf_counter() - start) * 1000

        summary = perf_metrics.record_api(metric_key(request), latency_ms, response.status_code)
        response.headers["x-api-latency-ms"] = f"{latency_ms:.2f}"
        response.headers["x-api-latency-p95-ms"] = f"{summary['p95_ms']:.2f}"
        response.headers["x-api-sample-count"] = str(summary["count"])
        return response

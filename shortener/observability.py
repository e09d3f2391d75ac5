from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
import time

# Metrics definitions
HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"]
)

HTTP_REQUEST_DURATION_SECONDS = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0]
)

LINKS_CREATED_TOTAL = Counter("links_created_total", "Total short links created")
LINKS_DELETED_TOTAL = Counter("links_deleted_total", "Total short links deleted by token")
REDIRECT_TOTAL = Counter("redirect_total", "Total redirects")
REDIRECT_404_TOTAL = Counter("redirect_404_total", "Total failed redirects (404)")
REDIRECT_EXPIRED_TOTAL = Counter("redirect_expired_total", "Total redirects refused because the link expired")
CLEANUP_RUNS_TOTAL = Counter("cleanup_runs_total", "Total cleanup sweeps executed")
CLEANUP_REMOVED_TOTAL = Counter("cleanup_removed_total", "Total expired links removed by cleanup")
CLEANUP_ERRORS_TOTAL = Counter("cleanup_errors_total", "Total failed cleanup sweeps")

_FIXED_PATHS = {"/urls", "/stats", "/health", "/metrics"}


def metric_path(path: str) -> str:
    # Short codes would explode label cardinality; collapse them.
    if path in _FIXED_PATHS:
        return path
    if path.startswith("/urls/"):
        return "/urls/{code}/info" if path.endswith("/info") else "/urls/{code}"
    if len(path) > 1 and "/" not in path[1:]:
        return "/{code}"
    return "other"


class PrometheusMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()
        response = await call_next(request)
        process_time = time.perf_counter() - start_time

        path = metric_path(request.url.path)
        HTTP_REQUESTS_TOTAL.labels(method=request.method, path=path, status=str(response.status_code)).inc()
        HTTP_REQUEST_DURATION_SECONDS.labels(method=request.method, path=path).observe(process_time)

        return response

def metrics_endpoint(request: Request):
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

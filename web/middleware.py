"""
Request logging for the financial API.

Every request gets a correlation id. A request for one `month` runs inside
that month's log context, so engine and store lines logged while serving it
carry it too. Summary ranges (`start_month`, `end_month`) go into the extras.
Writes to the ledger are logged at info, plain reads at debug.
"""
import time
from contextlib import nullcontext
from typing import Any, Callable, Dict

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from bookkeeping.observability import (
    get_logger,
    generate_correlation_id,
    month_context,
    set_correlation_id,
)

logger = get_logger(__name__)

QUIET_PATHS = ("/api/health", "/health")
LEDGER_WRITES = ("POST", "PUT", "PATCH", "DELETE")
PERIOD_PARAMS = ("month", "start_month", "end_month")


def request_extras(request: Request) -> Dict[str, Any]:
    """Log fields for a request: method, path and any period it asks for."""
    extras = {"method": request.method, "path": request.url.path}
    for name in PERIOD_PARAMS:
        value = request.query_params.get(name)
        if value:
            extras[name] = value
    return extras


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Correlation id, period context and timing for each API request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get("X-Request-ID") or generate_correlation_id()
        set_correlation_id(correlation_id)

        extras = request_extras(request)
        quiet = extras["path"] in QUIET_PATHS
        writes = request.method in LEDGER_WRITES
        label = f"{request.method} {extras['path']}"
        month = extras.get("month")

        start_time = time.perf_counter()
        with month_context(month) if month else nullcontext():
            try:
                response = await call_next(request)
            except Exception as e:
                logger.error(
                    f"Request failed: {label}",
                    extra={**extras, "duration_ms": _elapsed_ms(start_time), "error": str(e)},
                )
                raise

            duration_ms = _elapsed_ms(start_time)
            response.headers["X-Request-ID"] = correlation_id
            response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"

            if not quiet:
                if response.status_code >= 400:
                    log = logger.warning
                elif writes:
                    log = logger.info
                else:
                    log = logger.debug
                log(
                    f"{'Ledger change' if writes else 'Request'}: {label} -> {response.status_code}",
                    extra={**extras, "status_code": response.status_code, "duration_ms": duration_ms},
                )

        return response


def _elapsed_ms(start_time: float) -> float:
    return round((time.perf_counter() - start_time) * 1000, 2)

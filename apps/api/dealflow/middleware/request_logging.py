from __future__ import annotations

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from dealflow.metrics import observe_http_request, resolve_http_path_label


logger = logging.getLogger("dealflow.request")

# Health-check endpoints are counted in metrics but not logged.
_QUIET_PATHS = frozenset({"/health", "/metrics"})


def _level_for(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Emit one ``http.request`` record and one metrics sample per request."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            self._finish(request, 500, started, failed=True)
            raise

        self._finish(request, response.status_code, started)
        return response

    @staticmethod
    def _finish(request: Request, status_code: int, started: float, failed: bool = False) -> None:
        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        path = resolve_http_path_label(request)
        observe_http_request(method=request.method, path=path, status=status_code, duration=duration_ms / 1000)
        if path in _QUIET_PATHS and not failed:
            return

        extra = {
            "method": request.method,
            "path": path,
            "status_code": status_code,
            "duration_ms": duration_ms,
        }
        resource_id = next((value for key, value in request.path_params.items() if key.endswith("_id")), None)
        if resource_id is not None:
            extra["resource_id"] = str(resource_id)
        if failed:
            logger.error("http.error", exc_info=True, extra=extra)
        else:
            logger.log(_level_for(status_code), "http.request", extra=extra)

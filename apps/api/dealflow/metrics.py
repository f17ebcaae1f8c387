from __future__ import annotations

import re

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.requests import Request


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)

deal_status_transitions_total = Counter(
    "deal_status_transitions_total",
    "Deal status transitions by source and target status",
    ["from_status", "to_status", "mode"],
)

access_denied_total = Counter(
    "access_denied_total",
    "Operations rejected by ownership or role checks",
    ["resource", "action"],
)

commission_payouts_total = Counter(
    "commission_payouts_total",
    "Commission records marked as paid",
)

payment_requests_total = Counter(
    "payment_requests_total",
    "Accepted rep payment requests",
)


_UUID_RE = re.compile(
    r"\b[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[1-5][0-9a-fA-F]{3}-[89abAB][0-9a-fA-F]{3}-[0-9a-fA-F]{12}\b"
)
_INT_RE = re.compile(r"/\d+\b")
_PATH_PARAM_RE = re.compile(r"\{[^{}]+\}")


def _sanitize_path(path: str) -> str:
    without_uuids = _UUID_RE.sub("{id}", path)
    return _INT_RE.sub("/{id}", without_uuids)


def resolve_http_path_label(request: Request) -> str:
    route = request.scope.get("route")
    if route is not None:
        path_format = getattr(route, "path_format", None) or getattr(route, "path", None)
        if isinstance(path_format, str) and path_format:
            return _PATH_PARAM_RE.sub("{id}", path_format)
    return _sanitize_path(request.url.path)


def observe_http_request(method: str, path: str, status: int, duration: float) -> None:
    http_requests_total.labels(method=method, path=path, status=str(status)).inc()
    http_request_duration_seconds.labels(method=method, path=path).observe(duration)


def observe_status_transition(from_status: str, to_status: str, mode: str) -> None:
    deal_status_transitions_total.labels(from_status=from_status, to_status=to_status, mode=mode).inc()


def observe_access_denied(resource: str, action: str) -> None:
    access_denied_total.labels(resource=resource, action=action).inc()


def observe_commission_payout() -> None:
    commission_payouts_total.inc()


def observe_payment_request() -> None:
    payment_requests_total.inc()


def generate_metrics_payload() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST

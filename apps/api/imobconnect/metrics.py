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

crm_lead_stage_changes_total = Counter(
    "crm_lead_stage_changes_total",
    "Total lead stage transitions by target stage",
    ["stage"],
)

crm_stage_config_replacements_total = Counter(
    "crm_stage_config_replacements_total",
    "Total stage configuration replacements by outcome",
    ["outcome"],
)

affiliation_requests_total = Counter(
    "affiliation_requests_total",
    "Total affiliation requests by outcome",
    ["outcome"],
)

affiliation_status_changes_total = Counter(
    "affiliation_status_changes_total",
    "Total affiliation status changes by new status",
    ["status"],
)


_NUMERIC_SEGMENT = re.compile(r"/\d+(?=/|$)")
_ROUTE_PARAM = re.compile(r"\{[^{}]+\}")


def resolve_http_path_label(request: Request) -> str:
    """Low-cardinality path label: the matched route template with every parameter shown as ``{id}``."""
    template = getattr(request.scope.get("route"), "path_format", None)
    if isinstance(template, str) and template:
        return _ROUTE_PARAM.sub("{id}", template)
    # Unmatched paths (404s) still must not leak ids into label values.
    return _NUMERIC_SEGMENT.sub("/{id}", request.url.path)


def observe_http_request(method: str, path: str, status: int, duration: float) -> None:
    http_requests_total.labels(method=method, path=path, status=str(status)).inc()
    http_request_duration_seconds.labels(method=method, path=path).observe(duration)


def observe_lead_stage_change(stage: str) -> None:
    crm_lead_stage_changes_total.labels(stage=stage).inc()


def observe_stage_config_replacement(outcome: str) -> None:
    crm_stage_config_replacements_total.labels(outcome=outcome).inc()


def observe_affiliation_request(outcome: str) -> None:
    affiliation_requests_total.labels(outcome=outcome).inc()


def observe_affiliation_status_change(status: str) -> None:
    affiliation_status_changes_total.labels(status=status).inc()


def render_metrics() -> tuple[bytes, str]:
    return generate_latest(), CONTENT_TYPE_LATEST

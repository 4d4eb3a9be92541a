from contextlib import asynccontextmanager
import logging
from typing import Any

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from imobconnect.api.errors import validation_exception_handler
from imobconnect.api.routes import router as api_router
from imobconnect.core.config import get_settings
from imobconnect.core.context import RequestContextMiddleware
from imobconnect.events import event_bus, publish
from imobconnect.logging import configure_logging
from imobconnect.middleware.correlation_id import CorrelationIdMiddleware
from imobconnect.middleware.request_logging import RequestLoggingMiddleware
from imobconnect.otel import configure_tracing, server_request_hook


configure_logging()
logger = logging.getLogger("imobconnect.lifecycle")

DOMAIN_EVENT_TYPES = (
    "crm.lead.created",
    "crm.lead.stage_changed",
    "crm.lead.visit_scheduled",
    "affiliate.requested",
    "affiliate.status_changed",
)


def _on_system_started(envelope: dict[str, Any]) -> None:
    logger.info("system_event", extra={"event_name": envelope["event_type"]})


def _on_domain_event(envelope: dict[str, Any]) -> None:
    logger.debug(
        "domain_event",
        extra={"event_name": envelope["event_type"], "user_id": envelope["actor_user_id"]},
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    event_bus.subscribe("system.started", _on_system_started)
    for event_type in DOMAIN_EVENT_TYPES:
        event_bus.subscribe(event_type, _on_domain_event)
    publish("system.started", None, {"service": app.title})
    yield


settings = get_settings()

app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan, debug=settings.app_debug)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_middleware(RequestContextMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.include_router(api_router)

configure_tracing(settings)

if not getattr(app, "_is_instrumented_by_opentelemetry", False):
    FastAPIInstrumentor().instrument_app(app, server_request_hook=server_request_hook)

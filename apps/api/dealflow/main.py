import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from dealflow.api.routes import router as api_router
from dealflow.core.config import get_settings
from dealflow.core.events import WILDCARD, InternalEvent, event_bus
from dealflow.errors import DomainError, domain_error_handler
from dealflow.logging import configure_logging
from dealflow.middleware.correlation_id import CorrelationIdMiddleware
from dealflow.middleware.request_logging import RequestLoggingMiddleware
from dealflow.otel import get_fastapi_server_request_hook, setup_otel


configure_logging()
logger = logging.getLogger("dealflow.lifecycle")


def _on_system_started(event: InternalEvent) -> None:
    logger.info("system_event", extra={"action": event.name})


def _on_domain_event(event: InternalEvent) -> None:
    if event.domain == "system":
        return
    logger.debug(
        event.name,
        extra={
            "event_id": event.payload.get("event_id"),
            "deal_id": event.payload.get("deal_id"),
            "to_status": event.payload.get("to_status"),
        },
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    event_bus.subscribe("system.started", _on_system_started)
    event_bus.subscribe(WILDCARD, _on_domain_event)
    event_bus.publish("system.started", {"service": "api"})
    yield


settings = get_settings()

app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)
app.add_exception_handler(DomainError, domain_error_handler)  # type: ignore[arg-type]
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.include_router(api_router)

setup_otel(settings)

if not getattr(app, "_is_instrumented_by_opentelemetry", False):
    FastAPIInstrumentor().instrument_app(app, server_request_hook=get_fastapi_server_request_hook())

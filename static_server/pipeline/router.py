"""Request routing logic."""

import logging

from static_server.bootstrap.config import ALLOWED_METHODS
from static_server.domain.correlation_id import CorrelationLoggerAdapter
from static_server.domain.http_types import HttpRequest, HttpResponse
from static_server.domain.response_builders import (
    empty_response,
    internal_error_response,
    not_found_response,
)
from static_server.handlers.system_handlers import handle_healthz
from static_server.transport.context import HEALTH_ROLE, WorkerContext

ROUTER_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("static_server.pipeline.router"), {}
)


def route_health_request(request: HttpRequest, context: WorkerContext) -> HttpResponse:
    """The health listener only knows ``/healthz``."""
    if request.path == "/healthz" and request.method in {"GET", "HEAD"}:
        return handle_healthz(context.lifecycle)
    ROUTER_LOGGER.info(
        "No matching route found",
        extra={
            "event": "route_not_found",
            "route": request.path,
            "method": request.method,
        },
    )
    return not_found_response(request)


def route_site_request(request: HttpRequest, context: WorkerContext) -> HttpResponse:
    """Hand the request to the site handler; I/O failures become a 500."""
    if request.method == "OPTIONS":
        response = empty_response(request)
        response.headers["Allow"] = ", ".join(sorted(ALLOWED_METHODS))
        return response
    if context.handler is None:
        return not_found_response(request)
    try:
        return context.handler.serve_http(request)
    except OSError as error:
        ROUTER_LOGGER.error(
            "Failed to serve request",
            extra={
                "event": "serve_failed",
                "route": request.path,
                "error_type": type(error).__name__,
            },
        )
        return internal_error_response(request)


def route_request(request: HttpRequest, context: WorkerContext) -> HttpResponse:
    """Route the request to the handler for the listener's role."""
    if context.role == HEALTH_ROLE:
        return route_health_request(request, context)
    return route_site_request(request, context)

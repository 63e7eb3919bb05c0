"""Health check handler served on the dedicated health listener."""

import logging
from typing import Optional

from static_server.domain.correlation_id import CorrelationLoggerAdapter
from static_server.domain.http_types import HttpResponse
from static_server.domain.response_builders import healthz_response
from static_server.lifecycle.state import ServerLifecycle

SYSTEM_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("static_server.handlers.system"), {}
)


def handle_healthz(
    lifecycle: Optional[ServerLifecycle],
) -> HttpResponse:
    """Handle /healthz requests with current server state."""
    is_draining = lifecycle.is_draining() if lifecycle is not None else False
    if SYSTEM_LOGGER.logger.isEnabledFor(logging.DEBUG):
        SYSTEM_LOGGER.debug(
            "Health check performed",
            extra={"event": "healthz_check", "draining": is_draining},
        )
    return healthz_response(is_draining)

"""Per-request correlation IDs carried through contextvars into log records."""

import contextvars
import logging
import re
import uuid
from typing import Any, MutableMapping, Optional

LOGGER_NAMESPACE = "static_server"
MAX_INCOMING_ID_LENGTH = 128
_SAFE_ID_PATTERN = re.compile(r"^[A-Za-z0-9._:-]+$")

_correlation_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "correlation_id", default=None
)


def generate_correlation_id() -> str:
    """Generate a new correlation ID using UUID4."""
    return str(uuid.uuid4())


def get_correlation_id() -> Optional[str]:
    """Retrieve the current correlation ID from context."""
    return _correlation_id_var.get()


def set_correlation_id(correlation_id: str) -> None:
    """Store a correlation ID in the current context."""
    _correlation_id_var.set(correlation_id)


def clear_correlation_id() -> None:
    """Remove the correlation ID from the current context."""
    _correlation_id_var.set(None)


def adopt_incoming_correlation_id(header_value: Optional[str]) -> bool:
    """Reuse a client supplied X-Request-ID when it is short and printable."""
    if not header_value:
        return False
    candidate = header_value.strip()
    if len(candidate) > MAX_INCOMING_ID_LENGTH:
        return False
    if not _SAFE_ID_PATTERN.match(candidate):
        return False
    set_correlation_id(candidate)
    return True


def component_for(logger_name: str) -> str:
    """Strip the project namespace from a logger name."""
    prefix = f"{LOGGER_NAMESPACE}."
    if logger_name.startswith(prefix):
        return logger_name[len(prefix) :]
    return logger_name


class CorrelationLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that injects the correlation ID and component into records."""

    def process(
        self, msg: str, kwargs: MutableMapping[str, Any]
    ) -> tuple[str, MutableMapping[str, Any]]:
        if "extra" not in kwargs:
            kwargs["extra"] = {}
        else:
            kwargs["extra"] = dict(kwargs["extra"])

        correlation_id = get_correlation_id()
        kwargs["extra"]["correlation_id"] = (
            correlation_id if correlation_id is not None else "-"
        )
        kwargs["extra"]["component"] = component_for(self.logger.name)
        return msg, kwargs

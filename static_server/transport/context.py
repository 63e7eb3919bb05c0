"""Context object shared across worker threads."""

from dataclasses import dataclass
from typing import Optional

from static_server.bootstrap.config import ServerSettings
from static_server.handlers.site_handler import Handler
from static_server.lifecycle.state import ServerLifecycle
from static_server.security.cors import CorsConfig

SITE_ROLE = "site"
HEALTH_ROLE = "health"


@dataclass
class WorkerContext:
    """Dependencies shared across handler threads of one listener."""

    role: str = SITE_ROLE
    handler: Optional[Handler] = None
    lifecycle: Optional[ServerLifecycle] = None
    settings: Optional[ServerSettings] = None
    cors_config: Optional[CorsConfig] = None
    listener_name: str = "http"

    @property
    def gzip_enabled(self) -> bool:
        return self.handler is not None and self.handler.config.gzip_enabled

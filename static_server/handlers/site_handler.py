"""The request handler built once from the effective configuration."""

import logging
from typing import Callable

from static_server.domain.correlation_id import CorrelationLoggerAdapter
from static_server.domain.effective_config import EffectiveConfig
from static_server.domain.http_types import HttpRequest, HttpResponse
from static_server.pipeline.composer import compose, header_map_headers, redirect_to
from static_server.pipeline.path_resolver import Redirect, classify
from static_server.pipeline.redirects import RedirectTable

SITE_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("static_server.handlers.site"), {}
)

RequestHandler = Callable[[HttpRequest], HttpResponse]


class Handler:
    """Serves requests for one configuration; holds no per-request state."""

    def __init__(self, config: EffectiveConfig, redirects: RedirectTable) -> None:
        self._config = config
        self._redirects = redirects
        self._redirect_handlers: dict[str, RequestHandler] = {
            rule.pattern: self.serve_redirect(rule.pattern, rule.destination)
            for rule in redirects.rules
        }

    @property
    def config(self) -> EffectiveConfig:
        return self._config

    @property
    def redirects(self) -> RedirectTable:
        return self._redirects

    def serve_http(self, request: HttpRequest) -> HttpResponse:
        classification = classify(
            request.path, self._config, self._redirects, request.method
        )
        if SITE_LOGGER.logger.isEnabledFor(logging.DEBUG):
            SITE_LOGGER.debug(
                "Request classified",
                extra={
                    "event": "request_classified",
                    "route": request.path,
                    "classification": type(classification).__name__,
                },
            )
        if isinstance(classification, Redirect):
            return self._redirect_handlers[classification.rule.pattern](request)
        return compose(classification, request, self._config)

    def serve_redirect(self, from_pattern: str, to: str) -> RequestHandler:
        """Return the handler answering requests matched by one redirect route."""

        def handle(request: HttpRequest) -> HttpResponse:
            return redirect_to(
                request, from_pattern, to, header_map_headers(self._config)
            )

        return handle


def build_handler(config: EffectiveConfig) -> Handler:
    """Compile the redirect table and wrap it with the configuration."""
    if config.redirect_routes_enabled:
        redirects, _ = RedirectTable.from_routes(config.redirect_routes)
    else:
        redirects = RedirectTable([])
    SITE_LOGGER.info(
        "Handler built",
        extra={
            "event": "handler_built",
            "history_mode": config.history_mode,
            "redirect_count": len(redirects),
        },
    )
    return Handler(config, redirects)

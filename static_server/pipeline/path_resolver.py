"""Classify a request path into what should be served for it."""

import logging
from dataclasses import dataclass
from typing import Optional, Union

from static_server.domain.correlation_id import CorrelationLoggerAdapter
from static_server.domain.effective_config import EffectiveConfig
from static_server.domain.errors import ForbiddenPath
from static_server.domain.sandbox import is_disallowed, resolve_sandbox_path
from static_server.pipeline.redirects import RedirectRule, RedirectTable

RESOLVER_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("static_server.pipeline.path_resolver"), {}
)

REDIRECT_METHODS = {"GET", "HEAD"}


@dataclass(frozen=True)
class Redirect:
    rule: RedirectRule


@dataclass(frozen=True)
class ServeAsset:
    asset_path: str


@dataclass(frozen=True)
class ServeIndexTemplate:
    pass


@dataclass(frozen=True)
class ServeStandardNotFound:
    pass


Classification = Union[Redirect, ServeAsset, ServeIndexTemplate, ServeStandardNotFound]


def looks_like_file(request_path: str) -> bool:
    """True when the last path segment contains a dot."""
    return "." in request_path.rstrip("/").rsplit("/", 1)[-1]


def asset_exists(config: EffectiveConfig, request_path: str) -> bool:
    try:
        return resolve_sandbox_path(config.serve_root, request_path).exists()
    except ForbiddenPath:
        return False


def classify(
    request_path: str,
    config: EffectiveConfig,
    redirects: Optional[RedirectTable] = None,
    method: str = "GET",
) -> Classification:
    """Decide how to answer ``request_path``.

    Redirects are consulted first, then the disallow list, then the serving
    mode: history mode falls back to the index template for paths that do not
    look like files, standard mode checks the filesystem.
    """
    if (
        redirects is not None
        and config.redirect_routes_enabled
        and method in REDIRECT_METHODS
    ):
        rule = redirects.match(request_path)
        if rule is not None:
            return Redirect(rule)

    disallowed = is_disallowed(request_path, config.disallowed_paths)
    if disallowed:
        RESOLVER_LOGGER.info(
            "Disallowed path requested",
            extra={"event": "path_disallowed", "route": request_path},
        )

    if config.history_mode:
        if not disallowed and looks_like_file(request_path):
            return ServeAsset(request_path)
        return ServeIndexTemplate()

    if disallowed or not asset_exists(config, request_path):
        return ServeStandardNotFound()
    return ServeAsset(request_path)

"""Turn a path classification into a complete HTTP response."""

import logging

from static_server.domain.correlation_id import CorrelationLoggerAdapter
from static_server.domain.effective_config import EffectiveConfig
from static_server.domain.errors import RedirectDestinationError, TemplateRenderError
from static_server.domain.http_types import (
    HttpRequest,
    HttpResponse,
    canonical_header_name,
    should_close,
    status_line,
)
from static_server.domain.response_builders import (
    TEXT_HTML,
    internal_error_response,
    redirect_response,
    text_response,
)
from static_server.handlers.file_handler import not_found_page_response, serve_static
from static_server.handlers.template_handler import render_index
from static_server.pipeline.path_resolver import (
    Classification,
    Redirect,
    ServeAsset,
    ServeIndexTemplate,
    ServeStandardNotFound,
)
from static_server.pipeline.redirects import build_location

COMPOSER_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("static_server.pipeline.composer"), {}
)

REDIRECT_ERROR_BODY = b"fatal: unable to redirect to destination URL\n"


def header_map_headers(config: EffectiveConfig) -> dict[str, str]:
    """Headers from the header map, or nothing when it is disabled."""
    if not config.header_map_enabled:
        return {}
    return {
        canonical_header_name(name): ", ".join(values)
        for name, values in config.header_map.items()
        if values
    }


def redirect_to(
    request: HttpRequest, pattern: str, destination: str, headers: dict[str, str]
) -> HttpResponse:
    """307 to ``destination``; an unusable destination answers 500."""
    try:
        location = build_location(destination, request.query)
    except RedirectDestinationError:
        COMPOSER_LOGGER.error(
            "Unable to parse redirect destination",
            extra={
                "event": "redirect_destination_invalid",
                "pattern": pattern,
                "destination": destination,
            },
        )
        return text_response(500, REDIRECT_ERROR_BODY, request, headers)
    COMPOSER_LOGGER.info(
        "Redirecting request",
        extra={"event": "redirect_issued", "pattern": pattern, "destination": location},
    )
    return redirect_response(307, location, request, headers)


def index_template_response(
    request: HttpRequest, config: EffectiveConfig, headers: dict[str, str]
) -> HttpResponse:
    try:
        body = render_index(config.serve_root, config.template_map)
    except TemplateRenderError as error:
        COMPOSER_LOGGER.warning(
            "Unable to render index template",
            extra={"event": "template_render_failed", "error": str(error)},
        )
        return internal_error_response(request, headers)
    headers.setdefault("Content-Type", TEXT_HTML)
    head_only = request.method == "HEAD"
    return HttpResponse(
        status_line(200),
        headers,
        b"" if head_only else body,
        should_close(request.headers),
        size_hint=len(body),
        head_only=head_only,
    )


def compose(
    classification: Classification, request: HttpRequest, config: EffectiveConfig
) -> HttpResponse:
    """Build the response for ``classification``.

    Header map values are placed first so later handlers only fill in what
    the map did not set (``Content-Type``) or must own (range and validator
    headers).
    """
    headers = header_map_headers(config)
    if isinstance(classification, Redirect):
        rule = classification.rule
        return redirect_to(request, rule.pattern, rule.destination, headers)
    if isinstance(classification, ServeIndexTemplate):
        return index_template_response(request, config, headers)
    if isinstance(classification, ServeStandardNotFound):
        return not_found_page_response(
            request, config.serve_root, config.not_found_file, headers
        )
    if isinstance(classification, ServeAsset):
        return serve_static(
            request,
            config.serve_root,
            classification.asset_path,
            headers,
            config.disallowed_paths,
        )
    raise TypeError(f"Unknown classification {classification!r}")

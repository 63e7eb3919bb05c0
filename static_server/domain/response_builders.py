"""Pure HTTP response builders."""

from typing import Optional

from static_server.domain.http_types import (
    HttpRequest,
    HttpResponse,
    should_close,
    status_line,
)

DEFAULT_NOT_FOUND_BODY = b"404 page not found\n"
INTERNAL_ERROR_BODY = b"500 internal error\n"
TEXT_PLAIN = "text/plain; charset=utf-8"
TEXT_HTML = "text/html; charset=utf-8"


def accepts_gzip(headers: dict[str, str]) -> bool:
    """Return True when the Accept-Encoding header includes gzip with q>0."""
    encodings = headers.get("accept-encoding", "")
    for token in encodings.split(","):
        value = token.strip()
        if not value:
            continue
        algorithm, _, params = value.partition(";")
        if algorithm.strip().lower() != "gzip":
            continue
        quality = 1.0
        if params:
            for param in params.split(";"):
                key, _, raw_value = param.strip().partition("=")
                if key.lower() == "q" and raw_value:
                    try:
                        quality = float(raw_value)
                    except ValueError:
                        quality = 0.0
                    break
        if quality > 0:
            return True
    return False


def _close_requested(request: Optional[HttpRequest]) -> bool:
    return should_close(request.headers) if request is not None else True


def text_response(
    code: int,
    payload: bytes,
    request: Optional[HttpRequest],
    headers: Optional[dict[str, str]] = None,
) -> HttpResponse:
    """Return a plain text response; caller supplied headers win."""
    merged = dict(headers or {})
    merged.setdefault("Content-Type", TEXT_PLAIN)
    merged.setdefault("X-Content-Type-Options", "nosniff")
    return HttpResponse(status_line(code), merged, payload, _close_requested(request))


def not_found_response(
    request: Optional[HttpRequest], headers: Optional[dict[str, str]] = None
) -> HttpResponse:
    """Return the transport's default 404 body."""
    return text_response(404, DEFAULT_NOT_FOUND_BODY, request, headers)


def internal_error_response(
    request: Optional[HttpRequest], headers: Optional[dict[str, str]] = None
) -> HttpResponse:
    """Return a generic 500 response without leaking error details."""
    return text_response(500, INTERNAL_ERROR_BODY, request, headers)


def forbidden_response(request: Optional[HttpRequest]) -> HttpResponse:
    """Produce a 403 response honoring the caller's connection preference."""
    return HttpResponse(status_line(403), {}, b"", _close_requested(request))


def bad_request_response(request: Optional[HttpRequest]) -> HttpResponse:
    """Produce a 400 response honoring the caller's connection preference."""
    return HttpResponse(status_line(400), {}, b"", _close_requested(request))


def entity_too_large_response() -> HttpResponse:
    """Produce a 413 response that always closes the connection."""
    return HttpResponse(status_line(413), {}, b"", True)


def method_not_allowed_response(
    request: HttpRequest, allowed_methods
) -> HttpResponse:
    """Produce a 405 response enumerating the supported HTTP methods."""
    allow_header = ", ".join(sorted(allowed_methods))
    return HttpResponse(
        status_line(405),
        {"Allow": allow_header},
        b"",
        should_close(request.headers),
    )


def redirect_response(
    code: int,
    location: str,
    request: HttpRequest,
    headers: Optional[dict[str, str]] = None,
) -> HttpResponse:
    """Produce a redirect with an empty body."""
    merged = dict(headers or {})
    merged["Location"] = location
    return HttpResponse(status_line(code), merged, b"", should_close(request.headers))


def empty_response(request: HttpRequest, code: int = 204) -> HttpResponse:
    """Return a response with no body."""
    return HttpResponse(status_line(code), {}, b"", should_close(request.headers))


def draining_response() -> HttpResponse:
    """Produce a 503 response indicating the server is draining."""
    return HttpResponse(
        status_line(503),
        {"Connection": "close", "Content-Type": TEXT_PLAIN},
        b"draining",
        True,
    )


def healthz_response(is_draining: bool) -> HttpResponse:
    """Produce a health check response based on server state."""
    if is_draining:
        return draining_response()
    return HttpResponse(
        status_line(200),
        {"Content-Type": TEXT_PLAIN},
        b"ok",
        False,
    )

"""Static file transfer: files, directory indexes, listings and 404 pages."""

import html
import logging
import mimetypes
import re
from email.utils import formatdate, parsedate_to_datetime
from pathlib import Path
from typing import Iterable, Iterator, Optional
from urllib.parse import quote

from static_server.domain.correlation_id import CorrelationLoggerAdapter
from static_server.domain.errors import ForbiddenPath
from static_server.domain.http_types import (
    HttpRequest,
    HttpResponse,
    should_close,
    status_line,
)
from static_server.domain.response_builders import (
    DEFAULT_NOT_FOUND_BODY,
    TEXT_HTML,
    not_found_response,
    redirect_response,
    text_response,
)
from static_server.domain.sandbox import is_disallowed, resolve_sandbox_path

FILE_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("static_server.handlers.file"), {}
)

INDEX_DOCUMENT = "index.html"
CHUNK_SIZE = 65536
_RANGE_PATTERN = re.compile(r"^bytes=(\d*)-(\d*)$")


def stream_file(
    filepath: Path, start: int = 0, length: Optional[int] = None, chunk_size: int = CHUNK_SIZE
) -> Iterator[bytes]:
    """Yield ``length`` bytes of the file from ``start`` in fixed-size chunks."""
    if FILE_LOGGER.logger.isEnabledFor(logging.DEBUG):
        FILE_LOGGER.debug(
            "File streaming started",
            extra={"event": "file_streaming_started", "path": filepath.as_posix()},
        )
    remaining = length
    with open(filepath, "rb") as file_handle:
        file_handle.seek(start)
        while remaining is None or remaining > 0:
            size = chunk_size if remaining is None else min(chunk_size, remaining)
            chunk = file_handle.read(size)
            if not chunk:
                break
            if remaining is not None:
                remaining -= len(chunk)
            yield chunk


def content_type_for_path(filepath: Path) -> str:
    mime_type, _ = mimetypes.guess_type(filepath.as_posix())
    if mime_type is None:
        return "application/octet-stream"
    if mime_type.startswith("text/") or mime_type in {
        "application/javascript",
        "application/json",
        "image/svg+xml",
    }:
        return f"{mime_type}; charset=utf-8"
    return mime_type


def _not_modified_since(request: HttpRequest, mtime: float) -> bool:
    header_value = request.headers.get("if-modified-since")
    if not header_value:
        return False
    try:
        since = parsedate_to_datetime(header_value)
    except (TypeError, ValueError):
        return False
    if since is None:
        return False
    return int(mtime) <= int(since.timestamp())


def parse_range(header_value: str, size: int) -> Optional[tuple[int, int]]:
    """Parse a single ``bytes=`` range into an inclusive ``(start, end)``.

    Returns None when the header should be ignored and raises ValueError when
    the range cannot be satisfied.
    """
    match = _RANGE_PATTERN.match(header_value.strip())
    if match is None:
        return None
    first, last = match.groups()
    if not first and not last:
        return None
    if not first:
        suffix = int(last)
        if suffix == 0:
            raise ValueError("empty suffix range")
        return max(size - suffix, 0), size - 1
    start = int(first)
    end = int(last) if last else size - 1
    if start >= size or end < start:
        raise ValueError("range not satisfiable")
    return start, min(end, size - 1)


def _with_query(location: str, request: HttpRequest) -> str:
    return f"{location}?{request.query}" if request.query else location


def directory_listing(
    request: HttpRequest, directory: Path, disallowed: Iterable[str]
) -> bytes:
    """Render a minimal HTML listing, hiding disallowed entries."""
    base = request.path if request.path.endswith("/") else f"{request.path}/"
    lines = ["<pre>"]
    for entry in sorted(directory.iterdir(), key=lambda item: item.name):
        if is_disallowed(f"{base}{entry.name}", disallowed):
            continue
        name = f"{entry.name}/" if entry.is_dir() else entry.name
        lines.append(f'<a href="{quote(name)}">{html.escape(name)}</a>')
    lines.append("</pre>")
    return ("\n".join(lines) + "\n").encode()


def _file_response(
    request: HttpRequest, filepath: Path, headers: dict[str, str]
) -> HttpResponse:
    stat = filepath.stat()
    size = stat.st_size
    headers.setdefault("Content-Type", content_type_for_path(filepath))
    headers["Last-Modified"] = formatdate(stat.st_mtime, usegmt=True)
    headers["Accept-Ranges"] = "bytes"
    close = should_close(request.headers)

    if _not_modified_since(request, stat.st_mtime):
        headers.pop("Content-Type", None)
        return HttpResponse(status_line(304), headers, b"", close)

    code = 200
    start, length = 0, size
    range_header = request.headers.get("range")
    if range_header:
        try:
            byte_range = parse_range(range_header, size)
        except ValueError:
            headers["Content-Range"] = f"bytes */{size}"
            return text_response(416, b"invalid range\n", request, headers)
        if byte_range is not None:
            start, end = byte_range
            length = end - start + 1
            code = 206
            headers["Content-Range"] = f"bytes {start}-{end}/{size}"

    if request.method == "HEAD":
        return HttpResponse(
            status_line(code), headers, b"", close, size_hint=length, head_only=True
        )
    FILE_LOGGER.info(
        "File read operation complete",
        extra={
            "event": "file_read_complete",
            "path": filepath.as_posix(),
            "method": request.method,
            "bytes_out": length,
        },
    )
    return HttpResponse(
        status_line(code),
        headers,
        b"",
        close,
        body_iter=stream_file(filepath, start, length),
        use_chunked=True,
        size_hint=length,
    )


def serve_static(
    request: HttpRequest,
    root: Path,
    url_path: str,
    base_headers: Optional[dict[str, str]] = None,
    disallowed: Iterable[str] = (),
) -> HttpResponse:
    """Serve ``url_path`` from ``root`` the way a plain file server does.

    ``/dir`` redirects to ``/dir/``, ``.../index.html`` redirects to its
    directory, directories are answered with their index document or a
    listing.
    """
    headers = dict(base_headers or {})
    if url_path.endswith(f"/{INDEX_DOCUMENT}"):
        return redirect_response(
            301, _with_query(url_path[: -len(INDEX_DOCUMENT)], request), request, headers
        )

    try:
        resolved_path = resolve_sandbox_path(root, url_path)
    except ForbiddenPath:
        FILE_LOGGER.warning(
            "Forbidden path access blocked",
            extra={"event": "forbidden_path", "route": url_path, "method": request.method},
        )
        return not_found_response(request, headers)

    if not resolved_path.exists():
        FILE_LOGGER.info(
            "File not found",
            extra={"event": "file_not_found", "route": url_path, "method": request.method},
        )
        return not_found_response(request, headers)

    if resolved_path.is_dir():
        if not url_path.endswith("/"):
            return redirect_response(
                301, _with_query(f"{url_path}/", request), request, headers
            )
        index_path = resolved_path / INDEX_DOCUMENT
        if index_path.is_file():
            return _file_response(request, index_path, headers)
        headers.setdefault("Content-Type", TEXT_HTML)
        body = directory_listing(request, resolved_path, disallowed)
        return HttpResponse(
            status_line(200),
            headers,
            b"" if request.method == "HEAD" else body,
            should_close(request.headers),
            size_hint=len(body),
            head_only=request.method == "HEAD",
        )

    if url_path.endswith("/"):
        return redirect_response(
            301, _with_query(url_path.rstrip("/") or "/", request), request, headers
        )
    return _file_response(request, resolved_path, headers)


def not_found_page_response(
    request: HttpRequest,
    root: Path,
    not_found_file: str,
    base_headers: Optional[dict[str, str]] = None,
) -> HttpResponse:
    """Answer 404 with the configured page, or the default body when it is missing."""
    headers = dict(base_headers or {})
    try:
        page_path = resolve_sandbox_path(root, not_found_file)
    except ForbiddenPath:
        page_path = None

    if page_path is None or not page_path.is_file():
        if FILE_LOGGER.logger.isEnabledFor(logging.DEBUG):
            FILE_LOGGER.debug(
                "Not found page missing, using default body",
                extra={"event": "not_found_page_missing", "path": not_found_file},
            )
        body = DEFAULT_NOT_FOUND_BODY
        headers.setdefault("Content-Type", "text/plain; charset=utf-8")
    else:
        body = page_path.read_bytes()
        headers.setdefault("Content-Type", content_type_for_path(page_path))

    return HttpResponse(
        status_line(404),
        headers,
        b"" if request.method == "HEAD" else body,
        should_close(request.headers),
        size_hint=len(body),
        head_only=request.method == "HEAD",
    )

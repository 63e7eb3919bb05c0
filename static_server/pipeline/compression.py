"""Gzip as a transport transform over composed responses."""

import gzip
import logging
import zlib
from dataclasses import replace
from typing import Iterable, Iterator

from static_server.domain.correlation_id import CorrelationLoggerAdapter
from static_server.domain.http_types import HttpRequest, HttpResponse
from static_server.domain.response_builders import accepts_gzip

COMPRESSION_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("static_server.pipeline.compression"), {}
)

GZIP_MIN_SIZE = 1400
UNCOMPRESSED_STATUSES = {204, 206, 304}


def _add_vary(headers: dict[str, str]) -> None:
    current = headers.get("Vary")
    if not current:
        headers["Vary"] = "Accept-Encoding"
    elif "accept-encoding" not in current.lower():
        headers["Vary"] = f"{current}, Accept-Encoding"


def gzip_stream(chunks: Iterable[bytes]) -> Iterator[bytes]:
    """Compress an iterable of chunks into a single gzip member."""
    compressor = zlib.compressobj(wbits=31)
    for chunk in chunks:
        compressed = compressor.compress(chunk)
        if compressed:
            yield compressed
    yield compressor.flush()


def maybe_compress(
    request: HttpRequest, response: HttpResponse, enabled: bool = True
) -> HttpResponse:
    """Return ``response`` gzip-encoded when the client and payload allow it.

    Status and existing headers are left alone; only ``Vary`` and
    ``Content-Encoding`` are added.
    """
    if not enabled:
        return response
    headers = dict(response.headers)
    _add_vary(headers)
    response = replace(response, headers=headers)

    if request.method == "HEAD" or response.head_only:
        return response
    if response.status_code in UNCOMPRESSED_STATUSES:
        return response
    if "Content-Encoding" in headers or not accepts_gzip(request.headers):
        return response
    size = response.size_hint if response.body_iter is not None else len(response.body)
    if size is None or size < GZIP_MIN_SIZE:
        return response

    headers["Content-Encoding"] = "gzip"
    if COMPRESSION_LOGGER.logger.isEnabledFor(logging.DEBUG):
        COMPRESSION_LOGGER.debug(
            "Compressing response",
            extra={"event": "response_compressed", "bytes_in": size},
        )
    if response.body_iter is not None:
        return replace(
            response,
            body_iter=gzip_stream(response.body_iter),
            use_chunked=True,
            size_hint=None,
        )
    return replace(response, body=gzip.compress(response.body), size_hint=None)

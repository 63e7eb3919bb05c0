"""Render the history mode application shell (``index.html``) with Jinja2."""

import logging
import re
from pathlib import Path
from typing import Mapping

from jinja2 import Environment, TemplateError

from static_server.domain.correlation_id import CorrelationLoggerAdapter
from static_server.domain.errors import TemplateRenderError
from static_server.handlers.file_handler import INDEX_DOCUMENT

TEMPLATE_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("static_server.handlers.template"), {}
)

# "{{ .Key }}" field access is rewritten to the plain "{{ Key }}" form
_DOT_FIELD = re.compile(r"(\{\{-?\s*)\.(?=[A-Za-z_])")

# only "{{ }}" is active; block and comment markers are NUL-delimited sentinels
_ENVIRONMENT = Environment(
    autoescape=True,
    keep_trailing_newline=True,
    block_start_string="\x00{%",
    block_end_string="%}\x00",
    comment_start_string="\x00{#",
    comment_end_string="#}\x00",
)


def normalize_template(source: str) -> str:
    return _DOT_FIELD.sub(r"\1", source)


def render_template(source: str, template_map: Mapping[str, str]) -> str:
    """Render ``source`` against the template map.

    Unknown keys render as empty strings. Raises TemplateRenderError when the
    template cannot be compiled or rendered.
    """
    try:
        template = _ENVIRONMENT.from_string(normalize_template(source))
        return template.render(dict(template_map))
    except TemplateError as error:
        raise TemplateRenderError(str(error)) from error


def render_index(serve_root: Path, template_map: Mapping[str, str]) -> bytes:
    """Read ``index.html`` from the serve root and render it."""
    index_path = Path(serve_root) / INDEX_DOCUMENT
    try:
        source = index_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as error:
        raise TemplateRenderError(f"Unable to read {index_path}: {error}") from error
    rendered = render_template(source, template_map)
    if TEMPLATE_LOGGER.logger.isEnabledFor(logging.DEBUG):
        TEMPLATE_LOGGER.debug(
            "Index template rendered",
            extra={"event": "template_rendered", "bytes_out": len(rendered)},
        )
    return rendered.encode("utf-8")

"""Redirect table: path patterns with named captures mapped to destinations."""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional
from urllib.parse import urlsplit, urlunsplit

from static_server.domain.correlation_id import CorrelationLoggerAdapter
from static_server.domain.effective_config import ConfigWarning
from static_server.domain.errors import RedirectDestinationError

REDIRECT_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("static_server.pipeline.redirects"), {}
)

DEFAULT_SEGMENT_PATTERN = "[^/]+"
_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")
_UNSAFE_CHARS = re.compile(r"[\x00-\x20\x7f]")


def compile_pattern(pattern: str) -> re.Pattern:
    """Compile a route pattern such as ``/docs/{page}`` or ``/{id:[0-9]+}``.

    ``{name}`` matches one path segment, ``{name:regex}`` matches the given
    expression. The whole request path must match. Raises ValueError for
    malformed patterns.
    """
    if not pattern.startswith("/"):
        raise ValueError(f"pattern {pattern!r} must start with '/'")

    parts: list[str] = []
    names: set[str] = set()
    index = 0
    while index < len(pattern):
        char = pattern[index]
        if char == "}":
            raise ValueError(f"unbalanced braces in {pattern!r}")
        if char != "{":
            parts.append(re.escape(char))
            index += 1
            continue

        depth = 1
        end = index + 1
        while end < len(pattern) and depth:
            if pattern[end] == "{":
                depth += 1
            elif pattern[end] == "}":
                depth -= 1
            end += 1
        if depth:
            raise ValueError(f"unbalanced braces in {pattern!r}")

        name, sep, expression = pattern[index + 1 : end - 1].partition(":")
        name = name.strip()
        if not name:
            raise ValueError(f"missing variable name in {pattern!r}")
        if name in names:
            raise ValueError(f"duplicated variable {name!r} in {pattern!r}")
        names.add(name)
        if not sep:
            expression = DEFAULT_SEGMENT_PATTERN
        if not expression:
            raise ValueError(f"empty expression for {name!r} in {pattern!r}")
        try:
            re.compile(expression)
        except re.error as error:
            raise ValueError(f"invalid expression for {name!r}: {error}") from error
        parts.append(f"(?:{expression})")
        index = end

    return re.compile("".join(parts))


def is_literal_pattern(pattern: str) -> bool:
    return "{" not in pattern


@dataclass(frozen=True)
class RedirectRule:
    """One configured redirect; captured values are not used in the destination."""

    pattern: str
    destination: str
    matcher: re.Pattern

    @property
    def is_literal(self) -> bool:
        return is_literal_pattern(self.pattern)

    def matches(self, path: str) -> bool:
        return self.matcher.fullmatch(path) is not None


def compile_redirect_routes(
    routes: Mapping[str, str],
) -> tuple[list[RedirectRule], list[ConfigWarning]]:
    """Compile routes in configuration order, dropping invalid patterns.

    Overlapping patterns are reported as warnings since the table does not
    define which of two matching rules wins.
    """
    rules: list[RedirectRule] = []
    warnings: list[ConfigWarning] = []
    for pattern, destination in routes.items():
        try:
            matcher = compile_pattern(pattern)
        except ValueError as error:
            warnings.append(
                ConfigWarning(
                    "redirect_pattern_invalid",
                    f"Ignoring redirect route {pattern!r}: {error}",
                    pattern,
                )
            )
            continue
        rules.append(RedirectRule(pattern, destination, matcher))

    for position, rule in enumerate(rules):
        for other in rules[position + 1 :]:
            overlapping = rule.matcher.pattern == other.matcher.pattern
            if not overlapping and rule.is_literal:
                overlapping = other.matches(rule.pattern)
            if not overlapping and other.is_literal:
                overlapping = rule.matches(other.pattern)
            if overlapping:
                warnings.append(
                    ConfigWarning(
                        "redirect_pattern_overlap",
                        f"Redirect routes {rule.pattern!r} and {other.pattern!r} "
                        "can match the same path",
                        rule.pattern,
                    )
                )
    return rules, warnings


def build_location(destination: str, query: str = "") -> str:
    """Return the Location value for ``destination``.

    The request query string is kept for relative destinations only.
    Raises RedirectDestinationError when the destination is not a valid URL.
    """
    if not destination or _UNSAFE_CHARS.search(destination):
        raise RedirectDestinationError(destination)
    if _BAD_ESCAPE.search(destination):
        raise RedirectDestinationError(destination)
    try:
        parts = urlsplit(destination)
        _ = parts.port
    except ValueError as error:
        raise RedirectDestinationError(destination) from error

    if parts.scheme or parts.netloc:
        return destination
    first_segment = parts.path.split("/", 1)[0]
    if ":" in first_segment:
        raise RedirectDestinationError(destination)
    if not query:
        return destination
    merged = f"{parts.query}&{query}" if parts.query else query
    return urlunsplit(parts._replace(query=merged))


class RedirectTable:
    """Ordered redirect rules; literal patterns are tried first."""

    def __init__(self, rules: Iterable[RedirectRule]) -> None:
        ordered = list(rules)
        self._rules = [rule for rule in ordered if rule.is_literal] + [
            rule for rule in ordered if not rule.is_literal
        ]

    @classmethod
    def from_routes(
        cls, routes: Mapping[str, str]
    ) -> tuple["RedirectTable", list[ConfigWarning]]:
        rules, warnings = compile_redirect_routes(routes)
        return cls(rules), warnings

    @property
    def rules(self) -> tuple[RedirectRule, ...]:
        return tuple(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def match(self, path: str) -> Optional[RedirectRule]:
        for rule in self._rules:
            if rule.matches(path):
                if REDIRECT_LOGGER.logger.isEnabledFor(logging.DEBUG):
                    REDIRECT_LOGGER.debug(
                        "Redirect rule matched",
                        extra={
                            "event": "redirect_matched",
                            "route": path,
                            "pattern": rule.pattern,
                        },
                    )
                return rule
        return None

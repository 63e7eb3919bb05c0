"""The merged, read-only configuration used to build the request handler."""

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from static_server.domain.interpolation import expand_header_map, expand_template_map

DOTFILE_NAME = ".ghs.yaml"
DEFAULT_DISALLOWED_PATHS = frozenset({f"/{DOTFILE_NAME}", "/.env"})
DEFAULT_NOT_FOUND_FILE = "404.html"

_EMPTY: Mapping = MappingProxyType({})


def freeze_header_map(
    values: Optional[Mapping[str, Iterable[str]]],
) -> Mapping[str, tuple[str, ...]]:
    if not values:
        return _EMPTY
    return MappingProxyType({key: tuple(items) for key, items in values.items()})


def freeze_mapping(values: Optional[Mapping[str, str]]) -> Mapping[str, str]:
    if not values:
        return _EMPTY
    return MappingProxyType(dict(values))


@dataclass(frozen=True, slots=True)
class ConfigWarning:
    """A non-fatal problem noticed while resolving configuration."""

    code: str
    message: str
    path: Optional[str] = None


@dataclass(frozen=True)
class EffectiveConfig:
    """Immutable configuration for one serve cycle.

    Maps are exposed as read-only proxies so a built handler can be shared
    between worker threads without locking.
    """

    serve_root: Path
    history_mode: bool = False
    not_found_file: str = DEFAULT_NOT_FOUND_FILE
    header_map: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    header_map_enabled: bool = False
    template_map: Mapping[str, str] = field(default_factory=dict)
    redirect_routes: Mapping[str, str] = field(default_factory=dict)
    redirect_routes_enabled: bool = True
    gzip_enabled: bool = True
    disallowed_paths: frozenset[str] = DEFAULT_DISALLOWED_PATHS
    dotfile_loaded: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "serve_root", Path(self.serve_root))
        object.__setattr__(self, "header_map", freeze_header_map(self.header_map))
        object.__setattr__(self, "template_map", freeze_mapping(self.template_map))
        object.__setattr__(
            self, "redirect_routes", freeze_mapping(self.redirect_routes)
        )
        object.__setattr__(self, "disallowed_paths", frozenset(self.disallowed_paths))
        if not self.not_found_file:
            object.__setattr__(self, "not_found_file", DEFAULT_NOT_FOUND_FILE)

    def with_template_map(
        self, values: Mapping[str, str], env: Optional[Mapping[str, str]] = None
    ) -> "EffectiveConfig":
        """Return a copy using ``values`` as the template map.

        Values are environment-expanded unless the dotfile was loaded.
        """
        if not self.dotfile_loaded:
            values = expand_template_map(values, os.environ if env is None else env)
        return replace(self, template_map=values)

    def with_header_map(
        self,
        values: Mapping[str, Iterable[str]],
        env: Optional[Mapping[str, str]] = None,
    ) -> "EffectiveConfig":
        """Return a copy using ``values`` as the header map."""
        if not self.dotfile_loaded:
            values = expand_header_map(values, os.environ if env is None else env)
        return replace(self, header_map=values)

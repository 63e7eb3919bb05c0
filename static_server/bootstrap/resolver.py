"""Resolve the effective configuration from layered sources.

Sources are applied in order, each one overriding only the fields it sets:

1. environment variables (with documented defaults),
2. standalone YAML map files (header map, template map, redirect routes),
3. the ``.ghs.yaml`` dotfile at the root of the serve folder.

A field left as ``None`` in a layer is unset; empty maps and strings are
explicit values. Standalone file values have ``${VAR}`` placeholders expanded
against the environment, dotfile values are used verbatim.
"""

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Union

import yaml

from static_server.bootstrap.config import default_serve_folder, env_bool, env_str
from static_server.domain.correlation_id import CorrelationLoggerAdapter
from static_server.domain.effective_config import (
    DEFAULT_NOT_FOUND_FILE,
    DOTFILE_NAME,
    ConfigWarning,
    EffectiveConfig,
)
from static_server.domain.errors import (
    ConfigMissingError,
    ConfigParseError,
    DotfileParseError,
)
from static_server.domain.interpolation import expand_header_map, expand_template_map
from static_server.pipeline.redirects import compile_redirect_routes

RESOLVER_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("static_server.bootstrap.resolver"), {}
)

DEFAULT_HEADER_MAP_PATH = "./headers.yaml"
DEFAULT_TEMPLATE_MAP_PATH = "./template-map.yaml"
DEFAULT_REDIRECT_ROUTES_PATH = "./redirects.yaml"


@dataclass(frozen=True)
class ConfigLayer:
    """Values contributed by one configuration source; ``None`` means unset."""

    source: str
    history_mode: Optional[bool] = None
    not_found_file: Optional[str] = None
    header_map: Optional[dict[str, tuple[str, ...]]] = None
    header_map_enabled: Optional[bool] = None
    template_map: Optional[dict[str, str]] = None
    redirect_routes: Optional[dict[str, str]] = None
    redirect_routes_enabled: Optional[bool] = None
    gzip_enabled: Optional[bool] = None


def merge_layers(
    serve_root: Path,
    layers: Iterable[Optional[ConfigLayer]],
    dotfile_loaded: bool = False,
) -> EffectiveConfig:
    """Apply layers in order; later layers only override fields they set."""
    values: dict[str, Any] = {}
    for layer in layers:
        if layer is None:
            continue
        for item in fields(layer):
            if item.name == "source":
                continue
            value = getattr(layer, item.name)
            if value is None:
                continue
            # an empty 404 path restores whatever an earlier layer chose
            if item.name == "not_found_file" and value == "":
                continue
            values[item.name] = value
    return EffectiveConfig(serve_root=serve_root, dotfile_loaded=dotfile_loaded, **values)


def environment_layer(env: Mapping[str, str]) -> ConfigLayer:
    return ConfigLayer(
        source="environment",
        history_mode=env_bool("APP_VUEJS_HISTORY_MODE", False, env),
        not_found_file=env_str("APP_404_PAGE_FILE_NAME", DEFAULT_NOT_FOUND_FILE, env),
        header_map_enabled=env_bool("APP_HEADER_SET_ENABLE", False, env),
        redirect_routes_enabled=env_bool("APP_REDIRECT_ROUTES_ENABLED", True, env),
        gzip_enabled=env_bool("APP_HANDLE_GZIP", True, env),
    )


def _scalar_to_str(value: Any, where: str) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    raise ValueError(f"{where} must be a string, got {type(value).__name__}")


def _require_mapping(raw: Any, where: str) -> dict:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError(f"{where} must be a mapping, got {type(raw).__name__}")
    return raw


def coerce_template_map(raw: Any, where: str = "template map") -> dict[str, str]:
    mapping = _require_mapping(raw, where)
    return {
        str(key): _scalar_to_str(value, f"{where} value for {key!r}")
        for key, value in mapping.items()
    }


def coerce_header_map(
    raw: Any, where: str = "header map"
) -> dict[str, tuple[str, ...]]:
    mapping = _require_mapping(raw, where)
    result: dict[str, tuple[str, ...]] = {}
    for key, values in mapping.items():
        if not isinstance(values, list):
            values = [values]
        result[str(key)] = tuple(
            _scalar_to_str(value, f"{where} value for {key!r}") for value in values
        )
    return result


def coerce_redirect_routes(
    raw: Any, where: str = "redirect routes"
) -> dict[str, str]:
    mapping = _require_mapping(raw, where)
    routes: dict[str, str] = {}
    for key, value in mapping.items():
        if not isinstance(value, str):
            raise ValueError(f"{where} destination for {key!r} must be a string")
        routes[str(key)] = value
    return routes


def read_yaml_file(path: Union[str, Path]) -> Any:
    """Parse a YAML document from disk.

    Raises ConfigMissingError when the file is absent and ConfigParseError
    when it is not valid YAML.
    """
    file_path = Path(path)
    if not file_path.is_file():
        raise ConfigMissingError(f"Config file {file_path} not found", str(file_path))
    try:
        with open(file_path, "r", encoding="utf-8") as handle:
            return yaml.safe_load(handle)
    except yaml.YAMLError as error:
        raise ConfigParseError(
            f"Failed to parse {file_path}: {error}", str(file_path)
        ) from error
    except UnicodeDecodeError as error:
        raise ConfigParseError(
            f"Failed to decode {file_path}: {error}", str(file_path)
        ) from error


def dotfile_layer(serve_root: Path) -> Optional[ConfigLayer]:
    """Load ``.ghs.yaml`` from the serve folder, or None when there is none."""
    path = serve_root / DOTFILE_NAME
    if not path.is_file():
        return None
    try:
        raw = read_yaml_file(path)
    except ConfigParseError as error:
        raise DotfileParseError(str(error), str(path)) from error
    try:
        document = _require_mapping(raw, DOTFILE_NAME)
        # a present dotfile always decides history mode; absent or null means false
        history_mode = document.get("historyMode")
        if history_mode is None:
            history_mode = False
        if not isinstance(history_mode, bool):
            raise ValueError("historyMode must be a boolean")
        not_found_file = document.get("error404FilePath")
        if not_found_file is not None:
            not_found_file = _scalar_to_str(not_found_file, "error404FilePath")
        header_map = (
            coerce_header_map(document["headerMap"], "headerMap")
            if document.get("headerMap") is not None
            else None
        )
        template_map = (
            coerce_template_map(document["templateMap"], "templateMap")
            if document.get("templateMap") is not None
            else None
        )
        redirect_routes = (
            coerce_redirect_routes(document["redirectRoutes"], "redirectRoutes")
            if document.get("redirectRoutes") is not None
            else None
        )
    except ValueError as error:
        raise DotfileParseError(f"Invalid {path}: {error}", str(path)) from error

    return ConfigLayer(
        source="dotfile",
        history_mode=history_mode,
        not_found_file=not_found_file,
        header_map=header_map,
        header_map_enabled=True if header_map is not None else None,
        template_map=template_map,
        redirect_routes=redirect_routes,
    )


def _missing_notice(
    error: ConfigMissingError, feature: str, warnings: list[ConfigWarning]
) -> None:
    RESOLVER_LOGGER.info(
        f"{feature} file not found, continuing without it",
        extra={"event": "config_file_missing", "path": error.path},
    )
    warnings.append(ConfigWarning("config_file_missing", str(error), error.path))


def _load_standalone(path: str, coerce, feature: str) -> Any:
    raw = read_yaml_file(path)
    try:
        return coerce(raw, feature)
    except ValueError as error:
        raise ConfigParseError(f"Invalid {feature} in {path}: {error}", path) from error


def standalone_layer(
    env: Mapping[str, str],
    tentative: EffectiveConfig,
    dotfile: Optional[ConfigLayer],
    warnings: list[ConfigWarning],
) -> ConfigLayer:
    """Load the standalone map files that are enabled and not set by the dotfile."""
    header_map = None
    template_map = None
    redirect_routes = None

    if tentative.header_map_enabled and (dotfile is None or dotfile.header_map is None):
        path = env_str("APP_HEADER_MAP_PATH", DEFAULT_HEADER_MAP_PATH, env)
        try:
            loaded = _load_standalone(path, coerce_header_map, "header map")
            header_map = expand_header_map(loaded, env)
        except ConfigMissingError as error:
            _missing_notice(error, "Header map", warnings)

    if tentative.history_mode and (dotfile is None or dotfile.template_map is None):
        path = env_str("APP_TEMPLATE_MAP_PATH", DEFAULT_TEMPLATE_MAP_PATH, env)
        try:
            loaded = _load_standalone(path, coerce_template_map, "template map")
            template_map = expand_template_map(loaded, env)
        except ConfigMissingError as error:
            _missing_notice(error, "Template map", warnings)

    if tentative.redirect_routes_enabled and (
        dotfile is None or dotfile.redirect_routes is None
    ):
        path = env_str("APP_REDIRECT_ROUTES_PATH", DEFAULT_REDIRECT_ROUTES_PATH, env)
        try:
            redirect_routes = _load_standalone(
                path, coerce_redirect_routes, "redirect routes"
            )
        except ConfigMissingError as error:
            _missing_notice(error, "Redirect routes", warnings)
        except ConfigParseError as error:
            RESOLVER_LOGGER.warning(
                "Failed to load redirect routes",
                extra={"event": "redirect_routes_invalid", "path": path},
            )
            warnings.append(ConfigWarning("redirect_routes_invalid", str(error), path))

    return ConfigLayer(
        source="files",
        header_map=header_map,
        template_map=template_map,
        redirect_routes=redirect_routes,
    )


def resolve(
    env: Optional[Mapping[str, str]] = None,
    serve_root: Optional[Union[str, Path]] = None,
) -> tuple[EffectiveConfig, list[ConfigWarning]]:
    """Build the effective configuration and collect non-fatal warnings.

    Raises ConfigParseError when an enabled standalone header or template map
    is malformed. A malformed dotfile is logged and ignored.
    """
    env = os.environ if env is None else env
    root = Path(serve_root if serve_root is not None else default_serve_folder(env))
    warnings: list[ConfigWarning] = []

    env_values = environment_layer(env)
    try:
        dotfile = dotfile_layer(root)
    except DotfileParseError as error:
        RESOLVER_LOGGER.error(
            "Ignoring malformed dotfile, serving with defaults",
            extra={"event": "dotfile_invalid", "path": error.path, "error": str(error)},
        )
        warnings.append(ConfigWarning("dotfile_invalid", str(error), error.path))
        dotfile = None

    tentative = merge_layers(root, [env_values, dotfile])
    files = standalone_layer(env, tentative, dotfile, warnings)
    config = merge_layers(
        root, [env_values, files, dotfile], dotfile_loaded=dotfile is not None
    )

    if config.redirect_routes_enabled and config.redirect_routes:
        _, redirect_warnings = compile_redirect_routes(config.redirect_routes)
        for warning in redirect_warnings:
            RESOLVER_LOGGER.warning(
                warning.message,
                extra={"event": warning.code, "pattern": warning.path},
            )
        warnings.extend(redirect_warnings)

    RESOLVER_LOGGER.info(
        "Configuration resolved",
        extra={
            "event": "config_resolved",
            "directory": str(root),
            "dotfile_loaded": config.dotfile_loaded,
            "history_mode": config.history_mode,
            "header_map_enabled": config.header_map_enabled,
            "redirect_count": len(config.redirect_routes),
            "gzip_enabled": config.gzip_enabled,
        },
    )
    return config, warnings

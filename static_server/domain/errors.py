"""Exception types shared by configuration loading and request handling."""

from typing import Optional


class ConfigError(Exception):
    """Base class for configuration problems detected at startup."""

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        super().__init__(message)
        self.path = path


class ConfigParseError(ConfigError):
    """An explicitly configured standalone YAML file could not be parsed."""


class ConfigMissingError(ConfigError):
    """A standalone configuration file does not exist."""


class DotfileParseError(ConfigError):
    """The serve folder dotfile is malformed; its contents are discarded."""


class TemplateRenderError(Exception):
    """The history mode shell template failed to parse or render."""


class RedirectDestinationError(Exception):
    """A redirect destination cannot be parsed as a URL."""

    def __init__(self, destination: str, pattern: Optional[str] = None) -> None:
        message = f"Unable to parse redirect destination {destination!r}"
        if pattern is not None:
            message = f"{message} for route {pattern!r}"
        super().__init__(message)
        self.destination = destination
        self.pattern = pattern


class ForbiddenPath(Exception):
    """Raised when a requested path escapes the serve folder."""


class ListenerError(Exception):
    """A listener socket could not be created or its TLS material loaded."""

"""Environment placeholder expansion for values read from standalone map files."""

import re
from typing import Iterable, Mapping

_PLACEHOLDER = re.compile(r"\$\{([^}]*)\}|\$([A-Za-z_][A-Za-z0-9_]*)")


def expand_env(value: str, env: Mapping[str, str]) -> str:
    """Replace ``${VAR}`` and ``$VAR`` with values from ``env``.

    Unknown variables expand to an empty string. A ``$`` that does not start a
    placeholder is kept as-is.
    """

    def _substitute(match: re.Match) -> str:
        name = match.group(1) if match.group(1) is not None else match.group(2)
        return env.get(name, "")

    return _PLACEHOLDER.sub(_substitute, value)


def expand_template_map(
    values: Mapping[str, str], env: Mapping[str, str]
) -> dict[str, str]:
    return {key: expand_env(value, env) for key, value in values.items()}


def expand_header_map(
    values: Mapping[str, Iterable[str]], env: Mapping[str, str]
) -> dict[str, tuple[str, ...]]:
    return {
        key: tuple(expand_env(item, env) for item in items)
        for key, items in values.items()
    }

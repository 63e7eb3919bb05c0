"""Filesystem sandbox utilities for safe path resolution."""

import re
from pathlib import Path, PurePosixPath
from typing import Iterable

from static_server.domain.errors import ForbiddenPath


def resolve_sandbox_path(directory: Path, user_path: str) -> Path:
    """Resolve a URL path inside the serve folder.

    An empty path or ``/`` resolves to the folder itself.
    """
    if "\x00" in user_path:
        raise ForbiddenPath

    directory_root = Path(directory).resolve()
    relative_part = user_path.lstrip("/")
    if not relative_part:
        return directory_root

    if ".." in PurePosixPath(relative_part).parts:
        raise ForbiddenPath

    target = (directory_root / relative_part).resolve()
    if not (target == directory_root or directory_root in target.parents):
        raise ForbiddenPath

    return target


def is_disallowed(request_path: str, patterns: Iterable[str]) -> bool:
    """Return True when the URL path matches one of the disallow globs.

    Matching is per path segment, so ``*`` never spans a ``/``.
    """
    candidate = PurePosixPath(re.sub(r"/{2,}", "/", request_path or "/"))
    for pattern in patterns:
        try:
            if candidate.match(pattern) and len(candidate.parts) == len(
                PurePosixPath(pattern).parts
            ):
                return True
        except ValueError:
            continue
    return False

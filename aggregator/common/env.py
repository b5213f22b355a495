"""Environment helpers: ``.env`` loading and ``${NAME}`` expansion."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

from .exceptions import ConfigError

PLACEHOLDER_RE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


def load_env(path: Path | str = Path(".env")) -> None:
    """Load environment variables from ``path`` if it exists.

    Variables already present in ``os.environ`` are not overwritten. Values
    wrapped in matching single or double quotes are unquoted.
    """

    env_path = Path(path)
    if not env_path.exists():
        return

    for line in env_path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export "):]
        key, sep, value = line.partition("=")
        if not sep:
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
            value = value[1:-1]
        os.environ.setdefault(key.strip(), value)


def expand_placeholders(value: Any, *, component: str = "config") -> Any:
    """Return ``value`` with ``${NAME}`` replaced from the environment.

    Dicts and lists are walked recursively; non-string leaves are returned
    unchanged. A placeholder naming an unset variable raises
    :class:`ConfigError`.
    """

    if isinstance(value, dict):
        return {key: expand_placeholders(item, component=component) for key, item in value.items()}
    if isinstance(value, list):
        return [expand_placeholders(item, component=component) for item in value]
    if not isinstance(value, str):
        return value

    def _substitute(match: re.Match[str]) -> str:
        name = match.group(1)
        resolved = os.environ.get(name)
        if resolved is None:
            raise ConfigError(component, "environment variable is not set", {"variable": name})
        return resolved

    return PLACEHOLDER_RE.sub(_substitute, value)


__all__ = ["load_env", "expand_placeholders"]

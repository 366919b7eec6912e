"""Dotenv loading for provider credentials such as ``EODHD_API_KEY``."""

from __future__ import annotations

import os
from pathlib import Path

from tradebricks.core.utils.errors import ConfigLoadError

_QUOTES = ("'", '"')


def _parse_line(line: str, location: str) -> tuple[str, str] | None:
    """Return ``(key, value)`` for an assignment line, ``None`` for blanks and comments."""
    stripped = line.strip()
    if not stripped or stripped.startswith("#"):
        return None
    stripped = stripped.removeprefix("export ").strip()
    key, separator, raw_value = stripped.partition("=")
    key = key.strip()
    if not separator or not key:
        raise ConfigLoadError(f"Invalid dotenv assignment at {location}")

    value = raw_value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in _QUOTES:
        value = value[1:-1]
    return key, value


def load_dotenv(path: Path = Path(".env"), override: bool = False) -> dict[str, str]:
    """
    Export ``KEY=value`` lines from a dotenv file into ``os.environ``.

    A missing file is not an error. Existing variables win unless ``override``.

    Returns:
        Variables set by this call.
    """
    resolved_path = path.expanduser().resolve()
    if not resolved_path.exists():
        return {}
    if not resolved_path.is_file():
        raise ConfigLoadError(f"Dotenv path is not a file: {resolved_path}")

    loaded: dict[str, str] = {}
    with resolved_path.open("r", encoding="utf-8") as handle:
        for line_number, raw_line in enumerate(handle, start=1):
            parsed = _parse_line(raw_line, f"{resolved_path}:{line_number}")
            if parsed is None:
                continue
            key, value = parsed
            if key in os.environ and not override:
                continue
            os.environ[key] = value
            loaded[key] = value
    return loaded

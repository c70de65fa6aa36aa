from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any, Dict

DEFAULT_CONFIG_PATH = Path("config.toml")
ROOT_TABLE = "wa_recall"


def load_raw_config(path: str | Path | None = None) -> Dict[str, Any]:
    """
    Parse ``config.toml`` (or ``path``) into a plain dict.

    A missing file yields ``{}`` so every setting falls back to its
    environment variable or default.
    """
    target = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    if not target.is_file():
        return {}

    with target.open("rb") as handle:
        return tomllib.load(handle)


def section(raw: Dict[str, Any] | None, *names: str) -> Dict[str, Any]:
    """Return the ``[wa_recall.<names...>]`` table, or ``{}`` when absent."""
    table = (raw or {}).get(ROOT_TABLE, {})
    for name in names:
        table = table.get(name, {}) if isinstance(table, dict) else {}
    return table if isinstance(table, dict) else {}


__all__ = ["load_raw_config", "section", "DEFAULT_CONFIG_PATH"]

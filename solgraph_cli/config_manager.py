"""Configuration manager for SolGraph using TOML files."""

from __future__ import annotations

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import toml

logger = logging.getLogger(__name__)


DEFAULT_CONFIG: Dict[str, Dict[str, Any]] = {
    "analysis": {
        "import_depth": 3,
        "call_depth": 10,
        "timeout": 10.0,
        "include_source": True,
    },
    "github": {
        "token": "",
    },
}


def config_file() -> Path:
    base = Path(os.environ.get("SOLGRAPH_HOME", str(Path.home() / ".solgraph"))).expanduser()
    return base / "config.toml"


def load_config(path: Optional[Path] = None) -> Dict[str, Dict[str, Any]]:
    """Load configuration from the TOML file, overlaid on defaults.

    Unknown sections are ignored; a missing or unreadable file yields
    the defaults.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)
    path = path or config_file()
    if not path.exists():
        return config

    try:
        with open(path, "r", encoding="utf-8") as f:
            loaded = toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", path, exc)
        return config

    for section, values in config.items():
        overrides = loaded.get(section)
        if isinstance(overrides, dict):
            values.update({k: v for k, v in overrides.items() if k in values})
    return config


def save_config(updates: Dict[str, Dict[str, Any]], path: Optional[Path] = None) -> Path:
    """Merge *updates* into the TOML file, preserving other keys.

    Returns the path written.
    """
    path = path or config_file()
    current: Dict[str, Any] = {}
    if path.exists():
        try:
            current = toml.loads(path.read_text(encoding="utf-8"))
        except toml.TomlDecodeError:
            logger.warning("Overwriting unreadable config %s", path)

    for section, values in updates.items():
        current.setdefault(section, {}).update(values)

    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        toml.dump(current, f)
    return path

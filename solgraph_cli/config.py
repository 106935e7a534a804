"""Configuration paths and analysis defaults for SolGraph."""

from __future__ import annotations

import os

from dotenv import load_dotenv

from . import __version__
from .config_manager import load_config

load_dotenv()

SOURCE_EXTENSION = ".sol"
USER_AGENT = f"solgraph-cli/{__version__}"

_toml_config = load_config()

# Analysis defaults, loaded from ~/.solgraph/config.toml (set via `solgraph set-config`)
IMPORT_DEPTH: int = int(_toml_config["analysis"]["import_depth"])
CALL_DEPTH: int = int(_toml_config["analysis"]["call_depth"])
FETCH_TIMEOUT: float = float(_toml_config["analysis"]["timeout"])
INCLUDE_SOURCE: bool = bool(_toml_config["analysis"]["include_source"])

# The environment wins over the config file for credentials.
GITHUB_TOKEN: str = os.environ.get("GITHUB_TOKEN", "") or _toml_config["github"].get("token", "")

"""Configuration paths for LogLive."""

from __future__ import annotations

import os
from pathlib import Path

BASE_DIR = Path(os.environ.get("LOGLIVE_HOME", str(Path.home() / ".loglive"))).expanduser()
CONFIG_FILE = BASE_DIR / "config.toml"
SUPPORTED_EXTENSIONS = {".ts", ".mts", ".cts", ".tsx", ".js", ".mjs", ".cjs", ".jsx"}


def ensure_base_dirs() -> None:
    """Create the configuration directory if needed."""
    BASE_DIR.mkdir(parents=True, exist_ok=True)

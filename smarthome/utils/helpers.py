"""Utility functions for smarthome runtime paths and logging."""

import os
import sys
from pathlib import Path

from loguru import logger

DATA_DIR_NAME = ".smarthome"


def ensure_dir(path: Path) -> Path:
    """Ensure a directory exists, creating it if necessary."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_path() -> Path:
    """
    Get the runtime data directory.

    Priority:
    1. `SMARTHOME_DATA_DIR` env override
    2. `~/.smarthome`
    """
    env_path = str(os.environ.get("SMARTHOME_DATA_DIR") or "").strip()
    if env_path:
        return ensure_dir(Path(env_path).expanduser())
    return ensure_dir(Path.home() / DATA_DIR_NAME)


def configure_logging(level: str = "INFO", file: str = "") -> None:
    """Reset loguru sinks to stderr at ``level`` plus an optional rotating file."""
    logger.remove()
    logger.add(sys.stderr, level=str(level or "INFO").upper())
    if file:
        path = Path(file).expanduser()
        ensure_dir(path.parent)
        logger.add(str(path), level=str(level or "INFO").upper(), rotation="10 MB", retention=5)

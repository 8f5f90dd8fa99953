"""Utility helpers for smarthome."""

from smarthome.utils.helpers import configure_logging, ensure_dir, get_data_path

__all__ = ["configure_logging", "ensure_dir", "get_data_path"]

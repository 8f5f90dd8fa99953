"""Configuration module for smarthome."""

from smarthome.config.loader import get_config_path, load_config
from smarthome.config.schema import Config

__all__ = ["Config", "load_config", "get_config_path"]

"""
Storage Layer.

This package handles persistence of the client configuration file.
"""

from .config_manager import ConfigManager, default_config_path

__all__ = ["ConfigManager", "default_config_path"]

"""
Storage Layer.

This package handles data on disk: the INI configuration file and the
filesystem TV library that supplies theme song candidates.
"""

from .config_manager import ConfigManager
from .library import FilesystemLibrary

__all__ = ["ConfigManager", "FilesystemLibrary"]

"""Configuration files (YAML) and the helpers that load them.

Packaged defaults live next to this module; :class:`ConfigManager` merges
them with user overrides.
"""

from .manager import ConfigManager

__all__ = [
    "ConfigManager",
]

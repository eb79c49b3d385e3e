"""Plugin records, sealed snapshots and the registry that owns them."""

from .models import (
    DEFAULT_AUGROUP,
    AugroupEntry,
    AutocmdSpec,
    KeymapSpec,
    OptionValue,
    Plugin,
    PluginState,
    ServerConfig,
    Snapshot,
    UserCommandSpec,
    default_augroup,
)
from .registry import PluginRegistry, RegistryStats

__all__ = [
    "DEFAULT_AUGROUP",
    "AugroupEntry",
    "AutocmdSpec",
    "KeymapSpec",
    "OptionValue",
    "Plugin",
    "PluginState",
    "ServerConfig",
    "Snapshot",
    "UserCommandSpec",
    "default_augroup",
    "PluginRegistry",
    "RegistryStats",
]

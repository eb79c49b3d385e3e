"""Dataclasses describing plugins and their sealed configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Union

OptionValue = Union[bool, int, str]

DEFAULT_AUGROUP = "rns_engine"


class PluginState(str, Enum):
    """Lifecycle states; declaration order is the forward lifecycle order."""

    REGISTERED = "registered"
    INSTALLED = "installed"
    CONFIG_LOADED = "config_loaded"
    FAILED = "failed"


def _frozen_mapping(value: Mapping[str, object]) -> Mapping[str, object]:
    return MappingProxyType(dict(value))


@dataclass(frozen=True, slots=True)
class Plugin:
    """Registry record; replaced wholesale on every transition."""

    name: str
    source: str
    state: PluginState = PluginState.REGISTERED
    path: Optional[str] = None
    failure: Optional[str] = None
    applied_revision: int = 0

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("plugin name cannot be empty")
        if not self.source:
            raise ValueError("plugin source cannot be empty")


@dataclass(frozen=True, slots=True)
class ServerConfig:
    """Language-server options declared by one plugin (or globally)."""

    name: str
    plugin: Optional[str] = None
    options: Mapping[str, object] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("server name cannot be empty")
        object.__setattr__(self, "options", _frozen_mapping(self.options))

    @property
    def identity(self) -> tuple[Optional[str], str]:
        return (self.plugin, self.name)


@dataclass(frozen=True, slots=True)
class KeymapSpec:
    """Key sequence bound to an action, optionally owned by a plugin."""

    mode: str
    lhs: str
    rhs: str
    owner: Optional[str] = None
    opts: Mapping[str, object] = field(default_factory=dict)
    buffer: Optional[int] = None

    def __post_init__(self) -> None:
        if not self.mode:
            raise ValueError("keymap mode cannot be empty")
        if not self.lhs:
            raise ValueError("keymap lhs cannot be empty")
        object.__setattr__(self, "opts", _frozen_mapping(self.opts))

    @property
    def identity(self) -> tuple[str, str, Optional[int]]:
        return (self.mode, self.lhs, self.buffer)


@dataclass(frozen=True, slots=True)
class AugroupEntry:
    name: str
    clear: bool = True
    source: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("augroup name cannot be empty")


def default_augroup(source: Optional[str]) -> str:
    """Clearing group that holds the ungrouped autocmds of one source."""

    if source is None:
        return DEFAULT_AUGROUP
    return f"{DEFAULT_AUGROUP}_{source}"


@dataclass(frozen=True, slots=True)
class AutocmdSpec:
    event: str
    pattern: str
    command: str
    group: Optional[str] = None
    source: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.event:
            raise ValueError("autocmd event cannot be empty")
        if not self.command:
            raise ValueError("autocmd command cannot be empty")


@dataclass(frozen=True, slots=True)
class UserCommandSpec:
    name: str
    command: str
    opts: Mapping[str, object] = field(default_factory=dict)
    source: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("user command name cannot be empty")
        if not self.name[0].isupper():
            raise ValueError(f"user command '{self.name}' must start with an uppercase letter")
        object.__setattr__(self, "opts", _frozen_mapping(self.opts))


@dataclass(frozen=True, slots=True)
class Snapshot:
    """Immutable configuration sealed when a plugin's scope closes."""

    plugin: str
    revision: int
    servers: tuple[ServerConfig, ...] = ()
    keymaps: tuple[KeymapSpec, ...] = ()
    augroups: tuple[AugroupEntry, ...] = ()
    autocmds: tuple[AutocmdSpec, ...] = ()
    user_commands: tuple[UserCommandSpec, ...] = ()
    raw_config: Optional[str] = None

    def server(self, name: str) -> ServerConfig:
        for server in self.servers:
            if server.name == name:
                return server
        raise KeyError(f"Snapshot for '{self.plugin}' has no server '{name}'")

    @property
    def server_names(self) -> tuple[str, ...]:
        return tuple(server.name for server in self.servers)


__all__ = [
    "DEFAULT_AUGROUP",
    "OptionValue",
    "PluginState",
    "Plugin",
    "ServerConfig",
    "KeymapSpec",
    "AugroupEntry",
    "AutocmdSpec",
    "UserCommandSpec",
    "Snapshot",
    "default_augroup",
]

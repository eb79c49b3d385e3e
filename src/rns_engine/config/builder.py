"""Stack-scoped builder that seals per-plugin configuration snapshots."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Dict, Iterator, List, Mapping, Optional

from rns_engine.errors import (
    NoOpenScopeError,
    ScopeAlreadyOpenError,
    UnknownPluginError,
    UnknownServerError,
)
from rns_engine.plugins.models import (
    AugroupEntry,
    AutocmdSpec,
    KeymapSpec,
    ServerConfig,
    Snapshot,
    UserCommandSpec,
    default_augroup,
)
from rns_engine.plugins.registry import PluginRegistry
from rns_engine.runtime.telemetry import span


@dataclass(slots=True)
class ConfigScope:
    """Open frame accumulating declarations for one plugin."""

    plugin: str
    servers: Dict[str, Dict[str, object]] = field(default_factory=dict)
    keymaps: List[KeymapSpec] = field(default_factory=list)
    augroups: List[AugroupEntry] = field(default_factory=list)
    autocmds: List[AutocmdSpec] = field(default_factory=list)
    user_commands: Dict[str, UserCommandSpec] = field(default_factory=dict)
    raw_config: Optional[str] = None

    def seal(self, revision: int) -> Snapshot:
        return Snapshot(
            plugin=self.plugin,
            revision=revision,
            servers=tuple(
                ServerConfig(name=name, plugin=self.plugin, options=options)
                for name, options in self.servers.items()
            ),
            keymaps=tuple(self.keymaps),
            augroups=tuple(self.augroups),
            autocmds=tuple(self.autocmds),
            user_commands=tuple(self.user_commands.values()),
            raw_config=self.raw_config,
        )


class ConfigBuilder:
    """Explicit LIFO stack of ``ConfigScope`` frames.

    Every declaration lands in the top frame. Nothing becomes visible to the
    resolver until ``end`` seals the frame and commits the snapshot to the
    registry, replacing the plugin's previous snapshot.
    """

    def __init__(
        self, registry: PluginRegistry, *, logger_name: str | None = None
    ) -> None:
        self._registry = registry
        self._logger_name = logger_name
        self._stack: List[ConfigScope] = []

    @property
    def depth(self) -> int:
        return len(self._stack)

    @property
    def open_scopes(self) -> tuple[str, ...]:
        return tuple(frame.plugin for frame in self._stack)

    def current(self, operation: str = "current") -> ConfigScope:
        if not self._stack:
            raise NoOpenScopeError(operation)
        return self._stack[-1]

    def begin(self, name: str) -> ConfigScope:
        with span(
            "config::begin",
            logger_name=self._logger_name,
            component="config",
            metadata={"plugin": name, "depth": len(self._stack)},
        ):
            if name not in self._registry:
                raise UnknownPluginError(name)
            if name in self.open_scopes:
                raise ScopeAlreadyOpenError(name)
            frame = ConfigScope(plugin=name)
            self._stack.append(frame)
            return frame

    def end(self) -> Snapshot:
        with span(
            "config::end",
            logger_name=self._logger_name,
            component="config",
            metadata={"depth": len(self._stack)},
        ) as handle:
            if not self._stack:
                raise NoOpenScopeError("end")
            frame = self._stack.pop()
            snapshot = frame.seal(self._registry.next_revision())
            handle.add_metadata("plugin", snapshot.plugin)
            handle.add_metadata("revision", snapshot.revision)
            return self._registry.commit_snapshot(snapshot)

    @contextmanager
    def scope(self, name: str) -> Iterator[ConfigScope]:
        """``begin``/``end`` pair; a failing body discards the frame instead."""

        frame = self.begin(name)
        try:
            yield frame
        except BaseException:
            if self._stack and self._stack[-1] is frame:
                self._stack.pop()
            raise
        if not self._stack or self._stack[-1] is not frame:
            raise NoOpenScopeError("end")
        self.end()

    def add_server(self, server_name: str) -> Mapping[str, object]:
        frame = self.current("add_server")
        if not server_name:
            raise ValueError("server name cannot be empty")
        options = frame.servers.setdefault(server_name, {})
        return MappingProxyType(options)

    def set_server_option(self, server: str, key: str, value: object) -> None:
        frame = self.current("set_server_option")
        if server not in frame.servers:
            raise UnknownServerError(frame.plugin, server)
        if not key:
            raise ValueError("server option key cannot be empty")
        frame.servers[server][key] = value

    def add_keymap(
        self,
        mode: str,
        key: str,
        action: str,
        *,
        opts: Optional[Mapping[str, object]] = None,
        plugin: Optional[str] = None,
        buffer: Optional[int] = None,
    ) -> KeymapSpec:
        frame = self.current("add_keymap")
        owner = frame.plugin
        if plugin:
            if plugin not in self._registry:
                raise UnknownPluginError(plugin)
            owner = plugin
        spec = KeymapSpec(
            mode=mode,
            lhs=key,
            rhs=action,
            owner=owner,
            opts=opts or {},
            buffer=buffer,
        )
        frame.keymaps.append(spec)
        return spec

    def add_mapping(self, plugin: str, mode: str, key: str, action: str) -> KeymapSpec:
        self.current("add_mapping")
        return self.add_keymap(mode, key, action, plugin=plugin)

    def add_augroup(self, name: str, *, clear: bool = True) -> AugroupEntry:
        frame = self.current("add_augroup")
        if clear:
            frame.autocmds = [cmd for cmd in frame.autocmds if cmd.group != name]
        entry = AugroupEntry(name=name, clear=clear, source=frame.plugin)
        frame.augroups.append(entry)
        return entry

    def add_autocmd(
        self,
        event: str,
        pattern: str,
        command: str,
        *,
        group: Optional[str] = None,
    ) -> AutocmdSpec:
        frame = self.current("add_autocmd")
        if group is None:
            group = default_augroup(frame.plugin)
            if not any(entry.name == group for entry in frame.augroups):
                frame.augroups.append(AugroupEntry(name=group, source=frame.plugin))
        spec = AutocmdSpec(
            event=event,
            pattern=pattern,
            command=command,
            group=group,
            source=frame.plugin,
        )
        frame.autocmds.append(spec)
        return spec

    def add_user_command(
        self,
        name: str,
        command: str,
        *,
        opts: Optional[Mapping[str, object]] = None,
    ) -> UserCommandSpec:
        frame = self.current("add_user_command")
        spec = UserCommandSpec(
            name=name, command=command, opts=opts or {}, source=frame.plugin
        )
        frame.user_commands[name] = spec
        return spec

    def set_raw_config(self, code: str) -> None:
        self.current("set_raw_config").raw_config = code

    def configure(self, name: str, raw: str) -> Optional[Snapshot]:
        """Attach raw configuration code to a plugin.

        With an open scope for ``name`` the code is staged on that frame and
        sealed by its ``end``; otherwise a new snapshot superseding the current
        one is committed immediately.
        """

        with span(
            "config::configure",
            logger_name=self._logger_name,
            component="config",
            metadata={"plugin": name},
        ):
            if name not in self._registry:
                raise UnknownPluginError(name)
            for frame in self._stack:
                if frame.plugin == name:
                    frame.raw_config = raw
                    return None
            previous = self._registry.snapshot(name)
            revision = self._registry.next_revision()
            if previous is None:
                snapshot = Snapshot(plugin=name, revision=revision, raw_config=raw)
            else:
                snapshot = replace(previous, revision=revision, raw_config=raw)
            return self._registry.commit_snapshot(snapshot)


__all__ = ["ConfigBuilder", "ConfigScope"]

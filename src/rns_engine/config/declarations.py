"""Ownerless declarations recorded by flat (non-scoped) calls."""

from __future__ import annotations

from typing import Dict, List, Mapping, Optional

from rns_engine.plugins.models import (
    AugroupEntry,
    AutocmdSpec,
    KeymapSpec,
    OptionValue,
    ServerConfig,
    UserCommandSpec,
    default_augroup,
)


class GlobalDeclarations:
    """Session-wide configuration that belongs to no plugin.

    Options, globals, user commands and servers are keyed by name and the
    latest declaration wins. Keymaps and autocmds append; conflicts among
    them are decided later by the resolver. Ungrouped autocmds share one
    clearing group so that replaying them never stacks duplicates.
    """

    def __init__(self) -> None:
        self._options: Dict[str, OptionValue] = {}
        self._globals: Dict[str, object] = {}
        self._augroups: List[AugroupEntry] = []
        self._autocmds: List[AutocmdSpec] = []
        self._keymaps: List[KeymapSpec] = []
        self._user_commands: Dict[str, UserCommandSpec] = {}
        self._servers: Dict[str, ServerConfig] = {}
        self._default_group: Optional[AugroupEntry] = None

    @property
    def options(self) -> Mapping[str, OptionValue]:
        return dict(self._options)

    @property
    def globals(self) -> Mapping[str, object]:
        return dict(self._globals)

    @property
    def augroups(self) -> tuple[AugroupEntry, ...]:
        return tuple(self._augroups)

    @property
    def autocmds(self) -> tuple[AutocmdSpec, ...]:
        return tuple(self._autocmds)

    @property
    def keymaps(self) -> tuple[KeymapSpec, ...]:
        return tuple(self._keymaps)

    @property
    def user_commands(self) -> tuple[UserCommandSpec, ...]:
        return tuple(self._user_commands.values())

    @property
    def servers(self) -> tuple[ServerConfig, ...]:
        return tuple(self._servers.values())

    @property
    def default_group(self) -> Optional[AugroupEntry]:
        """Clearing group created by the first ungrouped autocmd, if any."""

        return self._default_group

    def set_option(self, name: str, value: OptionValue) -> None:
        if not name:
            raise ValueError("option name cannot be empty")
        self._options[name] = value

    def set_global(self, name: str, value: object) -> None:
        if not name:
            raise ValueError("global name cannot be empty")
        self._globals[name] = value

    def add_augroup(
        self, name: str, *, clear: bool = True, source: Optional[str] = None
    ) -> AugroupEntry:
        if clear:
            self._autocmds = [cmd for cmd in self._autocmds if cmd.group != name]
        entry = AugroupEntry(name=name, clear=clear, source=source)
        self._augroups.append(entry)
        return entry

    def add_autocmd(
        self,
        event: str,
        pattern: str,
        command: str,
        *,
        group: Optional[str] = None,
    ) -> AutocmdSpec:
        if group is None:
            if self._default_group is None:
                self._default_group = self.add_augroup(default_augroup(None))
            group = self._default_group.name
        spec = AutocmdSpec(event=event, pattern=pattern, command=command, group=group)
        self._autocmds.append(spec)
        return spec

    def add_keymap(
        self,
        mode: str,
        lhs: str,
        rhs: str,
        *,
        opts: Optional[Mapping[str, object]] = None,
        buffer: Optional[int] = None,
    ) -> KeymapSpec:
        spec = KeymapSpec(mode=mode, lhs=lhs, rhs=rhs, opts=opts or {}, buffer=buffer)
        self._keymaps.append(spec)
        return spec

    def discard_keymap(self, spec: KeymapSpec) -> None:
        """Forget ``spec`` (matched with ``is``); used when it cannot resolve."""

        self._keymaps = [kept for kept in self._keymaps if kept is not spec]

    def add_user_command(
        self, name: str, command: str, *, opts: Optional[Mapping[str, object]] = None
    ) -> UserCommandSpec:
        spec = UserCommandSpec(name=name, command=command, opts=opts or {})
        self._user_commands[name] = spec
        return spec

    def setup_server(self, name: str, options: Mapping[str, object]) -> ServerConfig:
        config = ServerConfig(name=name, options=options)
        self._servers[name] = config
        return config


__all__ = ["GlobalDeclarations"]

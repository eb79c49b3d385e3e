"""Resolved host operations, one dataclass per primitive."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import ClassVar, Optional, Union

from rns_engine.host.adapter import HostAdapter
from rns_engine.plugins.models import (
    AugroupEntry,
    AutocmdSpec,
    KeymapSpec,
    OptionValue,
    ServerConfig,
    UserCommandSpec,
)


class Stage(IntEnum):
    """Fixed application order; later stages may reference earlier ones."""

    OPTIONS = 1
    GLOBALS = 2
    AUGROUPS = 3
    AUTOCMDS = 4
    KEYMAPS = 5
    USER_COMMANDS = 6
    SERVERS = 7
    EXECUTION = 8


@dataclass(frozen=True, slots=True)
class SetOption:
    stage: ClassVar[Stage] = Stage.OPTIONS

    name: str
    value: OptionValue
    origin: Optional[str] = None

    @property
    def identity(self) -> str:
        return f"option:{self.name}"

    def apply(self, host: HostAdapter) -> None:
        host.set_option(self.name, self.value)


@dataclass(frozen=True, slots=True)
class SetGlobal:
    stage: ClassVar[Stage] = Stage.GLOBALS

    name: str
    value: object
    origin: Optional[str] = None

    @property
    def identity(self) -> str:
        return f"global:{self.name}"

    def apply(self, host: HostAdapter) -> None:
        host.set_global(self.name, self.value)


@dataclass(frozen=True, slots=True)
class CreateAugroup:
    stage: ClassVar[Stage] = Stage.AUGROUPS

    spec: AugroupEntry

    @property
    def origin(self) -> Optional[str]:
        return self.spec.source

    @property
    def identity(self) -> str:
        return f"augroup:{self.spec.name}"

    def apply(self, host: HostAdapter) -> None:
        host.create_augroup(self.spec.name, self.spec.clear)


@dataclass(frozen=True, slots=True)
class CreateAutocmd:
    stage: ClassVar[Stage] = Stage.AUTOCMDS

    spec: AutocmdSpec

    @property
    def origin(self) -> Optional[str]:
        return self.spec.source

    @property
    def identity(self) -> str:
        spec = self.spec
        return f"autocmd:{spec.group or '-'}:{spec.event}:{spec.pattern}"

    def apply(self, host: HostAdapter) -> None:
        spec = self.spec
        host.create_autocmd(spec.event, spec.pattern, spec.command, spec.group)


@dataclass(frozen=True, slots=True)
class CreateKeymap:
    """Keymap claimed by ``spec.owner`` and applied with ``origin``'s batch."""

    stage: ClassVar[Stage] = Stage.KEYMAPS

    spec: KeymapSpec
    origin: Optional[str] = None

    @property
    def identity(self) -> str:
        spec = self.spec
        if spec.buffer is not None:
            return f"keymap:{spec.mode}:{spec.lhs}@{spec.buffer}"
        return f"keymap:{spec.mode}:{spec.lhs}"

    def apply(self, host: HostAdapter) -> None:
        spec = self.spec
        if spec.buffer is not None:
            host.buffer_keymap(spec.buffer, spec.mode, spec.lhs, spec.rhs, spec.opts)
        else:
            host.create_keymap(spec.mode, spec.lhs, spec.rhs, spec.opts)


@dataclass(frozen=True, slots=True)
class CreateUserCommand:
    stage: ClassVar[Stage] = Stage.USER_COMMANDS

    spec: UserCommandSpec

    @property
    def origin(self) -> Optional[str]:
        return self.spec.source

    @property
    def identity(self) -> str:
        return f"command:{self.spec.name}"

    def apply(self, host: HostAdapter) -> None:
        host.create_user_command(self.spec.name, self.spec.command, self.spec.opts)


@dataclass(frozen=True, slots=True)
class SetupServer:
    stage: ClassVar[Stage] = Stage.SERVERS

    server: ServerConfig

    @property
    def origin(self) -> Optional[str]:
        return self.server.plugin

    @property
    def identity(self) -> str:
        owner = self.server.plugin or "-"
        return f"server:{owner}/{self.server.name}"

    def apply(self, host: HostAdapter) -> None:
        host.setup_lsp(self.server.name, self.server.options)


@dataclass(frozen=True, slots=True)
class ExecCommand:
    stage: ClassVar[Stage] = Stage.EXECUTION

    command: str
    origin: Optional[str] = None

    @property
    def identity(self) -> str:
        return f"exec:{self.command}"

    def apply(self, host: HostAdapter) -> None:
        host.exec_command(self.command)


@dataclass(frozen=True, slots=True)
class ExecCode:
    stage: ClassVar[Stage] = Stage.EXECUTION

    code: str
    origin: Optional[str] = None
    label: Optional[str] = None

    @property
    def identity(self) -> str:
        if self.label:
            return f"code:{self.label}"
        first_line = self.code.strip().splitlines()[0] if self.code.strip() else ""
        return f"code:{first_line[:40]}"

    def apply(self, host: HostAdapter) -> None:
        host.exec_code(self.code)


Operation = Union[
    SetOption,
    SetGlobal,
    CreateAugroup,
    CreateAutocmd,
    CreateKeymap,
    CreateUserCommand,
    SetupServer,
    ExecCommand,
    ExecCode,
]


__all__ = [
    "Stage",
    "Operation",
    "SetOption",
    "SetGlobal",
    "CreateAugroup",
    "CreateAutocmd",
    "CreateKeymap",
    "CreateUserCommand",
    "SetupServer",
    "ExecCommand",
    "ExecCode",
]

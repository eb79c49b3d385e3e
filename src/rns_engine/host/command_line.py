"""Host adapter that renders primitives into Ex / Lua command lines."""

from __future__ import annotations

import re
from typing import Callable, List, Mapping, Optional, Sequence

from rns_engine.errors import HostCallError
from rns_engine.plugins.models import OptionValue

CommandExecutor = Callable[[str], int]

_LUA_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_MAP_FLAGS = ("nowait", "silent", "script", "expr", "unique")
_COMMAND_FLAGS = ("nargs", "complete", "range", "count", "addr")
_COMMAND_SWITCHES = ("bang", "bar", "register", "buffer", "keepscript")


def lua_string(value: str) -> str:
    escaped = (
        value.replace("\\", "\\\\")
        .replace("'", "\\'")
        .replace("\n", "\\n")
        .replace("\r", "\\r")
    )
    return f"'{escaped}'"


def to_lua(value: object) -> str:
    """Render a Python value as a Lua literal."""

    if value is None:
        return "nil"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, str):
        return lua_string(value)
    if isinstance(value, Mapping):
        if not value:
            return "{}"
        parts = []
        for key, item in value.items():
            key_text = str(key)
            if _LUA_IDENTIFIER.match(key_text):
                parts.append(f"{key_text} = {to_lua(item)}")
            else:
                parts.append(f"[{lua_string(key_text)}] = {to_lua(item)}")
        return "{ " + ", ".join(parts) + " }"
    if isinstance(value, (list, tuple)):
        if not value:
            return "{}"
        return "{ " + ", ".join(to_lua(item) for item in value) + " }"
    raise TypeError(f"Cannot render {type(value).__name__} as Lua")


def escape_option_value(value: str) -> str:
    return re.sub(r"([\\ |\"])", r"\\\1", value)


def render_set_option(name: str, value: OptionValue) -> str:
    if isinstance(value, bool):
        return f"set {name}" if value else f"set no{name}"
    if isinstance(value, int):
        return f"set {name}={value}"
    return f"set {name}={escape_option_value(str(value))}"


def render_set_global(name: str, value: object) -> str:
    if isinstance(value, str):
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        return f'let g:{name}="{escaped}"'
    if isinstance(value, bool):
        return f"let g:{name}=v:{'true' if value else 'false'}"
    if isinstance(value, int):
        return f"let g:{name}={value}"
    return f"lua vim.g[{lua_string(name)}] = {to_lua(value)}"


def render_keymap(
    mode: str,
    lhs: str,
    rhs: str,
    opts: Mapping[str, object],
    *,
    buffer: Optional[int] = None,
) -> str:
    command = f"{mode}noremap" if opts.get("noremap") else f"{mode}map"
    flags: List[str] = []
    if buffer is not None:
        flags.append("<buffer>" if buffer == 0 else f"<buffer={buffer}>")
    flags.extend(f"<{flag}>" for flag in _MAP_FLAGS if opts.get(flag))
    prefix = "".join(flags)
    return f"{command} {prefix}{' ' if prefix else ''}{lhs} {rhs}"


def render_user_command(name: str, command: str, opts: Mapping[str, object]) -> str:
    attrs: List[str] = []
    for flag in _COMMAND_FLAGS:
        if flag in opts and opts[flag] is not None and opts[flag] is not False:
            value = opts[flag]
            attrs.append(f"-{flag}" if value is True else f"-{flag}={value}")
    attrs.extend(f"-{switch}" for switch in _COMMAND_SWITCHES if opts.get(switch))
    parts: Sequence[str] = ["command!", *attrs, name, command]
    return " ".join(parts)


def render_augroup(name: str, clear: bool) -> str:
    flag = "true" if clear else "false"
    return f"lua vim.api.nvim_create_augroup({lua_string(name)}, {{ clear = {flag} }})"


def render_autocmd(
    event: str, pattern: str, command: str, group: Optional[str]
) -> str:
    fields = {"pattern": pattern, "command": command}
    if group is not None:
        fields["group"] = group
    return f"lua vim.api.nvim_create_autocmd({lua_string(event)}, {to_lua(fields)})"


def render_setup_lsp(server: str, config: Mapping[str, object]) -> str:
    return f"lua require'lspconfig'.{server}.setup({to_lua(dict(config))})"


class CommandLineHost:
    """Adapter that turns each primitive into one command line.

    ``execute`` receives the rendered line and returns the host status;
    anything other than ``success_status`` raises :class:`HostCallError`.
    """

    def __init__(self, execute: CommandExecutor, *, success_status: int = 0) -> None:
        self._execute = execute
        self._success_status = success_status
        self.history: List[str] = []

    def _run(self, primitive: str, line: str) -> None:
        self.history.append(line)
        status = self._execute(line)
        if status != self._success_status:
            raise HostCallError(
                primitive, f"'{line}' returned status {status}", status=status
            )

    def set_option(self, name: str, value: OptionValue) -> None:
        self._run("set_option", render_set_option(name, value))

    def set_global(self, name: str, value: object) -> None:
        self._run("set_global", render_set_global(name, value))

    def create_augroup(self, name: str, clear: bool) -> None:
        self._run("create_augroup", render_augroup(name, clear))

    def create_autocmd(
        self, event: str, pattern: str, command: str, group: Optional[str]
    ) -> None:
        self._run("create_autocmd", render_autocmd(event, pattern, command, group))

    def create_keymap(
        self, mode: str, lhs: str, rhs: str, opts: Mapping[str, object]
    ) -> None:
        self._run("create_keymap", render_keymap(mode, lhs, rhs, opts))

    def buffer_keymap(
        self, buffer: int, mode: str, lhs: str, rhs: str, opts: Mapping[str, object]
    ) -> None:
        self._run("buffer_keymap", render_keymap(mode, lhs, rhs, opts, buffer=buffer))

    def create_user_command(
        self, name: str, command: str, opts: Mapping[str, object]
    ) -> None:
        self._run("create_user_command", render_user_command(name, command, opts))

    def setup_lsp(self, server: str, config: Mapping[str, object]) -> None:
        self._run("setup_lsp", render_setup_lsp(server, config))

    def exec_command(self, command: str) -> None:
        self._run("exec_command", command)

    def exec_code(self, code: str) -> None:
        self._run("exec_code", f"lua {code}")


__all__ = [
    "CommandLineHost",
    "CommandExecutor",
    "to_lua",
    "lua_string",
    "render_set_option",
    "render_set_global",
    "render_keymap",
    "render_user_command",
    "render_augroup",
    "render_autocmd",
    "render_setup_lsp",
]

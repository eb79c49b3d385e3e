"""In-memory host that models editor state for tests and dry runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from rns_engine.errors import HostCallError
from rns_engine.plugins.models import OptionValue

RejectRule = Tuple[str, Callable[..., bool], str]


@dataclass(frozen=True, slots=True)
class AutocmdRecord:
    event: str
    pattern: str
    command: str


@dataclass(slots=True)
class HostState:
    """Observable host state; excludes one-shot execution logs."""

    options: Dict[str, OptionValue] = field(default_factory=dict)
    globals: Dict[str, object] = field(default_factory=dict)
    augroups: Dict[str, List[AutocmdRecord]] = field(default_factory=dict)
    autocmds: List[AutocmdRecord] = field(default_factory=list)
    keymaps: Dict[Tuple[str, str], Tuple[str, Dict[str, object]]] = field(
        default_factory=dict
    )
    buffer_keymaps: Dict[Tuple[int, str, str], Tuple[str, Dict[str, object]]] = field(
        default_factory=dict
    )
    user_commands: Dict[str, Tuple[str, Dict[str, object]]] = field(
        default_factory=dict
    )
    servers: Dict[str, Dict[str, object]] = field(default_factory=dict)

    def copy(self) -> "HostState":
        return HostState(
            options=dict(self.options),
            globals=dict(self.globals),
            augroups={name: list(cmds) for name, cmds in self.augroups.items()},
            autocmds=list(self.autocmds),
            keymaps=dict(self.keymaps),
            buffer_keymaps=dict(self.buffer_keymaps),
            user_commands=dict(self.user_commands),
            servers={name: dict(cfg) for name, cfg in self.servers.items()},
        )


class RecordingHost:
    """Host adapter keeping state in dictionaries and logging every call.

    ``reject`` installs rules that make matching calls raise
    :class:`HostCallError`, which is how partial failures are simulated.
    """

    def __init__(self) -> None:
        self.state = HostState()
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []
        self.executed: List[str] = []
        self.executed_code: List[str] = []
        self._rules: List[RejectRule] = []

    def reject(
        self,
        primitive: str,
        predicate: Optional[Callable[..., bool]] = None,
        *,
        reason: str = "rejected by host",
    ) -> None:
        self._rules.append((primitive, predicate or (lambda *_args: True), reason))

    def _record(self, primitive: str, *args: Any) -> None:
        self.calls.append((primitive, args))
        for name, predicate, reason in self._rules:
            if name == primitive and predicate(*args):
                raise HostCallError(primitive, reason)

    def set_option(self, name: str, value: OptionValue) -> None:
        self._record("set_option", name, value)
        if not isinstance(value, (bool, int, str)):
            raise HostCallError("set_option", f"unsupported value type for '{name}'")
        self.state.options[name] = value

    def set_global(self, name: str, value: object) -> None:
        self._record("set_global", name, value)
        self.state.globals[name] = value

    def create_augroup(self, name: str, clear: bool) -> None:
        self._record("create_augroup", name, clear)
        if clear or name not in self.state.augroups:
            self.state.augroups[name] = []

    def create_autocmd(
        self, event: str, pattern: str, command: str, group: Optional[str]
    ) -> None:
        self._record("create_autocmd", event, pattern, command, group)
        record = AutocmdRecord(event=event, pattern=pattern, command=command)
        if group is None:
            self.state.autocmds.append(record)
            return
        if group not in self.state.augroups:
            raise HostCallError("create_autocmd", f"unknown augroup '{group}'")
        self.state.augroups[group].append(record)

    def create_keymap(
        self, mode: str, lhs: str, rhs: str, opts: Mapping[str, object]
    ) -> None:
        self._record("create_keymap", mode, lhs, rhs, dict(opts))
        self.state.keymaps[(mode, lhs)] = (rhs, dict(opts))

    def buffer_keymap(
        self, buffer: int, mode: str, lhs: str, rhs: str, opts: Mapping[str, object]
    ) -> None:
        self._record("buffer_keymap", buffer, mode, lhs, rhs, dict(opts))
        self.state.buffer_keymaps[(buffer, mode, lhs)] = (rhs, dict(opts))

    def create_user_command(
        self, name: str, command: str, opts: Mapping[str, object]
    ) -> None:
        self._record("create_user_command", name, command, dict(opts))
        self.state.user_commands[name] = (command, dict(opts))

    def setup_lsp(self, server: str, config: Mapping[str, object]) -> None:
        self._record("setup_lsp", server, dict(config))
        self.state.servers[server] = dict(config)

    def exec_command(self, command: str) -> None:
        self._record("exec_command", command)
        self.executed.append(command)

    def exec_code(self, code: str) -> None:
        self._record("exec_code", code)
        self.executed_code.append(code)

    def snapshot(self) -> HostState:
        return self.state.copy()

    def primitives(self) -> List[str]:
        return [name for name, _ in self.calls]


__all__ = ["RecordingHost", "HostState", "AutocmdRecord"]

"""Integer-status call surface named after the exported C header.

Each method returns ``0`` on success or the :class:`ErrorKind` ordinal of the
failure. Batch calls keep their full report on :attr:`AbiSurface.last_report`
so a host can inspect per-item failures after a nonzero status.
"""

from __future__ import annotations

from typing import Callable, Optional, Union

from rns_engine.config.options import (
    command_rhs,
    parse_bool,
    parse_flag_options,
    parse_json_object,
)
from rns_engine.engine import Engine
from rns_engine.errors import EngineError, ErrorKind
from rns_engine.host.adapter import HostAdapter
from rns_engine.host.command_line import CommandExecutor, CommandLineHost
from rns_engine.host.recording import RecordingHost
from rns_engine.lifecycle.manager import LifecycleReport
from rns_engine.pipeline import ApplyReport
from rns_engine.runtime.telemetry import record_warning
from rns_engine.settings import EngineSettings

SUCCESS = 0

Report = Union[ApplyReport, LifecycleReport]


def _optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    text = value.strip()
    return text or None


def status_of(report: Report) -> int:
    if report.failed:
        return int(report.failed[0].kind)
    return SUCCESS


class AbiSurface:
    """Flat functions over one :class:`Engine`, never raising engine errors."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self.last_report: Optional[Report] = None
        self.last_error: Optional[BaseException] = None

    def _call(self, name: str, func: Callable[[], object]) -> int:
        self.last_error = None
        self.last_report = None
        try:
            result = func()
        except (EngineError, ValueError, TypeError) as exc:
            self.last_error = exc
            kind = exc.kind if isinstance(exc, EngineError) else ErrorKind.INVALID_ARGUMENT
            record_warning(
                "abi.call_failed",
                data={"call": name, "kind": kind.name, "reason": str(exc)},
                logger_name=self.engine.settings.logger_name,
            )
            return int(kind)
        if isinstance(result, (ApplyReport, LifecycleReport)):
            self.last_report = result
            return status_of(result)
        return SUCCESS

    # Host primitives

    def nvim_set_option_bool(self, name: str, value: int) -> int:
        return self._call(
            "nvim_set_option_bool", lambda: self.engine.set_option(name, bool(value))
        )

    def nvim_set_option_int(self, name: str, value: int) -> int:
        return self._call(
            "nvim_set_option_int", lambda: self.engine.set_option(name, int(value))
        )

    def nvim_set_option_string(self, name: str, value: str) -> int:
        return self._call(
            "nvim_set_option_string", lambda: self.engine.set_option(name, str(value))
        )

    def nvim_set_global(self, name: str, value: str) -> int:
        return self._call("nvim_set_global", lambda: self.engine.set_global(name, value))

    def nvim_create_keymap(
        self, mode: str, lhs: str, rhs: str, opts: Optional[str] = None
    ) -> int:
        return self._call(
            "nvim_create_keymap",
            lambda: self.engine.create_keymap(
                mode, lhs, rhs, opts=parse_flag_options(opts)
            ),
        )

    def nvim_buf_set_keymap(
        self, buffer: int, mode: str, lhs: str, rhs: str, opts: Optional[str] = None
    ) -> int:
        return self._call(
            "nvim_buf_set_keymap",
            lambda: self.engine.buffer_keymap(
                int(buffer), mode, lhs, rhs, opts=parse_flag_options(opts)
            ),
        )

    def nvim_create_user_command(
        self, name: str, command: str, opts: Optional[str] = None
    ) -> int:
        return self._call(
            "nvim_create_user_command",
            lambda: self.engine.create_user_command(
                name, command, opts=parse_flag_options(opts)
            ),
        )

    def nvim_create_augroup(self, name: str, clear: int) -> int:
        return self._call(
            "nvim_create_augroup",
            lambda: self.engine.create_augroup(name, clear=parse_bool(clear)),
        )

    def nvim_create_autocmd(
        self, event: str, pattern: str, command: str, group: Optional[str] = None
    ) -> int:
        return self._call(
            "nvim_create_autocmd",
            lambda: self.engine.create_autocmd(
                event, pattern, command, group=_optional(group)
            ),
        )

    # Both spellings exist in the header and share one implementation.
    nvim_create_augroup_lua = nvim_create_augroup
    nvim_create_autocmd_lua = nvim_create_autocmd

    def nvim_exec_command(self, command: str) -> int:
        return self._call("nvim_exec_command", lambda: self.engine.exec_command(command))

    # Legacy calls

    def opt(self, key: str, old_val: str, new_val: str) -> int:
        return self._call("opt", lambda: self.engine.opt(key, old_val, new_val))

    def autocmd(self, event: str, pattern: str, command: str) -> int:
        return self._call("autocmd", lambda: self.engine.autocmd(event, pattern, command))

    def exec_lua(self, code: str) -> int:
        return self._call("exec_lua", lambda: self.engine.exec_code(code))

    def setup_lsp(self, server: str, config_json: Optional[str] = None) -> int:
        def run() -> ApplyReport:
            text = (config_json or "").strip()
            options = parse_json_object(text) if text else {}
            return self.engine.setup_lsp(server, options)

        return self._call("setup_lsp", run)

    def load_config(self, path: str) -> int:
        return self._call("load_config", lambda: self.engine.load_config(path))

    def require_setup(self, module: str, config: Optional[str] = None) -> int:
        return self._call(
            "require_setup", lambda: self.engine.require_setup(module, config or "")
        )

    # Plugin manager

    def register_plugin(self, name: str, url: str) -> int:
        return self._call("register_plugin", lambda: self.engine.register_plugin(name, url))

    def configure_plugin(self, name: str, config: str) -> int:
        return self._call(
            "configure_plugin", lambda: self.engine.configure_plugin(name, config)
        )

    def install_plugins(self) -> int:
        return self._call("install_plugins", self.engine.install)

    def load_plugin_configs(self) -> int:
        return self._call("load_plugin_configs", self.engine.load_configs)

    def update_plugins(self) -> int:
        return self._call("update_plugins", self.engine.update)

    # Structured plugin configuration

    def plugin_config_begin(self, plugin_name: str) -> int:
        return self._call(
            "plugin_config_begin", lambda: self.engine.begin_config(plugin_name)
        )

    def plugin_config_end(self) -> int:
        return self._call("plugin_config_end", self.engine.end_config)

    def plugin_config_add_server(self, server_name: str) -> int:
        return self._call(
            "plugin_config_add_server", lambda: self.engine.add_server(server_name)
        )

    def plugin_config_set_server_option(self, server: str, option: str, value: str) -> int:
        return self._call(
            "plugin_config_set_server_option",
            lambda: self.engine.set_server_option(server, option, value),
        )

    def plugin_config_set_mapping(
        self, plugin: str, mode: str, key: str, action: str
    ) -> int:
        return self._call(
            "plugin_config_set_mapping",
            lambda: self.engine.add_mapping(plugin, mode, key, action),
        )

    def plugin_config_add_keymap(
        self, mode: str, key: str, plugin: Optional[str], command: str
    ) -> int:
        return self._call(
            "plugin_config_add_keymap",
            lambda: self.engine.add_keymap(
                mode, key, command_rhs(command), plugin=_optional(plugin)
            ),
        )


def default_surface(
    execute: Optional[CommandExecutor] = None,
    *,
    settings: Optional[EngineSettings] = None,
) -> AbiSurface:
    """Surface over a command-line host, or an in-memory one for dry runs."""

    host: HostAdapter = CommandLineHost(execute) if execute else RecordingHost()
    return AbiSurface(Engine(host, settings=settings))


__all__ = ["AbiSurface", "SUCCESS", "default_surface", "status_of"]

"""Engine facade wiring registry, builder, resolver, pipeline and lifecycle."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, List, Mapping, Optional, Sequence

from rns_engine.config.builder import ConfigBuilder, ConfigScope
from rns_engine.config.declarations import GlobalDeclarations
from rns_engine.config.options import combine_option_values
from rns_engine.errors import KeymapConflictError
from rns_engine.host.adapter import HostAdapter
from rns_engine.host.command_line import lua_string
from rns_engine.lifecycle.fetch import GitSourceFetcher, SourceFetcher
from rns_engine.lifecycle.manager import LifecycleManager, LifecycleReport
from rns_engine.pipeline import ApplicationPipeline, ApplyReport
from rns_engine.plugins.models import (
    KeymapSpec,
    OptionValue,
    Plugin,
    PluginState,
    Snapshot,
)
from rns_engine.plugins.registry import PluginRegistry
from rns_engine.resolution.operations import ExecCode, ExecCommand, Operation
from rns_engine.resolution.resolver import ConflictResolver, Resolution
from rns_engine.runtime.events import EventBus
from rns_engine.runtime.telemetry import span
from rns_engine.settings import EngineSettings


class Engine:
    """One host session: every public call of the configuration engine.

    Structured declarations become visible when their scope ends and reach
    the host through :meth:`load_configs` (or :meth:`apply`). Flat calls are
    recorded as ownerless declarations and applied straight away through the
    same resolver and pipeline.
    """

    def __init__(
        self,
        host: HostAdapter,
        *,
        settings: Optional[EngineSettings] = None,
        fetcher: Optional[SourceFetcher] = None,
        bus: Optional[EventBus] = None,
    ) -> None:
        self.settings = settings or EngineSettings.from_env()
        logger_name = self.settings.logger_name
        self.bus = bus or EventBus()
        self.host = host
        self.registry = PluginRegistry(logger_name=logger_name)
        self.builder = ConfigBuilder(self.registry, logger_name=logger_name)
        self.declarations = GlobalDeclarations()
        self.resolver = ConflictResolver(logger_name=logger_name)
        self.pipeline = ApplicationPipeline(host, bus=self.bus, logger_name=logger_name)
        self.lifecycle = LifecycleManager(
            self.registry,
            self.pipeline,
            fetcher or GitSourceFetcher(self.settings),
            settings=self.settings,
            resolver=self.resolver,
            declarations=lambda: self.declarations,
            bus=self.bus,
        )

    # Registry and lifecycle

    def register_plugin(self, name: str, source: str) -> Plugin:
        return self.registry.register(name, source)

    def plugin(self, name: str) -> Plugin:
        return self.registry.lookup(name)

    def configure_plugin(self, name: str, raw: str) -> Optional[Snapshot]:
        return self.builder.configure(name, raw)

    def install(self) -> LifecycleReport:
        return self.lifecycle.install()

    def update(self) -> LifecycleReport:
        return self.lifecycle.update()

    def load_configs(self) -> LifecycleReport:
        return self.lifecycle.load_configs()

    # Structured configuration

    def begin_config(self, name: str) -> ConfigScope:
        return self.builder.begin(name)

    def end_config(self) -> Snapshot:
        return self.builder.end()

    @contextmanager
    def config(self, name: str) -> Iterator[ConfigScope]:
        with self.builder.scope(name) as frame:
            yield frame

    def add_server(self, server_name: str) -> Mapping[str, object]:
        return self.builder.add_server(server_name)

    def set_server_option(self, server: str, key: str, value: object) -> None:
        self.builder.set_server_option(server, key, value)

    def add_mapping(self, plugin: str, mode: str, key: str, action: str) -> KeymapSpec:
        return self.builder.add_mapping(plugin, mode, key, action)

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
        return self.builder.add_keymap(
            mode, key, action, opts=opts, plugin=plugin, buffer=buffer
        )

    # Whole-session resolution

    def resolve(self) -> Resolution:
        return self.resolver.resolve(self.registry.snapshots(), self.declarations)

    def apply(self) -> ApplyReport:
        """Re-apply the full resolved configuration of this session."""

        with span("engine::apply", logger_name=self.settings.logger_name):
            return self.pipeline.apply(self.resolve().operations, label="session")

    # Flat declarations

    def set_option(self, name: str, value: OptionValue) -> ApplyReport:
        self.declarations.set_option(name, value)
        return self._apply_declared(
            self._resolve_declared().for_identity(f"option:{name}"), "set_option"
        )

    def opt(self, key: str, old: str, new: str) -> ApplyReport:
        return self.set_option(key, combine_option_values(old, new))

    def set_global(self, name: str, value: object) -> ApplyReport:
        self.declarations.set_global(name, value)
        return self._apply_declared(
            self._resolve_declared().for_identity(f"global:{name}"), "set_global"
        )

    def create_augroup(self, name: str, *, clear: bool = True) -> ApplyReport:
        entry = self.declarations.add_augroup(name, clear=clear)
        return self._apply_subject("create_augroup", entry)

    def create_autocmd(
        self,
        event: str,
        pattern: str,
        command: str,
        *,
        group: Optional[str] = None,
    ) -> ApplyReport:
        fresh_group = group is None and self.declarations.default_group is None
        spec = self.declarations.add_autocmd(event, pattern, command, group=group)
        if fresh_group:
            return self._apply_subject(
                "create_autocmd", self.declarations.default_group, spec
            )
        return self._apply_subject("create_autocmd", spec)

    def autocmd(self, event: str, pattern: str, command: str) -> ApplyReport:
        return self.create_autocmd(event, pattern, command)

    def create_keymap(
        self,
        mode: str,
        lhs: str,
        rhs: str,
        *,
        opts: Optional[Mapping[str, object]] = None,
    ) -> ApplyReport:
        spec = self.declarations.add_keymap(mode, lhs, rhs, opts=opts)
        return self._apply_keymap(spec, "create_keymap")

    def buffer_keymap(
        self,
        buffer: int,
        mode: str,
        lhs: str,
        rhs: str,
        *,
        opts: Optional[Mapping[str, object]] = None,
    ) -> ApplyReport:
        spec = self.declarations.add_keymap(mode, lhs, rhs, opts=opts, buffer=buffer)
        return self._apply_keymap(spec, "buffer_keymap")

    def create_user_command(
        self,
        name: str,
        command: str,
        *,
        opts: Optional[Mapping[str, object]] = None,
    ) -> ApplyReport:
        spec = self.declarations.add_user_command(name, command, opts=opts)
        return self._apply_subject("create_user_command", spec)

    def setup_lsp(self, server: str, options: Mapping[str, object]) -> ApplyReport:
        config = self.declarations.setup_server(server, options)
        return self._apply_subject("setup_lsp", config)

    # One-shot execution, never recorded

    def exec_command(self, command: str) -> ApplyReport:
        return self.pipeline.apply([ExecCommand(command=command)], label="exec_command")

    def exec_code(self, code: str) -> ApplyReport:
        return self.pipeline.apply([ExecCode(code=code)], label="exec_code")

    def load_config(self, path: str) -> ApplyReport:
        return self.pipeline.apply(
            [ExecCommand(command=f"luafile {path}")], label="load_config"
        )

    def require_setup(self, module: str, config: str = "") -> ApplyReport:
        code = f"require({lua_string(module)}).setup({config.strip() or '{}'})"
        return self.pipeline.apply(
            [ExecCode(code=code, label=f"{module}.setup")], label="require_setup"
        )

    def _resolve_declared(self) -> Resolution:
        return self.resolver.resolve((), self.declarations)

    def _apply_subject(self, label: str, *subjects: object) -> ApplyReport:
        resolution = self._resolve_declared()
        operations: List[Operation] = []
        for subject in subjects:
            operations.extend(resolution.for_subject(subject))
        return self._apply_declared(operations, label)

    def _apply_keymap(self, spec: KeymapSpec, label: str) -> ApplyReport:
        # Only plugins whose configuration is live on the host can shadow.
        loaded = [
            snapshot
            for snapshot in self.registry.snapshots()
            if self.registry.lookup(snapshot.plugin).state is PluginState.CONFIG_LOADED
        ]
        try:
            resolution = self.resolver.resolve_keymap(spec, loaded, self.declarations)
        except KeymapConflictError:
            self.declarations.discard_keymap(spec)
            raise
        return self.pipeline.apply(
            resolution.for_subject(spec), label=label, shadowed=resolution.shadowed
        )

    def _apply_declared(self, operations: Sequence[Operation], label: str) -> ApplyReport:
        return self.pipeline.apply(operations, label=label)


__all__ = ["Engine"]

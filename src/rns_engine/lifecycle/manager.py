"""Install, update and load-config batches over the plugin registry."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Optional, Set

from rns_engine.config.declarations import GlobalDeclarations
from rns_engine.errors import ErrorKind, SourceFetchError
from rns_engine.host.command_line import escape_option_value
from rns_engine.pipeline import ApplicationPipeline, ApplyReport
from rns_engine.plugins.models import Plugin, PluginState, Snapshot
from rns_engine.plugins.registry import PluginRegistry
from rns_engine.resolution.operations import ExecCommand, Operation
from rns_engine.resolution.resolver import ConflictResolver
from rns_engine.runtime.events import EventBus
from rns_engine.runtime.telemetry import record_event, record_warning, span
from rns_engine.settings import EngineSettings

from .fetch import SourceFetcher

DeclarationsProvider = Callable[[], Optional[GlobalDeclarations]]

RUNTIME_REFRESH_COMMANDS = (
    "packloadall",
    "runtime! plugin/**/*.vim plugin/**/*.lua",
    "silent! helptags ALL",
)


@dataclass(frozen=True, slots=True)
class LifecycleFailure:
    plugin: str
    kind: ErrorKind
    reason: str


@dataclass(frozen=True, slots=True)
class LifecycleReport:
    """Per-plugin outcome of one lifecycle batch."""

    action: str
    succeeded: tuple[str, ...] = ()
    failed: tuple[LifecycleFailure, ...] = ()
    skipped: tuple[str, ...] = ()
    applied: ApplyReport = ApplyReport()

    @property
    def ok(self) -> bool:
        return not self.failed

    def failure_for(self, plugin: str) -> Optional[LifecycleFailure]:
        for failure in self.failed:
            if failure.plugin == plugin:
                return failure
        return None


class LifecycleManager:
    """Drives plugins through Registered -> Installed -> ConfigLoaded.

    Every batch continues past individual failures and reports them; a
    second run of the same batch only touches plugins that still need it.
    """

    def __init__(
        self,
        registry: PluginRegistry,
        pipeline: ApplicationPipeline,
        fetcher: SourceFetcher,
        *,
        settings: EngineSettings,
        resolver: Optional[ConflictResolver] = None,
        declarations: Optional[DeclarationsProvider] = None,
        bus: Optional[EventBus] = None,
    ) -> None:
        self.registry = registry
        self.pipeline = pipeline
        self.fetcher = fetcher
        self.settings = settings
        self.resolver = resolver or ConflictResolver(logger_name=settings.logger_name)
        self._declarations = declarations or (lambda: None)
        self._bus = bus
        self._logger_name = settings.logger_name

    def install(self) -> LifecycleReport:
        succeeded: List[str] = []
        failed: List[LifecycleFailure] = []
        skipped: List[str] = []
        new_paths: List[Plugin] = []
        with span(
            "lifecycle::install",
            logger_name=self._logger_name,
            component="lifecycle",
        ) as handle:
            for plugin in self.registry.iter_plugins():
                if plugin.state not in (PluginState.REGISTERED, PluginState.FAILED):
                    skipped.append(plugin.name)
                    continue
                try:
                    path = self.fetcher.install(plugin)
                except SourceFetchError as exc:
                    self._move(plugin.name, PluginState.FAILED, failure=exc.reason)
                    failed.append(
                        LifecycleFailure(plugin.name, exc.kind, exc.reason)
                    )
                    record_warning(
                        "lifecycle.install_failed",
                        data={"plugin": plugin.name, "reason": exc.reason},
                        logger_name=self._logger_name,
                    )
                    continue
                new_paths.append(self._move(plugin.name, PluginState.INSTALLED, path=path))
                succeeded.append(plugin.name)
            handle.add_metadata("installed", len(succeeded))
            handle.add_metadata("failed", len(failed))

        applied = ApplyReport()
        if new_paths and self.settings.refresh_runtime:
            applied = self._refresh_runtime(new_paths, label="install")
        return self._finish("install", succeeded, failed, skipped, applied)

    def update(self) -> LifecycleReport:
        succeeded: List[str] = []
        failed: List[LifecycleFailure] = []
        skipped: List[str] = []
        with span(
            "lifecycle::update",
            logger_name=self._logger_name,
            component="lifecycle",
        ) as handle:
            for plugin in self.registry.iter_plugins():
                if plugin.state not in (PluginState.INSTALLED, PluginState.CONFIG_LOADED):
                    skipped.append(plugin.name)
                    continue
                try:
                    self.fetcher.update(plugin)
                except SourceFetchError as exc:
                    # State is kept; only the reason is recorded.
                    self.registry.annotate(plugin.name, failure=exc.reason)
                    failed.append(
                        LifecycleFailure(plugin.name, exc.kind, exc.reason)
                    )
                    record_warning(
                        "lifecycle.update_failed",
                        data={"plugin": plugin.name, "reason": exc.reason},
                        logger_name=self._logger_name,
                    )
                    continue
                self.registry.annotate(plugin.name, failure=None)
                succeeded.append(plugin.name)
            handle.add_metadata("updated", len(succeeded))
            handle.add_metadata("failed", len(failed))

        applied = ApplyReport()
        if succeeded and self.settings.refresh_runtime:
            applied = self._refresh_runtime([], label="update")
        return self._finish("update", succeeded, failed, skipped, applied)

    def load_configs(self) -> LifecycleReport:
        """Apply each eligible plugin's resolved operations as its own batch.

        Keymap conflicts are checked across every snapshot, so they raise
        before anything reaches the host. Operations are resolved only over
        plugins that are loaded or loading in this pass, so a plugin that
        never loads cannot reset another plugin's augroups.
        """

        succeeded: List[str] = []
        failed: List[LifecycleFailure] = []
        skipped: List[str] = []
        applied = ApplyReport()
        with span(
            "lifecycle::load_configs",
            logger_name=self._logger_name,
            component="lifecycle",
        ) as handle:
            snapshots = self.registry.snapshots()
            declarations = self._declarations()
            self.resolver.check_conflicts(snapshots, declarations)

            pending: List[tuple[Plugin, Snapshot]] = []
            active: Set[str] = set()
            for plugin in self.registry.iter_plugins():
                snapshot = (
                    self.registry.snapshot(plugin.name)
                    if plugin.state in (PluginState.INSTALLED, PluginState.CONFIG_LOADED)
                    else None
                )
                if snapshot is None:
                    skipped.append(plugin.name)
                    continue
                active.add(plugin.name)
                if (
                    plugin.state is PluginState.CONFIG_LOADED
                    and snapshot.revision <= plugin.applied_revision
                ):
                    skipped.append(plugin.name)
                    continue
                pending.append((plugin, snapshot))

            resolution = self.resolver.resolve(
                [snapshot for snapshot in snapshots if snapshot.plugin in active],
                declarations,
            )
            for plugin, snapshot in pending:
                report = self.pipeline.apply(
                    resolution.for_origin(plugin.name), label=plugin.name
                )
                applied = applied.merge(report)
                if report.ok:
                    if plugin.state is PluginState.INSTALLED:
                        self._move(plugin.name, PluginState.CONFIG_LOADED)
                    else:
                        self.registry.annotate(plugin.name, failure=None)
                    self.registry.mark_applied(plugin.name, snapshot.revision)
                    succeeded.append(plugin.name)
                    continue

                reason = "; ".join(
                    f"{item.identity}: {item.reason}" for item in report.failed
                )
                self.registry.annotate(plugin.name, failure=reason)
                failed.append(
                    LifecycleFailure(
                        plugin.name, ErrorKind.PRIMITIVE_APPLY_FAILURE, reason
                    )
                )
            handle.add_metadata("loaded", len(succeeded))
            handle.add_metadata("failed", len(failed))

        return self._finish("load_configs", succeeded, failed, skipped, applied)

    def _move(
        self,
        name: str,
        state: PluginState,
        *,
        path: Optional[str] = None,
        failure: Optional[str] = None,
    ) -> Plugin:
        plugin = self.registry.transition(name, state, path=path, failure=failure)
        record_event(
            "lifecycle.transition",
            data={"plugin": name, "state": state.value},
            logger_name=self._logger_name,
        )
        if self._bus is not None:
            self._bus.emit("plugin.transition", plugin)
        return plugin

    def _refresh_runtime(self, plugins: List[Plugin], *, label: str) -> ApplyReport:
        operations: List[Operation] = [
            ExecCommand(
                command=f"set runtimepath^={escape_option_value(plugin.path)}",
                origin=plugin.name,
            )
            for plugin in plugins
            if plugin.path
        ]
        operations.extend(ExecCommand(command=cmd) for cmd in RUNTIME_REFRESH_COMMANDS)
        return self.pipeline.apply(operations, label=f"{label}.runtime")

    def _finish(
        self,
        action: str,
        succeeded: List[str],
        failed: List[LifecycleFailure],
        skipped: List[str],
        applied: ApplyReport,
    ) -> LifecycleReport:
        report = LifecycleReport(
            action=action,
            succeeded=tuple(succeeded),
            failed=tuple(failed),
            skipped=tuple(skipped),
            applied=applied,
        )
        record_event(
            f"lifecycle.{action}",
            data={
                "succeeded": len(report.succeeded),
                "failed": len(report.failed),
                "skipped": len(report.skipped),
            },
            logger_name=self._logger_name,
        )
        if self._bus is not None:
            self._bus.emit("lifecycle.report", report)
        return report


__all__ = [
    "LifecycleManager",
    "LifecycleReport",
    "LifecycleFailure",
    "RUNTIME_REFRESH_COMMANDS",
]

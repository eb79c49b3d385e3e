"""Textual adapter that wires engine bus events into UI callbacks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Sequence, Tuple

from rns_engine.engine import Engine
from rns_engine.errors import EngineError
from rns_engine.lifecycle.manager import LifecycleReport
from rns_engine.pipeline import ApplyReport
from rns_engine.plugins.models import Plugin

PluginRow = Tuple[str, str, str, str]


def _noop(*_args, **_kwargs) -> None:  # pragma: no cover - default hook
    return None


@dataclass(slots=True)
class TextualUIHooks:
    """Callbacks invoked by the adapter to update Textual widgets."""

    update_plugins: Callable[[Sequence[PluginRow]], None]
    update_status: Callable[[str], None] = _noop
    show_report: Callable[[List[str]], None] = _noop
    handle_event: Callable[[str, object | None], None] = _noop
    log: Callable[[str], None] = _noop


def plugin_row(plugin: Plugin) -> PluginRow:
    return (
        plugin.name,
        plugin.state.value,
        str(plugin.applied_revision or "-"),
        plugin.failure or "",
    )


def describe_report(report: ApplyReport | LifecycleReport) -> List[str]:
    if isinstance(report, LifecycleReport):
        lines = [
            f"{report.action}: {len(report.succeeded)} ok, "
            f"{len(report.failed)} failed, {len(report.skipped)} skipped"
        ]
        lines.extend(f"  {f.plugin}: {f.kind.name} {f.reason}" for f in report.failed)
        return lines
    lines = [f"applied {len(report.applied)} of {report.total}"]
    lines.extend(f"  {f.identity}: {f.reason}" for f in report.failed)
    return lines


class TextualEngineAdapter:
    """Bridges an :class:`Engine` and its bus to a Textual-friendly surface."""

    ACTIONS = ("install", "update", "load_configs", "apply")

    def __init__(self, engine: Engine, hooks: TextualUIHooks) -> None:
        self.engine = engine
        self.hooks = hooks
        self._subscribe_events()
        self._refresh_plugins()

    def run_action(self, name: str) -> ApplyReport | LifecycleReport | None:
        """Run one engine batch by name and surface its report."""

        if name not in self.ACTIONS:
            raise ValueError(f"Unknown action '{name}'")
        self._log(f"action -> {name}")
        try:
            report = getattr(self.engine, name)()
        except EngineError as exc:
            self.hooks.update_status(f"{name}: {exc.kind.name}")
            self._log(f"action !! {name} {exc}")
            return None
        lines = describe_report(report)
        self.hooks.show_report(lines)
        self.hooks.update_status(lines[0])
        self._refresh_plugins()
        return report

    def rows(self) -> List[PluginRow]:
        return [plugin_row(plugin) for plugin in self.engine.registry.iter_plugins()]

    def _subscribe_events(self) -> None:
        bus = self.engine.bus
        for event in ("plugin.transition", "apply.report", "lifecycle.report"):
            bus.subscribe(
                event, lambda payload, name=event: self._handle_event(name, payload)
            )

    def _handle_event(self, name: str, payload: object | None) -> None:
        self._log(f"event -> {name} {self._summarize(payload)}")
        self.hooks.handle_event(name, payload)
        if name == "plugin.transition":
            self._refresh_plugins()

    def _refresh_plugins(self) -> None:
        self.hooks.update_plugins(self.rows())

    @staticmethod
    def _summarize(payload: object | None) -> str:
        if isinstance(payload, Plugin):
            return f"{payload.name}={payload.state.value}"
        if isinstance(payload, dict) and isinstance(payload.get("report"), ApplyReport):
            report = payload["report"]
            return f"{payload.get('label')} applied={len(report.applied)} failed={len(report.failed)}"
        if isinstance(payload, LifecycleReport):
            return f"{payload.action} ok={payload.ok}"
        return repr(payload)

    def _log(self, line: str) -> None:
        self.hooks.log(line)

    def state_metadata(self) -> Dict[str, object]:
        stats = self.engine.registry.stats()
        return {
            "plugins": stats.plugin_count,
            "snapshots": stats.snapshot_count,
            "open_scopes": self.engine.builder.open_scopes,
        }


__all__ = [
    "TextualEngineAdapter",
    "TextualUIHooks",
    "PluginRow",
    "describe_report",
    "plugin_row",
]

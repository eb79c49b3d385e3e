"""Plugin registry owning plugin records and their current snapshots."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, Iterable, Iterator, Mapping, Optional

from rns_engine.errors import DuplicateNameError, InvalidTransitionError, NotFoundError
from rns_engine.runtime.telemetry import span

from .models import Plugin, PluginState, Snapshot

_ALLOWED_TRANSITIONS: Mapping[PluginState, frozenset[PluginState]] = {
    PluginState.REGISTERED: frozenset({PluginState.INSTALLED, PluginState.FAILED}),
    PluginState.INSTALLED: frozenset({PluginState.CONFIG_LOADED, PluginState.FAILED}),
    PluginState.CONFIG_LOADED: frozenset({PluginState.FAILED}),
    # Failed plugins may be re-installed within the same session.
    PluginState.FAILED: frozenset({PluginState.INSTALLED, PluginState.FAILED}),
}


@dataclass(slots=True)
class RegistryStats:
    """Lightweight summary of registry contents."""

    plugin_count: int
    snapshot_count: int
    states: Mapping[str, int]


class PluginRegistry:
    """Arena of plugin records keyed by name, in registration order."""

    def __init__(self, *, logger_name: str | None = None) -> None:
        self._plugins: Dict[str, Plugin] = {}
        self._snapshots: Dict[str, Snapshot] = {}
        self._logger_name = logger_name
        self._snapshot_counter = 0

    def __contains__(self, name: object) -> bool:
        return name in self._plugins

    def __len__(self) -> int:
        return len(self._plugins)

    def register(self, name: str, source: str) -> Plugin:
        with span(
            "plugins::register",
            logger_name=self._logger_name,
            component="plugins",
            metadata={"plugin": name},
        ) as handle:
            existing = self._plugins.get(name)
            if existing is not None:
                if existing.source != source:
                    raise DuplicateNameError(name, existing.source, source)
                handle.add_metadata("status", "unchanged")
                return existing
            plugin = Plugin(name=name, source=source)
            self._plugins[name] = plugin
            handle.add_metadata("status", "registered")
            return plugin

    def lookup(self, name: str) -> Plugin:
        try:
            return self._plugins[name]
        except KeyError as exc:
            raise NotFoundError(name) from exc

    def transition(
        self,
        name: str,
        new_state: PluginState,
        *,
        path: Optional[str] = None,
        failure: Optional[str] = None,
    ) -> Plugin:
        with span(
            "plugins::transition",
            logger_name=self._logger_name,
            component="plugins",
            metadata={"plugin": name, "to": new_state.value},
        ):
            current = self.lookup(name)
            if new_state not in _ALLOWED_TRANSITIONS[current.state]:
                raise InvalidTransitionError(name, current.state.value, new_state.value)
            changes: Dict[str, object] = {"state": new_state, "failure": failure}
            if path is not None:
                changes["path"] = path
            updated = replace(current, **changes)
            self._plugins[name] = updated
            return updated

    def annotate(self, name: str, *, failure: Optional[str]) -> Plugin:
        """Record (or clear) a failure reason without changing state."""

        updated = replace(self.lookup(name), failure=failure)
        self._plugins[name] = updated
        return updated

    def mark_applied(self, name: str, revision: int) -> Plugin:
        updated = replace(self.lookup(name), applied_revision=revision)
        self._plugins[name] = updated
        return updated

    def iter_plugins(
        self, states: Optional[Iterable[PluginState]] = None
    ) -> Iterator[Plugin]:
        wanted = frozenset(states) if states is not None else None
        for plugin in list(self._plugins.values()):
            if wanted is None or plugin.state in wanted:
                yield plugin

    def next_revision(self) -> int:
        self._snapshot_counter += 1
        return self._snapshot_counter

    def commit_snapshot(self, snapshot: Snapshot) -> Snapshot:
        with span(
            "plugins::commit_snapshot",
            logger_name=self._logger_name,
            component="plugins",
            metadata={"plugin": snapshot.plugin, "revision": snapshot.revision},
        ):
            self.lookup(snapshot.plugin)
            self._snapshots[snapshot.plugin] = snapshot
            return snapshot

    def snapshot(self, name: str) -> Optional[Snapshot]:
        self.lookup(name)
        return self._snapshots.get(name)

    def snapshots(self) -> tuple[Snapshot, ...]:
        """Current snapshots in plugin registration order."""

        return tuple(
            self._snapshots[name] for name in self._plugins if name in self._snapshots
        )

    def stats(self) -> RegistryStats:
        states: Dict[str, int] = {}
        for plugin in self._plugins.values():
            states[plugin.state.value] = states.get(plugin.state.value, 0) + 1
        return RegistryStats(
            plugin_count=len(self._plugins),
            snapshot_count=len(self._snapshots),
            states=states,
        )


__all__ = ["PluginRegistry", "RegistryStats"]

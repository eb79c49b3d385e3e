"""Executable Textual inspector that drives an engine session."""

from __future__ import annotations

import argparse
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional, Sequence

try:  # pragma: no cover - imported only when the inspector is run
    from textual.app import App, ComposeResult
    from textual.containers import Vertical
    from textual.widgets import DataTable, Footer, Header, Static
except ModuleNotFoundError as exc:  # pragma: no cover - friendly error for missing dep
    raise RuntimeError(
        "Install the 'textual' package to use rns_engine.adapters.textual.app"
    ) from exc

from rns_engine.engine import Engine
from rns_engine.host.recording import RecordingHost
from rns_engine.settings import EngineSettings

from .controller import PluginRow, TextualEngineAdapter, TextualUIHooks


def create_demo_engine(
    plugins: Sequence[str] = (), *, data_dir: Optional[Path] = None
) -> Engine:
    """Engine over an in-memory host with ``name=source`` plugins registered."""

    settings = EngineSettings.from_env()
    if data_dir is not None:
        settings = settings.with_overrides(data_dir=data_dir)
    engine = Engine(RecordingHost(), settings=settings)
    for item in plugins:
        name, _, source = item.partition("=")
        engine.register_plugin(name.strip(), source.strip() or name.strip())
    return engine


@dataclass
class UIState:
    status_text: str = ""
    report_lines: List[str] = field(default_factory=list)


class EngineInspectorApp(App[None]):
    """Plugin table plus the last batch report."""

    CSS = """
	Screen {
		layout: vertical;
	}

	#plugin-table {
		height: 1fr;
		border: round $accent;
	}

	#report-view {
		height: 8;
		border: round $primary;
		padding: 0 1;
		overflow: auto;
	}

	#status-line {
		height: 1;
		background: $surface-darken-1;
		padding: 0 1;
	}
	"""

    BINDINGS = [
        ("i", "run('install')", "Install"),
        ("u", "run('update')", "Update"),
        ("l", "run('load_configs')", "Load configs"),
        ("a", "run('apply')", "Apply"),
        ("ctrl+c", "quit", "Quit"),
        ("ctrl+q", "quit", "Quit"),
    ]

    def __init__(self, engine: Engine) -> None:
        super().__init__()
        self.engine = engine
        self._state = UIState()
        self.adapter: TextualEngineAdapter | None = None
        self._table: DataTable | None = None
        self._report_widget: Static | None = None
        self._status_widget: Static | None = None

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        with Vertical(id="plugin-area"):
            self._table = DataTable(id="plugin-table")
            yield self._table
        self._report_widget = Static("", id="report-view")
        self._status_widget = Static("", id="status-line")
        yield self._report_widget
        yield self._status_widget
        yield Footer()

    def on_mount(self) -> None:
        if self._table is not None:
            self._table.add_columns("plugin", "state", "revision", "failure")
        hooks = TextualUIHooks(
            update_plugins=self._update_plugins,
            update_status=self._update_status,
            show_report=self._show_report,
            handle_event=self._handle_event,
            log=self.log,
        )
        self.adapter = TextualEngineAdapter(self.engine, hooks)

    def action_run(self, name: str) -> None:
        if self.adapter:
            self.adapter.run_action(name)

    def _update_plugins(self, rows: Sequence[PluginRow]) -> None:
        if self._table is None:
            return
        self._table.clear()
        for row in rows:
            self._table.add_row(*row)

    def _update_status(self, status: str) -> None:
        self._state.status_text = status
        if self._status_widget:
            self._status_widget.update(status)

    def _show_report(self, lines: List[str]) -> None:
        self._state.report_lines = list(lines)
        if self._report_widget:
            self._report_widget.update("\n".join(lines))

    def _handle_event(self, name: str, payload: Any | None) -> None:
        if name == "lifecycle.report":
            self._update_status(name)


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Inspect an rns_engine session.")
    parser.add_argument(
        "plugins",
        nargs="*",
        help="Plugins to register, as name=source",
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=os.environ.get("RNS_ENGINE_DATA_DIR"),
        help="Directory that receives plugin checkouts",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = _parse_args(argv)
    engine = create_demo_engine(args.plugins, data_dir=args.data_dir)
    EngineInspectorApp(engine).run()


if __name__ == "__main__":  # pragma: no cover - manual demo
    main()

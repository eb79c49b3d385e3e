"""Source fetchers that materialize plugin checkouts on disk."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Callable, List, Protocol, Sequence

from rns_engine.errors import SourceFetchError
from rns_engine.plugins.models import Plugin
from rns_engine.runtime.telemetry import span
from rns_engine.settings import EngineSettings

CommandRunner = Callable[[Sequence[str]], "subprocess.CompletedProcess[str]"]


class SourceFetcher(Protocol):
    """Fetch boundary used by the lifecycle manager.

    Implementations raise :class:`SourceFetchError` on failure.
    """

    def install(self, plugin: Plugin) -> str:
        ...

    def update(self, plugin: Plugin) -> None:
        ...


def run_command(command: Sequence[str]) -> "subprocess.CompletedProcess[str]":
    return subprocess.run(
        list(command),
        capture_output=True,
        text=True,
        check=False,
    )


class GitSourceFetcher:
    """Shallow git clones under ``<data_dir>/<pack_subdir>/<name>``."""

    def __init__(
        self,
        settings: EngineSettings,
        *,
        runner: CommandRunner | None = None,
    ) -> None:
        self.settings = settings
        self._runner = runner or run_command

    def checkout_path(self, plugin: Plugin) -> Path:
        return self.settings.plugin_path(plugin.name)

    def install(self, plugin: Plugin) -> str:
        target = self.checkout_path(plugin)
        with span(
            "lifecycle::git_clone",
            logger_name=self.settings.logger_name,
            component="lifecycle",
            metadata={"plugin": plugin.name, "path": str(target)},
        ) as handle:
            if target.is_dir():
                handle.add_metadata("status", "present")
                return str(target)
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise SourceFetchError(plugin.name, str(exc)) from exc
            command: List[str] = [self.settings.git_executable, "clone"]
            if self.settings.clone_depth > 0:
                command.extend(["--depth", str(self.settings.clone_depth)])
            command.extend([plugin.source, str(target)])
            self._run(plugin.name, command)
            handle.add_metadata("status", "cloned")
            return str(target)

    def update(self, plugin: Plugin) -> None:
        target = Path(plugin.path) if plugin.path else self.checkout_path(plugin)
        with span(
            "lifecycle::git_pull",
            logger_name=self.settings.logger_name,
            component="lifecycle",
            metadata={"plugin": plugin.name, "path": str(target)},
        ):
            if not target.is_dir():
                raise SourceFetchError(plugin.name, f"no checkout at {target}")
            self._run(
                plugin.name,
                [self.settings.git_executable, "-C", str(target), "pull", "--ff-only"],
            )

    def _run(self, name: str, command: Sequence[str]) -> None:
        try:
            result = self._runner(command)
        except OSError as exc:
            raise SourceFetchError(name, str(exc)) from exc
        if result.returncode != 0:
            detail = (result.stderr or result.stdout or "").strip()
            reason = f"{command[1]} exited with {result.returncode}"
            if detail:
                reason = f"{reason}: {detail.splitlines()[-1]}"
            raise SourceFetchError(name, reason)


__all__ = ["SourceFetcher", "GitSourceFetcher", "CommandRunner", "run_command"]

"""Engine settings sourced from ``RNS_ENGINE_*`` environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Mapping, Optional

ENV_PREFIX = "RNS_ENGINE_"
DEFAULT_PACK_SUBDIR = "site/pack/managed/start"


def _env(
    name: str, default: Optional[str] = None, *, environ: Mapping[str, str]
) -> Optional[str]:
    return environ.get(f"{ENV_PREFIX}{name}", default)


def _env_flag(name: str, default: bool, *, environ: Mapping[str, str]) -> bool:
    raw = _env(name, environ=environ)
    if raw is None:
        return default
    return raw.lower() in {"1", "true", "yes", "on"}


def _default_data_dir(environ: Mapping[str, str]) -> Path:
    xdg = environ.get("XDG_DATA_HOME")
    base = Path(xdg) if xdg else Path.home() / ".local" / "share"
    return base / "nvim"


@dataclass(frozen=True, slots=True)
class EngineSettings:
    """Knobs shared by the lifecycle manager and the default fetcher."""

    data_dir: Path
    pack_subdir: str = DEFAULT_PACK_SUBDIR
    clone_depth: int = 1
    git_executable: str = "git"
    refresh_runtime: bool = True
    logger_name: Optional[str] = None

    def __post_init__(self) -> None:
        if self.clone_depth < 0:
            raise ValueError("clone_depth cannot be negative")
        if not self.pack_subdir:
            raise ValueError("pack_subdir cannot be empty")

    @property
    def plugin_root(self) -> Path:
        return self.data_dir / self.pack_subdir

    def plugin_path(self, name: str) -> Path:
        return self.plugin_root / name

    def with_overrides(self, **changes: object) -> "EngineSettings":
        return replace(self, **changes)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "EngineSettings":
        env = os.environ if environ is None else environ
        data_dir = _env("DATA_DIR", environ=env)
        depth = _env("CLONE_DEPTH", environ=env)
        return cls(
            data_dir=Path(data_dir) if data_dir else _default_data_dir(env),
            pack_subdir=_env("PACK_SUBDIR", DEFAULT_PACK_SUBDIR, environ=env)
            or DEFAULT_PACK_SUBDIR,
            clone_depth=int(depth) if depth else 1,
            git_executable=_env("GIT", "git", environ=env) or "git",
            refresh_runtime=_env_flag("REFRESH_RUNTIME", True, environ=env),
            logger_name=_env("LOGGER", environ=env),
        )


__all__ = ["EngineSettings", "ENV_PREFIX", "DEFAULT_PACK_SUBDIR"]

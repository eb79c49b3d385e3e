"""telelog-backed logging for the configuration engine.

Everything else in the package goes through four calls: ``configure``,
``get_logger``, ``record_event`` (plus ``record_warning``) and ``span``.
Settings come from ``RNS_ENGINE_*`` variables unless a preset or an explicit
``telelog.Config`` is supplied.
"""

from __future__ import annotations

import os
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, MutableMapping, Optional, cast

import telelog  # type: ignore[import]

from rns_engine.errors import EngineError

tl = cast(Any, telelog)

ENV_PREFIX = "RNS_ENGINE_"
DEFAULT_LOGGER_NAME = "rns_engine"

# Preset name -> telelog builder settings.
_PRESETS: Mapping[str, Mapping[str, Any]] = {
    "development": {"level": "DEBUG", "console": True, "colored": True, "json": False},
    # Embedded in an editor: the host owns the terminal, so log to a file.
    "host": {"level": "INFO", "console": False, "file": "rns_engine.log", "buffered": True},
    "quiet": {"level": "ERROR", "console": False},
}

_LOGGERS: MutableMapping[str, Any] = {}
_ACTIVE: Optional[Any] = None


def _env(name: str) -> Optional[str]:
    return os.environ.get(f"{ENV_PREFIX}{name}")


def _env_on(name: str, default: bool) -> bool:
    raw = _env(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_settings() -> Dict[str, Any]:
    console = not _env_on("DISABLE_CONSOLE", False)
    return {
        "level": (_env("LOG_LEVEL") or "INFO").upper(),
        "console": console,
        "colored": console and not _env_on("NO_COLOR", False),
        "json": _env_on("LOG_JSON", False),
        "file": _env("LOG_FILE"),
        "buffered": _env_on("LOG_BUFFERED", False),
        "buffer_size": int(_env("LOG_BUFFER_SIZE") or "2048"),
    }


def _build(settings: Mapping[str, Any]) -> Any:
    config = tl.Config()
    config.with_min_level(settings["level"])
    config.with_console_output(bool(settings.get("console", True)))
    if settings.get("colored") is not None:
        config.with_colored_output(bool(settings["colored"]))
    if settings.get("json"):
        config.with_json_format(True)
    log_file = _env("LOG_FILE") or settings.get("file")
    if log_file:
        config.with_file_output(log_file)
    if settings.get("buffered"):
        config.with_buffering(True)
        if settings.get("buffer_size"):
            config.with_buffer_size(settings["buffer_size"])
    config.with_profiling(_env_on("PROFILE", True))
    return config


def configure(*, config: Optional[Any] = None, preset: Optional[str] = None) -> None:
    """Swap the active configuration and drop cached loggers.

    ``preset`` is one of ``development``, ``host`` or ``quiet``; ``config``
    is a ready ``telelog.Config``. With neither, the environment decides.
    """

    global _ACTIVE
    if config is not None and preset is not None:
        raise ValueError("Provide either `config` or `preset`, not both.")
    if preset is not None:
        try:
            settings = _PRESETS[preset.lower()]
        except KeyError as exc:
            raise ValueError(f"Unknown preset '{preset}'.") from exc
        config = _build(settings)
    _ACTIVE = config if config is not None else _build(_env_settings())
    _LOGGERS.clear()


def get_logger(name: Optional[str] = None) -> Any:
    global _ACTIVE
    logger_name = name or _env("LOGGER") or DEFAULT_LOGGER_NAME
    logger = _LOGGERS.get(logger_name)
    if logger is None:
        if _ACTIVE is None:
            _ACTIVE = _build(_env_settings())
        logger = tl.Logger.with_config(logger_name, _ACTIVE)
        _LOGGERS[logger_name] = logger
    return logger


def _text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list, tuple, set, frozenset)):
        return repr(value)
    return str(value)


def _emit(logger: Any, level: str, message: str, fields: Mapping[str, Any]) -> None:
    level = level.lower()
    structured = getattr(logger, f"{level}_with", None)
    pairs = [(str(key), _text(value)) for key, value in fields.items()]
    if structured is not None:
        structured(message, pairs)
        return
    plain = getattr(logger, level, None)
    if plain is None:
        raise ValueError(f"Unsupported log level '{level}'.")
    plain(f"{message} {dict(pairs)}")


def record_event(
    name: str,
    *,
    level: str = "info",
    data: Optional[Dict[str, Any]] = None,
    logger_name: Optional[str] = None,
) -> None:
    _emit(get_logger(logger_name), level, f"event::{name}", {"event": name, **(data or {})})


def record_warning(
    name: str,
    *,
    data: Optional[Dict[str, Any]] = None,
    logger_name: Optional[str] = None,
) -> None:
    record_event(name, level="warning", data=data, logger_name=logger_name)


@dataclass
class SpanHandle:
    """Yielded by ``span``; metadata added here is logged on failure."""

    logger: Any
    name: str
    component: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)

    def add_metadata(self, key: str, value: Any) -> None:
        self.metadata[key] = _text(value)

    def _fields(self, extra: Mapping[str, Any]) -> Dict[str, Any]:
        fields: Dict[str, Any] = {"span": self.name, **self.metadata}
        if self.component:
            fields["component"] = self.component
        fields.update(extra)
        return fields

    def fail(self, reason: str, *, kind: Optional[str] = None) -> None:
        extra = {"reason": reason}
        if kind:
            extra["kind"] = kind
        _emit(self.logger, "error", "span::fail", self._fields(extra))


@contextmanager
def span(
    name: str,
    *,
    logger_name: Optional[str] = None,
    component: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Iterator[SpanHandle]:
    """Profile the block under ``name`` and track it as ``component``.

    ``metadata`` is pushed as logger context while the block runs. An
    exception leaving the block is logged with its engine error kind and
    re-raised unchanged.
    """

    logger = get_logger(logger_name)
    pushed: List[str] = []
    handle = SpanHandle(logger=logger, name=name, component=component)
    for key, value in (metadata or {}).items():
        handle.add_metadata(key, value)
        logger.add_context(key, handle.metadata[key])
        pushed.append(key)

    with ExitStack() as stack:
        if component:
            stack.enter_context(logger.track_component(component))
        stack.enter_context(logger.profile(name))
        try:
            yield handle
        except Exception as exc:
            kind = exc.kind.name if isinstance(exc, EngineError) else type(exc).__name__
            handle.fail(str(exc), kind=kind)
            raise
        finally:
            for key in pushed:
                logger.remove_context(key)


__all__ = [
    "SpanHandle",
    "configure",
    "get_logger",
    "record_event",
    "record_warning",
    "span",
]

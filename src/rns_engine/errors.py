"""Error kinds and exception types raised by the configuration engine."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, Optional


class ErrorKind(IntEnum):
    """Stable error ordinals; ``0`` is reserved for success on the ABI surface."""

    DUPLICATE_NAME = 1
    NOT_FOUND = 2
    UNKNOWN_PLUGIN = 3
    SCOPE_ALREADY_OPEN = 4
    NO_OPEN_SCOPE = 5
    UNKNOWN_SERVER = 6
    KEYMAP_CONFLICT = 7
    AUGROUP_AMBIGUITY = 8
    INVALID_TRANSITION = 9
    EXTERNAL_FETCH_FAILURE = 10
    PRIMITIVE_APPLY_FAILURE = 11
    INVALID_ARGUMENT = 12


class EngineError(RuntimeError):
    """Base class for every error the engine raises."""

    kind: ErrorKind = ErrorKind.INVALID_ARGUMENT


class DuplicateNameError(EngineError):
    kind = ErrorKind.DUPLICATE_NAME

    def __init__(self, name: str, existing: str, requested: str) -> None:
        super().__init__(
            f"Plugin '{name}' already registered from '{existing}', not '{requested}'"
        )
        self.name = name
        self.existing = existing
        self.requested = requested


class NotFoundError(EngineError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, name: str) -> None:
        super().__init__(f"Plugin '{name}' is not registered")
        self.name = name


class UnknownPluginError(EngineError):
    kind = ErrorKind.UNKNOWN_PLUGIN

    def __init__(self, name: str) -> None:
        super().__init__(f"Cannot configure unregistered plugin '{name}'")
        self.name = name


class ScopeAlreadyOpenError(EngineError):
    kind = ErrorKind.SCOPE_ALREADY_OPEN

    def __init__(self, name: str) -> None:
        super().__init__(f"A config scope for '{name}' is already open")
        self.name = name


class NoOpenScopeError(EngineError):
    kind = ErrorKind.NO_OPEN_SCOPE

    def __init__(self, operation: str) -> None:
        super().__init__(f"'{operation}' called outside of a config scope")
        self.operation = operation


class UnknownServerError(EngineError):
    kind = ErrorKind.UNKNOWN_SERVER

    def __init__(self, plugin: str, server: str) -> None:
        super().__init__(f"Server '{server}' was not added to the '{plugin}' scope")
        self.plugin = plugin
        self.server = server


class InvalidTransitionError(EngineError):
    kind = ErrorKind.INVALID_TRANSITION

    def __init__(self, name: str, current: str, requested: str) -> None:
        super().__init__(
            f"Plugin '{name}' cannot move from '{current}' to '{requested}'"
        )
        self.name = name
        self.current = current
        self.requested = requested


class InvalidArgumentError(EngineError):
    kind = ErrorKind.INVALID_ARGUMENT


@dataclass(frozen=True, slots=True)
class KeymapConflict:
    """Two or more plugins claiming the same key sequence in one mode."""

    mode: str
    key: str
    owners: tuple[str, ...]
    buffer: Optional[int] = None


class KeymapConflictError(EngineError):
    """Raised when resolution finds keymaps owned by competing plugins."""

    kind = ErrorKind.KEYMAP_CONFLICT

    def __init__(self, conflicts: Iterable[KeymapConflict]) -> None:
        conflicts_tuple = tuple(conflicts)
        if not conflicts_tuple:
            raise ValueError("KeymapConflictError requires at least one conflict")
        described = ", ".join(
            f"{c.mode}:{c.key} <- {list(c.owners)}" for c in conflicts_tuple
        )
        super().__init__(f"Keymap conflicts between plugins: {described}")
        self.conflicts = conflicts_tuple

    @property
    def mode(self) -> str:
        return self.conflicts[0].mode

    @property
    def key(self) -> str:
        return self.conflicts[0].key

    @property
    def owners(self) -> tuple[str, ...]:
        return self.conflicts[0].owners


@dataclass(frozen=True, slots=True)
class AugroupAmbiguity:
    """Warning: a group declared without ``clear`` by more than one source."""

    name: str
    sources: tuple[Optional[str], ...]

    kind = ErrorKind.AUGROUP_AMBIGUITY


class SourceFetchError(EngineError):
    """Raised by source fetchers when a plugin checkout cannot be materialized."""

    kind = ErrorKind.EXTERNAL_FETCH_FAILURE

    def __init__(self, plugin: str, reason: str) -> None:
        super().__init__(f"Fetching '{plugin}' failed: {reason}")
        self.plugin = plugin
        self.reason = reason


class HostCallError(EngineError):
    """Raised by host adapters when a primitive call is rejected."""

    kind = ErrorKind.PRIMITIVE_APPLY_FAILURE

    def __init__(self, primitive: str, reason: str, *, status: int | None = None) -> None:
        super().__init__(f"Host primitive '{primitive}' failed: {reason}")
        self.primitive = primitive
        self.reason = reason
        self.status = status


def error_kind(exc: BaseException) -> ErrorKind:
    if isinstance(exc, EngineError):
        return exc.kind
    return ErrorKind.INVALID_ARGUMENT


__all__ = [
    "ErrorKind",
    "EngineError",
    "DuplicateNameError",
    "NotFoundError",
    "UnknownPluginError",
    "ScopeAlreadyOpenError",
    "NoOpenScopeError",
    "UnknownServerError",
    "InvalidTransitionError",
    "InvalidArgumentError",
    "KeymapConflict",
    "KeymapConflictError",
    "AugroupAmbiguity",
    "SourceFetchError",
    "HostCallError",
    "error_kind",
]

"""Conflict resolution and the operation model it produces."""

from .operations import (
    CreateAugroup,
    CreateAutocmd,
    CreateKeymap,
    CreateUserCommand,
    ExecCode,
    ExecCommand,
    Operation,
    SetGlobal,
    SetOption,
    SetupServer,
    Stage,
)
from .resolver import ConflictResolver, Resolution, resolve

__all__ = [
    "CreateAugroup",
    "CreateAutocmd",
    "CreateKeymap",
    "CreateUserCommand",
    "ExecCode",
    "ExecCommand",
    "Operation",
    "SetGlobal",
    "SetOption",
    "SetupServer",
    "Stage",
    "ConflictResolver",
    "Resolution",
    "resolve",
]

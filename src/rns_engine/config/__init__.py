"""Structured (scoped) and global configuration declarations."""

from .builder import ConfigBuilder, ConfigScope
from .declarations import GlobalDeclarations
from .options import command_rhs, parse_flag_options, parse_json_object

__all__ = [
    "ConfigBuilder",
    "ConfigScope",
    "GlobalDeclarations",
    "command_rhs",
    "parse_flag_options",
    "parse_json_object",
]

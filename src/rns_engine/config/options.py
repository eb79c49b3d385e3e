"""Parsing helpers for the string arguments that cross the ABI boundary."""

from __future__ import annotations

import json
from typing import Dict, Mapping, Optional

from rns_engine.errors import InvalidArgumentError

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def parse_flag_options(raw: Optional[str]) -> Dict[str, object]:
    """Parse ``"noremap,silent,desc=Find files"`` into an options mapping.

    Bare words become ``True``; ``key=value`` pairs keep the value, coerced to
    ``bool`` or ``int`` when it looks like one. A JSON object is accepted too.
    """

    if raw is None:
        return {}
    text = raw.strip()
    if not text:
        return {}
    if text.startswith("{"):
        return dict(parse_json_object(text))

    options: Dict[str, object] = {}
    for chunk in text.split(","):
        item = chunk.strip()
        if not item:
            continue
        if "=" not in item:
            options[item] = True
            continue
        key, value = item.split("=", 1)
        key = key.strip()
        if not key:
            raise InvalidArgumentError(f"Malformed option '{item}'")
        options[key] = coerce_scalar(value.strip())
    return options


def coerce_scalar(value: str) -> object:
    lowered = value.lower()
    if lowered in _TRUE - {"1"}:
        return True
    if lowered in _FALSE - {"0"}:
        return False
    try:
        return int(value)
    except ValueError:
        return value


def parse_json_object(raw: str) -> Mapping[str, object]:
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise InvalidArgumentError(f"Invalid JSON configuration: {exc.msg}") from exc
    if not isinstance(value, dict):
        raise InvalidArgumentError("Configuration must be a JSON object")
    return value


def parse_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    lowered = str(value).strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise InvalidArgumentError(f"Expected a boolean, got '{value}'")


def combine_option_values(old: str, new: str) -> str:
    """Value written by the legacy ``opt(key, old, new)`` call."""

    return f"{old},{new}"


def command_rhs(command: str) -> str:
    """Wrap an Ex command so it can be used as a keymap right-hand side.

    Key notation (``<...>``) passes through untouched. A ``:`` command line
    gets a trailing ``<CR>`` when it lacks one so the mapping executes it.
    """

    text = command.strip()
    if not text:
        raise InvalidArgumentError("keymap command cannot be empty")
    if text.startswith("<"):
        return text
    if text.startswith(":"):
        return text if text.upper().endswith("<CR>") else f"{text}<CR>"
    return f"<cmd>{text}<CR>"


__all__ = [
    "parse_flag_options",
    "parse_json_object",
    "parse_bool",
    "coerce_scalar",
    "combine_option_values",
    "command_rhs",
]

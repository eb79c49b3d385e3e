"""Boundary protocol between the engine and the embedding editor."""

from __future__ import annotations

from typing import Mapping, Optional, Protocol

from rns_engine.errors import HostCallError
from rns_engine.plugins.models import OptionValue


class HostAdapter(Protocol):
    """Primitive calls the engine issues against the host.

    Implementations raise :class:`HostCallError` when the host rejects a
    call; anything else is treated as a programming error and propagates.
    """

    def set_option(self, name: str, value: OptionValue) -> None:
        ...

    def set_global(self, name: str, value: object) -> None:
        ...

    def create_augroup(self, name: str, clear: bool) -> None:
        ...

    def create_autocmd(
        self, event: str, pattern: str, command: str, group: Optional[str]
    ) -> None:
        ...

    def create_keymap(
        self, mode: str, lhs: str, rhs: str, opts: Mapping[str, object]
    ) -> None:
        ...

    def buffer_keymap(
        self, buffer: int, mode: str, lhs: str, rhs: str, opts: Mapping[str, object]
    ) -> None:
        ...

    def create_user_command(
        self, name: str, command: str, opts: Mapping[str, object]
    ) -> None:
        ...

    def setup_lsp(self, server: str, config: Mapping[str, object]) -> None:
        ...

    def exec_command(self, command: str) -> None:
        ...

    def exec_code(self, code: str) -> None:
        ...


__all__ = ["HostAdapter", "HostCallError"]

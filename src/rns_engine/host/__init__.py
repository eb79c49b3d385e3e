"""Host adapters: the protocol plus an in-memory and a command-line host."""

from .adapter import HostAdapter, HostCallError
from .command_line import CommandLineHost
from .recording import HostState, RecordingHost

__all__ = [
    "HostAdapter",
    "HostCallError",
    "CommandLineHost",
    "HostState",
    "RecordingHost",
]

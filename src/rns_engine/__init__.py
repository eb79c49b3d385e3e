"""ABI-driven configuration and plugin-management engine for an editor host."""

from rns_engine.abi import AbiSurface, default_surface
from rns_engine.engine import Engine
from rns_engine.errors import EngineError, ErrorKind
from rns_engine.settings import EngineSettings

__all__ = [
    "AbiSurface",
    "Engine",
    "EngineError",
    "EngineSettings",
    "ErrorKind",
    "default_surface",
]

__version__ = "0.1.0"

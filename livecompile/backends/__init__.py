"""Compilation backends and their discovery."""

from .loader import BUILTIN_BACKENDS
from .loader import ENTRY_POINT_GROUP
from .loader import available_backends
from .loader import load_backend
from .protocol import CompilerBackend
from .protocol import FileManager
from .python import PythonBackend

__all__ = [
    "BUILTIN_BACKENDS",
    "ENTRY_POINT_GROUP",
    "CompilerBackend",
    "FileManager",
    "PythonBackend",
    "available_backends",
    "load_backend",
]

"""
livecompile - Runtime compilation and isolated loading of generated Python units.
"""

__version__ = "1.0.0"

from .backends import CompilerBackend
from .backends import FileManager
from .backends import PythonBackend
from .backends import load_backend
from .compiler import RuntimeCompiler
from .config import CompilerSettings
from .config import load_settings
from .diagnostics import DiagnosticCollector
from .diagnostics import LoggingDiagnosticListener
from .errors import ArtifactLoadError
from .errors import ArtifactStateError
from .errors import BackendUnavailableError
from .errors import CompilationError
from .errors import CompilerError
from .errors import InternalInvariantError
from .errors import ResourceNotFoundError
from .file_manager import VirtualFileStore
from .files import FileKind
from .files import Location
from .files import VirtualFile
from .loading import ArtifactRegistry
from .loading import LoadingContext
from .loading import SharedContext
from .models import LINT_RECOVERABLE_CATEGORY
from .models import CompilationUnit
from .models import CompileOptions
from .models import Diagnostic
from .naming import strip_timestamp
from .resources import ResourcePath
from .store import ArtifactStoreProtocol
from .store import DiskArtifactStore

__all__ = [
    "RuntimeCompiler",
    "CompilerSettings",
    "load_settings",
    # Backends
    "CompilerBackend",
    "FileManager",
    "PythonBackend",
    "load_backend",
    # File store and loading
    "VirtualFileStore",
    "VirtualFile",
    "FileKind",
    "Location",
    "ResourcePath",
    "ArtifactRegistry",
    "LoadingContext",
    "SharedContext",
    "ArtifactStoreProtocol",
    "DiskArtifactStore",
    # Models
    "CompilationUnit",
    "CompileOptions",
    "Diagnostic",
    "DiagnosticCollector",
    "LoggingDiagnosticListener",
    "LINT_RECOVERABLE_CATEGORY",
    "strip_timestamp",
    # Error taxonomy
    "CompilerError",
    "BackendUnavailableError",
    "CompilationError",
    "ResourceNotFoundError",
    "InternalInvariantError",
    "ArtifactLoadError",
    "ArtifactStateError",
]

"""
Runtime compiler - compiles generated units and serves their modules.

Thread-safe. One instance is meant to be shared by every worker of a
process that regenerates units on demand.
"""

from __future__ import annotations

import logging
import threading
import types
from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING
from typing import BinaryIO

from .backends import CompilerBackend
from .backends import load_backend
from .diagnostics import DiagnosticCollector
from .diagnostics import LoggingDiagnosticListener
from .errors import ArtifactLoadError
from .errors import ArtifactStateError
from .errors import CompilationError
from .errors import InternalInvariantError
from .errors import ResourceNotFoundError
from .file_manager import VirtualFileStore
from .files import Location
from .files import VirtualFile
from .loading import ArtifactRegistry
from .loading import SharedContext
from .loading import open_resource
from .models import LINT_RECOVERABLE_CATEGORY
from .models import CompilationUnit
from .models import CompileOptions
from .models import current_version
from .naming import SOURCE_EXTENSION
from .resources import ResourcePath
from .store import DiskArtifactStore

if TYPE_CHECKING:
    from .config import CompilerSettings
    from .store import ArtifactStoreProtocol

logger = logging.getLogger(__name__)


class RuntimeCompiler:
    """
    Compiles ``(logical name, source text)`` pairs into loaded modules.

    Successive generations of a unit (``pkg.Greet_ts1``, ``pkg.Greet_ts2``)
    share one registry slot; the newest generation wins, earlier modules
    stay usable by whoever still holds them.
    """

    def __init__(
        self,
        backend: CompilerBackend | str | None = "python",
        *,
        resource_path: ResourcePath | Iterable[Path | str] | None = None,
        side_store: ArtifactStoreProtocol | None = None,
        target_version: str | None = None,
        lint_recovery: bool = False,
        warnings_as_errors: bool = True,
        verbose: bool | None = None,
    ):
        """
        Args:
            backend: Backend instance or spec for ``load_backend``
            resource_path: Fallback locations for files not held in memory
            side_store: Optional store receiving a copy of every artifact
            target_version: Oldest Python grammar generated code must parse under
            lint_recovery: Retry once with lint options on a lint-class failure
            warnings_as_errors: Fail a unit on any compiler warning outside the lint categories
            verbose: Force (or silence) non-error diagnostics in the log

        Raises:
            BackendUnavailableError: No usable backend
        """
        if backend is None or isinstance(backend, str):
            backend = load_backend(backend)
        self._backend = backend

        if not isinstance(resource_path, ResourcePath):
            resource_path = ResourcePath(resource_path or ())
        self._registry = ArtifactRegistry()
        self._shared = SharedContext(resource_path)
        self._file_manager = VirtualFileStore(self._registry, self._shared, side_store)
        self._listener = LoggingDiagnosticListener(verbose=verbose)

        self._lock = threading.Lock()
        self._options = CompileOptions()
        self._lint_options = CompileOptions().with_lint(LINT_RECOVERABLE_CATEGORY)
        self._lint_recovery = False
        self.configure(
            target_version=target_version,
            enable_lint_recovery=lint_recovery,
            warnings_as_errors=warnings_as_errors,
        )

    @classmethod
    def from_settings(
        cls, settings: CompilerSettings, backend: CompilerBackend | None = None
    ) -> RuntimeCompiler:
        """Build a compiler from loaded settings."""
        side_store = (
            DiskArtifactStore(settings.compile_directory)
            if settings.compile_directory is not None
            else None
        )
        return cls(
            backend if backend is not None else settings.backend,
            resource_path=settings.resource_path,
            side_store=side_store,
            target_version=settings.target_version,
            lint_recovery=settings.lint_recovery,
            warnings_as_errors=settings.warnings_as_errors,
            verbose=True if settings.verbose else None,
        )

    @property
    def backend(self) -> CompilerBackend:
        return self._backend

    @property
    def registry(self) -> ArtifactRegistry:
        return self._registry

    @property
    def file_manager(self) -> VirtualFileStore:
        return self._file_manager

    @property
    def options(self) -> CompileOptions:
        with self._lock:
            return self._options

    @property
    def lint_options(self) -> CompileOptions:
        with self._lock:
            return self._lint_options

    @property
    def lint_recovery(self) -> bool:
        with self._lock:
            return self._lint_recovery

    def configure(
        self,
        target_version: str | None = None,
        enable_lint_recovery: bool | None = None,
        warnings_as_errors: bool | None = None,
    ) -> None:
        """
        Update the option sets.

        A target version equal to the running interpreter's adds nothing.
        ``warnings_as_errors=False`` downgrades every compiler warning, in both
        option sets, to a plain warning diagnostic.

        Raises:
            ValueError: ``target_version`` is not of the form '3.N'
        """
        with self._lock:
            if target_version and target_version != current_version():
                self._options = self._options.with_target(target_version)
                self._lint_options = self._lint_options.with_target(target_version)
            if enable_lint_recovery is not None:
                self._lint_recovery = enable_lint_recovery
            if warnings_as_errors is not None:
                update = {"warnings_as_errors": warnings_as_errors}
                self._options = self._options.model_copy(update=update)
                self._lint_options = self._lint_options.model_copy(update=update)

    def init(self) -> None:
        """Log the resource path locations."""
        if logger.isEnabledFor(logging.DEBUG):
            lines = ["Runtime compiler resource path:", "================"]
            lines += [str(p) for p in self._shared.resource_path.locations]
            lines.append("================")
            logger.debug("\n".join(lines))

    def compile(self, name: str, source_text: str) -> types.ModuleType:
        """
        Compile a unit and return its loaded module.

        Args:
            name: Versioned logical name (e.g. 'templates.Greet_ts1700000000')
            source_text: Python source of the unit

        Returns:
            The unit's module

        Raises:
            CompilationError: The backend rejected the source
            InternalInvariantError: Success was reported but nothing was registered
            ArtifactLoadError: The module body raised while loading
        """
        with self._lock:
            options = self._options
            lint_options = self._lint_options
            lint_recovery = self._lint_recovery

        try:
            return self._compile(name, source_text, options)
        except CompilationError as e:
            if lint_recovery and e.has_category(LINT_RECOVERABLE_CATEGORY):
                logger.info(f"[compile:retry] {name} with {' '.join(lint_options.to_args())}")
                return self._compile(name, source_text, lint_options)
            raise

    def load(self, name: str) -> types.ModuleType:
        """
        Module of the active unit for a name (exact versioned or canonical).

        Raises:
            ResourceNotFoundError: No unit registered under the name
        """
        context = self._registry.find(name)
        if context is None:
            raise ResourceNotFoundError(f"No compiled unit named {name}", resource=name)
        return context.load()

    def get_resource(self, name: str) -> BinaryIO:
        """Open a resource, serving compiled artifacts from memory first."""
        return open_resource(self._registry, self._shared, name)

    def _compile(self, name: str, source_text: str, options: CompileOptions) -> types.ModuleType:
        unit = CompilationUnit.create(name, source_text)

        context = self._registry.lookup(unit.canonical_name)
        if context is not None and context.qualified_name == name:
            try:
                module = context.load()
                logger.debug(f"[compile:hit] {name}")
                return module
            except (ArtifactStateError, ArtifactLoadError) as e:
                logger.debug(f"Cached unit '{name}' is unusable, recompiling: {e}")

        source = VirtualFile.source(name, source_text)
        self._file_manager.put_source(
            Location.SOURCE_PATH, unit.package, unit.simple_name + SOURCE_EXTENSION, source
        )
        collector = DiagnosticCollector(self._listener)
        logger.debug(f"[compile:start] {name} {' '.join(options.to_args())}")

        scope = self._file_manager.scope()
        succeeded = self._backend.compile_unit(scope, collector, options, [source])
        emitted = scope.emitted.get(name)
        if not succeeded:
            self._log_source(name, source_text)
            raise CompilationError(
                f"Compilation failed. unit: {name}, diagnostics: "
                f"{[str(d) for d in collector.diagnostics]}",
                unit=name,
                diagnostics=collector.diagnostics,
            )

        context = self._registry.lookup(unit.canonical_name)
        if context is None:
            raise InternalInvariantError(
                f"Loading context for: {name} is not found", unit=name
            )
        if emitted is not None and emitted is not context:
            logger.debug(
                f"'{unit.canonical_name}' was replaced by {context.qualified_name} while compiling {name}"
            )
            context = emitted
        logger.debug(f"[compile:done] {name}")
        return context.load()

    def _log_source(self, name: str, source_text: str) -> None:
        if not logger.isEnabledFor(logging.DEBUG):
            return
        numbered = "\n".join(
            f"{number:4d}: {line}" for number, line in enumerate(source_text.splitlines(), 1)
        )
        logger.debug(f"Failed to compile {name}, source:\n{numbered}")

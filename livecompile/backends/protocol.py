"""
Contracts between the compilation driver and a compilation backend.
Uses Protocol classes for structural subtyping (no inheritance required).
"""

from collections.abc import Iterable
from collections.abc import Iterator
from collections.abc import Sequence
from typing import BinaryIO
from typing import Protocol
from typing import runtime_checkable

from ..diagnostics import DiagnosticListener
from ..files import FileKind
from ..files import Location
from ..files import VirtualFile
from ..models import CompileOptions


@runtime_checkable
class FileManager(Protocol):
    """File access the driver hands to the backend.

    ``open_for_write`` mutates shared state: closing the writer it returns
    publishes a new loading context in the artifact registry, taking the
    registry lock while doing so. Backends must close every writer they open
    and must not assume the file manager is read-only.
    """

    def resolve_for_read(
        self, location: Location, package: str, relative_name: str
    ) -> VirtualFile: ...

    def open_for_write(
        self,
        location: Location,
        qualified_name: str,
        kind: FileKind = FileKind.ARTIFACT,
        sibling: VirtualFile | None = None,
    ) -> BinaryIO: ...

    def list_candidates(
        self,
        location: Location,
        package: str,
        kinds: Iterable[FileKind],
        recurse: bool = False,
    ) -> Iterator[VirtualFile]: ...

    def infer_binary_name(self, location: Location, file: VirtualFile) -> str: ...


@runtime_checkable
class CompilerBackend(Protocol):
    """Turns source files into artifacts and reports diagnostics."""

    @property
    def name(self) -> str:
        """Backend name."""
        ...

    def compile_unit(
        self,
        file_manager: FileManager,
        diagnostics: DiagnosticListener,
        options: CompileOptions,
        sources: Sequence[VirtualFile],
    ) -> bool:
        """
        Compile the given sources.

        Args:
            file_manager: Where to read inputs and emit artifacts
            diagnostics: Receives every diagnostic produced
            options: Option set for this invocation
            sources: Source files to compile

        Returns:
            True if every source compiled and its artifacts were emitted
        """
        ...

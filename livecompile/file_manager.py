"""
In-memory file manager handed to the compilation backend.

Overlays explicitly registered sources on top of the resource path, and
turns every artifact the backend emits into a freshly registered
LoadingContext.

NOTE: the backend does not only read through this object. Every writer
returned by ``open_for_write`` publishes a new context in the shared registry
as a side effect when the backend closes it. A single source may emit several
artifacts, so registration can't wait until the backend returns.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from collections.abc import Iterable
from collections.abc import Iterator
from typing import TYPE_CHECKING
from typing import BinaryIO

from .errors import ArtifactStateError
from .errors import ResourceNotFoundError
from .files import FileKind
from .files import Location
from .files import VirtualFile
from .loading import ArtifactRegistry
from .loading import LoadingContext
from .loading import SharedContext
from .naming import URI_SCHEME
from .naming import split_qualified_name
from .naming import to_uri

if TYPE_CHECKING:
    from .resources import ResourcePath
    from .store import ArtifactStoreProtocol

logger = logging.getLogger(__name__)


def _in_package(binary_name: str, package: str, recurse: bool) -> bool:
    parent = split_qualified_name(binary_name)[0]
    if parent == package:
        return True
    if not recurse:
        return False
    return package == "" or parent.startswith(package + ".")


class VirtualFileStore:
    """Overlay file manager: in-memory entries first, resource path second."""

    def __init__(
        self,
        registry: ArtifactRegistry,
        shared: SharedContext,
        side_store: ArtifactStoreProtocol | None = None,
    ) -> None:
        self._registry = registry
        self._shared = shared
        self._side_store = side_store
        self._files: dict[str, VirtualFile] = {}
        self._lock = threading.RLock()

    @property
    def resource_path(self) -> ResourcePath:
        return self._shared.resource_path

    def put_source(
        self, location: Location, package: str, relative_name: str, file: VirtualFile
    ) -> None:
        """Register a source file, replacing whatever sat at its canonical path."""
        uri = to_uri(location.value, package, relative_name)
        with self._lock:
            self._files[uri] = file

    def resolve_for_read(
        self, location: Location, package: str, relative_name: str
    ) -> VirtualFile:
        """Find a file for reading.

        Raises:
            ResourceNotFoundError: Neither the in-memory store nor the resource
                path has the file.
        """
        uri = to_uri(location.value, package, relative_name)
        with self._lock:
            file = self._files.get(uri)
        if file is not None:
            return file

        relative_path = "/".join(p for p in (package.replace(".", "/"), relative_name) if p)
        file = self._shared.resource_path.find(relative_path)
        if file is None:
            raise ResourceNotFoundError(
                f"Resource not found: {relative_path} ({location.value})",
                resource=relative_path,
            )
        return file

    def open_for_write(
        self,
        location: Location,
        qualified_name: str,
        kind: FileKind = FileKind.ARTIFACT,
        sibling: VirtualFile | None = None,
        on_publish: Callable[[LoadingContext], None] | None = None,
    ) -> BinaryIO:
        """Create a LoadingContext and return its artifact writer.

        The context is published in the registry when the writer is closed, so
        readers keep seeing the previous generation until the bytes are complete.
        ``on_publish`` is called with the context right after it is published.
        """
        if kind is not FileKind.ARTIFACT:
            raise ArtifactStateError(
                f"Backend asked to write a {kind.value} file for {qualified_name}",
                unit=qualified_name,
            )
        context = LoadingContext(qualified_name, self._registry, self._shared, self._side_store)
        logger.debug(
            f"[file-manager:output] {qualified_name} ({location.value})"
            + (f" from {sibling.uri}" if sibling is not None else "")
        )

        def publish(_: VirtualFile) -> None:
            self._registry.replace(context)
            if on_publish is not None:
                on_publish(context)

        return context.artifact.open_output(on_close=publish)

    def scope(self) -> EmissionScope:
        """File manager view for one backend invocation."""
        return EmissionScope(self)

    def list_candidates(
        self,
        location: Location,
        package: str,
        kinds: Iterable[FileKind],
        recurse: bool = False,
    ) -> Iterator[VirtualFile]:
        """Yield known files of the given kinds under a package.

        Recomputed from current state on every call.
        """
        kinds = frozenset(kinds)
        prefix = f"{URI_SCHEME}:///{location.value}/"
        with self._lock:
            files = [f for uri, f in self._files.items() if uri.startswith(prefix)]
        for file in files:
            if file.kind in kinds and _in_package(file.binary_name, package, recurse):
                yield file

        if location is Location.CLASS_PATH and FileKind.ARTIFACT in kinds:
            for context in self._registry.contexts():
                if _in_package(context.qualified_name, package, recurse):
                    yield context.artifact

        yield from self._shared.resource_path.list(package, kinds, recurse)

    def infer_binary_name(self, location: Location, file: VirtualFile) -> str:
        return file.binary_name


class EmissionScope:
    """File manager view for a single backend invocation.

    Delegates to the store and remembers the contexts published through it.
    It lives only as long as the invocation, so nothing accumulates in the
    store when a backend emits extra artifacts or raises.
    """

    def __init__(self, store: VirtualFileStore) -> None:
        self._store = store
        self._emitted: dict[str, LoadingContext] = {}
        self._lock = threading.Lock()

    @property
    def emitted(self) -> dict[str, LoadingContext]:
        """Published contexts by qualified name."""
        with self._lock:
            return dict(self._emitted)

    def resolve_for_read(
        self, location: Location, package: str, relative_name: str
    ) -> VirtualFile:
        return self._store.resolve_for_read(location, package, relative_name)

    def open_for_write(
        self,
        location: Location,
        qualified_name: str,
        kind: FileKind = FileKind.ARTIFACT,
        sibling: VirtualFile | None = None,
    ) -> BinaryIO:
        return self._store.open_for_write(
            location, qualified_name, kind, sibling, on_publish=self._record
        )

    def list_candidates(
        self,
        location: Location,
        package: str,
        kinds: Iterable[FileKind],
        recurse: bool = False,
    ) -> Iterator[VirtualFile]:
        return self._store.list_candidates(location, package, kinds, recurse)

    def infer_binary_name(self, location: Location, file: VirtualFile) -> str:
        return self._store.infer_binary_name(location, file)

    def _record(self, context: LoadingContext) -> None:
        with self._lock:
            self._emitted[context.qualified_name] = context

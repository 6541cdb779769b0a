"""In-memory file objects exchanged between the file store and the backend."""

from __future__ import annotations

import io
import threading
from collections.abc import Callable
from enum import Enum

from .errors import ArtifactStateError
from .naming import ARTIFACT_EXTENSION
from .naming import SOURCE_EXTENSION
from .naming import URI_SCHEME
from .naming import binary_name_to_path


class Location(str, Enum):
    """Where a file lives from the backend's point of view."""

    SOURCE_PATH = "source_path"
    CLASS_PATH = "class_path"
    CLASS_OUTPUT = "class_output"


class FileKind(str, Enum):
    SOURCE = "source"
    ARTIFACT = "artifact"

    @property
    def extension(self) -> str:
        return SOURCE_EXTENSION if self is FileKind.SOURCE else ARTIFACT_EXTENSION

    @classmethod
    def for_path(cls, path: str) -> FileKind | None:
        if path.endswith(ARTIFACT_EXTENSION):
            return cls.ARTIFACT
        if path.endswith(SOURCE_EXTENSION):
            return cls.SOURCE
        return None


class _ArtifactWriter(io.BytesIO):
    """Write handle for an artifact; closing it freezes the owner's bytes."""

    def __init__(
        self, owner: VirtualFile, on_close: Callable[[VirtualFile], None] | None = None
    ) -> None:
        super().__init__()
        self._owner = owner
        self._on_close = on_close

    def close(self) -> None:
        if self.closed:
            return
        self._owner._freeze(self.getvalue())
        super().close()
        if self._on_close is not None:
            self._on_close(self._owner)

    def __del__(self) -> None:
        # an abandoned writer never freezes or publishes its artifact
        pass


class VirtualFile:
    """A source or artifact file held in memory.

    Sources are created with their text and never change. Artifacts start
    empty, are written once through ``open_output()`` and become immutable
    when the writer is closed.
    """

    def __init__(
        self,
        uri: str,
        binary_name: str,
        kind: FileKind,
        *,
        text: str | None = None,
        data: bytes | None = None,
    ) -> None:
        self.uri = uri
        self.binary_name = binary_name
        self.kind = kind
        self._text = text
        self._data = data
        self._opened = data is not None
        self._lock = threading.Lock()

    @classmethod
    def source(cls, binary_name: str, text: str) -> VirtualFile:
        uri = f"{URI_SCHEME}:///{binary_name_to_path(binary_name, SOURCE_EXTENSION)}"
        return cls(uri, binary_name, FileKind.SOURCE, text=text)

    @classmethod
    def artifact(cls, binary_name: str) -> VirtualFile:
        uri = f"{URI_SCHEME}:///{binary_name_to_path(binary_name, ARTIFACT_EXTENSION)}"
        return cls(uri, binary_name, FileKind.ARTIFACT)

    @property
    def name(self) -> str:
        return self.uri

    @property
    def is_frozen(self) -> bool:
        return self._data is not None or self._text is not None

    def get_char_content(self) -> str:
        """Source text of the file."""
        if self._text is not None:
            return self._text
        if self.kind is FileKind.SOURCE and self._data is not None:
            return self._data.decode("utf-8")
        raise ArtifactStateError(f"{self.uri} has no source text", unit=self.binary_name)

    def get_bytes(self) -> bytes:
        """Raw content; for artifacts only after the writer was closed."""
        if self._data is not None:
            return self._data
        if self._text is not None:
            return self._text.encode("utf-8")
        raise ArtifactStateError(
            f"Artifact {self.binary_name} has not been written yet", unit=self.binary_name
        )

    def open_input(self) -> io.BytesIO:
        return io.BytesIO(self.get_bytes())

    def open_output(
        self, on_close: Callable[[VirtualFile], None] | None = None
    ) -> io.BytesIO:
        """Open the single write handle of an artifact.

        ``on_close`` runs once the bytes are frozen.
        """
        if self.kind is not FileKind.ARTIFACT:
            raise ArtifactStateError(f"{self.uri} is a source file and read-only")
        with self._lock:
            if self._opened:
                raise ArtifactStateError(
                    f"Artifact {self.binary_name} was already written", unit=self.binary_name
                )
            self._opened = True
        return _ArtifactWriter(self, on_close)

    def _freeze(self, data: bytes) -> None:
        with self._lock:
            self._data = data

    def __repr__(self) -> str:
        return f"VirtualFile({self.uri!r}, kind={self.kind.value})"

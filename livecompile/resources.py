"""Fallback resource resolution over an ordered list of directories and zip archives."""

from __future__ import annotations

import logging
import zipfile
from collections.abc import Iterable
from collections.abc import Iterator
from pathlib import Path

from .files import FileKind
from .files import VirtualFile

logger = logging.getLogger(__name__)


class ResourcePath:
    """Ordered resource locations consulted when a path is not held in memory.

    Supports:
    - plain directories
    - zip archives (``.zip`` or anything ``zipfile`` recognizes)

    Locations are searched in order, first match wins. Locations that don't
    exist are dropped with a warning.
    """

    def __init__(self, locations: Iterable[Path | str] = ()) -> None:
        self._locations: list[Path] = []
        for location in locations:
            path = Path(location).expanduser()
            if not path.exists():
                logger.warning(f"Resource location does not exist: {path}")
                continue
            self._locations.append(path.resolve())

    @property
    def locations(self) -> list[Path]:
        return list(self._locations)

    def find(self, relative_path: str) -> VirtualFile | None:
        """Find a resource by slash-separated path relative to a location.

        Returns:
            The resource as a frozen VirtualFile, or None if no location has it.
        """
        relative_path = relative_path.lstrip("/")
        for location in self._locations:
            data = self._read(location, relative_path)
            if data is not None:
                return self._to_file(location, relative_path, data)
        return None

    def list(
        self, package: str, kinds: Iterable[FileKind], recurse: bool = False
    ) -> Iterator[VirtualFile]:
        """Yield resources of the given kinds under a dotted package."""
        kinds = set(kinds)
        prefix = package.replace(".", "/")
        for location in self._locations:
            for relative_path in self._names(location, prefix, recurse):
                if FileKind.for_path(relative_path) not in kinds:
                    continue
                data = self._read(location, relative_path)
                if data is not None:
                    yield self._to_file(location, relative_path, data)

    def _read(self, location: Path, relative_path: str) -> bytes | None:
        if location.is_dir():
            candidate = location / relative_path
            return candidate.read_bytes() if candidate.is_file() else None
        if zipfile.is_zipfile(location):
            with zipfile.ZipFile(location) as archive:
                try:
                    return archive.read(relative_path)
                except KeyError:
                    return None
        return None

    def _names(self, location: Path, prefix: str, recurse: bool) -> Iterator[str]:
        if location.is_dir():
            base = location / prefix if prefix else location
            if not base.is_dir():
                return
            entries = base.rglob("*") if recurse else base.iterdir()
            for entry in entries:
                if entry.is_file():
                    yield entry.relative_to(location).as_posix()
        elif zipfile.is_zipfile(location):
            with zipfile.ZipFile(location) as archive:
                names = archive.namelist()
            for name in names:
                if name.endswith("/"):
                    continue
                if prefix:
                    if not name.startswith(prefix + "/"):
                        continue
                    rest = name[len(prefix) + 1 :]
                else:
                    rest = name
                if not recurse and "/" in rest:
                    continue
                yield name

    def _to_file(self, location: Path, relative_path: str, data: bytes) -> VirtualFile:
        kind = FileKind.for_path(relative_path) or FileKind.ARTIFACT
        stem = relative_path[: -len(kind.extension)] if relative_path.endswith(kind.extension) else relative_path
        if location.is_dir():
            uri = (location / relative_path).as_uri()
        else:
            uri = f"zip+{location.as_uri()}#{relative_path}"
        return VirtualFile(uri, stem.replace("/", "."), kind, data=data)

    def __repr__(self) -> str:
        return f"ResourcePath({[str(p) for p in self._locations]!r})"

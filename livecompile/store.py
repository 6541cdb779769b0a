"""Durable side-store for compiled artifacts."""

from __future__ import annotations

import contextlib
import logging
import tempfile
from pathlib import Path
from typing import Protocol

from .naming import ARTIFACT_EXTENSION
from .naming import binary_name_to_path

logger = logging.getLogger(__name__)


class ArtifactStoreProtocol(Protocol):
    """Protocol for persisting artifacts for out-of-process inspection.

    Saving is best-effort: the loader logs failures and keeps going.
    """

    def save(self, name: str, data: bytes) -> None:
        """Persist artifact bytes.

        Args:
            name: Dotted unit name the artifact was compiled for.
            data: Artifact bytes.
        """
        ...


class DiskArtifactStore:
    """Writes artifacts as ``.pyc`` files under a directory.

    Apps MUST provide the directory - the compiler doesn't decide where
    artifacts go. No eviction; a later save for the same name overwrites.
    """

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _name_to_path(self, name: str) -> Path:
        return self.directory / binary_name_to_path(name, ARTIFACT_EXTENSION)

    def save(self, name: str, data: bytes) -> None:
        path = self._name_to_path(name)
        path.parent.mkdir(parents=True, exist_ok=True)

        # temp file + rename so readers never see a partial artifact
        temp_path: Path | None = None
        try:
            with tempfile.NamedTemporaryFile(
                mode="wb",
                dir=path.parent,
                prefix=f".{path.stem}_",
                suffix=".tmp",
                delete=False,
            ) as tmp_file:
                temp_path = Path(tmp_file.name)
                tmp_file.write(data)
                tmp_file.flush()
            temp_path.replace(path)
        except Exception as e:
            if temp_path:
                with contextlib.suppress(OSError):
                    temp_path.unlink()
            raise OSError(f"Failed to save artifact {name} to {path}: {e}") from e

        logger.debug(f"Saved artifact '{name}' to {path}")

    def get(self, name: str) -> bytes | None:
        path = self._name_to_path(name)
        return path.read_bytes() if path.is_file() else None

    def clear(self) -> None:
        """Remove all saved artifacts."""
        for path in self.directory.rglob(f"*{ARTIFACT_EXTENSION}"):
            path.unlink(missing_ok=True)

    def __contains__(self, name: str) -> bool:
        return self._name_to_path(name).is_file()

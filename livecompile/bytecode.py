"""Artifact encoding.

Artifacts use the same layout as a timestamp-based ``.pyc`` file so a copy
saved by the side-store can be inspected with standard tooling:

    magic (4) | flags (4) | mtime (4) | source size (4) | marshalled code
"""

from __future__ import annotations

import importlib.util
import marshal
import time
from types import CodeType

from .errors import ArtifactLoadError

HEADER_SIZE = 16


def dump_code(code: CodeType, source_size: int, mtime: float | None = None) -> bytes:
    """Serialize a module code object into artifact bytes."""
    if mtime is None:
        mtime = time.time()
    data = bytearray(importlib.util.MAGIC_NUMBER)
    data.extend((0).to_bytes(4, "little"))
    data.extend((int(mtime) & 0xFFFFFFFF).to_bytes(4, "little"))
    data.extend((source_size & 0xFFFFFFFF).to_bytes(4, "little"))
    data.extend(marshal.dumps(code))
    return bytes(data)


def load_code(data: bytes, name: str) -> CodeType:
    """Decode artifact bytes back into a code object.

    Raises:
        ArtifactLoadError: Truncated data, foreign magic number or bad payload.
    """
    if len(data) < HEADER_SIZE:
        raise ArtifactLoadError(f"Artifact {name} is truncated ({len(data)} bytes)", unit=name)
    if data[:4] != importlib.util.MAGIC_NUMBER:
        raise ArtifactLoadError(
            f"Artifact {name} was compiled for a different interpreter", unit=name
        )
    try:
        code = marshal.loads(data[HEADER_SIZE:])
    except (EOFError, ValueError, TypeError) as e:
        raise ArtifactLoadError(f"Artifact {name} is corrupt: {e}", unit=name) from e
    if not isinstance(code, CodeType):
        raise ArtifactLoadError(f"Artifact {name} does not contain a code object", unit=name)
    return code

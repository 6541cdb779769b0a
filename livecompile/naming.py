"""Unit name canonicalization.

Generated units are compiled under versioned names such as
``templates.Greet_ts1700000000``. The canonical name drops the trailing
generation marker so every regeneration of one logical unit maps to the same
registry key and replaces the previous generation.
"""

from __future__ import annotations

import re

SOURCE_EXTENSION = ".py"
ARTIFACT_EXTENSION = ".pyc"
URI_SCHEME = "vfs"

# One or more trailing "_ts<digits>" markers; stripping them all keeps
# strip_timestamp idempotent.
_TIMESTAMP_SUFFIX = re.compile(r"(?:_ts\d*)+$")


def strip_timestamp(name: str) -> str:
    """Return ``name`` without its trailing generation marker."""
    return _TIMESTAMP_SUFFIX.sub("", name)


def split_qualified_name(name: str) -> tuple[str, str]:
    """Split ``pkg.sub.Unit`` into ``("pkg.sub", "Unit")``."""
    package, _, simple_name = name.rpartition(".")
    return package, simple_name


def canonical_path(relative_name: str) -> str:
    """Strip the generation marker from a file name, keeping its extension.

    ``Greet_ts9.py`` becomes ``Greet.py``; names without a known extension are
    canonicalized as a whole.
    """
    for extension in (ARTIFACT_EXTENSION, SOURCE_EXTENSION):
        if relative_name.endswith(extension):
            stem = relative_name[: -len(extension)]
            return strip_timestamp(stem) + extension
    return strip_timestamp(relative_name)


def to_uri(location: str, package: str, relative_name: str) -> str:
    """Build the canonical in-memory URI for a file."""
    package_path = package.replace(".", "/")
    parts = [location]
    if package_path:
        parts.append(package_path)
    parts.append(canonical_path(relative_name))
    return f"{URI_SCHEME}:///" + "/".join(parts)


def binary_name_to_path(binary_name: str, extension: str) -> str:
    """``pkg.Greet_ts1`` + ``.pyc`` -> ``pkg/Greet_ts1.pyc``."""
    return binary_name.replace(".", "/") + extension


def resource_name_to_binary_name(resource: str) -> str | None:
    """``pkg/Greet_ts1.pyc`` -> ``pkg.Greet_ts1``; None for non-artifacts."""
    if not resource.endswith(ARTIFACT_EXTENSION):
        return None
    stem = resource[: -len(ARTIFACT_EXTENSION)].lstrip("/")
    return stem.replace("/", ".")

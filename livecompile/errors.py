"""Runtime compiler error taxonomy.

Every failure raised by livecompile derives from ``CompilerError`` so that
callers (template engines, request handlers) can catch one type and still
tell the cases apart:

- ``BackendUnavailableError``: no compilation backend could be obtained.
  Raised once, when the compiler is constructed.
- ``CompilationError``: the backend rejected the source. Carries the full
  diagnostic list; resubmit corrected source to recover.
- ``ResourceNotFoundError``: a path is missing from both the in-memory
  overlay and the fallback resource path.
- ``InternalInvariantError``: the backend reported success but no artifact
  was registered. Never retried.
- ``ArtifactLoadError`` / ``ArtifactStateError``: materializing or writing an
  artifact failed.

Wrapping sites use ``raise X(...) from error`` so the underlying exception
stays available via ``__cause__``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import Diagnostic


class CompilerError(Exception):
    """Base for all livecompile errors.

    Attributes:
        unit: Logical (versioned) name of the unit involved, if any.
    """

    def __init__(self, message: str, *, unit: str | None = None) -> None:
        super().__init__(message)
        self.unit = unit

    def __repr__(self) -> str:
        parts = [repr(str(self))]
        if self.unit is not None:
            parts.append(f"unit={self.unit!r}")
        return f"{type(self).__name__}({', '.join(parts)})"


class BackendUnavailableError(CompilerError):
    """No compilation backend is configured or the configured one can't be loaded."""

    pass


class CompilationError(CompilerError):
    """The backend reported a failed compilation.

    Attributes:
        diagnostics: Every diagnostic the backend reported for the attempt.
    """

    def __init__(
        self,
        message: str,
        *,
        unit: str | None = None,
        diagnostics: list[Diagnostic] | None = None,
    ) -> None:
        super().__init__(message, unit=unit)
        self.diagnostics = list(diagnostics or [])

    @property
    def errors(self) -> list[Diagnostic]:
        """Error-level diagnostics only."""
        return [d for d in self.diagnostics if d.is_error]

    def has_category(self, category: str) -> bool:
        """Check whether any diagnostic carries the given category."""
        return any(d.category == category for d in self.diagnostics)


class ResourceNotFoundError(CompilerError):
    """Resource is missing from the in-memory store and the resource path.

    Attributes:
        resource: The path or name that was requested.
    """

    def __init__(self, message: str, *, resource: str, unit: str | None = None) -> None:
        super().__init__(message, unit=unit)
        self.resource = resource


class InternalInvariantError(CompilerError):
    """Compilation succeeded but no loading context was registered for the unit."""

    pass


class ArtifactLoadError(CompilerError):
    """Artifact bytes could not be turned into a module."""

    pass


class ArtifactStateError(CompilerError):
    """Artifact was written twice, or read before its writer was closed."""

    pass

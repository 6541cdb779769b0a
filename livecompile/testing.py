"""
Testing utilities for livecompile.
Backends that record or script compile invocations.
"""

import threading
from collections.abc import Sequence
from typing import Any

from .backends import FileManager
from .backends import PythonBackend
from .diagnostics import DiagnosticListener
from .files import FileKind
from .files import Location
from .files import VirtualFile
from .models import CompileOptions
from .models import Diagnostic


class RecordingBackend:
    """Delegates to another backend and records every invocation."""

    name = "recording"

    def __init__(self, inner: Any = None):
        self.inner = inner or PythonBackend()
        self.calls: list[dict[str, Any]] = []
        self._lock = threading.Lock()

    @property
    def call_count(self) -> int:
        with self._lock:
            return len(self.calls)

    def compile_unit(
        self,
        file_manager: FileManager,
        diagnostics: DiagnosticListener,
        options: CompileOptions,
        sources: Sequence[VirtualFile],
    ) -> bool:
        with self._lock:
            self.calls.append(
                {"names": [s.binary_name for s in sources], "options": options}
            )
        return self.inner.compile_unit(file_manager, diagnostics, options, sources)


class ScriptedBackend:
    """Backend with a fixed outcome; compiles nothing.

    Reports ``diagnostics``, writes ``emit`` as the artifact of every source
    when given, then returns ``result``.
    """

    name = "scripted"

    def __init__(
        self,
        result: bool = True,
        diagnostics: Sequence[Diagnostic] = (),
        emit: bytes | None = None,
    ):
        self.result = result
        self.diagnostics = list(diagnostics)
        self.emit = emit
        self.call_count = 0

    def compile_unit(
        self,
        file_manager: FileManager,
        diagnostics: DiagnosticListener,
        options: CompileOptions,
        sources: Sequence[VirtualFile],
    ) -> bool:
        self.call_count += 1
        for diagnostic in self.diagnostics:
            diagnostics.report(diagnostic)
        if self.emit is not None:
            for source in sources:
                with file_manager.open_for_write(
                    Location.CLASS_OUTPUT, source.binary_name, FileKind.ARTIFACT, source
                ) as output:
                    output.write(self.emit)
        return self.result
